"""
Deployer Package
Artifact loading, ordering, orchestration and result persistence
"""

from .models import DeploymentArtifact, DeploymentResult, SessionSummary, TransactionReceipt
from .session import SessionContext
from .ordering import DeploymentOrder
from .artifact_store import ArtifactStore, LoadedArtifacts
from .result_sink import FileResultSink
from .orchestrator import DeploymentContext, DeploymentOrchestrator

__all__ = [
    'DeploymentArtifact',
    'DeploymentResult',
    'SessionSummary',
    'TransactionReceipt',
    'SessionContext',
    'DeploymentOrder',
    'ArtifactStore',
    'LoadedArtifacts',
    'FileResultSink',
    'DeploymentContext',
    'DeploymentOrchestrator'
]
