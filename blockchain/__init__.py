"""
Blockchain Interaction Package
RPC access, signing, nonce sequencing and transaction building
"""

from .chain_client import ChainClient
from .signer import DeploymentSigner
from .transaction_builder import TransactionBuilder
from .nonce_manager import NonceManager

__all__ = ['ChainClient', 'DeploymentSigner', 'TransactionBuilder', 'NonceManager']
