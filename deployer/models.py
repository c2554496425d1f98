"""
Deployment Data Model
Artifacts in, results and session summaries out
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from utils.errors import validation_error
from utils.validation import validate_address, validate_code_hash, validate_hex_data

MISSING_FIELDS_MESSAGE = "Invalid deployment data: missing 'to' or 'data' field"


class DeploymentStage(Enum):
    """Per-artifact state machine"""

    PENDING = "pending"
    CHECKING_EXISTENCE = "checking_existence"
    ALREADY_DEPLOYED = "already_deployed"
    ESTIMATING_GAS = "estimating_gas"
    SUBMITTING = "submitting"
    CONFIRMING = "confirming"
    VERIFYING = "verifying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class DeploymentArtifact:
    """One factory call: calldata for the singleton factory plus its predicted outcome"""

    name: str
    factory_address: str
    init_code: str
    expected_address: Optional[str] = None
    expected_code_hash: Optional[str] = None
    target: Optional[str] = None
    source_path: Optional[str] = None

    @classmethod
    def from_json(
        cls,
        name: str,
        data: Any,
        target: Optional[str] = None,
        source_path: Optional[str] = None
    ) -> 'DeploymentArtifact':
        """
        Build an artifact from an on-disk JSON record

        Args:
            name: Artifact name
            data: Parsed JSON ({"to", "data", "expectedAddress"?, "codeHash"?})
            target: Deploy target it belongs to
            source_path: File it was read from

        Raises:
            DeploymentError: VALIDATION if `to` or `data` is missing
        """
        if not isinstance(data, dict) or not data.get('to') or not data.get('data'):
            raise validation_error(MISSING_FIELDS_MESSAGE, field='to/data')

        return cls(
            name=name,
            factory_address=data['to'],
            init_code=data['data'],
            expected_address=data.get('expectedAddress') or data.get('expected'),
            expected_code_hash=data.get('codeHash'),
            target=target,
            source_path=source_path,
        )

    def validate(self) -> None:
        """Raise a VALIDATION DeploymentError if any field is malformed"""
        validate_address(self.factory_address, field='to')
        validate_hex_data(self.init_code, field='data')

        if self.expected_address is not None:
            validate_address(self.expected_address, field='expectedAddress')

        if self.expected_code_hash is not None:
            validate_code_hash(self.expected_code_hash)


@dataclass(frozen=True)
class TransactionReceipt:
    """Normalized receipt returned by the chain client"""

    transaction_hash: str
    status: str  # "success" or "reverted"
    block_number: int
    gas_used: int
    contract_address: Optional[str] = None
    logs_count: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


def _int_str(value: Optional[int]) -> Optional[str]:
    # uint256 values must survive JSON readers that use doubles
    return str(value) if value is not None else None


@dataclass(frozen=True)
class DeploymentResult:
    """Final outcome for one artifact in one batch"""

    name: str
    success: bool
    transaction_hash: Optional[str] = None
    resolved_address: Optional[str] = None
    expected_address: Optional[str] = None
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    error: Optional[str] = None
    already_deployed: bool = False
    warnings: Tuple[str, ...] = ()
    target: Optional[str] = None

    def __post_init__(self):
        if not self.success and not self.error:
            raise ValueError(f"Failed result for {self.name} must carry an error")

    @classmethod
    def failure(cls, name: str, error: str, **kwargs) -> 'DeploymentResult':
        return cls(name=name, success=False, error=error, **kwargs)

    @property
    def address_matches_expected(self) -> Optional[bool]:
        if not self.resolved_address or not self.expected_address:
            return None
        return self.resolved_address.lower() == self.expected_address.lower()

    def to_record(self) -> Dict[str, Any]:
        """JSON-ready dict, integers as decimal strings"""
        return {
            'contractName': self.name,
            'target': self.target,
            'success': self.success,
            'alreadyDeployed': self.already_deployed,
            'txHash': self.transaction_hash,
            'blockNumber': _int_str(self.block_number),
            'contractAddress': self.resolved_address,
            'expectedAddress': self.expected_address,
            'gasUsed': _int_str(self.gas_used),
            'error': self.error,
            'warnings': list(self.warnings),
        }


@dataclass(frozen=True)
class SessionSummary:
    """Totals for one deploy_batch call"""

    network: str
    chain_id: int
    session_id: str
    timestamp: str
    results: Tuple[DeploymentResult, ...] = field(default_factory=tuple)

    @classmethod
    def from_results(
        cls,
        results: Sequence[DeploymentResult],
        network: str,
        chain_id: int,
        session_id: str,
        timestamp: Optional[str] = None
    ) -> 'SessionSummary':
        return cls(
            network=network,
            chain_id=chain_id,
            session_id=session_id,
            timestamp=timestamp or utc_timestamp(),
            results=tuple(results),
        )

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return self.total - self.successful

    @property
    def already_deployed(self) -> int:
        return sum(1 for r in self.results if r.already_deployed)

    def failed_names(self) -> List[str]:
        return [r.name for r in self.results if not r.success]

    def to_record(self) -> Dict[str, Any]:
        return {
            'network': self.network,
            'chainId': str(self.chain_id),
            'sessionId': self.session_id,
            'timestamp': self.timestamp,
            'total': self.total,
            'successful': self.successful,
            'failed': self.failed,
            'alreadyDeployed': self.already_deployed,
            'deployments': [r.to_record() for r in self.results],
        }


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()
