"""
Deployment Errors
Single tagged error type shared by the retry classifier and the reporters
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(Enum):
    """Closed set of deployment failure categories"""

    CONFIGURATION = "CONFIGURATION_ERROR"
    VALIDATION = "VALIDATION_ERROR"
    NETWORK = "NETWORK_ERROR"
    TRANSACTION = "TRANSACTION_ERROR"
    GAS_ESTIMATION = "GAS_ESTIMATION_ERROR"
    CONTRACT_VERIFICATION = "CONTRACT_VERIFICATION_ERROR"


class DeploymentError(Exception):
    """
    Deployment failure tagged with an ErrorKind

    Extra context (tx_hash, field, rpc_url, contract_address) lives in
    `details` instead of subclass attributes.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        cause: Optional[BaseException] = None,
        **details: Any
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.cause = cause
        self.details: Dict[str, Any] = {k: v for k, v in details.items() if v is not None}

    @property
    def code(self) -> str:
        return self.kind.value

    def __repr__(self) -> str:
        return f"DeploymentError({self.kind.name}, {self.message!r})"


def configuration_error(message: str, cause: Optional[BaseException] = None) -> DeploymentError:
    return DeploymentError(ErrorKind.CONFIGURATION, message, cause)


def validation_error(
    message: str,
    field: Optional[str] = None,
    cause: Optional[BaseException] = None
) -> DeploymentError:
    return DeploymentError(ErrorKind.VALIDATION, message, cause, field=field)


def network_error(
    message: str,
    rpc_url: Optional[str] = None,
    cause: Optional[BaseException] = None
) -> DeploymentError:
    return DeploymentError(ErrorKind.NETWORK, message, cause, rpc_url=rpc_url)


def transaction_error(
    message: str,
    tx_hash: Optional[str] = None,
    cause: Optional[BaseException] = None
) -> DeploymentError:
    return DeploymentError(ErrorKind.TRANSACTION, message, cause, tx_hash=tx_hash)


def gas_estimation_error(message: str, cause: Optional[BaseException] = None) -> DeploymentError:
    return DeploymentError(ErrorKind.GAS_ESTIMATION, message, cause)


def verification_error(
    message: str,
    contract_address: Optional[str] = None,
    cause: Optional[BaseException] = None
) -> DeploymentError:
    return DeploymentError(
        ErrorKind.CONTRACT_VERIFICATION,
        message,
        cause,
        contract_address=contract_address
    )


def is_deployment_error(error: BaseException, kind: Optional[ErrorKind] = None) -> bool:
    """Check if error is a DeploymentError (optionally of a given kind)"""
    if not isinstance(error, DeploymentError):
        return False
    return kind is None or error.kind is kind


def format_error(error: BaseException) -> str:
    """
    Format an error for logs and result records

    Args:
        error: Any exception

    Returns:
        "[CODE] message" (+ cause line) for DeploymentError, str(error) otherwise
    """
    if isinstance(error, DeploymentError):
        message = f"[{error.code}] {error.message}"
        if error.cause is not None:
            message += f"\nCaused by: {error.cause}"
        return message

    text = str(error)
    return text if text else error.__class__.__name__
