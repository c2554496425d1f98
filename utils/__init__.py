"""
Utilities Package
Errors, retry/backoff, gas estimation, configuration and validation
"""

from .errors import DeploymentError, ErrorKind, format_error
from .retry import retry, retry_on_errors, retry_with_fixed_delay, is_retryable_error
from .gas_calculator import GasEstimate, GasEstimator

__all__ = [
    'DeploymentError',
    'ErrorKind',
    'format_error',
    'retry',
    'retry_on_errors',
    'retry_with_fixed_delay',
    'is_retryable_error',
    'GasEstimate',
    'GasEstimator'
]
