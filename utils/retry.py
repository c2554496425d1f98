"""
Retry Utility
Exponential backoff for transient RPC failures
"""

import asyncio
from typing import Awaitable, Callable, Iterable, Optional, TypeVar

import aiohttp
from loguru import logger

from .errors import DeploymentError, ErrorKind, format_error

T = TypeVar('T')

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_DELAY = 5.0
DEFAULT_MAX_DELAY = 30.0
DEFAULT_BACKOFF_MULTIPLIER = 2.0

RETRYABLE_PATTERNS = (
    'network',
    'timeout',
    'timed out',
    'connection',
    'econnreset',
    'etimedout',
    'eai_again',
    'rate limit',
    'too many requests',
    '429',
    'service unavailable',
    'bad gateway',
    'gateway timeout',
    '502',
    '503',
    '504',
)

TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, ConnectionError)


def compute_backoff_delay(
    attempt: int,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER
) -> float:
    """
    Delay to wait after a failed attempt

    Args:
        attempt: 1-based number of the attempt that just failed

    Returns:
        min(initial_delay * multiplier^(attempt-1), max_delay) in seconds
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")

    delay = initial_delay * (backoff_multiplier ** (attempt - 1))
    return min(delay, max_delay)


def is_retryable_error(error: BaseException) -> bool:
    """
    Default retry classifier

    Network errors retry, on-chain transaction failures never do, anything
    else retries only if its message looks transient.
    """
    if isinstance(error, DeploymentError):
        if error.kind is ErrorKind.NETWORK:
            return True
        if error.kind is ErrorKind.TRANSACTION:
            return False

    if isinstance(error, TRANSPORT_ERRORS):
        return True

    message = format_error(error).lower()
    return any(pattern in message for pattern in RETRYABLE_PATTERNS)


async def retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
    is_retryable: Optional[Callable[[BaseException], bool]] = None,
    delay_fn: Optional[Callable[[int], float]] = None,
    description: str = "operation"
) -> T:
    """
    Run an async operation with bounded retries

    Args:
        operation: Zero-argument coroutine function
        max_attempts: Total attempts including the first
        initial_delay: Delay after the first failure (seconds)
        max_delay: Upper bound for any single delay (seconds)
        backoff_multiplier: Exponential growth factor
        is_retryable: Error classifier (defaults to is_retryable_error)
        delay_fn: Custom attempt -> delay, replaces exponential backoff
        description: Label used in log lines

    Returns:
        The operation's result

    Raises:
        The error of the last attempt, or the first non-retryable error
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    classifier = is_retryable or is_retryable_error

    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except Exception as e:
            if not classifier(e) or attempt == max_attempts:
                raise

            if delay_fn is not None:
                delay = min(delay_fn(attempt), max_delay)
            else:
                delay = compute_backoff_delay(
                    attempt, initial_delay, max_delay, backoff_multiplier
                )

            logger.warning(
                f"⚠ {description}: attempt {attempt}/{max_attempts} failed: "
                f"{format_error(e)} - retrying in {delay:.1f}s"
            )

            await asyncio.sleep(delay)

    # unreachable: the last attempt either returns or raises
    raise RuntimeError("retry loop exited without result")


async def retry_on_errors(
    operation: Callable[[], Awaitable[T]],
    kinds: Iterable[ErrorKind],
    **options
) -> T:
    """Retry only DeploymentErrors of the given kinds"""
    retry_kinds = frozenset(kinds)

    def _classifier(error: BaseException) -> bool:
        return isinstance(error, DeploymentError) and error.kind in retry_kinds

    return await retry(operation, is_retryable=_classifier, **options)


async def retry_with_fixed_delay(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    delay: float = 1.0,
    **options
) -> T:
    """Retry with the same delay between every attempt"""
    options.setdefault('max_delay', max(delay, DEFAULT_MAX_DELAY))
    return await retry(
        operation,
        max_attempts=max_attempts,
        delay_fn=lambda attempt: delay,
        **options
    )


def retry_options_from_config(config: dict) -> dict:
    """Map the `retries` config section to retry() keyword arguments"""
    retries = config['retries']
    return {
        'max_attempts': retries['max_attempts'],
        'initial_delay': retries['initial_delay'],
        'max_delay': retries['max_delay'],
        'backoff_multiplier': retries['backoff_multiplier'],
    }
