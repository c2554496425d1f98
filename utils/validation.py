"""
Validation Utilities
Input checks for environment, keys, addresses and deploy targets
"""

import os
import re
from typing import Iterable, List, Optional
from urllib.parse import urlparse

from loguru import logger
from web3 import Web3

from .errors import configuration_error, validation_error

REQUIRED_ENV_VARS = ('PRIVATE_KEY',)

VALID_RPC_SCHEMES = ('http', 'https', 'ws', 'wss')

# Mainnets and well-known public chains
RESERVED_CHAIN_IDS = (1, 3, 4, 5, 10, 56, 137, 42161, 43114, 8453)

_HEX_RE = re.compile(r'^0x([0-9a-fA-F]{2})*$')
_PRIVATE_KEY_RE = re.compile(r'^[0-9a-fA-F]{64}$')
_HASH_RE = re.compile(r'^0x[0-9a-fA-F]{64}$')


def validate_environment(required: Iterable[str] = REQUIRED_ENV_VARS) -> None:
    """
    Check required environment variables

    Raises:
        DeploymentError: CONFIGURATION listing every missing variable
    """
    missing = [var for var in required if not os.getenv(var, '').strip()]

    if missing:
        raise configuration_error(
            f"Missing required environment variables: {', '.join(missing)}. "
            "Please set these variables before running the deployment script."
        )


def validate_rpc_url(rpc_url: str) -> None:
    """Reject empty or non http(s)/ws(s) RPC URLs"""
    if not rpc_url or not rpc_url.strip():
        raise configuration_error("RPC URL cannot be empty")

    parsed = urlparse(rpc_url)

    if not parsed.scheme or not parsed.netloc:
        raise configuration_error(f"Invalid RPC URL format: {rpc_url}")

    if parsed.scheme not in VALID_RPC_SCHEMES:
        raise configuration_error(f"Invalid RPC URL protocol: {parsed.scheme}:")


def validate_private_key(private_key: str) -> None:
    """64 hex chars, 0x prefix optional"""
    if not private_key or not private_key.strip():
        raise validation_error("Private key cannot be empty", field='PRIVATE_KEY')

    key = private_key[2:] if private_key.startswith('0x') else private_key

    if not _PRIVATE_KEY_RE.match(key):
        raise validation_error(
            "Invalid private key format. Expected 64-character hex string "
            "(with or without 0x prefix)",
            field='PRIVATE_KEY'
        )


def validate_chain_id(chain_id: int) -> None:
    """Positive integer; warns on well-known public chain ids"""
    if isinstance(chain_id, bool) or not isinstance(chain_id, int) or chain_id <= 0:
        raise validation_error(
            f"Invalid chain ID: {chain_id}. Must be a positive integer",
            field='chainId'
        )

    if chain_id in RESERVED_CHAIN_IDS:
        logger.warning(
            f"Chain ID {chain_id} is a reserved/mainnet chain ID. Make sure this is intentional."
        )


def validate_address(address: str, field: str = 'address') -> str:
    """
    Validate a 20-byte hex address

    Returns:
        Checksummed address
    """
    if not isinstance(address, str) or not Web3.is_address(address):
        raise validation_error(f"Invalid {field}: {address!r}", field=field)

    return Web3.to_checksum_address(address)


def validate_hex_data(data: str, field: str = 'data') -> None:
    """Non-empty, 0x-prefixed, even-length hex"""
    if not isinstance(data, str) or not _HEX_RE.match(data):
        raise validation_error(f"Invalid {field}: expected 0x-prefixed hex string", field=field)

    if len(data) <= 2:
        raise validation_error(f"Invalid {field}: payload is empty", field=field)


def validate_code_hash(code_hash: str, field: str = 'codeHash') -> None:
    if not isinstance(code_hash, str) or not _HASH_RE.match(code_hash):
        raise validation_error(f"Invalid {field}: expected 32-byte hex hash", field=field)


def validate_deploy_targets(targets: Optional[str], valid_targets: Iterable[str]) -> List[str]:
    """
    Parse a comma-separated target list

    Args:
        targets: e.g. "1.4.1, modules" or "all"
        valid_targets: Known target names

    Returns:
        Normalized target names ([] for empty input, ["all"] for all)
    """
    if not targets or not targets.strip():
        return []

    valid = list(valid_targets)
    normalized = re.sub(r'\s', '', targets.lower())
    target_list = [t for t in normalized.split(',') if t]

    if not target_list:
        return []

    if 'all' in target_list:
        if len(target_list) > 1:
            raise configuration_error(
                'Invalid deploy targets: "all" cannot be combined with other targets'
            )
        return ['all']

    invalid = [t for t in target_list if t not in valid]
    if invalid:
        raise configuration_error(
            f"Invalid deployment targets: {', '.join(invalid)}. "
            f"Valid options are: {', '.join(valid + ['all'])}"
        )

    return target_list
