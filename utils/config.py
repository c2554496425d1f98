"""
Deployment Configuration
Loads config/deploy_config.json and resolves network / RPC settings from the environment
"""

import json
import os
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

from .errors import configuration_error

load_dotenv()

DEFAULT_CONFIG_PATH = "config/deploy_config.json"

LOCALHOST_RPC_URL = "http://127.0.0.1:8545"

ENV_DEFAULTS = {
    'NETWORK': 'localhost',
    'DEPLOY_TARGETS': 'all',
}

REQUIRED_CONFIG_SECTIONS = (
    'delays', 'gas', 'retries', 'transaction', 'rpc', 'verification', 'paths', 'targets'
)


def load_deploy_config(config_path: str = DEFAULT_CONFIG_PATH) -> Dict:
    """
    Load deployment configuration

    Args:
        config_path: Path to the JSON config file

    Returns:
        Configuration dict

    Raises:
        DeploymentError: CONFIGURATION if the file is missing, unreadable or incomplete
    """
    path = Path(config_path)

    if not path.exists():
        raise configuration_error(f"Config file not found: {path}")

    try:
        with open(path, 'r') as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        raise configuration_error(f"Config file is not valid JSON: {path}", e)

    missing = [section for section in REQUIRED_CONFIG_SECTIONS if section not in config]
    if missing:
        raise configuration_error(
            f"Config file {path} is missing sections: {', '.join(missing)}"
        )

    return config


def get_network_name(cli_network: Optional[str] = None) -> str:
    """Network from --network, then NETWORK env, then default"""
    if cli_network:
        return cli_network
    return os.getenv('NETWORK') or ENV_DEFAULTS['NETWORK']


def resolve_rpc_url(network: str, env: Optional[Dict[str, str]] = None) -> str:
    """
    Resolve RPC URL for a network

    Priority: CUSTOM_RPC_URL > <NETWORK>_RPC_URL > RPC_URL > localhost default

    Args:
        network: Network name
        env: Environment mapping (defaults to os.environ)

    Returns:
        RPC URL

    Raises:
        DeploymentError: CONFIGURATION if nothing resolves
    """
    env = os.environ if env is None else env
    network_var = f"{network.upper().replace('-', '_')}_RPC_URL"

    rpc_url = (
        env.get('CUSTOM_RPC_URL')
        or env.get(network_var)
        or env.get('RPC_URL')
        or (LOCALHOST_RPC_URL if network == 'localhost' else '')
    )

    if not rpc_url:
        raise configuration_error(
            f"No RPC URL found for network: {network}. "
            f"Please set CUSTOM_RPC_URL, {network_var}, or RPC_URL environment variable"
        )

    return rpc_url


def is_ci(env: Optional[Dict[str, str]] = None) -> bool:
    """Check if running in a CI environment"""
    env = os.environ if env is None else env
    return any(
        env.get(var) == 'true'
        for var in ('CI', 'GITHUB_ACTIONS', 'CONTINUOUS_INTEGRATION')
    )


def mask_url(url: str) -> str:
    """Hide path and credentials of an RPC URL for logging"""
    parsed = urlparse(url)
    if parsed.scheme and parsed.hostname:
        host = parsed.hostname
        if parsed.port:
            host = f"{host}:{parsed.port}"
        return f"{parsed.scheme}://{host}/***"
    return "***"

