"""
Deployment Bootstrap
Pre-batch setup shared by main.py and the scripts: environment, RPC, signer, chain id
"""

from dataclasses import dataclass
from typing import Dict, Optional

from loguru import logger

from blockchain.chain_client import ChainClient
from blockchain.signer import DeploymentSigner
from utils.ci_output import GitHubOutput
from utils.config import get_network_name, mask_url, resolve_rpc_url
from utils.errors import format_error
from utils.validation import validate_chain_id, validate_environment, validate_rpc_url

from .orchestrator import DeploymentContext
from .session import SessionContext


@dataclass
class Connection:
    network: str
    rpc_url: str
    chain_id: int
    signer: DeploymentSigner
    chain_client: ChainClient

    def context(self, session: SessionContext) -> DeploymentContext:
        return DeploymentContext(
            signer=self.signer,
            chain_client=self.chain_client,
            chain_id=self.chain_id,
            network=self.network,
            session=session,
        )


async def connect(config: Dict, cli_network: Optional[str] = None) -> Connection:
    """
    Resolve network and RPC URL, load the signer and read the chain id

    Raises:
        DeploymentError: CONFIGURATION / VALIDATION before any transaction is sent
    """
    validate_environment()

    network = get_network_name(cli_network)
    rpc_url = resolve_rpc_url(network)
    validate_rpc_url(rpc_url)

    signer = DeploymentSigner.from_env()
    chain_client = ChainClient(rpc_url, config)

    logger.info(f"Deployer address: {signer.address}")
    logger.info(f"Network: {network}")
    logger.info(f"RPC URL: {mask_url(rpc_url)}")

    logger.info("Fetching chain ID from RPC...")
    chain_id = await chain_client.get_chain_id()
    validate_chain_id(chain_id)
    logger.info(f"Chain ID (from RPC): {chain_id}")

    return Connection(
        network=network,
        rpc_url=rpc_url,
        chain_id=chain_id,
        signer=signer,
        chain_client=chain_client,
    )


async def log_balance(connection: Connection, outputs: Optional[GitHubOutput] = None) -> Optional[int]:
    """Log the deployer balance; a failed lookup is only a warning"""
    try:
        balance = await connection.chain_client.get_balance(connection.signer.address)
    except Exception as e:
        logger.warning(f"⚠ Could not fetch balance: {format_error(e)}")
        return None

    balance_eth = connection.chain_client.w3.from_wei(balance, 'ether')
    logger.info(f"Balance: {balance_eth} ETH ({balance} wei)")

    if outputs is not None:
        outputs.set_many({
            'eth_balance_wei': balance,
            'eth_balance_eth': balance_eth,
        })

    return balance
