"""
Single Deployment Transaction
Sends one deployment-data JSON file ({"to", "data", "expected"?}) through the singleton factory

Usage:
    python -m scripts.send_deployment_tx path/to/Contract.json [--network sepolia]
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from loguru import logger

from deployer.artifact_store import ArtifactStore
from deployer.bootstrap import connect, log_balance
from deployer.orchestrator import DeploymentOrchestrator
from deployer.result_sink import FileResultSink
from deployer.session import SessionContext
from utils.config import DEFAULT_CONFIG_PATH, load_deploy_config
from utils.errors import format_error


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send a single deployment transaction")
    parser.add_argument('file', help="Deployment data JSON file")
    parser.add_argument('--network', default=None, help="Network name (env: NETWORK)")
    parser.add_argument('--config', default=DEFAULT_CONFIG_PATH, help="Path to deploy_config.json")
    parser.add_argument('--session-id', default=None, help="Deployment session to record into")
    parser.add_argument('--no-save', action='store_true', help="Do not write result files")
    return parser.parse_args(argv)


async def send_deployment_tx(args: argparse.Namespace) -> int:
    """
    Deploy one artifact file

    Returns:
        Process exit code
    """
    config = load_deploy_config(args.config)

    artifact = ArtifactStore(config['paths']['deployment_data']).load_file(args.file)
    logger.info(f"Loaded {artifact.name} from {args.file}")

    connection = await connect(config, args.network)
    await log_balance(connection)

    sink = None if args.no_save else FileResultSink(config['paths']['deployments'])
    orchestrator = DeploymentOrchestrator(config, sink)

    results = await orchestrator.deploy_batch(
        [artifact],
        connection.context(SessionContext.create(args.session_id))
    )
    result = results[0]

    if not result.success:
        logger.error(f"❌ {artifact.name}: {result.error}")
        return 1

    if result.already_deployed:
        logger.success(f"✓ {artifact.name} already deployed at {result.resolved_address}")
    else:
        logger.success(f"✅ {artifact.name} deployed")
        logger.success(f"Transaction hash: {result.transaction_hash}")
        logger.success(f"Contract address: {result.resolved_address}")
        logger.success(f"Gas used: {result.gas_used}")

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        return asyncio.run(send_deployment_tx(args))
    except Exception as e:
        logger.error(f"✗ {format_error(e)}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
