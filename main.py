"""
Singleton Factory Deployer - Main Entry Point
Deploys the configured contract catalogue through the deterministic deployment factory
"""

import argparse
import asyncio
import os
import sys
from typing import List, Optional

from loguru import logger

from deployer.artifact_store import ArtifactStore, LoadedArtifacts
from deployer.bootstrap import connect, log_balance
from deployer.orchestrator import DeploymentOrchestrator
from deployer.result_sink import FileResultSink
from deployer.session import SessionContext
from scripts.dry_run import run_preflight
from utils.ci_output import GitHubOutput
from utils.config import DEFAULT_CONFIG_PATH, ENV_DEFAULTS, load_deploy_config
from utils.errors import ErrorKind, configuration_error, is_deployment_error, format_error
from utils.validation import validate_deploy_targets


def configure_logging(log_dir: str = "data/logs", level: str = "INFO"):
    """stderr plus a rotating debug log file"""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=level
    )
    logger.add(
        f"{log_dir}/deploy.log",
        rotation="1 day",
        retention="7 days",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} - {message}",
        level="DEBUG"
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Deploy contract artifacts through the singleton factory"
    )
    parser.add_argument(
        'targets',
        nargs='?',
        default=None,
        help="Comma-separated deploy targets from the config, or 'all' (env: DEPLOY_TARGETS)"
    )
    parser.add_argument('--network', default=None, help="Network name (env: NETWORK)")
    parser.add_argument('--config', default=DEFAULT_CONFIG_PATH, help="Path to deploy_config.json")
    parser.add_argument('--session-id', default=None, help="Reuse a deployment session (env: DEPLOYMENT_SESSION_ID)")
    parser.add_argument('--dry-run', action='store_true', help="Check configuration and chain state without sending transactions")
    return parser.parse_args(argv)


def resolve_targets(requested: Optional[str], config: dict) -> List[str]:
    """Expand 'all' to every configured target, in config order"""
    available = list(config['targets'].keys())
    requested = requested or os.getenv('DEPLOY_TARGETS') or ENV_DEFAULTS['DEPLOY_TARGETS']

    targets = validate_deploy_targets(requested, available)
    if not targets:
        raise configuration_error("No deploy targets selected")

    return available if targets == ['all'] else targets


class DeploymentRunner:
    """Runs one deployment invocation and maps the outcome to an exit code"""

    def __init__(self, args: argparse.Namespace):
        self.args = args
        self.outputs = GitHubOutput()

    async def run(self) -> int:
        try:
            return await self._run()
        except Exception as e:
            logger.error("✗ Fatal error:")
            logger.error(format_error(e))

            if is_deployment_error(e, ErrorKind.CONFIGURATION) or is_deployment_error(e, ErrorKind.VALIDATION):
                logger.error("Please check your environment variables and configuration.")
            else:
                logger.opt(exception=e).debug("Fatal error traceback")

            self.outputs.set_many({
                'fatal_error': 'true',
                'error': format_error(e),
            })
            return 1

    async def _run(self) -> int:
        config = load_deploy_config(self.args.config)
        targets = resolve_targets(self.args.targets, config)

        store = ArtifactStore(config['paths']['deployment_data'])
        loaded = LoadedArtifacts()
        for target in targets:
            loaded.extend(store.load_target(target, config['targets'][target]))

        if len(loaded) == 0:
            raise configuration_error(f"No deployment data found for targets: {', '.join(targets)}")

        logger.info("=" * 60)
        logger.info("Singleton Factory Deployment")
        logger.info("=" * 60)
        logger.info(f"Targets: {', '.join(targets)}")

        connection = await connect(config, self.args.network)
        await log_balance(connection, self.outputs)

        session = SessionContext.create(self.args.session_id)
        logger.info(f"Deployment session ID: {session.session_id}")

        self.outputs.set_many({
            'deployer_address': connection.signer.address,
            'network': connection.network,
            'chain_id': connection.chain_id,
        })

        logger.info("Deployment order:")
        for index, artifact in enumerate(loaded.artifacts, start=1):
            logger.info(f"  {index}. {artifact.name} ({artifact.target})")

        if self.args.dry_run:
            ok = await run_preflight(config, loaded, connection)
            return 0 if ok else 1

        orchestrator = DeploymentOrchestrator(
            config,
            FileResultSink(config['paths']['deployments'])
        )
        results = await orchestrator.deploy_batch(
            loaded.artifacts,
            connection.context(session),
            rejected=loaded.rejected
        )

        self.outputs.write_results(results)

        failed = [r.name for r in results if not r.success]
        if failed:
            logger.error(f"✗ {len(failed)} deployment(s) failed: {', '.join(failed)}")
            return 1

        logger.success(f"✅ All {len(results)} deployment(s) succeeded")
        return 0


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    args = parse_args(argv)
    runner = DeploymentRunner(args)
    return await runner.run()


if __name__ == "__main__":
    configure_logging()
    try:
        exit_code = asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        exit_code = 1
    sys.exit(exit_code)
