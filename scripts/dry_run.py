"""
Deployment Dry Run
Checks configuration, artifacts and chain state without sending transactions

Usage:
    python main.py [TARGETS] --dry-run
    python -m scripts.dry_run [TARGETS]
"""

import asyncio
import sys
from typing import Dict, List, Tuple

from loguru import logger

from blockchain.transaction_builder import TransactionBuilder
from deployer.artifact_store import LoadedArtifacts
from deployer.models import DeploymentArtifact
from utils.errors import format_error
from utils.gas_calculator import GasEstimator, format_gas, format_gas_cost

STATUS_DEPLOYED = "already deployed"
STATUS_PENDING = "would deploy"
STATUS_UNKNOWN = "unknown"


def check_artifacts(loaded: LoadedArtifacts) -> bool:
    """Every artifact loaded and well-formed"""
    logger.info("Checking deployment data...")

    ok = True
    for result in loaded.rejected:
        logger.error(f"  ✗ {result.name}: {result.error}")
        ok = False

    for artifact in loaded.artifacts:
        try:
            artifact.validate()
            logger.success(f"  ✓ {artifact.name}")
        except Exception as e:
            logger.error(f"  ✗ {artifact.name}: {format_error(e)}")
            ok = False

    return ok


async def check_artifact_state(
    artifact: DeploymentArtifact,
    connection,
    estimator: GasEstimator
) -> Tuple[str, bool]:
    """
    Existence check plus gas estimate for one artifact

    Returns:
        (status, ok)
    """
    client = connection.chain_client

    if artifact.expected_address:
        try:
            code = await client.get_bytecode(artifact.expected_address)
        except Exception as e:
            logger.error(f"  ✗ {artifact.name}: could not read code: {format_error(e)}")
            return STATUS_UNKNOWN, False

        if code:
            logger.success(f"  ✓ {artifact.name}: already deployed at {artifact.expected_address}")
            return STATUS_DEPLOYED, True

    request = TransactionBuilder.build_deployment_request(
        artifact.factory_address,
        artifact.init_code,
        connection.signer.address
    )

    try:
        estimate = await estimator.estimate(
            lambda: client.estimate_gas(request),
            client.get_gas_price
        )
    except Exception as e:
        logger.error(f"  ✗ {artifact.name}: {format_error(e)}")
        return STATUS_PENDING, False

    warning = f" ⚠ {estimate.warning}" if estimate.warning else ""
    logger.info(
        f"  • {artifact.name}: would deploy, gas {format_gas(estimate.gas)}, "
        f"cost {format_gas_cost(estimate.estimated_cost)}{warning}"
    )
    return STATUS_PENDING, True


async def check_chain_state(loaded: LoadedArtifacts, connection, config: Dict) -> bool:
    logger.info("Checking on-chain state...")

    estimator = GasEstimator(config)
    ok = True
    counts: Dict[str, int] = {}

    for artifact in loaded.artifacts:
        status, artifact_ok = await check_artifact_state(artifact, connection, estimator)
        counts[status] = counts.get(status, 0) + 1
        ok = ok and artifact_ok

    logger.info(
        f"  {counts.get(STATUS_DEPLOYED, 0)} already deployed, "
        f"{counts.get(STATUS_PENDING, 0)} to deploy"
    )
    return ok


async def run_preflight(config: Dict, loaded: LoadedArtifacts, connection) -> bool:
    """
    Run all dry-run checks

    Args:
        config: Deployment configuration
        loaded: Artifacts selected for this run
        connection: deployer.bootstrap.Connection

    Returns:
        True when every check passed
    """
    logger.info("=" * 60)
    logger.info("Dry run - no transactions will be sent")
    logger.info("=" * 60)

    results: List[Tuple[str, bool]] = []

    results.append(("Deployment Data", check_artifacts(loaded)))

    logger.info("")
    try:
        results.append(("Chain State", await check_chain_state(loaded, connection, config)))
    except Exception as e:
        logger.error(f"Error in Chain State: {format_error(e)}")
        results.append(("Chain State", False))

    logger.info("")
    logger.info("=" * 60)
    logger.info("Summary")
    logger.info("=" * 60)

    passed = sum(1 for _, result in results if result)
    for name, result in results:
        status = "✓ PASS" if result else "✗ FAIL"
        logger.info(f"  {status}: {name}")

    logger.info(f"Total: {passed}/{len(results)} checks passed")

    if passed == len(results):
        logger.success("✅ Ready to deploy")
        return True

    logger.error("❌ Not ready to deploy - fix issues above")
    return False


if __name__ == "__main__":
    from main import configure_logging, main

    configure_logging()
    sys.exit(asyncio.run(main(sys.argv[1:] + ['--dry-run'])))
