"""
Deployment Orchestrator
Idempotent, sequential singleton-factory deployments with per-artifact isolation
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger
from web3 import Web3

from blockchain.transaction_builder import TransactionBuilder
from utils.errors import (
    DeploymentError,
    ErrorKind,
    format_error,
    verification_error,
)
from utils.gas_calculator import GasEstimator
from utils.retry import (
    is_retryable_error,
    retry,
    retry_options_from_config,
    retry_with_fixed_delay,
)

from .models import (
    DeploymentArtifact,
    DeploymentResult,
    DeploymentStage,
    SessionSummary,
    TransactionReceipt,
)
from .result_sink import FileResultSink
from .session import SessionContext

TRANSACTION_FAILED = "Transaction failed"


@dataclass
class DeploymentContext:
    """Everything a batch needs besides the artifacts"""

    signer: Any
    chain_client: Any
    chain_id: int
    network: str
    session: SessionContext


class _ArtifactProgress:
    """Mutable scratchpad for one artifact; turned into an immutable result at the end"""

    def __init__(self, artifact: DeploymentArtifact):
        self.artifact = artifact
        self.stage = DeploymentStage.PENDING
        self.transaction_hash: Optional[str] = None
        self.block_number: Optional[int] = None
        self.gas_used: Optional[int] = None
        self.warnings: List[str] = []

    def warn(self, message: str) -> None:
        logger.warning(f"⚠ {self.artifact.name}: {message}")
        self.warnings.append(message)

    def _result(self, **kwargs) -> DeploymentResult:
        return DeploymentResult(
            name=self.artifact.name,
            expected_address=self.artifact.expected_address,
            transaction_hash=self.transaction_hash,
            block_number=self.block_number,
            gas_used=self.gas_used,
            warnings=tuple(self.warnings),
            target=self.artifact.target,
            **kwargs
        )

    def success(self, resolved_address: Optional[str], already_deployed: bool = False) -> DeploymentResult:
        if not already_deployed:
            self.stage = DeploymentStage.SUCCEEDED
        return self._result(
            success=True,
            resolved_address=resolved_address,
            already_deployed=already_deployed,
        )

    def failure(self, error: str) -> DeploymentResult:
        return self._result(success=False, error=error)


class DeploymentOrchestrator:
    """
    Deploys a batch of artifacts one by one

    Per artifact: existence check, gas estimate, submit, confirm, verify.
    A failing artifact becomes a failed result and the batch moves on.
    """

    def __init__(
        self,
        config: Dict,
        sink: Optional[FileResultSink] = None,
        gas_estimator: Optional[GasEstimator] = None
    ):
        """
        Initialize Deployment Orchestrator

        Args:
            config: Deployment configuration
            sink: Where final results go (None keeps them in memory only)
            gas_estimator: Override for tests
        """
        self.config = config
        self.sink = sink
        self.gas_estimator = gas_estimator or GasEstimator(config)

        self.retry_options = retry_options_from_config(config)
        self.between_deployments = float(config['delays']['between_deployments'])
        self.estimate_before_send = bool(config['gas'].get('estimate_before_send', True))

        verification = config['verification']
        self.verification_attempts = int(verification['attempts'])
        self.verification_delay = float(verification['delay_seconds'])
        self.trust_receipt_on_missing_code = bool(verification['trust_receipt_on_missing_code'])

        self.last_summary: Optional[SessionSummary] = None
        self.stats = {
            'total': 0,
            'successful': 0,
            'failed': 0,
            'already_deployed': 0,
            'transactions_sent': 0,
            'gas_used': 0,
        }

    async def deploy_batch(
        self,
        artifacts: Sequence[DeploymentArtifact],
        context: DeploymentContext,
        rejected: Sequence[DeploymentResult] = ()
    ) -> List[DeploymentResult]:
        """
        Deploy artifacts strictly in the given order

        Args:
            artifacts: Ordered artifacts (callers own dependency ordering)
            context: Signer, chain client, chain id, network label, session
            rejected: Failed results from artifact loading; recorded and
                reported ahead of the deployed artifacts

        Returns:
            Rejected results, then one result per artifact in input order
        """
        total = len(artifacts)
        logger.info(
            f"Deploying {total} artifact(s) to {context.network} "
            f"(chain {context.chain_id}, session {context.session.session_id})"
        )

        results: List[DeploymentResult] = []

        for result in rejected:
            results.append(result)
            self._update_stats(result)
            self._persist_result(result, context)

        for index, artifact in enumerate(artifacts, start=1):
            logger.info("=" * 60)
            logger.info(f"[{index}/{total}] Deploying: {artifact.name}")
            logger.info("=" * 60)

            result = await self.deploy_artifact(artifact, context)
            results.append(result)

            self._update_stats(result)
            self._persist_result(result, context)

            # nonce ordering and RPC rate limits
            if result.success and index < total and self.between_deployments > 0:
                await asyncio.sleep(self.between_deployments)

        self.last_summary = self._persist_session(results, context)
        log_summary(self.last_summary)

        return results

    async def deploy_artifact(
        self,
        artifact: DeploymentArtifact,
        context: DeploymentContext
    ) -> DeploymentResult:
        """
        Deploy one artifact; never raises for per-artifact failures

        Returns:
            DeploymentResult
        """
        progress = _ArtifactProgress(artifact)

        try:
            return await self._deploy(artifact, context, progress)
        except Exception as e:
            error = format_error(e)
            logger.error(
                f"✗ Deployment of {artifact.name} failed at stage "
                f"'{progress.stage.value}': {error}"
            )
            if isinstance(e, DeploymentError):
                for key, value in e.details.items():
                    logger.error(f"  {key}: {value}")
            progress.stage = DeploymentStage.FAILED
            return progress.failure(error)

    async def _deploy(
        self,
        artifact: DeploymentArtifact,
        context: DeploymentContext,
        progress: _ArtifactProgress
    ) -> DeploymentResult:
        artifact.validate()

        client = context.chain_client
        logger.info(f"Factory address: {artifact.factory_address}")
        logger.info(f"Data length: {len(artifact.init_code)} characters")

        if artifact.expected_address:
            logger.info(f"Expected address: {artifact.expected_address}")
            progress.stage = DeploymentStage.CHECKING_EXISTENCE

            existing_code = await self._read_existing_code(artifact, context)
            if existing_code:
                progress.stage = DeploymentStage.ALREADY_DEPLOYED
                logger.success(
                    f"✓ {artifact.name} already deployed at {artifact.expected_address} "
                    f"({len(existing_code)} bytes), skipping"
                )
                self._check_code_hash(artifact, existing_code, progress)
                return progress.success(artifact.expected_address, already_deployed=True)

            logger.info("No bytecode found at expected address. Proceeding with deployment...")
        else:
            logger.warning(
                "⚠ No expected address provided - cannot verify if contract is already deployed"
            )

        request = TransactionBuilder.build_deployment_request(
            artifact.factory_address,
            artifact.init_code,
            context.signer.address
        )

        if self.estimate_before_send:
            progress.stage = DeploymentStage.ESTIMATING_GAS
            estimate = await self.gas_estimator.estimate(
                lambda: client.estimate_gas(request),
                client.get_gas_price
            )
            self.gas_estimator.log_estimate(estimate)

            if estimate.warning:
                progress.warn(f"Gas estimate {estimate.gas} is {estimate.warning}")

            request = dict(request, gas=self.gas_estimator.gas_limit_for(estimate))
            if not estimate.price_is_default:
                request['gasPrice'] = estimate.gas_price

        progress.stage = DeploymentStage.SUBMITTING
        logger.info("Sending transaction...")
        tx_hash = await client.send_transaction(request, context.signer)
        progress.transaction_hash = tx_hash
        self.stats['transactions_sent'] += 1
        logger.info(f"Transaction hash: {tx_hash}")

        progress.stage = DeploymentStage.CONFIRMING
        logger.info("Waiting for confirmation...")
        receipt = await retry(
            lambda: client.wait_for_receipt(tx_hash),
            description=f"{artifact.name} receipt",
            **self.retry_options
        )

        progress.block_number = receipt.block_number
        progress.gas_used = receipt.gas_used
        logger.info(
            f"Transaction confirmed in block {receipt.block_number}, gas used {receipt.gas_used}, "
            f"status {receipt.status}"
        )

        if not receipt.succeeded:
            logger.error(f"✗ {artifact.name}: transaction {tx_hash} reverted")
            progress.stage = DeploymentStage.FAILED
            return progress.failure(TRANSACTION_FAILED)

        progress.stage = DeploymentStage.VERIFYING
        resolved = await self._resolve_address(artifact, receipt, context, progress)

        if resolved:
            logger.success(f"✅ {artifact.name} deployed at {resolved}")
        return progress.success(resolved)

    async def _read_existing_code(
        self,
        artifact: DeploymentArtifact,
        context: DeploymentContext
    ) -> bytes:
        """Existence check; a failing read means "not known to exist"."""
        try:
            return await retry(
                lambda: context.chain_client.get_bytecode(artifact.expected_address),
                description=f"{artifact.name} existence check",
                **self.retry_options
            )
        except Exception as e:
            logger.warning(f"⚠ Could not check if contract exists: {format_error(e)}")
            logger.info("Proceeding with deployment...")
            return b''

    async def _resolve_address(
        self,
        artifact: DeploymentArtifact,
        receipt: TransactionReceipt,
        context: DeploymentContext,
        progress: _ArtifactProgress
    ) -> Optional[str]:
        expected = artifact.expected_address

        if not expected:
            if receipt.contract_address:
                logger.info(f"Deployed contract address (from receipt): {receipt.contract_address}")
                return receipt.contract_address

            progress.warn("No contract address available (neither expectedAddress nor receipt contractAddress)")
            return None

        try:
            code = await retry_with_fixed_delay(
                lambda: self._read_deployed_code(context, expected),
                max_attempts=self.verification_attempts,
                delay=self.verification_delay,
                is_retryable=_is_retryable_verification,
                description=f"{artifact.name} verification"
            )
        except DeploymentError as e:
            if e.kind is not ErrorKind.CONTRACT_VERIFICATION:
                progress.warn(f"Could not verify contract deployment: {format_error(e)}")
                return expected

            message = f"Transaction succeeded but no bytecode found at {expected}"
            if not self.trust_receipt_on_missing_code:
                raise verification_error(message, contract_address=expected)

            progress.warn(f"{message}; trusting the receipt")
            return expected
        except Exception as e:
            progress.warn(f"Could not verify contract deployment: {format_error(e)}")
            return expected

        logger.success(f"✓ Contract verified at expected address {expected}")

        if receipt.contract_address and receipt.contract_address.lower() != expected.lower():
            progress.warn(f"Expected address {expected} but receipt reports {receipt.contract_address}")

        self._check_code_hash(artifact, code, progress)
        return expected

    async def _read_deployed_code(self, context: DeploymentContext, address: str) -> bytes:
        code = await context.chain_client.get_bytecode(address)
        if not code:
            raise verification_error(f"No bytecode at {address} yet", contract_address=address)
        return code

    def _check_code_hash(
        self,
        artifact: DeploymentArtifact,
        code: bytes,
        progress: _ArtifactProgress
    ) -> None:
        if not artifact.expected_code_hash:
            return

        actual = Web3.to_hex(Web3.keccak(code))
        if actual.lower() != artifact.expected_code_hash.lower():
            progress.warn(
                f"Code hash mismatch at {artifact.expected_address}: "
                f"expected {artifact.expected_code_hash}, found {actual}"
            )
        else:
            logger.info("✓ Code hash matches")

    def _update_stats(self, result: DeploymentResult) -> None:
        self.stats['total'] += 1
        if result.success:
            self.stats['successful'] += 1
        else:
            self.stats['failed'] += 1
        if result.already_deployed:
            self.stats['already_deployed'] += 1
        if result.gas_used:
            self.stats['gas_used'] += result.gas_used

    def _persist_result(self, result: DeploymentResult, context: DeploymentContext) -> None:
        if self.sink is None:
            return
        try:
            self.sink.record_artifact(result, context.network, context.chain_id, context.session)
        except (OSError, ValueError) as e:
            logger.error(f"Could not persist result for {result.name}: {e}")

    def _persist_session(
        self,
        results: Sequence[DeploymentResult],
        context: DeploymentContext
    ) -> SessionSummary:
        if self.sink is not None:
            try:
                return self.sink.record_session(
                    results, context.network, context.chain_id, context.session
                )
            except (OSError, ValueError) as e:
                logger.error(f"Could not persist session summary: {e}")

        return SessionSummary.from_results(
            results, context.network, context.chain_id, context.session.session_id
        )

    def get_stats(self) -> Dict:
        return dict(self.stats)


def _is_retryable_verification(error: BaseException) -> bool:
    if isinstance(error, DeploymentError) and error.kind is ErrorKind.CONTRACT_VERIFICATION:
        return True
    return is_retryable_error(error)


def log_summary(summary: SessionSummary) -> None:
    """Print the per-batch report"""
    logger.info("=" * 60)
    logger.info("Deployment Summary")
    logger.info("=" * 60)
    logger.info(f"Total contracts: {summary.total}")
    logger.info(f"Successful: {summary.successful} ({summary.already_deployed} already deployed)")
    logger.info(f"Failed: {summary.failed}")

    for index, result in enumerate(summary.results, start=1):
        status = "✓" if result.success else "✗"
        logger.info(f"{index}. {status} {result.name}")

        if not result.success:
            logger.info(f"   Error: {result.error}")
            continue

        if result.transaction_hash:
            logger.info(f"   TX Hash: {result.transaction_hash}")
        if result.resolved_address:
            logger.info(f"   Address: {result.resolved_address}")
        if result.address_matches_expected is False:
            logger.info(f"   ⚠ Expected: {result.expected_address}")
        if result.block_number is not None:
            logger.info(f"   Block: {result.block_number}")
        if result.gas_used is not None:
            logger.info(f"   Gas Used: {result.gas_used}")
        for warning in result.warnings:
            logger.info(f"   ⚠ {warning}")
