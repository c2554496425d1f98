"""
Gas Calculator
Gas estimation with retry, default-price fallback and cost warnings
"""

import math
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

from loguru import logger
from web3 import Web3

from .errors import format_error, gas_estimation_error
from .retry import retry

WARNING_HIGH = 'high'
WARNING_CRITICAL = 'critical'


@dataclass(frozen=True)
class GasEstimate:
    """Gas amount, price and derived cost for one transaction"""

    gas: int
    gas_price: int
    estimated_cost: int
    warning: Optional[str] = None
    price_is_default: bool = False


class GasEstimator:
    """
    Estimates deployment gas through the retrying caller

    An unknown gas amount is an error; an unknown gas price falls back to
    the configured default.
    """

    def __init__(self, config: Dict):
        """
        Initialize Gas Estimator

        Args:
            config: Deployment configuration (uses the `gas` section)
        """
        gas_settings = config['gas']

        self.warning_threshold = int(gas_settings['warning_threshold'])
        self.max_limit = int(gas_settings['max_limit'])
        self.default_price_wei = int(gas_settings['default_price_wei'])
        self.limit_buffer = float(gas_settings.get('limit_buffer', 1.0))
        self.attempts = int(gas_settings.get('estimate_attempts', 3))
        self.initial_delay = float(gas_settings.get('estimate_initial_delay', 1.0))

    def classify(self, gas: int) -> Optional[str]:
        """'critical' above max_limit, 'high' above warning_threshold, else None"""
        if gas > self.max_limit:
            return WARNING_CRITICAL
        if gas > self.warning_threshold:
            return WARNING_HIGH
        return None

    def gas_limit_for(self, estimate: GasEstimate) -> int:
        """Gas limit to send: estimate plus the configured buffer"""
        return int(math.ceil(estimate.gas * self.limit_buffer))

    async def estimate(
        self,
        estimate_fn: Callable[[], Awaitable[int]],
        price_source: Optional[Callable[[], Awaitable[int]]] = None
    ) -> GasEstimate:
        """
        Estimate gas and cost

        Args:
            estimate_fn: Coroutine function returning the gas amount
            price_source: Coroutine function returning the gas price in wei

        Returns:
            GasEstimate

        Raises:
            DeploymentError: GAS_ESTIMATION if estimate_fn keeps failing
        """
        try:
            gas = int(await retry(
                estimate_fn,
                max_attempts=self.attempts,
                initial_delay=self.initial_delay,
                description="gas estimation"
            ))
        except Exception as e:
            raise gas_estimation_error(f"Failed to estimate gas: {format_error(e)}", e)

        gas_price, price_is_default = await self._get_gas_price(price_source)

        return GasEstimate(
            gas=gas,
            gas_price=gas_price,
            estimated_cost=gas * gas_price,
            warning=self.classify(gas),
            price_is_default=price_is_default,
        )

    async def _get_gas_price(self, price_source) -> tuple:
        if price_source is None:
            return self.default_price_wei, True

        try:
            price = await retry(
                price_source,
                max_attempts=self.attempts,
                initial_delay=self.initial_delay,
                description="gas price lookup"
            )
            return int(price), False
        except Exception as e:
            logger.warning(
                f"Gas price lookup failed ({format_error(e)}), "
                f"using default {format_gas(self.default_price_wei)} wei"
            )
            return self.default_price_wei, True

    def log_estimate(self, estimate: GasEstimate) -> None:
        """Log an estimate with threshold warnings"""
        logger.info(f"Estimated gas: {format_gas(estimate.gas)}")
        price_note = " (default)" if estimate.price_is_default else ""
        logger.info(f"Gas price: {format_gas(estimate.gas_price)} wei{price_note}")
        logger.info(f"Estimated cost: {format_gas_cost(estimate.estimated_cost)}")

        if estimate.warning == WARNING_CRITICAL:
            logger.warning(
                f"⚠️ CRITICAL: Gas estimate ({format_gas(estimate.gas)}) exceeds maximum "
                f"limit ({format_gas(self.max_limit)}). Deployment may fail."
            )
        elif estimate.warning == WARNING_HIGH:
            logger.warning(
                f"⚠️ Gas estimate ({format_gas(estimate.gas)}) is high "
                f"(above {format_gas(self.warning_threshold)}). This deployment will be expensive."
            )


def format_gas(gas: int) -> str:
    return str(gas)


def format_gas_cost(cost_wei: int) -> str:
    """Cost in ETH, or mETH below 0.001 ETH"""
    eth = Web3.from_wei(cost_wei, 'ether')
    if eth < 0.001:
        return f"{eth * 1000:.3f} mETH"
    return f"{eth:.6f} ETH"
