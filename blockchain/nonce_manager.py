"""
Nonce Manager
Sequential nonce allocation for the deployer account
"""

import asyncio
from typing import Optional

from loguru import logger
from web3 import AsyncWeb3


class NonceManager:
    """
    Hands out nonces one at a time for a single account

    Resyncs from the chain's pending count on first use and after a sign or send fails.
    """

    def __init__(self, w3: AsyncWeb3, address: str):
        """
        Initialize Nonce Manager

        Args:
            w3: AsyncWeb3 instance
            address: Deployer address
        """
        self.w3 = w3
        self.address = AsyncWeb3.to_checksum_address(address)

        self.current_nonce: Optional[int] = None
        self.lock = asyncio.Lock()

    async def _sync_nonce(self):
        """Sync nonce with blockchain (confirmed + pending)"""
        nonce = await self.w3.eth.get_transaction_count(self.address, 'pending')
        self.current_nonce = nonce
        logger.debug(f"Nonce synced for {self.address}: {nonce}")

    async def get_nonce(self) -> int:
        """
        Get next available nonce

        Returns:
            Next nonce to use
        """
        async with self.lock:
            if self.current_nonce is None:
                await self._sync_nonce()

            nonce = self.current_nonce
            self.current_nonce += 1

            logger.debug(f"Allocated nonce: {nonce}")
            return nonce

    async def reset_nonce(self):
        """Forget local state; the next get_nonce() re-reads the chain"""
        async with self.lock:
            self.current_nonce = None
            logger.warning(f"Nonce state reset for {self.address}")
