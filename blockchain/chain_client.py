"""
Chain Client
Async JSON-RPC access for deployments (bytecode reads, gas, send, receipts)
"""

import time
from typing import Awaitable, Callable, Dict, Optional, TypeVar

import aiohttp
from loguru import logger
from web3 import AsyncWeb3
from web3.exceptions import TimeExhausted

from deployer.models import TransactionReceipt
from utils.config import mask_url
from utils.errors import network_error, transaction_error
from utils.retry import TRANSPORT_ERRORS

from .nonce_manager import NonceManager
from .transaction_builder import TransactionBuilder

T = TypeVar('T')


class ChainClient:
    """
    RPC capability set used by the orchestrator

    Transport failures surface as NETWORK DeploymentErrors so the retry
    classifier can treat them as transient.
    """

    def __init__(self, rpc_url: str, config: Dict, w3: Optional[AsyncWeb3] = None):
        """
        Initialize Chain Client

        Args:
            rpc_url: HTTP(S) RPC endpoint
            config: Deployment configuration (rpc, transaction, gas sections)
            w3: Pre-built AsyncWeb3 (tests)
        """
        self.rpc_url = rpc_url
        self.masked_url = mask_url(rpc_url)

        self.request_timeout = config['rpc']['timeout']
        self.confirmation_timeout = config['transaction']['confirmation_timeout']
        self.poll_latency = config['transaction']['poll_latency']
        self.default_gas_limit = config['gas']['default_limit']

        self.w3 = w3 or AsyncWeb3(
            AsyncWeb3.AsyncHTTPProvider(
                rpc_url,
                request_kwargs={'timeout': aiohttp.ClientTimeout(total=self.request_timeout)}
            )
        )

        self._chain_id: Optional[int] = None
        self._nonce_managers: Dict[str, NonceManager] = {}

        self.usage_stats = {
            'requests': 0,
            'failures': 0,
            'last_failure_time': 0
        }

        logger.info(f"Chain client created for {self.masked_url}")

    async def _call(self, description: str, fn: Callable[[], Awaitable[T]]) -> T:
        self.usage_stats['requests'] += 1
        try:
            return await fn()
        except TRANSPORT_ERRORS as e:
            self.usage_stats['failures'] += 1
            self.usage_stats['last_failure_time'] = time.time()
            raise network_error(
                f"{description} failed on {self.masked_url}: {e or e.__class__.__name__}",
                rpc_url=self.masked_url,
                cause=e
            )

    async def get_chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = int(await self._call("eth_chainId", lambda: self.w3.eth.chain_id))
        return self._chain_id

    async def get_bytecode(self, address: str) -> bytes:
        """Deployed code at address (b'' when none)"""
        checksum = AsyncWeb3.to_checksum_address(address)
        code = await self._call("eth_getCode", lambda: self.w3.eth.get_code(checksum))
        return bytes(code or b'')

    async def get_gas_price(self) -> int:
        return int(await self._call("eth_gasPrice", lambda: self.w3.eth.gas_price))

    async def estimate_gas(self, tx: Dict) -> int:
        return int(await self._call("eth_estimateGas", lambda: self.w3.eth.estimate_gas(tx)))

    async def get_balance(self, address: str) -> int:
        checksum = AsyncWeb3.to_checksum_address(address)
        return int(await self._call("eth_getBalance", lambda: self.w3.eth.get_balance(checksum)))

    def _nonce_manager_for(self, address: str) -> NonceManager:
        key = address.lower()
        if key not in self._nonce_managers:
            self._nonce_managers[key] = NonceManager(self.w3, address)
        return self._nonce_managers[key]

    async def send_transaction(self, tx: Dict, signer) -> str:
        """
        Sign and broadcast a transaction

        Args:
            tx: Request from TransactionBuilder.build_deployment_request
            signer: DeploymentSigner

        Returns:
            Transaction hash (0x hex)
        """
        nonce_manager = self._nonce_manager_for(signer.address)
        chain_id = await self.get_chain_id()
        gas_price = tx.get('gasPrice') or await self.get_gas_price()
        nonce = await self._call("eth_getTransactionCount", nonce_manager.get_nonce)

        final_tx = TransactionBuilder.finalize(
            tx,
            nonce=nonce,
            chain_id=chain_id,
            gas_price=gas_price,
            gas_limit=self.default_gas_limit
        )
        try:
            signed = signer.sign_transaction(final_tx)
            tx_hash = await self._call(
                "eth_sendRawTransaction",
                lambda: self.w3.eth.send_raw_transaction(signed.raw_transaction)
            )
        except Exception:
            await nonce_manager.reset_nonce()
            raise

        tx_hash_hex = AsyncWeb3.to_hex(tx_hash)

        logger.debug(f"Sent {tx_hash_hex} with nonce {nonce} (gas {final_tx['gas']})")
        return tx_hash_hex

    async def wait_for_receipt(self, tx_hash: str) -> TransactionReceipt:
        """
        Block until the transaction is mined

        Raises:
            DeploymentError: TRANSACTION when the confirmation timeout elapses
        """
        try:
            receipt = await self._call(
                "eth_getTransactionReceipt",
                lambda: self.w3.eth.wait_for_transaction_receipt(
                    tx_hash,
                    timeout=self.confirmation_timeout,
                    poll_latency=self.poll_latency
                )
            )
        except TimeExhausted as e:
            raise transaction_error(
                f"No receipt for {tx_hash} after {self.confirmation_timeout}s",
                tx_hash=tx_hash,
                cause=e
            )

        return normalize_receipt(tx_hash, receipt)


def normalize_receipt(tx_hash: str, receipt) -> TransactionReceipt:
    """Convert a web3 AttributeDict receipt"""
    contract_address = receipt.get('contractAddress')
    return TransactionReceipt(
        transaction_hash=tx_hash,
        status='success' if receipt.get('status') == 1 else 'reverted',
        block_number=int(receipt['blockNumber']),
        gas_used=int(receipt['gasUsed']),
        contract_address=str(contract_address) if contract_address else None,
        logs_count=len(receipt.get('logs') or []),
    )
