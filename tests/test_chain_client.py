"""
Unit Tests for Chain Access, Signing and Transaction Building
"""

from unittest.mock import AsyncMock, Mock

import aiohttp
import pytest
from web3.exceptions import TimeExhausted

from blockchain.chain_client import ChainClient, normalize_receipt
from blockchain.signer import DeploymentSigner
from blockchain.transaction_builder import TransactionBuilder
from utils.errors import DeploymentError, ErrorKind

PRIVATE_KEY = '0x' + '4c' * 32
FACTORY = '0x4e59b44847b379578588920ca78fbf26c0b4956c'
TX_HASH_BYTES = bytes.fromhex('12' * 32)


async def resolved(value):
    return value


@pytest.fixture
def w3():
    """Mock AsyncWeb3 instance"""
    w3 = Mock()
    w3.eth.get_code = AsyncMock(return_value=b'')
    w3.eth.get_transaction_count = AsyncMock(return_value=7)
    w3.eth.send_raw_transaction = AsyncMock(return_value=TX_HASH_BYTES)
    w3.eth.estimate_gas = AsyncMock(return_value=120000)
    w3.eth.wait_for_transaction_receipt = AsyncMock(return_value={
        'status': 1,
        'blockNumber': 42,
        'gasUsed': 119000,
        'contractAddress': None,
        'logs': [{}, {}],
    })
    w3.eth.chain_id = resolved(31337)
    return w3


@pytest.fixture
def client(config, w3):
    return ChainClient('https://node.example/v2/secret', config, w3=w3)


@pytest.fixture
def signer():
    return DeploymentSigner(PRIVATE_KEY)


def request_for(signer):
    return TransactionBuilder.build_deployment_request(FACTORY, '0x6080', signer.address)


class TestTransactionBuilder:

    def test_request(self):
        tx = TransactionBuilder.build_deployment_request(FACTORY, '0x6080', '0x' + '11' * 20)

        assert tx['to'] == '0x4e59b44847b379578588920cA78FbF26c0B4956C'
        assert tx['value'] == 0
        assert tx['data'] == '0x6080'
        assert 'gas' not in tx

    def test_finalize_keeps_request(self):
        request = TransactionBuilder.build_deployment_request(FACTORY, '0x6080', '0x' + '11' * 20, 90000)
        tx = TransactionBuilder.finalize(request, nonce=3, chain_id=5, gas_price=10)

        assert tx['gas'] == 90000
        assert tx['nonce'] == 3
        assert tx['chainId'] == 5
        assert 'from' not in tx
        assert 'from' in request

    def test_finalize_requires_gas(self):
        request = TransactionBuilder.build_deployment_request(FACTORY, '0x6080', '0x' + '11' * 20)
        with pytest.raises(ValueError):
            TransactionBuilder.finalize(request, nonce=0, chain_id=1, gas_price=1)


class TestSigner:

    def test_key_without_prefix(self):
        assert DeploymentSigner('4c' * 32).address == DeploymentSigner(PRIVATE_KEY).address

    def test_invalid_key(self):
        with pytest.raises(DeploymentError) as exc_info:
            DeploymentSigner('0x1234')
        assert exc_info.value.kind is ErrorKind.VALIDATION

    def test_from_env(self, monkeypatch):
        monkeypatch.delenv('PRIVATE_KEY', raising=False)
        with pytest.raises(DeploymentError) as exc_info:
            DeploymentSigner.from_env()
        assert exc_info.value.kind is ErrorKind.CONFIGURATION

        monkeypatch.setenv('PRIVATE_KEY', PRIVATE_KEY)
        assert DeploymentSigner.from_env().address.startswith('0x')


class TestChainClient:

    @pytest.mark.asyncio
    async def test_chain_id_is_cached(self, client):
        assert await client.get_chain_id() == 31337
        assert await client.get_chain_id() == 31337

    @pytest.mark.asyncio
    async def test_transport_error_is_network_error(self, client, w3):
        w3.eth.get_code.side_effect = aiohttp.ClientConnectionError("refused")

        with pytest.raises(DeploymentError) as exc_info:
            await client.get_bytecode('0x' + '22' * 20)

        error = exc_info.value
        assert error.kind is ErrorKind.NETWORK
        assert error.details['rpc_url'] == 'https://node.example/***'
        assert 'secret' not in error.message
        assert client.usage_stats['failures'] == 1

    @pytest.mark.asyncio
    async def test_send_and_confirm(self, client, w3, signer):
        tx = dict(request_for(signer), gas=150000, gasPrice=10**9)

        tx_hash = await client.send_transaction(tx, signer)
        receipt = await client.wait_for_receipt(tx_hash)

        assert tx_hash == '0x' + '12' * 32
        assert receipt.succeeded
        assert receipt.block_number == 42
        assert receipt.logs_count == 2
        w3.eth.get_transaction_count.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_nonces_are_sequential(self, client, w3, signer):
        tx = dict(request_for(signer), gas=150000, gasPrice=10**9)

        await client.send_transaction(tx, signer)
        await client.send_transaction(tx, signer)

        manager = client._nonce_manager_for(signer.address)
        assert manager.current_nonce == 9
        assert w3.eth.get_transaction_count.await_count == 1

    @pytest.mark.asyncio
    async def test_failed_send_resyncs_nonce(self, client, w3, signer):
        tx = dict(request_for(signer), gas=150000, gasPrice=10**9)
        w3.eth.send_raw_transaction.side_effect = [ValueError("nonce too low"), TX_HASH_BYTES]

        with pytest.raises(ValueError):
            await client.send_transaction(tx, signer)
        await client.send_transaction(tx, signer)

        assert w3.eth.get_transaction_count.await_count == 2

    @pytest.mark.asyncio
    async def test_failed_signing_resyncs_nonce(self, client, w3, signer):
        tx = dict(request_for(signer), gas=150000, gasPrice=10**9)
        failing = Mock(address=signer.address)
        failing.sign_transaction.side_effect = ValueError("signing failed")

        with pytest.raises(ValueError):
            await client.send_transaction(tx, failing)
        await client.send_transaction(tx, signer)

        assert w3.eth.get_transaction_count.await_count == 2
        w3.eth.send_raw_transaction.assert_awaited_once()
        assert client._nonce_manager_for(signer.address).current_nonce == 8

    @pytest.mark.asyncio
    async def test_receipt_timeout_is_transaction_error(self, client, w3):
        w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("no receipt")

        with pytest.raises(DeploymentError) as exc_info:
            await client.wait_for_receipt('0x' + 'ab' * 32)

        assert exc_info.value.kind is ErrorKind.TRANSACTION
        assert exc_info.value.details['tx_hash'] == '0x' + 'ab' * 32


class TestReceipt:

    def test_reverted(self):
        receipt = normalize_receipt('0xabc', {
            'status': 0,
            'blockNumber': 5,
            'gasUsed': 21000,
            'contractAddress': None,
        })
        assert not receipt.succeeded
        assert receipt.status == 'reverted'
        assert receipt.contract_address is None
        assert receipt.logs_count == 0


# Run tests
if __name__ == "__main__":
    pytest.main([__file__, '-v'])
