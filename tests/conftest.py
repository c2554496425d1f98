"""
Shared fixtures: zero-delay config, in-memory chain client and signer
"""

from collections import Counter
from pathlib import Path
from types import SimpleNamespace
from typing import Dict, List, Optional

import pytest

from deployer.models import DeploymentArtifact, TransactionReceipt
from deployer.orchestrator import DeploymentContext
from deployer.result_sink import FileResultSink
from deployer.session import SessionContext
from utils.config import load_deploy_config

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "deploy_config.json"

FACTORY = '0x4e59b44847b379578588920ca78fbf26c0b4956c'
DEPLOYER = '0x' + '11' * 20
DEPLOYED_CODE = bytes.fromhex('6080604052')


def make_artifact(name: str, index: int = 1, expected: bool = True, **kwargs) -> DeploymentArtifact:
    """Artifact whose expected address is derived from its index"""
    return DeploymentArtifact(
        name=name,
        factory_address=FACTORY,
        init_code='0x' + f"{index:064x}" + '6080604052',
        expected_address=('0x' + f"{index:040x}") if expected else None,
        **kwargs
    )


class FakeChainClient:
    """
    In-memory chain: a mined factory call puts code at the artifact's address

    Lookup is keyed on calldata, so each artifact's deployment is tracked separately.
    """

    def __init__(self, chain_id: int = 31337):
        self.chain_id = chain_id
        self.code: Dict[str, bytes] = {}
        self.deploys: Dict[str, str] = {}
        self.reverting: set = set()
        self.estimate_failures: set = set()
        self.gas = 150000
        self.gas_price = 2 * 10**9
        self.gas_price_error: Optional[Exception] = None
        self.bytecode_errors: List[Exception] = []
        self.code_visible_after: int = 0
        self.sent: List[Dict] = []
        self.calls = Counter()
        self._pending: Dict[str, Dict] = {}
        self._reads_since_mined: Dict[str, int] = {}

    def register(self, artifact: DeploymentArtifact) -> None:
        if artifact.expected_address:
            self.deploys[artifact.init_code] = artifact.expected_address.lower()

    async def get_chain_id(self) -> int:
        self.calls['get_chain_id'] += 1
        return self.chain_id

    async def get_bytecode(self, address: str) -> bytes:
        self.calls['get_bytecode'] += 1
        if self.bytecode_errors:
            raise self.bytecode_errors.pop(0)

        key = address.lower()
        if key in self._reads_since_mined:
            # lagging node: code shows up only after a few reads
            self._reads_since_mined[key] += 1
            if self._reads_since_mined[key] <= self.code_visible_after:
                return b''
        return self.code.get(key, b'')

    async def get_gas_price(self) -> int:
        self.calls['get_gas_price'] += 1
        if self.gas_price_error is not None:
            raise self.gas_price_error
        return self.gas_price

    async def estimate_gas(self, tx: Dict) -> int:
        self.calls['estimate_gas'] += 1
        if tx['data'] in self.estimate_failures:
            raise ValueError("execution reverted")
        return self.gas

    async def get_balance(self, address: str) -> int:
        return 10**18

    async def send_transaction(self, tx: Dict, signer) -> str:
        self.calls['send_transaction'] += 1
        self.sent.append(tx)
        tx_hash = '0x' + f"{len(self.sent):064x}"
        self._pending[tx_hash] = tx
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str) -> TransactionReceipt:
        self.calls['wait_for_receipt'] += 1
        tx = self._pending.pop(tx_hash)
        reverted = tx['data'] in self.reverting

        if not reverted and tx['data'] in self.deploys:
            address = self.deploys[tx['data']]
            self.code[address] = DEPLOYED_CODE
            self._reads_since_mined[address] = 0

        return TransactionReceipt(
            transaction_hash=tx_hash,
            status='reverted' if reverted else 'success',
            block_number=1000 + len(self.sent),
            gas_used=self.gas - 1000,
        )


@pytest.fixture
def config():
    """Repository config with every delay set to zero"""
    config = load_deploy_config(str(CONFIG_PATH))
    config['delays']['between_deployments'] = 0
    config['retries']['initial_delay'] = 0
    config['retries']['max_delay'] = 0
    config['gas']['estimate_initial_delay'] = 0
    config['verification']['delay_seconds'] = 0
    return config


@pytest.fixture
def chain():
    return FakeChainClient()


@pytest.fixture
def signer():
    return SimpleNamespace(address=DEPLOYER)


@pytest.fixture
def session():
    return SessionContext(session_id='session-test', started_at=0.0)


@pytest.fixture
def context(chain, signer, session):
    return DeploymentContext(
        signer=signer,
        chain_client=chain,
        chain_id=chain.chain_id,
        network='localhost',
        session=session,
    )


@pytest.fixture
def sink(tmp_path):
    return FileResultSink(tmp_path / "deployments")
