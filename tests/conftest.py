"""
Pytest fixtures for the userop SDK tests.
"""
import pytest
from unittest.mock import MagicMock
from web3.providers.rpc import HTTPProvider

from userop_sdk.client import UserOpClient
from userop_sdk.encoder import create_user_op
from userop_sdk.models import SponsorAuthorization
from userop_sdk.signer import LocalSigner

# Constants for testing
TEST_RPC_URL = "http://localhost:8545"
TEST_PRIV_KEY = "0x0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"
TEST_CHAIN_ID = 31337

SENDER = "0x" + "aa" * 20
TARGET = "0x" + "bb" * 20
PAYMASTER = "0x" + "cc" * 20
ENTRY_POINT = "0x" + "dd" * 20
BENEFICIARY = "0x" + "ee" * 20

INCREMENT_CALL = bytes.fromhex("12345678")


@pytest.fixture(autouse=True)
def _patch_http_provider(monkeypatch):
    """
    Stub every Web3 HTTP call so no DNS / network traffic is triggered.
    Works for all tests because it is autouse.
    """
    def _dummy(self, method, params=None, _=None):      # signature match
        if method in {"eth_chainId"}:
            return {"jsonrpc": "2.0", "id": 1, "result": hex(TEST_CHAIN_ID)}
        if method in {"eth_gasPrice"}:
            return {"jsonrpc": "2.0", "id": 1, "result": "0x3b9aca00"}  # 1 gwei
        # everything else – return something harmless
        return {"jsonrpc": "2.0", "id": 1, "result": "0x0"}

    monkeypatch.setattr(HTTPProvider, "make_request", _dummy, raising=True)


@pytest.fixture
def signer():
    """Deterministic local signer"""
    return LocalSigner(TEST_PRIV_KEY)


@pytest.fixture
def sponsor():
    return SponsorAuthorization(
        paymaster=PAYMASTER,
        verification_gas_limit=100000,
        post_op_gas_limit=50000,
    )


@pytest.fixture
def user_op():
    """Unsigned, unsponsored operation with default gas settings"""
    return create_user_op(SENDER, TARGET, INCREMENT_CALL, nonce=0)


class RecordingSigner:
    """Custom signer that wraps a LocalSigner and records calls"""
    def __init__(self, private_key=TEST_PRIV_KEY):
        self._inner = LocalSigner(private_key)
        self.address = self._inner.address
        self.messages = []
        self.transactions = []

    def sign_message(self, message):
        self.messages.append(message)
        return self._inner.sign_message(message)

    def sign_transaction(self, transaction_dict):
        self.transactions.append(transaction_dict)
        return MagicMock(raw_transaction=b"signed_transaction")


@pytest.fixture
def recording_signer():
    return RecordingSigner()


@pytest.fixture
def mock_w3():
    """Web3 mock with the eth methods the client touches"""
    w3 = MagicMock()
    w3.eth.chain_id = TEST_CHAIN_ID
    w3.eth.gas_price = 1000000000
    w3.eth.get_transaction_count.return_value = 7
    w3.eth.send_raw_transaction.return_value = b"\xab" * 32
    w3.eth.wait_for_transaction_receipt.return_value = {
        "transactionHash": b"\xab" * 32,
        "blockNumber": 12345,
        "blockHash": b"\xcd" * 32,
        "status": 1,
        "gasUsed": 185000,
        "from": "0x1234567890123456789012345678901234567890",
        "to": ENTRY_POINT,
        "logs": [],
    }
    return w3


@pytest.fixture
def client(mock_w3, recording_signer):
    """UserOpClient wired to mocked Web3 and EntryPoint objects"""
    c = UserOpClient(
        rpc_url=TEST_RPC_URL,
        entry_point_address=ENTRY_POINT,
        signer=recording_signer,
    )
    c.w3 = mock_w3
    c.entry_point = MagicMock()
    return c
