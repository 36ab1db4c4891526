"""Pytest fixtures for polymarket-client tests."""

import pytest

from polymarket_client.auth import ApiCreds, BuilderCreds
from polymarket_client.constants import POLYGON
from polymarket_client.signer import Signer


# Test wallet private key (DO NOT use in production)
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

# Private key 1 and its well-known address
KEY_ONE = "0x" + "00" * 31 + "01"
KEY_ONE_ADDRESS = "0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf"

TEST_API_SECRET = "dGVzdHNlY3JldA=="  # base64("testsecret")


class FakeEth:
    """Stand-in for web3.eth returning fixed contract code and call results."""

    def __init__(self, code: bytes, call_result: int = 0) -> None:
        self.code = code
        self.call_result = call_result
        self.calls = []

    def get_code(self, address):
        return self.code

    def call(self, transaction):
        self.calls.append(transaction)
        return self.call_result.to_bytes(32, "big")


class FakeWeb3:
    """Stand-in for a Web3 instance."""

    def __init__(self, code: bytes = b"", call_result: int = 0) -> None:
        self.eth = FakeEth(code, call_result)


@pytest.fixture
def private_key() -> str:
    """Test wallet private key."""
    return TEST_PRIVATE_KEY


@pytest.fixture
def test_address() -> str:
    """Address of the test wallet."""
    return TEST_ADDRESS


@pytest.fixture
def chain_id() -> int:
    """Test chain ID."""
    return POLYGON


@pytest.fixture
def signer(private_key, chain_id) -> Signer:
    """Signer for the test wallet."""
    return Signer(private_key, chain_id)


@pytest.fixture
def api_creds() -> ApiCreds:
    """Test L2 API credentials."""
    return ApiCreds(
        api_key="test-api-key",
        api_secret=TEST_API_SECRET,
        api_passphrase="test-passphrase",
    )


@pytest.fixture
def builder_creds() -> BuilderCreds:
    """Test builder credentials."""
    return BuilderCreds(
        api_key="builder-key",
        api_secret="YnVpbGRlcnNlY3JldA==",
        api_passphrase="builder-passphrase",
    )


@pytest.fixture
def host() -> str:
    """Test CLOB host."""
    return "https://clob.polymarket.com"


@pytest.fixture
def relayer_host() -> str:
    """Test relayer host."""
    return "https://relayer-v2.polymarket.com"


@pytest.fixture
def token_id() -> str:
    """Test outcome token ID."""
    return "123"


@pytest.fixture
def condition_id() -> str:
    """Test condition ID."""
    return "0x" + "ab" * 32
