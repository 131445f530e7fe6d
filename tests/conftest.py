import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-testing-only")

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from brickbyblock_backend import config
from brickbyblock_backend.errors import MetadataUnavailable
from brickbyblock_backend.nonce_store import NonceStore
from brickbyblock_backend.services.chain_service import ChainClient
from brickbyblock_backend.services.identity_service import IdentityBroker

NFT_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
MARKETPLACE_ADDRESS = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe512961708279f8d5e7f5e8b2e4e8b7"
OTHER_PRIVATE_KEY = "0x5c0883a69102937d6231471b5dbb6204fe512961708279f8d5e7f5e8b2e4e8b8"


def sign_text(message: str, private_key: str) -> str:
    signed = Account.sign_message(encode_defunct(text=message), private_key=private_key)
    return signed.signature.to_0x_hex()


class FakeChain:
    """In-memory stand-in for ChainClient reads."""

    def __init__(self, logs=None, latest_block=0, owned=None, bids=None, token_uris=None, owners=None):
        self.logs = logs or []
        self.latest_block = latest_block
        self.owned = owned or {}
        self.bids = bids or {}
        self.token_uris = token_uris or {}
        self.owners = owners or {}
        self.log_queries = []
        self.balance_queries = []

    def get_latest_block(self):
        return self.latest_block

    def query_logs(self, from_block, to_block):
        self.log_queries.append((from_block, to_block))
        return [log for log in self.logs if from_block <= log["block_number"] <= to_block]

    def balance_of(self, address):
        self.balance_queries.append(address)
        return len(self.owned.get(address.lower(), []))

    def token_of_owner_by_index(self, address, index):
        return self.owned[address.lower()][index]

    def token_uri(self, token_id):
        return self.token_uris[token_id]

    def owner_of(self, token_id):
        return self.owners[token_id]

    def bids_for_asset(self, token_id):
        return self.bids.get(token_id, [])


class FakeResolver:
    """Resolves from a dict keyed by URI; unknown URIs are unavailable."""

    def __init__(self, documents):
        self.documents = documents
        self.requested = []

    def resolve(self, uri):
        self.requested.append(uri)
        if uri not in self.documents:
            raise MetadataUnavailable(f"Could not fetch metadata for {uri}")
        return dict(self.documents[uri])


def mint_log(token_id, owner, block_number, log_index=0):
    return {
        "token_id": token_id,
        "owner": owner,
        "token_uri": f"ipfs://QmMeta{token_id}",
        "block_number": block_number,
        "log_index": log_index,
    }


@pytest.fixture(autouse=True)
def test_config(monkeypatch):
    monkeypatch.setattr(config, "JWT_SECRET_KEY", "test-secret-key-for-testing-only")
    monkeypatch.setattr(config, "JWT_ALGORITHM", "HS256")
    monkeypatch.setattr(config, "JWT_ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24)
    monkeypatch.setattr(config, "CHAIN_ID", None)
    monkeypatch.setattr(config, "IPFS_GATEWAY_URL", "https://gateway.example/ipfs/")
    yield


@pytest.fixture
def account():
    return Account.from_key(PRIVATE_KEY)


@pytest.fixture
def other_account():
    return Account.from_key(OTHER_PRIVATE_KEY)


@pytest.fixture
def broker():
    return IdentityBroker(NonceStore())


@pytest.fixture
def chain_client():
    """A real ChainClient; encoding works offline, reads are never made."""
    w3 = Web3(Web3.HTTPProvider("http://127.0.0.1:8545"))
    return ChainClient(w3, NFT_ADDRESS, MARKETPLACE_ADDRESS)
