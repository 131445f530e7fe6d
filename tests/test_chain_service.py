from unittest.mock import Mock

import pytest
import requests
from eth_abi import decode
from web3 import Web3
from web3.exceptions import ContractLogicError, Web3Exception

from brickbyblock_backend import config
from brickbyblock_backend.errors import ChainUnavailable
from brickbyblock_backend.services.chain_service import ChainClient, load_abi
from conftest import NFT_ADDRESS, MARKETPLACE_ADDRESS

OWNER = "0x742d35cc6634c0532925a3b844bc9e7595f0beb1"


def selector(signature: str) -> str:
    return Web3.keccak(text=signature)[:4].to_0x_hex()


class TestAbiLoading:
    def test_nft_abi_has_mint_event_and_functions(self):
        names = {entry.get("name") for entry in load_abi("MasterNFT.json")}
        assert {"AssetMinted", "mintAsset", "approve", "ownerOf", "tokenURI", "balanceOf", "tokenOfOwnerByIndex"} <= names

    def test_marketplace_abi_has_bid_functions(self):
        names = {entry.get("name") for entry in load_abi("MarketPlace.json")}
        assert {"listAsset", "makeBid", "acceptBid", "bidsForAsset"} <= names


class TestFromConfig:
    def test_missing_rpc_url_raises(self, monkeypatch):
        monkeypatch.setattr(config, "RPC_URL", None)
        with pytest.raises(ChainUnavailable):
            ChainClient.from_config()

    def test_missing_contract_address_raises(self, monkeypatch):
        monkeypatch.setattr(config, "RPC_URL", "http://127.0.0.1:8545")
        monkeypatch.setattr(config, "NFT_CONTRACT_ADDRESS", None)
        with pytest.raises(ChainUnavailable):
            ChainClient.from_config()

    def test_builds_client_from_settings(self, monkeypatch):
        monkeypatch.setattr(config, "RPC_URL", "http://127.0.0.1:8545")
        monkeypatch.setattr(config, "NFT_CONTRACT_ADDRESS", NFT_ADDRESS.lower())
        monkeypatch.setattr(config, "MARKETPLACE_CONTRACT_ADDRESS", MARKETPLACE_ADDRESS.lower())
        client = ChainClient.from_config()
        assert client.nft_address == NFT_ADDRESS
        assert client.marketplace_address == MARKETPLACE_ADDRESS


class TestPopulate:
    def test_populate_mint_encodes_owner_and_uri(self, chain_client):
        tx = chain_client.populate_mint(OWNER, "ipfs://QmMeta")
        assert tx["to"] == NFT_ADDRESS
        assert tx["data"].startswith(selector("mintAsset(address,string)"))
        owner, uri = decode(["address", "string"], bytes.fromhex(tx["data"][10:]))
        assert owner.lower() == OWNER
        assert uri == "ipfs://QmMeta"
        assert "from" not in tx and "value" not in tx

    def test_populate_approve_targets_nft_contract(self, chain_client):
        tx = chain_client.populate_approve(MARKETPLACE_ADDRESS, 7, sender=OWNER)
        assert tx["to"] == NFT_ADDRESS
        assert tx["from"] == Web3.to_checksum_address(OWNER)
        spender, token_id = decode(["address", "uint256"], bytes.fromhex(tx["data"][10:]))
        assert spender.lower() == MARKETPLACE_ADDRESS.lower()
        assert token_id == 7

    def test_populate_list_targets_marketplace(self, chain_client):
        tx = chain_client.populate_list(7, sender=OWNER)
        assert tx["to"] == MARKETPLACE_ADDRESS
        assert tx["data"].startswith(selector("listAsset(uint256)"))

    def test_populate_bid_carries_value(self, chain_client):
        tx = chain_client.populate_bid(3, 1500, sender=OWNER)
        assert tx["value"] == 1500
        assert tx["data"].startswith(selector("makeBid(uint256)"))

    def test_populate_accept_bid_encodes_buyer(self, chain_client):
        buyer = "0x" + "11" * 20
        tx = chain_client.populate_accept_bid(3, buyer, sender=OWNER)
        token_id, decoded_buyer = decode(["uint256", "address"], bytes.fromhex(tx["data"][10:]))
        assert token_id == 3
        assert decoded_buyer.lower() == buyer

    def test_chain_id_added_when_configured(self, chain_client, monkeypatch):
        monkeypatch.setattr(config, "CHAIN_ID", 43113)
        assert chain_client.populate_list(1)["chainId"] == 43113


class TestReads:
    def test_owner_of_returns_contract_value(self, chain_client):
        chain_client.nft_contract = Mock()
        chain_client.nft_contract.functions.ownerOf.return_value.call.return_value = OWNER
        assert chain_client.owner_of(1) == OWNER
        chain_client.nft_contract.functions.ownerOf.assert_called_once_with(1)

    @pytest.mark.parametrize("error", [
        Web3Exception("rpc down"),
        ContractLogicError("execution reverted"),
        requests.exceptions.ConnectionError("refused"),
        requests.exceptions.Timeout("slow"),
    ])
    def test_failures_become_chain_unavailable(self, chain_client, error):
        chain_client.nft_contract = Mock()
        chain_client.nft_contract.functions.tokenURI.return_value.call.side_effect = error
        with pytest.raises(ChainUnavailable):
            chain_client.token_uri(1)

    def test_latest_block_failure_is_chain_unavailable(self, chain_client):
        chain_client.w3 = Mock()
        type(chain_client.w3.eth).block_number = property(Mock(side_effect=Web3Exception("down")))
        with pytest.raises(ChainUnavailable):
            chain_client.get_latest_block()

    def test_query_logs_flattens_events(self, chain_client):
        chain_client.nft_contract = Mock()
        chain_client.nft_contract.events.AssetMinted.get_logs.return_value = [
            {
                "args": {"tokenId": 4, "owner": OWNER, "tokenURI": "ipfs://QmMeta4"},
                "blockNumber": 120,
                "logIndex": 2,
            }
        ]
        logs = chain_client.query_logs(100, 199)
        chain_client.nft_contract.events.AssetMinted.get_logs.assert_called_once_with(from_block=100, to_block=199)
        assert logs == [{
            "token_id": 4,
            "owner": OWNER,
            "token_uri": "ipfs://QmMeta4",
            "block_number": 120,
            "log_index": 2,
        }]

    def test_bids_for_asset_returns_tuples(self, chain_client):
        chain_client.marketplace_contract = Mock()
        chain_client.marketplace_contract.functions.bidsForAsset.return_value.call.return_value = [
            (OWNER, 10 ** 18),
            ["0x" + "22" * 20, 5],
        ]
        assert chain_client.bids_for_asset(9) == [(OWNER, 10 ** 18), ("0x" + "22" * 20, 5)]

    def test_balance_of_checksums_address(self, chain_client):
        chain_client.nft_contract = Mock()
        chain_client.nft_contract.functions.balanceOf.return_value.call.return_value = 2
        assert chain_client.balance_of(OWNER) == 2
        chain_client.nft_contract.functions.balanceOf.assert_called_once_with(Web3.to_checksum_address(OWNER))
