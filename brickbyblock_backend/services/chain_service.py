from web3 import Web3
from web3.exceptions import Web3Exception
import requests
import json
import logging
import os
from typing import Any, Callable, Dict, List, Tuple

from .. import config
from ..errors import ChainUnavailable

logger = logging.getLogger(__name__)

# --- ABI Loading ---
# ABIs are Hardhat artifacts shipped inside the package (brickbyblock_backend/abi)
_SERVICE_DIR = os.path.dirname(__file__)
_ABI_DIR = os.path.abspath(os.path.join(_SERVICE_DIR, os.pardir, "abi"))

NFT_ABI_FILE = "MasterNFT.json"
MARKETPLACE_ABI_FILE = "MarketPlace.json"

# Errors raised by web3 for RPC failures, reverts and transport problems
_CHAIN_ERRORS = (Web3Exception, requests.exceptions.RequestException, ValueError, TimeoutError)


def load_abi(filename: str) -> List[Dict[str, Any]]:
    """Loads the 'abi' entry from a contract artifact in the abi directory."""
    path = os.path.join(_ABI_DIR, filename)
    with open(path, 'r') as f:
        artifact = json.load(f)
    abi = artifact.get('abi')
    if not abi:
        raise ValueError(f"'abi' key not found in artifact file: {path}")
    logger.debug(f"Loaded contract ABI from: {path}")
    return abi


class ChainClient:
    """
    Read-only access to the NFT and marketplace contracts, plus encoding of
    unsigned calls. Holds no key material: nothing here signs or broadcasts.
    """

    def __init__(self, w3: Web3, nft_address: str, marketplace_address: str):
        self.w3 = w3
        self.nft_contract = w3.eth.contract(
            address=Web3.to_checksum_address(nft_address), abi=load_abi(NFT_ABI_FILE)
        )
        self.marketplace_contract = w3.eth.contract(
            address=Web3.to_checksum_address(marketplace_address), abi=load_abi(MARKETPLACE_ABI_FILE)
        )

    @classmethod
    def from_config(cls) -> "ChainClient":
        if not config.RPC_URL:
            logger.error("Cannot create chain client: RPC_URL not configured.")
            raise ChainUnavailable("Chain client is not configured.")
        if not config.NFT_CONTRACT_ADDRESS or not config.MARKETPLACE_CONTRACT_ADDRESS:
            logger.error("Cannot create chain client: contract addresses not configured.")
            raise ChainUnavailable("Chain client is not configured.")

        w3 = Web3(Web3.HTTPProvider(
            config.RPC_URL,
            request_kwargs={"timeout": config.CHAIN_REQUEST_TIMEOUT_SECONDS},
        ))
        client = cls(w3, config.NFT_CONTRACT_ADDRESS, config.MARKETPLACE_CONTRACT_ADDRESS)
        logger.info(
            f"Chain client created for NFT {client.nft_address} and marketplace {client.marketplace_address}"
        )
        return client

    @property
    def nft_address(self) -> str:
        return self.nft_contract.address

    @property
    def marketplace_address(self) -> str:
        return self.marketplace_contract.address

    def _call(self, description: str, fn: Callable[[], Any]) -> Any:
        try:
            return fn()
        except _CHAIN_ERRORS as e:
            logger.error(f"Chain call failed ({description}): {e}", exc_info=True)
            raise ChainUnavailable(f"Chain call failed: {description}") from e

    # --- Reads ---

    def owner_of(self, token_id: int) -> str:
        return self._call(f"ownerOf({token_id})", lambda: self.nft_contract.functions.ownerOf(token_id).call())

    def token_uri(self, token_id: int) -> str:
        return self._call(f"tokenURI({token_id})", lambda: self.nft_contract.functions.tokenURI(token_id).call())

    def balance_of(self, address: str) -> int:
        checksum_address = Web3.to_checksum_address(address)
        return self._call(
            f"balanceOf({checksum_address})",
            lambda: self.nft_contract.functions.balanceOf(checksum_address).call(),
        )

    def token_of_owner_by_index(self, address: str, index: int) -> int:
        checksum_address = Web3.to_checksum_address(address)
        return self._call(
            f"tokenOfOwnerByIndex({checksum_address}, {index})",
            lambda: self.nft_contract.functions.tokenOfOwnerByIndex(checksum_address, index).call(),
        )

    def get_latest_block(self) -> int:
        return self._call("eth_blockNumber", lambda: self.w3.eth.block_number)

    def query_logs(self, from_block: int, to_block: int) -> List[Dict[str, Any]]:
        """
        Fetches AssetMinted events in the inclusive block range and flattens them
        to dicts with token_id, owner, token_uri and their chain position.
        """
        event_logs = self._call(
            f"AssetMinted logs [{from_block}, {to_block}]",
            lambda: self.nft_contract.events.AssetMinted.get_logs(from_block=from_block, to_block=to_block),
        )
        logs = []
        for event in event_logs:
            args = event["args"]
            logs.append({
                "token_id": int(args["tokenId"]),
                "owner": args["owner"],
                "token_uri": args["tokenURI"],
                "block_number": int(event["blockNumber"]),
                "log_index": int(event["logIndex"]),
            })
        logger.debug(f"Found {len(logs)} AssetMinted logs in [{from_block}, {to_block}]")
        return logs

    def bids_for_asset(self, token_id: int) -> List[Tuple[str, int]]:
        raw_bids = self._call(
            f"bidsForAsset({token_id})",
            lambda: self.marketplace_contract.functions.bidsForAsset(token_id).call(),
        )
        bids = []
        for bid in raw_bids:
            # Structs decode as plain tuples unless the contract was built with decode_tuples
            if isinstance(bid, (list, tuple)):
                bidder, amount = bid[0], bid[1]
            else:
                bidder, amount = bid.bidder, bid.amount
            bids.append((bidder, int(amount)))
        return bids

    # --- Unsigned transaction population (no RPC round-trip) ---

    def _populate(self, contract, fn_name: str, args: list, sender: str | None = None, value: int | None = None) -> Dict[str, Any]:
        data = contract.encode_abi(fn_name, args=args)
        tx: Dict[str, Any] = {"to": contract.address, "data": data}
        if sender is not None:
            tx["from"] = Web3.to_checksum_address(sender)
        if value is not None:
            tx["value"] = value
        if config.CHAIN_ID:
            tx["chainId"] = config.CHAIN_ID
        return tx

    def populate_mint(self, owner: str, uri: str) -> Dict[str, Any]:
        return self._populate(self.nft_contract, "mintAsset", [Web3.to_checksum_address(owner), uri])

    def populate_approve(self, spender: str, token_id: int, sender: str | None = None) -> Dict[str, Any]:
        return self._populate(
            self.nft_contract, "approve", [Web3.to_checksum_address(spender), token_id], sender=sender
        )

    def populate_list(self, token_id: int, sender: str | None = None) -> Dict[str, Any]:
        return self._populate(self.marketplace_contract, "listAsset", [token_id], sender=sender)

    def populate_bid(self, token_id: int, amount_wei: int, sender: str | None = None) -> Dict[str, Any]:
        return self._populate(self.marketplace_contract, "makeBid", [token_id], sender=sender, value=amount_wei)

    def populate_accept_bid(self, token_id: int, buyer: str, sender: str | None = None) -> Dict[str, Any]:
        return self._populate(
            self.marketplace_contract, "acceptBid", [token_id, Web3.to_checksum_address(buyer)], sender=sender
        )
