import asyncio
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Tuple

from web3 import Web3

from ..errors import InvalidInput, StorageUnavailable, ValidationError
from ..models.transaction_models import UnsignedTransaction
from .chain_service import ChainClient
from .identity_service import normalize_address
from .indexer_service import parse_token_id
from .metadata_service import IPFS_SCHEME
from .storage_service import StorageClient

logger = logging.getLogger(__name__)

MAX_ETHER_DECIMALS = 18


def canonical_decimal(raw: Any, field: str, error=InvalidInput) -> Decimal:
    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        raise error(f"{field} must be a decimal number.")
    if not value.is_finite() or value < 0:
        raise error(f"{field} must be a non-negative decimal number.")
    return value


def decimal_to_text(value: Decimal) -> str:
    """'100' -> '100', '100.50' -> '100.5'; never scientific notation."""
    return format(value.normalize(), "f")


def ether_to_wei(amount: Any) -> int:
    value = canonical_decimal(amount, "bidAmount")
    if value <= 0:
        raise InvalidInput("bidAmount must be greater than zero.")
    exponent = value.normalize().as_tuple().exponent
    if isinstance(exponent, int) and -exponent > MAX_ETHER_DECIMALS:
        raise InvalidInput("bidAmount has more than 18 decimal places.")
    return int(Web3.to_wei(value, "ether"))


def to_unsigned(tx: Dict[str, Any]) -> UnsignedTransaction:
    value = tx.get("value")
    return UnsignedTransaction(
        to=tx["to"],
        data=tx["data"],
        from_=tx.get("from"),
        value=Web3.to_hex(value) if value is not None else None,
        chainId=tx.get("chainId"),
    )


class TransactionBuilder:
    """
    Builds the unsigned transactions for marketplace actions. The caller's
    address always comes from the session, and nothing is checked against
    on-chain state: ownership and approve-before-list ordering are enforced
    by the contracts when the wallet submits.
    """

    def __init__(self, chain: ChainClient, storage: StorageClient | None = None):
        self.chain = chain
        self.storage = storage

    async def build_mint(
        self,
        owner: str,
        name: str | None,
        description: str | None,
        price: Any,
        image: bytes | None,
        image_filename: str | None = None,
    ) -> UnsignedTransaction:
        owner = normalize_address(owner)
        name = (name or "").strip()
        description = (description or "").strip()
        if not name or not description or price is None or str(price).strip() == "" or not image:
            raise ValidationError("Missing required fields.")
        price_text = decimal_to_text(canonical_decimal(price, "price", error=ValidationError))
        if self.storage is None:
            raise StorageUnavailable("Storage provider is not configured.")

        def pin_and_populate() -> Dict[str, Any]:
            image_cid = self.storage.pin_image(image, name, image_filename)
            metadata = {
                "name": name,
                "description": description,
                "image": f"{IPFS_SCHEME}{image_cid}",
                "price": price_text,
                "owner": owner,
            }
            metadata_cid = self.storage.pin_json(metadata, name)
            token_uri = f"{IPFS_SCHEME}{metadata_cid}"
            logger.info(f"Pinned metadata for '{name}' owned by {owner}: {token_uri}")
            return self.chain.populate_mint(owner, token_uri)

        return to_unsigned(await asyncio.to_thread(pin_and_populate))

    def build_list(self, seller: str, token_id: Any) -> Tuple[UnsignedTransaction, UnsignedTransaction]:
        seller = normalize_address(seller)
        token_id = parse_token_id(token_id)
        approve_tx = self.chain.populate_approve(self.chain.marketplace_address, token_id, sender=seller)
        list_tx = self.chain.populate_list(token_id, sender=seller)
        logger.info(f"Built approve/list transactions for token {token_id} from {seller}")
        return to_unsigned(approve_tx), to_unsigned(list_tx)

    def build_bid(self, bidder: str, token_id: Any, bid_amount: Any) -> UnsignedTransaction:
        bidder = normalize_address(bidder)
        token_id = parse_token_id(token_id)
        amount_wei = ether_to_wei(bid_amount)
        logger.info(f"Built bid of {amount_wei} wei on token {token_id} from {bidder}")
        return to_unsigned(self.chain.populate_bid(token_id, amount_wei, sender=bidder))

    def build_accept_bid(self, seller: str, token_id: Any, buyer: str | None) -> UnsignedTransaction:
        seller = normalize_address(seller)
        token_id = parse_token_id(token_id)
        if not buyer or not Web3.is_address(buyer.strip()):
            raise InvalidInput("A valid buyerAddress is required.")
        logger.info(f"Built acceptBid for token {token_id} from {seller} to buyer {buyer}")
        return to_unsigned(self.chain.populate_accept_bid(token_id, buyer.strip(), sender=seller))
