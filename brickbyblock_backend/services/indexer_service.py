import asyncio
import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, Iterator, List, Tuple, TypeVar

from web3 import Web3

from .. import config
from ..errors import InvalidInput, MetadataUnavailable
from ..models.asset_models import MAX_TOKEN_ID, AssetRecord, Bid
from .chain_service import ChainClient
from .identity_service import normalize_address
from .metadata_service import IPFS_SCHEME, MetadataResolver, cid_from_uri
from .storage_service import METADATA_PREFIX, StorageClient

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def block_windows(start_block: int, end_block: int, window_size: int) -> Iterator[Tuple[int, int]]:
    """
    Splits the inclusive range [start_block, end_block] into consecutive
    inclusive windows of at most ``window_size`` blocks. Windows never overlap
    and leave no gaps.
    """
    if window_size < 1:
        raise ValueError("window_size must be positive")
    from_block = max(0, start_block)
    while from_block <= end_block:
        to_block = min(from_block + window_size - 1, end_block)
        yield from_block, to_block
        from_block = to_block + 1


def format_ether(amount_wei: int) -> str:
    """Formats wei as an ether decimal string, always with a fractional part ('1.0', '0.25')."""
    # from_wei returns a plain int 0 for zero amounts
    ether = Decimal(Web3.from_wei(amount_wei, "ether"))
    text = format(ether.normalize(), "f")
    return text if "." in text else f"{text}.0"


def parse_token_id(raw: Any) -> int:
    try:
        token_id = int(str(raw).strip())
    except (TypeError, ValueError):
        raise InvalidInput(f"Invalid token id: {raw!r}")
    if token_id < 0 or token_id > MAX_TOKEN_ID:
        raise InvalidInput(f"Invalid token id: {raw!r}")
    return token_id


def _as_text(value: Any) -> str | None:
    return None if value is None else str(value)


def build_record(asset_id: str, owner: str | None, metadata: Dict[str, Any], metadata_uri: str) -> AssetRecord:
    return AssetRecord(
        id=asset_id,
        owner=owner,
        name=_as_text(metadata.get("name")),
        description=_as_text(metadata.get("description")),
        imagePath=_as_text(metadata.get("image")),
        price=_as_text(metadata.get("price")),
        contentAddress=cid_from_uri(metadata_uri),
    )


async def gather_bounded(items: Iterable[T], worker: Callable[[T], R], limit: int) -> List[R]:
    """
    Runs a blocking ``worker`` over ``items`` in threads, at most ``limit`` at
    a time, and returns the results in input order.
    """
    semaphore = asyncio.Semaphore(max(1, limit))

    async def run(item: T) -> R:
        async with semaphore:
            return await asyncio.to_thread(worker, item)

    return await asyncio.gather(*(run(item) for item in items))


class CatalogSource(ABC):
    """Produces the full marketplace catalog, newest asset first."""

    @abstractmethod
    async def list_assets(self) -> List[AssetRecord]:
        ...


class EventScanCatalog(CatalogSource):
    """Catalog built from AssetMinted logs; ids and owners come from the chain."""

    def __init__(
        self,
        chain: ChainClient,
        resolver: MetadataResolver,
        window_size: int | None = None,
        start_block: int | None = None,
        concurrency: int | None = None,
    ):
        self.chain = chain
        self.resolver = resolver
        self.window_size = window_size or config.LOG_SCAN_BLOCK_WINDOW
        self.start_block = config.LOG_SCAN_START_BLOCK if start_block is None else start_block
        self.concurrency = concurrency or config.METADATA_FETCH_CONCURRENCY

    def scan_mint_logs(self, latest_block: int | None = None) -> List[Dict[str, Any]]:
        if latest_block is None:
            latest_block = self.chain.get_latest_block()
        logs: List[Dict[str, Any]] = []
        windows = 0
        for from_block, to_block in block_windows(self.start_block, latest_block, self.window_size):
            logs.extend(self.chain.query_logs(from_block, to_block))
            windows += 1
        logger.info(
            f"Scanned blocks {self.start_block}..{latest_block} in {windows} windows, found {len(logs)} mint events"
        )
        # Oldest first; callers reverse for display order
        logs.sort(key=lambda log: (log["block_number"], log["log_index"]))
        return logs

    def _record_for_log(self, log: Dict[str, Any]) -> AssetRecord | None:
        try:
            metadata = self.resolver.resolve(log["token_uri"])
        except MetadataUnavailable as e:
            logger.warning(f"Skipping token {log['token_id']}: {e}")
            return None
        return build_record(str(log["token_id"]), log["owner"], metadata, log["token_uri"])

    async def list_assets(self) -> List[AssetRecord]:
        logs = await asyncio.to_thread(self.scan_mint_logs)
        records = await gather_bounded(reversed(logs), self._record_for_log, self.concurrency)
        assets = [record for record in records if record is not None]
        if len(assets) != len(logs):
            logger.info(f"Omitted {len(logs) - len(assets)} assets with unavailable metadata")
        return assets


class PinnedMetadataCatalog(CatalogSource):
    """
    Catalog built by enumerating pinned ``Metadata_*`` documents.

    Owner and price come from the metadata itself, not from the chain, so this
    mode has weaker provenance than event scanning.
    """

    def __init__(self, storage: StorageClient, resolver: MetadataResolver, concurrency: int | None = None):
        self.storage = storage
        self.resolver = resolver
        self.concurrency = concurrency or config.METADATA_FETCH_CONCURRENCY

    def _record_for_pin(self, pin: Dict[str, Any]) -> AssetRecord | None:
        uri = f"{IPFS_SCHEME}{pin['cid']}"
        try:
            metadata = self.resolver.resolve(uri)
        except MetadataUnavailable as e:
            logger.warning(f"Skipping pinned metadata {pin['cid']}: {e}")
            return None
        return build_record(pin["cid"], _as_text(metadata.get("owner")), metadata, uri)

    async def list_assets(self) -> List[AssetRecord]:
        pins = await asyncio.to_thread(self.storage.list_pins)
        metadata_pins = [
            pin for pin in pins
            if pin.get("cid") and pin.get("file_name", "").startswith(METADATA_PREFIX)
        ]
        logger.info(f"Found {len(metadata_pins)} metadata pins out of {len(pins)} pinned files")
        records = await gather_bounded(metadata_pins, self._record_for_pin, self.concurrency)
        return [record for record in records if record is not None]


class AssetIndexer:
    def __init__(
        self,
        chain: ChainClient,
        resolver: MetadataResolver,
        catalog: CatalogSource,
        concurrency: int | None = None,
    ):
        self.chain = chain
        self.resolver = resolver
        self.catalog = catalog
        self.concurrency = concurrency or config.METADATA_FETCH_CONCURRENCY

    async def list_assets(self) -> List[AssetRecord]:
        return await self.catalog.list_assets()

    async def get_asset(self, token_id: Any) -> AssetRecord:
        token_id = parse_token_id(token_id)

        def lookup() -> AssetRecord:
            owner = self.chain.owner_of(token_id)
            token_uri = self.chain.token_uri(token_id)
            metadata = self.resolver.resolve(token_uri)
            return build_record(str(token_id), owner, metadata, token_uri)

        return await asyncio.to_thread(lookup)

    async def get_bids(self, token_id: Any) -> List[Bid]:
        token_id = parse_token_id(token_id)
        raw_bids = await asyncio.to_thread(self.chain.bids_for_asset, token_id)
        return [
            Bid(assetId=str(token_id), bidder=bidder, amount=format_ether(amount))
            for bidder, amount in raw_bids
        ]

    async def get_owned(self, address: str) -> List[AssetRecord]:
        """
        Portfolio lookup: one balanceOf plus tokenOfOwnerByIndex/tokenURI per
        owned token. Newest index first.
        """
        owner = normalize_address(address)
        balance = await asyncio.to_thread(self.chain.balance_of, owner)
        logger.info(f"Address {owner} owns {balance} tokens")

        def record_for_index(index: int) -> AssetRecord | None:
            token_id = self.chain.token_of_owner_by_index(owner, index)
            token_uri = self.chain.token_uri(token_id)
            try:
                metadata = self.resolver.resolve(token_uri)
            except MetadataUnavailable as e:
                logger.warning(f"Skipping owned token {token_id}: {e}")
                return None
            return build_record(str(token_id), owner, metadata, token_uri)

        records = await gather_bounded(reversed(range(int(balance))), record_for_index, self.concurrency)
        return [record for record in records if record is not None]
