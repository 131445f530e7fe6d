# brickbyblock_backend/dependencies.py

import logging
from functools import lru_cache

from . import config
from .errors import StorageUnavailable
from .nonce_store import NonceStore
from .services.chain_service import ChainClient
from .services.identity_service import IdentityBroker
from .services.indexer_service import AssetIndexer, CatalogSource, EventScanCatalog, PinnedMetadataCatalog
from .services.metadata_service import MetadataResolver
from .services.storage_service import StorageClient
from .services.transaction_service import TransactionBuilder

logger = logging.getLogger(__name__)

# Process-wide singletons, created on first use so that a missing RPC or
# storage setting only fails the endpoints that need it.


@lru_cache(maxsize=1)
def get_identity_broker() -> IdentityBroker:
    return IdentityBroker(NonceStore(ttl_seconds=config.CHALLENGE_TTL_SECONDS))


@lru_cache(maxsize=1)
def get_chain_client() -> ChainClient:
    return ChainClient.from_config()


@lru_cache(maxsize=1)
def get_metadata_resolver() -> MetadataResolver:
    return MetadataResolver()


def _optional_storage_client() -> StorageClient | None:
    try:
        return StorageClient.from_config()
    except StorageUnavailable:
        return None


@lru_cache(maxsize=1)
def get_catalog_source() -> CatalogSource:
    if config.CATALOG_SOURCE == "pins":
        logger.info("Catalog source: pinned metadata enumeration")
        return PinnedMetadataCatalog(StorageClient.from_config(), get_metadata_resolver())
    logger.info("Catalog source: AssetMinted event scan")
    return EventScanCatalog(get_chain_client(), get_metadata_resolver())


@lru_cache(maxsize=1)
def get_asset_indexer() -> AssetIndexer:
    return AssetIndexer(get_chain_client(), get_metadata_resolver(), get_catalog_source())


@lru_cache(maxsize=1)
def get_transaction_builder() -> TransactionBuilder:
    return TransactionBuilder(get_chain_client(), _optional_storage_client())
