import os
import logging
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _int_env(name: str, default: int) -> int:
    """Reads an integer setting, falling back to the default if it is invalid."""
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        logger.warning(f"Invalid {name} in .env file. Defaulting to {default}.")
        return default


# --- Chain ---
RPC_URL = os.getenv("RPC_URL")
CHAIN_ID = _int_env("CHAIN_ID", 0) or None
NFT_CONTRACT_ADDRESS = os.getenv("NFT_CONTRACT_ADDRESS")
MARKETPLACE_CONTRACT_ADDRESS = os.getenv("MARKETPLACE_CONTRACT_ADDRESS")
CHAIN_REQUEST_TIMEOUT_SECONDS = _int_env("CHAIN_REQUEST_TIMEOUT_SECONDS", 20)

# --- Storage (Lighthouse / IPFS) ---
LIGHTHOUSE_API_KEY = os.getenv("LIGHTHOUSE_API_KEY")
LIGHTHOUSE_API_URL = os.getenv("LIGHTHOUSE_API_URL", "https://api.lighthouse.storage")
IPFS_GATEWAY_URL = os.getenv("IPFS_GATEWAY_URL", "https://gateway.lighthouse.storage/ipfs/")
STORAGE_REQUEST_TIMEOUT_SECONDS = _int_env("STORAGE_REQUEST_TIMEOUT_SECONDS", 30)

# JWT Settings
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_ACCESS_TOKEN_EXPIRE_MINUTES = _int_env("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24)

# Pending challenges older than this are discarded; 0 keeps them until used or replaced
CHALLENGE_TTL_SECONDS = _int_env("CHALLENGE_TTL_SECONDS", 600)

# --- Indexing ---
# "events" scans AssetMinted logs, "pins" enumerates pinned metadata files
CATALOG_SOURCE = os.getenv("CATALOG_SOURCE", "events").strip().lower()
LOG_SCAN_START_BLOCK = _int_env("LOG_SCAN_START_BLOCK", 0)
# Most public RPC providers cap eth_getLogs at 2048 blocks per call
LOG_SCAN_BLOCK_WINDOW = _int_env("LOG_SCAN_BLOCK_WINDOW", 2048)
METADATA_FETCH_CONCURRENCY = _int_env("METADATA_FETCH_CONCURRENCY", 8)

# Frontend origins allowed by CORS
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
    if origin.strip()
]

# Basic validation
if not RPC_URL:
    logger.warning("RPC_URL not found in .env file. Chain reads will fail.")
if not NFT_CONTRACT_ADDRESS or not MARKETPLACE_CONTRACT_ADDRESS:
    logger.warning("NFT_CONTRACT_ADDRESS or MARKETPLACE_CONTRACT_ADDRESS not found in .env file.")
if not LIGHTHOUSE_API_KEY:
    logger.warning("LIGHTHOUSE_API_KEY not found in .env file. Pinning will fail.")
if not JWT_SECRET_KEY:
    logger.warning("JWT_SECRET_KEY not found in .env file. Authentication will fail.")
if CATALOG_SOURCE not in ("events", "pins"):
    logger.warning(f"Unknown CATALOG_SOURCE '{CATALOG_SOURCE}'. Defaulting to 'events'.")
    CATALOG_SOURCE = "events"
if LOG_SCAN_BLOCK_WINDOW < 1:
    logger.warning("LOG_SCAN_BLOCK_WINDOW must be positive. Defaulting to 2048.")
    LOG_SCAN_BLOCK_WINDOW = 2048
