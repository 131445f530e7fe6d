import requests
import logging
from typing import Any, Dict

from .. import config
from ..errors import MetadataUnavailable

logger = logging.getLogger(__name__)

IPFS_SCHEME = "ipfs://"


def to_gateway_url(uri: str, gateway: str | None = None) -> str:
    """Rewrites an ipfs:// locator to a fetchable gateway URL; other URLs pass through."""
    gateway = gateway or config.IPFS_GATEWAY_URL
    if uri.startswith(IPFS_SCHEME):
        path = uri[len(IPFS_SCHEME):]
        # Some minters write ipfs://ipfs/<cid>
        if path.startswith("ipfs/"):
            path = path[len("ipfs/"):]
        return f"{gateway.rstrip('/')}/{path}"
    return uri


def cid_from_uri(uri: str) -> str:
    """Returns the content address part of an ipfs:// or gateway URL."""
    if uri.startswith(IPFS_SCHEME):
        uri = uri[len(IPFS_SCHEME):]
    if "/ipfs/" in uri:
        uri = uri.split("/ipfs/", 1)[1]
    return uri.removeprefix("ipfs/").split("/", 1)[0]


class MetadataResolver:
    def __init__(self, gateway: str | None = None, timeout: int | None = None, session: requests.Session | None = None):
        self.gateway = gateway or config.IPFS_GATEWAY_URL
        self.timeout = timeout or config.STORAGE_REQUEST_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def resolve(self, uri: str) -> Dict[str, Any]:
        """
        Fetches the JSON metadata a token URI points at.

        The ``image`` field is rewritten to a gateway URL as well. Raises
        MetadataUnavailable when the document cannot be fetched or is not a
        JSON object.
        """
        if not uri or not isinstance(uri, str):
            raise MetadataUnavailable(f"Invalid metadata URI: {uri!r}")

        metadata_url = to_gateway_url(uri, self.gateway)
        try:
            response = self.session.get(metadata_url, timeout=self.timeout)
            response.raise_for_status()
            metadata = response.json()
        except requests.exceptions.RequestException as e:
            logger.warning(f"Failed to fetch metadata from {metadata_url}: {e}")
            raise MetadataUnavailable(f"Could not fetch metadata for {uri}") from e
        except ValueError as e:
            logger.warning(f"Metadata at {metadata_url} is not valid JSON: {e}")
            raise MetadataUnavailable(f"Could not parse metadata for {uri}") from e

        if not isinstance(metadata, dict):
            logger.warning(f"Metadata at {metadata_url} is not a JSON object")
            raise MetadataUnavailable(f"Could not parse metadata for {uri}")

        image = metadata.get("image")
        if isinstance(image, str):
            metadata["image"] = to_gateway_url(image, self.gateway)
        return metadata
