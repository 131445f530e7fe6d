import requests
from lighthouseweb3 import Lighthouse
from .. import config
from ..errors import StorageUnavailable
import json
import logging
import os
import tempfile
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

UPLOAD_TAG = "brickbyblock"
METADATA_PREFIX = "Metadata_"
IMAGE_PREFIX = "Asset_"


def _safe_filename(name: str) -> str:
    """Keeps user-supplied asset names usable as a single path component."""
    cleaned = "".join(ch if ch.isalnum() or ch in "-_ ." else "_" for ch in name).strip()
    return cleaned or "unnamed"


class StorageClient:
    """Pins files to Lighthouse (IPFS) and enumerates what has been pinned."""

    def __init__(self, lighthouse: Lighthouse, api_key: str):
        self.lighthouse = lighthouse
        self._api_key = api_key

    @classmethod
    def from_config(cls) -> "StorageClient":
        if not config.LIGHTHOUSE_API_KEY:
            logger.error("CRITICAL: LIGHTHOUSE_API_KEY not configured in .env. Uploads will fail.")
            raise StorageUnavailable("Storage provider is not configured.")
        return cls(Lighthouse(token=config.LIGHTHOUSE_API_KEY), config.LIGHTHOUSE_API_KEY)

    def pin_file(self, file_path: str) -> str:
        """Uploads a file to Lighthouse Storage and returns the CID."""
        if not os.path.exists(file_path):
            logger.error(f"File not found for upload: {file_path}")
            raise StorageUnavailable("File to pin does not exist.")

        logger.info(f"Attempting to upload {os.path.basename(file_path)} to Lighthouse...")
        try:
            result = self.lighthouse.upload(source=file_path, tag=UPLOAD_TAG)
        except Exception as e:
            logger.error(f"Error during Lighthouse upload of {file_path}: {e}", exc_info=True)
            raise StorageUnavailable("Failed to pin file to storage.") from e
        logger.debug(f"Lighthouse upload API response: {result}")

        if result and isinstance(result, dict) and isinstance(result.get('data'), dict) and 'Hash' in result['data']:
            cid = result['data']['Hash']
            name = result['data'].get('Name', os.path.basename(file_path))
            size = result['data'].get('Size', 'N/A')
            logger.info(f"Upload successful! CID: {cid}, Name: {name}, Size: {size}")
            return cid

        logger.error(f"Lighthouse upload failed or returned unexpected format. Response: {result}")
        raise StorageUnavailable("Storage provider returned an unexpected response.")

    def pin_bytes(self, content: bytes, filename: str) -> str:
        """Writes content to a temporary file named ``filename`` and pins it."""
        with tempfile.TemporaryDirectory() as temp_dir:
            temp_file_path = os.path.join(temp_dir, _safe_filename(filename))
            with open(temp_file_path, "wb") as buffer:
                buffer.write(content)
            return self.pin_file(temp_file_path)

    def pin_image(self, content: bytes, asset_name: str, original_filename: str | None = None) -> str:
        _, ext = os.path.splitext(original_filename or "")
        return self.pin_bytes(content, f"{IMAGE_PREFIX}{asset_name}{ext}")

    def pin_json(self, document: Dict[str, Any], asset_name: str) -> str:
        payload = json.dumps(document, separators=(",", ":")).encode("utf-8")
        return self.pin_bytes(payload, f"{METADATA_PREFIX}{asset_name}.json")

    def list_pins(self) -> List[Dict[str, Any]]:
        """
        Lists every file uploaded with this API key, newest first, following
        the Lighthouse ``lastKey`` pagination until all pages are read.
        """
        url = f"{config.LIGHTHOUSE_API_URL.rstrip('/')}/api/user/files_uploaded"
        headers = {"Authorization": f"Bearer {self._api_key}"}
        pins: List[Dict[str, Any]] = []
        last_key = None

        while True:
            try:
                response = requests.get(
                    url,
                    headers=headers,
                    params={"lastKey": last_key} if last_key else None,
                    timeout=config.STORAGE_REQUEST_TIMEOUT_SECONDS,
                )
                response.raise_for_status()
                body = response.json()
            except (requests.exceptions.RequestException, ValueError) as e:
                logger.error(f"Error listing Lighthouse uploads: {e}", exc_info=True)
                raise StorageUnavailable("Failed to list pinned files.") from e

            page = body.get("fileList") or []
            for item in page:
                pins.append({
                    "cid": item.get("cid"),
                    "file_name": item.get("fileName") or "",
                    "created_at": item.get("createdAt") or 0,
                })
            total = body.get("totalFiles")
            if not page or total is None or len(pins) >= int(total):
                break
            last_key = page[-1].get("id")
            if not last_key:
                break

        logger.info(f"Listed {len(pins)} pinned files from Lighthouse")
        pins.sort(key=lambda pin: pin["created_at"], reverse=True)
        return pins
