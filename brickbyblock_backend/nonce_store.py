# brickbyblock_backend/nonce_store.py

import logging
import threading
import time
from dataclasses import dataclass
from typing import Dict

logger = logging.getLogger(__name__)


@dataclass
class PendingChallenge:
    nonce: str
    issued_at: float


class NonceStore:
    """
    In-memory map of wallet address -> pending challenge nonce.

    One active challenge per address: ``put`` replaces whatever was there, so
    the last writer wins. ``consume_if_matches`` only deletes the entry when it
    still holds the nonce the caller verified against.

    WARNING: This is lost on server restart and not shared between processes.
    """

    def __init__(self, ttl_seconds: int = 0, clock=time.monotonic):
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, PendingChallenge] = {}
        self._lock = threading.Lock()

    def _is_expired(self, entry: PendingChallenge) -> bool:
        return bool(self._ttl_seconds) and self._clock() - entry.issued_at > self._ttl_seconds

    def put(self, address: str, nonce: str) -> None:
        with self._lock:
            replaced = address in self._entries
            self._entries[address] = PendingChallenge(nonce=nonce, issued_at=self._clock())
        if replaced:
            logger.debug(f"Replaced pending challenge for {address}")

    def get(self, address: str) -> str | None:
        """Returns the pending nonce for an address, dropping it if it has expired."""
        with self._lock:
            entry = self._entries.get(address)
            if entry is None:
                return None
            if self._is_expired(entry):
                del self._entries[address]
                logger.debug(f"Expired challenge removed for {address}")
                return None
            return entry.nonce

    def consume_if_matches(self, address: str, nonce: str) -> bool:
        with self._lock:
            entry = self._entries.get(address)
            if entry is None or entry.nonce != nonce:
                return False
            del self._entries[address]
            return True

    def cleanup_expired(self) -> int:
        """Removes expired challenges and returns how many were dropped."""
        with self._lock:
            expired = [key for key, entry in self._entries.items() if self._is_expired(entry)]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
