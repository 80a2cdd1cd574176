"""Shared API credential pool with idempotent rate-limit rotation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable
import logging
import threading


logger = logging.getLogger("wildgrove_core.llm.credentials")


@dataclass(frozen=True)
class Credential:
    slot: int
    api_key: str | None


class CredentialPool:
    """Ordered API keys; one is current at a time.

    Planner calls run on worker threads, so rotation is a compare-and-swap on
    the current key under a lock: any number of callers reporting a 429 for
    the same key advance the pool exactly once.
    """

    def __init__(self, api_keys: Iterable[str | None]) -> None:
        keys = [str(key).strip() for key in api_keys if key and str(key).strip()]
        deduped: list[str] = []
        for key in keys:
            if key not in deduped:
                deduped.append(key)
        self._keys: list[str | None] = list(deduped) or [None]
        self._index = 0
        self._rotations = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._keys)

    def current(self) -> Credential:
        with self._lock:
            return Credential(slot=self._index, api_key=self._keys[self._index])

    def rotate_on_rate_limit(self, failed: Credential) -> bool:
        """Advance past ``failed`` if it is still current. Returns True if rotated."""
        with self._lock:
            if len(self._keys) < 2:
                logger.warning("[CREDENTIALS] Rate limited but no alternate API key is configured")
                return False
            if failed.slot != self._index or failed.api_key != self._keys[self._index]:
                return False
            self._index = (self._index + 1) % len(self._keys)
            self._rotations += 1
            logger.warning(
                "[CREDENTIALS] Rate limit on slot %d, rotated to slot %d (rotation #%d)",
                failed.slot,
                self._index,
                self._rotations,
            )
            return True

    @property
    def rotations(self) -> int:
        with self._lock:
            return self._rotations

    def status(self) -> dict[str, object]:
        with self._lock:
            return {
                "size": len(self._keys) if self._keys != [None] else 0,
                "current_slot": self._index,
                "rotations": self._rotations,
            }
