"""
Key-value store abstraction with TTL envelopes.

Every value is wrapped in a CacheEntry {key, value, expiresAt}; a read past
expiresAt behaves as a miss. Backends raise StorageUnavailable on failure.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class CacheEntry:
    """Stored envelope. Never updated in place, only replaced."""
    key: str
    value: Any
    expires_at: Optional[float] = None  # epoch seconds, None = no expiry

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at

    def to_dict(self) -> dict:
        return {"key": self.key, "value": self.value, "expiresAt": self.expires_at}

    @classmethod
    def from_dict(cls, data: dict) -> "CacheEntry":
        return cls(
            key=data["key"],
            value=data.get("value"),
            expires_at=data.get("expiresAt"),
        )


class KeyValueStore(ABC):
    """
    Async key-value store with optional per-entry TTL.

    Args (common to implementations):
        clock: Callable returning epoch seconds (injectable for tests)
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock

    def make_entry(self, key: str, value: Any, ttl: Optional[int]) -> CacheEntry:
        expires_at = self.clock() + ttl if ttl else None
        return CacheEntry(key=key, value=value, expires_at=expires_at)

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None if missing or expired."""
        pass

    @abstractmethod
    async def put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store value under key, replacing any existing entry."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key (no-op when missing)."""
        pass

    @abstractmethod
    async def list_keys(self, prefix: str = "") -> list[str]:
        """Live keys starting with prefix, sorted."""
        pass

    async def close(self) -> None:
        pass


class MemoryStore(KeyValueStore):
    """In-process store. Expired entries are evicted lazily on access."""

    def __init__(self, clock: Callable[[], float] = time.time):
        super().__init__(clock)
        self._entries: dict[str, CacheEntry] = {}

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self.clock()):
            del self._entries[key]
            logger.debug("store_entry_expired", key=key)
            return None
        return entry.value

    async def put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        self._entries[key] = self.make_entry(key, value, ttl)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def list_keys(self, prefix: str = "") -> list[str]:
        now = self.clock()
        return sorted(
            key for key, entry in self._entries.items()
            if key.startswith(prefix) and not entry.is_expired(now)
        )

    def __len__(self) -> int:
        return len(self._entries)
