"""
Apify key-value store backend.

Logical keys such as "grants:user_ab12" or "search:{...json...}" contain
characters Apify rejects, so each is mapped to a safe key made of a
sanitized prefix and a SHA-256 digest. The CacheEntry envelope keeps the
logical key for listing.
"""

import hashlib
import re
import time
from typing import Any, Callable, Optional

import structlog
from apify import Actor

from grant_tracker.core.exceptions import StorageUnavailable

from .base import CacheEntry, KeyValueStore

logger = structlog.get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9!\-_.'()]+")
PREFIX_LENGTH = 40


def encode_key(key: str) -> str:
    """
    Map a logical key to an Apify-safe record key.

    Args:
        key: Logical key

    Returns:
        "<sanitized prefix>-<24 hex chars>"
    """
    prefix = _UNSAFE_CHARS.sub("-", key.split("{", 1)[0]).strip("-")[:PREFIX_LENGTH]
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:24]
    return f"{prefix}-{digest}" if prefix else digest


class ApifyKeyValueStore(KeyValueStore):
    """
    KeyValueStore over an opened Apify key-value store.

    Usage:
        async with Actor:
            kvs = await Actor.open_key_value_store(name="grant-tracker")
            store = ApifyKeyValueStore(kvs)
    """

    def __init__(self, kvs: Any, clock: Callable[[], float] = time.time):
        """
        Args:
            kvs: Store returned by Actor.open_key_value_store()
            clock: Epoch-seconds clock
        """
        super().__init__(clock)
        self.kvs = kvs

    @classmethod
    async def open(cls, name: Optional[str] = None) -> "ApifyKeyValueStore":
        """Open a named store (Actor must be initialized)."""
        try:
            kvs = await Actor.open_key_value_store(name=name)
        except Exception as e:
            raise StorageUnavailable(f"Cannot open key-value store: {e}") from e
        logger.info("apify_store_opened", name=name)
        return cls(kvs)

    async def _read(self, key: str) -> Optional[CacheEntry]:
        try:
            raw = await self.kvs.get_value(encode_key(key))
        except Exception as e:
            logger.error("store_read_failed", key=key, error=str(e))
            raise StorageUnavailable(f"Store read failed: {e}") from e

        if not isinstance(raw, dict) or "key" not in raw:
            return None
        return CacheEntry.from_dict(raw)

    async def get(self, key: str) -> Optional[Any]:
        entry = await self._read(key)
        if entry is None or entry.key != key:
            return None
        if entry.is_expired(self.clock()):
            await self.delete(key)
            return None
        return entry.value

    async def put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        entry = self.make_entry(key, value, ttl)
        try:
            await self.kvs.set_value(encode_key(key), entry.to_dict())
        except Exception as e:
            logger.error("store_write_failed", key=key, error=str(e))
            raise StorageUnavailable(f"Store write failed: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            # Setting None removes the record
            await self.kvs.set_value(encode_key(key), None)
        except Exception as e:
            logger.error("store_delete_failed", key=key, error=str(e))
            raise StorageUnavailable(f"Store delete failed: {e}") from e

    async def list_keys(self, prefix: str = "") -> list[str]:
        """
        List live logical keys under prefix.

        Record keys only carry a sanitized prefix, so candidates are
        filtered on it first and confirmed against the stored envelope.
        """
        safe_prefix = _UNSAFE_CHARS.sub("-", prefix).strip("-")
        now = self.clock()
        keys = []
        try:
            async for info in self.kvs.iterate_keys():
                if safe_prefix and not info.key.startswith(safe_prefix):
                    continue
                raw = await self.kvs.get_value(info.key)
                if not isinstance(raw, dict) or "key" not in raw:
                    continue
                entry = CacheEntry.from_dict(raw)
                if entry.key.startswith(prefix) and not entry.is_expired(now):
                    keys.append(entry.key)
        except Exception as e:
            logger.error("store_list_failed", prefix=prefix, error=str(e))
            raise StorageUnavailable(f"Store listing failed: {e}") from e
        return sorted(keys)
