"""
Storage backends.

- MemoryStore: in-process TTL store (default)
- ApifyKeyValueStore: Apify platform key-value store
"""

from .base import CacheEntry, KeyValueStore, MemoryStore
from .apify_store import ApifyKeyValueStore, encode_key

__all__ = ["CacheEntry", "KeyValueStore", "MemoryStore", "ApifyKeyValueStore", "encode_key"]
