"""
Cached feed scan adapter.

Searches the feed records the monitor stored under "rss-grants:" keys,
so enhanced searches can include feed items without refetching them.
"""

import dataclasses
from datetime import date
from typing import Callable, Optional

from grant_tracker.core.models import GrantRecord, SearchQuery
from grant_tracker.core.normalizer import calculate_match_percentage
from grant_tracker.storage.base import KeyValueStore

from .base import AdapterConfig, SourceAdapter

FEED_GRANTS_PREFIX = "rss-grants:"
FEED_STATUS_PREFIX = "feed-status:"
DEFAULT_MAX_ENTRIES = 10


class CacheScanAdapter(SourceAdapter):
    """Matches a query against stored feed records."""

    local = True

    def __init__(
        self,
        config: AdapterConfig,
        store: Optional[KeyValueStore] = None,
        today: Callable[[], date] = date.today,
    ):
        super().__init__(config, None, today)
        self.store = store
        self.max_entries = int(config.options.get("max_entries", DEFAULT_MAX_ENTRIES))

    def is_applicable(self, query: SearchQuery) -> bool:
        return self.store is not None

    async def fetch(self, query: SearchQuery) -> list[GrantRecord]:
        keys = await self.store.list_keys(FEED_GRANTS_PREFIX)

        records = []
        for key in keys[: self.max_entries]:
            entry = await self.store.get(key)
            if not entry:
                continue
            for data in entry.get("grants", []):
                record = GrantRecord.from_dict(data, today=self.today())
                if not query.matches_text(record.search_text):
                    continue
                records.append(dataclasses.replace(
                    record,
                    match_percentage=calculate_match_percentage(
                        record.title,
                        record.description,
                        query.query,
                        record.category,
                        query.category,
                    ),
                ))

        return records
