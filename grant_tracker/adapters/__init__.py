"""
Source adapters for grant discovery.

Adapters:
- GrantsGovAdapter: grants.gov search2 API
- USASpendingAdapter: USAspending award search
- NIHReporterAdapter: NIH RePORTER (health/research queries only)
- RSSFeedAdapter: configured RSS feeds
- CacheScanAdapter: feed records stored by the feed monitor
"""

from datetime import date
from typing import Callable, Optional

from grant_tracker.core.http_client import HttpClient
from grant_tracker.storage.base import KeyValueStore

from .base import AdapterConfig, AdapterResult, FeedConfig, SourceAdapter
from .cache_scan import CacheScanAdapter
from .grants_gov import GrantsGovAdapter
from .nih_reporter import NIHReporterAdapter, is_health_research_query
from .rss_feed import RSSFeedAdapter, parse_rss_feed
from .usaspending import USASpendingAdapter

ADAPTER_TYPES: dict[str, type[SourceAdapter]] = {
    "grants_gov": GrantsGovAdapter,
    "usaspending": USASpendingAdapter,
    "nih_reporter": NIHReporterAdapter,
    "rss": RSSFeedAdapter,
    "cache_scan": CacheScanAdapter,
}


def build_adapter(
    config: AdapterConfig,
    http_client: Optional[HttpClient] = None,
    store: Optional[KeyValueStore] = None,
    feeds: Optional[list[FeedConfig]] = None,
    today: Callable[[], date] = date.today,
) -> SourceAdapter:
    """
    Instantiate the adapter class registered for config.type.

    Raises:
        ValueError: Unknown adapter type
    """
    adapter_class = ADAPTER_TYPES.get(config.type)
    if adapter_class is None:
        raise ValueError(f"Unknown adapter type: {config.type}")

    if adapter_class is RSSFeedAdapter:
        return RSSFeedAdapter(config, http_client, feeds=feeds, today=today)
    if adapter_class is CacheScanAdapter:
        return CacheScanAdapter(config, store=store, today=today)
    return adapter_class(config, http_client, today=today)


__all__ = [
    "ADAPTER_TYPES",
    "AdapterConfig",
    "AdapterResult",
    "FeedConfig",
    "SourceAdapter",
    "GrantsGovAdapter",
    "USASpendingAdapter",
    "NIHReporterAdapter",
    "RSSFeedAdapter",
    "CacheScanAdapter",
    "build_adapter",
    "is_health_research_query",
    "parse_rss_feed",
]
