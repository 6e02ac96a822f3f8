"""
Search orchestrator (cache gateway).

Coordinates:
- Cache lookup keyed by the canonical query
- Adapter fan-out through the aggregator
- Filtering, deduplication and ranking
- Write-back of successful, non-empty results
"""

from datetime import datetime, timezone
from typing import Iterable, Optional

import structlog

from .adapters import build_adapter
from .adapters.base import SourceAdapter
from .aggregator import Aggregator
from .context import AppContext
from .core.deduplicator import deduplicate, rank_grants
from .core.exceptions import StorageUnavailable
from .core.models import GrantRecord, SearchFailed, SearchOk, SearchOutcome, SearchQuery
from .core.normalizer import normalize_location

logger = structlog.get_logger(__name__)

BASIC = "basic"
ENHANCED = "enhanced"

CACHE_PREFIXES = {
    BASIC: "search:",
    ENHANCED: "enhanced_search:",
}

ALL_SOURCES_DOWN = "All grant sources are currently unavailable. Please try again later."


def filter_grants(records: Iterable[GrantRecord], query: SearchQuery) -> list[GrantRecord]:
    """
    Apply the query's optional filters.

    - category: strict, case-insensitive equality with the record category
    - minAmount/maxAmount: records with unknown amount (0) always pass
    - funderType: case-insensitive substring of the record funder type
    - location: records without a detected location always pass

    Args:
        records: Candidate records
        query: Search query

    Returns:
        Records passing every filter, order preserved
    """
    category = query.category.strip().lower() if query.category else None
    funder_type = query.funder_type.strip().lower() if query.funder_type else None
    location = None
    if query.location:
        location = (normalize_location(query.location) or query.location.strip()).lower()

    kept = []
    for record in records:
        if category and record.category.value.lower() != category:
            continue
        if query.min_amount is not None and record.amount and record.amount < query.min_amount:
            continue
        if query.max_amount is not None and record.amount and record.amount > query.max_amount:
            continue
        if funder_type and funder_type not in record.funder_type.value.lower():
            continue
        if location and record.location and record.location.lower() != location:
            continue
        kept.append(record)
    return kept


class SearchOrchestrator:
    """
    Get-or-compute search over the configured adapters.

    Adapters are built once per endpoint from the context config.
    """

    def __init__(
        self,
        context: AppContext,
        adapters: Optional[dict[str, list[SourceAdapter]]] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            context: Shared application context
            adapters: Pre-built adapters per endpoint (default: built from config)
        """
        self.context = context
        self._adapters: dict[str, list[SourceAdapter]] = dict(adapters or {})

    def adapters_for(self, endpoint: str) -> list[SourceAdapter]:
        """Adapters serving an endpoint, in declaration order."""
        if endpoint not in self._adapters:
            self._adapters[endpoint] = [
                build_adapter(
                    adapter_config,
                    http_client=self.context.http_client,
                    store=self.context.store,
                    feeds=self.context.config.feeds,
                    today=self.context.today,
                )
                for adapter_config in self.context.config.adapters_for(endpoint)
            ]
        return self._adapters[endpoint]

    def cache_key(self, query: SearchQuery, endpoint: str = BASIC) -> str:
        return f"{CACHE_PREFIXES[endpoint]}{query.canonical()}"

    def _limits(self, endpoint: str) -> tuple[int, int]:
        """(result cap, cache TTL) for an endpoint."""
        search = self.context.config.search
        if endpoint == ENHANCED:
            return search.enhanced_limit, search.enhanced_ttl
        return search.basic_limit, search.basic_ttl

    async def _read_cache(self, key: str) -> tuple[Optional[dict], bool]:
        """Returns (cached payload, store degraded)."""
        try:
            return await self.context.store.get(key), False
        except StorageUnavailable as e:
            logger.warning("cache_read_failed", key=key, error=e.message)
            return None, True

    async def _write_cache(self, key: str, payload: dict, ttl: int) -> bool:
        """Returns True when the store is degraded."""
        try:
            await self.context.store.put(key, payload, ttl=ttl)
        except StorageUnavailable as e:
            logger.warning("cache_write_failed", key=key, error=e.message)
            return True
        return False

    async def search(self, query: SearchQuery, endpoint: str = BASIC) -> SearchOutcome:
        """
        Run a search, serving from cache when possible.

        Args:
            query: Validated search query
            endpoint: "basic" or "enhanced"

        Returns:
            SearchOk (possibly partial or degraded) or SearchFailed when
            every source failed
        """
        if endpoint not in CACHE_PREFIXES:
            raise ValueError(f"Unknown search endpoint: {endpoint}")

        log = logger.bind(endpoint=endpoint, query=query.query)
        key = self.cache_key(query, endpoint)
        limit, ttl = self._limits(endpoint)

        degraded = False
        if not query.fresh:
            cached, degraded = await self._read_cache(key)
            if cached:
                log.info("cache_hit")
                return SearchOk(payload=cached, cache_hit=True)

        result = await Aggregator(self.adapters_for(endpoint)).run(query)

        if result.all_failed:
            log.error("all_sources_failed", sources=result.failed_sources)
            payload = {
                "error": True,
                "message": ALL_SOURCES_DOWN,
                "results": [],
                "totalFound": 0,
                "errors": result.errors(),
                "sources": result.sources(),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
            return SearchFailed(message=ALL_SOURCES_DOWN, payload=payload)

        unique = deduplicate(filter_grants(result.records, query))
        ranked = rank_grants(unique, self.context.today(), limit=limit)

        payload = {
            "results": [grant.to_dict() for grant in ranked],
            "totalFound": len(unique),
            "searchParams": query.to_params(),
            "sources": result.sources(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if result.failed_sources:
            payload["errors"] = result.errors()
        if endpoint == ENHANCED:
            payload["enhanced"] = True

        if ranked:
            degraded = await self._write_cache(key, payload, ttl) or degraded

        log.info(
            "search_complete",
            fetched=len(result.records),
            unique=len(unique),
            returned=len(ranked),
            degraded=degraded,
        )
        return SearchOk(payload=payload, cache_hit=False, degraded=degraded)
