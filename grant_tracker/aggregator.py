"""
Concurrent fan-out over source adapters.

Every adapter is started before any is awaited, so a request resolves
within roughly one adapter timeout. Each adapter carries its own error
boundary; results are concatenated in declaration order.
"""

import asyncio
from dataclasses import dataclass, field

import structlog

from .adapters.base import AdapterResult, SourceAdapter
from .core.models import GrantRecord, SearchQuery

logger = structlog.get_logger(__name__)


@dataclass
class AggregateResult:
    """Combined adapter output."""
    records: list[GrantRecord] = field(default_factory=list)
    outcomes: list[AdapterResult] = field(default_factory=list)

    @property
    def all_failed(self) -> bool:
        """
        True when no upstream source answered.

        Local adapters only rescue the request when they actually found
        records; an empty local scan next to failed upstreams still counts
        as all sources down.
        """
        ran = [o for o in self.outcomes if not o.skipped]
        if any(o.ok for o in ran if not o.local):
            return False
        return not any(o.ok and o.records for o in ran if o.local)

    @property
    def failed_sources(self) -> list[str]:
        return [o.name for o in self.outcomes if not o.skipped and not o.ok]

    def sources(self) -> list[dict]:
        return [o.to_source_dict() for o in self.outcomes]

    def errors(self) -> list[str]:
        """Diagnostic "<adapter>: <reason>" strings for failed adapters."""
        return [f"{o.name}: {o.error}" for o in self.outcomes if not o.skipped and not o.ok]


class Aggregator:
    """Runs a fixed list of adapters for one query."""

    def __init__(self, adapters: list[SourceAdapter]):
        self.adapters = adapters

    async def run(self, query: SearchQuery) -> AggregateResult:
        """
        Query all adapters concurrently.

        Args:
            query: Search query

        Returns:
            AggregateResult with records in adapter declaration order
        """
        outcomes = await asyncio.gather(*(adapter.search(query) for adapter in self.adapters))

        records: list[GrantRecord] = []
        for outcome in outcomes:
            records.extend(outcome.records)

        result = AggregateResult(records=records, outcomes=list(outcomes))
        logger.info(
            "aggregation_complete",
            query=query.query,
            adapters=len(self.adapters),
            records=len(records),
            failed=result.failed_sources,
        )
        return result
