"""
Base class for source adapters.

Adapters query one upstream source (an API, a set of RSS feeds, or the
store) and map its payload into GrantRecords. The public search() never
raises: failures and timeouts become an empty AdapterResult carrying an
error string, so one broken source cannot abort the others.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Optional

import httpx
import structlog

from grant_tracker.core.deduplicator import generate_grant_id
from grant_tracker.core.http_client import HttpClient
from grant_tracker.core.models import (
    DESCRIPTION_MAX_LENGTH,
    Category,
    FunderType,
    GrantRecord,
    SearchQuery,
)
from grant_tracker.core.normalizer import (
    calculate_match_percentage,
    clean_text,
    extract_category,
    extract_location,
    extract_requirements,
    normalize_title,
    truncate,
)

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 10.0


def describe_error(error: Exception) -> str:
    """
    Short public description of an adapter failure.

    HTTP status errors report only the status code; other errors keep the
    first line of their message. Upstream URLs and response bodies stay in
    the logs.
    """
    name = type(error).__name__
    if isinstance(error, httpx.HTTPStatusError):
        return f"{name}: HTTP {error.response.status_code}"
    lines = str(error).strip().splitlines()
    return f"{name}: {lines[0]}" if lines else name


@dataclass
class AdapterConfig:
    """Configuration for one source adapter."""

    name: str
    type: str

    enabled: bool = True
    base_url: str = ""
    api_key: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    max_results: int = 10
    default_deadline_days: int = 90

    # Which search endpoints use this adapter ("basic", "enhanced")
    endpoints: list[str] = field(default_factory=lambda: ["basic", "enhanced"])

    # Adapter-specific extras
    options: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "AdapterConfig":
        """Create from dictionary (e.g., from YAML)."""
        return cls(
            name=data["name"],
            type=data["type"],
            enabled=data.get("enabled", True),
            base_url=data.get("base_url") or "",
            api_key=data.get("api_key") or None,
            timeout=float(data.get("timeout", DEFAULT_TIMEOUT)),
            max_results=int(data.get("max_results", 10)),
            default_deadline_days=int(data.get("default_deadline_days", 90)),
            endpoints=list(data.get("endpoints") or ["basic", "enhanced"]),
            options=data.get("options") or {},
        )


@dataclass
class FeedConfig:
    """An RSS feed to read."""

    url: str
    name: str
    type: str = "federal"  # federal, foundation, state, corporate
    category: Optional[str] = None  # overrides keyword inference
    active: bool = True

    @classmethod
    def from_dict(cls, data: dict) -> "FeedConfig":
        return cls(
            url=data["url"],
            name=data["name"],
            type=data.get("type", "federal"),
            category=data.get("category"),
            active=data.get("active", True),
        )


@dataclass
class AdapterResult:
    """Outcome of one adapter call."""

    name: str
    records: list[GrantRecord] = field(default_factory=list)
    error: Optional[str] = None
    skipped: bool = False
    local: bool = False
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def status(self) -> str:
        if self.skipped:
            return "skipped"
        return "success" if self.ok else "error"

    def to_source_dict(self) -> dict:
        """Per-source summary for enhanced search responses."""
        data = {"name": self.name, "count": len(self.records), "status": self.status}
        if self.error:
            data["error"] = self.error
        return data


class SourceAdapter(ABC):
    """
    Abstract base class for source adapters.

    Subclasses implement fetch(), which may raise; search() bounds it with
    the configured timeout and converts any failure into an error result.
    """

    default_category: Category = Category.GENERAL
    funder_type: FunderType = FunderType.UNKNOWN
    # Reads only the local store; does not count as an upstream source
    local: bool = False

    def __init__(
        self,
        config: AdapterConfig,
        http_client: Optional[HttpClient] = None,
        today: Callable[[], date] = date.today,
    ):
        """
        Initialize adapter.

        Args:
            config: Adapter configuration
            http_client: Shared HTTP client (must be open before search)
            today: Clock used for estimated deadlines
        """
        self.config = config
        self.http_client = http_client
        self.today = today
        self.logger = logger.bind(adapter=config.name)

    @property
    def name(self) -> str:
        return self.config.name

    def is_applicable(self, query: SearchQuery) -> bool:
        """Whether this adapter should run for the query at all."""
        return True

    @abstractmethod
    async def fetch(self, query: SearchQuery) -> list[GrantRecord]:
        """
        Query the source and map results.

        Args:
            query: Search query

        Returns:
            Normalized records (may raise on failure)
        """
        pass

    async def search(self, query: SearchQuery) -> AdapterResult:
        """
        Run fetch() inside the adapter error boundary.

        Args:
            query: Search query

        Returns:
            AdapterResult, never raises
        """
        if not self.is_applicable(query):
            self.logger.debug("adapter_skipped", query=query.query)
            return AdapterResult(name=self.name, skipped=True, local=self.local)

        start = time.monotonic()
        try:
            records = await asyncio.wait_for(self.fetch(query), timeout=self.config.timeout)
        except asyncio.TimeoutError:
            elapsed = time.monotonic() - start
            error = f"Timed out after {self.config.timeout:g}s"
            self.logger.warning("adapter_timeout", timeout=self.config.timeout)
            return AdapterResult(name=self.name, error=error, elapsed=elapsed, local=self.local)
        except Exception as e:
            elapsed = time.monotonic() - start
            self.logger.warning("adapter_failed", error=str(e), error_type=type(e).__name__)
            return AdapterResult(
                name=self.name,
                error=describe_error(e),
                elapsed=elapsed,
                local=self.local,
            )

        records = records[: self.config.max_results]
        elapsed = time.monotonic() - start
        self.logger.info("adapter_completed", count=len(records), elapsed=round(elapsed, 3))
        return AdapterResult(name=self.name, records=records, elapsed=elapsed, local=self.local)

    def _require_client(self) -> HttpClient:
        if self.http_client is None:
            raise RuntimeError(f"{self.name}: no HTTP client configured")
        return self.http_client

    def build_record(
        self,
        query: Optional[SearchQuery],
        title: str,
        funder: str,
        deadline: date,
        is_estimated: bool,
        description: str = "",
        amount: int = 0,
        category: Optional[Category] = None,
        funder_type: Optional[FunderType] = None,
        url: str = "",
        date_posted: Optional[str] = None,
        source: Optional[str] = None,
    ) -> GrantRecord:
        """
        Assemble a GrantRecord with the shared normalization steps.

        Category falls back to the adapter default when no keyword
        matches; requirements, location and match score are derived from
        the cleaned text. Without a query the match score is the base score.
        """
        source = source or self.name
        title = normalize_title(clean_text(title)) or "Untitled opportunity"
        description = truncate(clean_text(description), DESCRIPTION_MAX_LENGTH)
        funder = normalize_title(funder) or self.name
        text = f"{title} {description}"

        if category is None:
            category = extract_category(text, default=self.default_category)

        return GrantRecord(
            id=generate_grant_id(source, title, funder),
            title=title,
            funder=funder,
            source=source,
            deadline=deadline,
            description=description,
            amount=amount,
            is_estimated_deadline=is_estimated,
            category=category,
            requirements=extract_requirements(description),
            url=url,
            match_percentage=calculate_match_percentage(
                title,
                description,
                query.query if query else "",
                category,
                query.category if query else None,
            ),
            funder_type=funder_type or self.funder_type,
            location=extract_location(text),
            date_posted=date_posted,
        )
