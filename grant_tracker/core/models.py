"""
Data models for the grant tracker.

GrantRecord is the canonical normalized unit every source adapter produces.
Invariants are enforced in __post_init__ so records read back from storage
or built by adapters always satisfy them.
"""

import json
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Mapping, Optional, Union

from .exceptions import UpstreamUnavailable, ValidationError

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 500
MATCH_MIN = 0
MATCH_MAX = 100
DEFAULT_ESTIMATE_DAYS = 60

TRUE_VALUES = {"1", "true", "yes", "on"}


class Category(str, Enum):
    """Fixed grant category taxonomy."""
    HEALTH = "Health"
    EDUCATION = "Education"
    ENVIRONMENT = "Environment"
    ARTS = "Arts"
    COMMUNITY = "Community"
    TECHNOLOGY = "Technology"
    RESEARCH = "Research"
    YOUTH = "Youth"
    FEDERAL = "Federal"
    GENERAL = "General"
    OTHER = "Other"

    @classmethod
    def coerce(cls, value: Any) -> "Category":
        """Resolve a free-form value to a taxonomy member (Other if unknown)."""
        if isinstance(value, cls):
            return value
        if not value:
            return cls.GENERAL
        text = str(value).strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return cls.OTHER


class FunderType(str, Enum):
    """Fixed funder type taxonomy."""
    FEDERAL = "Federal"
    STATE = "State"
    PRIVATE_FOUNDATION = "Private Foundation"
    COMMUNITY_FOUNDATION = "Community Foundation"
    CORPORATE = "Corporate"
    UNKNOWN = "Unknown"

    @classmethod
    def coerce(cls, value: Any) -> "FunderType":
        """Resolve feed/source type labels ("federal", "foundation", ...)."""
        if isinstance(value, cls):
            return value
        if not value:
            return cls.UNKNOWN
        text = str(value).strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        if "community" in text:
            return cls.COMMUNITY_FOUNDATION
        if "foundation" in text:
            return cls.PRIVATE_FOUNDATION
        if "federal" in text:
            return cls.FEDERAL
        if "state" in text:
            return cls.STATE
        if "corporate" in text:
            return cls.CORPORATE
        return cls.UNKNOWN


def _truncate(text: Optional[str], limit: int) -> str:
    text = (text or "").strip()
    return text if len(text) <= limit else text[:limit].rstrip()


def _parse_iso_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


@dataclass
class GrantRecord:
    """
    One normalized funding opportunity.

    amount == 0 means "unknown". When a source gives no deadline, the
    adapter synthesizes one and sets is_estimated_deadline.
    """

    id: str
    title: str
    funder: str
    source: str
    deadline: date

    description: str = ""
    amount: int = 0
    is_estimated_deadline: bool = False
    category: Category = Category.GENERAL
    requirements: list[str] = field(default_factory=list)
    url: str = ""
    match_percentage: int = 70
    funder_type: FunderType = FunderType.UNKNOWN

    # Optional source-specific details
    location: Optional[str] = None
    date_posted: Optional[str] = None

    def __post_init__(self) -> None:
        self.title = _truncate(self.title, TITLE_MAX_LENGTH)
        self.description = _truncate(self.description, DESCRIPTION_MAX_LENGTH)
        self.amount = max(0, int(self.amount or 0))
        self.match_percentage = min(MATCH_MAX, max(MATCH_MIN, int(self.match_percentage)))
        self.category = Category.coerce(self.category)
        self.funder_type = FunderType.coerce(self.funder_type)
        self.requirements = list(self.requirements or [])
        self.url = self.url or ""

    @property
    def search_text(self) -> str:
        """Lowercased title, description and funder for term matching."""
        return f"{self.title} {self.description} {self.funder}".lower()

    def to_dict(self) -> dict:
        """Convert to the camelCase wire format."""
        data = {
            "id": self.id,
            "title": self.title,
            "funder": self.funder,
            "amount": self.amount,
            "deadline": self.deadline.isoformat(),
            "isEstimatedDeadline": self.is_estimated_deadline,
            "category": self.category.value,
            "description": self.description,
            "requirements": list(self.requirements),
            "source": self.source,
            "url": self.url,
            "matchPercentage": self.match_percentage,
            "funderType": self.funder_type.value,
        }
        if self.location:
            data["location"] = self.location
        if self.date_posted:
            data["datePosted"] = self.date_posted
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], today: Optional[date] = None) -> "GrantRecord":
        """
        Build a record from the wire format.

        An unparseable deadline is replaced by an estimated one so the
        deadline invariant holds for stored data too.
        """
        deadline = _parse_iso_date(data.get("deadline"))
        estimated = bool(data.get("isEstimatedDeadline", False))
        if deadline is None:
            deadline = (today or date.today()) + timedelta(days=DEFAULT_ESTIMATE_DAYS)
            estimated = True

        return cls(
            id=str(data.get("id") or ""),
            title=data.get("title") or "",
            funder=data.get("funder") or "",
            source=data.get("source") or "",
            deadline=deadline,
            description=data.get("description") or "",
            amount=_safe_int(data.get("amount")),
            is_estimated_deadline=estimated,
            category=data.get("category"),
            requirements=data.get("requirements") or [],
            url=data.get("url") or "",
            match_percentage=_safe_int(data.get("matchPercentage"), default=70),
            funder_type=data.get("funderType"),
            location=data.get("location"),
            date_posted=data.get("datePosted"),
        )


def _safe_int(value: Any, default: int = 0) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def _normalize_value(value: str) -> str:
    return " ".join(value.split()).casefold()


def _parse_amount_param(name: str, value: Optional[str]) -> Optional[int]:
    if value is None or not str(value).strip():
        return None
    cleaned = str(value).strip().replace(",", "").lstrip("$")
    try:
        number = float(cleaned)
    except ValueError:
        raise ValidationError(f"{name} must be a whole dollar amount")
    if not math.isfinite(number):
        raise ValidationError(f"{name} must be a whole dollar amount")
    amount = int(number)
    if amount < 0:
        raise ValidationError(f"{name} must not be negative")
    return amount


@dataclass
class SearchQuery:
    """User search request, as received from the HTTP layer or CLI."""

    query: str
    category: Optional[str] = None
    min_amount: Optional[int] = None
    max_amount: Optional[int] = None
    location: Optional[str] = None
    funder_type: Optional[str] = None
    include_rss: bool = False
    fresh: bool = False

    @classmethod
    def from_params(
        cls,
        params: Mapping[str, str],
        include_rss_default: bool = False,
    ) -> "SearchQuery":
        """
        Build a query from request parameters.

        Raises:
            ValidationError: If query is missing/blank or amounts are invalid
        """
        query = (params.get("query") or "").strip()
        if not query:
            raise ValidationError("Query parameter is required")

        min_amount = _parse_amount_param("minAmount", params.get("minAmount"))
        max_amount = _parse_amount_param("maxAmount", params.get("maxAmount"))
        if min_amount is not None and max_amount is not None and min_amount > max_amount:
            raise ValidationError("minAmount must not exceed maxAmount")

        include_rss = params.get("includeRSS")
        return cls(
            query=query,
            category=(params.get("category") or "").strip() or None,
            min_amount=min_amount,
            max_amount=max_amount,
            location=(params.get("location") or "").strip() or None,
            funder_type=(params.get("funderType") or "").strip() or None,
            include_rss=(
                include_rss_default if include_rss is None
                else str(include_rss).strip().lower() in TRUE_VALUES
            ),
            fresh=str(params.get("fresh") or "").strip().lower() in TRUE_VALUES,
        )

    @property
    def normalized_query(self) -> str:
        return _normalize_value(self.query)

    @property
    def terms(self) -> list[str]:
        """Distinct lowercase query terms, in order."""
        seen: list[str] = []
        for term in self.normalized_query.split(" "):
            if term and term not in seen:
                seen.append(term)
        return seen

    def matches_text(self, text: str) -> bool:
        """True if any query term occurs in text."""
        lowered = text.lower()
        return any(term in lowered for term in self.terms)

    def canonical(self) -> str:
        """
        Canonical serialization used for cache keys.

        Field names are sorted, string values trimmed and case-folded,
        empty fields dropped. The fresh flag is a request directive, not
        part of the query identity.
        """
        fields: dict[str, Any] = {
            "query": self.normalized_query,
            "category": _normalize_value(self.category) if self.category else None,
            "minAmount": self.min_amount,
            "maxAmount": self.max_amount,
            "location": _normalize_value(self.location) if self.location else None,
            "funderType": _normalize_value(self.funder_type) if self.funder_type else None,
            "includeRSS": self.include_rss or None,
        }
        compact = {k: v for k, v in fields.items() if v is not None}
        return json.dumps(compact, sort_keys=True, separators=(",", ":"), ensure_ascii=False)

    def to_params(self) -> dict:
        """Echo of the request parameters for response bodies."""
        return {
            "query": self.query,
            "category": self.category or "",
            "minAmount": self.min_amount,
            "maxAmount": self.max_amount,
            "location": self.location or "",
            "funderType": self.funder_type or "",
            "includeRSS": self.include_rss,
            "fresh": self.fresh,
        }


@dataclass
class SearchOk:
    """Successful (possibly partial) search outcome."""
    payload: dict
    cache_hit: bool = False
    degraded: bool = False
    kind: str = field(default="ok", init=False)


@dataclass
class SearchFailed:
    """Every source failed; payload is a structured error body."""
    message: str
    payload: dict
    kind: str = field(default="error", init=False)

    def to_error(self, headers: Optional[dict[str, str]] = None) -> UpstreamUnavailable:
        """The failure as an UpstreamUnavailable carrying the payload fields."""
        details = {k: v for k, v in self.payload.items() if k not in ("error", "message")}
        return UpstreamUnavailable(self.message, details=details, headers=headers)


SearchOutcome = Union[SearchOk, SearchFailed]


@dataclass
class TrackedGrantList:
    """
    Per-user tracked grants document.

    Grants are kept verbatim as the client sent them (GrantRecord fields
    plus status, applicationDate, submittedDate, lastUpdate).
    """

    user_id: str
    grants: list[dict] = field(default_factory=list)
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    version: str = "1.0"

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "grants": self.grants,
            "timestamp": self.timestamp,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TrackedGrantList":
        return cls(
            user_id=data.get("userId") or "",
            grants=list(data.get("grants") or []),
            timestamp=data.get("timestamp") or datetime.now(timezone.utc).isoformat(),
            version=data.get("version") or "1.0",
        )
