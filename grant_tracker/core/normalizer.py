"""
Normalization utilities for US grant listing data.

Handles:
- Dollar amounts ($1,500,000 / $2.5 million / 50,000 dollars)
- Deadlines (MM/DD/YYYY or ISO dates near deadline keywords)
- Category, requirement, funder and location inference via keyword tables
- Match scoring against a search query
- Text cleanup (CDATA, tags, entities, whitespace)
"""

import html
import re
from datetime import date, datetime, timedelta
from email.utils import parsedate_to_datetime
from typing import Optional

import structlog

from .models import Category

logger = structlog.get_logger(__name__)


MATCH_BASE = 70
MATCH_CAP = 98
TITLE_MATCH_BONUS = 20
DESCRIPTION_MATCH_BONUS = 10
CATEGORY_MATCH_BONUS = 10

DEFAULT_REQUIREMENT = "Review eligibility criteria"

# Order is significant: the first category with a keyword hit wins.
CATEGORY_KEYWORDS: list[tuple[Category, list[str]]] = [
    (Category.HEALTH, [
        "health", "medical", "healthcare", "wellness", "disease", "clinical",
        "clinic", "hospital", "mental",
    ]),
    (Category.EDUCATION, [
        "education", "school", "student", "learning", "academic", "literacy",
        "teacher", "university",
    ]),
    (Category.ENVIRONMENT, [
        "environment", "climate", "conservation", "sustainability", "green",
        "energy", "water", "wildlife",
    ]),
    (Category.ARTS, [
        "arts", "culture", "cultural", "music", "theater", "theatre",
        "creative", "humanities", "museum",
    ]),
    (Category.YOUTH, [
        "youth", "children", "child", "teen", "juvenile", "young people",
    ]),
    (Category.COMMUNITY, [
        "community", "social", "development", "nonprofit", "poverty",
        "housing", "neighborhood",
    ]),
    (Category.TECHNOLOGY, [
        "technology", "digital", "innovation", "software", "broadband", "cyber",
    ]),
    (Category.RESEARCH, [
        "research", "science", "scientific", "study",
    ]),
]

# (keywords, requirement tag) checked in order
REQUIREMENT_KEYWORDS: list[tuple[list[str], str]] = [
    (["501(c)(3)", "nonprofit", "non-profit"], "501(c)(3) status"),
    (["tribal", "tribe"], "Tribal eligibility"),
    (["state government", "local government", "municipal"], "Government entity eligibility"),
    (["proposal", "application"], "Detailed proposal"),
    (["budget"], "Budget documentation"),
    (["evaluation", "outcome"], "Evaluation plan"),
    (["partnership", "collaboration"], "Partnership required"),
    (["matching funds", "cost share", "cost-share"], "Matching funds"),
]

FUNDER_PATTERNS = [
    r"funded by ([^.;,]{5,60})",
    r"(department of [^.;,]{3,40})",
    r"((?:[A-Z][\w.&'-]*\s){1,4}[Ff]oundation)",
    r"(national [a-z]+ (?:foundation|institutes? of [a-z ]+|endowment for [a-z ]+))",
]

US_STATES = {
    "AL": "Alabama", "AK": "Alaska", "AZ": "Arizona", "AR": "Arkansas",
    "CA": "California", "CO": "Colorado", "CT": "Connecticut", "DE": "Delaware",
    "FL": "Florida", "GA": "Georgia", "HI": "Hawaii", "ID": "Idaho",
    "IL": "Illinois", "IN": "Indiana", "IA": "Iowa", "KS": "Kansas",
    "KY": "Kentucky", "LA": "Louisiana", "ME": "Maine", "MD": "Maryland",
    "MA": "Massachusetts", "MI": "Michigan", "MN": "Minnesota", "MS": "Mississippi",
    "MO": "Missouri", "MT": "Montana", "NE": "Nebraska", "NV": "Nevada",
    "NH": "New Hampshire", "NJ": "New Jersey", "NM": "New Mexico", "NY": "New York",
    "NC": "North Carolina", "ND": "North Dakota", "OH": "Ohio", "OK": "Oklahoma",
    "OR": "Oregon", "PA": "Pennsylvania", "RI": "Rhode Island", "SC": "South Carolina",
    "SD": "South Dakota", "TN": "Tennessee", "TX": "Texas", "UT": "Utah",
    "VT": "Vermont", "VA": "Virginia", "WA": "Washington", "WV": "West Virginia",
    "WI": "Wisconsin", "WY": "Wyoming",
}

# Two-letter codes that are also common English words
AMBIGUOUS_STATE_CODES = {"IN", "OR", "ME", "OK", "HI", "ID", "MA", "PA", "DE", "LA"}

_STATE_NAME_PATTERN = re.compile(
    r"\b(" + "|".join(sorted((re.escape(n) for n in US_STATES.values()), key=len, reverse=True)) + r")\b",
    re.IGNORECASE,
)
_STATE_CODE_PATTERN = re.compile(
    r"\b(" + "|".join(c for c in US_STATES if c not in AMBIGUOUS_STATE_CODES) + r")\b"
)

_MILLION_PATTERN = re.compile(r"\$\s?(\d[\d,]*(?:\.\d+)?)\s*(million|m)\b", re.IGNORECASE)
_DOLLAR_PATTERN = re.compile(r"\$\s?(\d[\d,]*(?:\.\d{1,2})?)")
_DOLLARS_WORD_PATTERN = re.compile(r"(\d[\d,]*(?:\.\d+)?)\s*(million\s+)?dollars?\b", re.IGNORECASE)

_DEADLINE_PATTERN = re.compile(
    r"\b(?:deadline|due|by)\b[^.]*?(\d{1,2}/\d{1,2}/\d{4}|\d{4}-\d{2}-\d{2})",
    re.IGNORECASE,
)


def clean_text(text: Optional[str]) -> str:
    """
    Clean up text taken from feeds or API payloads.

    - Unwraps CDATA sections
    - Removes HTML tags
    - Decodes HTML entities
    - Collapses whitespace

    Args:
        text: Raw text

    Returns:
        Cleaned single-line text
    """
    if not text:
        return ""

    cleaned = re.sub(r"<!\[CDATA\[(.*?)\]\]>", r"\1", text, flags=re.DOTALL)
    cleaned = re.sub(r"<[^>]*>", " ", cleaned)
    cleaned = html.unescape(cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned)

    return cleaned.strip()


def normalize_title(title: Optional[str]) -> str:
    """
    Normalize grant title for consistent display.

    Args:
        title: Raw title string

    Returns:
        Title with whitespace collapsed and stripped
    """
    if not title:
        return ""

    return re.sub(r"\s+", " ", title).strip()


def truncate(text: Optional[str], limit: int) -> str:
    """Cut text to at most limit characters."""
    text = text or ""
    return text if len(text) <= limit else text[:limit].rstrip()


def _to_number(raw: str) -> Optional[float]:
    try:
        return float(raw.replace(",", ""))
    except ValueError:
        return None


def extract_amount(text: Optional[str]) -> int:
    """
    Extract a dollar amount from free text.

    Supported formats:
    - "$1,500,000" -> 1500000
    - "$2.5 million" / "$3M" -> 2500000 / 3000000
    - "50,000 dollars" -> 50000

    Args:
        text: Text to search

    Returns:
        Whole dollar amount, or 0 when no amount is present (unknown)
    """
    if not text:
        return 0

    match = _MILLION_PATTERN.search(text)
    if match:
        number = _to_number(match.group(1))
        if number is not None:
            return int(number * 1_000_000)

    match = _DOLLAR_PATTERN.search(text)
    if match:
        number = _to_number(match.group(1))
        if number is not None:
            return int(number)

    match = _DOLLARS_WORD_PATTERN.search(text)
    if match:
        number = _to_number(match.group(1))
        if number is not None:
            multiplier = 1_000_000 if match.group(2) else 1
            return int(number * multiplier)

    return 0


def parse_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a date in any of the formats grant sources use.

    Supported formats:
    - "03/15/2026" (MM/DD/YYYY, grants.gov)
    - "2026-03-15" / "2026-03-15T00:00:00" (ISO)
    - "Mon, 02 Mar 2026 10:00:00 GMT" (RFC 822, RSS pubDate)

    Args:
        value: Date string

    Returns:
        date object or None if parsing fails
    """
    if not value:
        return None

    text = str(value).strip()

    match = re.fullmatch(r"(\d{1,2})/(\d{1,2})/(\d{4})", text)
    if match:
        month, day, year = (int(g) for g in match.groups())
        try:
            return date(year, month, day)
        except ValueError as e:
            logger.warning("invalid_date", text=text, error=str(e))
            return None

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass

    try:
        return parsedate_to_datetime(text).date()
    except (TypeError, ValueError, IndexError):
        return None


def extract_deadline(
    text: Optional[str],
    fallback_date: date,
    offset_days: int = 90,
) -> tuple[date, bool]:
    """
    Find an explicit deadline in text or synthesize an estimated one.

    Looks for MM/DD/YYYY (or ISO) dates following "deadline", "due" or
    "by". Invalid calendar dates are skipped.

    Args:
        text: Text to search
        fallback_date: Base date for the estimate (publication date or today)
        offset_days: Days added to fallback_date when no deadline is found

    Returns:
        (deadline, is_estimated)
    """
    for match in _DEADLINE_PATTERN.finditer(text or ""):
        parsed = parse_date(match.group(1))
        if parsed:
            return parsed, False

    return fallback_date + timedelta(days=offset_days), True


def _keyword_hit(text: str, keyword: str) -> bool:
    return re.search(r"\b" + re.escape(keyword), text) is not None


def extract_category(text: Optional[str], default: Category = Category.GENERAL) -> Category:
    """
    Infer a category from text using the ordered keyword table.

    Args:
        text: Title and description
        default: Category used when no keyword matches

    Returns:
        First matching Category (table order), else default
    """
    lowered = (text or "").lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(_keyword_hit(lowered, keyword) for keyword in keywords):
            return category
    return default


def extract_requirements(text: Optional[str]) -> list[str]:
    """
    Infer short eligibility tags from text.

    Args:
        text: Description text

    Returns:
        Ordered list of tags; a single generic tag when the text has none,
        empty list when the text itself is empty
    """
    if not text or not text.strip():
        return []

    lowered = text.lower()
    requirements = [
        tag for keywords, tag in REQUIREMENT_KEYWORDS
        if any(keyword in lowered for keyword in keywords)
    ]

    return requirements or [DEFAULT_REQUIREMENT]


def extract_funder(text: Optional[str], default: str) -> str:
    """
    Find a funder name ("funded by ...", "... Foundation", "Department of ...").

    Args:
        text: Description text
        default: Funder to use when nothing matches (usually the feed name)

    Returns:
        Funder name
    """
    if not text:
        return default

    for pattern in FUNDER_PATTERNS:
        flags = 0 if "[A-Z]" in pattern else re.IGNORECASE
        match = re.search(pattern, text, flags)
        if match:
            return normalize_title(match.group(1))

    return default


def extract_location(text: Optional[str]) -> Optional[str]:
    """
    Find a US state mentioned in text.

    Args:
        text: Text to search

    Returns:
        Full state name, or None
    """
    if not text:
        return None

    match = _STATE_NAME_PATTERN.search(text)
    if match:
        name = match.group(1).lower()
        for full_name in US_STATES.values():
            if full_name.lower() == name:
                return full_name

    match = _STATE_CODE_PATTERN.search(text)
    if match:
        return US_STATES[match.group(1)]

    return None


def normalize_location(value: Optional[str]) -> Optional[str]:
    """Map a state code or name to the full state name (None if not a state)."""
    if not value:
        return None
    text = value.strip()
    if text.upper() in US_STATES:
        return US_STATES[text.upper()]
    return extract_location(text)


def calculate_match_percentage(
    title: str,
    description: str,
    query: str,
    category: Optional[Category] = None,
    requested_category: Optional[str] = None,
) -> int:
    """
    Heuristic relevance score between a record and a query.

    Base 70, +20 if the title contains the full query, +10 if the
    description contains it, +10 if the record category equals the
    requested category. Clamped to [0, 98].

    Args:
        title: Record title
        description: Record description
        query: Search query
        category: Record category
        requested_category: Category the user asked for

    Returns:
        Integer score
    """
    score = MATCH_BASE
    needle = " ".join((query or "").split()).lower()

    if needle:
        if needle in (title or "").lower():
            score += TITLE_MATCH_BONUS
        if needle in (description or "").lower():
            score += DESCRIPTION_MATCH_BONUS

    if category is not None and requested_category:
        if Category.coerce(category).value.lower() == requested_category.strip().lower():
            score += CATEGORY_MATCH_BONUS

    return min(MATCH_CAP, max(0, score))
