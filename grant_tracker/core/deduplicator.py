"""
Grant deduplication and ranking.

Near-duplicate records (same opportunity reported by several sources)
collapse onto a similarity key built from the leading title and funder
words; the highest-scoring variant survives.
"""

import hashlib
import re
from datetime import date
from typing import Iterable, Optional

import structlog

from .models import GrantRecord

logger = structlog.get_logger(__name__)

TITLE_KEY_WORDS = 3
FUNDER_KEY_WORDS = 2


def _normalize_text(text: Optional[str]) -> str:
    lowered = (text or "").lower()
    lowered = re.sub(r"[^a-z0-9\s]", "", lowered)
    return re.sub(r"\s+", " ", lowered).strip()


def generate_grant_id(source: str, title: str, funder: str) -> str:
    """
    Generate a stable record id.

    Hash is based on:
    - source: Adapter/source label
    - title: Grant title (normalized)
    - funder: Funder name (normalized)

    Args:
        source: Source label (e.g., "grants.gov")
        title: Grant title
        funder: Funder name

    Returns:
        "<source-slug>-<16 hex chars>"
    """
    content = f"{source.lower()}|{_normalize_text(title)}|{_normalize_text(funder)}"
    digest = hashlib.sha256(content.encode("utf-8")).hexdigest()[:16]
    slug = re.sub(r"[^a-z0-9]+", "-", source.lower()).strip("-") or "grant"
    return f"{slug}-{digest}"


def similarity_key(title: str, funder: str) -> str:
    """
    Key under which two records count as duplicates.

    Args:
        title: Grant title
        funder: Funder name

    Returns:
        First 3 normalized title words + "_" + first 2 funder words
    """
    title_words = " ".join(_normalize_text(title).split(" ")[:TITLE_KEY_WORDS])
    funder_words = " ".join(_normalize_text(funder).split(" ")[:FUNDER_KEY_WORDS])
    return f"{title_words}_{funder_words}"


class Deduplicator:
    """
    Similarity-key deduplicator.

    Keeps first-seen order; a later duplicate replaces the kept record in
    place only when its matchPercentage is strictly higher.
    """

    def __init__(self):
        """Initialize deduplicator with an empty key index."""
        self._records: list[GrantRecord] = []
        self._index: dict[str, int] = {}  # key -> position in _records

    def process(self, record: GrantRecord) -> bool:
        """
        Process one record.

        Args:
            record: Record to add

        Returns:
            True if the record is now part of the unique set
        """
        key = similarity_key(record.title, record.funder)

        if key not in self._index:
            self._index[key] = len(self._records)
            self._records.append(record)
            return True

        position = self._index[key]
        existing = self._records[position]
        if record.match_percentage > existing.match_percentage:
            self._records[position] = record
            logger.debug(
                "grant_replaced_duplicate",
                key=key,
                kept=record.source,
                dropped=existing.source,
            )
            return True

        logger.debug("grant_skipped_duplicate", key=key, source=record.source)
        return False

    def extend(self, records: Iterable[GrantRecord]) -> None:
        """Process records in order."""
        for record in records:
            self.process(record)

    def get_all(self) -> list[GrantRecord]:
        """Get all unique records, in first-seen order."""
        return list(self._records)

    def clear(self) -> None:
        """Clear deduplication index."""
        self._records.clear()
        self._index.clear()

    def __len__(self) -> int:
        """Return number of unique records."""
        return len(self._records)


def deduplicate(records: Iterable[GrantRecord]) -> list[GrantRecord]:
    """Collapse near-duplicates (convenience wrapper around Deduplicator)."""
    dedup = Deduplicator()
    dedup.extend(records)
    return dedup.get_all()


def rank_grants(
    records: Iterable[GrantRecord],
    today: date,
    limit: Optional[int] = None,
) -> list[GrantRecord]:
    """
    Sort records by relevance and truncate.

    Primary key matchPercentage descending; secondary key the absolute
    distance between deadline and today, ascending. The sort is stable so
    equal records keep their input order. Truncation happens after sorting.

    Args:
        records: Records to rank
        today: Reference date for deadline proximity
        limit: Optional top-N cap

    Returns:
        Ranked list
    """
    ranked = sorted(
        records,
        key=lambda r: (-r.match_percentage, abs((r.deadline - today).days)),
    )
    if limit is not None:
        ranked = ranked[:limit]
    return ranked
