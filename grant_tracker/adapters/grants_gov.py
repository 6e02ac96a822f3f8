"""
Grants.gov adapter.

Queries the public search2 endpoint for posted and forecasted
opportunities. Hits carry no award amount, so amounts stay 0 (unknown)
unless the payload includes award ceiling/floor values.
"""

from datetime import timedelta

from grant_tracker.core.models import Category, FunderType, GrantRecord, SearchQuery
from grant_tracker.core.normalizer import parse_date

from .base import SourceAdapter

DEFAULT_URL = "https://api.grants.gov/v1/api/search2"
DETAIL_URL = "https://www.grants.gov/search-results-detail/{id}"


class GrantsGovAdapter(SourceAdapter):
    """Federal opportunities from grants.gov."""

    default_category = Category.FEDERAL
    funder_type = FunderType.FEDERAL

    def build_payload(self, query: SearchQuery) -> dict:
        payload = {
            "keyword": query.query,
            "oppStatuses": "forecasted|posted",
            "rows": self.config.max_results,
            "sortBy": "openDate|desc",
        }
        if self.config.api_key:
            payload["api_key"] = self.config.api_key
        return payload

    async def fetch(self, query: SearchQuery) -> list[GrantRecord]:
        client = self._require_client()
        data = await client.post_json(
            self.config.base_url or DEFAULT_URL,
            self.build_payload(query),
        )

        hits = (data.get("data") or {}).get("oppHits")
        if hits is None:
            hits = data.get("oppHits") or []

        return [self.map_hit(hit, query) for hit in hits if hit.get("title")]

    def map_hit(self, hit: dict, query: SearchQuery) -> GrantRecord:
        """Map one oppHits entry to a GrantRecord."""
        deadline = parse_date(hit.get("closeDate"))
        is_estimated = deadline is None
        if deadline is None:
            deadline = self.today() + timedelta(days=self.config.default_deadline_days)

        agency = hit.get("agency") or hit.get("agencyName") or hit.get("agencyCode") or "Federal Agency"
        number = hit.get("number") or ""
        status = hit.get("oppStatus") or "posted"
        description = hit.get("description") or f"{agency} funding opportunity {number} ({status})"

        amount = hit.get("awardCeiling") or hit.get("awardFloor") or 0
        opened = parse_date(hit.get("openDate"))

        return self.build_record(
            query,
            title=hit["title"],
            funder=agency,
            deadline=deadline,
            is_estimated=is_estimated,
            description=description,
            amount=_to_int(amount),
            url=DETAIL_URL.format(id=hit["id"]) if hit.get("id") else "",
            date_posted=opened.isoformat() if opened else None,
        )


def _to_int(value) -> int:
    try:
        return int(float(str(value).replace(",", "")))
    except (TypeError, ValueError, OverflowError):
        return 0
