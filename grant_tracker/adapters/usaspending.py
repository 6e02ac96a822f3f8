"""
USAspending adapter.

Searches past federal grant awards by keyword. Awards have no application
deadline, so every record gets an estimated one.
"""

from datetime import timedelta

from grant_tracker.core.models import Category, FunderType, GrantRecord, SearchQuery

from .base import SourceAdapter

DEFAULT_URL = "https://api.usaspending.gov/api/v2/search/spending_by_award/"
AWARD_URL = "https://www.usaspending.gov/award/{id}"

# Block grant, formula grant, project grant, cooperative agreement
GRANT_AWARD_TYPES = ["02", "03", "04", "05"]
LOOKBACK_DAYS = 365

AWARD_FIELDS = [
    "Award ID",
    "Recipient Name",
    "Award Amount",
    "Awarding Agency",
    "Awarding Sub Agency",
    "Description",
    "Start Date",
    "generated_internal_id",
]


class USASpendingAdapter(SourceAdapter):
    """Recent federal grant awards from USAspending.gov."""

    default_category = Category.FEDERAL
    funder_type = FunderType.FEDERAL

    def build_payload(self, query: SearchQuery) -> dict:
        today = self.today()
        return {
            "filters": {
                "keywords": [query.query],
                "award_type_codes": GRANT_AWARD_TYPES,
                "time_period": [{
                    "start_date": (today - timedelta(days=LOOKBACK_DAYS)).isoformat(),
                    "end_date": today.isoformat(),
                }],
            },
            "fields": AWARD_FIELDS,
            "limit": self.config.max_results,
            "page": 1,
            "sort": "Award Amount",
            "order": "desc",
        }

    async def fetch(self, query: SearchQuery) -> list[GrantRecord]:
        client = self._require_client()
        data = await client.post_json(self.config.base_url or DEFAULT_URL, self.build_payload(query))
        return [self.map_award(award, query) for award in data.get("results") or []]

    def map_award(self, award: dict, query: SearchQuery) -> GrantRecord:
        """Map one spending_by_award row to a GrantRecord."""
        description = award.get("Description") or ""
        recipient = award.get("Recipient Name") or ""
        title = description or f"Federal award {award.get('Award ID') or ''}".strip()
        if recipient:
            description = f"{description} Awarded to {recipient}.".strip()

        internal_id = award.get("generated_internal_id")
        amount = award.get("Award Amount") or 0
        try:
            amount = int(float(amount))
        except (TypeError, ValueError, OverflowError):
            amount = 0

        return self.build_record(
            query,
            title=title,
            funder=award.get("Awarding Agency") or award.get("Awarding Sub Agency") or "Federal Agency",
            deadline=self.today() + timedelta(days=self.config.default_deadline_days),
            is_estimated=True,
            description=description,
            amount=amount,
            url=AWARD_URL.format(id=internal_id) if internal_id else "",
            date_posted=award.get("Start Date"),
        )
