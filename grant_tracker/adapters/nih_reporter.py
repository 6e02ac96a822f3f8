"""
NIH RePORTER adapter.

Only consulted for health or research queries; other topics would mostly
return unrelated biomedical projects and cost an extra upstream call.
"""

import re
from datetime import timedelta

from grant_tracker.core.models import Category, FunderType, GrantRecord, SearchQuery

from .base import SourceAdapter

DEFAULT_URL = "https://api.reporter.nih.gov/v2/projects/search"
PROJECT_URL = "https://reporter.nih.gov/project-details/{appl_id}"

HEALTH_RESEARCH_KEYWORDS = [
    "health", "medical", "medicine", "research", "disease", "clinical",
    "biomedical", "cancer", "mental", "nursing", "public health", "science",
    "behavioral", "substance", "hiv", "aging", "nutrition",
]
GATED_CATEGORIES = {Category.HEALTH.value.lower(), Category.RESEARCH.value.lower()}

INCLUDE_FIELDS = [
    "ApplId", "ProjectNum", "ProjectTitle", "AbstractText", "Organization",
    "AwardAmount", "ProjectStartDate", "ProjectEndDate", "AgencyIcAdmin",
]


def is_health_research_query(query: SearchQuery) -> bool:
    """
    Health/research gate for the NIH adapter.

    Args:
        query: Search query

    Returns:
        True when the requested category is Health or Research, or any
        health/research keyword starts a word in the query text
    """
    if query.category and query.category.strip().lower() in GATED_CATEGORIES:
        return True
    text = query.normalized_query
    return any(re.search(r"\b" + re.escape(keyword), text) for keyword in HEALTH_RESEARCH_KEYWORDS)


class NIHReporterAdapter(SourceAdapter):
    """Active NIH-funded projects."""

    default_category = Category.RESEARCH
    funder_type = FunderType.FEDERAL

    def is_applicable(self, query: SearchQuery) -> bool:
        return is_health_research_query(query)

    def build_payload(self, query: SearchQuery) -> dict:
        year = self.today().year
        return {
            "criteria": {
                "include_active_projects": True,
                "exclude_subprojects": True,
                "fiscal_years": [year - 1, year],
                "advanced_text_search": {
                    "operator": "and",
                    "search_field": "projecttitle,abstracttext,terms",
                    "search_text": query.query,
                },
            },
            "include_fields": INCLUDE_FIELDS,
            "offset": 0,
            "limit": self.config.max_results,
            "sort_field": "project_start_date",
            "sort_order": "desc",
        }

    async def fetch(self, query: SearchQuery) -> list[GrantRecord]:
        client = self._require_client()
        data = await client.post_json(self.config.base_url or DEFAULT_URL, self.build_payload(query))
        return [
            self.map_project(project, query)
            for project in data.get("results") or []
            if project.get("project_title")
        ]

    def map_project(self, project: dict, query: SearchQuery) -> GrantRecord:
        """Map one RePORTER project to a GrantRecord."""
        agency = project.get("agency_ic_admin") or {}
        organization = project.get("organization") or {}
        appl_id = project.get("appl_id")

        description = project.get("abstract_text") or ""
        if organization.get("org_name"):
            description = f"{organization['org_name']}. {description}"

        start = project.get("project_start_date") or ""

        return self.build_record(
            query,
            title=project["project_title"],
            funder=agency.get("name") or "National Institutes of Health",
            deadline=self.today() + timedelta(days=self.config.default_deadline_days),
            is_estimated=True,
            description=description,
            amount=int(project.get("award_amount") or 0),
            url=PROJECT_URL.format(appl_id=appl_id) if appl_id else "",
            date_posted=start[:10] or None,
        )
