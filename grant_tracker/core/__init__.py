"""
Core layer - stable foundation for the search pipeline.

Components:
- models: GrantRecord, SearchQuery, TrackedGrantList, search outcomes
- exceptions: Error taxonomy mapped to HTTP statuses
- http_client: Rate-limited, retrying HTTP client
- normalizer: Amount, deadline, category, requirement extraction and scoring
- deduplicator: Similarity-key deduplication and ranking
"""

from .models import (
    Category,
    FunderType,
    GrantRecord,
    SearchQuery,
    SearchOk,
    SearchFailed,
    TrackedGrantList,
)
from .normalizer import (
    clean_text,
    extract_amount,
    extract_deadline,
    extract_category,
    extract_requirements,
    extract_funder,
    extract_location,
    calculate_match_percentage,
    parse_date,
)
from .deduplicator import Deduplicator, deduplicate, generate_grant_id, rank_grants, similarity_key

__all__ = [
    "Category",
    "FunderType",
    "GrantRecord",
    "SearchQuery",
    "SearchOk",
    "SearchFailed",
    "TrackedGrantList",
    "clean_text",
    "extract_amount",
    "extract_deadline",
    "extract_category",
    "extract_requirements",
    "extract_funder",
    "extract_location",
    "calculate_match_percentage",
    "parse_date",
    "Deduplicator",
    "deduplicate",
    "generate_grant_id",
    "rank_grants",
    "similarity_key",
]
