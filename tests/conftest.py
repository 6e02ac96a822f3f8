"""Shared fixtures: sample API payloads, records, adapters and contexts."""

import asyncio
from datetime import date
from typing import Optional

import httpx
import pytest

from grant_tracker.adapters.base import AdapterConfig, FeedConfig, SourceAdapter
from grant_tracker.config.loader import AppConfig
from grant_tracker.context import AppContext
from grant_tracker.core.deduplicator import generate_grant_id
from grant_tracker.core.exceptions import StorageUnavailable
from grant_tracker.core.http_client import HttpClient
from grant_tracker.core.models import Category, FunderType, GrantRecord
from grant_tracker.storage.base import KeyValueStore

TODAY = date(2026, 3, 1)

GRANTS_GOV_PAYLOAD = {
    "errorcode": 0,
    "data": {
        "hitCount": 2,
        "oppHits": [
            {
                "id": "350001",
                "number": "HHS-2026-ACF-001",
                "title": "Community Health Worker Training Program",
                "agency": "Department of Health and Human Services",
                "agencyCode": "HHS-ACF",
                "openDate": "01/15/2026",
                "closeDate": "04/30/2026",
                "oppStatus": "posted",
            },
            {
                "id": "350002",
                "number": "ED-2026-01",
                "title": "Rural Education Innovation Grants",
                "agency": "Department of Education",
                "openDate": "02/01/2026",
                "closeDate": "",
                "oppStatus": "forecasted",
            },
        ],
    },
}

USASPENDING_PAYLOAD = {
    "results": [
        {
            "internal_id": 1,
            "Award ID": "H79SM012345",
            "Recipient Name": "Hope Clinic Inc",
            "Award Amount": 250000.0,
            "Awarding Agency": "Department of Health and Human Services",
            "Awarding Sub Agency": "Substance Abuse and Mental Health Services Administration",
            "Description": "COMMUNITY HEALTH OUTREACH FOR RURAL FAMILIES",
            "Start Date": "2025-09-30",
            "generated_internal_id": "ASST_NON_H79SM012345_7522",
        },
    ],
}

NIH_PAYLOAD = {
    "results": [
        {
            "appl_id": 10987654,
            "project_title": "Community Health Interventions for Diabetes Prevention",
            "abstract_text": "This research project evaluates outcomes of community interventions.",
            "award_amount": 425000,
            "project_start_date": "2025-07-01T00:00:00",
            "agency_ic_admin": {
                "abbreviation": "NIDDK",
                "name": "National Institute of Diabetes and Digestive and Kidney Diseases",
            },
            "organization": {"org_name": "University of Michigan", "org_state": "MI"},
        },
    ],
}

RSS_FEED_XML = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Funding News</title>
    <item>
      <title><![CDATA[Youth Mentoring Program Grants for Nonprofits]]></title>
      <description><![CDATA[<p>The Smith Family Foundation offers up to $50,000 for youth mentoring. Applications due by 05/15/2026.</p>]]></description>
      <link>https://example.org/grants/youth-mentoring</link>
      <pubDate>Mon, 02 Mar 2026 10:00:00 GMT</pubDate>
    </item>
    <item>
      <title>Short</title>
      <description>Title too short to be a grant</description>
    </item>
    <item>
      <title>Coastal Wetland Restoration Awards</title>
      <description>Support for conservation projects in Oregon &amp; Washington. Budget required.</description>
      <link>https://example.org/wetlands</link>
      <pubDate>Tue, 03 Mar 2026 09:00:00 GMT</pubDate>
    </item>
  </channel>
</rss>
"""

FEED_URL = "https://feeds.example.org/funding.xml"
BROKEN_FEED_URL = "https://broken.example.org/rss.xml"


def api_handler(request: httpx.Request) -> httpx.Response:
    """Serve the sample payloads by upstream host."""
    host = request.url.host
    if host == "api.grants.gov":
        return httpx.Response(200, json=GRANTS_GOV_PAYLOAD)
    if host == "api.usaspending.gov":
        return httpx.Response(200, json=USASPENDING_PAYLOAD)
    if host == "api.reporter.nih.gov":
        return httpx.Response(200, json=NIH_PAYLOAD)
    if str(request.url) == FEED_URL:
        return httpx.Response(200, text=RSS_FEED_XML)
    return httpx.Response(500, text="upstream error")


def failing_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(503, text="unavailable")


def default_adapter_configs() -> list[AdapterConfig]:
    return [
        AdapterConfig(name="grants.gov", type="grants_gov", timeout=2, default_deadline_days=60),
        AdapterConfig(name="USAspending", type="usaspending", timeout=2, max_results=8),
        AdapterConfig(name="NIH RePORTER", type="nih_reporter", timeout=2, default_deadline_days=120),
        AdapterConfig(name="RSS Feeds", type="rss", timeout=2, endpoints=["enhanced"]),
        AdapterConfig(name="Cached Feeds", type="cache_scan", timeout=2, endpoints=["enhanced"]),
    ]


def default_feeds() -> list[FeedConfig]:
    return [
        FeedConfig(url=FEED_URL, name="Funding News", type="foundation"),
        FeedConfig(url=BROKEN_FEED_URL, name="Broken Feed", type="federal"),
    ]


class StaticAdapter(SourceAdapter):
    """Adapter returning canned records (or raising) without network access."""

    def __init__(
        self,
        name: str,
        records: Optional[list[GrantRecord]] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
        timeout: float = 1.0,
    ):
        super().__init__(
            AdapterConfig(name=name, type="static", timeout=timeout, max_results=50),
            today=lambda: TODAY,
        )
        self.records = records or []
        self.error = error
        self.delay = delay
        self.calls = 0

    async def fetch(self, query):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return list(self.records)


class FailingStore(KeyValueStore):
    """Store whose backend is always unreachable."""

    async def get(self, key):
        raise StorageUnavailable("store down")

    async def put(self, key, value, ttl=None):
        raise StorageUnavailable("store down")

    async def delete(self, key):
        raise StorageUnavailable("store down")

    async def list_keys(self, prefix=""):
        raise StorageUnavailable("store down")


def build_record(
    title: str = "Community Health Access Grant",
    funder: str = "Health Foundation",
    source: str = "test",
    deadline: date = date(2026, 4, 1),
    **kwargs,
) -> GrantRecord:
    kwargs.setdefault("category", Category.HEALTH)
    kwargs.setdefault("funder_type", FunderType.PRIVATE_FOUNDATION)
    return GrantRecord(
        id=generate_grant_id(source, title, funder),
        title=title,
        funder=funder,
        source=source,
        deadline=deadline,
        **kwargs,
    )


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def make_record():
    """Factory for GrantRecords with sensible defaults."""
    return build_record


@pytest.fixture
def static_adapter():
    """StaticAdapter class."""
    return StaticAdapter


@pytest.fixture
def failing_store():
    return FailingStore()


@pytest.fixture
def make_http_client():
    """Factory for an HttpClient backed by httpx.MockTransport."""
    def _make(handler=api_handler, max_retries: int = 1) -> HttpClient:
        return HttpClient(
            requests_per_second=1000,
            timeout=5,
            max_retries=max_retries,
            transport=httpx.MockTransport(handler),
        )
    return _make


@pytest.fixture
def make_context(make_http_client):
    """Factory for an AppContext with mocked upstreams and a fixed clock."""
    def _make(
        handler=api_handler,
        adapters: Optional[list[AdapterConfig]] = None,
        feeds: Optional[list[FeedConfig]] = None,
        store: Optional[KeyValueStore] = None,
    ) -> AppContext:
        config = AppConfig(
            adapters=default_adapter_configs() if adapters is None else adapters,
            feeds=default_feeds() if feeds is None else feeds,
        )
        return AppContext.create(
            config,
            store=store,
            http_client=make_http_client(handler),
            today=lambda: TODAY,
        )
    return _make
