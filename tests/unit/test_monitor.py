"""Tests for the RSS feed monitor."""

import pytest

from grant_tracker.adapters.base import AdapterConfig
from grant_tracker.adapters.cache_scan import FEED_GRANTS_PREFIX, FEED_STATUS_PREFIX, CacheScanAdapter
from grant_tracker.core.models import SearchQuery
from grant_tracker.monitor import FeedMonitor, feed_slug

from tests.conftest import TODAY


class TestFeedSlug:
    """Tests for feed_slug function."""

    def test_slug(self):
        assert feed_slug("NSF Funding Opportunities") == "nsf-funding-opportunities"
        assert feed_slug("Grants.gov: New!") == "grants-gov-new"
        assert feed_slug("???") == "feed"


class TestFeedMonitor:
    """Tests for FeedMonitor class."""

    def test_uses_rss_adapter_settings(self, make_context):
        monitor = FeedMonitor(make_context())
        assert monitor.adapter.name == "RSS Feeds"
        assert monitor.adapter.config.timeout == 2
        assert [feed.name for feed in monitor.feeds] == ["Funding News", "Broken Feed"]

    def test_default_rss_settings(self, make_context):
        monitor = FeedMonitor(make_context(adapters=[]))
        assert monitor.adapter.config.type == "rss"

    @pytest.mark.asyncio
    async def test_run(self, make_context):
        async with make_context() as context:
            summary = await FeedMonitor(context).run()

        assert summary["totalFeeds"] == 2
        assert summary["successful"] == 1
        assert summary["failed"] == 1
        assert summary["newGrants"] == 2
        assert len(summary["errors"]) == 1
        assert summary["errors"][0].startswith("Broken Feed: ")

    @pytest.mark.asyncio
    async def test_run_stores_records_and_status(self, make_context):
        async with make_context() as context:
            await FeedMonitor(context).run()
            stored = await context.store.get(f"{FEED_GRANTS_PREFIX}funding-news")
            ok_status = await context.store.get(f"{FEED_STATUS_PREFIX}funding-news")
            broken_status = await context.store.get(f"{FEED_STATUS_PREFIX}broken-feed")
            broken_grants = await context.store.get(f"{FEED_GRANTS_PREFIX}broken-feed")

        assert stored["feed"] == "Funding News"
        assert [g["title"] for g in stored["grants"]] == [
            "Youth Mentoring Program Grants for Nonprofits",
            "Coastal Wetland Restoration Awards",
        ]
        assert ok_status["status"] == "success"
        assert ok_status["grantCount"] == 2
        assert broken_status["status"] == "error"
        assert broken_status["error"] == "HTTPStatusError: HTTP 500"
        assert broken_grants is None

    @pytest.mark.asyncio
    async def test_status(self, make_context):
        async with make_context() as context:
            monitor = FeedMonitor(context)
            before = await monitor.status()
            await monitor.run()
            after = await monitor.status()

        assert before["totalFeeds"] == 2
        assert [feed["status"] for feed in before["feeds"]] == ["unknown", "unknown"]

        funding, broken = after["feeds"]
        assert funding["name"] == "Funding News"
        assert funding["type"] == "foundation"
        assert funding["status"] == "success"
        assert funding["grantCount"] == 2
        assert "lastChecked" in funding
        assert broken["status"] == "error"

    @pytest.mark.asyncio
    async def test_status_with_store_down(self, make_context, failing_store):
        status = await FeedMonitor(make_context(store=failing_store)).status()
        assert [feed["status"] for feed in status["feeds"]] == ["unknown", "unknown"]

    @pytest.mark.asyncio
    async def test_cached_records_searchable(self, make_context):
        async with make_context() as context:
            await FeedMonitor(context).run()
            adapter = CacheScanAdapter(
                AdapterConfig(name="Cached Feeds", type="cache_scan"),
                store=context.store,
                today=lambda: TODAY,
            )
            result = await adapter.search(SearchQuery(query="wetland"))

        [record] = result.records
        assert record.title == "Coastal Wetland Restoration Awards"
        assert record.source == "Funding News"
