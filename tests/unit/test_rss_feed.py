"""Tests for RSS feed parsing and the RSS adapter."""

from datetime import date

import pytest

from grant_tracker.adapters.base import AdapterConfig, FeedConfig
from grant_tracker.adapters.rss_feed import FeedItem, RSSFeedAdapter, parse_rss_feed
from grant_tracker.core.models import Category, FunderType, SearchQuery

from tests.conftest import BROKEN_FEED_URL, FEED_URL, RSS_FEED_XML, TODAY

FUNDING_NEWS = FeedConfig(url=FEED_URL, name="Funding News", type="foundation")
BROKEN_FEED = FeedConfig(url=BROKEN_FEED_URL, name="Broken Feed", type="federal")


def make_adapter(client=None, feeds=None, **options) -> RSSFeedAdapter:
    config = AdapterConfig(name="RSS Feeds", type="rss", timeout=2, options=options)
    return RSSFeedAdapter(
        config,
        client,
        feeds=[FUNDING_NEWS] if feeds is None else feeds,
        today=lambda: TODAY,
    )


class TestParseRssFeed:
    """Tests for parse_rss_feed function."""

    def test_parses_items(self):
        items = parse_rss_feed(RSS_FEED_XML)

        assert [item.title for item in items] == [
            "Youth Mentoring Program Grants for Nonprofits",
            "Coastal Wetland Restoration Awards",
        ]
        first = items[0]
        assert first.description.startswith("The Smith Family Foundation offers up to $50,000")
        assert "<p>" not in first.description
        assert first.link == "https://example.org/grants/youth-mentoring"
        assert first.pub_date == "Mon, 02 Mar 2026 10:00:00 GMT"

    def test_entities_decoded(self):
        items = parse_rss_feed(RSS_FEED_XML)
        assert "Oregon & Washington" in items[1].description

    def test_limit(self):
        assert len(parse_rss_feed(RSS_FEED_XML, limit=1)) == 1

    def test_min_title_length(self):
        titles = [item.title for item in parse_rss_feed(RSS_FEED_XML, min_title_length=3)]
        assert "Short" in titles

    def test_empty_document(self):
        assert parse_rss_feed("<rss><channel></channel></rss>") == []


class TestMapItem:
    """Tests for RSSFeedAdapter.map_item."""

    def test_explicit_deadline_and_funder(self):
        adapter = make_adapter()
        item = parse_rss_feed(RSS_FEED_XML)[0]
        record = adapter.map_item(item, FUNDING_NEWS, SearchQuery(query="youth mentoring"))

        assert record.funder == "The Smith Family Foundation"
        assert record.amount == 50000
        assert record.deadline == date(2026, 5, 15)
        assert record.is_estimated_deadline is False
        assert record.category is Category.YOUTH
        assert record.funder_type is FunderType.PRIVATE_FOUNDATION
        assert record.source == "Funding News"
        assert record.date_posted == "2026-03-02"
        assert record.match_percentage == 98
        assert record.requirements == ["Detailed proposal"]

    def test_estimated_deadline_from_pub_date(self):
        adapter = make_adapter()
        item = parse_rss_feed(RSS_FEED_XML)[1]
        record = adapter.map_item(item, FUNDING_NEWS)

        assert record.deadline == date(2026, 6, 1)
        assert record.is_estimated_deadline is True
        assert record.funder == "Funding News"
        assert record.category is Category.ENVIRONMENT
        assert record.location == "Oregon"
        assert record.requirements == ["Budget documentation"]
        assert record.match_percentage == 70

    def test_feed_category_overrides_inference(self):
        adapter = make_adapter()
        feed = FeedConfig(url=FEED_URL, name="NSF", type="federal", category="Research")
        record = adapter.map_item(FeedItem(title="Coastal Wetland Restoration Awards"), feed)

        assert record.category is Category.RESEARCH
        assert record.funder_type is FunderType.FEDERAL
        assert record.deadline == date(2026, 5, 30)


class TestRSSFeedAdapter:
    """Tests for RSSFeedAdapter.search."""

    @pytest.mark.asyncio
    async def test_skipped_without_include_rss(self, make_http_client):
        async with make_http_client() as client:
            result = await make_adapter(client).search(SearchQuery(query="youth"))

        assert result.skipped is True

    @pytest.mark.asyncio
    async def test_skipped_without_feeds(self, make_http_client):
        async with make_http_client() as client:
            result = await make_adapter(client, feeds=[]).search(SearchQuery(query="youth", include_rss=True))

        assert result.skipped is True

    def test_inactive_feeds_dropped(self):
        inactive = FeedConfig(url=FEED_URL, name="Old", active=False)
        assert make_adapter(feeds=[FUNDING_NEWS, inactive]).feeds == [FUNDING_NEWS]

    @pytest.mark.asyncio
    async def test_query_terms_filter_items(self, make_http_client):
        async with make_http_client() as client:
            result = await make_adapter(client).search(SearchQuery(query="wetland", include_rss=True))

        assert [r.title for r in result.records] == ["Coastal Wetland Restoration Awards"]

    @pytest.mark.asyncio
    async def test_one_broken_feed_tolerated(self, make_http_client):
        async with make_http_client() as client:
            adapter = make_adapter(client, feeds=[FUNDING_NEWS, BROKEN_FEED])
            result = await adapter.search(SearchQuery(query="youth mentoring", include_rss=True))

        assert result.ok
        assert [r.title for r in result.records] == ["Youth Mentoring Program Grants for Nonprofits"]

    @pytest.mark.asyncio
    async def test_all_feeds_broken(self, make_http_client):
        async with make_http_client() as client:
            adapter = make_adapter(client, feeds=[BROKEN_FEED])
            result = await adapter.search(SearchQuery(query="youth", include_rss=True))

        assert result.status == "error"
        assert result.error == "AdapterError: All 1 feeds failed"

    @pytest.mark.asyncio
    async def test_items_per_feed_option(self, make_http_client):
        async with make_http_client() as client:
            adapter = make_adapter(client, items_per_feed=1)
            records = await adapter.read_feed(FUNDING_NEWS)

        assert len(records) == 1
