"""
RSS feed adapter.

Reads every configured feed concurrently and keeps items mentioning any
query term. A single broken feed is tolerated; the adapter only fails
when every feed fails.
"""

import asyncio
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from bs4 import BeautifulSoup

from grant_tracker.core.exceptions import AdapterError
from grant_tracker.core.http_client import HttpClient
from grant_tracker.core.models import Category, FunderType, GrantRecord, SearchQuery
from grant_tracker.core.normalizer import (
    clean_text,
    extract_amount,
    extract_deadline,
    extract_funder,
    parse_date,
)

from .base import AdapterConfig, FeedConfig, SourceAdapter

DEFAULT_ITEMS_PER_FEED = 10
DEFAULT_MIN_TITLE_LENGTH = 10


@dataclass
class FeedItem:
    """Raw fields of one <item>, with markup removed."""
    title: str
    description: str = ""
    link: str = ""
    pub_date: Optional[str] = None


def _child_text(item, tag: str) -> str:
    node = item.find(tag)
    if node is None:
        return ""
    return clean_text(node.get_text())


def parse_rss_feed(
    xml_text: str,
    limit: int = DEFAULT_ITEMS_PER_FEED,
    min_title_length: int = DEFAULT_MIN_TITLE_LENGTH,
) -> list[FeedItem]:
    """
    Parse RSS XML into feed items.

    Args:
        xml_text: Raw feed document
        limit: Maximum number of accepted items
        min_title_length: Items with shorter titles are rejected

    Returns:
        Accepted items in document order
    """
    soup = BeautifulSoup(xml_text, "xml")

    items = []
    for node in soup.find_all("item"):
        title = _child_text(node, "title")
        if len(title) < min_title_length:
            continue

        items.append(FeedItem(
            title=title,
            description=_child_text(node, "description"),
            link=_child_text(node, "link"),
            pub_date=_child_text(node, "pubDate") or None,
        ))
        if len(items) >= limit:
            break

    return items


class RSSFeedAdapter(SourceAdapter):
    """Grant announcements from configured RSS feeds."""

    def __init__(
        self,
        config: AdapterConfig,
        http_client: Optional[HttpClient] = None,
        feeds: Optional[list[FeedConfig]] = None,
        today: Callable[[], date] = date.today,
    ):
        super().__init__(config, http_client, today)
        self.feeds = [feed for feed in (feeds or []) if feed.active]
        self.items_per_feed = int(config.options.get("items_per_feed", DEFAULT_ITEMS_PER_FEED))
        self.min_title_length = int(config.options.get("min_title_length", DEFAULT_MIN_TITLE_LENGTH))

    def is_applicable(self, query: SearchQuery) -> bool:
        return query.include_rss and bool(self.feeds)

    async def read_feed(self, feed: FeedConfig, query: Optional[SearchQuery] = None) -> list[GrantRecord]:
        """
        Fetch and map one feed.

        Args:
            feed: Feed to read
            query: When given, only items mentioning a query term are kept
                   and scored against it

        Returns:
            Records from the feed
        """
        client = self._require_client()
        xml_text = await client.get_text(feed.url)
        items = parse_rss_feed(xml_text, self.items_per_feed, self.min_title_length)

        records = [self.map_item(item, feed, query) for item in items]
        if query is not None:
            records = [r for r in records if query.matches_text(r.search_text)]

        self.logger.debug("feed_read", feed=feed.name, items=len(items), kept=len(records))
        return records

    def map_item(self, item: FeedItem, feed: FeedConfig, query: Optional[SearchQuery] = None) -> GrantRecord:
        """Map one feed item to a GrantRecord."""
        text = f"{item.title} {item.description}"
        published = parse_date(item.pub_date)
        deadline, is_estimated = extract_deadline(
            item.description,
            published or self.today(),
            self.config.default_deadline_days,
        )

        return self.build_record(
            query,
            title=item.title,
            funder=extract_funder(item.description, feed.name),
            deadline=deadline,
            is_estimated=is_estimated,
            description=item.description,
            amount=extract_amount(text),
            category=Category.coerce(feed.category) if feed.category else None,
            funder_type=FunderType.coerce(feed.type),
            url=item.link,
            date_posted=published.isoformat() if published else None,
            source=feed.name,
        )

    async def fetch(self, query: SearchQuery) -> list[GrantRecord]:
        results = await asyncio.gather(
            *(self.read_feed(feed, query) for feed in self.feeds),
            return_exceptions=True,
        )

        records: list[GrantRecord] = []
        failures = []
        for feed, result in zip(self.feeds, results):
            if isinstance(result, BaseException):
                self.logger.warning("feed_failed", feed=feed.name, error=str(result))
                failures.append(feed.name)
            else:
                records.extend(result)

        if failures and len(failures) == len(self.feeds):
            raise AdapterError(f"All {len(failures)} feeds failed")

        return records
