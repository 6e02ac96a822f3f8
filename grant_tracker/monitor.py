"""
RSS feed monitor.

Refreshes every active feed into the store so enhanced searches can scan
recent feed items without fetching them on the request path:

- rss-grants:<feed-slug>   parsed records (7 days)
- feed-status:<feed-slug>  last check outcome (30 days)
"""

import asyncio
import re
from datetime import datetime, timezone
from typing import Optional

import structlog

from .adapters.base import AdapterConfig, FeedConfig, describe_error
from .adapters.cache_scan import FEED_GRANTS_PREFIX, FEED_STATUS_PREFIX
from .adapters.rss_feed import RSSFeedAdapter
from .context import AppContext
from .core.exceptions import StorageUnavailable

logger = structlog.get_logger(__name__)


def feed_slug(name: str) -> str:
    """Store-key fragment for a feed name."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "feed"


class FeedMonitor:
    """Fetches configured feeds and records results and status."""

    def __init__(self, context: AppContext, adapter: Optional[RSSFeedAdapter] = None):
        """
        Initialize monitor.

        Args:
            context: Shared application context
            adapter: Feed reader (defaults to one built from the "rss"
                     adapter settings, or plain defaults)
        """
        self.context = context
        self.feeds = [feed for feed in context.config.feeds if feed.active]
        self.adapter = adapter or RSSFeedAdapter(
            self._rss_config(),
            context.http_client,
            feeds=self.feeds,
            today=context.today,
        )

    def _rss_config(self) -> AdapterConfig:
        for adapter_config in self.context.config.adapters:
            if adapter_config.type == "rss":
                return adapter_config
        return AdapterConfig(name="RSS Feeds", type="rss")

    async def _check_feed(self, feed: FeedConfig) -> dict:
        """Refresh one feed; returns its status record."""
        slug = feed_slug(feed.name)
        checked_at = datetime.now(timezone.utc).isoformat()
        monitor = self.context.config.monitor

        try:
            records = await asyncio.wait_for(
                self.adapter.read_feed(feed),
                timeout=self.adapter.config.timeout,
            )
        except asyncio.TimeoutError:
            status = {"status": "error", "lastChecked": checked_at, "error": "Timed out"}
            records = None
        except Exception as e:
            status = {"status": "error", "lastChecked": checked_at, "error": describe_error(e)}
            records = None
        else:
            status = {"status": "success", "lastChecked": checked_at, "grantCount": len(records)}

        if records is not None:
            await self.context.store.put(
                f"{FEED_GRANTS_PREFIX}{slug}",
                {
                    "feed": feed.name,
                    "url": feed.url,
                    "lastUpdated": checked_at,
                    "grants": [record.to_dict() for record in records],
                },
                ttl=monitor.grants_ttl,
            )

        await self.context.store.put(
            f"{FEED_STATUS_PREFIX}{slug}",
            {"name": feed.name, "url": feed.url, **status},
            ttl=monitor.status_ttl,
        )

        logger.info("feed_checked", feed=feed.name, status=status["status"], error=status.get("error"))
        return {"name": feed.name, "records": len(records or []), **status}

    async def run(self) -> dict:
        """
        Refresh all active feeds concurrently.

        Returns:
            {totalFeeds, successful, failed, newGrants, errors, timestamp}

        Raises:
            StorageUnavailable: Results could not be stored
        """
        logger.info("feed_monitor_started", feeds=len(self.feeds))
        results = await asyncio.gather(*(self._check_feed(feed) for feed in self.feeds))

        summary = {
            "totalFeeds": len(self.feeds),
            "successful": sum(1 for r in results if r["status"] == "success"),
            "failed": sum(1 for r in results if r["status"] == "error"),
            "newGrants": sum(r["records"] for r in results),
            "errors": [f"{r['name']}: {r['error']}" for r in results if r["status"] == "error"],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        logger.info("feed_monitor_complete", **{k: v for k, v in summary.items() if k != "errors"})
        return summary

    async def status(self) -> dict:
        """
        Configured feeds with their last stored status.

        Returns:
            {feeds: [{name, url, type, status, lastChecked, ...}], totalFeeds}
        """
        feeds = []
        for feed in self.feeds:
            entry = {"name": feed.name, "url": feed.url, "type": feed.type, "status": "unknown"}
            try:
                stored = await self.context.store.get(f"{FEED_STATUS_PREFIX}{feed_slug(feed.name)}")
            except StorageUnavailable as e:
                logger.warning("feed_status_unavailable", feed=feed.name, error=e.message)
                stored = None
            if stored:
                entry.update({k: v for k, v in stored.items() if k not in ("name", "url")})
            feeds.append(entry)

        return {"feeds": feeds, "totalFeeds": len(feeds)}
