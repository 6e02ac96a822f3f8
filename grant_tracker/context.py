"""
Application context.

Bundles the shared collaborators (config, store, HTTP client, identity
resolver, clock) that the search orchestrator, tracking service, feed
monitor and web app receive explicitly.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Optional

import structlog

from .config.loader import AppConfig
from .core.http_client import HttpClient
from .identity import HeaderHashIdentityResolver, IdentityResolver
from .storage.base import KeyValueStore, MemoryStore

logger = structlog.get_logger(__name__)


@dataclass
class AppContext:
    config: AppConfig
    store: KeyValueStore
    http_client: HttpClient
    identity: IdentityResolver = field(default_factory=HeaderHashIdentityResolver)
    today: Callable[[], date] = date.today

    @classmethod
    def create(
        cls,
        config: AppConfig,
        store: Optional[KeyValueStore] = None,
        http_client: Optional[HttpClient] = None,
        identity: Optional[IdentityResolver] = None,
        today: Callable[[], date] = date.today,
    ) -> "AppContext":
        """
        Build a context, filling in defaults from config.

        Args:
            config: Application config
            store: Key-value store (defaults to MemoryStore)
            http_client: HTTP client (defaults to one built from config.http)
            identity: Identity resolver (defaults to header hashing)
            today: Clock for deadlines and timestamps

        Returns:
            AppContext (call start() before issuing requests)
        """
        if http_client is None:
            http_client = HttpClient(
                requests_per_second=config.http.requests_per_second,
                timeout=config.http.timeout,
                max_retries=config.http.max_retries,
            )
        return cls(
            config=config,
            store=store if store is not None else MemoryStore(),
            http_client=http_client,
            identity=identity or HeaderHashIdentityResolver(),
            today=today,
        )

    async def start(self) -> None:
        """Open the shared HTTP client."""
        if not self.http_client.is_open:
            await self.http_client.__aenter__()
        logger.debug("context_started", store=type(self.store).__name__)

    async def close(self) -> None:
        await self.http_client.aclose()
        await self.store.close()

    async def __aenter__(self) -> "AppContext":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
