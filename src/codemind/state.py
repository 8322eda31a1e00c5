"""Application state: the composition root shared by all request handlers."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import structlog

from codemind.cache import Cache
from codemind.gateway import LlmGateway
from codemind.github import GithubProxy, build_http_client
from codemind.keys import ApiKeyPool

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    import httpx

    from codemind.config import Settings

log = structlog.get_logger()


@dataclass
class AppState:
    """Long-lived components, created once at startup and passed by reference."""

    settings: Settings
    http_client: httpx.AsyncClient
    cache: Cache
    github: GithubProxy
    key_pool: ApiKeyPool
    gateway: LlmGateway


@asynccontextmanager
async def open_state(settings: Settings) -> AsyncIterator[AppState]:
    """Open the cache database and HTTP client, and wire every component."""
    db_path = Path(settings.cache.db_path).expanduser()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    async with aiosqlite.connect(db_path) as db:
        cache = Cache(db, ttl_hours=settings.cache.ttl_hours)
        await cache.init_db()
        await cache.cleanup_expired()

        async with build_http_client() as client:
            key_pool = ApiKeyPool()
            state = AppState(
                settings=settings,
                http_client=client,
                cache=cache,
                github=GithubProxy(client, cache, settings.github),
                key_pool=key_pool,
                gateway=LlmGateway(key_pool, settings.llm),
            )
            log.info("app_state_ready", db_path=str(db_path))
            yield state
