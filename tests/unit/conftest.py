"""Unit-specific fixtures (no I/O beyond in-memory SQLite and mocked HTTP)."""

from __future__ import annotations

import aiosqlite
import httpx
import pytest

from codemind.cache import Cache
from codemind.config import GithubSettings
from codemind.github import GithubProxy


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance_hours(self, hours: float) -> None:
        self.now += int(hours * 3600 * 1000)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
async def cache(clock: FakeClock):
    """In-memory SQLite cache with a 12 hour TTL driven by ``clock``."""
    async with aiosqlite.connect(":memory:") as db:
        c = Cache(db, ttl_hours=12, clock=clock)
        await c.init_db()
        yield c


@pytest.fixture()
async def http_client():
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture()
def proxy(http_client: httpx.AsyncClient, cache: Cache) -> GithubProxy:
    return GithubProxy(http_client, cache, GithubSettings())
