"""SQLite cache for proxied GitHub data with lazy time-based expiry.

Two tables keep the namespaces apart: ``repo_trees`` holds JSON tree
listings keyed ``owner/repo/branch`` and ``file_contents`` holds raw text
keyed ``owner/repo/branch/path``. Rows are replaced whole on every write and
deleted when read after their TTL has elapsed.

All store operations catch ``aiosqlite.Error`` internally. A read failure is
reported as ``LookupStatus.UNAVAILABLE`` rather than ``MISS`` so callers can
log it differently, but both mean "go upstream". A write failure is logged
and reported through the returned flag; it never raises.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Generic, TypeVar

import aiosqlite
import structlog
from pydantic import ValidationError

from codemind.models.github import TreeData

if TYPE_CHECKING:
    from collections.abc import Callable

log = structlog.get_logger()

T = TypeVar("T")

_CREATE_TREE_TABLE = """
CREATE TABLE IF NOT EXISTS repo_trees (
    id         TEXT PRIMARY KEY,
    data       TEXT NOT NULL,
    created_at INTEGER NOT NULL
)
"""

_CREATE_CONTENT_TABLE = """
CREATE TABLE IF NOT EXISTS file_contents (
    id         TEXT PRIMARY KEY,
    content    TEXT NOT NULL,
    created_at INTEGER NOT NULL
)
"""

_CREATE_TREE_INDEX = "CREATE INDEX IF NOT EXISTS idx_trees_created ON repo_trees(created_at)"
_CREATE_CONTENT_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_contents_created ON file_contents(created_at)"
)

# table -> payload column
_TABLES = {"repo_trees": "data", "file_contents": "content"}


def _now_ms() -> int:
    return int(time.time() * 1000)


def tree_key(owner: str, repo: str, branch: str) -> str:
    return f"{owner}/{repo}/{branch}"


def content_key(owner: str, repo: str, branch: str, path: str) -> str:
    return f"{owner}/{repo}/{branch}/{path}"


class LookupStatus(StrEnum):
    HIT = "hit"
    MISS = "miss"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class Lookup(Generic[T]):
    """Outcome of a cache read: the payload on HIT, ``None`` otherwise."""

    status: LookupStatus
    value: T | None = None

    @property
    def hit(self) -> bool:
        return self.status is LookupStatus.HIT


class Cache:
    """Expiring key-value store over a single aiosqlite connection."""

    def __init__(
        self,
        db: aiosqlite.Connection,
        ttl_hours: float = 12,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._db = db
        self._ttl_ms = int(ttl_hours * 3600 * 1000)
        self._clock = clock

    async def init_db(self) -> None:
        """Create tables and set WAL mode. Called once at startup."""
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(_CREATE_TREE_TABLE)
        await self._db.execute(_CREATE_CONTENT_TABLE)
        await self._db.execute(_CREATE_TREE_INDEX)
        await self._db.execute(_CREATE_CONTENT_INDEX)
        await self._db.commit()

    # ------------------------------------------------------------------
    # Tree listings
    # ------------------------------------------------------------------

    async def get_tree(self, owner: str, repo: str, branch: str) -> Lookup[TreeData]:
        key = tree_key(owner, repo, branch)
        raw = await self._try_get("repo_trees", key)
        if not raw.hit:
            return Lookup(raw.status)
        try:
            return Lookup(LookupStatus.HIT, TreeData.model_validate_json(raw.value))
        except ValidationError:
            # Corrupt row: treat as a miss and let the next write replace it.
            log.warning("cache_decode_error", key=f"tree:{key}", exc_info=True)
            return Lookup(LookupStatus.MISS)

    async def set_tree(self, owner: str, repo: str, branch: str, tree: TreeData) -> bool:
        key = tree_key(owner, repo, branch)
        return await self._try_set("repo_trees", key, tree.model_dump_json())

    # ------------------------------------------------------------------
    # File contents
    # ------------------------------------------------------------------

    async def get_content(self, owner: str, repo: str, branch: str, path: str) -> Lookup[str]:
        return await self._try_get("file_contents", content_key(owner, repo, branch, path))

    async def set_content(
        self, owner: str, repo: str, branch: str, path: str, content: str
    ) -> bool:
        return await self._try_set("file_contents", content_key(owner, repo, branch, path), content)

    # ------------------------------------------------------------------
    # Store primitives
    # ------------------------------------------------------------------

    async def _try_get(self, table: str, key: str) -> Lookup[str]:
        column = _TABLES[table]
        try:
            cursor = await self._db.execute(
                f"SELECT {column}, created_at FROM {table} WHERE id = ?", (key,)
            )
            row = await cursor.fetchone()
            if row is None:
                return Lookup(LookupStatus.MISS)

            if self._clock() - row[1] > self._ttl_ms:
                await self._db.execute(f"DELETE FROM {table} WHERE id = ?", (key,))
                await self._db.commit()
                log.debug("cache_expired", table=table, key=key)
                return Lookup(LookupStatus.MISS)

            return Lookup(LookupStatus.HIT, row[0])
        except aiosqlite.Error:
            log.warning("cache_read_error", table=table, key=key, exc_info=True)
            return Lookup(LookupStatus.UNAVAILABLE)

    async def _try_set(self, table: str, key: str, payload: str) -> bool:
        column = _TABLES[table]
        try:
            await self._db.execute(
                f"INSERT OR REPLACE INTO {table} (id, {column}, created_at) VALUES (?, ?, ?)",
                (key, payload, self._clock()),
            )
            await self._db.commit()
            return True
        except aiosqlite.Error:
            log.warning("cache_write_error", table=table, key=key, exc_info=True)
            return False

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def cleanup_expired(self) -> None:
        """Delete rows older than the TTL from both tables. Non-fatal on failure."""
        try:
            cutoff = self._clock() - self._ttl_ms

            cursor = await self._db.execute(
                "DELETE FROM repo_trees WHERE created_at < ?", (cutoff,)
            )
            trees_deleted = cursor.rowcount

            cursor = await self._db.execute(
                "DELETE FROM file_contents WHERE created_at < ?", (cutoff,)
            )
            contents_deleted = cursor.rowcount

            await self._db.commit()
            log.info(
                "cache_cleanup_complete",
                trees_deleted=trees_deleted,
                contents_deleted=contents_deleted,
            )
        except aiosqlite.Error:
            log.warning("cache_cleanup_error", exc_info=True)
