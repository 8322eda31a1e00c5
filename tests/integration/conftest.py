"""Integration test fixtures.

Provides a fully wired AppState with in-memory SQLite, a real HTTP client
(mocked per test with respx) and a Gemini client factory that never leaves
the process. The app is driven through httpx's ASGI transport.
"""

from __future__ import annotations

import os
from types import SimpleNamespace
from typing import TYPE_CHECKING, Any

import aiosqlite
import httpx
import pytest
from google.genai import errors as genai_errors
from google.genai import types

from codemind.api import create_app
from codemind.cache import Cache
from codemind.config import Settings
from codemind.gateway import LlmGateway
from codemind.github import GithubProxy
from codemind.keys import ApiKeyPool
from codemind.state import AppState

if TYPE_CHECKING:
    from pathlib import Path

SERVER_KEY = "server-key-0123456789abcdef"


def make_response(text: str, link: tuple[str, str] | None = None) -> types.GenerateContentResponse:
    grounding = None
    if link is not None:
        title, uri = link
        grounding = types.GroundingMetadata(
            grounding_chunks=[
                types.GroundingChunk(web=types.GroundingChunkWeb(title=title, uri=uri))
            ]
        )
    return types.GenerateContentResponse(
        candidates=[
            types.Candidate(
                content=types.Content(role="model", parts=[types.Part(text=text)]),
                grounding_metadata=grounding,
            )
        ]
    )


def quota_error() -> genai_errors.ClientError:
    return genai_errors.ClientError(
        429, {"error": {"code": 429, "message": "Quota exceeded", "status": "RESOURCE_EXHAUSTED"}}
    )


class FakeGenai:
    """Client factory whose clients answer from a queue of outcomes."""

    def __init__(self) -> None:
        self.outcomes: list[Any] = []
        self.calls: list[dict[str, Any]] = []

    def reply(self, text: str, link: tuple[str, str] | None = None) -> None:
        self.outcomes.append(make_response(text, link))

    def fail_with_quota(self, times: int = 1) -> None:
        self.outcomes.extend(quota_error() for _ in range(times))

    def factory(self, api_key: str) -> Any:
        async def generate_content(*, model: str, contents: Any, config: Any) -> Any:
            self.calls.append({"key": api_key, "model": model, "contents": contents})
            outcome = self.outcomes.pop(0) if self.outcomes else make_response("## Result")
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome

        models = SimpleNamespace(generate_content=generate_content)
        return SimpleNamespace(aio=SimpleNamespace(models=models))


@pytest.fixture()
def fake_genai() -> FakeGenai:
    return FakeGenai()


@pytest.fixture()
async def app_state(fake_genai: FakeGenai) -> AppState:
    """Full AppState wired for integration tests."""
    settings = Settings(llm={"api_key": SERVER_KEY})  # type: ignore[arg-type]
    async with aiosqlite.connect(":memory:") as db:
        cache = Cache(db)
        await cache.init_db()

        async with httpx.AsyncClient() as client:
            key_pool = ApiKeyPool()
            state = AppState(
                settings=settings,
                http_client=client,
                cache=cache,
                github=GithubProxy(client, cache, settings.github),
                key_pool=key_pool,
                gateway=LlmGateway(key_pool, settings.llm, fake_genai.factory),
            )
            yield state


@pytest.fixture()
async def client(app_state: AppState):
    app = create_app(app_state.settings, app_state)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture()
def subprocess_env(tmp_path: Path) -> dict[str, str]:
    """Environment for server subprocesses: no inherited CODEMIND__ settings."""
    env = {k: v for k, v in os.environ.items() if not k.startswith("CODEMIND__")}
    env["CODEMIND__CACHE__DB_PATH"] = str(tmp_path / "cache.db")
    env["CODEMIND__SERVER__HOST"] = "127.0.0.1"
    return env
