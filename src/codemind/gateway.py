"""Gemini gateway with API-key rotation and a single quota fallback.

Each operation draws one key, then calls the primary model with Google
Search grounding. If that call fails with a quota error (HTTP 429) it is
retried exactly once on the fallback model without tools. Every other
failure, and any failure of the fallback call, propagates to the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from codemind import prompts
from codemind.config import LlmSettings
from codemind.errors import CodeMindError, ErrorCode
from codemind.models.ai import ModelResponse, RelatedLink

if TYPE_CHECKING:
    from collections.abc import Callable

    from codemind.keys import ApiKeyPool
    from codemind.models.ai import ChatTurn, ContextFile

log = structlog.get_logger()


def _default_client_factory(api_key: str) -> genai.Client:
    return genai.Client(api_key=api_key)


def is_quota_error(exc: BaseException) -> bool:
    return getattr(exc, "code", None) == 429 or "429" in str(exc)


def llm_error(exc: genai_errors.APIError) -> CodeMindError:
    """Map a genai API failure to the application error envelope."""
    if is_quota_error(exc):
        return CodeMindError(
            ErrorCode.QUOTA_EXCEEDED,
            "The AI service quota is exhausted for this key. Try again later or add more keys.",
        )
    status = exc.code if isinstance(exc.code, int) and 400 <= exc.code < 600 else 502
    return CodeMindError(
        ErrorCode.LLM_ERROR,
        f"The AI service failed: {exc.message or exc.status or 'unknown error'}",
        status,
    )


def extract_related_links(response: types.GenerateContentResponse) -> list[RelatedLink]:
    """Web sources cited by the first candidate's search grounding."""
    if not response.candidates:
        return []
    metadata = response.candidates[0].grounding_metadata
    if metadata is None or not metadata.grounding_chunks:
        return []
    links = []
    for chunk in metadata.grounding_chunks:
        web = chunk.web
        if web is None or not web.uri:
            continue
        links.append(RelatedLink(title=web.title or "Source", url=web.uri))
    return links


def to_model_response(
    response: types.GenerateContentResponse, model: str, fallback_used: bool
) -> ModelResponse:
    candidates = [
        c.model_dump(mode="json", by_alias=True, exclude_none=True)
        for c in response.candidates or []
    ]
    return ModelResponse(
        text=response.text or "",
        candidates=candidates or None,
        related_links=extract_related_links(response),
        model=model,
        fallback_used=fallback_used,
    )


def _content(role: str, text: str) -> types.Content:
    return types.Content(role=role, parts=[types.Part(text=text)])


class LlmGateway:
    """Sends analysis prompts to Gemini on behalf of the HTTP layer."""

    def __init__(
        self,
        pool: ApiKeyPool,
        settings: LlmSettings | None = None,
        client_factory: Callable[[str], Any] = _default_client_factory,
    ) -> None:
        self._pool = pool
        self._settings = settings or LlmSettings()
        self._client_factory = client_factory
        self._clients: dict[str, Any] = {}

    def _client(self, api_key: str | None) -> Any:
        """Client for an explicit key, else the next pool key, else the server key.

        Only pool and server keys get a cached client. Caller-supplied keys
        are used for one request and dropped.
        """
        if api_key:
            return self._client_factory(api_key)

        key = self._pool.next_key() or self._settings.api_key
        if not key:
            raise CodeMindError(
                ErrorCode.LLM_NOT_CONFIGURED,
                "No Gemini API key available. Upload a key file or configure a server key.",
            )
        client = self._clients.get(key)
        if client is None:
            self._prune_clients()
            client = self._clients[key] = self._client_factory(key)
        return client

    def _prune_clients(self) -> None:
        """Forget clients for keys no longer in the pool (after a key file upload)."""
        live = set(self._pool.keys)
        if self._settings.api_key:
            live.add(self._settings.api_key)
        for key in [k for k in self._clients if k not in live]:
            del self._clients[key]

    async def _generate(
        self,
        operation: str,
        contents: Any,
        system_instruction: str,
        api_key: str | None,
    ) -> ModelResponse:
        client = self._client(api_key)
        primary = self._settings.primary_model
        try:
            response = await client.aio.models.generate_content(
                model=primary,
                contents=contents,
                config=types.GenerateContentConfig(
                    system_instruction=system_instruction,
                    tools=[types.Tool(google_search=types.GoogleSearch())],
                ),
            )
        except Exception as exc:
            if not is_quota_error(exc):
                raise
            fallback = self._settings.fallback_model
            log.warning(
                "llm_quota_fallback", operation=operation, primary=primary, fallback=fallback
            )
            # The fallback model does not reliably support the search tool.
            response = await client.aio.models.generate_content(
                model=fallback,
                contents=contents,
                config=types.GenerateContentConfig(system_instruction=system_instruction),
            )
            return to_model_response(response, fallback, fallback_used=True)

        return to_model_response(response, primary, fallback_used=False)

    def _system(self, template: str) -> str:
        return prompts.system_prompt(template, self._settings.response_language)

    async def analyze(
        self,
        files: list[ContextFile],
        query: str | None = None,
        api_key: str | None = None,
    ) -> ModelResponse:
        log.info("llm_analyze", files=len(files), custom_query=bool(query))
        return await self._generate(
            "analyze",
            prompts.build_analysis_prompt(files, query),
            self._system(prompts.ANALYST_SYSTEM_PROMPT),
            api_key,
        )

    async def think(
        self,
        history: list[ChatTurn],
        current_input: str,
        context: str,
        api_key: str | None = None,
    ) -> ModelResponse:
        preamble = prompts.THINK_CONTEXT_PREFIX + (context or "No context available.")
        contents = [_content("user", preamble)]
        for turn in history:
            contents.append(_content("model" if turn.role == "model" else "user", turn.content))
        # Clients usually send the new message both in history and as currentInput.
        last = history[-1] if history else None
        if last is None or last.role != "user" or last.content != current_input:
            contents.append(_content("user", current_input))

        log.info("llm_think", turns=len(history))
        return await self._generate(
            "think", contents, self._system(prompts.THINK_SYSTEM_PROMPT), api_key
        )

    async def generate_blueprint(
        self,
        files: list[ContextFile],
        analysis: str,
        api_key: str | None = None,
    ) -> ModelResponse:
        log.info("llm_blueprint", files=len(files))
        return await self._generate(
            "blueprint",
            prompts.build_blueprint_prompt(files, analysis),
            self._system(prompts.BLUEPRINT_SYSTEM_PROMPT),
            api_key,
        )
