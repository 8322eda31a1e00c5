"""HTTP surface: JSON endpoints over the GitHub proxy and the LLM gateway.

Handlers only validate input and translate results. Every ``CodeMindError``
is rendered by one exception handler into the uniform error envelope.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any, TypeVar

import structlog
from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse
from google.genai import errors as genai_errors
from pydantic import BaseModel, ValidationError

from codemind import __version__
from codemind.errors import CodeMindError, ErrorCode
from codemind.gateway import llm_error
from codemind.models.ai import AnalyzeInput, BlueprintInput, ThinkInput
from codemind.models.github import ContentQuery, TreeQuery
from codemind.state import AppState, open_state

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from codemind.config import Settings
    from codemind.models.ai import ModelResponse

log = structlog.get_logger()

M = TypeVar("M", bound=BaseModel)

GithubToken = Annotated[str | None, Header(alias="x-github-token")]
GeminiKey = Annotated[str | None, Header(alias="x-gemini-key")]


def get_state(request: Request) -> AppState:
    return request.app.state.codemind


State = Annotated[AppState, Depends(get_state)]


def _parse_query(model: type[M], params: dict[str, Any], message: str) -> M:
    try:
        return model.model_validate(params)
    except ValidationError as exc:
        raise CodeMindError(
            ErrorCode.INVALID_INPUT,
            message,
            details=exc.errors(include_url=False, include_context=False),
        ) from exc


def _model_json(response: ModelResponse) -> dict[str, Any]:
    return response.model_dump(mode="json", by_alias=True)


# ----------------------------------------------------------------------
# Exception handlers
# ----------------------------------------------------------------------


async def _handle_app_error(request: Request, exc: CodeMindError) -> JSONResponse:
    log.info(
        "request_failed",
        path=request.url.path,
        code=exc.code.value,
        status=exc.status_code,
    )
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


async def _handle_llm_error(request: Request, exc: genai_errors.APIError) -> JSONResponse:
    log.warning("llm_request_failed", path=request.url.path, code=exc.code, status=exc.status)
    return await _handle_app_error(request, llm_error(exc))


async def _handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    error = CodeMindError(
        ErrorCode.INVALID_INPUT,
        "Invalid request.",
        details=[
            {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()
        ],
    )
    return await _handle_app_error(request, error)


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    log.error("unhandled_error", path=request.url.path, exc_info=exc)
    error = CodeMindError(ErrorCode.INTERNAL_ERROR, "Unexpected server error.")
    return JSONResponse(error.to_dict(), status_code=error.status_code)


# ----------------------------------------------------------------------
# Application factory
# ----------------------------------------------------------------------


def create_app(settings: Settings, state: AppState | None = None) -> FastAPI:
    """Build the FastAPI app.

    When ``state`` is given it is used as-is (tests). Otherwise the state is
    opened in the lifespan and closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if state is not None:
            app.state.codemind = state
            yield
            return
        async with open_state(settings) as opened:
            app.state.codemind = opened
            yield

    app = FastAPI(title="codemind", version=__version__, lifespan=lifespan)
    if state is not None:
        app.state.codemind = state

    app.add_exception_handler(CodeMindError, _handle_app_error)
    app.add_exception_handler(genai_errors.APIError, _handle_llm_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_exception_handler(Exception, _handle_unexpected)

    _register_routes(app)

    static_dir = Path(settings.server.static_dir)
    if settings.server.env == "production" and (static_dir / "index.html").is_file():
        _register_frontend(app, static_dir)

    return app


def _register_routes(app: FastAPI) -> None:
    @app.get("/api/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    # ------------------------------------------------------------------
    # GitHub
    # ------------------------------------------------------------------

    @app.get("/api/github/tree")
    async def github_tree(
        state: State,
        token: GithubToken = None,
        owner: str | None = None,
        repo: str | None = None,
        branch: str | None = None,
    ) -> JSONResponse:
        query = _parse_query(
            TreeQuery,
            {"owner": owner, "repo": repo, "branch": branch},
            "owner and repo are required.",
        )
        tree = await state.github.get_tree(query.owner, query.repo, query.branch, token)
        return JSONResponse(tree.model_dump(mode="json"))

    @app.get("/api/github/content")
    async def github_content(
        state: State,
        token: GithubToken = None,
        owner: str | None = None,
        repo: str | None = None,
        path: str | None = None,
        branch: str | None = None,
    ) -> PlainTextResponse:
        query = _parse_query(
            ContentQuery,
            {"owner": owner, "repo": repo, "path": path, "branch": branch},
            "owner, repo, path and branch are required.",
        )
        text = await state.github.get_file_content(
            query.owner, query.repo, query.branch, query.path, token
        )
        return PlainTextResponse(text)

    @app.get("/api/github/repos")
    async def github_repos(state: State, token: GithubToken = None) -> JSONResponse:
        repos = await state.github.list_repos(token)
        return JSONResponse([r.model_dump(mode="json") for r in repos])

    # ------------------------------------------------------------------
    # AI
    # ------------------------------------------------------------------

    @app.post("/api/ai/analyze")
    async def ai_analyze(
        body: AnalyzeInput, state: State, api_key: GeminiKey = None
    ) -> dict[str, Any]:
        response = await state.gateway.analyze(body.context_files, body.prompt, api_key)
        return _model_json(response)

    @app.post("/api/ai/think")
    async def ai_think(body: ThinkInput, state: State, api_key: GeminiKey = None) -> dict[str, Any]:
        response = await state.gateway.think(
            body.history, body.current_input, body.context, api_key
        )
        return _model_json(response)

    @app.post("/api/ai/blueprint")
    async def ai_blueprint(
        body: BlueprintInput, state: State, api_key: GeminiKey = None
    ) -> dict[str, Any]:
        response = await state.gateway.generate_blueprint(body.context_files, body.context, api_key)
        return _model_json(response)

    @app.post("/api/ai/keys")
    async def ai_upload_keys(request: Request, state: State) -> dict[str, int]:
        raw = await request.body()
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CodeMindError(ErrorCode.INVALID_INPUT, "Key file must be UTF-8 text.") from exc
        count = state.key_pool.load_key_file(text, state.settings.llm.min_key_length)
        return {"count": count}

    @app.get("/api/ai/keys")
    async def ai_key_count(state: State) -> dict[str, int]:
        return {"count": len(state.key_pool)}


def _register_frontend(app: FastAPI, static_dir: Path) -> None:
    """Serve the built frontend; unknown non-API paths get index.html for client routing."""
    root = static_dir.resolve()
    index = root / "index.html"

    @app.get("/{full_path:path}", include_in_schema=False)
    async def frontend(full_path: str) -> FileResponse:
        if full_path == "api" or full_path.startswith("api/"):
            raise HTTPException(status_code=404)
        candidate = (root / full_path).resolve()
        if full_path and candidate.is_relative_to(root) and candidate.is_file():
            return FileResponse(candidate)
        return FileResponse(index)
