"""GitHub proxy: tree listings, raw file contents and repository listings.

Every upstream failure is converted to ``CodeMindError`` here; nothing is
retried except the legacy ``main``/``master`` probe, which only runs when
repository metadata names no default branch.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol
from urllib.parse import quote

import httpx
import structlog
from pydantic import TypeAdapter, ValidationError

from codemind.cache import LookupStatus
from codemind.config import GithubSettings
from codemind.errors import CodeMindError, ErrorCode
from codemind.models.github import RepoInfo, TreeData

if TYPE_CHECKING:
    from codemind.cache import Cache

log = structlog.get_logger()

_LEGACY_BRANCHES = ("main", "master")

# Cache slot for "whatever the default branch is". Git forbids a branch named HEAD.
DEFAULT_BRANCH_ALIAS = "HEAD"

# Content-type prefixes that never carry analyzable text.
_BINARY_TYPES = (
    "image/",
    "video/",
    "audio/",
    "application/pdf",
    "application/octet-stream",
)

_repo_list_adapter = TypeAdapter(list[RepoInfo])


def build_http_client() -> httpx.AsyncClient:
    """Shared client for all GitHub traffic.

    No timeout is applied: a hung upstream call hangs only its own request.
    """
    return httpx.AsyncClient(timeout=None, follow_redirects=True)


def is_binary_content_type(content_type: str | None) -> bool:
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type.startswith(_BINARY_TYPES)


def _parse_error_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


def upstream_error(response: httpx.Response, subject: str = "Repository") -> CodeMindError:
    """Translate a non-success GitHub response into a descriptive error."""
    status = response.status_code
    details = _parse_error_body(response)

    if status == 404:
        if subject == "Repository":
            message = (
                "Repository not found or private. Public repositories work without a "
                "token; private ones need a GitHub token with access."
            )
        else:
            message = f"{subject} not found."
        return CodeMindError(ErrorCode.REPO_NOT_FOUND, message, status, details)
    if status == 403 or status == 429:
        return CodeMindError(
            ErrorCode.RATE_LIMITED,
            "GitHub API rate limit exceeded. Try again later or provide a GitHub token.",
            status,
            details,
        )
    if status == 401:
        return CodeMindError(
            ErrorCode.UPSTREAM_ERROR, "GitHub rejected the supplied token.", status, details
        )
    return CodeMindError(
        ErrorCode.UPSTREAM_ERROR,
        f"GitHub request failed with status {status}.",
        status,
        details,
    )


class BranchResolver(Protocol):
    async def resolve(self, owner: str, repo: str, headers: dict[str, str]) -> str | None:
        """Return the default branch, or None when the repository names none."""
        ...


class ExplicitBranchResolver:
    """Reads ``default_branch`` from the repository metadata endpoint."""

    def __init__(self, client: httpx.AsyncClient, api_url: str) -> None:
        self._client = client
        self._api_url = api_url.rstrip("/")

    async def resolve(self, owner: str, repo: str, headers: dict[str, str]) -> str | None:
        url = f"{self._api_url}/repos/{owner}/{repo}"
        data = await request_json(self._client, url, headers)
        branch = data.get("default_branch") if isinstance(data, dict) else None
        return branch or None


async def request_json(
    client: httpx.AsyncClient,
    url: str,
    headers: dict[str, str],
    params: dict[str, Any] | None = None,
) -> Any:
    """GET a GitHub API URL and return the decoded JSON body."""
    try:
        response = await client.get(url, headers=headers, params=params)
    except httpx.HTTPError as exc:
        log.warning("github_network_error", url=url, error=str(exc))
        raise CodeMindError(
            ErrorCode.INTERNAL_ERROR, "Failed to reach the GitHub API.", 500
        ) from exc

    if not response.is_success:
        log.info("github_upstream_error", url=url, status=response.status_code)
        raise upstream_error(response)

    try:
        return response.json()
    except ValueError as exc:
        raise CodeMindError(
            ErrorCode.INTERNAL_ERROR, "GitHub returned a malformed JSON response.", 500
        ) from exc


class GithubProxy:
    """Write-through cache in front of the GitHub REST and raw endpoints."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: Cache,
        settings: GithubSettings | None = None,
        resolver: BranchResolver | None = None,
    ) -> None:
        self._client = client
        self._cache = cache
        self._settings = settings or GithubSettings()
        self._api_url = self._settings.api_url.rstrip("/")
        self._raw_url = self._settings.raw_url.rstrip("/")
        self._resolver = resolver or ExplicitBranchResolver(client, self._api_url)

    def _token(self, user_token: str | None) -> str | None:
        return user_token or self._settings.token or None

    def _api_headers(self, user_token: str | None) -> dict[str, str]:
        headers = {
            "User-Agent": self._settings.user_agent,
            "Accept": "application/vnd.github.v3+json",
        }
        token = self._token(user_token)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _raw_headers(self, user_token: str | None) -> dict[str, str]:
        headers = {"User-Agent": self._settings.user_agent}
        token = self._token(user_token)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    # ------------------------------------------------------------------
    # Trees
    # ------------------------------------------------------------------

    async def get_tree(
        self,
        owner: str,
        repo: str,
        branch: str | None = None,
        user_token: str | None = None,
    ) -> TreeData:
        headers = self._api_headers(user_token)

        if branch:
            tree, _ = await self._get_tree_for_branch(owner, repo, branch, headers)
            return tree

        lookup = await self._cache.get_tree(owner, repo, DEFAULT_BRANCH_ALIAS)
        if lookup.hit:
            log.debug("cache_hit", kind="tree", owner=owner, repo=repo, branch=lookup.value.branch)
            return lookup.value

        tree, fetched = await self._get_default_tree(owner, repo, headers)
        # The alias must not outlive the row it was copied from.
        if fetched:
            await self._cache.set_tree(owner, repo, DEFAULT_BRANCH_ALIAS, tree)
        return tree

    async def _get_default_tree(
        self, owner: str, repo: str, headers: dict[str, str]
    ) -> tuple[TreeData, bool]:
        resolved = await self._resolver.resolve(owner, repo, headers)
        if resolved:
            return await self._get_tree_for_branch(owner, repo, resolved, headers)

        log.info("github_default_branch_unknown", owner=owner, repo=repo)
        for candidate in _LEGACY_BRANCHES[:-1]:
            try:
                return await self._get_tree_for_branch(owner, repo, candidate, headers)
            except CodeMindError as exc:
                if exc.status_code != 404:
                    raise
        return await self._get_tree_for_branch(owner, repo, _LEGACY_BRANCHES[-1], headers)

    async def _get_tree_for_branch(
        self, owner: str, repo: str, branch: str, headers: dict[str, str]
    ) -> tuple[TreeData, bool]:
        """Return the tree and whether it came from upstream rather than the cache."""
        lookup = await self._cache.get_tree(owner, repo, branch)
        if lookup.hit:
            log.debug("cache_hit", kind="tree", owner=owner, repo=repo, branch=branch)
            return lookup.value, False
        if lookup.status is LookupStatus.UNAVAILABLE:
            log.info("cache_unavailable", kind="tree", owner=owner, repo=repo)

        url = f"{self._api_url}/repos/{owner}/{repo}/git/trees/{quote(branch, safe='')}"
        data = await request_json(self._client, url, headers, params={"recursive": "1"})
        if not isinstance(data, dict):
            raise CodeMindError(
                ErrorCode.INTERNAL_ERROR, "GitHub returned an unexpected tree payload.", 500
            )

        try:
            tree = TreeData.model_validate({**data, "branch": branch})
        except ValidationError as exc:
            raise CodeMindError(
                ErrorCode.INTERNAL_ERROR, "GitHub returned an unexpected tree payload.", 500
            ) from exc

        await self._cache.set_tree(owner, repo, branch, tree)
        log.info(
            "github_tree_fetched",
            owner=owner,
            repo=repo,
            branch=branch,
            entries=len(tree.tree),
            truncated=tree.truncated,
        )
        return tree, True

    # ------------------------------------------------------------------
    # File contents
    # ------------------------------------------------------------------

    async def get_file_content(
        self,
        owner: str,
        repo: str,
        branch: str,
        path: str,
        user_token: str | None = None,
    ) -> str:
        lookup = await self._cache.get_content(owner, repo, branch, path)
        if lookup.hit:
            log.debug("cache_hit", kind="content", owner=owner, repo=repo, path=path)
            return lookup.value
        if lookup.status is LookupStatus.UNAVAILABLE:
            log.info("cache_unavailable", kind="content", owner=owner, repo=repo, path=path)

        url = f"{self._raw_url}/{owner}/{repo}/{quote(branch, safe='')}/{quote(path)}"
        limit = self._settings.max_content_bytes
        try:
            async with self._client.stream(
                "GET", url, headers=self._raw_headers(user_token)
            ) as response:
                if not response.is_success:
                    await response.aread()
                    log.info("github_upstream_error", url=url, status=response.status_code)
                    raise upstream_error(response, subject="File")

                self._check_declared(response, path, limit)
                chunks: list[bytes] = []
                received = 0
                async for chunk in response.aiter_bytes():
                    received += len(chunk)
                    if received > limit:
                        raise _too_large(path, limit)
                    chunks.append(chunk)
                text = b"".join(chunks).decode(response.encoding or "utf-8", errors="replace")
        except httpx.HTTPError as exc:
            log.warning("github_network_error", url=url, error=str(exc))
            raise CodeMindError(
                ErrorCode.INTERNAL_ERROR, "Failed to fetch file content.", 500
            ) from exc

        await self._cache.set_content(owner, repo, branch, path, text)
        return text

    @staticmethod
    def _check_declared(response: httpx.Response, path: str, limit: int) -> None:
        declared = response.headers.get("content-length")
        if declared is not None and declared.isdigit() and int(declared) > limit:
            raise _too_large(path, limit)

        content_type = response.headers.get("content-type")
        if is_binary_content_type(content_type):
            raise CodeMindError(
                ErrorCode.BINARY_CONTENT,
                f"File {path!r} is binary ({content_type}) and cannot be analyzed.",
            )

    # ------------------------------------------------------------------
    # Repository listing
    # ------------------------------------------------------------------

    async def list_repos(self, user_token: str | None) -> list[RepoInfo]:
        """List repositories visible to the user's own token."""
        if not user_token:
            raise CodeMindError(
                ErrorCode.AUTH_REQUIRED, "A GitHub token is required to list repositories."
            )

        headers = {
            "User-Agent": self._settings.user_agent,
            "Accept": "application/vnd.github.v3+json",
            "Authorization": f"Bearer {user_token}",
        }
        data = await request_json(
            self._client,
            f"{self._api_url}/user/repos",
            headers,
            params={"per_page": 100, "sort": "updated"},
        )
        try:
            return _repo_list_adapter.validate_python(data)
        except ValidationError as exc:
            raise CodeMindError(
                ErrorCode.INTERNAL_ERROR, "GitHub returned an unexpected repository list.", 500
            ) from exc


def _too_large(path: str, limit: int) -> CodeMindError:
    return CodeMindError(
        ErrorCode.PAYLOAD_TOO_LARGE,
        f"File {path!r} exceeds the {limit // (1024 * 1024)} MiB limit.",
    )
