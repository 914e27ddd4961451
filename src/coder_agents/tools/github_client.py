"""Async GitHub REST adapter covering the Git Data API calls the pusher needs.

Reads (repository, ref, commit and user lookups) are idempotent and are
retried with exponential backoff on transport errors, ``429`` and ``5xx``.
Writes (repository creation, blobs, trees, commits, refs) are issued exactly
once. A 429, 5xx or rate-limited 403 on a write surfaces as
:class:`~coder_agents.errors.TransientNetworkError`; any other rejection as
:class:`~coder_agents.errors.GitHubApiError`.
"""

from __future__ import annotations

import asyncio
import base64
from typing import Any, Dict, Iterable, List, Mapping, Optional, cast
from urllib.parse import quote

import httpx

from mcp_agent.logging.logger import get_logger

from coder_agents.errors import GitHubApiError, TransientNetworkError

logger = get_logger(__name__)

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def _body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _is_transient(response: httpx.Response) -> bool:
    if response.status_code in _RETRYABLE_STATUS:
        return True
    # Secondary rate limits come back as 403 with an exhausted quota or Retry-After.
    return response.status_code == 403 and (
        response.headers.get("x-ratelimit-remaining") == "0" or "retry-after" in response.headers
    )


def _ref_path(owner: str, repo: str, branch: str) -> str:
    return f"/repos/{owner}/{repo}/git/refs/heads/{quote(branch, safe='/')}"


class GitHubClient:
    """Thin async wrapper around ``api.github.com``.

    Parameters:
        token: Personal access or installation token sent as a bearer token.
        api_base: REST root, overridable for GitHub Enterprise.
        read_retries: Total attempts for idempotent reads.
        retry_backoff: Base delay in seconds; doubled on each retry.
        transport: Optional httpx transport, used by tests to plug in a fake.
    """

    def __init__(
        self,
        *,
        token: str | None,
        api_base: str = "https://api.github.com",
        timeout: float = 60.0,
        read_retries: int = 3,
        retry_backoff: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "coder-agents",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.read_retries = max(1, read_retries)
        self.retry_backoff = retry_backoff
        self._client = httpx.AsyncClient(
            base_url=api_base.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, *, missing: Iterable[int] = (404,)) -> Optional[Dict[str, Any]]:
        missing_statuses = set(missing)
        last_error = ""
        for attempt in range(1, self.read_retries + 1):
            try:
                response = await self._client.get(path)
            except httpx.TransportError as exc:
                last_error = str(exc) or exc.__class__.__name__
            else:
                if response.status_code in missing_statuses:
                    return None
                if response.is_success:
                    return response.json()
                if not _is_transient(response):
                    raise GitHubApiError("GET", path, response.status_code, _body(response))
                last_error = f"HTTP {response.status_code}"

            if attempt < self.read_retries:
                delay = self.retry_backoff * (2 ** (attempt - 1))
                logger.warning(
                    f"Retrying GitHub read {path}",
                    data={"attempt": attempt, "delay": delay, "error": last_error},
                )
                await asyncio.sleep(delay)
        raise TransientNetworkError(f"GET {path}", self.read_retries, last_error)

    async def _write(
        self,
        method: str,
        path: str,
        payload: Mapping[str, Any],
        *,
        expected: Iterable[int] = (200, 201),
    ) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=dict(payload))
        except httpx.TransportError as exc:
            raise TransientNetworkError(f"{method} {path}", 1, str(exc) or exc.__class__.__name__) from exc
        if response.status_code not in set(expected):
            if _is_transient(response):
                raise TransientNetworkError(f"{method} {path}", 1, f"HTTP {response.status_code}")
            raise GitHubApiError(method, path, response.status_code, _body(response))
        return response.json() if response.content else {}

    async def get_authenticated_user(self) -> Dict[str, Any]:
        return cast(Dict[str, Any], await self._get("/user", missing=()))

    async def get_repository(self, owner: str, repo: str) -> Optional[Dict[str, Any]]:
        return await self._get(f"/repos/{owner}/{repo}")

    async def create_repository(
        self,
        name: str,
        *,
        organization: str | None = None,
        private: bool = True,
        description: str | None = None,
        auto_init: bool = True,
    ) -> Dict[str, Any]:
        """Create a repository under the token user or ``organization``.

        ``auto_init`` makes GitHub write an initial commit so the default
        branch exists; the Git Data API rejects blobs and trees on an empty
        repository.
        """

        payload: Dict[str, Any] = {"name": name, "private": private, "auto_init": auto_init}
        if description:
            payload["description"] = description
        path = f"/orgs/{organization}/repos" if organization else "/user/repos"
        return await self._write("POST", path, payload, expected=(201,))

    async def get_branch_sha(self, owner: str, repo: str, branch: str) -> Optional[str]:
        """Return the tip of ``branch`` or ``None`` when it does not exist.

        An empty repository answers ``409``; it has no branches yet.
        """

        path = f"/repos/{owner}/{repo}/git/ref/heads/{quote(branch, safe='/')}"
        ref = await self._get(path, missing=(404, 409))
        if ref is None:
            return None
        return ref["object"]["sha"]

    async def create_initial_commit(self, owner: str, repo: str, branch: str) -> str:
        """Bootstrap an empty repository with one commit holding ``.gitkeep``."""

        result = await self._write(
            "PUT",
            f"/repos/{owner}/{repo}/contents/.gitkeep",
            {"message": "Initial commit", "content": "", "branch": branch},
            expected=(201,),
        )
        return result["commit"]["sha"]

    async def create_ref(self, owner: str, repo: str, branch: str, sha: str) -> None:
        await self._write(
            "POST",
            f"/repos/{owner}/{repo}/git/refs",
            {"ref": f"refs/heads/{branch}", "sha": sha},
            expected=(201,),
        )

    async def update_ref(
        self, owner: str, repo: str, branch: str, sha: str, *, force: bool = False
    ) -> None:
        await self._write(
            "PATCH", _ref_path(owner, repo, branch), {"sha": sha, "force": force}, expected=(200,)
        )

    async def get_commit(self, owner: str, repo: str, sha: str) -> Dict[str, Any]:
        return cast(
            Dict[str, Any], await self._get(f"/repos/{owner}/{repo}/git/commits/{sha}", missing=())
        )

    async def create_blob(self, owner: str, repo: str, content: bytes) -> str:
        blob = await self._write(
            "POST",
            f"/repos/{owner}/{repo}/git/blobs",
            {"content": base64.b64encode(content).decode("ascii"), "encoding": "base64"},
            expected=(201,),
        )
        return blob["sha"]

    async def create_tree(
        self,
        owner: str,
        repo: str,
        entries: List[Dict[str, Any]],
        *,
        base_tree: str | None = None,
    ) -> str:
        payload: Dict[str, Any] = {"tree": entries}
        if base_tree:
            payload["base_tree"] = base_tree
        tree = await self._write(
            "POST", f"/repos/{owner}/{repo}/git/trees", payload, expected=(201,)
        )
        return tree["sha"]

    async def create_commit(
        self, owner: str, repo: str, *, message: str, tree: str, parents: List[str]
    ) -> str:
        commit = await self._write(
            "POST",
            f"/repos/{owner}/{repo}/git/commits",
            {"message": message, "tree": tree, "parents": parents},
            expected=(201,),
        )
        return commit["sha"]


__all__ = ["GitHubClient"]
