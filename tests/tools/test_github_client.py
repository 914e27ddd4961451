import base64
import json

import httpx
import pytest

from coder_agents.errors import GitHubApiError, TransientNetworkError
from coder_agents.tools.github_client import GitHubClient


pytestmark = pytest.mark.anyio


@pytest.fixture
def anyio_backend():
    return "asyncio"


def _client(handler, **kwargs) -> GitHubClient:
    kwargs.setdefault("retry_backoff", 0.0)
    return GitHubClient(token="secret", transport=httpx.MockTransport(handler), **kwargs)


async def test_sends_auth_and_api_headers():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.headers)
        return httpx.Response(200, json={"login": "octo"})

    async with _client(handler) as client:
        user = await client.get_authenticated_user()

    assert user["login"] == "octo"
    assert seen["authorization"] == "Bearer secret"
    assert seen["accept"] == "application/vnd.github+json"


async def test_read_retries_transport_errors():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request.url.path)
        if len(attempts) < 3:
            raise httpx.ConnectError("connection reset", request=request)
        return httpx.Response(200, json={"default_branch": "main"})

    async with _client(handler, read_retries=3) as client:
        repo = await client.get_repository("octo", "site")

    assert repo == {"default_branch": "main"}
    assert len(attempts) == 3


async def test_read_gives_up_after_bounded_attempts():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"message": "rate limited"})

    async with _client(handler, read_retries=2) as client:
        with pytest.raises(TransientNetworkError) as excinfo:
            await client.get_repository("octo", "site")

    assert excinfo.value.attempts == 2
    assert "429" in excinfo.value.cause


async def test_missing_repository_and_branch_return_none():
    def handler(request: httpx.Request) -> httpx.Response:
        if "/git/ref/" in request.url.path:
            return httpx.Response(409, json={"message": "Git Repository is empty."})
        return httpx.Response(404, json={"message": "Not Found"})

    async with _client(handler) as client:
        assert await client.get_repository("octo", "site") is None
        assert await client.get_branch_sha("octo", "site", "main") is None


async def test_client_errors_are_not_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(401, json={"message": "Bad credentials"})

    async with _client(handler, read_retries=5) as client:
        with pytest.raises(GitHubApiError) as excinfo:
            await client.get_repository("octo", "site")

    assert len(calls) == 1
    assert excinfo.value.status_code == 401
    assert "Bad credentials" in str(excinfo.value)


async def test_writes_are_sent_once():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ReadTimeout("timed out", request=request)

    async with _client(handler, read_retries=5) as client:
        with pytest.raises(TransientNetworkError):
            await client.create_blob("octo", "site", b"data")

    assert len(calls) == 1


async def test_blob_is_base64_encoded():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured.update(json.loads(request.content))
        return httpx.Response(201, json={"sha": "abc"})

    async with _client(handler) as client:
        sha = await client.create_blob("octo", "site", b"\x00\xffbinary")

    assert sha == "abc"
    assert captured["encoding"] == "base64"
    assert base64.b64decode(captured["content"]) == b"\x00\xffbinary"


async def test_ref_update_requests_fast_forward_only():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={})

    async with _client(handler) as client:
        await client.update_ref("octo", "site", "feature/x", "abc")

    assert captured["method"] == "PATCH"
    assert captured["path"] == "/repos/octo/site/git/refs/heads/feature/x"
    assert captured["body"] == {"sha": "abc", "force": False}


@pytest.mark.parametrize(
    "status, headers",
    [(503, {}), (429, {}), (403, {"x-ratelimit-remaining": "0"})],
)
async def test_transient_write_failures_are_classified(status, headers):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(status, headers=headers, json={"message": "slow down"})

    async with _client(handler, read_retries=5) as client:
        with pytest.raises(TransientNetworkError) as excinfo:
            await client.create_tree("octo", "site", [])

    assert len(calls) == 1
    assert excinfo.value.attempts == 1
    assert str(status) in excinfo.value.cause


async def test_permission_denied_write_is_not_transient():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"message": "Resource not accessible by integration"})

    async with _client(handler) as client:
        with pytest.raises(GitHubApiError) as excinfo:
            await client.create_commit("octo", "site", message="m", tree="t", parents=[])

    assert excinfo.value.status_code == 403


async def test_get_commit_returns_payload():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/repos/octo/site/git/commits/abc"
        return httpx.Response(200, json={"sha": "abc", "tree": {"sha": "t1"}})

    async with _client(handler) as client:
        commit = await client.get_commit("octo", "site", "abc")

    assert commit["tree"]["sha"] == "t1"
