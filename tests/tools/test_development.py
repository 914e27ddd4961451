import json

import httpx
import pytest

from coder_agents.errors import V0ApiError
from coder_agents.memory import WorkingMemory
from coder_agents.tools.commit_builder import ArchiveCommitBuilder
from coder_agents.tools.development import (
    V0_SYSTEM_PROMPT,
    DevelopmentToolkit,
    enhance_prompt,
)
from coder_agents.tools.github_client import GitHubClient
from coder_agents.tools.v0_client import V0Client

from fakes import make_zip


pytestmark = pytest.mark.anyio


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeV0:
    """Records requests and answers like the v0 Platform API."""

    def __init__(self) -> None:
        self.requests: list[tuple[str, str, dict]] = []
        self.projects: dict[str, dict] = {}
        self.chat_projects: dict[str, str] = {}
        self.archive = make_zip([("app/page.tsx", b"export default function Page() {}\n")])
        self.counter = 0

    def _chat(self, chat_id: str) -> dict:
        self.counter += 1
        return {
            "id": chat_id,
            "name": "Animated landing page",
            "webUrl": f"https://v0.dev/chat/{chat_id}",
            "latestVersion": {
                "id": f"ver-{self.counter}",
                "status": "completed",
                "demoUrl": f"https://demo-{self.counter}.vusercontent.net",
                "files": [{"name": "app/page.tsx", "content": "export default function Page() {}"}],
            },
        }

    def handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else {}
        path = request.url.path.removeprefix("/v1")
        self.requests.append((request.method, path, body))

        if request.method == "POST" and path == "/chats":
            return httpx.Response(200, json=self._chat("chat-1"))
        if request.method == "POST" and path.endswith("/messages"):
            return httpx.Response(200, json=self._chat(path.split("/")[2]))
        if request.method == "GET" and path.endswith("/project"):
            project_id = self.chat_projects.get(path.split("/")[2])
            if project_id is None:
                return httpx.Response(404, json={"error": {"message": "not found"}})
            return httpx.Response(200, json=self.projects[project_id])
        if request.method == "POST" and path == "/projects":
            project = {"id": "prj-1", "object": "project", "name": body["name"], "webUrl": "https://v0.dev/prj-1"}
            self.projects["prj-1"] = project
            return httpx.Response(200, json=project)
        if request.method == "POST" and path.endswith("/assign"):
            self.chat_projects[body["chatId"]] = path.split("/")[2]
            return httpx.Response(200, json={"id": path.split("/")[2], "object": "project", "assigned": True})
        if request.method == "DELETE" and path.startswith("/projects/"):
            project_id = path.split("/")[2]
            deleted = self.projects.pop(project_id, None) is not None
            if not deleted:
                return httpx.Response(404, json={"error": {"message": "project not found"}})
            return httpx.Response(200, json={"id": project_id, "object": "project", "deleted": True})
        if request.method == "GET" and path.endswith("/download"):
            assert request.url.params["format"] == "zip"
            return httpx.Response(200, content=self.archive)
        return httpx.Response(404, json={"error": {"message": "unhandled"}})


@pytest.fixture
def fake_v0() -> FakeV0:
    return FakeV0()


@pytest.fixture
def memory() -> WorkingMemory:
    return WorkingMemory()


@pytest.fixture
def toolkit(fake_v0, fake_github, memory) -> DevelopmentToolkit:
    v0 = V0Client(api_key="v0-key", transport=httpx.MockTransport(fake_v0.handle))
    github = GitHubClient(token="gh", retry_backoff=0.0, transport=fake_github.transport())
    return DevelopmentToolkit(
        v0=v0,
        commit_builder=ArchiveCommitBuilder(github),
        memory=memory,
        thread_id="thread-1",
    )


def test_enhance_prompt_adds_stack():
    enhanced = enhance_prompt("  Build a pricing page  ")
    assert "Next.js" in enhanced
    assert enhanced.endswith("Task:\nBuild a pricing page")
    with pytest.raises(ValueError):
        enhance_prompt("   ")


async def test_generate_code_creates_project_and_remembers_it(toolkit, fake_v0, memory):
    result = await toolkit.generate_code("Build an animated landing page")

    assert result["chatId"] == "chat-1"
    assert result["projectId"] == "prj-1"
    assert result["projectTitle"] == "Animated landing page"
    assert result["latestVersionId"] == "ver-1"
    assert result["demoUrl"] == "https://demo-1.vusercontent.net"
    assert result["systemPrompt"] == V0_SYSTEM_PROMPT
    assert result["files"][0]["name"] == "app/page.tsx"

    create = fake_v0.requests[0]
    assert create[:2] == ("POST", "/chats")
    assert create[2]["system"] == V0_SYSTEM_PROMPT
    assert "Build an animated landing page" in create[2]["message"]

    remembered = await memory.get("thread-1")
    assert remembered.chat_id == "chat-1"
    assert remembered.project_id == "prj-1"
    assert remembered.latest_version_id == "ver-1"
    assert remembered.status == "created"


async def test_generate_code_continues_existing_chat(toolkit, fake_v0, memory):
    await toolkit.generate_code("Build an animated landing page")
    result = await toolkit.generate_code("Make the hero darker", chat_id="chat-1")

    assert ("POST", "/chats/chat-1/messages") == fake_v0.requests[-2][:2]
    assert result["latestVersionId"] == "ver-2"
    remembered = await memory.get("thread-1")
    assert remembered.latest_version_id == "ver-2"
    assert remembered.status == "updated"
    assert remembered.project_id == "prj-1"


async def test_push_uses_working_memory_and_commits(toolkit, fake_github):
    await toolkit.generate_code("Build an animated landing page")

    payload = await toolkit.push_files_as_commit(
        repository="animated-landing-page",
        commit_message="feat: add landing page",
        repo_description="Landing page built with Next.js",
    )

    repo = fake_github.repos[("octo", "animated-landing-page")]
    assert payload == {
        "commitSHA": repo.refs["main"],
        "repoUrl": "https://github.com/octo/animated-landing-page",
        "branchUrl": "https://github.com/octo/animated-landing-page/tree/main",
    }
    assert repo.files_at("main") == {"app/page.tsx": b"export default function Page() {}\n"}


async def test_push_to_new_branch(toolkit, fake_github):
    fake_github.add_repo("site", {"README.md": b"base"})
    await toolkit.generate_code("Build an animated landing page")

    payload = await toolkit.push_files_as_commit(
        repository="site", commit_message="feat: hero", new_branch="update/landing-hero"
    )

    assert payload["branchUrl"].endswith("/tree/update/landing-hero")
    assert "update/landing-hero" in fake_github.repos[("octo", "site")].refs


async def test_push_without_project_fails(toolkit, fake_github):
    with pytest.raises(ValueError, match="generate_code"):
        await toolkit.push_files_as_commit(repository="site", commit_message="feat: x")
    assert fake_github.calls == []


async def test_check_existing_project(toolkit):
    assert await toolkit.check_existing_project() == {"project": None}

    await toolkit.generate_code("Build an animated landing page")
    found = await toolkit.check_existing_project(check=True)

    assert found["project"]["id"] == "prj-1"


async def test_delete_project_clears_memory(toolkit, memory):
    await toolkit.generate_code("Build an animated landing page")

    result = await toolkit.delete_project("prj-1")

    assert result == {"id": "prj-1", "object": "project", "deleted": True}
    assert await memory.get("thread-1") is None


async def test_delete_unknown_project_raises(toolkit, memory):
    await toolkit.generate_code("Build an animated landing page")

    with pytest.raises(V0ApiError) as excinfo:
        await toolkit.delete_project("prj-404")

    assert excinfo.value.status_code == 404
    assert "project not found" in str(excinfo.value)
    assert (await memory.get("thread-1")).project_id == "prj-1"


def test_functions_are_exposed_by_name(toolkit):
    names = [function.__name__ for function in toolkit.functions()]
    assert names == [
        "get_project_context",
        "generate_code",
        "push_files_as_commit",
        "check_existing_project",
        "delete_project",
    ]


async def test_project_context_is_visible_to_a_new_session(toolkit, fake_v0, memory):
    assert await toolkit.get_project_context() == {"v0Project": None}
    await toolkit.generate_code("Build an animated landing page")

    resumed = DevelopmentToolkit(
        v0=toolkit.v0,
        commit_builder=toolkit.commit_builder,
        memory=memory,
        thread_id="thread-1",
    )
    context = await resumed.get_project_context()

    assert context["v0Project"]["chatId"] == "chat-1"
    assert context["v0Project"]["projectId"] == "prj-1"
    assert context["v0Project"]["latestVersionId"] == "ver-1"
    assert context["v0Project"]["status"] == "created"

    result = await resumed.generate_code("Make the hero darker", chat_id=context["v0Project"]["chatId"])

    assert fake_v0.requests[-2][:2] == ("POST", "/chats/chat-1/messages")
    assert not [request for request in fake_v0.requests if request[:2] == ("POST", "/chats")][1:]
    assert result["chatId"] == "chat-1"


async def test_project_context_is_scoped_to_the_thread(toolkit, memory):
    await toolkit.generate_code("Build an animated landing page")
    other = DevelopmentToolkit(
        v0=toolkit.v0, commit_builder=toolkit.commit_builder, memory=memory, thread_id="thread-2"
    )

    assert await other.get_project_context() == {"v0Project": None}
