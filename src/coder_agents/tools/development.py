"""Tools exposed to the coder agent.

:class:`DevelopmentToolkit` binds the v0 client, the GitHub commit builder and
one thread's working memory together. Its public coroutines are handed to
the agent as function tools; their docstrings and signatures become the
tool descriptions and input schemas the LLM sees.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from mcp_agent.logging.event_progress import ProgressAction
from mcp_agent.logging.logger import get_logger

from coder_agents.memory import ProjectContext, WorkingMemory
from coder_agents.tools.commit_builder import ArchiveCommitBuilder, CommitRequest
from coder_agents.tools.v0_client import V0Client

logger = get_logger(__name__)

V0_SYSTEM_PROMPT = (
    "You are an expert Next.js engineer producing production-grade code. "
    "Use the Next.js App Router with React Server Components by default and add "
    "'use client' only for interactivity, hooks or browser APIs. Write strict TypeScript "
    "with explicit interfaces and no `any`. Style with Tailwind CSS utility classes and "
    "build UI from shadcn/ui components. Provide loading.tsx and error.tsx for route "
    "segments, export metadata from pages, use next/image for images and meet WCAG 2.1 AA."
)

_STACK_PREAMBLE = (
    "Technology stack: Next.js (App Router, RSC), TypeScript (strict), Tailwind CSS, shadcn/ui."
)


def enhance_prompt(prompt: str) -> str:
    """Wrap the agent's task description with the fixed stack requirements."""

    task = prompt.strip()
    if not task:
        raise ValueError("prompt must not be empty")
    return f"{_STACK_PREAMBLE}\n\nTask:\n{task}"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GeneratedFile(_CamelModel):
    name: str
    content: str = ""


class GenerateCodeResult(_CamelModel):
    user_enhanced_prompt: str
    system_prompt: str
    chat_id: str
    project_title: str | None = None
    project_url: str | None = None
    project_id: str | None = None
    latest_version_id: str | None = None
    demo_url: str | None = None
    files: List[GeneratedFile] = Field(default_factory=list)


class DeleteProjectResult(BaseModel):
    id: str
    object: str = "project"
    deleted: bool = False


class DevelopmentToolkit:
    """Agent-facing tool functions bound to one conversation thread."""

    def __init__(
        self,
        *,
        v0: V0Client,
        commit_builder: ArchiveCommitBuilder,
        memory: WorkingMemory,
        thread_id: str = "default",
    ) -> None:
        self.v0 = v0
        self.commit_builder = commit_builder
        self.memory = memory
        self.thread_id = thread_id

    def functions(self) -> List[Callable[..., Any]]:
        return [
            self.get_project_context,
            self.generate_code,
            self.push_files_as_commit,
            self.check_existing_project,
            self.delete_project,
        ]

    async def _remembered(self) -> ProjectContext:
        return await self.memory.get(self.thread_id) or ProjectContext()

    async def get_project_context(self) -> Dict[str, Any]:
        """Return the v0 project remembered for this conversation thread.

        Call this before generate_code: a non-null ``v0Project.chatId`` means the
        thread already has a project and its chat should be continued.

        Returns ``{"v0Project": {chatId, projectId, title, webUrl,
        latestVersionId, demoUrl, status}}`` or ``{"v0Project": None}``.
        """

        record = await self.memory.get(self.thread_id)
        if record is None:
            return {"v0Project": None}
        return {"v0Project": {to_camel(key): value for key, value in record.model_dump().items()}}

    async def generate_code(self, prompt: str, chat_id: str | None = None) -> Dict[str, Any]:
        """Generate production-ready Next.js code with v0.

        Args:
            prompt: A comprehensive task description with full context.
            chat_id: ID of an existing v0 chat to continue. Leave empty to start a new project.

        Returns the enhanced prompt, the system prompt, the chat/project/version
        identifiers, the demo URL and the generated files.
        """

        user_prompt = enhance_prompt(prompt)
        if chat_id:
            chat = await self.v0.send_message(chat_id, user_prompt, system=V0_SYSTEM_PROMPT)
            status = "updated"
        else:
            chat = await self.v0.create_chat(user_prompt, system=V0_SYSTEM_PROMPT)
            status = "created"

        project = await self.v0.get_project_by_chat(chat.id)
        if project is None and status == "created":
            created = await self.v0.create_project(chat.name or prompt.strip()[:60])
            await self.v0.assign_chat(created.id, chat.id)
            project = created.model_dump(by_alias=True)

        version = chat.latest_version
        project = project or {}
        result = GenerateCodeResult(
            user_enhanced_prompt=user_prompt,
            system_prompt=V0_SYSTEM_PROMPT,
            chat_id=chat.id,
            project_title=project.get("name") or chat.name,
            project_url=project.get("webUrl") or chat.web_url,
            project_id=project.get("id") or chat.project_id,
            latest_version_id=version.id if version else None,
            demo_url=version.demo_url if version else None,
            files=[GeneratedFile(name=f.name, content=f.content) for f in (version.files if version else [])],
        )
        await self.memory.update(
            self.thread_id,
            chat_id=result.chat_id,
            project_id=result.project_id,
            title=result.project_title,
            web_url=result.project_url,
            latest_version_id=result.latest_version_id,
            demo_url=result.demo_url,
            status=status,
        )
        logger.info(
            f"v0 project {status}",
            data={
                "progress_action": ProgressAction.FINISHED,
                "chat_id": result.chat_id,
                "files": len(result.files),
            },
        )
        return result.model_dump(by_alias=True)

    async def push_files_as_commit(
        self,
        repository: str,
        commit_message: str,
        chat_id: str | None = None,
        latest_version_id: str | None = None,
        new_branch: str | None = None,
        repo_description: str | None = None,
    ) -> Dict[str, str]:
        """Push a generated v0 version to GitHub as one commit.

        The repository is created (private) when it does not exist. The v0
        zip is downloaded and unpacked in memory; nothing touches the disk.

        Args:
            repository: Repository name derived from the project, e.g. "animated-landing-page".
            commit_message: Conventional commit message, e.g. "feat: add responsive navbar".
            chat_id: v0 chat ID; defaults to the one in working memory.
            latest_version_id: v0 version ID; defaults to the one in working memory.
            new_branch: Branch to push to, created if missing; defaults to the default branch.
            repo_description: Description used when the repository is created.

        Returns ``commitSHA``, ``repoUrl`` and ``branchUrl``.
        """

        remembered = await self._remembered()
        chat_id = chat_id or remembered.chat_id
        version_id = latest_version_id or remembered.latest_version_id
        if not chat_id or not version_id:
            raise ValueError("No v0 chat/version available; call generate_code first")

        request = CommitRequest(
            repository=repository,
            message=commit_message,
            branch=new_branch or None,
            description=repo_description,
        )
        archive = await self.v0.download_version(chat_id, version_id)
        result = await self.commit_builder.build_commit(archive, request)
        return result.to_tool_payload()

    async def check_existing_project(self, check: bool | None = None) -> Dict[str, Any]:
        """Return the v0 project for the chat in working memory, or ``{"project": None}``.

        Args:
            check: Optional flag; may be omitted.
        """

        del check
        remembered = await self._remembered()
        if not remembered.chat_id:
            return {"project": None}
        return {"project": await self.v0.get_project_by_chat(remembered.chat_id)}

    async def delete_project(self, project_id: str) -> Dict[str, Any]:
        """Delete a v0 project. This is irreversible; confirm with the user first.

        Args:
            project_id: The ID of the project to delete.

        Returns ``id``, ``object`` and ``deleted``.
        """

        payload = await self.v0.delete_project(project_id)
        result = DeleteProjectResult(
            id=payload.get("id", project_id),
            object=payload.get("object", "project"),
            deleted=bool(payload.get("deleted", False)),
        )
        remembered = await self._remembered()
        if result.deleted and remembered.project_id == project_id:
            await self.memory.clear(self.thread_id)
        return result.model_dump()


__all__ = [
    "DeleteProjectResult",
    "DevelopmentToolkit",
    "GenerateCodeResult",
    "GeneratedFile",
    "V0_SYSTEM_PROMPT",
    "enhance_prompt",
]
