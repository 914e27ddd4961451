"""Turn a zip archive into a single atomic GitHub commit, entirely in memory.

The builder runs six steps for one request:

1. Extract the archive with :func:`~coder_agents.tools.archive.extract_archive`
   before any network call, so invalid or oversized archives never mutate
   the repository.
2. Resolve the repository, creating it (private by default, initialized with
   a first commit) when it is missing.
3. Resolve the target branch tip, creating the branch from the default
   branch when needed. The tip becomes the parent commit.
4. Upload one blob per distinct content (bounded concurrency) and create a
   tree. ``replace`` mode builds the tree from the archive only, ``merge``
   mode layers the archive over the parent tree.
5. Create the commit.
6. Move the branch ref with a compare-and-swap: the ref must still point at
   the parent, and GitHub must accept the update as a fast-forward.
   Otherwise :class:`~coder_agents.errors.ConflictError` is raised and the
   caller decides whether to retry.
"""

from __future__ import annotations

import asyncio
import re
from enum import Enum
from typing import Any, Dict, List, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator

from mcp_agent.logging.event_progress import ProgressAction
from mcp_agent.logging.logger import get_logger

from coder_agents.config import ArchiveLimits, CoderAgentsSettings
from coder_agents.errors import (
    BranchNotFoundError,
    ConflictError,
    GitHubApiError,
    InvalidArchiveError,
    RepositoryCreationError,
    RepositoryNotFoundError,
    TransientNetworkError,
)
from coder_agents.tools.archive import ArchiveEntry, extract_archive
from coder_agents.tools.github_client import GitHubClient

logger = get_logger(__name__)

_REPOSITORY_PATTERN = re.compile(r"^(?:[A-Za-z0-9-]+/)?[A-Za-z0-9._-]+$")


def _reject_duplicate_paths(entries: List[ArchiveEntry]) -> None:
    seen = set()
    for entry in entries:
        if entry.path in seen:
            raise InvalidArchiveError(f"duplicate entry path '{entry.path}'", path=entry.path)
        seen.add(entry.path)


class CommitMode(str, Enum):
    """How the archive relates to the parent commit's tree."""

    REPLACE = "replace"
    MERGE = "merge"


class CommitRequest(BaseModel):
    """One archive-to-commit invocation."""

    repository: str = Field(..., description="Repository name, optionally 'owner/name'")
    message: str = Field(..., min_length=1)
    branch: str | None = Field(default=None, description="Target branch; defaults to the repo default")
    base_commit: str | None = Field(default=None, description="Expected branch tip, if known")
    create_branch: bool = True
    description: str | None = Field(default=None, description="Used only when creating the repository")
    private: bool | None = None
    mode: CommitMode = CommitMode.REPLACE
    entries: List[ArchiveEntry] = Field(default_factory=list)

    @field_validator("repository")
    @classmethod
    def _check_repository(cls, value: str) -> str:
        value = value.strip()
        if not _REPOSITORY_PATTERN.match(value) or value.endswith((".git", "/..", "/.")):
            raise ValueError(f"'{value}' is not a valid repository name")
        return value

    @field_validator("branch")
    @classmethod
    def _check_branch(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not value or ".." in value or value.startswith("/") or value.endswith(("/", ".lock")):
            raise ValueError(f"'{value}' is not a valid branch name")
        return value

    @model_validator(mode="after")
    def _check_entries(self) -> "CommitRequest":
        _reject_duplicate_paths(self.entries)
        return self


class CommitResult(BaseModel):
    """Outcome of a successful commit build."""

    commit_sha: str
    repository_url: str
    branch_url: str
    branch: str
    parent_sha: str
    created_repository: bool = False
    created_branch: bool = False

    def to_tool_payload(self) -> Dict[str, str]:
        return {
            "commitSHA": self.commit_sha,
            "repoUrl": self.repository_url,
            "branchUrl": self.branch_url,
        }


def _emit_progress(action: ProgressAction, message: str, **data: Any) -> None:
    logger.info(message, data={"progress_action": action, "target": "github_commit", **data})


class ArchiveCommitBuilder:
    """Builds commits from archives against one GitHub account."""

    def __init__(
        self,
        github: GitHubClient,
        *,
        owner: str | None = None,
        limits: ArchiveLimits | None = None,
        upload_concurrency: int = 8,
        private_by_default: bool = True,
    ) -> None:
        self.github = github
        self.owner = owner
        self.limits = limits or ArchiveLimits()
        self.upload_concurrency = max(1, upload_concurrency)
        self.private_by_default = private_by_default
        self._login: str | None = None

    @classmethod
    def from_settings(cls, settings: CoderAgentsSettings, **client_kwargs: Any) -> "ArchiveCommitBuilder":
        github = GitHubClient(
            token=settings.github_token,
            api_base=settings.github_api_base,
            timeout=settings.request_timeout,
            read_retries=settings.read_retries,
            retry_backoff=settings.retry_backoff,
            **client_kwargs,
        )
        return cls(
            github,
            owner=settings.github_owner,
            limits=settings.archive_limits,
            upload_concurrency=settings.blob_upload_concurrency,
            private_by_default=settings.private_repositories,
        )

    async def build_commit(self, archive_bytes: bytes, request: CommitRequest) -> CommitResult:
        """Extract ``archive_bytes`` and commit its files as described by ``request``."""

        entries = extract_archive(archive_bytes, self.limits)
        _emit_progress(
            ProgressAction.STARTING,
            f"Extracted {len(entries)} files for {request.repository}",
            entries=len(entries),
        )
        return await self.commit_entries(request.model_copy(update={"entries": entries}))

    async def commit_entries(self, request: CommitRequest) -> CommitResult:
        """Commit already-extracted entries."""

        _reject_duplicate_paths(request.entries)
        owner, name = await self._split_repository(request.repository)
        repository, created_repository = await self._resolve_repository(owner, name, request)
        branch = request.branch or repository["default_branch"]

        parent_sha, created_branch = await self._resolve_branch(
            owner, name, repository, branch, request, fresh=created_repository
        )
        if request.base_commit and request.base_commit != parent_sha:
            raise ConflictError(branch, request.base_commit, parent_sha)

        tree_sha = await self._build_tree(owner, name, parent_sha, request)
        commit_sha = await self.github.create_commit(
            owner, name, message=request.message, tree=tree_sha, parents=[parent_sha]
        )
        _emit_progress(ProgressAction.RUNNING, f"Created commit {commit_sha}", tree=tree_sha)

        await self._update_ref(owner, name, branch, expected=parent_sha, new=commit_sha)

        repository_url = repository["html_url"]
        _emit_progress(
            ProgressAction.FINISHED,
            f"Pushed {commit_sha} to {owner}/{name}@{branch}",
            created_repository=created_repository,
            created_branch=created_branch,
        )
        return CommitResult(
            commit_sha=commit_sha,
            repository_url=repository_url,
            branch_url=f"{repository_url}/tree/{branch}",
            branch=branch,
            parent_sha=parent_sha,
            created_repository=created_repository,
            created_branch=created_branch,
        )

    async def _authenticated_login(self) -> str:
        if self._login is None:
            user = await self.github.get_authenticated_user()
            self._login = user["login"]
        return self._login

    async def _split_repository(self, repository: str) -> Tuple[str, str]:
        if "/" in repository:
            owner, name = repository.split("/", 1)
            return owner, name
        owner = self.owner or await self._authenticated_login()
        return owner, repository

    async def _resolve_repository(
        self, owner: str, name: str, request: CommitRequest
    ) -> Tuple[Dict[str, Any], bool]:
        repository = await self.github.get_repository(owner, name)
        if repository is not None:
            return repository, False

        login = await self._authenticated_login()
        organization = None if owner.lower() == login.lower() else owner
        private = self.private_by_default if request.private is None else request.private
        _emit_progress(ProgressAction.RUNNING, f"Creating repository {owner}/{name}", private=private)
        try:
            repository = await self.github.create_repository(
                name,
                organization=organization,
                private=private,
                description=request.description,
                auto_init=True,
            )
        except (GitHubApiError, TransientNetworkError) as exc:
            raise RepositoryCreationError(f"{owner}/{name}", str(exc)) from exc
        return repository, True

    async def _default_tip(
        self, owner: str, name: str, repository: Dict[str, Any], *, fresh: bool
    ) -> str:
        default_branch = repository["default_branch"]
        tip = await self.github.get_branch_sha(owner, name, default_branch)
        attempt = 1
        # auto_init commits become visible shortly after the repository itself.
        while tip is None and fresh and attempt < self.github.read_retries:
            await asyncio.sleep(self.github.retry_backoff * (2 ** (attempt - 1)))
            tip = await self.github.get_branch_sha(owner, name, default_branch)
            attempt += 1
        if tip is not None:
            return tip
        if fresh:
            raise RepositoryNotFoundError(
                f"{owner}/{name}", f"Initial commit of '{owner}/{name}' did not appear"
            )
        _emit_progress(ProgressAction.RUNNING, f"Bootstrapping empty repository {owner}/{name}")
        return await self.github.create_initial_commit(owner, name, default_branch)

    async def _resolve_branch(
        self,
        owner: str,
        name: str,
        repository: Dict[str, Any],
        branch: str,
        request: CommitRequest,
        *,
        fresh: bool,
    ) -> Tuple[str, bool]:
        if branch == repository["default_branch"]:
            return await self._default_tip(owner, name, repository, fresh=fresh), False

        tip = await self.github.get_branch_sha(owner, name, branch)
        if tip is not None:
            return tip, False
        if not request.create_branch:
            raise BranchNotFoundError(f"{owner}/{name}", branch)

        base = await self._default_tip(owner, name, repository, fresh=fresh)
        try:
            await self.github.create_ref(owner, name, branch, base)
        except GitHubApiError as exc:
            if exc.status_code != 422:
                raise
            # Someone else created it first; build on whatever they pointed it at.
            tip = await self.github.get_branch_sha(owner, name, branch)
            if tip is None:
                raise
            return tip, False
        _emit_progress(ProgressAction.RUNNING, f"Created branch {branch} from {base}")
        return base, True

    async def _parent_tree(self, owner: str, name: str, parent_sha: str) -> str:
        commit = await self.github.get_commit(owner, name, parent_sha)
        return commit["tree"]["sha"]

    async def _upload_blobs(self, owner: str, name: str, entries: List[ArchiveEntry]) -> Dict[str, str]:
        contents: Dict[str, bytes] = {}
        for entry in entries:
            contents.setdefault(entry.blob_sha, entry.content)
        semaphore = asyncio.Semaphore(self.upload_concurrency)

        async def upload(local_sha: str, content: bytes) -> Tuple[str, str]:
            async with semaphore:
                remote_sha = await self.github.create_blob(owner, name, content)
            if remote_sha != local_sha:
                logger.warning(
                    "Blob hash mismatch", data={"expected": local_sha, "actual": remote_sha}
                )
            return local_sha, remote_sha

        tasks = [asyncio.ensure_future(upload(sha, content)) for sha, content in contents.items()]
        try:
            uploaded = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise
        _emit_progress(
            ProgressAction.RUNNING,
            f"Uploaded {len(uploaded)} blobs for {len(entries)} files",
        )
        return dict(uploaded)

    async def _build_tree(
        self, owner: str, name: str, parent_sha: str, request: CommitRequest
    ) -> str:
        if not request.entries:
            return await self._parent_tree(owner, name, parent_sha)

        blob_shas = await self._upload_blobs(owner, name, request.entries)
        tree_entries = [
            {
                "path": entry.path,
                "mode": entry.mode,
                "type": "blob",
                "sha": blob_shas[entry.blob_sha],
            }
            for entry in request.entries
        ]
        base_tree = None
        if request.mode is CommitMode.MERGE:
            base_tree = await self._parent_tree(owner, name, parent_sha)
        return await self.github.create_tree(owner, name, tree_entries, base_tree=base_tree)

    async def _update_ref(
        self, owner: str, name: str, branch: str, *, expected: str, new: str
    ) -> None:
        current = await self.github.get_branch_sha(owner, name, branch)
        if current != expected:
            raise ConflictError(branch, expected, current)
        try:
            await self.github.update_ref(owner, name, branch, new, force=False)
        except GitHubApiError as exc:
            if exc.status_code in (409, 422):
                raise ConflictError(branch, expected, None) from exc
            raise


__all__ = [
    "ArchiveCommitBuilder",
    "CommitMode",
    "CommitRequest",
    "CommitResult",
]
