"""Classified errors raised by the GitHub pusher and the v0 client."""

from __future__ import annotations

from typing import Any


class CoderAgentsError(RuntimeError):
    """Base class for every error raised by this package."""


class ArchiveCommitError(CoderAgentsError):
    """Raised when an archive cannot be turned into a commit.

    ``retryable`` tells the caller whether running the whole operation again
    (with a fresh parent) may succeed.
    """

    retryable: bool = False


class InvalidArchiveError(ArchiveCommitError):
    """Malformed container or a disallowed entry path."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class ResourceLimitExceededError(ArchiveCommitError):
    """Archive is larger, wider or deeper than the configured limits."""

    def __init__(self, dimension: str, used: int, limit: int) -> None:
        super().__init__(f"Archive limit exceeded for {dimension}: {used} > {limit}")
        self.dimension = dimension
        self.used = used
        self.limit = limit


class RepositoryNotFoundError(ArchiveCommitError):
    """Target repository (or branch) could not be found or provisioned."""

    def __init__(self, repository: str, message: str | None = None) -> None:
        super().__init__(message or f"Repository '{repository}' not found")
        self.repository = repository


class RepositoryCreationError(RepositoryNotFoundError):
    """Creating a missing repository failed. Creation is attempted once."""

    def __init__(self, repository: str, cause: str) -> None:
        super().__init__(repository, f"Failed to create repository '{repository}': {cause}")
        self.cause = cause


class BranchNotFoundError(RepositoryNotFoundError):
    """Branch is missing and the caller did not allow creating it."""

    def __init__(self, repository: str, branch: str) -> None:
        super().__init__(repository, f"Branch '{branch}' not found in '{repository}'")
        self.branch = branch


class ConflictError(ArchiveCommitError):
    """Branch ref moved while the commit was being built."""

    retryable = True

    def __init__(self, branch: str, expected: str | None, actual: str | None) -> None:
        super().__init__(
            f"Branch '{branch}' moved during commit: expected {expected}, found {actual}"
        )
        self.branch = branch
        self.expected = expected
        self.actual = actual


class TransientNetworkError(ArchiveCommitError):
    """Network failure, rate limit or 5xx from GitHub.

    Reads get here after their bounded retries; writes after one attempt.
    """

    retryable = True

    def __init__(self, operation: str, attempts: int, cause: str) -> None:
        super().__init__(f"{operation} failed after {attempts} attempts: {cause}")
        self.operation = operation
        self.attempts = attempts
        self.cause = cause


class GitHubApiError(ArchiveCommitError):
    """GitHub rejected a request for a reason that retrying will not fix."""

    def __init__(self, method: str, path: str, status_code: int, body: Any = None) -> None:
        super().__init__(f"GitHub {method} {path} returned {status_code}: {_summarize(body)}")
        self.method = method
        self.path = path
        self.status_code = status_code
        self.body = body


class V0ApiError(CoderAgentsError):
    """Failure talking to the v0 Platform API."""

    def __init__(self, method: str, path: str, status_code: int | None, body: Any = None) -> None:
        status = status_code if status_code is not None else "no response"
        super().__init__(f"v0 {method} {path} failed ({status}): {_summarize(body)}")
        self.method = method
        self.path = path
        self.status_code = status_code
        self.body = body


def _summarize(body: Any) -> str:
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return str(body["error"].get("message", body["error"]))
    text = str(body) if body is not None else ""
    return text[:200]


__all__ = [
    "ArchiveCommitError",
    "BranchNotFoundError",
    "CoderAgentsError",
    "ConflictError",
    "GitHubApiError",
    "InvalidArchiveError",
    "RepositoryCreationError",
    "RepositoryNotFoundError",
    "ResourceLimitExceededError",
    "TransientNetworkError",
    "V0ApiError",
]
