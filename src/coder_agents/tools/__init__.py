from .archive import ArchiveEntry, extract_archive
from .commit_builder import ArchiveCommitBuilder, CommitMode, CommitRequest, CommitResult
from .development import DevelopmentToolkit
from .github_client import GitHubClient
from .v0_client import V0Client

__all__ = [
    "ArchiveCommitBuilder",
    "ArchiveEntry",
    "CommitMode",
    "CommitRequest",
    "CommitResult",
    "DevelopmentToolkit",
    "GitHubClient",
    "V0Client",
    "extract_archive",
]
