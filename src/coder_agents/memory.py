"""Thread-scoped working memory for the coder agent.

Each conversation thread remembers the v0 project it is iterating on. The
store is a plain mapping ``thread_id -> ProjectContext``; callers decide when
to read and write it.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict

from pydantic import BaseModel, Field


class ProjectContext(BaseModel):
    """Metadata about the active v0 project in a thread."""

    chat_id: str | None = Field(default=None, description="The ID of the v0 chat session")
    project_id: str | None = Field(default=None, description="The ID of the v0 project")
    title: str | None = Field(default=None, description="The title of the generated project")
    web_url: str | None = Field(default=None, description="The web URL of the project")
    latest_version_id: str | None = Field(default=None, description="The ID of the latest version")
    demo_url: str | None = Field(default=None, description="The URL of the live demo")
    status: str | None = Field(
        default=None, description="Current status of the project (e.g., 'created', 'updated')"
    )

    model_config = dict(extra="forbid")


class WorkingMemory:
    """In-process keyed store of :class:`ProjectContext` records."""

    def __init__(self) -> None:
        self._records: Dict[str, ProjectContext] = {}
        self._lock = asyncio.Lock()

    async def get(self, thread_id: str) -> ProjectContext | None:
        async with self._lock:
            record = self._records.get(thread_id)
            return record.model_copy() if record else None

    async def update(self, thread_id: str, **fields: Any) -> ProjectContext:
        """Merge non-``None`` ``fields`` into the thread's record."""

        changes = {key: value for key, value in fields.items() if value is not None}
        async with self._lock:
            current = self._records.get(thread_id) or ProjectContext()
            updated = ProjectContext.model_validate({**current.model_dump(), **changes})
            self._records[thread_id] = updated
            return updated.model_copy()

    async def clear(self, thread_id: str) -> None:
        async with self._lock:
            self._records.pop(thread_id, None)

    def threads(self) -> list[str]:
        return sorted(self._records)


__all__ = ["ProjectContext", "WorkingMemory"]
