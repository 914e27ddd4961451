"""Async client for the v0 Platform API (chats, versions and projects)."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field

from mcp_agent.logging.logger import get_logger

from coder_agents.config import CoderAgentsSettings
from coder_agents.errors import V0ApiError

logger = get_logger(__name__)


class V0File(BaseModel):
    name: str
    content: str = ""


class V0Version(BaseModel):
    id: str
    status: str | None = None
    demo_url: str | None = Field(default=None, alias="demoUrl")
    files: List[V0File] = Field(default_factory=list)

    model_config = dict(populate_by_name=True, extra="ignore")


class V0Chat(BaseModel):
    """Subset of the v0 chat payload the agents rely on."""

    id: str
    name: str | None = None
    web_url: str | None = Field(default=None, alias="webUrl")
    project_id: str | None = Field(default=None, alias="projectId")
    latest_version: V0Version | None = Field(default=None, alias="latestVersion")

    model_config = dict(populate_by_name=True, extra="ignore")


class V0Project(BaseModel):
    id: str
    name: str | None = None
    web_url: str | None = Field(default=None, alias="webUrl")

    model_config = dict(populate_by_name=True, extra="ignore")


class V0Client:
    """Minimal async wrapper around ``api.v0.dev``.

    Chat creation blocks until v0 has produced a version, which can take
    minutes, so the default timeout is generous.
    """

    def __init__(
        self,
        *,
        api_key: str | None,
        api_base: str = "https://api.v0.dev/v1",
        timeout: float = 300.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json", "User-Agent": "coder-agents"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=api_base.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: CoderAgentsSettings, **kwargs: Any) -> "V0Client":
        return cls(
            api_key=settings.v0_api_key,
            api_base=settings.v0_api_base,
            timeout=settings.v0_timeout,
            **kwargs,
        )

    async def __aenter__(self) -> "V0Client":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Dict[str, Any] | None = None,
        params: Dict[str, Any] | None = None,
        allow_missing: bool = False,
    ) -> httpx.Response | None:
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.HTTPError as exc:
            raise V0ApiError(method, path, None, str(exc)) from exc
        if allow_missing and response.status_code == 404:
            return None
        if not response.is_success:
            try:
                body: Any = response.json()
            except ValueError:
                body = response.text
            raise V0ApiError(method, path, response.status_code, body)
        return response

    async def create_chat(self, message: str, *, system: str | None = None) -> V0Chat:
        payload: Dict[str, Any] = {"message": message}
        if system:
            payload["system"] = system
        response = await self._request("POST", "/chats", json=payload)
        chat = V0Chat.model_validate(response.json())
        logger.info("Created v0 chat", data={"chat_id": chat.id})
        return chat

    async def send_message(self, chat_id: str, message: str, *, system: str | None = None) -> V0Chat:
        payload: Dict[str, Any] = {"message": message}
        if system:
            payload["system"] = system
        response = await self._request("POST", f"/chats/{chat_id}/messages", json=payload)
        return V0Chat.model_validate(response.json())

    async def get_project_by_chat(self, chat_id: str) -> Optional[Dict[str, Any]]:
        response = await self._request("GET", f"/chats/{chat_id}/project", allow_missing=True)
        return None if response is None else response.json()

    async def create_project(self, name: str) -> V0Project:
        response = await self._request("POST", "/projects", json={"name": name})
        return V0Project.model_validate(response.json())

    async def assign_chat(self, project_id: str, chat_id: str) -> None:
        await self._request("POST", f"/projects/{project_id}/assign", json={"chatId": chat_id})

    async def delete_project(self, project_id: str) -> Dict[str, Any]:
        response = await self._request("DELETE", f"/projects/{project_id}")
        return response.json()

    async def download_version(self, chat_id: str, version_id: str) -> bytes:
        """Fetch a chat version as zip bytes; the payload stays in memory."""

        response = await self._request(
            "GET",
            f"/chats/{chat_id}/versions/{version_id}/download",
            params={"format": "zip", "includeDefaultFiles": "true"},
        )
        return response.content


__all__ = ["V0Chat", "V0Client", "V0File", "V0Project", "V0Version"]
