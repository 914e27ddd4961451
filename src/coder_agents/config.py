"""Runtime settings for the coder agents and their external services."""

from __future__ import annotations

from functools import lru_cache
from typing import Dict, List

from pydantic import AliasChoices, BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from mcp_agent.config import (
    LoggerSettings,
    MCPServerSettings,
    MCPSettings,
    OpenAISettings,
    Settings,
)

CONTEXT7_SERVER = "context7"


class ArchiveLimits(BaseModel):
    """Ceilings applied while extracting an archive into memory."""

    max_total_bytes: int = Field(default=50 * 1024 * 1024, gt=0)
    max_entries: int = Field(default=5_000, gt=0)
    max_path_depth: int = Field(default=32, gt=0)


class CoderAgentsSettings(BaseSettings):
    """Environment-driven configuration.

    Every field can be set with a ``CODER_AGENTS_`` prefixed variable or in a
    ``.env`` file. The two credentials also accept their conventional names
    (``GITHUB_TOKEN`` and ``V0_API_KEY``).
    """

    model_config = SettingsConfigDict(
        env_prefix="CODER_AGENTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    github_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CODER_AGENTS_GITHUB_TOKEN", "GITHUB_TOKEN"),
    )
    github_owner: str | None = Field(
        default=None, description="Account that owns pushed repositories; defaults to the token user"
    )
    github_api_base: str = "https://api.github.com"
    v0_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CODER_AGENTS_V0_API_KEY", "V0_API_KEY"),
    )
    v0_api_base: str = "https://api.v0.dev/v1"

    request_timeout: float = 60.0
    v0_timeout: float = 300.0
    read_retries: int = Field(default=3, ge=1)
    retry_backoff: float = Field(default=0.5, ge=0.0)
    blob_upload_concurrency: int = Field(default=8, ge=1)
    private_repositories: bool = True

    max_archive_bytes: int = Field(default=50 * 1024 * 1024, gt=0)
    max_archive_entries: int = Field(default=5_000, gt=0)
    max_path_depth: int = Field(default=32, gt=0)

    coder_model: str = "gpt-4o-mini"
    qa_model: str = "z-ai/glm-4.5-air:free"
    openai_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CODER_AGENTS_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    openai_base_url: str | None = None

    context7_command: str = "npx"
    context7_args: List[str] = Field(default_factory=lambda: ["-y", "@upstash/context7-mcp"])
    log_level: str = "info"

    @property
    def archive_limits(self) -> ArchiveLimits:
        return ArchiveLimits(
            max_total_bytes=self.max_archive_bytes,
            max_entries=self.max_archive_entries,
            max_path_depth=self.max_path_depth,
        )

    def mcp_servers(self) -> Dict[str, MCPServerSettings]:
        """MCP servers shared by both agents."""

        return {
            CONTEXT7_SERVER: MCPServerSettings(
                name=CONTEXT7_SERVER,
                description="Up-to-date library documentation lookup",
                transport="stdio",
                command=self.context7_command,
                args=list(self.context7_args),
            )
        }


def build_mcp_settings(settings: CoderAgentsSettings | None = None) -> Settings:
    """Translate package settings into the mcp-agent ``Settings`` model."""

    settings = settings or get_settings()
    return Settings(
        execution_engine="asyncio",
        logger=LoggerSettings(type="console", level=settings.log_level),
        mcp=MCPSettings(servers=settings.mcp_servers()),
        openai=OpenAISettings(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            default_model=settings.coder_model,
        ),
    )


@lru_cache(maxsize=1)
def get_settings() -> CoderAgentsSettings:
    return CoderAgentsSettings()


__all__ = [
    "ArchiveLimits",
    "CONTEXT7_SERVER",
    "CoderAgentsSettings",
    "build_mcp_settings",
    "get_settings",
]
