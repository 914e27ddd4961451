"""MCP application and agent sessions for the coder and QA agents."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from mcp_agent.app import MCPApp
from mcp_agent.workflows.llm.augmented_llm import AugmentedLLM, RequestParams
from mcp_agent.workflows.llm.augmented_llm_openai import OpenAIAugmentedLLM

from coder_agents.agents import build_coder_agent, build_qa_agent
from coder_agents.config import CoderAgentsSettings, build_mcp_settings, get_settings
from coder_agents.memory import WorkingMemory
from coder_agents.tools.commit_builder import ArchiveCommitBuilder
from coder_agents.tools.development import DevelopmentToolkit
from coder_agents.tools.v0_client import V0Client


def create_app(settings: CoderAgentsSettings | None = None) -> MCPApp:
    return MCPApp(name="coder_agents", settings=build_mcp_settings(settings or get_settings()))


@asynccontextmanager
async def coder_session(
    *,
    thread_id: str = "default",
    memory: WorkingMemory | None = None,
    settings: CoderAgentsSettings | None = None,
) -> AsyncIterator[tuple[AugmentedLLM, DevelopmentToolkit]]:
    """Run the coder agent with its tools; yields the attached LLM and toolkit.

    Reusing the same ``memory`` across sessions keeps each thread's project.
    """

    settings = settings or get_settings()
    app = create_app(settings)
    async with app.run() as running_app:
        v0 = V0Client.from_settings(settings)
        builder = ArchiveCommitBuilder.from_settings(settings)
        toolkit = DevelopmentToolkit(
            v0=v0,
            commit_builder=builder,
            memory=memory or WorkingMemory(),
            thread_id=thread_id,
        )
        try:
            agent = build_coder_agent(running_app.context, toolkit)
            async with agent:
                llm = await agent.attach_llm(OpenAIAugmentedLLM)
                llm.default_request_params = RequestParams(
                    model=settings.coder_model, maxTokens=16384
                )
                yield llm, toolkit
        finally:
            await v0.aclose()
            await builder.github.aclose()


@asynccontextmanager
async def qa_session(settings: CoderAgentsSettings | None = None) -> AsyncIterator[AugmentedLLM]:
    settings = settings or get_settings()
    app = create_app(settings)
    async with app.run() as running_app:
        agent = build_qa_agent(running_app.context)
        async with agent:
            llm = await agent.attach_llm(OpenAIAugmentedLLM)
            llm.default_request_params = RequestParams(model=settings.qa_model, maxTokens=16384)
            yield llm


__all__ = ["coder_session", "create_app", "qa_session"]
