"""Command line entry point for talking to the coder and QA agents."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import List

import typer

from coder_agents.app import coder_session, qa_session

cli = typer.Typer(help="Generate Next.js projects with v0, push them to GitHub and review them.")


async def _chat(thread_id: str, first_message: str | None) -> None:
    async with coder_session(thread_id=thread_id) as (llm, _toolkit):
        message = first_message
        while True:
            if not message:
                message = typer.prompt("you", default="", show_default=False)
            if message.strip().lower() in {"exit", "quit"}:
                break
            if message.strip():
                typer.echo(await llm.generate_str(message))
            message = None


async def _review(paths: List[Path], focus: str | None) -> str:
    sections = []
    for path in paths:
        sections.append(f"## File: {path}\n```\n{path.read_text(encoding='utf-8')}\n```")
    request = "Review the following generated code."
    if focus:
        request += f" Focus on: {focus}."
    async with qa_session() as llm:
        return await llm.generate_str(request + "\n\n" + "\n\n".join(sections))


@cli.command()
def chat(
    message: str = typer.Argument(None, help="Optional first message"),
    thread: str = typer.Option("default", help="Conversation thread id"),
) -> None:
    """Start an interactive session with the coder agent. Type 'exit' to leave."""

    asyncio.run(_chat(thread, message))


@cli.command()
def review(
    paths: List[Path] = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    focus: str = typer.Option(None, help="Area to emphasise, e.g. accessibility"),
) -> None:
    """Ask the QA agent to review source files."""

    typer.echo(asyncio.run(_review(paths, focus)))


if __name__ == "__main__":
    cli()
