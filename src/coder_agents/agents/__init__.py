"""Agent specifications for code generation and review."""

from .coder_agent import SPEC as CODER_SPEC, build as build_coder_agent
from .qa_agent import SPEC as QA_SPEC, build as build_qa_agent

__all__ = [
    "CODER_SPEC",
    "QA_SPEC",
    "build_coder_agent",
    "build_qa_agent",
]
