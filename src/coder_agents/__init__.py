"""Code-generation and code-review agents built on mcp-agent."""

__version__ = "0.1.0"
