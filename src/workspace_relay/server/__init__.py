"""Google Workspace MCP server - authentication tools."""

from .main import mcp

from . import auth_tools

__all__ = ["mcp", "main"]


def main():
    """Entry point for the Workspace Relay MCP server."""
    mcp.run(show_banner=False)
