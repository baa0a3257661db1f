"""
MCP (Model Context Protocol) client over SSE.

This module provides the session client, tool catalog discovery and the
facade used by the ReAct agent to call tools on the active server.
"""

from secguard.tools.mcp.client import MCPClient
from secguard.tools.mcp.discovery import ToolDirectory, normalize_tool_catalog
from secguard.tools.mcp.session import (
    MCPSession,
    SessionState,
    normalize_tool_arguments,
    normalize_tool_result,
)
from secguard.tools.mcp.transport import cache_bust_url, resolve_session_url

__all__ = [
    "MCPClient",
    "MCPSession",
    "SessionState",
    "ToolDirectory",
    "normalize_tool_catalog",
    "normalize_tool_arguments",
    "normalize_tool_result",
    "cache_bust_url",
    "resolve_session_url",
]
