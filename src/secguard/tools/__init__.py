"""
Tool layer for SecGuard.

This module provides the MCP server registry and the MCP client used to
discover and call remote tools.
"""

from .mcp import MCPClient, MCPSession, ToolDirectory
from .registry import ServerRegistry

__all__ = [
    "MCPClient",
    "MCPSession",
    "ToolDirectory",
    "ServerRegistry",
]
