"""
SecGuard: ReAct security alert analysis with MCP tool calls.

Runs a Thought -> Action -> Observation loop over a security alert with an
LLM and calls tools on a user-registered MCP server over SSE.
"""

__version__ = "0.1.0"

from secguard.agents.analysis import ReActAgent
from secguard.core.config.manager import ConfigManager, SecGuardSettings
from secguard.tools.mcp import MCPClient

__all__ = [
    "ReActAgent",
    "ConfigManager",
    "SecGuardSettings",
    "MCPClient",
]
