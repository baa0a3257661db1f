"""
MCP client facade used by the ReAct agent.

Resolves the active server and tool name and opens a fresh ``MCPSession``
for every call. The allow-list is exposed here and enforced by the caller.
"""

import logging
from typing import Any, List, Optional

from secguard.core.config.manager import MCPConfig
from secguard.core.exceptions import ConfigError
from secguard.core.state.model import ServerRegistration, ToolDescriptor
from secguard.tools.mcp.discovery import ToolDirectory
from secguard.tools.mcp.session import MISSING, MCPSession
from secguard.tools.registry import ServerRegistry

SKIPPED_MESSAGE = "No MCP server or tool is configured; returning a sample observation."


class MCPClient:
    """Calls tools on the active MCP server."""

    def __init__(self, config: Optional[MCPConfig] = None):
        self.logger = logging.getLogger(__name__)
        self.update_config(config or MCPConfig())

    def update_config(self, config: MCPConfig):
        """Rebuild the registry and directory from new configuration."""
        self.config = config
        self.registry = ServerRegistry(config.servers, config.active_server_id)
        self.directory = ToolDirectory(config)

    def to_config(self) -> MCPConfig:
        """Current registrations and catalogs as MCP configuration."""
        return self.config.model_copy(update={
            "servers": self.registry.list_servers(),
            "active_server_id": self.registry.active_server_id,
        })

    @property
    def active_server(self) -> Optional[ServerRegistration]:
        return self.registry.get_active()

    def resolve_tool_name(self, tool_name: Optional[str] = None) -> Optional[str]:
        """Return the requested tool name, else the configured default."""
        name = (tool_name or "").strip() or (self.config.default_tool or "").strip()
        return name or None

    def allowed_tools(self) -> Optional[List[str]]:
        """Enabled tool names of the active server, or None when unknown."""
        server = self.active_server
        if server is None or not server.tools:
            return None
        return server.enabled_tool_names()

    def is_tool_allowed(self, tool_name: str) -> bool:
        allowed = self.allowed_tools()
        return allowed is None or tool_name in allowed

    async def invoke_tool(self, tool_name: Optional[str] = None, tool_input: Any = MISSING) -> Any:
        """Call a tool on the active server.

        Without an active server or a resolvable tool name no connection is
        made and a "skipped" result is returned.
        """
        server = self.active_server
        resolved = self.resolve_tool_name(tool_name)
        if server is None or resolved is None:
            self.logger.info("MCP call skipped: no server or tool configured")
            return {"status": "skipped", "message": SKIPPED_MESSAGE}

        self.logger.info(f"Calling MCP tool '{resolved}' on server '{server.name or server.url}'")
        session = self._new_session(server.url)
        return await session.call_tool(resolved, tool_input)

    async def discover_tools(self, server_id: Optional[str] = None,
                             save: bool = True) -> List[ToolDescriptor]:
        """Discover the catalog of a server (the active one by default)."""
        server = self.registry.get_server(server_id) if server_id else self.active_server
        if server is None:
            raise ConfigError("No MCP server is registered")

        tools = await self.directory.discover(server.url)
        if save:
            return self.registry.update_tools(server.id, tools)
        return tools

    def _new_session(self, server_url: str) -> MCPSession:
        return MCPSession.from_config(server_url, self.config)
