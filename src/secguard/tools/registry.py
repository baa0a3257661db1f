"""
Server registry for SecGuard.

This module keeps the user's MCP server registrations and resolves which
one is active.
"""

import logging
from typing import Dict, Iterable, List, Optional

from secguard.core.exceptions import ConfigError
from secguard.core.state.model import ServerRegistration, ToolDescriptor


class ServerRegistry:
    """Registry for MCP server registrations."""

    def __init__(self, servers: Optional[Iterable[ServerRegistration]] = None,
                 active_server_id: Optional[str] = None):
        self._servers: Dict[str, ServerRegistration] = {}
        self._active_server_id = active_server_id
        self.logger = logging.getLogger(__name__)

        for server in servers or []:
            self._servers[server.id] = server.model_copy(deep=True)

    def register_server(self, url: str, name: str = "",
                        tools: Optional[List[ToolDescriptor]] = None) -> ServerRegistration:
        """Register a server and return its registration."""
        server = ServerRegistration(url=url, name=name or url, tools=tools or [])
        self._servers[server.id] = server
        self.logger.info(f"MCP server '{server.name}' registered with id {server.id}")
        return server

    def remove_server(self, server_id: str):
        """Remove a server registration."""
        if self._servers.pop(server_id, None) is None:
            raise ConfigError(f"Unknown MCP server id: {server_id}")

    def get_server(self, server_id: str) -> ServerRegistration:
        """Get a server registration by id."""
        if server_id not in self._servers:
            raise ConfigError(f"Unknown MCP server id: {server_id}")
        return self._servers[server_id]

    def list_servers(self) -> List[ServerRegistration]:
        """List all registered servers in registration order."""
        return list(self._servers.values())

    def set_active(self, server_id: str):
        """Select the active server."""
        self.get_server(server_id)
        self._active_server_id = server_id

    @property
    def active_server_id(self) -> Optional[str]:
        """Id of the explicitly selected server, if it is still registered."""
        if self._active_server_id in self._servers:
            return self._active_server_id
        return None

    def get_active(self) -> Optional[ServerRegistration]:
        """Return the active server, falling back to the first registered one."""
        if self._active_server_id in self._servers:
            return self._servers[self._active_server_id]
        return next(iter(self._servers.values()), None)

    def update_tools(self, server_id: str, tools: List[ToolDescriptor]) -> List[ToolDescriptor]:
        """Replace a server's catalog, keeping the enabled flag of known tools."""
        server = self.get_server(server_id)
        previous = {tool.name: tool.enabled for tool in server.tools}

        merged = []
        for tool in tools:
            tool = tool.model_copy()
            if tool.name in previous:
                tool.enabled = previous[tool.name]
            merged.append(tool)

        server.tools = merged
        return merged

    def set_tool_enabled(self, server_id: str, tool_name: str, enabled: bool):
        """Allow or deny one tool of a server."""
        server = self.get_server(server_id)
        for tool in server.tools:
            if tool.name == tool_name:
                tool.enabled = enabled
                return
        raise ConfigError(f"MCP server '{server.name}' has no tool named '{tool_name}'")
