"""
Tool catalog discovery for MCP servers.
"""

import logging
from typing import Any, List, Mapping, Optional

from pydantic import ValidationError

from secguard.core.config.manager import MCPConfig
from secguard.core.exceptions import ConfigError, ProtocolError
from secguard.core.state.model import ToolDescriptor
from secguard.tools.mcp.session import MCPSession

logger = logging.getLogger(__name__)


def _extract_name(entry: Mapping[str, Any]) -> Optional[str]:
    for key in ("name", "id"):
        value = entry.get(key)
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            value = str(value)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _to_descriptor(entry: Any) -> Optional[ToolDescriptor]:
    """Build a descriptor from a bare name or a server tool object."""
    if isinstance(entry, str):
        name = entry.strip()
        return ToolDescriptor(name=name) if name else None
    if not isinstance(entry, Mapping):
        return None

    name = _extract_name(entry)
    if not name:
        return None

    enabled = entry.get("enabled")
    fields = {key: value for key, value in entry.items() if key not in ("name", "enabled")}
    fields["name"] = name
    fields["enabled"] = enabled if isinstance(enabled, bool) else True

    try:
        return ToolDescriptor.model_validate(fields)
    except ValidationError as e:
        logger.warning(f"Tool '{name}' has malformed metadata, keeping the name only: {e}")
        return ToolDescriptor(name=name, enabled=fields["enabled"])


def normalize_tool_catalog(result: Any) -> List[ToolDescriptor]:
    """Normalize a ``tools/list`` result into an ordered descriptor list.

    Accepts ``{"tools": [...]}`` or a bare list whose entries are names or
    objects carrying ``name``/``id``. Entries without a usable name are
    dropped and repeated names keep their first occurrence.
    """
    entries = result.get("tools") if isinstance(result, Mapping) else result
    if not isinstance(entries, list):
        raise ProtocolError("MCP server returned no tool catalog")

    descriptors: List[ToolDescriptor] = []
    seen = set()
    for entry in entries:
        descriptor = _to_descriptor(entry)
        if descriptor is None or descriptor.name in seen:
            continue
        seen.add(descriptor.name)
        descriptors.append(descriptor)

    if not descriptors:
        raise ProtocolError("MCP server registered no tools")
    return descriptors


class ToolDirectory:
    """Queries MCP servers for their tool catalog."""

    def __init__(self, config: Optional[MCPConfig] = None):
        self.config = config or MCPConfig()
        self.logger = logging.getLogger(__name__)

    async def discover(self, server_url: str) -> List[ToolDescriptor]:
        """Run the handshake with ``tools/list`` and return the catalog."""
        if not server_url:
            raise ConfigError("An MCP SSE URL is required for tool discovery")

        session = MCPSession.from_config(
            server_url, self.config, timeout=self.config.discovery_timeout
        )
        result = await session.list_tools()
        tools = normalize_tool_catalog(result)
        self.logger.info(f"Discovered {len(tools)} tools from {server_url}")
        return tools
