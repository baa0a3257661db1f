"""
Unit tests for MCP tool catalog discovery.
"""

import pytest

from secguard.core.config.manager import MCPConfig
from secguard.core.exceptions import ConfigError, ProtocolError
from secguard.tools.mcp.discovery import ToolDirectory, normalize_tool_catalog


class TestNormalizeToolCatalog:
    """Test catalog normalization."""

    def test_object_entries_keep_extra_fields(self):
        tools = normalize_tool_catalog({"tools": [
            {"name": "enrich_ip", "description": "IP lookup", "inputSchema": {"type": "object"},
             "annotations": {"readOnly": True}},
        ]})

        tool = tools[0]
        assert tool.name == "enrich_ip"
        assert tool.description == "IP lookup"
        assert tool.argument_schema == {"type": "object"}
        assert tool.enabled is True
        assert tool.model_extra["annotations"] == {"readOnly": True}

    def test_bare_list_of_names_and_ids(self):
        tools = normalize_tool_catalog(["whois", {"id": 7}, {"id": "geo", "enabled": False}])

        assert [tool.name for tool in tools] == ["whois", "7", "geo"]
        assert tools[2].enabled is False

    def test_unusable_and_duplicate_entries_dropped(self):
        tools = normalize_tool_catalog([
            {"name": "whois", "description": "first"},
            {"name": "whois", "description": "second"},
            {"description": "no name"},
            {"name": "   "},
            42,
        ])

        assert len(tools) == 1
        assert tools[0].description == "first"

    def test_missing_catalog(self):
        with pytest.raises(ProtocolError, match="no tool catalog"):
            normalize_tool_catalog({"resources": []})

    def test_empty_catalog(self):
        with pytest.raises(ProtocolError, match="registered no tools"):
            normalize_tool_catalog({"tools": [{"description": "nameless"}]})


class TestToolDirectory:
    """Test discovery against a live server."""

    @pytest.mark.asyncio
    async def test_discover(self, mcp_server):
        directory = ToolDirectory(MCPConfig(settle_delay=0, discovery_timeout=2))

        tools = await directory.discover(mcp_server.url)

        assert [tool.name for tool in tools] == ["enrich_ip", "lookup_hash"]
        assert mcp_server.methods() == ["initialize", "notifications/initialized", "tools/list"]

    @pytest.mark.asyncio
    async def test_discover_empty_catalog(self, mcp_server):
        mcp_server.tools = []
        directory = ToolDirectory(MCPConfig(settle_delay=0, discovery_timeout=2))

        with pytest.raises(ProtocolError, match="registered no tools"):
            await directory.discover(mcp_server.url)

    @pytest.mark.asyncio
    async def test_discover_requires_url(self):
        with pytest.raises(ConfigError):
            await ToolDirectory().discover("")
