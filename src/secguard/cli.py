"""
Command-line interface for SecGuard.

This module provides a CLI for analyzing alerts with the ReAct agent and
for working with the configured MCP servers.
"""

import asyncio
import json
import sys
from typing import Optional

import click

from secguard.agents.analysis.parser import safe_parse_json
from secguard.agents.analysis.react import ReActAgent
from secguard.audit.logger import configure_logging
from secguard.core.config.manager import ConfigManager
from secguard.core.exceptions import ConfigError, SecGuardError
from secguard.core.state.model import StepEvent, StepEventType
from secguard.tools.mcp.client import MCPClient
from secguard.tools.mcp.session import MISSING
from secguard.utils.llm import LLMClient


def format_event(event: StepEvent) -> str:
    """Render one step event as a console line."""
    label = f"[step {event.step}] {event.type.value}"
    if event.type is StepEventType.ACTION:
        return f"{label}: {event.action} {event.input or ''}".rstrip()
    return f"{label}: {event.content}"


def _fail(message: str):
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


@click.group()
@click.option(
    "--config", "-c",
    type=click.Path(exists=True),
    help="Path to configuration file"
)
@click.option(
    "--log-level", "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    default=None,
    help="Logging level (overrides the configuration)"
)
@click.pass_context
def cli(ctx, config, log_level):
    """SecGuard: ReAct security alert analysis with MCP tools."""
    try:
        config_manager = ConfigManager(config)
    except SecGuardError as e:
        _fail(str(e))

    logging_config = config_manager.get_logging_config()
    if log_level:
        logging_config = logging_config.model_copy(update={"level": log_level})
    configure_logging(logging_config)

    ctx.ensure_object(dict)
    ctx.obj["config_manager"] = config_manager


@cli.command()
@click.argument("alert_file", type=click.File("r"), default="-")
@click.option("--json", "as_json", is_flag=True, help="Print events as JSON lines")
@click.pass_context
def analyze(ctx, alert_file, as_json):
    """Analyze a security alert read from ALERT_FILE (or stdin)."""
    settings = ctx.obj["config_manager"].settings
    alert = alert_file.read()

    def emit(event: StepEvent):
        if as_json:
            click.echo(event.model_dump_json(exclude_none=True))
        else:
            click.echo(format_event(event))

    agent = ReActAgent(settings)
    try:
        events = asyncio.run(agent.run(alert, emit=emit))
    except SecGuardError as e:
        _fail(str(e))

    if events and events[-1].type is StepEventType.ERROR:
        sys.exit(1)


@cli.command()
@click.option("--server-id", help="Registered server id (defaults to the active server)")
@click.option("--save", is_flag=True, help="Store the discovered catalog in the configuration file")
@click.pass_context
def discover(ctx, server_id, save):
    """List the tools of an MCP server."""
    client = MCPClient(ctx.obj["config_manager"].get_mcp_config())
    try:
        tools = asyncio.run(client.discover_tools(server_id, save=save))
    except SecGuardError as e:
        _fail(str(e))

    if save:
        _save_servers(ctx, client)

    for tool in tools:
        line = f"{tool.name}: {tool.description}" if tool.description else tool.name
        click.echo(line if tool.enabled else f"{line} (disabled)")


@cli.group()
def servers():
    """Manage the registered MCP servers."""


@servers.command("list")
@click.pass_context
def list_servers(ctx):
    """List registered servers; the active one is marked with '*'."""
    client = MCPClient(ctx.obj["config_manager"].get_mcp_config())
    active = client.active_server
    for server in client.registry.list_servers():
        marker = "*" if active is not None and server.id == active.id else " "
        click.echo(f"{marker} {server.id}  {server.name or server.url}  {server.url}")


@servers.command("add")
@click.argument("url")
@click.option("--name", default="", help="Display name (defaults to the URL)")
@click.option("--activate", is_flag=True, help="Make the new server the active one")
@click.pass_context
def add_server(ctx, url, name, activate):
    """Register the MCP server at URL."""
    client = MCPClient(ctx.obj["config_manager"].get_mcp_config())
    try:
        server = client.registry.register_server(url, name)
    except ValueError as e:
        _fail(str(e))
    if activate:
        client.registry.set_active(server.id)

    _save_servers(ctx, client)
    click.echo(f"Registered {server.name} as {server.id}")


@servers.command("remove")
@click.argument("server_id")
@click.pass_context
def remove_server(ctx, server_id):
    """Remove the server registered as SERVER_ID."""
    client = MCPClient(ctx.obj["config_manager"].get_mcp_config())
    try:
        client.registry.remove_server(server_id)
    except SecGuardError as e:
        _fail(str(e))

    _save_servers(ctx, client)
    click.echo(f"Removed {server_id}")


@servers.command("use")
@click.argument("server_id")
@click.pass_context
def use_server(ctx, server_id):
    """Make SERVER_ID the active server."""
    client = MCPClient(ctx.obj["config_manager"].get_mcp_config())
    try:
        client.registry.set_active(server_id)
    except SecGuardError as e:
        _fail(str(e))

    _save_servers(ctx, client)
    click.echo(f"Active server: {server_id}")


@cli.command("enable-tool")
@click.argument("tool")
@click.option("--server-id", help="Registered server id (defaults to the active server)")
@click.pass_context
def enable_tool(ctx, tool, server_id):
    """Allow the agent to call TOOL."""
    _set_tool_enabled(ctx, tool, server_id, True)


@cli.command("disable-tool")
@click.argument("tool")
@click.option("--server-id", help="Registered server id (defaults to the active server)")
@click.pass_context
def disable_tool(ctx, tool, server_id):
    """Stop the agent from calling TOOL."""
    _set_tool_enabled(ctx, tool, server_id, False)


def _set_tool_enabled(ctx, tool: str, server_id: Optional[str], enabled: bool):
    client = MCPClient(ctx.obj["config_manager"].get_mcp_config())
    try:
        server = client.registry.get_server(server_id) if server_id else client.active_server
        if server is None:
            raise ConfigError("No MCP server is registered")
        client.registry.set_tool_enabled(server.id, tool, enabled)
    except SecGuardError as e:
        _fail(str(e))

    _save_servers(ctx, client)
    click.echo(f"{tool} {'enabled' if enabled else 'disabled'} on {server.name or server.id}")


def _save_servers(ctx, client: MCPClient):
    try:
        ctx.obj["config_manager"].save_mcp_config(client.to_config())
    except SecGuardError as e:
        _fail(str(e))


@cli.command("call-tool")
@click.argument("tool")
@click.argument("tool_input", required=False)
@click.pass_context
def call_tool(ctx, tool, tool_input):
    """Call TOOL on the active MCP server with an optional JSON or text INPUT."""
    client = MCPClient(ctx.obj["config_manager"].get_mcp_config())
    arguments = MISSING if tool_input is None else safe_parse_json(tool_input)
    try:
        result = asyncio.run(client.invoke_tool(tool, arguments))
    except SecGuardError as e:
        _fail(str(e))

    if isinstance(result, str):
        click.echo(result)
    else:
        click.echo(json.dumps(result, indent=2, ensure_ascii=False, default=str))


@cli.command("test-llm")
@click.pass_context
def test_llm(ctx):
    """Check that the model endpoint answers."""
    client = LLMClient(ctx.obj["config_manager"].get_llm_config())
    try:
        reply = asyncio.run(client.ping())
    except SecGuardError as e:
        _fail(str(e))

    click.echo(f"Model endpoint OK: {reply.strip() or '(empty reply)'}")


def main():
    """Console script entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
