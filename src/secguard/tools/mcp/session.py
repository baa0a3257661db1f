"""
MCP tool session client.

An ``MCPSession`` owns exactly one SSE connection to an MCP server. Over
that connection it performs the JSON-RPC handshake (``initialize`` then
``notifications/initialized``) and a single operation, either
``tools/call`` or ``tools/list``. Requests are POSTed to the session
endpoint announced by the server; responses come back asynchronously on
the event stream and are matched by their JSON-RPC id.

One timer bounds the whole exchange. Whatever the outcome, the stream is
closed once and the instance cannot be reused.
"""

import asyncio
import itertools
import json
import logging
from enum import Enum
from typing import Any, Dict, Mapping, Optional

import aiohttp

from secguard.core.config.manager import MCPConfig
from secguard.core.exceptions import ProtocolError, ToolError, ToolTimeoutError, TransportError
from secguard.tools.mcp.transport import cache_bust_url, resolve_session_url
from secguard.utils.sse import SSEEvent, iter_sse_events

JSONRPC_VERSION = "2.0"

# Placeholder for "no tool input given", distinct from an explicit None.
MISSING = object()

# Returned by event handlers while the exchange is still in progress.
_PENDING = object()


class SessionState(str, Enum):
    """Lifecycle of one MCP session."""
    CONNECTING = "connecting"
    AWAITING_ENDPOINT = "awaiting_endpoint"
    INITIALIZING = "initializing"
    READY = "ready"
    CALLING = "calling"
    DONE = "done"
    FAILED = "failed"


def normalize_tool_arguments(value: Any = MISSING) -> Dict[str, Any]:
    """Turn free-form model input into a ``tools/call`` arguments object.

    Mappings pass through, a non-empty string becomes ``{"input": ...}``,
    scalars and None become ``{"value": ...}``; anything else is ``{}``.
    """
    if isinstance(value, dict):
        return value
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, str):
        stripped = value.strip()
        return {"input": stripped} if stripped else {}
    if value is None:
        return {"value": None}
    if isinstance(value, (bool, int, float)):
        return {"value": value}
    return {}


def _pretty_json(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def _content_block_text(block: Any) -> str:
    if isinstance(block, str):
        return block
    if not isinstance(block, Mapping):
        return ""

    text = block.get("text")
    if isinstance(text, str):
        return text
    if "json" in block:
        return _pretty_json(block["json"])
    if "data" in block:
        data = block["data"]
        return data if isinstance(data, str) else _pretty_json(data)
    return ""


def normalize_tool_result(result: Any) -> Any:
    """Flatten a ``content`` block array into one string.

    Results that are not wrapped in a ``content`` array are returned as-is.
    """
    if not isinstance(result, Mapping):
        return result

    content = result.get("content")
    if not isinstance(content, list):
        return result

    parts = [_content_block_text(block) for block in content]
    return "\n".join(part for part in parts if part)


def _error_message(error: Any, default: str) -> str:
    if isinstance(error, Mapping):
        message = error.get("message")
        if isinstance(message, str) and message:
            return message
    elif isinstance(error, str) and error:
        return error
    return default


class MCPSession:
    """One SSE connection, one handshake, one operation."""

    def __init__(
        self,
        server_url: str,
        timeout: float = 20.0,
        settle_delay: float = 0.2,
        protocol_version: str = "1.0",
        client_name: str = "secguard",
        client_version: str = "0.1.0",
    ):
        self.server_url = server_url
        self.timeout = timeout
        self.settle_delay = settle_delay
        self.protocol_version = protocol_version
        self.client_name = client_name
        self.client_version = client_version
        self.logger = logging.getLogger(__name__)

        self.state = SessionState.CONNECTING
        self.session_url: Optional[str] = None
        self._ids = itertools.count(1)
        self._initialize_id: Optional[int] = None
        self._operation_id: Optional[int] = None
        self._response: Optional[aiohttp.ClientResponse] = None
        self._stream_closed = False
        self._started = False

    @classmethod
    def from_config(cls, server_url: str, config: MCPConfig,
                    timeout: Optional[float] = None) -> "MCPSession":
        """Create a session using MCP configuration defaults."""
        return cls(
            server_url,
            timeout=config.timeout if timeout is None else timeout,
            settle_delay=config.settle_delay,
            protocol_version=config.protocol_version,
            client_name=config.client_name,
            client_version=config.client_version,
        )

    @property
    def stream_closed(self) -> bool:
        return self._stream_closed

    async def call_tool(self, tool_name: str, arguments: Any = MISSING) -> Any:
        """Invoke one tool and return its normalized result."""
        params = {"name": tool_name, "arguments": normalize_tool_arguments(arguments)}
        result = await self._run("tools/call", params)
        return normalize_tool_result(result)

    async def list_tools(self) -> Any:
        """Query the server's tool catalog and return the raw result."""
        return await self._run("tools/list", {})

    async def _run(self, method: str, params: Dict[str, Any]) -> Any:
        if self._started:
            raise ToolError("MCP session already used; open a new session for each call")
        self._started = True

        try:
            return await asyncio.wait_for(self._exchange(method, params), timeout=self.timeout)
        except asyncio.TimeoutError:
            state = self.state
            self._transition(SessionState.FAILED)
            raise ToolTimeoutError(
                f"MCP {method} timed out after {self.timeout}s (state: {state.value})"
            ) from None
        except ToolError:
            self._transition(SessionState.FAILED)
            raise

    async def _exchange(self, method: str, params: Dict[str, Any]) -> Any:
        client_timeout = aiohttp.ClientTimeout(total=None, sock_connect=self.timeout)
        async with aiohttp.ClientSession(timeout=client_timeout) as http:
            try:
                return await self._stream_exchange(http, method, params)
            finally:
                self._close_stream()

    async def _stream_exchange(self, http: aiohttp.ClientSession, method: str,
                               params: Dict[str, Any]) -> Any:
        self._transition(SessionState.CONNECTING)
        try:
            self._response = await http.get(
                cache_bust_url(self.server_url),
                headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"},
            )
        except aiohttp.ClientError as e:
            raise TransportError(f"SSE connection failed: {e}") from e

        if self._response.status != 200:
            body = await self._response.text(errors="replace")
            raise TransportError(
                f"SSE connection failed ({self._response.status}): {body or 'Unknown'}"
            )

        self._transition(SessionState.AWAITING_ENDPOINT)
        try:
            async for event in iter_sse_events(self._response.content):
                outcome = await self._handle_event(http, event, method, params)
                if outcome is not _PENDING:
                    return outcome
        except aiohttp.ClientError as e:
            raise TransportError(f"SSE connection failed: {e}") from e

        raise TransportError("SSE connection failed: stream closed by server")

    async def _handle_event(self, http: aiohttp.ClientSession, event: SSEEvent,
                            method: str, params: Dict[str, Any]) -> Any:
        if event.event == "endpoint":
            return await self._on_endpoint(http, event.data)
        if event.event != "message":
            return _PENDING

        try:
            message = json.loads(event.data)
        except json.JSONDecodeError:
            return _PENDING
        if not isinstance(message, dict):
            return _PENDING

        message_id = message.get("id")
        if message_id is None or isinstance(message_id, bool):
            return _PENDING

        if self._operation_id is None and message_id == self._initialize_id:
            return await self._on_initialize_response(http, message, method, params)
        if self._operation_id is not None and message_id == self._operation_id:
            return self._on_operation_response(message, method)

        self.logger.debug(f"Ignoring MCP message with unmatched id {message_id!r}")
        return _PENDING

    async def _on_endpoint(self, http: aiohttp.ClientSession, data: str) -> Any:
        if self.state is not SessionState.AWAITING_ENDPOINT:
            self.logger.debug("Ignoring repeated endpoint event")
            return _PENDING

        self.session_url = resolve_session_url(self.server_url, data)
        if not self.session_url:
            raise ProtocolError("MCP endpoint event was empty")

        self._transition(SessionState.INITIALIZING)
        if self.settle_delay:
            await asyncio.sleep(self.settle_delay)

        self._initialize_id = await self._send_request(http, "initialize", {
            "protocolVersion": self.protocol_version,
            "capabilities": {"tools": {}},
            "clientInfo": {"name": self.client_name, "version": self.client_version},
        })
        return _PENDING

    async def _on_initialize_response(self, http: aiohttp.ClientSession, message: Dict[str, Any],
                                      method: str, params: Dict[str, Any]) -> Any:
        if "error" in message:
            raise ProtocolError(_error_message(message["error"], "MCP initialize failed"))

        self._transition(SessionState.READY)
        await self._send_notification(http, "notifications/initialized")

        self._operation_id = await self._send_request(http, method, params)
        self._transition(SessionState.CALLING)
        return _PENDING

    def _on_operation_response(self, message: Dict[str, Any], method: str) -> Any:
        if "error" in message:
            raise ProtocolError(_error_message(message["error"], f"MCP {method} failed"))
        if "result" not in message:
            return _PENDING

        self._transition(SessionState.DONE)
        return message["result"]

    async def _send_request(self, http: aiohttp.ClientSession, method: str,
                            params: Dict[str, Any]) -> int:
        request_id = next(self._ids)
        await self._post(http, {
            "jsonrpc": JSONRPC_VERSION,
            "id": request_id,
            "method": method,
            "params": params,
        })
        return request_id

    async def _send_notification(self, http: aiohttp.ClientSession, method: str):
        try:
            await self._post(http, {"jsonrpc": JSONRPC_VERSION, "method": method, "params": {}})
        except TransportError as e:
            self.logger.warning(f"MCP notification {method} was not delivered: {e}")

    async def _post(self, http: aiohttp.ClientSession, payload: Dict[str, Any]):
        method = payload["method"]
        try:
            async with http.post(
                self.session_url,
                json=payload,
                headers={"Accept": "application/json"},
            ) as response:
                if not 200 <= response.status < 300:
                    body = await response.text(errors="replace")
                    raise TransportError(
                        f"MCP {method} request failed ({response.status}): {body or 'Unknown'}"
                    )
        except aiohttp.ClientError as e:
            raise TransportError(f"MCP {method} request failed: {e}") from e

    def _transition(self, state: SessionState):
        if self.state is state:
            return
        if self.state in (SessionState.DONE, SessionState.FAILED):
            return
        self.logger.debug(f"MCP session {self.server_url}: {self.state.value} -> {state.value}")
        self.state = state

    def _close_stream(self):
        if self._stream_closed:
            return
        self._stream_closed = True
        if self._response is not None:
            self._response.close()
