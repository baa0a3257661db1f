"""
Pytest configuration and fixtures for SecGuard tests.

The MCP server and the model endpoint are faked with in-process aiohttp
applications so the clients are exercised over real HTTP and SSE.
"""

import asyncio
import json
import os
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from secguard.core.config.manager import (
    AgentConfig,
    LLMConfig,
    LoggingConfig,
    MCPConfig,
    SecGuardSettings,
)
from secguard.core.state.model import ServerRegistration, ToolDescriptor


class FakeMCPServer:
    """Minimal MCP server speaking JSON-RPC over SSE.

    Tests tweak the public attributes to script the server's behaviour and
    inspect ``requests`` afterwards.
    """

    def __init__(self):
        self.url = ""
        self.endpoint = "/messages?session_id=abc"
        self.send_endpoint = True
        self.init_error: Optional[Dict[str, Any]] = None
        self.call_result: Any = {"content": [{"type": "text", "text": "ok"}]}
        self.call_error: Optional[Dict[str, Any]] = None
        self.tools: Any = [
            {"name": "enrich_ip", "description": "Look up an IP address"},
            {"name": "lookup_hash", "inputSchema": {"type": "object"}},
        ]
        self.post_status: Dict[str, int] = {}
        self.sse_status = 200
        self.error_body: Optional[bytes] = None
        self.noise: List[str] = []

        self.requests: List[Dict[str, Any]] = []
        self.connections = 0
        self.sse_queries: List[Dict[str, str]] = []
        self._queue: Optional[asyncio.Queue] = None

        self.app = web.Application()
        self.app.router.add_get("/sse", self.handle_sse)
        self.app.router.add_post("/messages", self.handle_message)

    def methods(self) -> List[str]:
        return [request.get("method") for request in self.requests]

    def stop(self):
        if self._queue is not None:
            self._queue.put_nowait(None)

    async def handle_sse(self, request: web.Request) -> web.StreamResponse:
        self.connections += 1
        self.sse_queries.append(dict(request.query))
        if self.sse_status != 200:
            return self._rejection(self.sse_status, "sse")

        queue: asyncio.Queue = asyncio.Queue()
        self._queue = queue

        response = web.StreamResponse(headers={
            "Content-Type": "text/event-stream",
            "Cache-Control": "no-cache",
        })
        await response.prepare(request)

        try:
            if self.send_endpoint:
                await response.write(f"event: endpoint\ndata: {self.endpoint}\n\n".encode())
            while True:
                try:
                    frame = await asyncio.wait_for(queue.get(), 0.05)
                except asyncio.TimeoutError:
                    if request.transport is None or request.transport.is_closing():
                        break
                    continue
                if frame is None:
                    break
                await response.write(frame.encode())
        except ConnectionResetError:
            pass
        return response

    async def handle_message(self, request: web.Request) -> web.Response:
        payload = await request.json()
        self.requests.append(payload)
        method = payload.get("method")

        status = self.post_status.get(method)
        if status is not None:
            return self._rejection(status, method)

        reply = self._reply(payload)
        if reply is not None and self._queue is not None:
            for frame in self.noise:
                self._queue.put_nowait(frame)
            self._queue.put_nowait(f"event: message\ndata: {json.dumps(reply)}\n\n")
        return web.Response(status=202, text="Accepted")

    def _rejection(self, status: int, what: str) -> web.Response:
        if self.error_body is not None:
            return web.Response(
                status=status, body=self.error_body, content_type="text/plain", charset="utf-8"
            )
        return web.Response(status=status, text=f"{what} rejected")

    def _reply(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        method = payload.get("method")
        if "id" not in payload:
            return None

        reply: Dict[str, Any] = {"jsonrpc": "2.0", "id": payload["id"]}
        if method == "initialize":
            if self.init_error is not None:
                reply["error"] = self.init_error
            else:
                reply["result"] = {
                    "protocolVersion": payload["params"]["protocolVersion"],
                    "capabilities": {"tools": {}},
                    "serverInfo": {"name": "fake-mcp", "version": "1.0"},
                }
        elif method == "tools/list":
            reply["result"] = {"tools": self.tools}
        elif method == "tools/call":
            if self.call_error is not None:
                reply["error"] = self.call_error
            else:
                reply["result"] = self.call_result
        else:
            reply["error"] = {"code": -32601, "message": f"Unknown method {method}"}
        return reply


class FakeLLMServer:
    """Chat-completions endpoint returning scripted replies."""

    def __init__(self):
        self.url = ""
        self.replies: List[str] = ["Thought: done\nFinal Answer: benign"]
        self.stream = False
        self.status = 200
        self.raw_body: Optional[str] = None
        self.raw_bytes: Optional[bytes] = None

        self.requests: List[Dict[str, Any]] = []
        self.headers: List[Dict[str, str]] = []

        self.app = web.Application()
        self.app.router.add_post("/v1/chat/completions", self.handle)

    async def handle(self, request: web.Request) -> web.StreamResponse:
        self.requests.append(await request.json())
        self.headers.append(dict(request.headers))

        if self.status != 200:
            return web.Response(status=self.status, text="quota exceeded")
        if self.raw_bytes is not None:
            return web.Response(body=self.raw_bytes, content_type="application/json")
        if self.raw_body is not None:
            return web.Response(text=self.raw_body, content_type="application/json")

        text = self.replies[min(len(self.requests), len(self.replies)) - 1]
        if not self.stream:
            return web.json_response({
                "id": "chatcmpl-1",
                "choices": [{"index": 0, "message": {"role": "assistant", "content": text}}],
            })

        body = "".join(
            f"data: {json.dumps({'choices': [{'delta': {'content': chunk}}]})}\n\n"
            for chunk in (text[:3], text[3:])
        )
        body += "data: [DONE]\n\n"
        return web.Response(text=body, content_type="text/event-stream")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep SecGuard variables from the developer's shell out of the tests."""
    for key in list(os.environ):
        if key.startswith("SECGUARD_"):
            monkeypatch.delenv(key, raising=False)


@pytest_asyncio.fixture
async def mcp_server():
    """Run a fake MCP SSE server for the duration of a test."""
    fake = FakeMCPServer()
    server = TestServer(fake.app)
    await server.start_server()
    fake.url = str(server.make_url("/sse"))
    yield fake
    fake.stop()
    await server.close()


@pytest_asyncio.fixture
async def llm_server():
    """Run a fake chat-completions endpoint for the duration of a test."""
    fake = FakeLLMServer()
    server = TestServer(fake.app)
    await server.start_server()
    fake.url = str(server.make_url("/v1/chat/completions"))
    yield fake
    await server.close()


@pytest.fixture
def sample_alert():
    """Create a sample alert for testing."""
    return json.dumps({
        "id": "test-alert-001",
        "source": "test-siem",
        "severity": "high",
        "description": "Outbound connection to a known mining pool",
        "raw_data": {
            "source_ip": "192.168.1.100",
            "destination_ip": "203.0.113.7",
            "process": "xmrig.exe",
        },
    }, indent=2)


@pytest.fixture
def mcp_config():
    """MCP configuration with one registered server and a known catalog."""
    return MCPConfig(
        servers=[
            ServerRegistration(
                id="local",
                name="Local",
                url="http://127.0.0.1:9/sse",
                tools=[
                    ToolDescriptor(name="enrich_ip"),
                    ToolDescriptor(name="lookup_hash", enabled=False),
                ],
            )
        ],
        active_server_id="local",
        timeout=2,
        discovery_timeout=2,
        settle_delay=0,
    )


@pytest.fixture
def settings(mcp_config):
    """Settings with model credentials so the real loop runs."""
    return SecGuardSettings(
        llm=LLMConfig(endpoint="http://127.0.0.1:9/v1/chat/completions", api_key="test-key"),
        agent=AgentConfig(),
        mcp=mcp_config,
        logging=LoggingConfig(),
    )
