"""
Unit tests for the chat-completions client.
"""

import pytest

from secguard.core.config.manager import LLMConfig
from secguard.core.exceptions import ConfigError, LLMError
from secguard.utils.llm import EMPTY_RESPONSE_MESSAGE, LLMClient

MESSAGES = [{"role": "user", "content": "hello"}]


class TestBuildHeaders:
    """Test credential headers."""

    def test_api_key_and_access_code(self):
        client = LLMClient(LLMConfig(api_key="k", access_code="c"))

        headers = client.build_headers()

        assert headers["apikey"] == "k"
        assert headers["Authorization"] == "ACCESSCODE c"
        assert headers["Content-Type"] == "application/json"

    def test_explicit_auth_header_wins(self):
        client = LLMClient(LLMConfig(api_key="k", access_code="c", auth_header="Token t"))

        assert client.build_headers()["Authorization"] == "Token t"

    def test_bearer(self):
        client = LLMClient(LLMConfig(api_key="k", api_key_header="x-api-key", use_bearer=True))
        headers = client.build_headers()

        assert headers["Authorization"] == "Bearer k"
        assert headers["x-api-key"] == "k"

    def test_no_credentials(self):
        client = LLMClient(LLMConfig())

        assert not client.has_credentials
        assert "Authorization" not in client.build_headers()


class TestChat:
    """Test chat requests against a fake endpoint."""

    @pytest.mark.asyncio
    async def test_json_response(self, llm_server):
        client = LLMClient(LLMConfig(endpoint=llm_server.url, api_key="k", model="m1"))

        text = await client.chat(MESSAGES)

        assert text == "Thought: done\nFinal Answer: benign"
        assert llm_server.requests[0] == {"model": "m1", "temperature": 0.2, "messages": MESSAGES}
        assert llm_server.headers[0]["apikey"] == "k"

    @pytest.mark.asyncio
    async def test_streamed_response(self, llm_server):
        llm_server.stream = True
        client = LLMClient(LLMConfig(endpoint=llm_server.url, api_key="k"))

        assert await client.chat(MESSAGES) == "Thought: done\nFinal Answer: benign"

    @pytest.mark.asyncio
    async def test_empty_response_placeholder(self, llm_server):
        llm_server.stream = True
        llm_server.replies = ["   "]
        client = LLMClient(LLMConfig(endpoint=llm_server.url, api_key="k"))

        assert await client.chat(MESSAGES) == EMPTY_RESPONSE_MESSAGE

    @pytest.mark.asyncio
    async def test_error_status(self, llm_server):
        llm_server.status = 429
        client = LLMClient(LLMConfig(endpoint=llm_server.url, api_key="k"))

        with pytest.raises(LLMError, match=r"LLM request failed \(429\): quota exceeded"):
            await client.chat(MESSAGES)

    @pytest.mark.asyncio
    async def test_malformed_json(self, llm_server):
        llm_server.raw_body = "{not json"
        client = LLMClient(LLMConfig(endpoint=llm_server.url, api_key="k"))

        with pytest.raises(LLMError, match="malformed JSON"):
            await client.chat(MESSAGES)

    @pytest.mark.asyncio
    async def test_undecodable_body(self, llm_server):
        """A body that is not valid UTF-8 is a model error, not a decode crash."""
        llm_server.raw_bytes = b'{"choices":[{"message":{"content":"\xff\xfe"}}]}'
        client = LLMClient(LLMConfig(endpoint=llm_server.url, api_key="k"))

        with pytest.raises(LLMError, match="could not be decoded"):
            await client.chat(MESSAGES)

    @pytest.mark.asyncio
    async def test_connection_failure(self):
        client = LLMClient(LLMConfig(endpoint="http://127.0.0.1:9/v1/chat/completions", api_key="k"))

        with pytest.raises(LLMError):
            await client.chat(MESSAGES)

    @pytest.mark.asyncio
    async def test_missing_endpoint(self):
        client = LLMClient(LLMConfig(endpoint="", api_key="k"))

        with pytest.raises(ConfigError):
            await client.chat(MESSAGES)


class TestPing:
    """Test the connectivity check."""

    @pytest.mark.asyncio
    async def test_ping(self, llm_server):
        llm_server.replies = ["pong"]
        client = LLMClient(LLMConfig(endpoint=llm_server.url, api_key="k", model="m1"))

        assert await client.ping() == "pong"
        assert llm_server.requests[0] == {
            "model": "m1",
            "messages": [{"role": "user", "content": "ping"}],
            "max_tokens": 5,
        }
