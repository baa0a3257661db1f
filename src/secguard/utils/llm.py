"""
Chat-completions client for the model endpoint.

Posts the conversation as ``{model, temperature, messages}`` and returns
the assistant text, whether the endpoint answers with JSON or with an SSE
stream of deltas. No prompt logic here.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List

import aiohttp

from secguard.agents.analysis.parser import extract_completion_text, normalize_sse_completion
from secguard.core.config.manager import LLMConfig
from secguard.core.exceptions import ConfigError, LLMError

EMPTY_RESPONSE_MESSAGE = (
    "The model returned an empty response; check that it follows the ReAct template."
)


class LLMClient:
    """Minimal async client for an OpenAI-compatible chat endpoint."""

    def __init__(self, config: LLMConfig):
        self.config = config
        self.logger = logging.getLogger(__name__)

    def update_config(self, config: LLMConfig):
        self.config = config

    @property
    def has_credentials(self) -> bool:
        return self.config.has_credentials

    def build_headers(self) -> Dict[str, str]:
        """Build request headers from the configured credentials."""
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers[self.config.api_key_header] = self.config.api_key

        if self.config.auth_header:
            headers["Authorization"] = self.config.auth_header
        elif self.config.access_code:
            headers["Authorization"] = f"ACCESSCODE {self.config.access_code}"
        elif self.config.use_bearer and self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"

        return headers

    async def chat(self, messages: List[Dict[str, str]]) -> str:
        """Send the conversation and return the assistant text."""
        payload = {
            "model": self.config.model,
            "temperature": self.config.temperature,
            "messages": messages,
        }
        text = (await self._post(payload)).strip()
        if not text:
            self.logger.warning("Model returned an empty completion")
            return EMPTY_RESPONSE_MESSAGE
        return text

    async def ping(self) -> str:
        """Send a tiny request to check endpoint, model and credentials."""
        if not self.config.model:
            raise ConfigError("Model name is not configured")
        return await self._post({
            "model": self.config.model,
            "messages": [{"role": "user", "content": "ping"}],
            "max_tokens": 5,
        })

    async def _post(self, payload: Dict[str, Any]) -> str:
        if not self.config.endpoint:
            raise ConfigError("Model endpoint URL is not configured")

        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    self.config.endpoint,
                    json=payload,
                    headers=self.build_headers(),
                ) as response:
                    try:
                        body = await response.text()
                    except (UnicodeDecodeError, LookupError) as e:
                        raise LLMError(
                            f"LLM response ({response.status}) could not be decoded: {e}"
                        ) from e
                    if not 200 <= response.status < 300:
                        raise LLMError(
                            f"LLM request failed ({response.status}): {body or 'Unknown'}"
                        )

                    content_type = response.headers.get("Content-Type", "").lower()
                    if "text/event-stream" in content_type:
                        return normalize_sse_completion(body)

                    try:
                        data = json.loads(body)
                    except ValueError as e:
                        raise LLMError(f"LLM returned malformed JSON: {e}") from e
                    return extract_completion_text(data)

        except aiohttp.ClientError as e:
            raise LLMError(f"LLM request failed: {e}") from e
        except asyncio.TimeoutError:
            raise LLMError(f"LLM request timed out after {self.config.timeout}s") from None
