"""
Anthropic Messages API adapter.
"""

from __future__ import annotations
from typing import Any, AsyncIterator, Optional

import httpx

from dispatch.contracts import Packet, Provider

from ..contracts import AdapterRequest, RecoveredResult
from .base import HttpProviderAdapter, NODE_DIRECTIVES

MESSAGES_URL = "https://api.anthropic.com/v1/messages"
API_VERSION = "2023-06-01"
DEFAULT_MODEL = "claude-sonnet-4-20250514"


class AnthropicAdapter(HttpProviderAdapter):

    def __init__(
        self,
        api_key: str,
        default_model: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
        max_tokens: int = 4096,
        temperature: float = 0.7
    ):
        super().__init__(client=client, timeout=timeout)
        self._api_key = api_key
        self._model = default_model or DEFAULT_MODEL
        self._url = f"{base_url.rstrip('/')}/messages" if base_url else MESSAGES_URL
        self._max_tokens = max_tokens
        self._temperature = temperature

    @property
    def adapter_id(self) -> str:
        return "ANTHROPIC_ADAPTER"

    @property
    def provider(self) -> Provider:
        return Provider.ANTHROPIC

    def transform(self, packet: Packet) -> AdapterRequest:
        system_prompt = "\n".join(NODE_DIRECTIVES) + self.embed_constraints(packet.constraints)
        return AdapterRequest(
            adapter_id=self.adapter_id,
            provider=self.provider,
            model=self._model,
            url=self._url,
            body={
                "model": self._model,
                "max_tokens": self._max_tokens,
                "system": system_prompt,
                "messages": [{"role": "user", "content": self.user_content(packet)}],
                "temperature": self._temperature,
                "stream": False,
            },
            headers={
                "x-api-key": self._api_key,
                "anthropic-version": API_VERSION,
            },
        )

    def recover(self, raw_response: Any) -> RecoveredResult:
        if isinstance(raw_response, dict) and isinstance(raw_response.get("content"), list):
            texts = [b.get("text") for b in raw_response["content"] if b.get("type") == "text"]
            if texts and texts[0]:
                return self.recover_text(texts[0])
        return self.recover_any(raw_response)

    async def stream(self, request: AdapterRequest) -> AsyncIterator[str]:
        async for event in self._stream_lines(request.with_body(stream=True)):
            text = (event.get("delta") or {}).get("text")
            if text:
                yield text
