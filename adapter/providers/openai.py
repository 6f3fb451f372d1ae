"""
OpenAI-compatible Chat Completions adapter.

Works against any endpoint that speaks the /chat/completions protocol
(base_url is configurable).
"""

from __future__ import annotations
from typing import Any, AsyncIterator, Optional

import httpx

from dispatch.contracts import Packet, Provider

from ..contracts import AdapterRequest, RecoveredResult
from .base import HttpProviderAdapter, NODE_DIRECTIVES

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o"


class OpenAIAdapter(HttpProviderAdapter):

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        default_model: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
        max_tokens: int = 4096,
        temperature: float = 0.7
    ):
        super().__init__(client=client, timeout=timeout)
        self._api_key = api_key
        self._base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self._model = default_model or DEFAULT_MODEL
        self._max_tokens = max_tokens
        self._temperature = temperature

    @property
    def adapter_id(self) -> str:
        return "OPENAI_ADAPTER"

    @property
    def provider(self) -> Provider:
        return Provider.OPENAI

    def transform(self, packet: Packet) -> AdapterRequest:
        system_prompt = self.add_system_prompt(packet.payload, NODE_DIRECTIVES)
        body = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": self.user_content(packet)},
            ],
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
        }
        if packet.requires_strict_json():
            body["response_format"] = {"type": "json_object"}

        return AdapterRequest(
            adapter_id=self.adapter_id,
            provider=self.provider,
            model=self._model,
            url=f"{self._base_url}/chat/completions",
            body=body,
            headers={"Authorization": f"Bearer {self._api_key}"},
        )

    def recover(self, raw_response: Any) -> RecoveredResult:
        if isinstance(raw_response, dict) and raw_response.get("choices"):
            message = raw_response["choices"][0].get("message") or {}
            content = message.get("content")
            if content:
                return self.recover_text(content)
        return self.recover_any(raw_response)

    async def stream(self, request: AdapterRequest) -> AsyncIterator[str]:
        async for event in self._stream_lines(request.with_body(stream=True)):
            choices = event.get("choices") or [{}]
            content = (choices[0].get("delta") or {}).get("content")
            if content:
                yield content
