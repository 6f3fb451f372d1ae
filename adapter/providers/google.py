"""
Google Gemini generateContent adapter.

An error object embedded in an otherwise successful HTTP response is
surfaced as ExecutionError during recovery.
"""

from __future__ import annotations
from typing import Any, Optional

import httpx

from dispatch.contracts import Packet, Provider
from dispatch.errors import ExecutionError

from ..contracts import AdapterRequest, RecoveredResult
from .base import HttpProviderAdapter, NODE_DIRECTIVES

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.0-flash"


class GoogleAdapter(HttpProviderAdapter):

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
        self._base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self._max_tokens = max_tokens
        self._temperature = temperature

    @property
    def adapter_id(self) -> str:
        return "GOOGLE_ADAPTER"

    @property
    def provider(self) -> Provider:
        return Provider.GOOGLE

    def transform(self, packet: Packet) -> AdapterRequest:
        system_instruction = "\n".join(NODE_DIRECTIVES) + self.embed_constraints(packet.constraints)
        generation_config = {
            "temperature": self._temperature,
            "maxOutputTokens": self._max_tokens,
        }
        if packet.requires_strict_json():
            generation_config["responseMimeType"] = "application/json"

        return AdapterRequest(
            adapter_id=self.adapter_id,
            provider=self.provider,
            model=self._model,
            url=f"{self._base_url}/models/{self._model}:generateContent",
            body={
                "contents": [{"role": "user", "parts": [{"text": self.user_content(packet)}]}],
                "systemInstruction": {"parts": [{"text": system_instruction}]},
                "generationConfig": generation_config,
            },
            headers={"x-goog-api-key": self._api_key},
        )

    def recover(self, raw_response: Any) -> RecoveredResult:
        if isinstance(raw_response, dict):
            if raw_response.get("error"):
                error = raw_response["error"]
                message = error.get("message") if isinstance(error, dict) else str(error)
                raise ExecutionError(f"GOOGLE API error: {message}")
            candidates = raw_response.get("candidates") or []
            if candidates:
                parts = (candidates[0].get("content") or {}).get("parts") or []
                text = parts[0].get("text") if parts else None
                if text:
                    return self.recover_text(text)
        return self.recover_any(raw_response)
