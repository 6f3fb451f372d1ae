"""
Mock Provider Adapter
=====================

Deterministic adapter for testing and local runs.

GUARANTEES:
- Same request body -> identical default response
- Explicit failure modes can be triggered (first N calls fail, latency)
- No external dependencies
"""

from __future__ import annotations
from typing import Any, List, Optional, Sequence
import asyncio
import hashlib
import json

from dispatch.contracts import Packet, Provider

from ..contracts import AdapterRequest, RecoveredResult
from .base import ProviderAdapter


class MockAdapter(ProviderAdapter):
    """
    Scripted adapter.

    Response for call n is responses[n] (the last one repeats); without a
    script the response is derived from a hash of the request body.
    """

    def __init__(
        self,
        responses: Optional[Sequence[Any]] = None,
        provider: Provider = Provider.CUSTOM,
        adapter_id: str = "MOCK_ADAPTER",
        failures: int = 0,
        latency_seconds: float = 0.0
    ):
        """
        Args:
            responses: Raw responses returned in order
            failures: Number of leading calls that raise ConnectionError
            latency_seconds: Awaited before every call
        """
        self._responses = list(responses) if responses is not None else None
        self._provider = provider
        self._adapter_id = adapter_id
        self._failures = failures
        self._latency = latency_seconds
        self.calls: List[AdapterRequest] = []

    @property
    def adapter_id(self) -> str:
        return self._adapter_id

    @property
    def provider(self) -> Provider:
        return self._provider

    def transform(self, packet: Packet) -> AdapterRequest:
        return AdapterRequest(
            adapter_id=self.adapter_id,
            provider=self.provider,
            model="mock-deterministic-v1",
            url="mock://local",
            body={
                "fingerprint": packet.fingerprint,
                "prompt": self.user_content(packet),
            },
        )

    async def execute(self, request: AdapterRequest) -> Any:
        index = len(self.calls)
        self.calls.append(request)
        if self._latency:
            await asyncio.sleep(self._latency)
        if index < self._failures:
            raise ConnectionError(f"mock failure {index + 1}/{self._failures}")
        if self._responses:
            return self._responses[min(index, len(self._responses) - 1)]
        return self._default_response(request)

    def recover(self, raw_response: Any) -> RecoveredResult:
        return self.recover_any(raw_response)

    @staticmethod
    def _default_response(request: AdapterRequest) -> str:
        digest = hashlib.sha256(request.prompt_text.encode()).hexdigest()[:16]
        return json.dumps({
            "content": f"export const result = '{digest}';\n",
            "deterministic_hash": digest,
        }, sort_keys=True)
