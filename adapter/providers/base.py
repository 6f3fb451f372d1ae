"""
Provider Adapter Abstraction Layer
==================================

Uniform contract for translating packets into backend requests and
backend responses into normalized results.

CONTRACT:
- transform(packet) -> AdapterRequest          (required, pure)
- recover(raw) -> RecoveredResult               (required, pure)
- async execute(request) -> raw response        (optional)
- async stream(request) -> AsyncIterator[str]   (optional)

Adapters are selected through a registration map keyed by provider
identity (see adapter.registry), never by inspecting class hierarchy.
Adapters that cannot reach a backend simply do not define execute().
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Optional
import json
import logging

import httpx

from dispatch.contracts import Packet, Provider
from dispatch.errors import ExecutionError

from ..contracts import AdapterRequest, RecoveredResult
from ..recovery import recover_structure

logger = logging.getLogger(__name__)

NODE_DIRECTIVES = (
    "You are a stateless computing node.",
    "Your output must be precise and follow the output constraints.",
    "Never include placeholders, unfinished markers, or partial code.",
    "Return the requested structure only.",
)


class ProviderAdapter(ABC):
    """
    Abstract provider adapter.

    GUARANTEES:
    - transform/recover never perform I/O
    - recover never raises for unparseable text; it falls back to raw text
    """

    @property
    @abstractmethod
    def adapter_id(self) -> str:
        """Unique adapter identifier."""

    @property
    @abstractmethod
    def provider(self) -> Provider:
        """Provider identity used as the registration key."""

    @abstractmethod
    def transform(self, packet: Packet) -> AdapterRequest:
        pass

    @abstractmethod
    def recover(self, raw_response: Any) -> RecoveredResult:
        pass

    # -------------------------------------------------------------------------
    # Prompt helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def add_system_prompt(base_prompt: str, instructions: Iterable[str]) -> str:
        return "# SYSTEM DIRECTIVES\n" + "\n".join(instructions) + "\n\n# PRIMARY TASK\n" + base_prompt

    @staticmethod
    def embed_constraints(constraints: Iterable[str]) -> str:
        return "\n\n# OUTPUT CONSTRAINTS (MANDATORY)\n" + "\n".join(f"- {c}" for c in constraints)

    @staticmethod
    def wrap_protocol(payload: str) -> str:
        return f"<<DISPATCH_ENVELOPE_START>>\n{payload}\n<<DISPATCH_ENVELOPE_END>>"

    @classmethod
    def user_content(cls, packet: Packet) -> str:
        return f"[INTENT_FINGERPRINT: {packet.fingerprint}]\n\n{packet.payload}{cls.embed_constraints(packet.constraints)}"

    # -------------------------------------------------------------------------
    # Recovery helpers
    # -------------------------------------------------------------------------

    def recover_text(self, text: str) -> RecoveredResult:
        outcome = recover_structure(text)
        if outcome.ok:
            logger.debug("[%s] recovered structure via %s", self.adapter_id, outcome.strategy)
            return RecoveredResult(payload=outcome.value, strategy=outcome.strategy, raw_text=text)
        logger.debug("[%s] no structure recovered, keeping raw text", self.adapter_id)
        return RecoveredResult(payload=text, strategy="text", raw_text=text)

    def recover_any(self, raw_response: Any) -> RecoveredResult:
        """Fallback for responses that match no provider envelope."""
        if isinstance(raw_response, str):
            return self.recover_text(raw_response)
        return RecoveredResult(payload=raw_response, strategy="native")


class HttpProviderAdapter(ProviderAdapter):
    """
    Base for adapters that reach a backend over HTTP with httpx.

    A shared AsyncClient may be injected (tests pass one built on
    httpx.MockTransport); otherwise a client is opened per call.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0
    ):
        self._client = client
        self._timeout = timeout

    @asynccontextmanager
    async def _session(self):
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            yield client

    async def execute(self, request: AdapterRequest) -> Any:
        async with self._session() as client:
            response = await client.post(request.url, json=request.body, headers=request.headers)
        if response.status_code >= 400:
            raise ExecutionError(
                f"{self.provider.value} API error: {response.status_code} - {response.text}"
            )
        return response.json()

    async def _stream_lines(self, request: AdapterRequest) -> AsyncIterator[dict]:
        """Yield decoded JSON objects from server-sent `data:` lines."""
        async with self._session() as client:
            async with client.stream(
                "POST", request.url, json=request.body, headers=request.headers
            ) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise ExecutionError(
                        f"{self.provider.value} API error: {response.status_code} - {response.text}"
                    )
                async for line in response.aiter_lines():
                    if not line.startswith("data: "):
                        continue
                    data = line[len("data: "):].strip()
                    if data == "[DONE]":
                        return
                    try:
                        yield json.loads(data)
                    except ValueError:
                        logger.debug("[%s] skipping undecodable stream line", self.adapter_id)
