"""
Adapter Registry

Registration map from provider identity to adapter instance.

DESIGN:
=======
- One adapter per provider; registering again replaces the previous one
- Iteration follows registration order (the default adapter is the first)
- Built explicitly and passed in; there is no module-level instance
"""

from __future__ import annotations
from typing import Dict, Iterator, List, Optional
import logging

import httpx

from dispatch.config import DispatchConfig
from dispatch.contracts import Provider

from .providers.anthropic import AnthropicAdapter
from .providers.arena import ArenaAdapter
from .providers.base import ProviderAdapter
from .providers.google import GoogleAdapter
from .providers.openai import OpenAIAdapter

logger = logging.getLogger(__name__)


class AdapterRegistry:

    def __init__(self):
        self._adapters: Dict[Provider, ProviderAdapter] = {}

    def register(self, adapter: ProviderAdapter) -> ProviderAdapter:
        replaced = adapter.provider in self._adapters
        self._adapters[adapter.provider] = adapter
        logger.info(
            "Adapter %s: %s (%s)",
            "replaced" if replaced else "registered", adapter.adapter_id, adapter.provider.value,
        )
        return adapter

    def unregister(self, provider: Provider) -> bool:
        return self._adapters.pop(provider, None) is not None

    def get(self, provider: Provider) -> Optional[ProviderAdapter]:
        return self._adapters.get(provider)

    def first(self) -> Optional[ProviderAdapter]:
        return next(iter(self._adapters.values()), None)

    def adapters(self) -> List[ProviderAdapter]:
        return list(self._adapters.values())

    def ids(self) -> List[str]:
        return [a.adapter_id for a in self._adapters.values()]

    def __iter__(self) -> Iterator[ProviderAdapter]:
        return iter(self.adapters())

    def __len__(self) -> int:
        return len(self._adapters)

    def __contains__(self, provider: object) -> bool:
        return provider in self._adapters


def build_adapters(
    config: DispatchConfig,
    client: Optional[httpx.AsyncClient] = None
) -> AdapterRegistry:
    """
    Register an adapter for every provider with real credentials,
    then the credential-free Arena cluster.
    """
    registry = AdapterRegistry()

    openai = config.credentials(Provider.OPENAI)
    if openai.configured:
        registry.register(OpenAIAdapter(
            api_key=openai.api_key,
            base_url=openai.base_url,
            default_model=openai.default_model,
            client=client,
        ))

    anthropic = config.credentials(Provider.ANTHROPIC)
    if anthropic.configured:
        registry.register(AnthropicAdapter(
            api_key=anthropic.api_key,
            base_url=anthropic.base_url,
            default_model=anthropic.default_model,
            client=client,
        ))

    google = config.credentials(Provider.GOOGLE)
    if google.configured:
        registry.register(GoogleAdapter(
            api_key=google.api_key,
            base_url=google.base_url,
            default_model=google.default_model,
            client=client,
        ))

    registry.register(ArenaAdapter())
    return registry
