"""
Provider Adapter Package

ARCHITECTURAL BOUNDARY:
=======================
This package is the ONLY place that knows backend wire formats.
The orchestrator sees adapters through the ProviderAdapter contract:

    transform(packet) -> AdapterRequest
    recover(raw)      -> RecoveredResult
    execute(request)  (optional)
    stream(request)   (optional)

DIRECTION OF DEPENDENCY:
========================
adapter → dispatch.contracts / dispatch.errors / dispatch.config

NEVER:
- dispatch core importing concrete adapters (only dispatch.context wires them)
"""

from .contracts import AdapterRequest, RecoveredResult
from .recovery import ParseOutcome, recover_structure
from .providers import (
    ProviderAdapter,
    HttpProviderAdapter,
    OpenAIAdapter,
    AnthropicAdapter,
    GoogleAdapter,
    ArenaAdapter,
    MockAdapter,
)
from .registry import AdapterRegistry, build_adapters

__all__ = [
    # Contracts
    'AdapterRequest', 'RecoveredResult',
    # Recovery
    'ParseOutcome', 'recover_structure',
    # Providers
    'ProviderAdapter', 'HttpProviderAdapter',
    'OpenAIAdapter', 'AnthropicAdapter', 'GoogleAdapter', 'ArenaAdapter', 'MockAdapter',
    # Registry
    'AdapterRegistry', 'build_adapters',
]
