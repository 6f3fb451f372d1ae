"""
Provider Adapters Package
=========================

Available adapters:
- OpenAIAdapter: OpenAI-compatible chat completions (httpx)
- AnthropicAdapter: Anthropic messages API (httpx)
- GoogleAdapter: Gemini generateContent (httpx)
- ArenaAdapter: Simulated multi-model consensus cluster (no credentials)
- MockAdapter: Deterministic scripted adapter for testing
"""

from .base import ProviderAdapter, HttpProviderAdapter
from .openai import OpenAIAdapter
from .anthropic import AnthropicAdapter
from .google import GoogleAdapter
from .arena import ArenaAdapter, ArenaModel, ArenaVote
from .mock import MockAdapter

__all__ = [
    'ProviderAdapter',
    'HttpProviderAdapter',
    'OpenAIAdapter',
    'AnthropicAdapter',
    'GoogleAdapter',
    'ArenaAdapter',
    'ArenaModel',
    'ArenaVote',
    'MockAdapter',
]
