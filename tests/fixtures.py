"""
Dispatch Test Fixtures

Explicit nodes, packets and contexts for deterministic testing.

RULES:
======
1. No real network or wall-clock sleeps: adapters are mocks, sleep is a no-op
2. Every context writes under a pytest tmp_path
3. Router backoff is zeroed so retries run instantly
"""

from __future__ import annotations
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from adapter.providers.base import ProviderAdapter
from adapter.registry import AdapterRegistry
from dispatch.compiler import PacketCompiler
from dispatch.config import BridgeConfig, DispatchConfig, LogConfig, RouterConfig
from dispatch.context import DispatchContext, build_context
from dispatch.contracts import (
    BackendKind,
    Capability,
    NodeConfig,
    Packet,
    Provider,
    Tier,
)


# =============================================================================
# TIME
# =============================================================================

EPOCH_SECONDS = 1_767_225_600.0  # 2026-01-01T00:00:00Z


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = EPOCH_SECONDS):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float):
        self.delays.append(seconds)


async def no_sleep(_seconds: float):
    return None


# =============================================================================
# NODES
# =============================================================================

FULL_CAPABILITIES: Tuple[str, ...] = (
    Capability.TEXT_GENERATION,
    Capability.STRUCTURED_OUTPUT,
    Capability.TOOL_USE,
    Capability.VISION,
)

TEXT_ONLY: Tuple[str, ...] = (Capability.TEXT_GENERATION,)


def make_node_config(
    node_id: str = "node-mid",
    provider: Provider = Provider.CUSTOM,
    tier: Tier = Tier.MID,
    kind: BackendKind = BackendKind.API,
    capabilities: Iterable[str] = FULL_CAPABILITIES
) -> NodeConfig:
    return NodeConfig(
        node_id=node_id,
        provider=provider,
        tier=tier,
        kind=kind,
        capabilities=tuple(capabilities),
    )


# =============================================================================
# PACKETS
# =============================================================================

def make_packet(
    intent: str = "Hello World",
    tier: Tier = Tier.MID,
    target_path: Optional[str] = None,
    zone: Optional[str] = None
) -> Packet:
    return PacketCompiler().compile(intent, tier, target_path=target_path, zone=zone)


# =============================================================================
# CONTEXTS
# =============================================================================

FAST_ROUTER = RouterConfig(
    max_retries=2,
    timeout_seconds=5.0,
    base_backoff_seconds=0.0,
    max_jitter_seconds=0.0,
)


def make_config(
    root_dir: Path,
    nodes: Optional[Sequence[NodeConfig]] = None,
    router: RouterConfig = FAST_ROUTER
) -> DispatchConfig:
    return DispatchConfig(
        router=router,
        bridge=BridgeConfig(root_dir=str(root_dir), publish_step_delays=(0.0, 0.0)),
        log=LogConfig(file_path=None),
        nodes=tuple(nodes) if nodes is not None else (make_node_config(),),
    )


def make_adapters(*adapters: ProviderAdapter) -> AdapterRegistry:
    registry = AdapterRegistry()
    for adapter in adapters:
        registry.register(adapter)
    return registry


def make_context(
    root_dir: Path,
    *adapters: ProviderAdapter,
    nodes: Optional[Sequence[NodeConfig]] = None,
    router: RouterConfig = FAST_ROUTER,
    clock: Optional[FakeClock] = None
) -> DispatchContext:
    return build_context(
        make_config(root_dir, nodes=nodes, router=router),
        adapters=make_adapters(*adapters),
        clock=clock or FakeClock(),
        sleep=no_sleep,
    )
