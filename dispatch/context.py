"""
Dispatch Context

Explicitly constructed bundle of the pipeline's collaborators. There are
no module-level singletons: every process (or test) builds its own
context, so lifecycles stay visible.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union
import asyncio
import logging
import time

import httpx

from adapter.registry import AdapterRegistry, build_adapters
from ingestion.bridge import DiskMaterializer

from .compiler import PacketCompiler
from .config import DispatchConfig
from .contracts import DeploymentZone, ExecutionResult, Tier
from .events import EventBus
from .orchestrator import Orchestrator
from .registry import NodeRegistry

logger = logging.getLogger(__name__)


@dataclass
class DispatchContext:
    config: DispatchConfig
    event_bus: EventBus
    registry: NodeRegistry
    adapters: AdapterRegistry
    compiler: PacketCompiler
    orchestrator: Orchestrator
    materializer: DiskMaterializer

    async def dispatch(
        self,
        raw_intent: str,
        tier: Union[Tier, str],
        target_path: Optional[str] = None,
        zone: Optional[Union[DeploymentZone, str]] = None
    ) -> ExecutionResult:
        """Compile then route. Raises ValidationError for a bad intent, tier or zone."""
        packet = self.compiler.compile(raw_intent, tier, target_path=target_path, zone=zone)
        return await self.orchestrator.route(packet)


def build_context(
    config: Optional[DispatchConfig] = None,
    adapters: Optional[AdapterRegistry] = None,
    client: Optional[httpx.AsyncClient] = None,
    clock: Callable[[], float] = time.time,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    attach_materializer: bool = True
) -> DispatchContext:
    """
    Wire a complete pipeline from configuration.

    Seed nodes from config are registered; adapters come from
    build_adapters() unless a registry is supplied.
    """
    config = config or DispatchConfig()
    bus = EventBus()

    registry = NodeRegistry(clock=clock, event_bus=bus)
    for node_config in config.nodes:
        registry.register(node_config)

    if adapters is None:
        adapters = build_adapters(config, client=client)

    orchestrator = Orchestrator(
        registry, adapters, event_bus=bus, config=config.router, sleep=sleep,
    )
    materializer = DiskMaterializer(config.bridge, event_bus=bus, sleep=sleep, clock=clock)
    if attach_materializer:
        materializer.attach(bus)

    logger.info(
        "Dispatch context ready: %d node(s), adapters %s, root %s",
        len(registry), adapters.ids(), materializer.root,
    )
    return DispatchContext(
        config=config,
        event_bus=bus,
        registry=registry,
        adapters=adapters,
        compiler=PacketCompiler(),
        orchestrator=orchestrator,
        materializer=materializer,
    )
