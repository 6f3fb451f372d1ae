"""
Dispatch Orchestrator

Coordinates one packet through the pipeline:

    select adapter -> select node -> handshake (-> one alternative node)
    -> transform -> execute with retry -> recover -> audit
    -> materialization instruction

ERROR POLICY:
=============
Expected failures never raise out of route(). Each is captured as an
ExecutionResult with success=False and an ErrorKind:
- SELECTION      no adapter / no active node (terminal)
- AUTHORIZATION  handshake blocked on the node and its alternative
- EXECUTION      adapter call failed after retries, or cannot execute
- AUDIT          result failed structural or security screening (not retried)

CONCURRENCY:
============
Many route() calls may be in flight. Shared state is limited to the node
registry (read-mostly) and the in-flight counter, which is observational
only and does not bound concurrency.
"""

from __future__ import annotations
from dataclasses import asdict, replace
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TYPE_CHECKING
import asyncio
import logging
import random
import time

from .audit import ResultAuditor
from .config import RouterConfig
from .contracts import (
    ErrorKind,
    ExecutionResult,
    GenerationLimit,
    HandshakeResult,
    MaterializationInstruction,
    Node,
    Packet,
    Provider,
    Tier,
)
from .errors import ExecutionError, ValidationError
from .events import AlertLevel, EventBus, EventType
from .handshake import verify_alignment
from .registry import NodeRegistry
from .retry import RetryPolicy, execute_with_retry

if TYPE_CHECKING:
    from adapter.providers.base import ProviderAdapter
    from adapter.registry import AdapterRegistry

logger = logging.getLogger(__name__)

# Checked in order; the first rule whose adapter is registered wins
ADAPTER_KEYWORD_ROUTES: Tuple[Tuple[Provider, Tuple[str, ...]], ...] = (
    (Provider.ARENA, ("arena", "adversarial", "audit")),
    (Provider.OPENAI, ("openai", "gpt")),
    (Provider.ANTHROPIC, ("anthropic", "claude")),
    (Provider.GOOGLE, ("google", "gemini")),
)

PERMISSIVE_TIERS = (Tier.MID, Tier.HIGHEST)


class Orchestrator:
    """Routes compiled packets to adapters and nodes."""

    def __init__(
        self,
        registry: NodeRegistry,
        adapters: Optional['AdapterRegistry'] = None,
        event_bus: Optional[EventBus] = None,
        config: Optional[RouterConfig] = None,
        auditor: Optional[ResultAuditor] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        jitter: Callable[[float], float] = lambda upper: random.uniform(0, upper)
    ):
        if adapters is None:
            from adapter.registry import AdapterRegistry
            adapters = AdapterRegistry()
        self._registry = registry
        self._adapters = adapters
        self._event_bus = event_bus
        self._config = config or RouterConfig()
        self._auditor = auditor or ResultAuditor()
        self._sleep = sleep
        self._jitter = jitter
        self._in_flight = 0

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    @property
    def config(self) -> RouterConfig:
        return self._config

    @property
    def in_flight(self) -> int:
        return self._in_flight

    def register_adapter(self, adapter: 'ProviderAdapter') -> None:
        self._adapters.register(adapter)

    def update_config(self, **changes: Any) -> RouterConfig:
        try:
            self._config = replace(self._config, **changes)
        except TypeError as e:
            raise ValidationError(f"unknown router setting: {e}") from e
        logger.info("Router config updated: %s", changes)
        return self._config

    def stats(self) -> Dict[str, Any]:
        return {
            'adapters': self._adapters.ids(),
            'available_nodes': len(self._registry.available()),
            'in_flight': self._in_flight,
            'config': asdict(self._config),
        }

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    def select_adapter(self, packet: Packet) -> Optional['ProviderAdapter']:
        text = packet.payload.lower()
        for provider, keywords in ADAPTER_KEYWORD_ROUTES:
            if any(k in text for k in keywords):
                adapter = self._adapters.get(provider)
                if adapter is not None:
                    return adapter
        return self._adapters.first()

    def select_node(self, packet: Packet) -> Optional[Node]:
        available = self._registry.available()
        if packet.generation_limit is GenerationLimit.AUTO_EVOLVE:
            preferred = [n for n in available if n.tier in PERMISSIVE_TIERS]
            if preferred:
                available = preferred
        return _best_by_score(available)

    def select_alternative(self, exclude_node_id: str) -> Optional[Node]:
        return _best_by_score(
            [n for n in self._registry.available() if n.node_id != exclude_node_id]
        )

    # -------------------------------------------------------------------------
    # Routing
    # -------------------------------------------------------------------------

    async def route(self, packet: Packet) -> ExecutionResult:
        started = time.perf_counter()
        logger.info("Routing packet %s (fingerprint %s)", packet.short_id, packet.fingerprint)

        adapter = self.select_adapter(packet)
        if adapter is None:
            return self._fail(packet, "no adapter available", ErrorKind.SELECTION, started)

        node = self.select_node(packet)
        if node is None:
            return self._fail(
                packet, "no node available", ErrorKind.SELECTION, started,
                adapter_id=adapter.adapter_id,
            )

        handshake = self._handshake(packet, node)
        if not handshake.authorized and self._config.enable_auto_switch:
            alternative = self.select_alternative(node.node_id)
            if alternative is not None:
                logger.warning(
                    "Node %s not authorized for %s, switching to %s",
                    node.node_id, packet.short_id, alternative.node_id,
                )
                node = alternative
                handshake = self._handshake(packet, node)

        if not handshake.authorized:
            reasons = handshake.errors or handshake.warnings
            return self._fail(
                packet, f"handshake blocked: {'; '.join(reasons)}", ErrorKind.AUTHORIZATION,
                started, adapter_id=adapter.adapter_id, node_id=node.node_id,
                handshake=handshake,
            )

        self._in_flight += 1
        try:
            return await self._execute(packet, adapter, node, handshake, started)
        finally:
            self._in_flight -= 1

    async def _execute(
        self,
        packet: Packet,
        adapter: 'ProviderAdapter',
        node: Node,
        handshake: HandshakeResult,
        started: float
    ) -> ExecutionResult:
        ids = dict(adapter_id=adapter.adapter_id, node_id=node.node_id, handshake=handshake)
        self._publish(EventType.EXECUTION_STARTED, {
            'packet_id': packet.packet_id,
            'adapter_id': adapter.adapter_id,
            'node_id': node.node_id,
            'node_tier': node.tier.value,
        })

        attempts = 0
        try:
            request = adapter.transform(packet)
            self._publish(EventType.PROMPT_TRANSFORMED, {
                'packet_id': packet.packet_id, 'adapter_id': adapter.adapter_id,
            })

            execute = getattr(adapter, "execute", None)
            if execute is None:
                raise ExecutionError(f"adapter {adapter.adapter_id} cannot execute requests")

            policy = RetryPolicy(
                max_retries=self._config.max_retries,
                timeout_seconds=self._config.timeout_seconds,
                base_backoff_seconds=self._config.base_backoff_seconds,
                max_jitter_seconds=self._config.max_jitter_seconds,
            )
            raw, attempts = await execute_with_retry(
                lambda: execute(request), policy,
                sleep=self._sleep, jitter=self._jitter,
                label=f"{adapter.adapter_id}/{packet.short_id}",
            )
            recovered = adapter.recover(raw)
        except ExecutionError as e:
            logger.error("Execution failed for %s: %s", packet.short_id, e)
            return self._fail(
                packet, str(e), ErrorKind.EXECUTION, started,
                attempts=e.attempts or attempts, **ids
            )
        except Exception as e:
            logger.exception("Adapter %s failed for %s", adapter.adapter_id, packet.short_id)
            return self._fail(
                packet, f"{type(e).__name__}: {e}", ErrorKind.EXECUTION, started,
                attempts=attempts, **ids
            )

        self._publish(EventType.RESPONSE_RECOVERED, {
            'packet_id': packet.packet_id, 'strategy': recovered.strategy,
        })

        audit = None
        if self._config.enable_audit:
            audit = self._auditor.audit(packet, recovered.payload)
            self._publish(EventType.AUDIT_COMPLETED, {
                'packet_id': packet.packet_id, 'audit': audit.to_dict(),
            })
            if not audit.passed and audit.security is not None and not audit.security.passed:
                self._alert(
                    AlertLevel.ERROR,
                    f"packet {packet.short_id} produced unsafe content "
                    f"(threat {audit.security.threat_level.value})",
                )

        instruction = None
        content = recovered.content
        if packet.target_path and audit is not None and audit.passed and content:
            instruction = MaterializationInstruction(
                packet_id=packet.packet_id,
                path=packet.target_path,
                content=content,
                source_node_id=node.node_id,
                audit_score=audit.score,
                zone=packet.zone,
            )
            self._publish(EventType.MATERIALIZATION_REQUESTED, instruction)
            logger.info("Materialization requested: %s -> %s", packet.short_id, instruction.path)

        success = audit.passed if audit is not None else True
        elapsed = _elapsed_ms(started)
        result = ExecutionResult(
            success=success,
            packet_id=packet.packet_id,
            elapsed_ms=elapsed,
            response=recovered.payload,
            error=None if success else f"audit failed: {'; '.join(audit.deviations)}",
            error_kind=None if success else ErrorKind.AUDIT,
            audit=audit,
            attempts=attempts,
            instruction=instruction,
            **ids
        )
        logger.info(
            "Packet %s executed by %s on %s in %.0fms (%s)",
            packet.short_id, adapter.adapter_id, node.node_id, elapsed,
            "success" if success else "audit failed",
        )
        self._publish(EventType.EXECUTION_COMPLETED, result.to_dict())
        return result

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _handshake(self, packet: Packet, node: Node) -> HandshakeResult:
        handshake = verify_alignment(packet, node)
        self._publish(EventType.HANDSHAKE_COMPLETED, {
            'packet_id': packet.packet_id,
            'node_id': node.node_id,
            'result': handshake.to_dict(),
        })
        return handshake

    def _fail(
        self,
        packet: Packet,
        error: str,
        kind: ErrorKind,
        started: float,
        **extra: Any
    ) -> ExecutionResult:
        if kind is not ErrorKind.EXECUTION:
            logger.warning("Packet %s failed (%s): %s", packet.short_id, kind.value, error)
        result = ExecutionResult.failure(packet.packet_id, error, kind, _elapsed_ms(started), **extra)
        self._publish(EventType.EXECUTION_COMPLETED, result.to_dict())
        return result

    def _publish(self, event_type: EventType, payload: Any):
        if self._event_bus is not None:
            self._event_bus.publish(event_type, payload)

    def _alert(self, level: AlertLevel, message: str):
        if self._event_bus is not None:
            self._event_bus.alert(level, message)


def _best_by_score(nodes: List[Node]) -> Optional[Node]:
    """Highest sovereignty score; ties go to the earliest node."""
    if not nodes:
        return None
    return max(nodes, key=lambda n: n.sovereignty_score)


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000
