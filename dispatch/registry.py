"""
Node Registry

In-memory directory of computation backends.

DESIGN:
=======
- register() is idempotent per node_id and overwrites the previous entry
- Lookups for unknown ids return None / False, never raise
- The sovereignty score is computed once at registration and never
  recomputed afterwards (registration-time snapshot)
- Readers receive list copies, so a concurrent status change or removal
  cannot break iteration
"""

from __future__ import annotations
from typing import Callable, Dict, Iterable, List, Optional
import logging
import threading
import time

from .contracts import (
    BackendKind,
    Capability,
    Node,
    NodeConfig,
    NodeStatus,
    Provider,
    RegistryStats,
    Tier,
)
from .events import EventBus, EventType

logger = logging.getLogger(__name__)

BASE_SCORE = 50
TIER_BONUS = {Tier.LOWEST: 0, Tier.MID: 20, Tier.HIGHEST: 35}
CAPABILITY_BONUS = 5
SCORED_CAPABILITIES = (
    Capability.STRUCTURED_OUTPUT,
    Capability.TOOL_USE,
    Capability.VISION,
)
BROWSER_AUTOMATION_BONUS = 10
MAX_SCORE = 100

# Minimum sovereignty score per tier for sovereign_nodes()
SOVEREIGN_THRESHOLDS = {Tier.LOWEST: 50, Tier.MID: 75, Tier.HIGHEST: 90}

DEFAULT_INACTIVITY_TIMEOUT_SECONDS = 300.0


def compute_sovereignty_score(
    tier: Tier,
    capabilities: Iterable[str],
    kind: BackendKind
) -> int:
    """Eligibility score in [0, 100] derived from declared attributes."""
    declared = set(capabilities)
    score = BASE_SCORE + TIER_BONUS[tier]
    score += sum(CAPABILITY_BONUS for cap in SCORED_CAPABILITIES if cap in declared)
    if kind is BackendKind.BROWSER_AUTOMATION:
        score += BROWSER_AUTOMATION_BONUS
    return max(0, min(score, MAX_SCORE))


class NodeRegistry:
    """Registry of computation nodes keyed by node_id."""

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        event_bus: Optional[EventBus] = None
    ):
        self._nodes: Dict[str, Node] = {}
        self._lock = threading.RLock()
        self._clock = clock
        self._event_bus = event_bus

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def register(self, config: NodeConfig) -> Node:
        capabilities = config.capabilities or (Capability.TEXT_GENERATION,)
        node = Node(
            node_id=config.node_id,
            provider=config.provider,
            tier=config.tier,
            kind=config.kind,
            capabilities=frozenset(capabilities),
            sovereignty_score=compute_sovereignty_score(
                config.tier, capabilities, config.kind
            ),
            status=NodeStatus.ACTIVE,
            last_seen=self._clock(),
            endpoint=config.endpoint,
            max_tokens=config.max_tokens,
        )
        with self._lock:
            self._nodes[node.node_id] = node

        logger.info(
            "Node registered: %s (%s, tier %s, score %d)",
            node.node_id, node.provider.value, node.tier.value, node.sovereignty_score,
        )
        self._publish_registered(node)
        return node

    def unregister(self, node_id: str) -> bool:
        with self._lock:
            removed = self._nodes.pop(node_id, None)
        if removed is not None:
            logger.info("Node unregistered: %s", node_id)
        return removed is not None

    def heartbeat(self, node_id: str) -> bool:
        """Bump last_seen and force the node active."""
        with self._lock:
            node = self._nodes.get(node_id)
            if node is None:
                return False
            node.last_seen = self._clock()
            previous = node.status
            node.status = NodeStatus.ACTIVE
        if previous is not NodeStatus.ACTIVE:
            self._publish_status(node, previous)
        return True

    def set_status(self, node_id: str, status: NodeStatus) -> bool:
        with self._lock:
            node = self._nodes.get(node_id)
            if node is None:
                return False
            previous = node.status
            node.status = status
        if previous is not status:
            logger.info("Node %s status %s -> %s", node_id, previous.value, status.value)
            self._publish_status(node, previous)
        return True

    def sweep_inactive(
        self,
        timeout_seconds: float = DEFAULT_INACTIVITY_TIMEOUT_SECONDS
    ) -> int:
        """Flip active nodes not seen within timeout_seconds to offline."""
        now = self._clock()
        swept: List[Node] = []
        with self._lock:
            for node in self._nodes.values():
                if node.is_active and (now - node.last_seen) > timeout_seconds:
                    node.status = NodeStatus.OFFLINE
                    swept.append(node)

        for node in swept:
            self._publish_status(node, NodeStatus.ACTIVE)
        if swept:
            logger.info("Inactivity sweep took %d node(s) offline", len(swept))
        return len(swept)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def nodes(self) -> List[Node]:
        """All nodes regardless of status, in registration order."""
        with self._lock:
            return list(self._nodes.values())

    def available(self) -> List[Node]:
        return [n for n in self.nodes() if n.is_active]

    def by_provider(self, provider: Provider) -> List[Node]:
        return [n for n in self.available() if n.provider is provider]

    def by_tier(self, tier: Tier) -> List[Node]:
        return [n for n in self.available() if n.tier is tier]

    def sovereign_nodes(self, tier: Tier) -> List[Node]:
        """Active nodes of tier whose score meets that tier's threshold."""
        threshold = SOVEREIGN_THRESHOLDS[tier]
        return [n for n in self.by_tier(tier) if n.sovereignty_score >= threshold]

    def stats(self) -> RegistryStats:
        all_nodes = self.nodes()
        active = [n for n in all_nodes if n.is_active]

        by_provider: Dict[str, int] = {}
        by_tier: Dict[str, int] = {}
        for node in active:
            by_provider[node.provider.value] = by_provider.get(node.provider.value, 0) + 1
            by_tier[node.tier.value] = by_tier.get(node.tier.value, 0) + 1

        average = 0
        if active:
            average = round(sum(n.sovereignty_score for n in active) / len(active))

        return RegistryStats(
            total_nodes=len(all_nodes),
            active_nodes=len(active),
            by_provider=by_provider,
            by_tier=by_tier,
            average_score=average,
        )

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def _publish_registered(self, node: Node):
        if self._event_bus is not None:
            self._event_bus.publish(EventType.NODE_REGISTERED, node.to_dict())

    def _publish_status(self, node: Node, previous: NodeStatus):
        if self._event_bus is not None:
            self._event_bus.publish(EventType.NODE_STATUS_CHANGED, {
                'node_id': node.node_id,
                'previous': previous.value,
                'status': node.status.value,
            })
