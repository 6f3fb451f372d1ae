"""
Eligibility Handshake

Pre-flight compatibility check between a packet and a candidate node.

GUARANTEES:
===========
1. Pure with respect to its inputs: node state is read, never mutated
2. alignment_score is clamped to [0, 100]
3. authorized implies success (authorized needs 70 and no hard error,
   success needs 50 and no hard error)
4. A node whose status is not active never produces success

Deductions are additive and each rule is evaluated independently.
"""

from __future__ import annotations
from typing import Dict, FrozenSet, List, Tuple
import logging

from .contracts import (
    CRITICAL_CAPABILITIES,
    Capability,
    GenerationLimit,
    HandshakeResult,
    Node,
    NodeStatus,
    OutputConstraint,
    Packet,
    RecommendedAction,
    Tier,
)

logger = logging.getLogger(__name__)

CRITICAL_CAPABILITY_PENALTY = 40
OPTIONAL_CAPABILITY_PENALTY = 10
STRICT_ON_LOWEST_PENALTY = 15
FORBIDDEN_LIMIT_PENALTY = 50
PERMISSIVE_ON_LOWEST_PENALTY = 10
INACTIVE_NODE_PENALTY = 30
LOW_SOVEREIGNTY_PENALTY = 20

LOW_SOVEREIGNTY_THRESHOLD = 50
SUCCESS_THRESHOLD = 50
AUTHORIZATION_THRESHOLD = 70

FORBIDDEN_GENERATION_LIMITS: Dict[Tier, FrozenSet[GenerationLimit]] = {
    Tier.LOWEST: frozenset({GenerationLimit.AUTO_EVOLVE}),
    Tier.MID: frozenset(),
    Tier.HIGHEST: frozenset(),
}

_STRICT_CONSTRAINTS = (OutputConstraint.STRICT_JSON, OutputConstraint.ZERO_PLACEHOLDER)


def required_capabilities(packet: Packet) -> List[str]:
    """Capabilities the packet needs, inferred from constraints and payload keywords."""
    text = packet.payload.lower()
    required = []
    if packet.requires_strict_json() or "json" in text:
        required.append(Capability.STRUCTURED_OUTPUT)
    if "tool" in text or "function" in text:
        required.append(Capability.TOOL_USE)
    if "image" in text or "vision" in text:
        required.append(Capability.VISION)
    return required


def verify_alignment(packet: Packet, node: Node) -> HandshakeResult:
    warnings: List[str] = []
    errors: List[str] = []
    score = 100

    # Capabilities
    missing = [c for c in required_capabilities(packet) if not node.has_capability(c)]
    critical = [c for c in missing if c in CRITICAL_CAPABILITIES]
    optional = [c for c in missing if c not in CRITICAL_CAPABILITIES]
    if critical:
        errors.append(f"missing critical capability: {', '.join(critical)}")
        score -= CRITICAL_CAPABILITY_PENALTY
    elif optional:
        warnings.append(f"missing optional capability: {', '.join(optional)}")
        score -= OPTIONAL_CAPABILITY_PENALTY

    # Constraints
    if node.tier is Tier.LOWEST and any(c in packet.constraints for c in _STRICT_CONSTRAINTS):
        warnings.append(f"strict constraints on tier {node.tier.value} may degrade output")
        score -= STRICT_ON_LOWEST_PENALTY

    # Generation limit
    if packet.generation_limit in FORBIDDEN_GENERATION_LIMITS[node.tier]:
        errors.append(
            f"generation limit {packet.generation_limit.value} not allowed on tier {node.tier.value}"
        )
        score -= FORBIDDEN_LIMIT_PENALTY
    if node.tier is Tier.LOWEST and packet.generation_limit is GenerationLimit.AUTO_EVOLVE:
        warnings.append(f"tier {node.tier.value} asked to honor {GenerationLimit.AUTO_EVOLVE.value}")
        score -= PERMISSIVE_ON_LOWEST_PENALTY

    if node.status is not NodeStatus.ACTIVE:
        errors.append(f"node status is {node.status.value}")
        score -= INACTIVE_NODE_PENALTY

    if node.sovereignty_score < LOW_SOVEREIGNTY_THRESHOLD:
        warnings.append(f"node sovereignty score too low: {node.sovereignty_score}")
        score -= LOW_SOVEREIGNTY_PENALTY

    score = max(0, min(100, score))
    success = not errors and score >= SUCCESS_THRESHOLD
    # A hard error blocks even when the score alone would authorize
    authorized = success and score >= AUTHORIZATION_THRESHOLD

    if not authorized:
        action = RecommendedAction.BLOCK
    elif warnings:
        action = RecommendedAction.WARN
    else:
        action = RecommendedAction.PROCEED

    result = HandshakeResult(
        packet_id=packet.packet_id,
        node_id=node.node_id,
        alignment_score=score,
        warnings=tuple(warnings),
        errors=tuple(errors),
        authorized=authorized,
        success=success,
        recommended_action=action,
    )
    logger.info(
        "Handshake %s -> %s: score %d, action %s",
        packet.short_id, node.node_id, score, action.value,
    )
    return result


def verify_batch(packet: Packet, nodes: List[Node]) -> List[Tuple[Node, HandshakeResult]]:
    """
    Run verify_alignment against every candidate.

    Returns (node, result) pairs ranked by alignment score, highest first.
    Ties keep candidate order.
    """
    results = [(node, verify_alignment(packet, node)) for node in nodes]
    results.sort(key=lambda pair: pair[1].alignment_score, reverse=True)
    if results:
        logger.info("Batch handshake best match: %s", results[0][0].node_id)
    return results
