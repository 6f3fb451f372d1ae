"""
Dispatch Contracts

Data structures shared by every stage of the dispatch pipeline.

BOUNDARY ENFORCEMENT:
=====================
- Packets, handshake results and audit results are FROZEN
- Nodes are the only mutable records (status + last-seen)
- A node's sovereignty score is a registration-time snapshot
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple

from .errors import AuditError, AuthorizationError, ExecutionError, SelectionError


# =============================================================================
# ENUMS
# =============================================================================

class Tier(Enum):
    """Ordered backend capability class."""
    LOWEST = "v1.5"
    MID = "v2.0"
    HIGHEST = "vNext"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]

    @classmethod
    def parse(cls, value: Any) -> 'Tier':
        """Accept a Tier, its wire value ("v2.0") or its name ("mid")."""
        if isinstance(value, Tier):
            return value
        text = str(value).strip()
        for tier in cls:
            if text == tier.value or text.upper() == tier.name:
                return tier
        raise ValueError(f"Unknown tier: {value!r}")


_TIER_RANK = {Tier.LOWEST: 0, Tier.MID: 1, Tier.HIGHEST: 2}


class Provider(Enum):
    """Backend provider identity."""
    OPENAI = "OPENAI"
    ANTHROPIC = "ANTHROPIC"
    GOOGLE = "GOOGLE"
    ARENA = "ARENA"
    CUSTOM = "CUSTOM"


class BackendKind(Enum):
    """How a node is reached."""
    API = "API"
    BROWSER_AUTOMATION = "WEB_GHOST"


class NodeStatus(Enum):
    ACTIVE = "active"
    DORMANT = "dormant"
    OFFLINE = "offline"


class GenerationLimit(Enum):
    """Generation-limit tag carried by every packet."""
    RESTRICTED_CONTEXT = "STRICT_CONTEXT"
    AUTO_EVOLVE = "AUTO_EVOLVE"


class DeploymentZone(Enum):
    STAGING = "STAGING"
    PRODUCTION = "PRODUCTION"

    @classmethod
    def parse(cls, value: Any) -> 'DeploymentZone':
        if isinstance(value, DeploymentZone):
            return value
        return cls(str(value).strip().upper())


class Capability:
    """Capability names a node may declare."""
    TEXT_GENERATION = "text_generation"
    STRUCTURED_OUTPUT = "json_mode"
    TOOL_USE = "function_calling"
    VISION = "vision"


# Missing any of these is a hard handshake error
CRITICAL_CAPABILITIES: FrozenSet[str] = frozenset({
    Capability.STRUCTURED_OUTPUT,
    Capability.TOOL_USE,
})


class OutputConstraint:
    """Named output constraints applied to every packet."""
    BOUNDED_LATENCY = "BOUNDED_LATENCY_HOOK"
    ZERO_PLACEHOLDER = "ZERO_PLACEHOLDER_POLICY"
    STRICT_JSON = "STRICT_JSON_OUTPUT"


DEFAULT_CONSTRAINTS: Tuple[str, ...] = (
    OutputConstraint.BOUNDED_LATENCY,
    OutputConstraint.ZERO_PLACEHOLDER,
    OutputConstraint.STRICT_JSON,
)


class RecommendedAction(Enum):
    PROCEED = "proceed"
    WARN = "warn"
    BLOCK = "block"


class ThreatLevel(Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorKind(Enum):
    """Failure class recorded on an ExecutionResult."""
    SELECTION = "selection"
    AUTHORIZATION = "authorization"
    EXECUTION = "execution"
    AUDIT = "audit"


# =============================================================================
# PACKET
# =============================================================================

@dataclass(frozen=True)
class Packet:
    """
    Compiled, immutable work item.

    INVARIANTS:
    - packet_id is unique per compilation, even for identical intents
    - fingerprint depends on the raw intent text only
    """
    packet_id: str
    created_at: datetime
    fingerprint: str
    payload: str
    constraints: Tuple[str, ...]
    generation_limit: GenerationLimit
    target_path: Optional[str] = None
    zone: DeploymentZone = DeploymentZone.STAGING

    @property
    def short_id(self) -> str:
        return self.packet_id[:8]

    def requires_strict_json(self) -> bool:
        return OutputConstraint.STRICT_JSON in self.constraints


# =============================================================================
# NODES
# =============================================================================

@dataclass(frozen=True)
class NodeConfig:
    """Declared configuration of a computation backend."""
    node_id: str
    provider: Provider
    tier: Tier
    kind: BackendKind = BackendKind.API
    capabilities: Tuple[str, ...] = ()
    endpoint: Optional[str] = None
    max_tokens: int = 4096


@dataclass
class Node:
    """
    Registry entry for a computation backend.

    status and last_seen change over the node's life; sovereignty_score
    is fixed at registration.
    """
    node_id: str
    provider: Provider
    tier: Tier
    kind: BackendKind
    capabilities: FrozenSet[str]
    sovereignty_score: int
    status: NodeStatus = NodeStatus.ACTIVE
    last_seen: float = 0.0
    endpoint: Optional[str] = None
    max_tokens: int = 4096

    @property
    def is_active(self) -> bool:
        return self.status is NodeStatus.ACTIVE

    def has_capability(self, capability: str) -> bool:
        return capability in self.capabilities

    def to_dict(self) -> Dict[str, Any]:
        return {
            'node_id': self.node_id,
            'provider': self.provider.value,
            'tier': self.tier.value,
            'kind': self.kind.value,
            'capabilities': sorted(self.capabilities),
            'sovereignty_score': self.sovereignty_score,
            'status': self.status.value,
            'last_seen': self.last_seen,
            'endpoint': self.endpoint,
            'max_tokens': self.max_tokens,
        }


@dataclass(frozen=True)
class RegistryStats:
    """Aggregate view over active nodes."""
    total_nodes: int
    active_nodes: int
    by_provider: Dict[str, int]
    by_tier: Dict[str, int]
    average_score: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_nodes': self.total_nodes,
            'active_nodes': self.active_nodes,
            'by_provider': dict(self.by_provider),
            'by_tier': dict(self.by_tier),
            'average_score': self.average_score,
        }


# =============================================================================
# HANDSHAKE
# =============================================================================

@dataclass(frozen=True)
class HandshakeResult:
    """Pre-flight verdict for one (packet, node) pair."""
    packet_id: str
    node_id: str
    alignment_score: int
    warnings: Tuple[str, ...]
    errors: Tuple[str, ...]
    authorized: bool
    success: bool
    recommended_action: RecommendedAction

    def to_dict(self) -> Dict[str, Any]:
        return {
            'packet_id': self.packet_id,
            'node_id': self.node_id,
            'alignment_score': self.alignment_score,
            'warnings': list(self.warnings),
            'errors': list(self.errors),
            'authorized': self.authorized,
            'success': self.success,
            'recommended_action': self.recommended_action.value,
        }


# =============================================================================
# AUDIT
# =============================================================================

@dataclass(frozen=True)
class SecurityAuditResult:
    """Outcome of the static security scan."""
    passed: bool
    threat_level: ThreatLevel
    violations: Tuple[str, ...]
    risk_score: int  # 0-100, 100 is safest


@dataclass(frozen=True)
class AuditResult:
    """Combined structural + security audit."""
    passed: bool
    deviations: Tuple[str, ...]
    score: int  # min(structural, security)
    structural_score: int = 100
    security: Optional[SecurityAuditResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'passed': self.passed,
            'deviations': list(self.deviations),
            'score': self.score,
            'structural_score': self.structural_score,
            'threat_level': self.security.threat_level.value if self.security else None,
        }


# =============================================================================
# EXECUTION
# =============================================================================

@dataclass(frozen=True)
class MaterializationInstruction:
    """Request for the disk materializer emitted after a passing audit."""
    packet_id: str
    path: str
    content: str
    source_node_id: str
    audit_score: int
    encoding: str = "utf-8"
    backup: bool = True
    zone: DeploymentZone = DeploymentZone.STAGING


@dataclass(frozen=True)
class ExecutionResult:
    """
    Outcome of routing one packet.

    Expected failures are recorded here (success=False + error_kind),
    never raised.
    """
    success: bool
    packet_id: str
    adapter_id: str
    node_id: str
    elapsed_ms: float
    response: Any = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    audit: Optional[AuditResult] = None
    handshake: Optional[HandshakeResult] = None
    attempts: int = 0
    instruction: Optional[MaterializationInstruction] = None

    @property
    def deviations(self) -> Tuple[str, ...]:
        if self.audit is not None and self.audit.deviations:
            return self.audit.deviations
        if self.handshake is not None and not self.handshake.authorized:
            return self.handshake.errors or self.handshake.warnings
        return ()

    @staticmethod
    def failure(
        packet_id: str,
        error: str,
        error_kind: ErrorKind,
        elapsed_ms: float,
        adapter_id: str = "NONE",
        node_id: str = "NONE",
        **extra: Any
    ) -> 'ExecutionResult':
        return ExecutionResult(
            success=False,
            packet_id=packet_id,
            adapter_id=adapter_id,
            node_id=node_id,
            elapsed_ms=elapsed_ms,
            error=error,
            error_kind=error_kind,
            **extra
        )

    def raise_for_error(self) -> 'ExecutionResult':
        """Raise the DispatchError matching error_kind; return self on success."""
        if self.success:
            return self
        message = self.error or "dispatch failed"
        if self.error_kind is ErrorKind.SELECTION:
            raise SelectionError(message)
        if self.error_kind is ErrorKind.AUTHORIZATION:
            raise AuthorizationError(message, handshake=self.handshake)
        if self.error_kind is ErrorKind.AUDIT:
            raise AuditError(message, audit=self.audit)
        raise ExecutionError(message, attempts=self.attempts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'packet_id': self.packet_id,
            'adapter_id': self.adapter_id,
            'node_id': self.node_id,
            'elapsed_ms': round(self.elapsed_ms, 2),
            'error': self.error,
            'error_kind': self.error_kind.value if self.error_kind else None,
            'attempts': self.attempts,
            'deviations': list(self.deviations),
            'audit': self.audit.to_dict() if self.audit else None,
            'materialized_to': self.instruction.path if self.instruction else None,
        }
