"""
Intent Dispatch Core
====================

Compiles natural-language intents into packets, picks a backend node,
verifies eligibility, executes through a provider adapter with bounded
retries, audits the result, and hands passing content to the disk
materializer.

LAYER FLOW:
===========
1. PacketCompiler    raw intent -> Packet
2. NodeRegistry      directory of scored backend nodes
3. verify_alignment  pre-flight handshake per (packet, node)
4. Orchestrator      adapter/node selection, retry, audit
5. ResultAuditor     structural + security screening
6. (ingestion)       DiskMaterializer consumes instructions

The wiring of concrete adapters and the materializer lives in
dispatch.context, which is imported explicitly.
"""

from .contracts import (
    Tier,
    Provider,
    BackendKind,
    NodeStatus,
    GenerationLimit,
    DeploymentZone,
    Capability,
    OutputConstraint,
    RecommendedAction,
    ThreatLevel,
    ErrorKind,
    Packet,
    NodeConfig,
    Node,
    RegistryStats,
    HandshakeResult,
    SecurityAuditResult,
    AuditResult,
    MaterializationInstruction,
    ExecutionResult,
)
from .errors import (
    DispatchError,
    SelectionError,
    AuthorizationError,
    ExecutionError,
    AuditError,
    ValidationError,
    PathTraversalError,
    ExtensionNotAllowedError,
    EncodingError,
    ConfigError,
)
from .events import AlertLevel, DispatchEvent, EventBus, EventType
from .compiler import PacketCompiler, fingerprint_intent
from .registry import NodeRegistry, compute_sovereignty_score
from .handshake import verify_alignment, verify_batch
from .security import SecurityAuditor
from .audit import ResultAuditor, structural_audit
from .retry import RetryPolicy, execute_with_retry
from .config import (
    AdapterCredentials,
    BridgeConfig,
    DispatchConfig,
    LogConfig,
    RouterConfig,
    ServerConfig,
    load_config,
    write_default_config,
)
from .orchestrator import Orchestrator

__all__ = [
    # Contracts
    'Tier', 'Provider', 'BackendKind', 'NodeStatus', 'GenerationLimit',
    'DeploymentZone', 'Capability', 'OutputConstraint', 'RecommendedAction',
    'ThreatLevel', 'ErrorKind', 'Packet', 'NodeConfig', 'Node', 'RegistryStats',
    'HandshakeResult', 'SecurityAuditResult', 'AuditResult',
    'MaterializationInstruction', 'ExecutionResult',
    # Errors
    'DispatchError', 'SelectionError', 'AuthorizationError', 'ExecutionError',
    'AuditError', 'ValidationError', 'PathTraversalError',
    'ExtensionNotAllowedError', 'EncodingError', 'ConfigError',
    # Events
    'AlertLevel', 'DispatchEvent', 'EventBus', 'EventType',
    # Pipeline
    'PacketCompiler', 'fingerprint_intent',
    'NodeRegistry', 'compute_sovereignty_score',
    'verify_alignment', 'verify_batch',
    'SecurityAuditor', 'ResultAuditor', 'structural_audit',
    'RetryPolicy', 'execute_with_retry',
    'Orchestrator',
    # Config
    'AdapterCredentials', 'BridgeConfig', 'DispatchConfig', 'LogConfig',
    'RouterConfig', 'ServerConfig', 'load_config', 'write_default_config',
]
