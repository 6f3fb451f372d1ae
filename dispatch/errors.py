"""
Dispatch Errors

Exception taxonomy for the pipeline. The orchestrator converts these into
failed ExecutionResults; the materializer lets ValidationError propagate
because it signals a caller contract violation.
"""

from __future__ import annotations
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .contracts import AuditResult, HandshakeResult


class DispatchError(Exception):
    """Base class for all pipeline errors."""


class SelectionError(DispatchError):
    """No eligible adapter or node. Terminal."""


class AuthorizationError(DispatchError):
    """Handshake blocked the packet on every candidate node."""

    def __init__(self, message: str, handshake: Optional['HandshakeResult'] = None):
        super().__init__(message)
        self.handshake = handshake


class ExecutionError(DispatchError):
    """Adapter call failed or timed out after all retries."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class AuditError(DispatchError):
    """Result failed structural or security screening. Never retried."""

    def __init__(self, message: str, audit: Optional['AuditResult'] = None):
        super().__init__(message)
        self.audit = audit


class ValidationError(DispatchError, ValueError):
    """Caller-supplied input violates a contract (path, extension, intent)."""


class PathTraversalError(ValidationError):
    pass


class ExtensionNotAllowedError(ValidationError):
    pass


class EncodingError(ValidationError):
    """Unknown or non-text encoding, or content the encoding cannot represent."""


class ConfigError(DispatchError):
    """Configuration file could not be read or is malformed."""
