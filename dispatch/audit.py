"""
Result Audit

Structural screening of a normalized result, combined with the security scan.

COMBINATION RULES:
==================
- passed = structural passed AND security passed
- score = min(structural score, security risk score)
- deviations = structural deviations + security violations
"""

from __future__ import annotations
from typing import Any, List, Optional, Tuple
import json
import logging

from .contracts import AuditResult, Packet
from .security import SecurityAuditor

logger = logging.getLogger(__name__)

PLACEHOLDER_MARKERS = ("TEMPLATE", "TODO", "PLACEHOLDER")
PLACEHOLDER_PENALTY = 30
MALFORMED_PENALTY = 40
STRICT_JSON_PENALTY = 25
STRUCTURAL_PASS_THRESHOLD = 70


def serialize_result(result: Any) -> str:
    return json.dumps(result, ensure_ascii=False, default=str)


def structural_audit(packet: Packet, result: Any) -> Tuple[bool, List[str], int]:
    """
    Score a normalized result against the packet's output constraints.

    Returns (passed, deviations, score).
    """
    deviations: List[str] = []
    score = 100
    serialized = serialize_result(result)

    if any(marker in serialized for marker in PLACEHOLDER_MARKERS):
        deviations.append("output contains placeholder markers")
        score -= PLACEHOLDER_PENALTY

    if isinstance(result, str):
        try:
            json.loads(result)
        except ValueError:
            deviations.append("output is not well-formed JSON")
            score -= MALFORMED_PENALTY

    if packet.requires_strict_json() and not isinstance(result, (dict, list)):
        deviations.append("violates STRICT_JSON_OUTPUT constraint")
        score -= STRICT_JSON_PENALTY

    passed = not deviations and score >= STRUCTURAL_PASS_THRESHOLD
    return passed, deviations, score


class ResultAuditor:
    """Runs the structural audit and the security scan over one result."""

    def __init__(self, security: Optional[SecurityAuditor] = None):
        self._security = security or SecurityAuditor()

    def audit(self, packet: Packet, result: Any) -> AuditResult:
        structural_passed, deviations, structural_score = structural_audit(packet, result)
        security = self._security.audit(serialize_result(result))

        deviations.extend(security.violations)
        passed = structural_passed and security.passed
        score = min(structural_score, security.risk_score)

        logger.info(
            "Audit %s: %s (score %d, threat %s)",
            packet.short_id, "passed" if passed else "failed", score,
            security.threat_level.value,
        )
        return AuditResult(
            passed=passed,
            deviations=tuple(deviations),
            score=max(0, score),
            structural_score=structural_score,
            security=security,
        )
