"""
Security Auditor

Static scan of produced content before it may be materialized.

SCORING:
========
- Start at 100 (safest)
- Each blacklisted substring present: -31 (one hit already fails)
- Each heuristic pattern matched: -60
- More than three long base64-shaped tokens: -15
- Passes only at >= 70
"""

from __future__ import annotations
from typing import List, Pattern, Tuple
import logging
import re

from .contracts import SecurityAuditResult, ThreatLevel

logger = logging.getLogger(__name__)

PASS_THRESHOLD = 70
BLACKLIST_PENALTY = 31
HEURISTIC_PENALTY = 60
ENCODED_PAYLOAD_PENALTY = 15
ENCODED_TOKEN_LIMIT = 3

BLACKLIST: Tuple[str, ...] = (
    # process spawning
    'child_process',
    'exec',
    'spawn',
    'fork',
    'subprocess',
    'os.system',
    # destructive filesystem
    'rmSync',
    'rmdirSync',
    'unlinkSync',
    'deleteFile',
    'deleteAll',
    'formatDrive',
    'shutil.rmtree',
    'os.remove',
    # code evaluation
    'eval(',
    'Function(',
    '__import__',
    # process / privilege
    'process.exit',
    'process.kill',
    'chmod',
    'chown',
    # browser storage
    'localStorage.clear',
    'document.cookie',
    # raw network
    'fetch(',
    'XMLHttpRequest',
    'socket.socket',
)

HEURISTIC_PATTERNS: Tuple[Tuple[Pattern, str], ...] = (
    (re.compile(r"rm\s+-rf\s+/"), "recursive delete of root (shell)"),
    (re.compile(r"rmSync\s*\(\s*['\"]/['\"]"), "recursive delete of root (node)"),
    (re.compile(r":\(\)\{\s*:\s*\|\s*:\s*&\s*\};:"), "fork bomb"),
    (re.compile(r"base64_decode|b64decode|atob|btoa"), "obfuscation or encoding call"),
    (re.compile(r"powershell|cmd\.exe", re.IGNORECASE), "system shell invocation"),
)

ENCODED_TOKEN = re.compile(r"[A-Za-z0-9+/=]{40,}")


def threat_level_for(score: int) -> ThreatLevel:
    if score >= 100:
        return ThreatLevel.NONE
    if score >= 75:
        return ThreatLevel.LOW
    if score >= 50:
        return ThreatLevel.MEDIUM
    if score >= 30:
        return ThreatLevel.HIGH
    return ThreatLevel.CRITICAL


class SecurityAuditor:
    """Blacklist + heuristic scanner over serialized content."""

    def __init__(
        self,
        blacklist: Tuple[str, ...] = BLACKLIST,
        patterns: Tuple[Tuple[Pattern, str], ...] = HEURISTIC_PATTERNS
    ):
        self._blacklist = blacklist
        self._patterns = patterns

    def audit(self, content: str) -> SecurityAuditResult:
        violations: List[str] = []
        score = 100

        for token in self._blacklist:
            if token in content:
                violations.append(f"restricted call in content: [{token}]")
                score -= BLACKLIST_PENALTY

        for pattern, message in self._patterns:
            if pattern.search(content):
                violations.append(f"heuristic block: {message}")
                score -= HEURISTIC_PENALTY

        if len(ENCODED_TOKEN.findall(content)) > ENCODED_TOKEN_LIMIT:
            violations.append("suspected hidden encoded payload")
            score -= ENCODED_PAYLOAD_PENALTY

        level = threat_level_for(score)
        passed = score >= PASS_THRESHOLD
        if not passed:
            logger.warning("Security audit failed (%s): %s", level.value, "; ".join(violations))

        return SecurityAuditResult(
            passed=passed,
            threat_level=level,
            violations=tuple(violations),
            risk_score=max(0, score),
        )
