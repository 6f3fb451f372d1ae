"""
Security Auditor Tests

Blacklist, heuristic and encoded-payload scoring.
"""

import pytest

from dispatch.contracts import ThreatLevel
from dispatch.security import SecurityAuditor, threat_level_for


@pytest.fixture
def auditor():
    return SecurityAuditor()


class TestBlacklist:

    def test_clean_content_passes(self, auditor):
        result = auditor.audit("export const greeting = 'hello';")
        assert result.passed
        assert result.risk_score == 100
        assert result.threat_level is ThreatLevel.NONE
        assert result.violations == ()

    def test_single_blacklisted_call_fails(self, auditor):
        result = auditor.audit("require('child_process')")
        assert not result.passed
        assert result.risk_score == 69
        assert "restricted call in content: [child_process]" in result.violations

    def test_python_destructive_calls(self, auditor):
        result = auditor.audit("import shutil\nshutil.rmtree(path)")
        assert not result.passed
        assert any("shutil.rmtree" in v for v in result.violations)

    def test_each_hit_counts(self, auditor):
        result = auditor.audit("document.cookie; localStorage.clear()")
        assert len(result.violations) == 2
        assert result.risk_score == 38


class TestHeuristics:

    def test_rm_sync_root(self, auditor):
        result = auditor.audit("fs.rmSync('/', {recursive: true})")
        assert not result.passed
        assert result.threat_level is ThreatLevel.CRITICAL
        assert "restricted call in content: [rmSync]" in result.violations
        assert "heuristic block: recursive delete of root (node)" in result.violations
        assert result.risk_score == 9

    def test_shell_rm_rf(self, auditor):
        result = auditor.audit("run: rm -rf /")
        assert "heuristic block: recursive delete of root (shell)" in result.violations
        assert result.risk_score == 40

    def test_fork_bomb(self, auditor):
        result = auditor.audit(":(){ :|:& };:")
        assert "heuristic block: fork bomb" in result.violations

    def test_shell_invocation_case_insensitive(self, auditor):
        result = auditor.audit("Start-Process PowerShell")
        assert "heuristic block: system shell invocation" in result.violations


class TestEncodedPayload:

    def test_many_long_tokens_penalized(self, auditor):
        token = "QUJDREVGR0hJSktMTU5PUFFSU1RVVldYWVphYmNkZWZn"
        content = " ".join([token] * 4)
        result = auditor.audit(content)

        assert "suspected hidden encoded payload" in result.violations
        assert result.risk_score == 85
        assert result.passed

    def test_three_tokens_tolerated(self, auditor):
        token = "QUJDREVGR0hJSktMTU5PUFFSU1RVVldYWVphYmNkZWZn"
        result = auditor.audit(" ".join([token] * 3))
        assert result.violations == ()


class TestThreatLevels:

    @pytest.mark.parametrize("score,level", [
        (100, ThreatLevel.NONE),
        (85, ThreatLevel.LOW),
        (75, ThreatLevel.LOW),
        (60, ThreatLevel.MEDIUM),
        (40, ThreatLevel.HIGH),
        (29, ThreatLevel.CRITICAL),
        (-50, ThreatLevel.CRITICAL),
    ])
    def test_bands(self, score, level):
        assert threat_level_for(score) is level

    def test_risk_score_never_negative(self, auditor):
        result = auditor.audit("rm -rf / ; fs.rmSync('/') ; powershell ; eval(x) ; exec")
        assert result.risk_score == 0
