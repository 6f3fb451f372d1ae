"""
Result Audit Tests

Structural screening combined with the security scan.
"""

import pytest

from dispatch.audit import ResultAuditor, structural_audit
from dispatch.contracts import ThreatLevel, Tier

from ..fixtures import make_packet


@pytest.fixture
def packet():
    return make_packet(tier=Tier.MID)


class TestStructuralAudit:

    def test_structured_result_passes(self, packet):
        passed, deviations, score = structural_audit(packet, {"content": "export const a = 1;"})
        assert passed
        assert deviations == []
        assert score == 100

    def test_placeholder_markers(self, packet):
        passed, deviations, score = structural_audit(packet, {"content": "// TODO finish"})
        assert not passed
        assert deviations == ["output contains placeholder markers"]
        assert score == 70

    def test_unparseable_text_under_strict_json(self, packet):
        passed, deviations, score = structural_audit(packet, "plain prose answer")
        assert not passed
        assert "output is not well-formed JSON" in deviations
        assert "violates STRICT_JSON_OUTPUT constraint" in deviations
        assert score == 35

    def test_json_text_is_well_formed_but_not_structured(self, packet):
        passed, deviations, score = structural_audit(packet, '{"a": 1}')
        assert deviations == ["violates STRICT_JSON_OUTPUT constraint"]
        assert score == 75
        assert not passed

    def test_list_result_is_structured(self, packet):
        passed, _, _ = structural_audit(packet, [{"id": 1}, {"id": 2}])
        assert passed


class TestResultAuditor:

    def test_clean_result(self, packet):
        audit = ResultAuditor().audit(packet, {"content": "export const a = 1;"})
        assert audit.passed
        assert audit.score == 100
        assert audit.security.threat_level is ThreatLevel.NONE

    def test_destructive_payload_fails_with_named_deviation(self, packet):
        audit = ResultAuditor().audit(packet, {"content": "fs.rmSync('/', {recursive: true});"})

        assert not audit.passed
        assert any("rmSync" in d for d in audit.deviations)
        assert audit.structural_score == 100
        assert audit.score == audit.security.risk_score

    def test_score_is_minimum_of_both(self, packet):
        audit = ResultAuditor().audit(packet, {"content": "TODO: exec"})
        assert audit.structural_score == 70
        assert audit.security.risk_score == 69
        assert audit.score == 69
        assert audit.deviations[0] == "output contains placeholder markers"
        assert "restricted call in content: [exec]" in audit.deviations

    def test_to_dict(self, packet):
        data = ResultAuditor().audit(packet, {"content": "ok"}).to_dict()
        assert data == {
            'passed': True,
            'deviations': [],
            'score': 100,
            'structural_score': 100,
            'threat_level': 'none',
        }
