"""
Eligibility Handshake Tests

INVARIANTS TESTED:
1. Score is clamped to [0, 100]
2. authorized implies success
3. Non-active nodes never pass
4. Batch results are ranked by score
"""

import pytest

from dispatch.contracts import (
    BackendKind,
    Capability,
    NodeStatus,
    RecommendedAction,
    Tier,
)
from dispatch.handshake import required_capabilities, verify_alignment, verify_batch
from dispatch.registry import NodeRegistry

from ..fixtures import FULL_CAPABILITIES, TEXT_ONLY, FakeClock, make_node_config, make_packet


@pytest.fixture
def registry():
    return NodeRegistry(clock=FakeClock())


def register(registry, *args, **kwargs):
    return registry.register(make_node_config(*args, **kwargs))


class TestRequiredCapabilities:

    def test_strict_json_requires_json_mode(self):
        assert required_capabilities(make_packet()) == [Capability.STRUCTURED_OUTPUT]

    def test_keywords_add_requirements(self):
        packet = make_packet("Call the weather tool and describe the image")
        assert required_capabilities(packet) == [
            Capability.STRUCTURED_OUTPUT, Capability.TOOL_USE, Capability.VISION,
        ]


class TestVerifyAlignment:

    def test_capable_mid_node_proceeds(self, registry):
        node = register(registry, "mid", tier=Tier.MID)
        result = verify_alignment(make_packet(tier=Tier.MID), node)

        assert result.alignment_score == 100
        assert result.authorized and result.success
        assert result.recommended_action is RecommendedAction.PROCEED
        assert result.warnings == () and result.errors == ()

    def test_missing_critical_capability_blocks(self, registry):
        node = register(registry, "plain", tier=Tier.MID, capabilities=TEXT_ONLY)
        result = verify_alignment(make_packet(tier=Tier.MID), node)

        assert result.alignment_score == 60
        assert "missing critical capability: json_mode" in result.errors
        assert not result.success
        assert not result.authorized
        assert result.recommended_action is RecommendedAction.BLOCK

    def test_missing_optional_capability_warns(self, registry):
        caps = (Capability.STRUCTURED_OUTPUT, Capability.TOOL_USE)
        node = register(registry, "blind", tier=Tier.MID, capabilities=caps)
        result = verify_alignment(make_packet("Describe the image", tier=Tier.MID), node)

        assert result.alignment_score == 90
        assert result.authorized
        assert result.recommended_action is RecommendedAction.WARN
        assert any("vision" in w for w in result.warnings)

    def test_critical_gap_supersedes_optional_gap(self, registry):
        node = register(registry, "plain", tier=Tier.MID, capabilities=TEXT_ONLY)
        packet = make_packet("Describe the image", tier=Tier.MID)
        assert required_capabilities(packet) == [Capability.STRUCTURED_OUTPUT, Capability.VISION]

        result = verify_alignment(packet, node)

        assert result.alignment_score == 60
        assert "missing critical capability: json_mode" in result.errors
        assert not any("optional" in w for w in result.warnings)

    def test_strict_constraints_on_lowest_tier_warn(self, registry):
        node = register(registry, "low", tier=Tier.LOWEST,
                        capabilities=(Capability.STRUCTURED_OUTPUT,))
        result = verify_alignment(make_packet(tier=Tier.LOWEST), node)

        assert result.alignment_score == 85
        assert result.authorized
        assert result.recommended_action is RecommendedAction.WARN

    def test_auto_evolve_forbidden_on_lowest_tier(self, registry):
        node = register(registry, "low", tier=Tier.LOWEST,
                        capabilities=(Capability.STRUCTURED_OUTPUT,))
        result = verify_alignment(make_packet(tier=Tier.MID), node)

        assert result.alignment_score == 25
        assert "generation limit AUTO_EVOLVE not allowed on tier v1.5" in result.errors
        assert result.recommended_action is RecommendedAction.BLOCK

    @pytest.mark.parametrize("status", [NodeStatus.OFFLINE, NodeStatus.DORMANT])
    def test_inactive_node_never_succeeds(self, registry, status):
        node = register(registry, "gone", tier=Tier.MID)
        registry.set_status("gone", status)
        result = verify_alignment(make_packet(tier=Tier.MID), node)

        assert result.alignment_score == 70
        assert f"node status is {status.value}" in result.errors
        assert not result.success
        assert not result.authorized

    def test_low_sovereignty_warns(self, registry):
        node = register(registry, "weak", tier=Tier.LOWEST, capabilities=TEXT_ONLY)
        # Lowest-tier, text-only: base score 50 is not "too low"
        assert node.sovereignty_score == 50
        node.sovereignty_score = 40
        result = verify_alignment(make_packet(tier=Tier.LOWEST), node)

        assert any("sovereignty" in w for w in result.warnings)

    def test_score_clamped_at_zero(self, registry):
        node = register(registry, "worst", tier=Tier.LOWEST, capabilities=TEXT_ONLY)
        node.sovereignty_score = 10
        registry.set_status("worst", NodeStatus.OFFLINE)
        packet = make_packet("Call a function on the image", tier=Tier.MID)
        result = verify_alignment(packet, node)

        assert result.alignment_score == 0
        assert result.recommended_action is RecommendedAction.BLOCK

    def test_handshake_does_not_mutate_node(self, registry):
        node = register(registry, "mid", tier=Tier.MID)
        before = node.to_dict()
        verify_alignment(make_packet(tier=Tier.MID), node)
        assert node.to_dict() == before


class TestVerifyBatch:

    def test_ranked_by_score(self, registry):
        plain = register(registry, "plain", tier=Tier.MID, capabilities=TEXT_ONLY)
        strong = register(registry, "strong", tier=Tier.HIGHEST,
                          kind=BackendKind.BROWSER_AUTOMATION)
        low = register(registry, "low", tier=Tier.LOWEST,
                       capabilities=(Capability.STRUCTURED_OUTPUT,))

        ranked = verify_batch(make_packet(tier=Tier.MID), [plain, low, strong])

        assert [n.node_id for n, _ in ranked] == ["strong", "plain", "low"]
        scores = [r.alignment_score for _, r in ranked]
        assert scores == sorted(scores, reverse=True)

    def test_ties_keep_candidate_order(self, registry):
        first = register(registry, "first", tier=Tier.MID)
        second = register(registry, "second", tier=Tier.HIGHEST)

        ranked = verify_batch(make_packet(tier=Tier.MID), [first, second])
        assert [n.node_id for n, _ in ranked] == ["first", "second"]

    def test_empty_batch(self):
        assert verify_batch(make_packet(), []) == []


class TestAuthorizationImpliesSuccess:

    @pytest.mark.parametrize("tier", list(Tier))
    @pytest.mark.parametrize("caps", [TEXT_ONLY, FULL_CAPABILITIES])
    @pytest.mark.parametrize("status", list(NodeStatus))
    def test_matrix(self, registry, tier, caps, status):
        node = register(registry, "n", tier=tier, capabilities=caps)
        registry.set_status("n", status)
        for packet_tier in Tier:
            result = verify_alignment(make_packet(tier=packet_tier), node)
            assert 0 <= result.alignment_score <= 100
            if result.authorized:
                assert result.success
