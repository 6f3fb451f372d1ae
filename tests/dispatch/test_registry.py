"""
Node Registry Tests

INVARIANTS TESTED:
1. Sovereignty score is derived from tier, capabilities and kind, clamped to 100
2. Non-active nodes never appear in available()
3. Inactivity sweep uses the injected clock
4. Unknown ids return None / False
"""

import pytest

from dispatch.contracts import BackendKind, Capability, NodeStatus, Provider, Tier
from dispatch.events import EventBus, EventType
from dispatch.registry import NodeRegistry, compute_sovereignty_score

from ..fixtures import FULL_CAPABILITIES, TEXT_ONLY, FakeClock, make_node_config


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return NodeRegistry(clock=clock)


class TestSovereigntyScore:

    def test_highest_browser_with_json_mode_scores_100(self):
        score = compute_sovereignty_score(
            Tier.HIGHEST, [Capability.STRUCTURED_OUTPUT], BackendKind.BROWSER_AUTOMATION
        )
        assert score == 100

    def test_score_is_clamped(self):
        score = compute_sovereignty_score(
            Tier.HIGHEST, FULL_CAPABILITIES, BackendKind.BROWSER_AUTOMATION
        )
        assert score == 100

    def test_lowest_text_only_api_is_base(self):
        assert compute_sovereignty_score(Tier.LOWEST, TEXT_ONLY, BackendKind.API) == 50

    def test_mid_full_api(self):
        assert compute_sovereignty_score(Tier.MID, FULL_CAPABILITIES, BackendKind.API) == 85

    def test_registered_node_carries_score(self, registry):
        node = registry.register(make_node_config(
            "arena", Provider.ARENA, Tier.HIGHEST, BackendKind.BROWSER_AUTOMATION,
            (Capability.STRUCTURED_OUTPUT,),
        ))
        assert node.sovereignty_score == 100


class TestRegistration:

    def test_register_defaults_to_active_and_now(self, registry, clock):
        node = registry.register(make_node_config())
        assert node.status is NodeStatus.ACTIVE
        assert node.last_seen == clock.now

    def test_register_without_capabilities_defaults_to_text(self, registry):
        node = registry.register(make_node_config(capabilities=()))
        assert node.capabilities == frozenset({Capability.TEXT_GENERATION})

    def test_reregister_overwrites(self, registry):
        registry.register(make_node_config("a", tier=Tier.LOWEST))
        registry.register(make_node_config("a", tier=Tier.HIGHEST))

        assert len(registry) == 1
        assert registry.get("a").tier is Tier.HIGHEST

    def test_unregister(self, registry):
        registry.register(make_node_config("a"))
        assert registry.unregister("a") is True
        assert registry.unregister("a") is False
        assert "a" not in registry

    def test_unknown_lookups(self, registry):
        assert registry.get("ghost") is None
        assert registry.heartbeat("ghost") is False
        assert registry.set_status("ghost", NodeStatus.OFFLINE) is False


class TestAvailability:

    def test_offline_node_not_available(self, registry):
        registry.register(make_node_config("a"))
        registry.register(make_node_config("b"))
        registry.set_status("a", NodeStatus.OFFLINE)

        assert [n.node_id for n in registry.available()] == ["b"]
        assert [n.node_id for n in registry.nodes()] == ["a", "b"]

    def test_dormant_node_not_available(self, registry):
        registry.register(make_node_config("a"))
        registry.set_status("a", NodeStatus.DORMANT)
        assert registry.available() == []

    def test_heartbeat_reactivates(self, registry, clock):
        registry.register(make_node_config("a"))
        registry.set_status("a", NodeStatus.OFFLINE)
        clock.advance(42)

        assert registry.heartbeat("a") is True
        node = registry.get("a")
        assert node.status is NodeStatus.ACTIVE
        assert node.last_seen == clock.now

    def test_filters(self, registry):
        registry.register(make_node_config("g", Provider.GOOGLE, Tier.MID))
        registry.register(make_node_config("o", Provider.OPENAI, Tier.LOWEST, capabilities=TEXT_ONLY))
        registry.register(make_node_config("a", Provider.ARENA, Tier.HIGHEST, BackendKind.BROWSER_AUTOMATION))

        assert [n.node_id for n in registry.by_provider(Provider.OPENAI)] == ["o"]
        assert [n.node_id for n in registry.by_tier(Tier.HIGHEST)] == ["a"]

    def test_sovereign_nodes_apply_tier_threshold(self, registry):
        registry.register(make_node_config("strong", tier=Tier.MID))
        registry.register(make_node_config("weak", tier=Tier.MID, capabilities=TEXT_ONLY))

        assert [n.node_id for n in registry.sovereign_nodes(Tier.MID)] == ["strong"]


class TestInactivitySweep:

    def test_stale_nodes_go_offline(self, registry, clock):
        registry.register(make_node_config("stale"))
        clock.advance(200)
        registry.register(make_node_config("fresh"))
        clock.advance(150)

        assert registry.sweep_inactive(timeout_seconds=300) == 1
        assert registry.get("stale").status is NodeStatus.OFFLINE
        assert registry.get("fresh").status is NodeStatus.ACTIVE

    def test_sweep_ignores_non_active(self, registry, clock):
        registry.register(make_node_config("a"))
        registry.set_status("a", NodeStatus.DORMANT)
        clock.advance(1000)

        assert registry.sweep_inactive() == 0
        assert registry.get("a").status is NodeStatus.DORMANT


class TestStats:

    def test_stats_count_active_only(self, registry):
        registry.register(make_node_config("g", Provider.GOOGLE, Tier.MID))
        registry.register(make_node_config("c", Provider.ANTHROPIC, Tier.MID))
        registry.register(make_node_config("o", Provider.OPENAI, Tier.LOWEST, capabilities=TEXT_ONLY))
        registry.set_status("o", NodeStatus.OFFLINE)

        stats = registry.stats()
        assert stats.total_nodes == 3
        assert stats.active_nodes == 2
        assert stats.by_provider == {"GOOGLE": 1, "ANTHROPIC": 1}
        assert stats.by_tier == {"v2.0": 2}
        assert stats.average_score == 85

    def test_empty_stats(self, registry):
        stats = registry.stats()
        assert stats.total_nodes == 0
        assert stats.average_score == 0


class TestEvents:

    def test_registration_and_status_events(self, clock):
        bus = EventBus()
        registry = NodeRegistry(clock=clock, event_bus=bus)
        registry.register(make_node_config("a"))
        registry.set_status("a", NodeStatus.OFFLINE)
        registry.set_status("a", NodeStatus.OFFLINE)

        assert len(bus.history(EventType.NODE_REGISTERED)) == 1
        changes = bus.history(EventType.NODE_STATUS_CHANGED)
        assert len(changes) == 1
        assert changes[0].payload == {'node_id': 'a', 'previous': 'active', 'status': 'offline'}
