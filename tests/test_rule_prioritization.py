"""
Tests for rule prioritization: ordering, the effectiveness moving average,
bounded priority drift and persistence of both.
"""
import json

import pytest

from contextcore.domain.models.rule import Rule, RuleResult, RuleType
from contextcore.domain.rules.rule_prioritization import (
    ADJUSTMENTS_KEY,
    EFFECTIVENESS_KEY,
    RulePrioritization,
)


async def _noop(ctx):
    return RuleResult()


def make_rule(rule_id: str, priority: int = 50) -> Rule:
    return Rule(id=rule_id, name=rule_id, type=RuleType.ON_DEMAND, priority=priority, execute=_noop)


class TestOrdering:

    def test_priority_descending(self):
        prioritization = RulePrioritization()
        a, b = make_rule("set:a", 100), make_rule("set:b", 50)

        assert prioritization.get_prioritized_rules([b, a]) == [a, b]

    def test_effectiveness_breaks_priority_ties(self):
        prioritization = RulePrioritization()
        c, d = make_rule("set:c", 80), make_rule("set:d", 80)
        prioritization.effectiveness_scores.update({"set:c": 0.4, "set:d": 0.9})

        assert [rule.id for rule in prioritization.get_prioritized_rules([c, d])] == ["set:d", "set:c"]

    def test_full_ties_keep_input_order(self):
        prioritization = RulePrioritization()
        rules = [make_rule(f"set:{name}", 10) for name in "xyz"]

        assert prioritization.get_prioritized_rules(rules) == rules

    def test_unknown_rules_use_default_effectiveness(self):
        prioritization = RulePrioritization()
        known, unknown = make_rule("set:known", 5), make_rule("set:unknown", 5)
        prioritization.effectiveness_scores["set:known"] = 0.5

        assert prioritization.get_prioritized_rules([known, unknown])[0] is unknown


class TestEffectiveness:

    @pytest.mark.asyncio
    async def test_moving_average_update(self):
        prioritization = RulePrioritization()

        score = await prioritization.record_rule_effectiveness("set:a", 0.0)

        assert score == pytest.approx(0.9)
        assert prioritization.get_effectiveness("set:a") == pytest.approx(0.9)

    @pytest.mark.asyncio
    async def test_converges_toward_observations(self):
        prioritization = RulePrioritization()

        for _ in range(60):
            score = await prioritization.record_rule_effectiveness("set:a", 0.2)

        assert score == pytest.approx(0.2, abs=0.01)

    @pytest.mark.asyncio
    async def test_small_steps_never_adjust_priority(self):
        prioritization = RulePrioritization()
        rule = make_rule("set:a", 50)
        await prioritization.register_rules([rule])

        # alpha 0.1 bounds each step well below the 0.2 trigger for scores in [0, 1]
        for _ in range(60):
            await prioritization.record_rule_effectiveness("set:a", 0.0)

        assert rule.priority == 50
        assert prioritization.get_adjustment("set:a") == 0


class TestPriorityAdjustment:

    @pytest.mark.asyncio
    async def test_large_jump_adjusts_priority(self):
        prioritization = RulePrioritization(alpha=1.0)
        rule = make_rule("set:a", 50)
        await prioritization.register_rules([rule])

        await prioritization.record_rule_effectiveness("set:a", 0.1)

        assert rule.priority == 49
        assert prioritization.get_adjustment("set:a") == -1

    @pytest.mark.asyncio
    async def test_adjustment_is_clamped(self):
        prioritization = RulePrioritization()
        rule = make_rule("set:a", 50)
        await prioritization.register_rules([rule])

        deltas = [await prioritization.adjust_rule_priority("set:a", 0.95) for _ in range(4)]

        assert deltas == [1, 1, 0, 0]
        assert rule.priority == 52
        assert prioritization.get_adjustment("set:a") == 2

    @pytest.mark.asyncio
    async def test_only_the_delta_is_applied(self):
        prioritization = RulePrioritization()
        rule = make_rule("set:a", 50)
        await prioritization.register_rules([rule])

        for _ in range(3):
            await prioritization.adjust_rule_priority("set:a", 0.1)
        await prioritization.adjust_rule_priority("set:a", 0.9)

        assert prioritization.get_adjustment("set:a") == -1
        assert rule.priority == 49

    @pytest.mark.asyncio
    async def test_middle_scores_do_not_move_priority(self):
        prioritization = RulePrioritization()
        rule = make_rule("set:a", 50)
        await prioritization.register_rules([rule])

        assert await prioritization.adjust_rule_priority("set:a", 0.5) == 0
        assert rule.priority == 50


class TestPersistence:

    @pytest.mark.asyncio
    async def test_scores_and_adjustments_are_persisted(self, gateway, store):
        prioritization = RulePrioritization(gateway, alpha=1.0)
        await prioritization.register_rules([make_rule("set:a", 50)])

        await prioritization.record_rule_effectiveness("set:a", 0.1)

        assert json.loads(store.data[EFFECTIVENESS_KEY]) == {"set:a": pytest.approx(0.1)}
        assert json.loads(store.data[ADJUSTMENTS_KEY]) == {"set:a": -1}

    @pytest.mark.asyncio
    async def test_adjustment_reapplied_after_reload(self, gateway):
        first = RulePrioritization(gateway, alpha=1.0)
        await first.register_rules([make_rule("set:a", 50)])
        await first.record_rule_effectiveness("set:a", 0.1)

        second = RulePrioritization(gateway)
        await second.initialize()
        rebuilt = make_rule("set:a", 50)
        await second.register_rules([rebuilt])

        assert rebuilt.priority == 49
        assert second.get_effectiveness("set:a") == pytest.approx(0.1)

    @pytest.mark.asyncio
    async def test_unregister_keeps_history(self):
        prioritization = RulePrioritization()
        await prioritization.register_rules([make_rule("set:a")])
        await prioritization.record_rule_effectiveness("set:a", 0.0)

        await prioritization.unregister_rule("set:a")

        assert prioritization.get_effectiveness("set:a") == pytest.approx(0.9)
        assert prioritization.get_rule_stats()["set:a"]["active"] is False

    @pytest.mark.asyncio
    async def test_store_outage_keeps_in_memory_state(self, failing_gateway):
        prioritization = RulePrioritization(failing_gateway)
        await prioritization.initialize()
        await prioritization.register_rules([make_rule("set:a")])

        score = await prioritization.record_rule_effectiveness("set:a", 0.0)

        assert score == pytest.approx(0.9)

    @pytest.mark.asyncio
    async def test_malformed_persisted_state_is_ignored(self, store, gateway):
        store.data[EFFECTIVENESS_KEY] = "[1, 2"
        store.data[ADJUSTMENTS_KEY] = json.dumps({"set:a": 7, "set:b": "high"})

        prioritization = RulePrioritization(gateway)
        await prioritization.initialize()

        assert prioritization.effectiveness_scores == {}
        assert prioritization.get_adjustment("set:a") == 2
        assert prioritization.get_adjustment("set:b") == 0
