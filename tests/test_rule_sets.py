"""
Tests for the built-in rule sets and the keyword trigger classifier.
"""
from datetime import datetime, timedelta

import pytest

from contextcore.domain.models.records import AgentRequest
from contextcore.domain.models.rule import RuleContext
from contextcore.domain.rules.rule_sets import BUILTIN_RULE_SETS
from contextcore.domain.rules.rule_sets import (
    architectural_guidelines,
    code_quality,
    context_retention,
    core_agent_behavior,
    feedback_integration,
    prioritization_rules,
)
from contextcore.domain.rules.trigger_classifier import DEFAULT_VOCABULARY, KeywordTriggerClassifier


def make_ctx(content="", data=None, command=None, **metadata):
    request = AgentRequest(session_id="s", content=content, command=command, metadata=metadata)
    return RuleContext(request_id=request.id, session_id="s", request=request, data=data or {})


class TestBuiltinDefinitions:

    def test_every_set_builds_namespaced_rules(self):
        for name, definition in BUILTIN_RULE_SETS.items():
            rules = definition.factory()
            assert rules
            assert all(rule.id.startswith(f"{name}:") for rule in rules)
            assert len({rule.id for rule in rules}) == len(rules)

    def test_types_and_triggers(self):
        always = {name for name, definition in BUILTIN_RULE_SETS.items() if definition.always_active}

        assert always == {"core-agent-behavior", "rule-prioritization", "context-retention"}
        assert BUILTIN_RULE_SETS["feedback-integration"].triggers == ["feedback", "rating", "review"]
        assert "refactoring" in BUILTIN_RULE_SETS["code-quality-development"].triggers
        assert "system_design" in BUILTIN_RULE_SETS["architectural-guidelines"].triggers


class TestCoreAgentBehavior:

    @pytest.mark.asyncio
    async def test_concise_by_default(self):
        ctx = make_ctx("hi")

        result = await core_agent_behavior.concise_response(ctx)

        assert result.modified
        assert ctx.request.metadata["response_style"] == "concise"

    @pytest.mark.asyncio
    async def test_context_awareness_attaches_recent_summaries(self):
        interactions = [{"summary": f"answer {index}"} for index in range(5)]
        ctx = make_ctx("next", data={"interactions": interactions})

        result = await core_agent_behavior.context_awareness(ctx)

        assert result.modified
        assert ctx.request.metadata["conversation_context"] == ["answer 2", "answer 3", "answer 4"]

    @pytest.mark.asyncio
    async def test_empty_request_is_not_actionable(self):
        result = await core_agent_behavior.helpfulness(make_ctx(""))

        assert result.success is False


class TestPrioritizationRules:

    @pytest.mark.asyncio
    async def test_requested_style_overrides_preference(self):
        ctx = make_ctx("hi", data={"user_preferences": {"response_style": "concise"}}, requested_style="detailed")

        result = await prioritization_rules.conflict_resolution(ctx)
        await core_agent_behavior.concise_response(ctx)

        assert result.modified
        assert ctx.request.metadata["response_style"] == "detailed"


class TestContextRetention:

    @pytest.mark.asyncio
    async def test_related_knowledge_by_shared_identifiers(self):
        data = {"knowledge_base": {
            "snippet:r1:0": {"code": "def parse_dates(value): ..."},
            "snippet:r2:0": {"code": "class Renderer: ..."},
        }}
        ctx = make_ctx("why does parse_dates fail", data=data)

        result = await context_retention.context_retrieval(ctx)

        assert result.modified
        assert ctx.request.metadata["related_knowledge"] == ["snippet:r1:0"]

    @pytest.mark.asyncio
    async def test_expiration_counts_stale_interactions(self):
        old = (datetime.utcnow() - timedelta(days=30)).isoformat()
        new = datetime.utcnow().isoformat()
        ctx = make_ctx("hi", data={"interactions": [{"timestamp": old}, {"timestamp": new}, {"timestamp": "bad"}]})

        result = await context_retention.context_expiration(ctx)

        assert result.data["stale_interactions"] == 1


class TestFeedbackIntegration:

    @pytest.mark.asyncio
    async def test_negative_feedback(self):
        ctx = make_ctx("that is wrong")

        result = await feedback_integration.explicit_capture(ctx)

        assert result.data == {"feedback_type": "negative", "feedback_score": -1.0}
        assert ctx.data["feedback"][0]["score"] == -1.0

    @pytest.mark.asyncio
    async def test_no_feedback_markers(self):
        ctx = make_ctx("list the files")

        result = await feedback_integration.explicit_capture(ctx)

        assert not result.modified
        assert "feedback" not in ctx.data

    @pytest.mark.asyncio
    async def test_repeated_request_is_implicit_negative(self):
        data = {"interactions": [{}, {}], "recent_requests": ["how do I sort a list"]}
        ctx = make_ctx("how do I sort a list?", data=data)

        result = await feedback_integration.implicit_capture(ctx)

        assert result.data["feedback_type"] == "implicit_negative"
        assert ctx.data["feedback"][0]["score"] == -0.5

    @pytest.mark.asyncio
    async def test_continuation_is_implicit_positive(self):
        data = {"interactions": [{}, {}], "recent_requests": ["xyz"]}
        ctx = make_ctx("now add tests for it", data=data)

        result = await feedback_integration.implicit_capture(ctx)

        assert result.data["feedback_type"] == "implicit_positive"

    @pytest.mark.asyncio
    async def test_prioritization_factor(self):
        ctx = make_ctx("hi", data={"feedback": [{"score": 1.0}, {"score": 0.5}]})

        result = await feedback_integration.feedback_prioritization(ctx)

        assert result.data["adjustment_factor"] == 1.2
        assert ctx.data["priority_adjustments"]["factor"] == 1.2

    def test_trend_analysis_detects_improvement(self):
        start = datetime(2024, 1, 1)
        history = [
            {"timestamp": (start + timedelta(days=day)).isoformat(), "score": score}
            for day, score in enumerate([-1.0, -1.0, 0.0, 1.0, 1.0, 1.0])
        ]

        trends = feedback_integration.analyze_trends(history)

        assert trends["trend_direction"] == "improving"
        assert trends["overall_average"] == pytest.approx(1 / 6)
        assert trends["positive_percentage"] == pytest.approx(50.0)
        assert sum(period["count"] for period in trends["period_averages"]) == 6

    @pytest.mark.asyncio
    async def test_trend_analysis_needs_history(self):
        ctx = make_ctx("hi", data={"feedback": [{"score": 1.0}] * 4})

        result = await feedback_integration.trend_analysis(ctx)

        assert not result.modified


class TestCodeQualityAndArchitecture:

    @pytest.mark.asyncio
    async def test_security_findings_in_code_blocks(self):
        ctx = make_ctx("review this function\n```python\nresult = eval(user_input)\n```")

        result = await code_quality.security_best_practices(ctx)

        assert result.modified
        assert result.data["issues"] == 1

    @pytest.mark.asyncio
    async def test_non_code_request_is_ignored(self):
        ctx = make_ctx("what is the weather")

        result = await code_quality.error_handling(ctx)

        assert not result.modified
        assert "guidelines" not in ctx.request.metadata

    @pytest.mark.asyncio
    async def test_guidelines_are_not_duplicated(self):
        ctx = make_ctx("design the system")

        first = await architectural_guidelines.separation_of_concerns(ctx)
        second = await architectural_guidelines.separation_of_concerns(ctx)

        assert first.modified and not second.modified
        assert len(ctx.request.metadata["guidelines"]) == 1


class TestKeywordTriggerClassifier:

    def test_code_and_design_triggers(self):
        classifier = KeywordTriggerClassifier()

        triggers = classifier.classify("Implement a function for the new architecture")

        assert {"code_implementation", "system_design"} <= triggers

    def test_no_triggers_for_small_talk(self):
        assert KeywordTriggerClassifier().classify("good morning") == set()
        assert KeywordTriggerClassifier().classify("") == set()

    def test_custom_vocabulary_and_overlap(self):
        classifier = KeywordTriggerClassifier({"billing": ["invoice", "refund"]}, min_overlap=2)

        assert classifier.classify("refund my invoice") == {"billing"}
        assert classifier.classify("refund please") == set()
        assert classifier.score("refund please")["billing"] == pytest.approx(0.5)

    def test_rating_and_review_requests_emit_feedback_triggers(self):
        classifier = KeywordTriggerClassifier()

        assert "rating" in classifier.classify("I would rate that answer three stars")
        assert {"review", "code_review"} <= classifier.classify("please review my change")

    def test_every_on_demand_trigger_is_reachable(self):
        for definition in BUILTIN_RULE_SETS.values():
            for trigger in definition.triggers:
                assert trigger in DEFAULT_VOCABULARY, f"{definition.name}: {trigger}"
