"""
Feedback integration rules.

Explicit and implicit feedback is captured into ``data.feedback`` of the
working context; the most recent entries drive a priority factor and, once
enough history exists, a trend analysis.
"""

from typing import Dict, List, Any
from datetime import datetime

from contextcore.domain.models.rule import Rule, RuleContext, RuleResult, RuleType
from .common import build_rule

RULE_SET = "feedback-integration"

POSITIVE_MARKERS = (
    "good job", "thanks", "that works", "helpful", "perfect",
    "awesome", "excellent", "great", "well done",
)
NEGATIVE_MARKERS = (
    "not what i asked", "wrong", "incorrect", "not helpful",
    "doesn't work", "bad", "poor", "confused", "misunderstood",
)
CONTINUATION_MARKERS = (
    "and", "also", "next", "now", "then", "additionally",
    "furthermore", "moreover", "continue", "proceed",
)

REPEAT_SIMILARITY = 0.8
RECENT_FEEDBACK = 5
TREND_MIN_ENTRIES = 5
TREND_PERIODS = 5


def text_similarity(first: str, second: str) -> float:
    """Jaccard similarity over the character sets of both texts"""

    if not first or not second:
        return 0.0
    a, b = set(first.lower()), set(second.lower())
    return len(a & b) / len(a | b)


def _append_feedback(ctx: RuleContext, kind: str, score: float, content: str, **extra: Any):
    entry = {
        "timestamp": datetime.utcnow().isoformat(),
        "type": kind,
        "score": score,
        "content": content,
    }
    entry.update(extra)
    ctx.data.setdefault("feedback", []).append(entry)


async def explicit_capture(ctx: RuleContext) -> RuleResult:
    content = (ctx.request.content or "").lower()
    if not content:
        return RuleResult(message="No request to analyze for feedback")

    if any(marker in content for marker in POSITIVE_MARKERS):
        kind, score = "positive", 1.0
    elif any(marker in content for marker in NEGATIVE_MARKERS):
        kind, score = "negative", -1.0
    else:
        return RuleResult(message="No explicit feedback detected")

    _append_feedback(ctx, kind, score, ctx.request.content)
    return RuleResult(
        modified=True,
        message=f"Captured {kind} feedback",
        data={"feedback_type": kind, "feedback_score": score}
    )


async def implicit_capture(ctx: RuleContext) -> RuleResult:
    """A repeated request reads as dissatisfaction, a follow-on as approval"""

    content = ctx.request.content or ""
    if not content:
        return RuleResult(message="No request to analyze for implicit feedback")

    previous = ctx.data.get("recent_requests", [])
    if len(ctx.data.get("interactions", [])) < 2 or not previous:
        return RuleResult(message="Not enough interaction history for implicit feedback analysis")

    similarity = text_similarity(previous[-1], content)
    if similarity > REPEAT_SIMILARITY:
        _append_feedback(
            ctx, "implicit_negative", -0.5,
            "User repeated a similar request",
            similarity=similarity
        )
        return RuleResult(
            modified=True,
            message="Captured implicit negative feedback from repeated request",
            data={"feedback_type": "implicit_negative", "feedback_score": -0.5, "similarity": similarity}
        )

    lowered = content.lower()
    for marker in CONTINUATION_MARKERS:
        if lowered.startswith(marker) or f" {marker} " in lowered:
            _append_feedback(ctx, "implicit_positive", 0.3, "User continued the conversation without correction")
            return RuleResult(
                modified=True,
                message="Captured implicit positive feedback from conversation continuation",
                data={"feedback_type": "implicit_positive", "feedback_score": 0.3}
            )

    return RuleResult(message="No implicit feedback patterns detected")


async def feedback_prioritization(ctx: RuleContext) -> RuleResult:
    feedback = ctx.data.get("feedback", [])
    if not feedback:
        return RuleResult(message="No feedback data available for priority adjustment")

    recent = feedback[-RECENT_FEEDBACK:]
    normalized = sum(float(item.get("score", 0)) for item in recent) / len(recent)

    if normalized > 0.3:
        factor, message = 1.2, "Positive feedback reinforces current behavior"
    elif normalized < -0.3:
        factor, message = 0.8, "Negative feedback encourages adaptation"
    else:
        factor, message = 1.0, "Neutral feedback, no priority adjustment"

    ctx.data.setdefault("priority_adjustments", {})["factor"] = factor
    return RuleResult(
        modified=factor != 1.0,
        message=message,
        data={"adjustment_factor": factor, "normalized_score": normalized}
    )


def analyze_trends(history: List[Dict[str, Any]], periods: int = TREND_PERIODS) -> Dict[str, Any]:
    """Average score per time period, overall direction and positive share"""

    entries = sorted(history, key=lambda item: str(item.get("timestamp", "")))
    if not entries:
        return {"period_averages": [], "trend_direction": "stable", "overall_average": 0.0,
                "positive_percentage": 0.0}

    times = []
    for item in entries:
        try:
            times.append(datetime.fromisoformat(str(item.get("timestamp"))).timestamp())
        except ValueError:
            times.append(times[-1] if times else 0.0)

    first, last = times[0], times[-1]
    span = (last - first) / periods
    buckets: List[List[float]] = [[] for _ in range(periods)]
    for moment, item in zip(times, entries):
        index = min(int((moment - first) / span), periods - 1) if span > 0 else 0
        buckets[index].append(float(item.get("score", 0)))

    averages = [
        {"average": sum(bucket) / len(bucket) if bucket else 0.0, "count": len(bucket)}
        for bucket in buckets
    ]

    difference = averages[-1]["average"] - averages[0]["average"]
    if difference > 0.2:
        direction = "improving"
    elif difference < -0.2:
        direction = "declining"
    else:
        direction = "stable"

    scores = [float(item.get("score", 0)) for item in entries]
    return {
        "period_averages": averages,
        "trend_direction": direction,
        "overall_average": sum(scores) / len(scores),
        "positive_percentage": 100.0 * sum(1 for score in scores if score > 0) / len(scores),
    }


async def trend_analysis(ctx: RuleContext) -> RuleResult:
    feedback = ctx.data.get("feedback", [])
    if len(feedback) < TREND_MIN_ENTRIES:
        return RuleResult(message="Insufficient feedback data for trend analysis")

    trends = analyze_trends(feedback)
    ctx.data.setdefault("feedback_analysis", {})["trends"] = trends
    return RuleResult(modified=True, message="Completed feedback trend analysis", data=trends)


def build_rules() -> List[Rule]:
    return [
        build_rule(RULE_SET, "prioritization", feedback_prioritization, 185, RuleType.ON_DEMAND,
                   "Derives a priority factor from recent feedback"),
        build_rule(RULE_SET, "explicit-capture", explicit_capture, 175, RuleType.ON_DEMAND,
                   "Captures explicit feedback from the user"),
        build_rule(RULE_SET, "implicit-capture", implicit_capture, 170, RuleType.ON_DEMAND,
                   "Infers feedback from repeated or continued requests"),
        build_rule(RULE_SET, "trend-analysis", trend_analysis, 160, RuleType.ON_DEMAND,
                   "Analyzes feedback trends over time"),
    ]
