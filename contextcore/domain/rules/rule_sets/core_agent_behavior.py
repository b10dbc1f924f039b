"""
Core agent behavior rules.

Fundamental response shaping that runs for every request: response style,
tone, conversational context and a basic helpfulness check.
"""

from typing import List

from contextcore.domain.models.rule import Rule, RuleContext, RuleResult, RuleType
from .common import build_rule

RULE_SET = "core-agent-behavior"
CONTEXT_WINDOW = 3


async def concise_response(ctx: RuleContext) -> RuleResult:
    style = ctx.data.get("user_preferences", {}).get("response_style", "concise")
    if ctx.request.metadata.get("response_style") == style:
        return RuleResult(message="Response style already set")

    ctx.request.metadata["response_style"] = style
    return RuleResult(modified=True, message=f"Applied {style} response style", data={"response_style": style})


async def consistent_tone(ctx: RuleContext) -> RuleResult:
    if "tone" in ctx.request.metadata:
        return RuleResult(message="Tone set by caller")

    ctx.request.metadata["tone"] = "professional"
    return RuleResult(modified=True, message="Applied consistent tone")


async def context_awareness(ctx: RuleContext) -> RuleResult:
    """Carry the latest interaction summaries along with the request"""

    interactions = ctx.data.get("interactions", [])
    summaries = [item.get("summary", "") for item in interactions[-CONTEXT_WINDOW:] if item.get("summary")]
    if not summaries:
        return RuleResult(message="No prior interactions")

    ctx.request.metadata["conversation_context"] = summaries
    return RuleResult(
        modified=True,
        message="Attached conversation context",
        data={"interactions": len(summaries)}
    )


async def helpfulness(ctx: RuleContext) -> RuleResult:
    if not (ctx.request.content or ctx.request.command):
        return RuleResult(success=False, message="Request has no content to act on")
    return RuleResult(message="Request is actionable")


def build_rules() -> List[Rule]:
    return [
        build_rule(RULE_SET, "concise-response", concise_response, 100, RuleType.CORE,
                   "Keeps responses concise unless the user prefers detail"),
        build_rule(RULE_SET, "consistent-tone", consistent_tone, 90, RuleType.CORE,
                   "Maintains a consistent professional tone"),
        build_rule(RULE_SET, "context-awareness", context_awareness, 95, RuleType.CORE,
                   "Considers the recent conversation"),
        build_rule(RULE_SET, "helpfulness", helpfulness, 85, RuleType.CORE,
                   "Flags requests with nothing actionable"),
    ]
