from typing import List

from contextcore.domain.models.rule import Rule, RuleContext, RuleResult, RuleType
from .common import build_rule

RULE_SET = "rule-prioritization"


async def priority_order(ctx: RuleContext) -> RuleResult:
    """Record where in the pipeline this request entered"""

    ctx.data.setdefault("pipeline", []).append("priority-order")
    return RuleResult(message="Rules executing in priority order")


async def dependency_management(ctx: RuleContext) -> RuleResult:
    missing = [key for key in ("interactions", "user_preferences") if key not in ctx.data]
    if missing:
        return RuleResult(message="Context not loaded", data={"missing": missing})
    return RuleResult(message="Context dependencies satisfied")


async def conflict_resolution(ctx: RuleContext) -> RuleResult:
    """An explicit style on the request beats the stored preference"""

    requested = ctx.request.metadata.get("requested_style")
    preferred = ctx.data.get("user_preferences", {}).get("response_style")
    if not requested or requested == preferred:
        return RuleResult(message="No conflicts")

    ctx.data.setdefault("user_preferences", {})["response_style"] = requested
    return RuleResult(
        modified=True,
        message="Resolved response style conflict",
        data={"requested": requested, "preferred": preferred}
    )


def build_rules() -> List[Rule]:
    return [
        build_rule(RULE_SET, "priority-order", priority_order, 200, RuleType.ENHANCEMENT,
                   "Marks the start of prioritised execution"),
        build_rule(RULE_SET, "dependency-management", dependency_management, 195, RuleType.ENHANCEMENT,
                   "Checks that context dependencies are present"),
        build_rule(RULE_SET, "conflict-resolution", conflict_resolution, 190, RuleType.ENHANCEMENT,
                   "Resolves competing response style settings"),
    ]
