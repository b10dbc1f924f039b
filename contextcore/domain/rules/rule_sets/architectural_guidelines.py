from typing import List

from contextcore.domain.models.rule import Rule, RuleContext, RuleResult, RuleType
from .common import add_guideline, build_rule, mentions

RULE_SET = "architectural-guidelines"


async def separation_of_concerns(ctx: RuleContext) -> RuleResult:
    added = add_guideline(ctx, "Keep domain logic independent of transport and storage layers")
    return RuleResult(modified=added, message="Applied separation of concerns guideline")


async def dependency_direction(ctx: RuleContext) -> RuleResult:
    added = add_guideline(ctx, "Dependencies point inward; infrastructure depends on the domain")
    return RuleResult(modified=added, message="Applied dependency direction guideline")


async def scalability(ctx: RuleContext) -> RuleResult:
    if not mentions(ctx, "scale", "scalability", "load", "traffic", "performance"):
        return RuleResult(message="No scalability concerns raised")

    added = add_guideline(ctx, "Identify stateful components and how they scale horizontally")
    return RuleResult(modified=added, message="Applied scalability guideline")


async def migration_planning(ctx: RuleContext) -> RuleResult:
    if not mentions(ctx, "migration", "migrate", "restructure", "reorganize", "split", "merge"):
        return RuleResult(message="No structural change requested")

    added = add_guideline(ctx, "Plan structural changes as small, reversible steps")
    return RuleResult(modified=added, message="Applied migration planning guideline")


def build_rules() -> List[Rule]:
    return [
        build_rule(RULE_SET, "separation-of-concerns", separation_of_concerns, 90, RuleType.ON_DEMAND,
                   "Keeps layers focused on a single responsibility"),
        build_rule(RULE_SET, "dependency-direction", dependency_direction, 85, RuleType.ON_DEMAND,
                   "Keeps dependencies pointing toward the domain"),
        build_rule(RULE_SET, "scalability", scalability, 80, RuleType.ON_DEMAND,
                   "Raises scaling considerations"),
        build_rule(RULE_SET, "migration-planning", migration_planning, 75, RuleType.ON_DEMAND,
                   "Breaks structural changes into safe steps"),
    ]
