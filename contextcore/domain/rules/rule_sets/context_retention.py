"""
Context retention rules.

These only look at the working copy of the context; the context store owns
trimming, compression and persistence.
"""

from typing import List
from datetime import datetime, timedelta
import re

from contextcore.domain.models.rule import Rule, RuleContext, RuleResult, RuleType
from .common import build_rule

RULE_SET = "context-retention"
LARGE_HISTORY = 15
STALE_AFTER = timedelta(days=7)
MAX_RELATED_ITEMS = 3


async def context_retrieval(ctx: RuleContext) -> RuleResult:
    """Point the request at knowledge items that share identifiers with it"""

    words = set(re.findall(r"\w+", (ctx.request.content or "").lower()))
    related = []
    for key, item in ctx.data.get("knowledge_base", {}).items():
        code = item.get("code", "") if isinstance(item, dict) else str(item)
        if words.intersection(re.findall(r"\w+", code.lower())):
            related.append(key)
        if len(related) >= MAX_RELATED_ITEMS:
            break

    if not related:
        return RuleResult(message="No related knowledge")

    ctx.request.metadata["related_knowledge"] = related
    return RuleResult(modified=True, message="Attached related knowledge", data={"related": related})


async def context_compression(ctx: RuleContext) -> RuleResult:
    count = len(ctx.data.get("interactions", []))
    if count < LARGE_HISTORY:
        return RuleResult(message="History within budget", data={"interactions": count})

    ctx.request.metadata["history_trimmed"] = True
    return RuleResult(modified=True, message="History near the interaction cap", data={"interactions": count})


async def key_information(ctx: RuleContext) -> RuleResult:
    entities = ctx.data.get("entity_recognition", {})
    if not entities:
        return RuleResult(message="No tracked entities")

    top = sorted(entities, key=lambda name: -entities[name])[:5]
    ctx.request.metadata["key_entities"] = top
    return RuleResult(modified=True, message="Attached key entities", data={"entities": top})


async def context_expiration(ctx: RuleContext) -> RuleResult:
    cutoff = datetime.utcnow() - STALE_AFTER
    stale = 0
    for item in ctx.data.get("interactions", []):
        try:
            if datetime.fromisoformat(item.get("timestamp", "")) < cutoff:
                stale += 1
        except (TypeError, ValueError):
            continue

    return RuleResult(message="Checked interaction age", data={"stale_interactions": stale})


def build_rules() -> List[Rule]:
    return [
        build_rule(RULE_SET, "retrieval", context_retrieval, 155, RuleType.ENHANCEMENT,
                   "Retrieves relevant knowledge for the request"),
        build_rule(RULE_SET, "compression", context_compression, 150, RuleType.ENHANCEMENT,
                   "Flags long histories"),
        build_rule(RULE_SET, "key-information", key_information, 145, RuleType.ENHANCEMENT,
                   "Surfaces frequently mentioned entities"),
        build_rule(RULE_SET, "expiration", context_expiration, 140, RuleType.ENHANCEMENT,
                   "Counts interactions older than a week"),
    ]
