"""
Code quality rules, loaded for implementation, review and refactoring work.

Each rule adds a guideline to ``request.metadata["guidelines"]`` when the
request is about code, and reports findings for code blocks already present
in the request.
"""

from typing import List
import re

from contextcore.domain.models.rule import Rule, RuleContext, RuleResult, RuleType
from .common import add_guideline, build_rule, code_blocks, mentions

RULE_SET = "code-quality-development"
CODE_WORDS = ("code", "function", "class", "method", "implement", "refactor", "review")

_BARE_EXCEPT = re.compile(r"^\s*except\s*:", re.MULTILINE)
_EMPTY_CATCH = re.compile(r"catch\s*\([^)]*\)\s*\{\s*\}")
_INSECURE_CALLS = re.compile(r"\b(eval|exec)\s*\(|innerHTML\s*=|pickle\.loads\s*\(|shell\s*=\s*True")
_NESTED_LOOP = re.compile(r"for\b[^\n]*\n(?:[ \t]+[^\n]*\n)*?[ \t]+for\b")
_GLOBAL_STATE = re.compile(r"^\s*global\s+\w+", re.MULTILINE)


def _findings(ctx: RuleContext, pattern: re.Pattern) -> int:
    return sum(1 for _, code in code_blocks(ctx.request.content) if pattern.search(code))


async def error_handling(ctx: RuleContext) -> RuleResult:
    if not mentions(ctx, *CODE_WORDS):
        return RuleResult(message="Not a code request")

    issues = _findings(ctx, _BARE_EXCEPT) + _findings(ctx, _EMPTY_CATCH)
    added = add_guideline(ctx, "Handle errors explicitly; avoid bare or empty exception handlers")
    return RuleResult(modified=added, message="Applied error handling guideline", data={"issues": issues})


async def security_best_practices(ctx: RuleContext) -> RuleResult:
    if not mentions(ctx, *CODE_WORDS):
        return RuleResult(message="Not a code request")

    issues = _findings(ctx, _INSECURE_CALLS)
    added = add_guideline(ctx, "Validate inputs and avoid dynamic evaluation of untrusted data")
    return RuleResult(modified=added, message="Applied security guideline", data={"issues": issues})


async def performance_optimization(ctx: RuleContext) -> RuleResult:
    if not mentions(ctx, *CODE_WORDS):
        return RuleResult(message="Not a code request")

    issues = _findings(ctx, _NESTED_LOOP)
    added = add_guideline(ctx, "Prefer linear algorithms and avoid repeated work inside loops")
    return RuleResult(modified=added, message="Applied performance guideline", data={"issues": issues})


async def testability(ctx: RuleContext) -> RuleResult:
    if not mentions(ctx, *CODE_WORDS):
        return RuleResult(message="Not a code request")

    issues = _findings(ctx, _GLOBAL_STATE)
    added = add_guideline(ctx, "Keep functions small and inject dependencies so they can be tested")
    return RuleResult(modified=added, message="Applied testability guideline", data={"issues": issues})


def build_rules() -> List[Rule]:
    return [
        build_rule(RULE_SET, "security-best-practices", security_best_practices, 95, RuleType.ON_DEMAND,
                   "Ensures code follows security best practices"),
        build_rule(RULE_SET, "error-handling", error_handling, 90, RuleType.ON_DEMAND,
                   "Ensures code includes proper error handling"),
        build_rule(RULE_SET, "performance-optimization", performance_optimization, 85, RuleType.ON_DEMAND,
                   "Ensures code follows performance best practices"),
        build_rule(RULE_SET, "testability", testability, 80, RuleType.ON_DEMAND,
                   "Ensures code is structured for testing"),
    ]
