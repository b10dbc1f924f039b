from typing import List, Optional, Tuple
import re

from contextcore.domain.models.rule import Rule, RuleContext, RuleExecutor, RuleType

CODE_BLOCK_PATTERN = re.compile(r"```([\w+#-]*)[ \t]*\n(.*?)```", re.DOTALL)
CODE_LANGUAGES = {
    "python", "py", "javascript", "js", "typescript", "ts", "java", "go",
    "rust", "ruby", "kotlin", "swift", "c", "cpp", "c++", "csharp", "c#",
}


def build_rule(
    rule_set: str,
    name: str,
    execute: RuleExecutor,
    priority: int,
    rule_type: RuleType,
    description: str = ""
) -> Rule:
    """Rule whose id is namespaced under its rule set"""

    return Rule(
        id=f"{rule_set}:{name}",
        name=name.replace("-", " ").title(),
        type=rule_type,
        priority=priority,
        description=description,
        execute=execute
    )


def add_guideline(ctx: RuleContext, guideline: str) -> bool:
    """Attach a guideline to the request once; returns whether it was new"""

    guidelines = ctx.request.metadata.setdefault("guidelines", [])
    if guideline in guidelines:
        return False
    guidelines.append(guideline)
    return True


def code_blocks(text: Optional[str]) -> List[Tuple[str, str]]:
    """(language, code) for each fenced block in a code language"""

    blocks = []
    for match in CODE_BLOCK_PATTERN.finditer(text or ""):
        language = (match.group(1) or "").lower()
        if language in CODE_LANGUAGES:
            blocks.append((language, match.group(2)))
    return blocks


def mentions(ctx: RuleContext, *words: str) -> bool:
    """True when the request command or content names any of ``words``"""

    haystack = f"{ctx.request.command or ''} {ctx.request.content or ''}".lower()
    return any(re.search(rf"\b{re.escape(word)}\b", haystack) for word in words)
