from typing import Dict

from contextcore.domain.models.rule import RuleSetDefinition, RuleType
from . import (
    architectural_guidelines,
    code_quality,
    context_retention,
    core_agent_behavior,
    feedback_integration,
    prioritization_rules,
)

BUILTIN_RULE_SETS: Dict[str, RuleSetDefinition] = {
    definition.name: definition
    for definition in (
        RuleSetDefinition(
            name=core_agent_behavior.RULE_SET,
            type=RuleType.CORE,
            description="Fundamental behavior patterns for the agent",
            factory=core_agent_behavior.build_rules
        ),
        RuleSetDefinition(
            name=prioritization_rules.RULE_SET,
            type=RuleType.ENHANCEMENT,
            description="Controls how rules are prioritized and executed",
            factory=prioritization_rules.build_rules
        ),
        RuleSetDefinition(
            name=context_retention.RULE_SET,
            type=RuleType.ENHANCEMENT,
            description="Controls how conversation context is maintained and used",
            factory=context_retention.build_rules
        ),
        RuleSetDefinition(
            name=feedback_integration.RULE_SET,
            type=RuleType.ON_DEMAND,
            triggers=["feedback", "rating", "review"],
            description="Captures and applies user feedback",
            factory=feedback_integration.build_rules
        ),
        RuleSetDefinition(
            name=code_quality.RULE_SET,
            type=RuleType.ON_DEMAND,
            triggers=["code_implementation", "code_review", "refactoring"],
            description="Code quality guidelines for development work",
            factory=code_quality.build_rules
        ),
        RuleSetDefinition(
            name=architectural_guidelines.RULE_SET,
            type=RuleType.ON_DEMAND,
            triggers=["system_design", "architecture_planning", "structural_changes"],
            description="Architectural guidelines for design work",
            factory=architectural_guidelines.build_rules
        ),
    )
}

__all__ = ["BUILTIN_RULE_SETS"]
