from .rule_engine import RuleEngine
from .rule_prioritization import ADJUSTMENTS_KEY, EFFECTIVENESS_KEY, RulePrioritization
from .rule_registry import RuleRegistry
from .rule_sets import BUILTIN_RULE_SETS
from .trigger_classifier import DEFAULT_VOCABULARY, KeywordTriggerClassifier, TriggerClassifier

__all__ = [
    "ADJUSTMENTS_KEY",
    "BUILTIN_RULE_SETS",
    "DEFAULT_VOCABULARY",
    "EFFECTIVENESS_KEY",
    "KeywordTriggerClassifier",
    "RuleEngine",
    "RulePrioritization",
    "RuleRegistry",
    "TriggerClassifier",
]
