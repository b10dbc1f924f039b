from .context import (
    Context,
    ContextData,
    ContextMetadata,
    Interaction,
    MemoryRecord,
    MemoryTier,
)
from .records import AgentRequest, AgentResponse, Feedback, MetricsRecord
from .rule import (
    ALWAYS_ACTIVE_TYPES,
    Rule,
    RuleApplication,
    RuleContext,
    RuleExecutor,
    RuleResult,
    RuleSetDefinition,
    RuleSetInfo,
    RuleSetStatus,
    RuleType,
)

__all__ = [
    "ALWAYS_ACTIVE_TYPES",
    "AgentRequest",
    "AgentResponse",
    "Context",
    "ContextData",
    "ContextMetadata",
    "Feedback",
    "Interaction",
    "MemoryRecord",
    "MemoryTier",
    "MetricsRecord",
    "Rule",
    "RuleApplication",
    "RuleContext",
    "RuleExecutor",
    "RuleResult",
    "RuleSetDefinition",
    "RuleSetInfo",
    "RuleSetStatus",
    "RuleType",
]
