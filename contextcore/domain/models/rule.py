from typing import Dict, Any, List, Optional, Callable, Awaitable
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum

from .records import AgentRequest, AgentResponse


class RuleType(str, Enum):
    """Rule categories"""
    CORE = "core"
    ENHANCEMENT = "enhancement"
    ON_DEMAND = "on-demand"
    SPECIAL = "special"


ALWAYS_ACTIVE_TYPES = frozenset({RuleType.CORE, RuleType.ENHANCEMENT})


class RuleSetStatus(str, Enum):
    """Lifecycle of a rule set inside the registry"""
    UNLOADED = "unloaded"
    LOADING = "loading"
    ACTIVE = "active"


class RuleContext(BaseModel):
    """Mutable working copy handed to each rule"""
    request_id: str
    session_id: str
    request: AgentRequest
    response: Optional[AgentResponse] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class RuleResult(BaseModel):
    """Outcome of one rule execution"""
    success: bool = True
    modified: bool = False
    message: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)


RuleExecutor = Callable[[RuleContext], Awaitable[RuleResult]]


class Rule(BaseModel):
    """A content transform with a mutable priority"""
    id: str = Field(description="Namespaced id, '<rule set>:<rule name>'")
    name: str
    type: RuleType = RuleType.ON_DEMAND
    priority: int = 50
    description: str = ""
    execute: RuleExecutor
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def rule_set(self) -> str:
        return self.id.split(":", 1)[0]

    @property
    def triggers(self) -> List[str]:
        return list(self.metadata.get("triggers", []))


class RuleSetDefinition(BaseModel):
    """Named, versioned bundle of rules built on demand by ``factory``"""
    model_config = ConfigDict(frozen=True)

    name: str
    version: str = "1.0.0"
    type: RuleType = RuleType.ON_DEMAND
    triggers: List[str] = Field(default_factory=list)
    description: str = ""
    factory: Callable[[], List[Rule]]

    @property
    def always_active(self) -> bool:
        return self.type in ALWAYS_ACTIVE_TYPES

    def matches(self, triggers) -> bool:
        return any(trigger in triggers for trigger in self.triggers)


class RuleSetInfo(BaseModel):
    """Read-only view of a rule set's state"""
    name: str
    version: str
    type: RuleType
    status: RuleSetStatus
    triggers: List[str] = Field(default_factory=list)
    rule_count: int = 0


class RuleApplication(BaseModel):
    """Result of running the active rules over a request"""
    request: AgentRequest
    modified: bool = False
    context: Dict[str, Any] = Field(default_factory=dict)
    results: Dict[str, RuleResult] = Field(default_factory=dict)
    applied_rules: List[str] = Field(default_factory=list)
    failed_rules: List[str] = Field(default_factory=list)
