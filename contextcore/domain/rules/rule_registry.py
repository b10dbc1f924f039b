from typing import Dict, List, Iterable, Mapping, Optional
import asyncio
import structlog

from contextcore.domain.models.rule import Rule, RuleSetDefinition, RuleSetInfo, RuleSetStatus
from contextcore.exceptions import RuleSetNotFoundError
from contextcore.infrastructure.observability.logging import CoreLogger

logger = structlog.get_logger(__name__)
core_logger = CoreLogger(__name__)


class RuleRegistry:
    """Rule set definitions plus the set of currently active rules.

    Each rule set moves unloaded -> loading -> active -> unloaded. Loading
    and unloading are all-or-nothing for the set's rule ids, which share the
    ``<rule set>:`` prefix.
    """

    def __init__(self, rule_sets: Optional[Mapping[str, RuleSetDefinition]] = None):
        self.rule_sets: Dict[str, RuleSetDefinition] = {}
        self.statuses: Dict[str, RuleSetStatus] = {}
        self.active_rules: Dict[str, Rule] = {}
        self._lock = asyncio.Lock()

        for definition in (rule_sets or {}).values():
            self.register_rule_set(definition)

    def register_rule_set(self, definition: RuleSetDefinition):
        """Make a rule set known to the registry"""

        self.rule_sets[definition.name] = definition
        self.statuses.setdefault(definition.name, RuleSetStatus.UNLOADED)

    def get_rule_set(self, name: str) -> RuleSetDefinition:
        definition = self.rule_sets.get(name)
        if definition is None:
            raise RuleSetNotFoundError(name)
        return definition

    def rule_sets_for_triggers(self, triggers: Iterable[str]) -> List[RuleSetDefinition]:
        """Rule sets whose trigger list intersects ``triggers``"""

        wanted = set(triggers)
        return [
            definition for definition in self.rule_sets.values()
            if definition.matches(wanted)
        ]

    def always_active_rule_sets(self) -> List[RuleSetDefinition]:
        return [definition for definition in self.rule_sets.values() if definition.always_active]

    def is_active(self, name: str) -> bool:
        """A set counts as active once any of its rule ids is active"""

        prefix = f"{name}:"
        return any(rule_id.startswith(prefix) for rule_id in self.active_rules)

    async def load_rule_set(self, name: str) -> List[Rule]:
        """Activate every rule of a set; returns the newly activated rules"""

        definition = self.get_rule_set(name)

        async with self._lock:
            if self.is_active(name) or self.statuses.get(name) == RuleSetStatus.LOADING:
                return []

            self._transition(name, RuleSetStatus.LOADING)
            try:
                rules = self._build_rules(definition)
            except Exception as e:
                logger.error("Failed to build rule set", rule_set=name, error=str(e))
                self._transition(name, RuleSetStatus.UNLOADED)
                return []

            for rule in rules:
                self.active_rules[rule.id] = rule

            self._transition(name, RuleSetStatus.ACTIVE, [rule.id for rule in rules])
            return rules

    async def unload_rule_set(self, name: str) -> List[Rule]:
        """Deactivate every rule whose id starts with ``<name>:``"""

        prefix = f"{name}:"

        async with self._lock:
            removed = [rule for rule_id, rule in self.active_rules.items() if rule_id.startswith(prefix)]
            for rule in removed:
                del self.active_rules[rule.id]

            if name in self.statuses and (removed or self.statuses[name] != RuleSetStatus.UNLOADED):
                self._transition(name, RuleSetStatus.UNLOADED, [rule.id for rule in removed])

            return removed

    def get_active_rules(self) -> List[Rule]:
        return list(self.active_rules.values())

    def list_rule_sets(self) -> List[RuleSetInfo]:
        """Summaries of every known rule set"""

        infos = []
        for name, definition in self.rule_sets.items():
            prefix = f"{name}:"
            infos.append(RuleSetInfo(
                name=name,
                version=definition.version,
                type=definition.type,
                status=self.statuses.get(name, RuleSetStatus.UNLOADED),
                triggers=list(definition.triggers),
                rule_count=sum(1 for rule_id in self.active_rules if rule_id.startswith(prefix))
            ))
        return infos

    def _build_rules(self, definition: RuleSetDefinition) -> List[Rule]:
        rules = list(definition.factory())
        prefix = f"{definition.name}:"

        for rule in rules:
            if not rule.id.startswith(prefix):
                raise ValueError(f"Rule {rule.id} does not belong to rule set {definition.name}")
            if definition.triggers and "triggers" not in rule.metadata:
                rule.metadata["triggers"] = list(definition.triggers)

        return rules

    def _transition(self, name: str, status: RuleSetStatus, rule_ids: Optional[List[str]] = None):
        previous = self.statuses.get(name, RuleSetStatus.UNLOADED)
        self.statuses[name] = status
        core_logger.log_rule_set_transition(
            rule_set=name,
            from_status=previous.value,
            to_status=status.value,
            rule_ids=rule_ids
        )
