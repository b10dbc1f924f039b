from typing import Dict, List, Any, Iterable, Optional, Union
import asyncio
import copy
import time
import structlog

from contextcore.domain.models.context import Context, ContextData
from contextcore.domain.models.records import AgentRequest
from contextcore.domain.models.rule import Rule, RuleApplication, RuleContext, RuleResult, RuleSetInfo
from contextcore.infrastructure.observability.logging import CoreLogger
from .rule_prioritization import RulePrioritization
from .rule_registry import RuleRegistry

logger = structlog.get_logger(__name__)
core_logger = CoreLogger(__name__)


class RuleEngine:
    """Loads rule sets on demand and applies active rules in priority order"""

    def __init__(
        self,
        registry: RuleRegistry,
        prioritization: Optional[RulePrioritization] = None,
        rule_timeout: Optional[float] = None
    ):
        self.registry = registry
        self.prioritization = prioritization or RulePrioritization()
        self.rule_timeout = rule_timeout

    async def initialize(self) -> Dict[str, str]:
        """Load persisted effectiveness state"""

        logger.info("Initializing rule engine", rule_sets=len(self.registry.rule_sets))
        await self.prioritization.initialize()
        return {"status": "success"}

    async def load_always_active_rules(self) -> List[Rule]:
        """Load every core and enhancement rule set once"""

        loaded: List[Rule] = []
        for definition in self.registry.always_active_rule_sets():
            loaded.extend(await self.registry.load_rule_set(definition.name))

        if loaded:
            await self.prioritization.register_rules(loaded)

        logger.info("Loaded always-active rules", count=len(loaded))
        return loaded

    async def load_on_demand_rules(self, triggers: Iterable[str]) -> List[Rule]:
        """Load every rule set whose triggers match; already active sets are skipped"""

        triggers = set(triggers)
        if not triggers:
            return []

        loaded: List[Rule] = []
        for definition in self.registry.rule_sets_for_triggers(triggers):
            if self.registry.is_active(definition.name):
                continue
            loaded.extend(await self.registry.load_rule_set(definition.name))

        if loaded:
            await self.prioritization.register_rules(loaded)

        logger.info(
            "Loaded on-demand rules",
            triggers=sorted(triggers),
            count=len(loaded)
        )
        return loaded

    async def unload_rule(self, rule_set_name: str) -> bool:
        """Unload an on-demand rule set; always-active sets are refused"""

        definition = self.registry.rule_sets.get(rule_set_name)
        if definition is not None and definition.always_active:
            logger.warning("Refusing to unload always-active rule set", rule_set=rule_set_name)
            return False

        removed = await self.registry.unload_rule_set(rule_set_name)
        for rule in removed:
            await self.prioritization.unregister_rule(rule.id)

        return bool(removed)

    async def get_active_rules(self) -> List[Rule]:
        return self.registry.get_active_rules()

    def get_prioritized_rules(self) -> List[Rule]:
        return self.prioritization.get_prioritized_rules(self.registry.get_active_rules())

    def list_rule_sets(self) -> List[RuleSetInfo]:
        return self.registry.list_rule_sets()

    async def record_rule_effectiveness(self, rule_id: str, score: float) -> float:
        return await self.prioritization.record_rule_effectiveness(rule_id, score)

    async def apply_rules(
        self,
        request: AgentRequest,
        context: Union[Context, Dict[str, Any], None] = None
    ) -> RuleApplication:
        """Run every active rule over a working copy of the request and context.

        A rule that raises or times out is logged and skipped; it does not
        stop the remaining rules and does not count as a modification.
        """

        rule_context = RuleContext(
            request_id=request.id,
            session_id=request.session_id,
            request=request.model_copy(deep=True),
            data=self._working_data(context)
        )

        rules = self.get_prioritized_rules()
        application = RuleApplication(request=rule_context.request)

        for rule in rules:
            started = time.perf_counter()
            try:
                result = await self._execute(rule, rule_context)
                if not isinstance(result, RuleResult):
                    result = RuleResult.model_validate(result)
            except asyncio.TimeoutError:
                application.failed_rules.append(rule.id)
                core_logger.log_rule_execution(
                    rule_id=rule.id,
                    session_id=request.session_id,
                    success=False,
                    duration_ms=(time.perf_counter() - started) * 1000,
                    error=f"timed out after {self.rule_timeout}s"
                )
                continue
            except Exception as e:
                application.failed_rules.append(rule.id)
                core_logger.log_rule_execution(
                    rule_id=rule.id,
                    session_id=request.session_id,
                    success=False,
                    duration_ms=(time.perf_counter() - started) * 1000,
                    error=str(e)
                )
                continue

            application.results[rule.id] = result
            application.applied_rules.append(rule.id)
            if result.modified:
                application.modified = True

            self.prioritization.record_rule_application(rule.id)
            core_logger.log_rule_execution(
                rule_id=rule.id,
                session_id=request.session_id,
                success=result.success,
                modified=result.modified,
                duration_ms=(time.perf_counter() - started) * 1000
            )

        application.request = rule_context.request
        application.context = rule_context.data
        return application

    async def _execute(self, rule: Rule, rule_context: RuleContext) -> RuleResult:
        if self.rule_timeout is None:
            return await rule.execute(rule_context)
        return await asyncio.wait_for(rule.execute(rule_context), timeout=self.rule_timeout)

    @staticmethod
    def _working_data(context: Union[Context, Dict[str, Any], None]) -> Dict[str, Any]:
        if context is None:
            return {}

        if isinstance(context, dict):
            return copy.deepcopy(context)

        if isinstance(context.data, ContextData):
            return context.data.model_dump(mode="json")

        logger.warning(
            "Applying rules to an encoded context; rules see empty data",
            session_id=context.session_id,
            compression_level=context.metadata.compression_level
        )
        return {}
