from typing import Mapping, Optional
from datetime import timedelta
import structlog

from .config import CoreConfig
from .domain.context.compression import CompressionEngine
from .domain.context.context_store import ContextStore
from .domain.context.memory.tiered_memory import TieredMemoryManager
from .domain.feedback.feedback_service import FeedbackService
from .domain.models.rule import RuleSetDefinition
from .domain.orchestration.agent_service import AgentService, Responder, echo_responder
from .domain.rules.rule_engine import RuleEngine
from .domain.rules.rule_prioritization import RulePrioritization
from .domain.rules.rule_registry import RuleRegistry
from .domain.rules.rule_sets import BUILTIN_RULE_SETS
from .domain.rules.trigger_classifier import KeywordTriggerClassifier, TriggerClassifier
from .infrastructure.observability.logging import setup_logging
from .infrastructure.observability.metrics import MetricsCollector
from .infrastructure.storage.durable_store import DurableStore, InMemoryDurableStore, StoreGateway

logger = structlog.get_logger(__name__)


class Core:
    """The wired components of one context core instance"""

    def __init__(
        self,
        config: CoreConfig,
        gateway: StoreGateway,
        context_store: ContextStore,
        rule_engine: RuleEngine,
        metrics: MetricsCollector,
        agent_service: AgentService,
        feedback_service: FeedbackService
    ):
        self.config = config
        self.gateway = gateway
        self.context_store = context_store
        self.rule_engine = rule_engine
        self.metrics = metrics
        self.agent_service = agent_service
        self.feedback_service = feedback_service

    async def initialize(self):
        return await self.agent_service.initialize()


def create_core(
    config: Optional[CoreConfig] = None,
    store: Optional[DurableStore] = None,
    rule_sets: Optional[Mapping[str, RuleSetDefinition]] = None,
    trigger_classifier: Optional[TriggerClassifier] = None,
    responder: Responder = echo_responder,
    configure_logging: bool = False
) -> Core:
    """Build every component from a config; call ``initialize`` before use"""

    config = config or CoreConfig()

    if configure_logging:
        setup_logging(
            log_level=config.log_level,
            log_format=config.log_format,
            service_name=config.service_name
        )

    gateway = StoreGateway(store or InMemoryDurableStore(), timeout=config.store_timeout_seconds)

    memory = TieredMemoryManager(
        short_term_capacity=config.short_term_capacity,
        working_capacity=config.working_capacity,
        long_term_capacity=config.long_term_capacity,
        working_promotion_threshold=config.working_promotion_threshold,
        long_term_promotion_threshold=config.long_term_promotion_threshold
    )
    compression = CompressionEngine(
        min_size=config.compression_min_size,
        medium_size=config.compression_medium_size,
        high_size=config.compression_high_size
    )
    context_store = ContextStore(
        gateway,
        memory=memory,
        compression=compression,
        max_interactions=config.max_interactions,
        retained_head=config.retained_head_interactions,
        session_index_capacity=config.session_index_capacity,
        feedback_limit=config.feedback_limit,
        recent_window=timedelta(seconds=config.recent_window_seconds),
        important_request_length=config.important_request_length,
        important_response_length=config.important_response_length,
        require_durable_create=config.require_durable_create
    )

    prioritization = RulePrioritization(
        gateway,
        alpha=config.effectiveness_alpha,
        default_score=config.default_effectiveness,
        adjustment_trigger_delta=config.adjustment_trigger_delta,
        max_adjustment=config.max_priority_adjustment
    )
    rule_engine = RuleEngine(
        RuleRegistry(BUILTIN_RULE_SETS if rule_sets is None else rule_sets),
        prioritization=prioritization,
        rule_timeout=config.rule_timeout_seconds
    )

    metrics = MetricsCollector(gateway, limit=config.metrics_limit)
    agent_service = AgentService(
        context_store,
        rule_engine,
        trigger_classifier=trigger_classifier or KeywordTriggerClassifier(),
        responder=responder,
        metrics=metrics
    )
    feedback_service = FeedbackService(gateway, context_store, rule_engine, limit=config.feedback_limit)

    logger.info("Context core created", service=config.service_name)
    return Core(
        config=config,
        gateway=gateway,
        context_store=context_store,
        rule_engine=rule_engine,
        metrics=metrics,
        agent_service=agent_service,
        feedback_service=feedback_service
    )
