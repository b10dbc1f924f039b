from typing import Dict, Any, Awaitable, Callable, Optional
from datetime import datetime
import time
import uuid
import structlog

from contextcore.domain.context.context_store import ContextStore
from contextcore.domain.models.context import Context
from contextcore.domain.models.records import AgentRequest, AgentResponse
from contextcore.domain.rules.rule_engine import RuleEngine
from contextcore.domain.rules.trigger_classifier import KeywordTriggerClassifier, TriggerClassifier
from contextcore.infrastructure.observability.logging import bind_request_context, clear_request_context
from contextcore.infrastructure.observability.metrics import MetricsCollector

logger = structlog.get_logger(__name__)

Responder = Callable[[AgentRequest, Context], Awaitable[AgentResponse]]


async def echo_responder(request: AgentRequest, context: Context) -> AgentResponse:
    """Placeholder response generator"""

    return AgentResponse(
        request_id=request.id,
        content=f"Response to: {request.content}",
        metadata={
            "generated_at": datetime.utcnow().isoformat(),
            "context_id": context.id,
        }
    )


class AgentService:
    """Runs a request through triggers, context, rules and response generation"""

    def __init__(
        self,
        context_store: ContextStore,
        rule_engine: RuleEngine,
        trigger_classifier: Optional[TriggerClassifier] = None,
        responder: Responder = echo_responder,
        metrics: Optional[MetricsCollector] = None
    ):
        self.context_store = context_store
        self.rule_engine = rule_engine
        self.trigger_classifier = trigger_classifier or KeywordTriggerClassifier()
        self.responder = responder
        self.metrics = metrics or MetricsCollector()
        self.task_queue: Dict[str, float] = {}

    async def initialize(self) -> Dict[str, str]:
        """Load persisted rule state and the always-active rule sets"""

        result = await self.rule_engine.initialize()
        await self.rule_engine.load_always_active_rules()
        logger.info("Agent service initialized")
        return result

    async def process_request(self, request: AgentRequest) -> AgentResponse:
        """Answer a request; failures become an error response instead of raising"""

        task_id = str(uuid.uuid4())
        started = time.time()
        self.task_queue[task_id] = started
        bind_request_context(trace_id=task_id, session_id=request.session_id)

        try:
            triggers = self.trigger_classifier.classify(request.content)
            await self.rule_engine.load_on_demand_rules(triggers)

            context = await self.context_store.get_context(request.session_id)
            application = await self.rule_engine.apply_rules(request, context)

            response = await self.responder(application.request, context)
            response.metadata.setdefault("applied_rules", application.applied_rules)

            await self.context_store.update_context(request.session_id, request, response)

            duration_ms = (time.time() - started) * 1000
            self.metrics.record_latency("process_request", duration_ms)
            self.metrics.increment_counter("requests.completed")
            await self.metrics.record_metrics("agent", {
                "request_id": request.id,
                "session_id": request.session_id,
                "duration_ms": duration_ms,
                "triggers": sorted(triggers),
                "applied_rules": len(application.applied_rules),
                "failed_rules": len(application.failed_rules),
                "modified": application.modified,
            })

            logger.info(
                "Processed request",
                request_id=request.id,
                triggers=sorted(triggers),
                duration_ms=duration_ms
            )
            return response

        except Exception as e:
            logger.error(
                "Request processing failed",
                request_id=request.id,
                error=str(e),
                exc_info=True
            )
            self.metrics.increment_counter("requests.failed")
            return AgentResponse(
                request_id=request.id,
                content=f"Error processing request: {e}",
                metadata={
                    "error": True,
                    "error_type": type(e).__name__,
                }
            )

        finally:
            self.task_queue.pop(task_id, None)
            clear_request_context()

    def get_task_queue_status(self) -> Dict[str, Any]:
        """Number of in-flight requests and the age of the oldest, in ms"""

        if not self.task_queue:
            return {"count": 0, "oldest_task_ms": None}

        now = time.time()
        return {
            "count": len(self.task_queue),
            "oldest_task_ms": (now - min(self.task_queue.values())) * 1000,
        }
