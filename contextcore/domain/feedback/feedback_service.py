from typing import List, Any, Iterable
import structlog
from pydantic import ValidationError

from contextcore.domain.context.context_store import ContextStore
from contextcore.domain.models.records import Feedback
from contextcore.domain.rules.rule_engine import RuleEngine
from contextcore.infrastructure.storage.durable_store import StoreGateway

logger = structlog.get_logger(__name__)

FEEDBACK_KEY = "feedback"


class FeedbackService:
    """Stores user feedback and feeds it back into rule effectiveness"""

    def __init__(
        self,
        gateway: StoreGateway,
        context_store: ContextStore,
        rule_engine: RuleEngine,
        limit: int = 100
    ):
        self.gateway = gateway
        self.context_store = context_store
        self.rule_engine = rule_engine
        self.limit = limit

    async def store_feedback(self, feedback: Feedback) -> None:
        """Record feedback on the session, globally, and against the rated rules"""

        await self.context_store.record_feedback(feedback.session_id, feedback)
        await self.gateway.append_capped(FEEDBACK_KEY, feedback.model_dump(mode="json"), self.limit)

        for rule_id in feedback.rule_ids:
            await self.rule_engine.record_rule_effectiveness(rule_id, feedback.score)

        logger.info(
            "Stored feedback",
            session_id=feedback.session_id,
            request_id=feedback.request_id,
            score=feedback.score,
            rules=len(feedback.rule_ids)
        )

    async def get_feedback(self, session_id: str) -> List[Feedback]:
        """Feedback recorded on a session's context"""

        context = await self.context_store.get_context(session_id)
        if isinstance(context.data, str):
            return []
        return self._parse(context.data.feedback)

    async def get_all_feedback(self) -> List[Feedback]:
        """The most recent feedback across all sessions, oldest first"""

        stored = await self.gateway.get_json(FEEDBACK_KEY, default=[])
        if not isinstance(stored, list):
            return []
        return self._parse(stored)

    @staticmethod
    def _parse(items: Iterable[Any]) -> List[Feedback]:
        parsed = []
        for item in items:
            try:
                parsed.append(Feedback.model_validate(item))
            except ValidationError:
                logger.debug("Skipping non-feedback entry", entry_type=type(item).__name__)
        return parsed
