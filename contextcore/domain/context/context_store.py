from typing import Dict, List, Optional, Callable
from collections import OrderedDict
from datetime import datetime, timedelta
import structlog

from contextcore.domain.models.context import Context, ContextData, ContextMetadata, Interaction, MemoryTier
from contextcore.domain.models.records import AgentRequest, AgentResponse, Feedback
from contextcore.infrastructure.concurrency.keyed_lock import KeyedLock
from contextcore.infrastructure.observability.logging import CoreLogger
from contextcore.infrastructure.storage.durable_store import StoreGateway
from .compression import CompressionEngine
from .memory.tiered_memory import TieredMemoryManager
from .extractors import (
    DEFAULT_EXTRACTORS,
    Extractor,
    ImportancePredicate,
    Summarizer,
    build_summary,
    has_urgency_markers,
    summarize_interaction,
)

logger = structlog.get_logger(__name__)
core_logger = CoreLogger(__name__)

NEW_CONTEXT_SUMMARY = "New context created"


def context_key(session_id: str) -> str:
    return f"context:{session_id}"


class ContextStore:
    """Owns the Context lifecycle for every session.

    Reads go session index -> tiered memory -> durable store -> fresh context.
    Every update is persisted. Cached copies always hold decoded data; the
    durable copy may be compressed.
    """

    def __init__(
        self,
        gateway: StoreGateway,
        memory: Optional[TieredMemoryManager] = None,
        compression: Optional[CompressionEngine] = None,
        summarizer: Summarizer = summarize_interaction,
        extractors: Optional[List[Extractor]] = None,
        importance_predicate: ImportancePredicate = has_urgency_markers,
        max_interactions: int = 20,
        retained_head: int = 5,
        session_index_capacity: int = 100,
        feedback_limit: int = 100,
        recent_window: timedelta = timedelta(hours=1),
        important_request_length: int = 200,
        important_response_length: int = 500,
        require_durable_create: bool = False,
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        self.gateway = gateway
        self.memory = memory or TieredMemoryManager(clock=clock)
        self.compression = compression or CompressionEngine()
        self.summarizer = summarizer
        self.extractors = list(DEFAULT_EXTRACTORS if extractors is None else extractors)
        self.importance_predicate = importance_predicate
        self.max_interactions = max_interactions
        self.retained_head = retained_head
        self.session_index_capacity = session_index_capacity
        self.feedback_limit = feedback_limit
        self.recent_window = recent_window
        self.important_request_length = important_request_length
        self.important_response_length = important_response_length
        self.require_durable_create = require_durable_create
        self._clock = clock

        self._index: "OrderedDict[str, Context]" = OrderedDict()
        self._locks = KeyedLock()

    async def get_context(self, session_id: str) -> Context:
        """Resolve the decoded context for a session; never fails on absence"""

        async with self._locks.acquire(session_id):
            context = await self._resolve(session_id)
            return context.model_copy(deep=True)

    async def update_context(
        self,
        session_id: str,
        request: AgentRequest,
        response: AgentResponse
    ) -> Context:
        """Fold a request/response pair into the session context and persist it.

        Returns the persisted form, which is compressed when that helps.
        """

        async with self._locks.acquire(session_id):
            current = await self._resolve(session_id)
            previous_update = current.last_updated
            now = self._clock()

            updated = current.model_copy(deep=True)
            updated.last_updated = now
            data = updated.data

            data.interactions.append(Interaction(
                timestamp=now,
                request_ref=request.id,
                response_ref=response.id,
                summary=self._summarize(request, response)
            ))

            for extractor in self.extractors:
                try:
                    extractor(data, request, response)
                except Exception as e:
                    logger.warning(
                        "Context extractor failed",
                        session_id=session_id,
                        extractor=getattr(extractor, "__name__", repr(extractor)),
                        error=str(e)
                    )

            data.interactions = self.trim_interactions(data.interactions)
            updated.metadata.summary = build_summary(data)

            persisted = self.compression.compress_if_needed(updated)
            updated.metadata = self.compression.decoded_metadata(persisted.metadata)

            tier = self.classify_tier(previous_update, now, request, response)
            self._cache(session_id, updated, tier)

            await self.gateway.put_raw(context_key(session_id), persisted.model_dump_json())

            core_logger.log_context_update(
                session_id=session_id,
                tier=tier.value,
                action="update",
                details={
                    "interactions": len(data.interactions),
                    "compression_level": persisted.metadata.compression_level,
                    "original_size": persisted.metadata.original_size,
                    "compressed_size": persisted.metadata.compressed_size,
                }
            )

            return persisted.model_copy(deep=True)

    async def record_feedback(self, session_id: str, feedback: Feedback) -> Context:
        """Append feedback to the session context and persist it"""

        async with self._locks.acquire(session_id):
            current = await self._resolve(session_id)
            updated = current.model_copy(deep=True)
            updated.last_updated = self._clock()
            updated.data.feedback.append(feedback.model_dump(mode="json"))
            updated.data.feedback = updated.data.feedback[-self.feedback_limit:]
            updated.metadata.summary = build_summary(updated.data)

            persisted = self.compression.compress_if_needed(updated)
            updated.metadata = self.compression.decoded_metadata(persisted.metadata)

            tier = self.memory.tier_of(context_key(session_id)) or MemoryTier.WORKING
            self._cache(session_id, updated, tier)

            await self.gateway.put_raw(context_key(session_id), persisted.model_dump_json())
            return updated.model_copy(deep=True)

    def clear_session(self, session_id: str):
        """Drop in-process copies; the durable copy is kept"""

        self._index.pop(session_id, None)
        self.memory.forget(context_key(session_id))

    def trim_interactions(self, interactions: List[Interaction]) -> List[Interaction]:
        """Keep the first few and the most recent interactions once over the cap"""

        if len(interactions) <= self.max_interactions:
            return interactions

        tail = self.max_interactions - self.retained_head
        return interactions[:self.retained_head] + interactions[-tail:]

    def classify_tier(
        self,
        last_updated: datetime,
        now: datetime,
        request: AgentRequest,
        response: AgentResponse
    ) -> MemoryTier:
        """Pick a tier from recency and importance"""

        recent = (now - last_updated) < self.recent_window
        important = self.is_important(request, response)

        if recent and important:
            return MemoryTier.SHORT_TERM
        if recent or important:
            return MemoryTier.WORKING
        return MemoryTier.LONG_TERM

    def is_important(self, request: AgentRequest, response: AgentResponse) -> bool:
        try:
            flagged = self.importance_predicate(request, response)
        except Exception as e:
            logger.warning("Importance predicate failed", request_id=request.id, error=str(e))
            flagged = False

        return (
            flagged
            or len(request.content or "") > self.important_request_length
            or len(response.content or "") > self.important_response_length
        )

    def create_initial_context(self, session_id: str) -> Context:
        now = self._clock()
        return Context(
            session_id=session_id,
            created=now,
            last_updated=now,
            data=ContextData(),
            metadata=ContextMetadata(summary=NEW_CONTEXT_SUMMARY)
        )

    def get_stats(self) -> Dict[str, object]:
        return {
            "indexed_sessions": len(self._index),
            "memory": self.memory.get_stats(),
        }

    async def _resolve(self, session_id: str) -> Context:
        """Lookup chain shared by reads and updates; caller holds the session lock"""

        indexed = self._index.get(session_id)
        if indexed is not None:
            self._index.move_to_end(session_id)
            return indexed

        key = context_key(session_id)
        cached = self.memory.retrieve(key)
        if isinstance(cached, Context):
            self._remember(session_id, cached)
            return cached

        stored = await self._load_durable(session_id)
        if stored is not None:
            recent = (self._clock() - stored.last_updated) < self.recent_window
            tier = MemoryTier.WORKING if recent else MemoryTier.LONG_TERM
            self._cache(session_id, stored, tier)
            return stored

        context = self.create_initial_context(session_id)
        if self.require_durable_create:
            persisted = self.compression.compress_if_needed(context)
            await self.gateway.put_raw(key, persisted.model_dump_json(), strict=True)

        self._remember(session_id, context)
        logger.info("Created new context", session_id=session_id, context_id=context.id)
        return context

    async def _load_durable(self, session_id: str) -> Optional[Context]:
        raw = await self.gateway.get_raw(context_key(session_id))
        if raw is None:
            return None

        try:
            context = Context.model_validate_json(raw)
        except ValueError as e:
            logger.warning("Discarding unreadable durable context", session_id=session_id, error=str(e))
            return None

        return self.compression.decompress_context(context)

    def _summarize(self, request: AgentRequest, response: AgentResponse) -> str:
        try:
            return self.summarizer(request, response)
        except Exception as e:
            logger.warning("Interaction summarizer failed", request_id=request.id, error=str(e))
            return summarize_interaction(request, response)

    def _cache(self, session_id: str, context: Context, tier: MemoryTier):
        key = context_key(session_id)
        # A stale copy in a hotter tier would shadow this write
        self.memory.forget(key)
        self.memory.store(tier, key, context)
        self._remember(session_id, context)

    def _remember(self, session_id: str, context: Context):
        self._index[session_id] = context
        self._index.move_to_end(session_id)
        while len(self._index) > self.session_index_capacity:
            evicted, _ = self._index.popitem(last=False)
            logger.debug("Evicted session from index", session_id=evicted)
