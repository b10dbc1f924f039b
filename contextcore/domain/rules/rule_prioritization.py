from typing import Dict, List, Any, Optional, Iterable
import asyncio
import structlog

from contextcore.domain.models.rule import Rule
from contextcore.infrastructure.storage.durable_store import StoreGateway

logger = structlog.get_logger(__name__)

EFFECTIVENESS_KEY = "rule_effectiveness"
ADJUSTMENTS_KEY = "rule_priority_adjustments"


class RulePrioritization:
    """Effectiveness scores and bounded priority drift per rule.

    Scores and cumulative adjustments are keyed by rule id and persisted
    separately from rule definitions, so they survive unload and reload.
    """

    def __init__(
        self,
        gateway: Optional[StoreGateway] = None,
        alpha: float = 0.1,
        default_score: float = 1.0,
        adjustment_trigger_delta: float = 0.2,
        max_adjustment: int = 2,
        high_score: float = 0.8,
        low_score: float = 0.3
    ):
        self.gateway = gateway
        self.alpha = alpha
        self.default_score = default_score
        self.adjustment_trigger_delta = adjustment_trigger_delta
        self.max_adjustment = max_adjustment
        self.high_score = high_score
        self.low_score = low_score

        self.effectiveness_scores: Dict[str, float] = {}
        self.priority_adjustments: Dict[str, int] = {}
        self.application_counts: Dict[str, int] = {}
        self.rules: Dict[str, Rule] = {}
        self._lock = asyncio.Lock()

    async def initialize(self):
        """Load persisted scores and adjustments"""

        if self.gateway is None:
            return

        scores = await self.gateway.get_json(EFFECTIVENESS_KEY, default={})
        adjustments = await self.gateway.get_json(ADJUSTMENTS_KEY, default={})

        async with self._lock:
            if isinstance(scores, dict):
                self.effectiveness_scores.update({
                    rule_id: float(score) for rule_id, score in scores.items()
                    if isinstance(score, (int, float))
                })
            if isinstance(adjustments, dict):
                self.priority_adjustments.update({
                    rule_id: self._clamp(int(value)) for rule_id, value in adjustments.items()
                    if isinstance(value, (int, float))
                })

        logger.info(
            "Loaded rule effectiveness state",
            scores=len(self.effectiveness_scores),
            adjustments=len(self.priority_adjustments)
        )

    async def register_rules(self, rules: Iterable[Rule]):
        """Track freshly loaded rules and re-apply their persisted adjustment"""

        async with self._lock:
            for rule in rules:
                self.rules[rule.id] = rule
                if rule.id not in self.effectiveness_scores:
                    self.effectiveness_scores[rule.id] = self.default_score

                adjustment = self.priority_adjustments.get(rule.id, 0)
                if adjustment:
                    rule.priority += adjustment

            await self._save_scores()

    async def unregister_rule(self, rule_id: str):
        """Stop tracking a live rule; its history is kept"""

        async with self._lock:
            self.rules.pop(rule_id, None)
            await self._save_scores()

    def record_rule_application(self, rule_id: str):
        self.application_counts[rule_id] = self.application_counts.get(rule_id, 0) + 1

    def get_effectiveness(self, rule_id: str) -> float:
        return self.effectiveness_scores.get(rule_id, self.default_score)

    def get_adjustment(self, rule_id: str) -> int:
        return self.priority_adjustments.get(rule_id, 0)

    async def record_rule_effectiveness(self, rule_id: str, observed_score: float) -> float:
        """Fold an observation into the rule's moving average"""

        async with self._lock:
            old_score = self.get_effectiveness(rule_id)
            new_score = (1 - self.alpha) * old_score + self.alpha * observed_score
            self.effectiveness_scores[rule_id] = new_score

            if abs(new_score - old_score) > self.adjustment_trigger_delta:
                await self._adjust_rule_priority(rule_id, new_score)

            await self._save_scores()

        logger.debug(
            "Recorded rule effectiveness",
            rule_id=rule_id,
            observed=observed_score,
            old_score=old_score,
            new_score=new_score
        )
        return new_score

    async def adjust_rule_priority(self, rule_id: str, new_score: float) -> int:
        """Apply a score-driven priority nudge; returns the applied delta"""

        async with self._lock:
            return await self._adjust_rule_priority(rule_id, new_score)

    def get_prioritized_rules(self, rules: Iterable[Rule]) -> List[Rule]:
        """Priority descending, effectiveness descending on ties (stable)"""

        return sorted(
            rules,
            key=lambda rule: (-rule.priority, -self.get_effectiveness(rule.id))
        )

    def get_rule_stats(self) -> Dict[str, Dict[str, Any]]:
        rule_ids = set(self.effectiveness_scores) | set(self.priority_adjustments) | set(self.application_counts)
        return {
            rule_id: {
                "effectiveness": self.get_effectiveness(rule_id),
                "priority_adjustment": self.get_adjustment(rule_id),
                "applications": self.application_counts.get(rule_id, 0),
                "active": rule_id in self.rules,
            }
            for rule_id in sorted(rule_ids)
        }

    async def _adjust_rule_priority(self, rule_id: str, new_score: float) -> int:
        if new_score > self.high_score:
            proposal = 1
        elif new_score < self.low_score:
            proposal = -1
        else:
            proposal = 0

        previous = self.priority_adjustments.get(rule_id, 0)
        cumulative = self._clamp(previous + proposal)
        delta = cumulative - previous
        if delta == 0:
            return 0

        self.priority_adjustments[rule_id] = cumulative

        rule = self.rules.get(rule_id)
        if rule is not None:
            rule.priority += delta

        logger.info(
            "Adjusted rule priority",
            rule_id=rule_id,
            score=new_score,
            delta=delta,
            cumulative=cumulative,
            priority=rule.priority if rule is not None else None
        )

        if self.gateway is not None:
            await self.gateway.put_json(ADJUSTMENTS_KEY, self.priority_adjustments)
        return delta

    def _clamp(self, value: int) -> int:
        return max(-self.max_adjustment, min(self.max_adjustment, value))

    async def _save_scores(self):
        if self.gateway is not None:
            await self.gateway.put_json(EFFECTIVENESS_KEY, self.effectiveness_scores)
