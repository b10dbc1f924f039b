from typing import Dict, Any, Optional, Callable
from datetime import datetime
import structlog

from contextcore.domain.models.context import MemoryRecord, MemoryTier

logger = structlog.get_logger(__name__)


# Probe order for retrieve()
TIER_ORDER = (MemoryTier.SHORT_TERM, MemoryTier.WORKING, MemoryTier.LONG_TERM)


class TieredMemoryManager:
    """Three capacity-bounded in-process caches with promotion on access.

    Eviction is least-frequently-used with the oldest write as tie-break.
    Promotion copies a record into the next hotter tier and leaves the source
    record where it is. All operations are synchronous and never raise.
    """

    def __init__(
        self,
        short_term_capacity: int = 20,
        working_capacity: int = 50,
        long_term_capacity: int = 100,
        working_promotion_threshold: int = 5,
        long_term_promotion_threshold: int = 3,
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        self.tiers: Dict[MemoryTier, Dict[str, MemoryRecord]] = {
            tier: {} for tier in TIER_ORDER
        }
        self.capacities: Dict[MemoryTier, int] = {
            MemoryTier.SHORT_TERM: short_term_capacity,
            MemoryTier.WORKING: working_capacity,
            MemoryTier.LONG_TERM: long_term_capacity,
        }
        self.promotion_thresholds: Dict[MemoryTier, int] = {
            MemoryTier.WORKING: working_promotion_threshold,
            MemoryTier.LONG_TERM: long_term_promotion_threshold,
        }
        self._clock = clock

    def store(self, tier: MemoryTier, key: str, value: Any) -> MemoryRecord:
        """Insert or overwrite a record, then enforce the tier's capacity"""

        tier = MemoryTier(tier)
        entries = self.tiers[tier]

        # Re-insert so dict order keeps tracking write order
        entries.pop(key, None)
        record = MemoryRecord(key=key, payload=value, timestamp=self._clock(), access_count=0)
        entries[key] = record

        self.enforce_memory_limits(tier, self.capacities[tier])
        return record

    def retrieve(self, key: str) -> Optional[Any]:
        """Probe short-term, working and long-term memory in that order"""

        for tier in TIER_ORDER:
            record = self.tiers[tier].get(key)
            if record is None:
                continue

            record.access_count += 1
            self._maybe_promote(tier, record)
            return record.payload

        return None

    def peek(self, tier: MemoryTier, key: str) -> Optional[MemoryRecord]:
        """Tier-local lookup without touching access counts"""

        return self.tiers[MemoryTier(tier)].get(key)

    def forget(self, key: str) -> int:
        """Drop a key from every tier; returns the number of records removed"""

        removed = 0
        for entries in self.tiers.values():
            if entries.pop(key, None) is not None:
                removed += 1
        return removed

    def enforce_memory_limits(self, tier: MemoryTier, limit: int) -> int:
        """Evict the least used records until the tier holds ``limit`` entries"""

        entries = self.tiers[MemoryTier(tier)]
        overflow = len(entries) - limit
        if overflow <= 0:
            return 0

        # sorted() is stable, so equal (count, timestamp) pairs go oldest-insert first
        victims = sorted(
            entries.values(),
            key=lambda record: (record.access_count, record.timestamp)
        )[:overflow]

        for record in victims:
            del entries[record.key]

        logger.debug(
            "Evicted memory records",
            tier=MemoryTier(tier).value,
            evicted=[record.key for record in victims]
        )
        return len(victims)

    def tier_of(self, key: str) -> Optional[MemoryTier]:
        """Hottest tier currently holding ``key``"""

        for tier in TIER_ORDER:
            if key in self.tiers[tier]:
                return tier
        return None

    def get_stats(self) -> Dict[str, Any]:
        """Get per-tier occupancy"""

        return {
            tier.value: {
                "size": len(self.tiers[tier]),
                "capacity": self.capacities[tier],
            }
            for tier in TIER_ORDER
        }

    def clear(self):
        for entries in self.tiers.values():
            entries.clear()

    def _maybe_promote(self, tier: MemoryTier, record: MemoryRecord):
        if tier == MemoryTier.WORKING:
            target = MemoryTier.SHORT_TERM
        elif tier == MemoryTier.LONG_TERM:
            target = MemoryTier.WORKING
        else:
            return

        if record.access_count > self.promotion_thresholds[tier]:
            logger.debug(
                "Promoting memory record",
                key=record.key,
                from_tier=tier.value,
                to_tier=target.value,
                access_count=record.access_count
            )
            self.store(target, record.key, record.payload)
