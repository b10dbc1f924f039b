"""
Tests for the tiered memory manager: LFU eviction, promotion by copy, and
lookup order across tiers.
"""
import pytest

from conftest import FakeClock
from contextcore.domain.context.memory.tiered_memory import TieredMemoryManager
from contextcore.domain.models.context import MemoryTier


@pytest.fixture
def memory(clock):
    return TieredMemoryManager(
        short_term_capacity=2,
        working_capacity=3,
        long_term_capacity=3,
        clock=clock
    )


def _store_at(memory, clock: FakeClock, tier, key, value):
    clock.advance(seconds=1)
    return memory.store(tier, key, value)


class TestStoreAndRetrieve:

    def test_retrieve_missing_key(self, memory):
        assert memory.retrieve("missing") is None

    def test_store_resets_access_count(self, memory, clock):
        _store_at(memory, clock, MemoryTier.WORKING, "a", 1)
        memory.retrieve("a")
        memory.retrieve("a")

        record = _store_at(memory, clock, MemoryTier.WORKING, "a", 2)

        assert record.access_count == 0
        assert memory.retrieve("a") == 2

    def test_hotter_tier_wins(self, memory, clock):
        _store_at(memory, clock, MemoryTier.LONG_TERM, "a", "old")
        _store_at(memory, clock, MemoryTier.SHORT_TERM, "a", "new")

        assert memory.retrieve("a") == "new"
        assert memory.tier_of("a") == MemoryTier.SHORT_TERM

    def test_forget_removes_every_copy(self, memory, clock):
        _store_at(memory, clock, MemoryTier.LONG_TERM, "a", 1)
        _store_at(memory, clock, MemoryTier.WORKING, "a", 1)

        assert memory.forget("a") == 2
        assert memory.tier_of("a") is None


class TestEviction:

    def test_least_frequently_used_is_evicted(self, memory, clock):
        _store_at(memory, clock, MemoryTier.SHORT_TERM, "a", 1)
        _store_at(memory, clock, MemoryTier.SHORT_TERM, "b", 2)
        memory.retrieve("a")

        _store_at(memory, clock, MemoryTier.SHORT_TERM, "c", 3)

        assert memory.peek(MemoryTier.SHORT_TERM, "a") is not None
        assert memory.peek(MemoryTier.SHORT_TERM, "b") is None
        assert memory.peek(MemoryTier.SHORT_TERM, "c") is not None

    def test_new_record_can_be_the_victim(self, memory, clock):
        _store_at(memory, clock, MemoryTier.SHORT_TERM, "a", 1)
        _store_at(memory, clock, MemoryTier.SHORT_TERM, "b", 2)
        memory.retrieve("a")
        memory.retrieve("b")

        # "c" has the lowest count and is itself the victim
        _store_at(memory, clock, MemoryTier.SHORT_TERM, "c", 3)

        assert memory.peek(MemoryTier.SHORT_TERM, "c") is None
        assert len(memory.tiers[MemoryTier.SHORT_TERM]) == 2

    def test_equal_counts_evict_oldest(self, memory, clock):
        for key in ("a", "b", "c"):
            _store_at(memory, clock, MemoryTier.WORKING, key, key)

        _store_at(memory, clock, MemoryTier.WORKING, "d", "d")

        assert memory.peek(MemoryTier.WORKING, "a") is None
        assert set(memory.tiers[MemoryTier.WORKING]) == {"b", "c", "d"}

    def test_enforce_memory_limits_returns_evictions(self, memory, clock):
        for key in ("a", "b", "c"):
            _store_at(memory, clock, MemoryTier.LONG_TERM, key, key)

        assert memory.enforce_memory_limits(MemoryTier.LONG_TERM, 1) == 2
        assert memory.enforce_memory_limits(MemoryTier.LONG_TERM, 1) == 0
        assert list(memory.tiers[MemoryTier.LONG_TERM]) == ["c"]


class TestPromotion:

    def test_working_promotes_after_threshold(self, memory, clock):
        _store_at(memory, clock, MemoryTier.WORKING, "a", "value")

        for _ in range(5):
            memory.retrieve("a")
        assert memory.peek(MemoryTier.SHORT_TERM, "a") is None

        memory.retrieve("a")

        promoted = memory.peek(MemoryTier.SHORT_TERM, "a")
        assert promoted is not None
        assert promoted.payload == "value"
        assert promoted.access_count == 0
        # promotion copies; the source record stays
        assert memory.peek(MemoryTier.WORKING, "a") is not None

    def test_long_term_promotes_to_working(self, memory, clock):
        _store_at(memory, clock, MemoryTier.LONG_TERM, "a", "value")

        for _ in range(4):
            memory.retrieve("a")

        assert memory.peek(MemoryTier.WORKING, "a") is not None
        assert memory.peek(MemoryTier.LONG_TERM, "a") is not None

    def test_short_term_never_promotes(self, memory, clock):
        _store_at(memory, clock, MemoryTier.SHORT_TERM, "a", "value")

        for _ in range(20):
            memory.retrieve("a")

        assert memory.tier_of("a") == MemoryTier.SHORT_TERM
        assert memory.peek(MemoryTier.WORKING, "a") is None

    def test_stats_report_capacity(self, memory, clock):
        _store_at(memory, clock, MemoryTier.WORKING, "a", 1)

        stats = memory.get_stats()

        assert stats["working"] == {"size": 1, "capacity": 3}
        assert stats["short_term"]["size"] == 0
