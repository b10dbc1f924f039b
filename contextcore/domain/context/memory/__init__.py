from .tiered_memory import TIER_ORDER, TieredMemoryManager

__all__ = ["TIER_ORDER", "TieredMemoryManager"]
