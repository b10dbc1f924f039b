from .durable_store import DurableStore, InMemoryDurableStore, StoreGateway

__all__ = ["DurableStore", "InMemoryDurableStore", "StoreGateway"]
