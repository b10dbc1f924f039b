from typing import Dict, Any, Optional, Protocol, runtime_checkable
import asyncio
import json

import structlog

from contextcore.exceptions import StoreError
from contextcore.infrastructure.concurrency.keyed_lock import KeyedLock

logger = structlog.get_logger(__name__)


@runtime_checkable
class DurableStore(Protocol):
    """Async key -> string store supplied by the host environment.

    ``get`` returns ``None`` for keys that were never written. ``put`` raises
    on failure. There are no transactions and no atomicity across keys.
    """

    async def get(self, key: str) -> Optional[str]:
        ...

    async def put(self, key: str, value: str) -> None:
        ...


class InMemoryDurableStore:
    """Process-local durable store used for tests and single-process hosts"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[str]:
        """Get the raw value for a key"""

        async with self._lock:
            return self.data.get(key)

    async def put(self, key: str, value: str) -> None:
        """Write the raw value for a key"""

        if not isinstance(value, str):
            raise StoreError(key, "Durable store values must be strings")

        async with self._lock:
            self.data[key] = value

    async def keys(self, prefix: str = "") -> list:
        """List stored keys, optionally filtered by prefix"""

        async with self._lock:
            return [key for key in self.data if key.startswith(prefix)]


class StoreGateway:
    """JSON access to a DurableStore with the core's degradation policy.

    Reads that fail or time out are logged and reported as absent. Writes
    that fail are logged and reported as ``False`` unless ``strict`` is set,
    in which case a ``StoreError`` is raised.
    """

    def __init__(self, store: DurableStore, timeout: Optional[float] = None):
        self.store = store
        self.timeout = timeout
        self._append_locks = KeyedLock()

    async def _call(self, coro):
        if self.timeout is None:
            return await coro
        return await asyncio.wait_for(coro, timeout=self.timeout)

    async def get_raw(self, key: str) -> Optional[str]:
        """Read a raw string, treating failures as absent"""

        try:
            return await self._call(self.store.get(key))
        except asyncio.TimeoutError:
            logger.error("Durable store get timed out", key=key, timeout=self.timeout)
        except Exception as e:
            logger.error("Durable store get failed", key=key, error=str(e))
        return None

    async def get_json(self, key: str, default: Any = None) -> Any:
        """Read and decode a JSON value, falling back to ``default``"""

        raw = await self.get_raw(key)
        if raw is None:
            return default

        try:
            return json.loads(raw)
        except ValueError as e:
            logger.warning("Discarding malformed JSON from durable store", key=key, error=str(e))
            return default

    async def put_raw(self, key: str, value: str, strict: bool = False) -> bool:
        """Write a raw string; returns whether the write succeeded"""

        try:
            await self._call(self.store.put(key, value))
            return True
        except asyncio.TimeoutError as e:
            logger.error("Durable store put timed out", key=key, timeout=self.timeout)
            if strict:
                raise StoreError(key, "Durable store put timed out") from e
        except Exception as e:
            logger.error("Durable store put failed", key=key, error=str(e))
            if strict:
                if isinstance(e, StoreError):
                    raise
                raise StoreError(key, f"Durable store put failed: {e}") from e
        return False

    async def put_json(self, key: str, value: Any, strict: bool = False) -> bool:
        """Encode a value as JSON and write it"""

        return await self.put_raw(key, json.dumps(value, ensure_ascii=False, default=str), strict=strict)

    async def append_capped(self, key: str, item: Any, limit: int) -> bool:
        """Append to a JSON array key, keeping only the newest ``limit`` items.

        Appends through the same gateway are serialized per key.
        """

        async with self._append_locks.acquire(key):
            items = await self.get_json(key, default=[])
            if not isinstance(items, list):
                logger.warning("Replacing non-list value in durable store", key=key)
                items = []

            items.append(item)
            if len(items) > limit:
                items = items[-limit:]

            return await self.put_json(key, items)
