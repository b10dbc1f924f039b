"""
Shared fixtures for the context core tests.

Every test runs against the in-memory durable store or one of the failing
store doubles defined here; nothing touches the network or the filesystem.
"""
import asyncio
from datetime import datetime, timedelta
from typing import Dict, Optional

import pytest

from contextcore.domain.models.records import AgentRequest, AgentResponse
from contextcore.infrastructure.storage.durable_store import InMemoryDurableStore, StoreGateway


class FailingStore:
    """Durable store whose reads and writes always raise"""

    def __init__(self):
        self.get_calls = 0
        self.put_calls = 0

    async def get(self, key: str) -> Optional[str]:
        self.get_calls += 1
        raise ConnectionError("store unavailable")

    async def put(self, key: str, value: str) -> None:
        self.put_calls += 1
        raise ConnectionError("store unavailable")


class SlowStore(InMemoryDurableStore):
    """In-memory store that sleeps before every call"""

    def __init__(self, delay: float, initial: Optional[Dict[str, str]] = None):
        super().__init__(initial)
        self.delay = delay

    async def get(self, key: str) -> Optional[str]:
        await asyncio.sleep(self.delay)
        return await super().get(key)

    async def put(self, key: str, value: str) -> None:
        await asyncio.sleep(self.delay)
        await super().put(key, value)


class FakeClock:
    """Manually advanced replacement for datetime.utcnow"""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def store():
    return InMemoryDurableStore()


@pytest.fixture
def gateway(store):
    return StoreGateway(store)


@pytest.fixture
def failing_store():
    return FailingStore()


@pytest.fixture
def failing_gateway(failing_store):
    return StoreGateway(failing_store)


@pytest.fixture
def clock():
    return FakeClock()


def make_exchange(session_id: str = "session-1", content: str = "hello", answer: str = "hi there"):
    """A request and its response"""
    request = AgentRequest(session_id=session_id, content=content)
    response = AgentResponse(request_id=request.id, content=answer)
    return request, response
