from typing import Dict, Any, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from enum import Enum
import uuid


class MemoryTier(str, Enum):
    """Tiers of the in-process memory manager, hottest first"""
    SHORT_TERM = "short_term"
    WORKING = "working"
    LONG_TERM = "long_term"


class Interaction(BaseModel):
    """One request/response pair recorded in a context"""
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    request_ref: str
    response_ref: str
    summary: str = ""


class ContextData(BaseModel):
    """Decoded payload of a context"""
    model_config = ConfigDict(extra="allow")

    interactions: List[Interaction] = Field(default_factory=list)
    user_preferences: Dict[str, Any] = Field(default_factory=dict)
    knowledge_base: Dict[str, Any] = Field(default_factory=dict)
    entity_recognition: Dict[str, int] = Field(default_factory=dict)
    feedback: List[Dict[str, Any]] = Field(default_factory=list)
    recent_requests: List[str] = Field(default_factory=list)


class ContextMetadata(BaseModel):
    """Size and encoding bookkeeping for a context"""
    compression_level: int = Field(default=0, ge=0, le=3)
    original_size: int = 0
    compressed_size: int = 0
    summary: str = ""


class Context(BaseModel):
    """Accumulated state for one session.

    ``metadata.compression_level`` describes how ``data`` is encoded on this
    instance: level 0 means ``data`` is a ``ContextData``; any higher level
    means ``data`` is an opaque encoded string that has to go through the
    compression engine before any field can be read.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    session_id: str
    created: datetime = Field(default_factory=datetime.utcnow)
    last_updated: datetime = Field(default_factory=datetime.utcnow)
    data: Union[ContextData, str] = Field(default_factory=ContextData)
    metadata: ContextMetadata = Field(default_factory=ContextMetadata)

    @property
    def is_compressed(self) -> bool:
        return self.metadata.compression_level > 0

    def decoded_data(self) -> Optional[ContextData]:
        """Return the payload when it is not encoded, otherwise None"""
        if isinstance(self.data, ContextData):
            return self.data
        return None


class MemoryRecord(BaseModel):
    """A cached value owned by exactly one tier map"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    key: str
    payload: Any = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    access_count: int = 0
