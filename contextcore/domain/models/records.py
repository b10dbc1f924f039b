from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field
from datetime import datetime
import uuid


def _new_id() -> str:
    return str(uuid.uuid4())


class AgentRequest(BaseModel):
    """Inbound request for a session"""
    id: str = Field(default_factory=_new_id, description="Request identifier")
    session_id: str = Field(description="Stable session key")
    content: str = Field(default="", description="Textual request content")
    command: Optional[str] = Field(None, description="Optional command verb")
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AgentResponse(BaseModel):
    """Response produced for a request"""
    id: str = Field(default_factory=_new_id, description="Response identifier")
    request_id: str = Field(description="Identifier of the answered request")
    content: str = Field(default="")
    metadata: Dict[str, Any] = Field(default_factory=dict)


class Feedback(BaseModel):
    """User feedback on a single response"""
    session_id: str
    request_id: str
    score: float = Field(description="Observed usefulness, typically in [-1, 1]")
    comment: str = ""
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    rule_ids: List[str] = Field(default_factory=list, description="Rules applied to the rated request")


class MetricsRecord(BaseModel):
    """A categorized metrics sample"""
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    category: str
    data: Dict[str, Any] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)
