"""Save job models."""

from datetime import datetime
from enum import Enum
from typing import Literal, Optional
from pydantic import BaseModel, Field
import uuid


class SaveStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class SaveRequest(BaseModel):
    target: str  # plain path or file:// URI
    content: str
    encoding: Literal["utf-8", "base64"] = "utf-8"


class SaveJob(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:8])
    target: str
    size: int = 0
    status: SaveStatus = SaveStatus.PENDING
    created_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
