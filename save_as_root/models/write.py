"""Privileged write models."""

from enum import Enum
from pydantic import BaseModel, ConfigDict


class ProtocolState(str, Enum):
    AWAITING_SIGNAL = "awaiting_signal"
    AWAITING_PASSWORD = "awaiting_password"
    AUTHENTICATED = "authenticated"
    COMPLETED = "completed"
    FAILED = "failed"


class WriteRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    payload: bytes


class PromptContext(BaseModel):
    account_hint: str
    prior_error_text: str = ""
