"""Data models."""

from .write import ProtocolState, PromptContext, WriteRequest
from .save import SaveJob, SaveRequest, SaveStatus
from .system import SystemInfo

__all__ = [
    "ProtocolState",
    "PromptContext",
    "WriteRequest",
    "SaveJob",
    "SaveRequest",
    "SaveStatus",
    "SystemInfo",
]
