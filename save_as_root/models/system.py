"""System information models."""

from typing import Optional
from pydantic import BaseModel


class SystemInfo(BaseModel):
    hostname: str = ""
    user: str = ""
    sudo_path: Optional[str] = None
    sudo_cached: bool = False
    timeout_seconds: float = 0.0
