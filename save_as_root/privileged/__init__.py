"""Privileged file writes through sudo."""

from .errors import (
    HelperExitError,
    HelperStartError,
    PrivilegedWriteError,
    PromptError,
    UnsupportedTargetError,
    WriteCancelled,
    WriteTimeout,
)
from .orchestrator import PrivilegedWriter, write_privileged
from .prompt import NonInteractivePromptProvider, PromptProvider, TerminalPromptProvider

__all__ = [
    "HelperExitError",
    "HelperStartError",
    "PrivilegedWriteError",
    "PromptError",
    "UnsupportedTargetError",
    "WriteCancelled",
    "WriteTimeout",
    "PrivilegedWriter",
    "write_privileged",
    "NonInteractivePromptProvider",
    "PromptProvider",
    "TerminalPromptProvider",
]
