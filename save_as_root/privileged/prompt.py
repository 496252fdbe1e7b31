"""Credential prompt providers.

A provider returns the secret the user typed, or ``None`` when the user
dismissed the prompt. An empty string is a real (if unlikely) password.
"""

import asyncio
import getpass
import sys
from abc import ABC, abstractmethod
from typing import Optional

from ..models.write import PromptContext


class PromptProvider(ABC):
    @abstractmethod
    async def request_secret(self, context: PromptContext) -> Optional[str]:
        """Ask for the password. At most one request is outstanding at a time."""
        ...


class TerminalPromptProvider(PromptProvider):
    """Masked prompt on the controlling terminal."""

    def __init__(self, stream=None):
        self._stream = stream

    async def request_secret(self, context: PromptContext) -> Optional[str]:
        stream = self._stream or sys.stderr
        if context.prior_error_text:
            print(context.prior_error_text, file=stream, flush=True)
        prompt = f"[Save as Root] password for {context.account_hint}: "
        try:
            return await asyncio.to_thread(getpass.getpass, prompt, self._stream)
        except EOFError:
            print(file=stream)
            return None


class NonInteractivePromptProvider(PromptProvider):
    """Never asks; only cached sudo credentials can succeed."""

    async def request_secret(self, context: PromptContext) -> Optional[str]:
        return None
