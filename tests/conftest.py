import asyncio
import os
import sys
from pathlib import Path
from typing import Optional

import pytest

from save_as_root.config import Settings
from save_as_root.models.write import PromptContext
from save_as_root.privileged.helper import TARGET_ENV_VAR, HelperCommand
from save_as_root.privileged.prompt import PromptProvider

FAKE_SUDO = Path(__file__).with_name("fake_sudo.py")


class ScriptedPrompt(PromptProvider):
    """Answers prompts from a list. ``None`` cancels.

    An answer may be a ``(delay, secret)`` tuple to simulate a slow human.
    """

    def __init__(self, *answers):
        self.answers = list(answers)
        self.contexts: list[PromptContext] = []

    async def request_secret(self, context: PromptContext) -> Optional[str]:
        self.contexts.append(context)
        answer = self.answers.pop(0)
        if isinstance(answer, tuple):
            delay, answer = answer
            await asyncio.sleep(delay)
        return answer


@pytest.fixture
def fake_helper():
    """Return a command builder that runs fake_sudo.py in the given mode."""

    def _factory(mode: str = "sudo", **extra_env: str):
        def _build(path: str) -> HelperCommand:
            env = dict(os.environ)
            env.update(extra_env)
            env["FAKE_MODE"] = mode
            env[TARGET_ENV_VAR] = path
            return HelperCommand(argv=[sys.executable, str(FAKE_SUDO)], env=env)

        return _build

    return _factory


@pytest.fixture
def fast_settings() -> Settings:
    return Settings(timeout_seconds=5.0)


@pytest.fixture
def scripted_prompt():
    return ScriptedPrompt
