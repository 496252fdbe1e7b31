"""Handshake state machine for the sudo write helper.

The helper talks to us over its stderr stream only. Two exact-match lines
drive the protocol: a password prompt marker and an "authenticated, send the
payload now" marker. Everything else on stderr is diagnostic text that we
keep around so it can be shown in the next prompt or in the final error.

``HandshakeProtocol`` is synchronous and does no I/O. It consumes one event
at a time and answers with the actions the caller must perform, which keeps
it testable without spawning a process.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from ..models.write import PromptContext, ProtocolState
from .errors import (
    HelperExitError,
    PrivilegedWriteError,
    PromptError,
    WriteCancelled,
    WriteTimeout,
)

logger = logging.getLogger(__name__)


# Events

@dataclass(frozen=True)
class DiagnosticLine:
    text: str


@dataclass(frozen=True)
class SecretEntered:
    secret: str


@dataclass(frozen=True)
class PromptCancelled:
    pass


@dataclass(frozen=True)
class PromptFailed:
    error: Exception


@dataclass(frozen=True)
class ProcessExited:
    returncode: int


@dataclass(frozen=True)
class TimerFired:
    generation: int = 0


Event = Union[
    DiagnosticLine, SecretEntered, PromptCancelled, PromptFailed, ProcessExited, TimerFired
]


# Actions

@dataclass(frozen=True)
class StartTimer:
    pass


@dataclass(frozen=True)
class StopTimer:
    pass


@dataclass(frozen=True)
class PromptForSecret:
    context: PromptContext


@dataclass(frozen=True)
class DismissPrompt:
    pass


@dataclass(frozen=True)
class SendSecret:
    secret: str

    def __repr__(self) -> str:
        return "SendSecret(secret=***)"


@dataclass(frozen=True)
class SendPayload:
    pass


@dataclass(frozen=True)
class Terminate:
    error: Optional[PrivilegedWriteError] = None


Action = Union[
    StartTimer, StopTimer, PromptForSecret, DismissPrompt, SendSecret, SendPayload, Terminate
]


TERMINAL_STATES = (ProtocolState.COMPLETED, ProtocolState.FAILED)


class DiagnosticBuffer:
    """Helper stderr text seen since the last recognised marker."""

    def __init__(self):
        self._lines: list[str] = []

    def append(self, line: str) -> None:
        if line:
            self._lines.append(line)

    def clear(self) -> None:
        self._lines = []

    @property
    def text(self) -> str:
        return "\n".join(self._lines)

    def drain(self) -> str:
        text = self.text
        self.clear()
        return text

    def __bool__(self) -> bool:
        return bool(self._lines)


class LineSplitter:
    """Reassemble stderr reads into lines.

    Partial lines are held until their newline arrives. ``sudo -p`` prints its
    prompt without a newline and then blocks on stdin, so the reader checks
    ``holding_marker`` and calls ``release()`` once no more data follows.
    """

    def __init__(self, markers: tuple[str, ...] = ()):
        self._markers = markers
        self._pending = ""

    def feed(self, data: str) -> list[str]:
        *lines, self._pending = (self._pending + data).split("\n")
        return lines

    @property
    def holding_marker(self) -> bool:
        """The unterminated fragment is, so far, exactly a marker."""
        return bool(self._pending.strip()) and self._pending.strip() in self._markers

    def release(self) -> list[str]:
        return self.flush()

    def flush(self) -> list[str]:
        rest, self._pending = self._pending, ""
        return [rest] if rest else []


class HandshakeProtocol:
    def __init__(self, password_marker: str, success_marker: str, account_hint: str = ""):
        self.password_marker = password_marker
        self.success_marker = success_marker
        self.account_hint = account_hint
        self.state = ProtocolState.AWAITING_SIGNAL
        self.diagnostics = DiagnosticBuffer()
        self.error: Optional[PrivilegedWriteError] = None

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def start(self) -> list[Action]:
        return [StartTimer()]

    def feed(self, event: Event) -> list[Action]:
        if self.finished:
            return []

        if isinstance(event, DiagnosticLine):
            return self._on_line(event.text)
        if isinstance(event, SecretEntered):
            return self._on_secret(event.secret)
        if isinstance(event, PromptCancelled):
            if self.state != ProtocolState.AWAITING_PASSWORD:
                return []
            return self._fail(WriteCancelled())
        if isinstance(event, PromptFailed):
            if self.state != ProtocolState.AWAITING_PASSWORD:
                return []
            return self._fail(PromptError(str(event.error), self.diagnostics.text))
        if isinstance(event, ProcessExited):
            return self._on_exit(event.returncode)
        if isinstance(event, TimerFired):
            # No timer runs while a human is answering the prompt.
            if self.state == ProtocolState.AWAITING_PASSWORD:
                return []
            return self._fail(WriteTimeout(self.diagnostics.text))
        raise TypeError(f"unknown event: {event!r}")

    def _on_line(self, raw: str) -> list[Action]:
        line = raw.strip()

        if line == self.password_marker and self.state == ProtocolState.AWAITING_SIGNAL:
            self._transition(ProtocolState.AWAITING_PASSWORD)
            context = PromptContext(
                account_hint=self.account_hint,
                prior_error_text=self.diagnostics.drain(),
            )
            return [StopTimer(), PromptForSecret(context)]

        if line == self.success_marker and self.state in (
            ProtocolState.AWAITING_SIGNAL,
            ProtocolState.AWAITING_PASSWORD,
        ):
            was_prompting = self.state == ProtocolState.AWAITING_PASSWORD
            self._transition(ProtocolState.AUTHENTICATED)
            self.diagnostics.clear()
            actions: list[Action] = [SendPayload()]
            if was_prompting:
                actions[:0] = [DismissPrompt(), StartTimer()]
            return actions

        if line == self.password_marker and self.state == ProtocolState.AWAITING_PASSWORD:
            return []

        self.diagnostics.append(line)
        return []

    def _on_secret(self, secret: str) -> list[Action]:
        if self.state != ProtocolState.AWAITING_PASSWORD:
            return []
        self._transition(ProtocolState.AWAITING_SIGNAL)
        return [SendSecret(secret), StartTimer()]

    def _on_exit(self, returncode: int) -> list[Action]:
        actions: list[Action] = []
        if self.state == ProtocolState.AWAITING_PASSWORD:
            actions.append(DismissPrompt())
        if returncode == 0:
            self._transition(ProtocolState.COMPLETED)
            return actions + [StopTimer(), Terminate()]
        return actions + self._fail(HelperExitError(returncode, self.diagnostics.text))

    def _fail(self, error: PrivilegedWriteError) -> list[Action]:
        self.error = error
        self._transition(ProtocolState.FAILED)
        return [StopTimer(), Terminate(error)]

    def _transition(self, state: ProtocolState) -> None:
        logger.debug("handshake %s -> %s", self.state.value, state.value)
        self.state = state
