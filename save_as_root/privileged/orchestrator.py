"""Drive the sudo helper through the password handshake and deliver the payload."""

import asyncio
import codecs
import contextlib
import logging
from typing import Callable, Optional

from ..config import Settings, settings as default_settings
from ..models.write import WriteRequest
from ..utils.commands import current_user, run_cmd
from .errors import HelperStartError
from .helper import HelperCommand, build_helper_command
from .prompt import PromptProvider
from .protocol import (
    Action,
    DiagnosticLine,
    DismissPrompt,
    HandshakeProtocol,
    LineSplitter,
    ProcessExited,
    PromptCancelled,
    PromptFailed,
    PromptForSecret,
    SecretEntered,
    SendPayload,
    SendSecret,
    StartTimer,
    StopTimer,
    TimerFired,
)

logger = logging.getLogger(__name__)

CommandBuilder = Callable[[str], HelperCommand]


class TimeoutGuard:
    """One deadline at a time. Starting again replaces the previous one."""

    def __init__(self, timeout: float, mailbox: asyncio.Queue):
        self.timeout = timeout
        self._mailbox = mailbox
        self._handle: Optional[asyncio.TimerHandle] = None
        self._generation = 0

    def start(self) -> None:
        self.stop()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(
            self.timeout, self._mailbox.put_nowait, TimerFired(self._generation)
        )

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._generation += 1

    def is_current(self, event: TimerFired) -> bool:
        return self._handle is not None and event.generation == self._generation

    @property
    def active(self) -> bool:
        return self._handle is not None


class HandshakeSession:
    """One helper process, one write. Events are handled one at a time."""

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        request: WriteRequest,
        prompt_provider: PromptProvider,
        protocol: HandshakeProtocol,
        timeout: float,
        marker_settle: float = 0.05,
        kill_grace: float = 5.0,
    ):
        self.process = process
        self.request = request
        self.prompt_provider = prompt_provider
        self.protocol = protocol
        self.mailbox: asyncio.Queue = asyncio.Queue()
        self.guard = TimeoutGuard(timeout, self.mailbox)
        self.marker_settle = marker_settle
        self.kill_grace = kill_grace
        self._prompt_task: Optional[asyncio.Task] = None
        self._prompt_dismissed = False
        self._payload_task: Optional[asyncio.Task] = None
        self._secret_sent = False

    async def run(self) -> None:
        reader = asyncio.create_task(self._read_diagnostics())
        try:
            self._apply(self.protocol.start())
            while not self.protocol.finished:
                event = await self.mailbox.get()
                if isinstance(event, TimerFired) and not self.guard.is_current(event):
                    continue
                self._apply(self.protocol.feed(event))
        finally:
            self.guard.stop()
            await self._settle_prompt()
            await self._cancel(self._payload_task)
            await self._ensure_stopped()
            await self._cancel(reader)

        if self.protocol.error is not None:
            raise self.protocol.error

    def _apply(self, actions: list[Action]) -> None:
        for action in actions:
            if isinstance(action, StartTimer):
                self.guard.start()
            elif isinstance(action, StopTimer):
                self.guard.stop()
            elif isinstance(action, PromptForSecret):
                self._prompt_task = asyncio.create_task(self._ask(action))
                self._prompt_dismissed = False
            elif isinstance(action, DismissPrompt):
                if self._prompt_task is not None:
                    self._prompt_task.cancel()
                    self._prompt_dismissed = True
            elif isinstance(action, SendSecret):
                self._send_secret(action.secret)
            elif isinstance(action, SendPayload):
                self._payload_task = asyncio.create_task(self._send_payload())
            # Terminate needs nothing here; run() sees protocol.finished.

    async def _ask(self, action: PromptForSecret) -> None:
        try:
            secret = await self.prompt_provider.request_secret(action.context)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Password prompt failed")
            self.mailbox.put_nowait(PromptFailed(e))
            return
        if secret is None:
            self.mailbox.put_nowait(PromptCancelled())
        else:
            self.mailbox.put_nowait(SecretEntered(secret))

    def _send_secret(self, secret: str) -> None:
        stdin = self.process.stdin
        if stdin is None or stdin.is_closing():
            return
        if self._secret_sent:
            logger.info("Helper asked for the password again")
        self._secret_sent = True
        # A 1-line write fits in the pipe buffer; no drain needed.
        stdin.write(f"{secret}\n".encode())

    async def _send_payload(self) -> None:
        stdin = self.process.stdin
        if stdin is None or stdin.is_closing():
            return
        try:
            stdin.write(self.request.payload)
            await stdin.drain()
            stdin.close()
            await stdin.wait_closed()
        except (BrokenPipeError, ConnectionResetError) as e:
            # The exit event carries the real outcome.
            logger.debug("Helper closed stdin early: %s", e)
        else:
            logger.debug("Delivered %d bytes to helper", len(self.request.payload))

    async def _read_diagnostics(self) -> None:
        assert self.process.stderr is not None
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        splitter = LineSplitter(
            (self.protocol.password_marker, self.protocol.success_marker)
        )

        while True:
            if splitter.holding_marker:
                # A prompt with no newline: release it once the helper goes quiet.
                try:
                    chunk = await asyncio.wait_for(
                        self.process.stderr.read(4096), self.marker_settle
                    )
                except asyncio.TimeoutError:
                    for line in splitter.release():
                        self.mailbox.put_nowait(DiagnosticLine(line))
                    continue
            else:
                chunk = await self.process.stderr.read(4096)
            if not chunk:
                break
            for line in splitter.feed(decoder.decode(chunk)):
                self.mailbox.put_nowait(DiagnosticLine(line))

        for line in splitter.feed(decoder.decode(b"", final=True)) + splitter.flush():
            self.mailbox.put_nowait(DiagnosticLine(line))

        returncode = await self.process.wait()
        logger.debug("Helper exited with %s", returncode)
        self.mailbox.put_nowait(ProcessExited(returncode))

    async def _ensure_stopped(self) -> None:
        stdin = self.process.stdin
        if stdin is not None and not stdin.is_closing():
            stdin.close()
        if self.process.returncode is None:
            try:
                self.process.kill()
            except ProcessLookupError:
                pass
            except PermissionError:
                logger.warning("Cannot signal helper process %s", self.process.pid)
            else:
                logger.info("Killed helper process %s", self.process.pid)
        if await self._wait_stopped():
            return

        # Once authenticated, sudo runs as root and may ignore our signals.
        rc, _, err = await run_cmd(
            "kill", "-KILL", str(self.process.pid), sudo=True, timeout=self.kill_grace
        )
        if rc != 0:
            logger.warning("sudo kill of helper process %s failed: %s", self.process.pid, err)
        if not await self._wait_stopped():
            logger.error("Helper process %s is still running; giving up on it", self.process.pid)

    async def _wait_stopped(self) -> bool:
        try:
            await asyncio.wait_for(self.process.wait(), self.kill_grace)
        except asyncio.TimeoutError:
            return False
        return True

    async def _settle_prompt(self) -> None:
        task = self._prompt_task
        if task is not None and self._prompt_dismissed and not task.done():
            # Already cancelled; let the provider finish tidying up its UI.
            with contextlib.suppress(asyncio.CancelledError):
                await task
        else:
            await self._cancel(task)

    @staticmethod
    async def _cancel(task: Optional[asyncio.Task]) -> None:
        if task is None:
            return
        if task.done():
            if not task.cancelled() and task.exception() is not None:
                logger.error("Helper I/O task failed", exc_info=task.exception())
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


class PrivilegedWriter:
    def __init__(
        self,
        prompt_provider: PromptProvider,
        settings: Optional[Settings] = None,
        command_builder: Optional[CommandBuilder] = None,
    ):
        self.prompt_provider = prompt_provider
        self.settings = settings or default_settings
        self._command_builder = command_builder or (
            lambda path: build_helper_command(path, self.settings)
        )

    async def write(self, request: WriteRequest) -> None:
        """Write ``request.payload`` to ``request.path`` as root.

        Returns on success. Raises ``WriteCancelled``, ``WriteTimeout``,
        ``HelperExitError`` or ``HelperStartError``. The helper process has
        exited (or been killed) by the time this returns or raises, unless
        even ``sudo -n kill`` could not stop it; that case is logged.
        """
        command = self._command_builder(request.path)
        try:
            process = await asyncio.create_subprocess_exec(
                *command.argv,
                env=command.env,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise HelperStartError(f"Could not start {command.argv[0]}: {e}") from e

        logger.info("Writing %d bytes to %s via pid %s", len(request.payload), request.path, process.pid)
        protocol = HandshakeProtocol(
            self.settings.password_marker,
            self.settings.success_marker,
            account_hint=current_user(),
        )
        session = HandshakeSession(
            process,
            request,
            self.prompt_provider,
            protocol,
            self.settings.timeout_seconds,
            marker_settle=self.settings.marker_settle_seconds,
            kill_grace=self.settings.kill_grace_seconds,
        )
        await session.run()


async def write_privileged(
    path: str,
    payload: bytes,
    prompt_provider: PromptProvider,
    settings: Optional[Settings] = None,
) -> None:
    writer = PrivilegedWriter(prompt_provider, settings=settings)
    await writer.write(WriteRequest(path=path, payload=payload))
