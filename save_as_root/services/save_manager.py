"""Save job lifecycle."""

import asyncio
import base64
import binascii
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from ..models.save import SaveJob, SaveRequest, SaveStatus
from ..models.write import WriteRequest
from ..privileged.errors import PrivilegedWriteError, UnsupportedTargetError, WriteCancelled
from ..privileged.orchestrator import PrivilegedWriter
from ..privileged.prompt import PromptProvider
from ..utils.permissions import resolve_target

logger = logging.getLogger(__name__)

WriterFactory = Callable[[PromptProvider], PrivilegedWriter]


class SaveInProgressError(Exception):
    """Only one privileged save may run at a time."""


def decode_content(request: SaveRequest) -> bytes:
    if request.encoding == "base64":
        try:
            return base64.b64decode(request.content, validate=True)
        except binascii.Error as e:
            raise UnsupportedTargetError(f"invalid base64 content: {e}") from e
    return request.content.encode("utf-8")


class SaveManager:
    def __init__(self, writer_factory: Optional[WriterFactory] = None):
        self._jobs: dict[str, SaveJob] = {}
        self._requests: dict[str, WriteRequest] = {}
        self._listeners: dict[str, list[Callable]] = {}
        self._active: Optional[str] = None
        self.writer_factory: WriterFactory = writer_factory or PrivilegedWriter

    def get_job(self, job_id: str) -> Optional[SaveJob]:
        return self._jobs.get(job_id)

    @property
    def busy(self) -> bool:
        return self._active is not None

    def add_listener(self, job_id: str, callback: Callable) -> None:
        self._listeners.setdefault(job_id, []).append(callback)

    def remove_listener(self, job_id: str, callback: Callable) -> None:
        listeners = self._listeners.get(job_id, [])
        if callback in listeners:
            listeners.remove(callback)

    def create_job(self, request: SaveRequest) -> SaveJob:
        """Validate and record a save. It holds the single save slot until run."""
        if self.busy:
            raise SaveInProgressError(f"save {self._active} is still running")
        path = resolve_target(request.target)
        payload = decode_content(request)

        job = SaveJob(target=path, size=len(payload))
        self._jobs[job.id] = job
        self._requests[job.id] = WriteRequest(path=path, payload=payload)
        self._active = job.id
        return job

    async def run_job(self, job_id: str, prompt_provider: PromptProvider) -> SaveJob:
        """Run a created save to completion.

        Every outcome, cancellation included, is reported on the job and to
        its listeners.
        """
        job = self._jobs[job_id]
        request = self._requests.pop(job_id)
        try:
            job.status = SaveStatus.RUNNING
            await self._notify(job)

            writer = self.writer_factory(prompt_provider)
            try:
                await writer.write(request)
            except asyncio.CancelledError:
                job.status = SaveStatus.CANCELLED
                job.completed_at = datetime.now(tz=timezone.utc)
                await self._notify(job)
                raise
            except WriteCancelled:
                job.status = SaveStatus.CANCELLED
                logger.info("Save %s cancelled by user", job.id)
            except PrivilegedWriteError as e:
                job.status = SaveStatus.FAILED
                job.error = str(e)
                logger.warning("Save %s failed: %s", job.id, e)
            else:
                job.status = SaveStatus.COMPLETED
                logger.info("Saved %d bytes to %s", job.size, request.path)

            job.completed_at = datetime.now(tz=timezone.utc)
            await self._notify(job)
        finally:
            self._active = None
            self._listeners.pop(job_id, None)
        return job

    async def save(self, request: SaveRequest, prompt_provider: PromptProvider) -> SaveJob:
        """Create and run a save. Invalid targets and concurrent saves raise."""
        job = self.create_job(request)
        return await self.run_job(job.id, prompt_provider)

    async def _notify(self, job: SaveJob) -> None:
        for cb in list(self._listeners.get(job.id, [])):
            try:
                await cb(job)
            except Exception:
                logger.exception("Save listener failed")


# Singleton
save_manager = SaveManager()
