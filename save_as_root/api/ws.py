"""WebSocket endpoint for interactive saves.

Client -> server:
    {"action": "save", "target": ..., "content": ..., "encoding": "utf-8" | "base64"}
    {"action": "password", "password": ...}   (answer to a prompt)
    {"action": "cancel"}                      (dismiss a prompt)

Server -> client:
    {"type": "password_prompt", "account": ..., "error": ...}
    {"type": "password_dismissed"}            (the open prompt is no longer needed)
    {"type": "save_status", "job_id": ..., "status": ...}
    {"type": "save_result", "job_id": ..., "status": ..., "error": ...}
    {"type": "error", "detail": ...}
"""

import asyncio
import json
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from ..models.save import SaveRequest
from ..models.write import PromptContext
from ..privileged.errors import UnsupportedTargetError
from ..privileged.prompt import PromptProvider
from ..services.save_manager import SaveInProgressError, save_manager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


async def _receive_message(ws: WebSocket) -> Optional[dict]:
    data = await ws.receive_text()
    try:
        msg = json.loads(data)
    except json.JSONDecodeError:
        return None
    return msg if isinstance(msg, dict) else None


class WebSocketPromptProvider(PromptProvider):
    """Ask the connected client for the password."""

    def __init__(self, ws: WebSocket):
        self.ws = ws
        self.disconnected = False

    async def request_secret(self, context: PromptContext) -> Optional[str]:
        try:
            await self.ws.send_json({
                "type": "password_prompt",
                "account": context.account_hint,
                "error": context.prior_error_text,
            })
            while True:
                msg = await _receive_message(self.ws)
                if msg is None:
                    continue
                action = msg.get("action")
                if action == "cancel":
                    return None
                if action == "password" and isinstance(msg.get("password"), str):
                    return msg["password"]
                await self.ws.send_json({"type": "error", "detail": "a password prompt is open"})
        except WebSocketDisconnect:
            self.disconnected = True
            return None
        except asyncio.CancelledError:
            # The helper moved on without an answer; close the client dialog.
            await self.send_event({"type": "password_dismissed"})
            raise

    async def send_event(self, message: dict) -> None:
        if self.disconnected:
            return
        try:
            await self.ws.send_json(message)
        except Exception:
            self.disconnected = True


@router.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    prompt = WebSocketPromptProvider(ws)

    try:
        while not prompt.disconnected:
            msg = await _receive_message(ws)
            if msg is None or msg.get("action") != "save":
                continue

            try:
                request = SaveRequest.model_validate(msg)
                job = save_manager.create_job(request)
            except ValidationError as e:
                await ws.send_json({"type": "error", "detail": str(e)})
                continue
            except (UnsupportedTargetError, SaveInProgressError) as e:
                await ws.send_json({"type": "error", "detail": str(e)})
                continue

            async def status_cb(job):
                await prompt.send_event({
                    "type": "save_status",
                    "job_id": job.id,
                    "status": job.status.value,
                })

            save_manager.add_listener(job.id, status_cb)
            job = await save_manager.run_job(job.id, prompt)

            if prompt.disconnected:
                break
            await ws.send_json({
                "type": "save_result",
                "job_id": job.id,
                "status": job.status.value,
                "error": job.error,
            })
    except WebSocketDisconnect:
        logger.debug("WebSocket client disconnected")
