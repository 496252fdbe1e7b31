"""Non-interactive save endpoints.

Without a way to ask for a password these only succeed when sudo already has
cached credentials. Interactive saves go through the websocket.
"""

from fastapi import APIRouter, HTTPException

from ..models.save import SaveRequest, SaveStatus
from ..privileged.errors import UnsupportedTargetError
from ..privileged.prompt import NonInteractivePromptProvider
from ..services.save_manager import SaveInProgressError, save_manager

router = APIRouter(prefix="/save", tags=["save"])


@router.post("")
async def save(request: SaveRequest):
    try:
        job = await save_manager.save(request, NonInteractivePromptProvider())
    except UnsupportedTargetError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SaveInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if job.status == SaveStatus.CANCELLED:
        raise HTTPException(status_code=401, detail="sudo credentials are not cached")
    if job.status == SaveStatus.FAILED:
        raise HTTPException(status_code=502, detail=job.error)
    return job


@router.get("/jobs/{job_id}")
async def get_save_job(job_id: str):
    job = save_manager.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Save job not found")
    return job
