"""System info API endpoints."""

from fastapi import APIRouter

from ..services.system_inspector import inspect_system

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/info")
async def get_system_info():
    return await inspect_system()
