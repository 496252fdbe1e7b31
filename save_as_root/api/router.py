"""Aggregate all API sub-routers."""

from fastapi import APIRouter

from . import system, save, ws

api_router = APIRouter()

api_router.include_router(system.router)
api_router.include_router(save.router)
api_router.include_router(ws.router)
