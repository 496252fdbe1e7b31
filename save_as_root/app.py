"""FastAPI application factory."""

import logging

from fastapi import FastAPI

from .config import settings
from .api.router import api_router

# Configure logging for our modules
logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(name)s: %(message)s")
logging.getLogger("save_as_root").setLevel(settings.log_level.upper())


def create_app() -> FastAPI:
    app = FastAPI(
        title="save-as-root",
        version="0.1.0",
        description="Write files with root privileges",
    )

    app.include_router(api_router, prefix="/api")

    return app
