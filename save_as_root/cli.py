"""Command line entry points."""

import asyncio
import logging
import sys

import typer
import uvicorn

from .config import settings
from .models.write import WriteRequest
from .privileged.errors import PrivilegedWriteError, WriteCancelled
from .privileged.orchestrator import PrivilegedWriter
from .privileged.prompt import TerminalPromptProvider
from .utils.permissions import resolve_target

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="save-as-root",
    help="Write files with root privileges.",
    add_completion=False,
    no_args_is_help=True,
)


def _fail(message: str) -> None:
    typer.echo(f"[Save as Root] {message}", err=True)
    raise typer.Exit(1)


@app.command()
def write(target: str = typer.Argument(..., help="Path or file:// URI to write.")) -> None:
    """Write stdin to TARGET as root, asking for the sudo password on the terminal."""
    logging.basicConfig(level=settings.log_level.upper(), format="%(levelname)s: %(name)s: %(message)s")
    try:
        path = resolve_target(target)
    except PrivilegedWriteError as e:
        _fail(str(e))

    payload = sys.stdin.buffer.read()
    writer = PrivilegedWriter(TerminalPromptProvider())
    try:
        asyncio.run(writer.write(WriteRequest(path=path, payload=payload)))
    except WriteCancelled:
        logger.debug("cancelled")
        raise typer.Exit(1)
    except PrivilegedWriteError as e:
        _fail(str(e))


@app.command()
def serve() -> None:
    """Start the HTTP API."""
    uvicorn.run(
        "save_as_root.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


def main() -> None:
    app()
