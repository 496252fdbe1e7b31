"""Permission checking utilities."""

from pathlib import Path
from urllib.parse import unquote, urlparse

from ..privileged.errors import UnsupportedTargetError
from .commands import run_cmd


async def check_sudo_cached() -> bool:
    """Check if sudo credentials are cached (non-interactive)."""
    rc, _, _ = await run_cmd("true", sudo=True, timeout=5.0)
    return rc == 0


def resolve_target(target: str) -> str:
    """Turn a path or file:// URI into an absolute local path.

    Raises UnsupportedTargetError for other URI schemes, relative paths,
    directories and paths whose parent directory does not exist.
    """
    parsed = urlparse(target)
    if parsed.scheme == "file":
        if parsed.netloc not in ("", "localhost"):
            raise UnsupportedTargetError(f"remote host {parsed.netloc} is not supported.")
        target = unquote(parsed.path)
    elif parsed.scheme:
        raise UnsupportedTargetError(f"scheme {parsed.scheme} is not supported.")

    p = Path(target).expanduser()
    if not p.is_absolute():
        raise UnsupportedTargetError(f"path must be absolute: {target}")
    if p.is_dir():
        raise UnsupportedTargetError(f"{p} is a directory")
    if not p.parent.is_dir():
        raise UnsupportedTargetError(f"directory {p.parent} does not exist")
    return str(p)
