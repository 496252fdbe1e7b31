"""Wrappers for small system commands."""

import asyncio
import getpass


async def run_cmd(
    *args: str,
    sudo: bool = False,
    timeout: float = 30.0,
) -> tuple[int, str, str]:
    """Run a command and return (returncode, stdout, stderr).

    When sudo=True, runs under sudo -n: cached credentials only, never a
    password prompt.
    """
    cmd = list(args)
    if sudo:
        cmd = ["sudo", "-n"] + cmd

    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        return 127, "", f"{cmd[0]}: command not found"

    try:
        stdout, stderr = await asyncio.wait_for(
            proc.communicate(), timeout=timeout,
        )
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        return -1, "", "Command timed out"

    return (
        proc.returncode or 0,
        stdout.decode("utf-8", errors="replace").strip(),
        stderr.decode("utf-8", errors="replace").strip(),
    )


async def get_hostname() -> str:
    rc, out, _ = await run_cmd("hostname")
    return out if rc == 0 else "unknown"


def current_user() -> str:
    """Login name shown in the password prompt."""
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"
