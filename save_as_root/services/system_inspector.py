"""Report what a privileged save would run with."""

import shutil

from ..config import settings
from ..models.system import SystemInfo
from ..utils.commands import current_user, get_hostname
from ..utils.permissions import check_sudo_cached


async def inspect_system() -> SystemInfo:
    return SystemInfo(
        hostname=await get_hostname(),
        user=current_user(),
        sudo_path=shutil.which(settings.sudo_command),
        sudo_cached=await check_sudo_cached(),
        timeout_seconds=settings.timeout_seconds,
    )
