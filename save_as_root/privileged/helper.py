"""Build the sudo command line for a privileged write."""

import os
import shlex
import shutil
from dataclasses import dataclass, field

from ..config import Settings
from .errors import HelperStartError

# The target path reaches the helper only through this variable, never argv
# or an interpolated shell string.
TARGET_ENV_VAR = "SAVE_AS_ROOT_TARGET"

# Buffer all of stdin before touching the target so a failed transfer never
# leaves a truncated file. Copying over the target keeps its owner and mode.
_WRITE_SCRIPT = """\
printf '%s\\n' {marker} >&2
tmp=$(mktemp) || exit 1
trap 'rm -f -- "$tmp"' EXIT
cat > "$tmp" || exit 1
cat -- "$tmp" > "${var}"
"""


@dataclass
class HelperCommand:
    argv: list[str]
    env: dict[str, str] = field(default_factory=dict)


def write_script(success_marker: str) -> str:
    return _WRITE_SCRIPT.format(marker=shlex.quote(success_marker), var=TARGET_ENV_VAR)


def build_helper_command(path: str, settings: Settings) -> HelperCommand:
    """sudo -S -p <marker> --preserve-env=<var> <shell> -c <script>"""
    sudo = shutil.which(settings.sudo_command)
    if not sudo:
        raise HelperStartError(f"{settings.sudo_command} not found on PATH")
    shell = shutil.which(settings.shell) or settings.shell

    argv = [
        sudo,
        "-S",
        "-p", settings.password_marker,
        f"--preserve-env={TARGET_ENV_VAR}",
        shell, "-c", write_script(settings.success_marker),
    ]
    env = {
        "PATH": os.environ.get("PATH", os.defpath),
        "LC_ALL": "C",
        TARGET_ENV_VAR: path,
    }
    return HelperCommand(argv=argv, env=env)
