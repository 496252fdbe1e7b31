"""Error types raised by privileged writes."""


class PrivilegedWriteError(Exception):
    """Base error. ``diagnostics`` holds helper stderr text collected so far."""

    def __init__(self, message: str = "", diagnostics: str = ""):
        super().__init__(message)
        self.diagnostics = diagnostics


class WriteCancelled(PrivilegedWriteError):
    """The user dismissed the password prompt. Callers should not report it."""

    def __init__(self):
        super().__init__("cancelled")


class WriteTimeout(PrivilegedWriteError):
    def __init__(self, diagnostics: str = ""):
        super().__init__(f"Timeout: {diagnostics}".rstrip(), diagnostics)


class HelperExitError(PrivilegedWriteError):
    def __init__(self, returncode: int, diagnostics: str = ""):
        super().__init__(f"exit code {returncode}: {diagnostics}".rstrip(), diagnostics)
        self.returncode = returncode


class HelperStartError(PrivilegedWriteError):
    """The escalation helper could not be spawned."""


class PromptError(PrivilegedWriteError):
    """The prompt provider raised instead of returning a secret or None."""


class UnsupportedTargetError(PrivilegedWriteError):
    """Rejected before any helper process is started."""
