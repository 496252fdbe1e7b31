"""Application settings."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    host: str = "127.0.0.1"
    port: int = 8788
    debug: bool = False
    log_level: str = "INFO"

    # Escalation helper
    sudo_command: str = "sudo"
    shell: str = "/bin/bash"
    password_marker: str = "password:"
    success_marker: str = "file contents:"
    timeout_seconds: float = 100.0
    # How long an unterminated marker may wait for the rest of its line.
    marker_settle_seconds: float = 0.05
    # How long to wait for the helper to die after each kill attempt.
    kill_grace_seconds: float = 5.0

    model_config = {"env_prefix": "SAVE_AS_ROOT_"}


settings = Settings()
