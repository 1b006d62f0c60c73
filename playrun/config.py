"""Global configuration — loaded from environment variables."""

from pathlib import Path

from pydantic_settings import BaseSettings


class PlayrunSettings(BaseSettings):
    msg_limit: int = 1000  # max messages relayed per process
    workdir: Path | None = None  # default cwd for session "run" commands
    read_chunk_size: int = 4096
    log_level: str = "INFO"

    model_config = {"env_prefix": "PLAYRUN_"}


settings = PlayrunSettings()
