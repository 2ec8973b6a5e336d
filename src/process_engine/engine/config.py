"""Configuration for the local process engine.

Configuration is loaded from:
- environment variables prefixed with ``PROCESS_ENGINE_``
- and a local `.env` file (if present)
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from process_engine.processor.launcher import LocalTaskLauncher
from process_engine.processor.runner import ProcessRunner


class EngineSettings(BaseSettings):
    """Settings for the process engine.

    Environment variables:
    - PROCESS_ENGINE_LOG_LEVEL
    - PROCESS_ENGINE_WORK_DIR
    - PROCESS_ENGINE_DRAIN_GRACE
    - PROCESS_ENGINE_POLL_INTERVAL
    - PROCESS_ENGINE_SHELL
    - PROCESS_ENGINE_MAX_WORKERS
    - PROCESS_ENGINE_ECHO

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `EngineSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="INFO",
        description="Root logging level",
    )
    work_dir: Path = Field(
        default=Path("work"),
        description="Root directory under which task work directories are created",
    )
    drain_grace: float = Field(
        default=0.5,
        ge=0.0,
        description="Seconds allowed for flushing task output after the process exits",
    )
    poll_interval: float = Field(
        default=0.1,
        gt=0.0,
        description="Seconds between time limit and stop signal checks",
    )
    shell: str = Field(
        default="/bin/bash",
        description="Interpreter used for task scripts without a #! line",
    )
    max_workers: int = Field(
        default=4,
        gt=0,
        description="Maximum number of tasks executed concurrently",
    )
    echo: bool = Field(
        default=False,
        description="Mirror task output to the console by default",
    )

    model_config = SettingsConfigDict(
        env_prefix="PROCESS_ENGINE_",
        env_file=".env",
        extra="ignore",
    )

    def build_launcher(self) -> LocalTaskLauncher:
        return LocalTaskLauncher(
            drain_grace=self.drain_grace,
            poll_interval=self.poll_interval,
            shell=self.shell,
        )

    def build_runner(self, launcher: LocalTaskLauncher | None = None) -> ProcessRunner:
        return ProcessRunner(
            launcher or self.build_launcher(),
            work_root=self.work_dir,
            max_workers=self.max_workers,
        )
