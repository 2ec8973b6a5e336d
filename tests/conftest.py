"""Test configuration and fixtures."""

from __future__ import annotations

import io
import os
from collections.abc import Callable
from pathlib import Path

import pytest

from process_engine.processor.launcher import LocalTaskLauncher
from process_engine.processor.task import TaskConfig, TaskRun


@pytest.fixture
def environment() -> dict[str, str]:
    """Provide a small, injected task environment."""
    return {
        "PATH": os.environ.get("PATH", "/usr/bin:/bin"),
        "GREETING": "hi there",
    }


@pytest.fixture
def echo_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def launcher(environment: dict[str, str], echo_stream: io.StringIO) -> LocalTaskLauncher:
    """Provide a launcher with a fast poll interval."""
    return LocalTaskLauncher(
        environment=environment,
        drain_grace=0.5,
        poll_interval=0.05,
        echo_stream=echo_stream,
    )


@pytest.fixture
def make_task(tmp_path: Path) -> Callable[..., TaskRun]:
    """Build task runs with a fresh work directory under tmp_path."""

    counter = 0

    def _make(
        script: str,
        *,
        input: bytes | str | None = None,
        config: TaskConfig | None = None,
        work_dir: Path | None = None,
    ) -> TaskRun:
        nonlocal counter
        counter += 1
        return TaskRun(
            process_name="test",
            index=counter,
            script=script,
            work_dir=work_dir or tmp_path / f"task-{counter}",
            input=input,
            config=config,
        )

    return _make
