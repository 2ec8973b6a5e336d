"""Unit tests for task runs, their configuration and status machine."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from process_engine.errors import ProcessFailure
from process_engine.processor.task import (
    IllegalTransitionError,
    TaskConfig,
    TaskRun,
    TaskStatus,
    parse_duration,
)


def _task() -> TaskRun:
    return TaskRun(process_name="proc", index=2, script="true", work_dir=Path("/tmp/x"))


def test_new_task_is_created_with_defaults() -> None:
    task = _task()

    assert task.name == "proc (2)"
    assert task.status is TaskStatus.CREATED
    assert task.exit_code is None
    assert task.output is None
    assert task.config.valid_exit_codes == frozenset({0})
    assert task.config.max_duration is None
    assert task.config.echo is False


def test_status_follows_the_legal_path() -> None:
    task = _task()
    task.transition(TaskStatus.RUNNING)
    task.transition(TaskStatus.FAILED)

    assert task.status is TaskStatus.FAILED
    assert task.status.terminal


@pytest.mark.parametrize(
    ("path", "illegal"),
    [
        ([], TaskStatus.COMPLETED),
        ([], TaskStatus.FAILED),
        ([TaskStatus.RUNNING], TaskStatus.CREATED),
        ([TaskStatus.RUNNING, TaskStatus.COMPLETED], TaskStatus.FAILED),
        ([TaskStatus.RUNNING, TaskStatus.FAILED], TaskStatus.RUNNING),
    ],
)
def test_illegal_transitions_fail_loudly(path: list[TaskStatus], illegal: TaskStatus) -> None:
    task = _task()
    for status in path:
        task.transition(status)

    with pytest.raises(IllegalTransitionError):
        task.transition(illegal)


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("1s", timedelta(seconds=1)),
        ("500ms", timedelta(milliseconds=500)),
        ("30 min", timedelta(minutes=30)),
        ("2 hour", timedelta(hours=2)),
        ("1 day", timedelta(days=1)),
        ("1h 30m", timedelta(hours=1, minutes=30)),
    ],
)
def test_parse_duration(text: str, expected: timedelta) -> None:
    assert parse_duration(text) == expected


@pytest.mark.parametrize("text", ["", "soon", "10 parsecs", "5s and more"])
def test_parse_duration_rejects_garbage(text: str) -> None:
    with pytest.raises(ValueError):
        parse_duration(text)


def test_task_config_accepts_duration_strings_and_seconds() -> None:
    assert TaskConfig(max_duration="10 min").max_duration == timedelta(minutes=10)
    assert TaskConfig(max_duration="2.5").max_duration == timedelta(seconds=2.5)
    assert TaskConfig(max_duration=3).max_duration == timedelta(seconds=3)
    assert TaskConfig(max_duration="PT1M").max_duration == timedelta(minutes=1)


def test_task_config_validation() -> None:
    with pytest.raises(ValidationError):
        TaskConfig(max_duration="0s")
    with pytest.raises(ValidationError):
        TaskConfig(valid_exit_codes=[])

    config = TaskConfig(valid_exit_codes=[0, 1])
    assert config.valid_exit_codes == frozenset({0, 1})


def test_raise_for_status_only_raises_for_failed_tasks() -> None:
    task = _task()
    task.raise_for_status()

    task.transition(TaskStatus.RUNNING)
    task.exit_code = -9
    task.timed_out = True
    task.transition(TaskStatus.FAILED)

    with pytest.raises(ProcessFailure, match="max duration") as info:
        task.raise_for_status()
    assert info.value.exit_code == -9
    assert info.value.timed_out is True


def test_summary_is_json_friendly() -> None:
    task = _task()

    assert task.summary() == {
        "name": "proc (2)",
        "status": "created",
        "exit_code": None,
        "timed_out": False,
        "work_dir": "/tmp/x",
        "output": None,
    }
