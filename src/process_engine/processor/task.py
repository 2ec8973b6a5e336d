"""Task runs: the materialized, executable unit of a process."""

from __future__ import annotations

import re
import threading
from collections.abc import Mapping
from datetime import timedelta
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from process_engine.errors import ProcessFailure


class TaskStatus(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


ALLOWED_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.CREATED: {TaskStatus.RUNNING},
    TaskStatus.RUNNING: {TaskStatus.COMPLETED, TaskStatus.FAILED},
    TaskStatus.COMPLETED: set(),
    TaskStatus.FAILED: set(),
}


class IllegalTransitionError(ValueError):
    pass


_DURATION_UNITS: dict[str, str] = {
    "ms": "milliseconds",
    "milli": "milliseconds",
    "millis": "milliseconds",
    "s": "seconds",
    "sec": "seconds",
    "second": "seconds",
    "seconds": "seconds",
    "m": "minutes",
    "min": "minutes",
    "mins": "minutes",
    "minute": "minutes",
    "minutes": "minutes",
    "h": "hours",
    "hour": "hours",
    "hours": "hours",
    "d": "days",
    "day": "days",
    "days": "days",
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)\s*([a-zA-Z]+)")


def parse_duration(text: str) -> timedelta:
    """Parse a human duration such as ``"1s"``, ``"30 min"`` or ``"1h 30m"``."""

    stripped = text.strip()
    parts = _DURATION_PART.findall(stripped)
    if not parts or _DURATION_PART.sub("", stripped).strip():
        raise ValueError(f"Not a valid duration: {text!r}")

    total = timedelta()
    for amount, unit in parts:
        key = _DURATION_UNITS.get(unit.lower())
        if key is None:
            raise ValueError(f"Unknown duration unit {unit!r} in {text!r}")
        total += timedelta(**{key: float(amount)})
    return total


class TaskConfig(BaseModel):
    """Execution limits and reporting options of a task."""

    model_config = ConfigDict(frozen=True)

    max_duration: timedelta | None = Field(
        default=None,
        description="Wall-clock limit after which the task is killed",
    )
    valid_exit_codes: frozenset[int] = Field(
        default=frozenset({0}),
        min_length=1,
        description="Exit codes considered successful",
    )
    echo: bool = Field(
        default=False,
        description="Mirror the task output to the launching process's stdout",
    )

    @field_validator("max_duration", mode="before")
    @classmethod
    def _parse_max_duration(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        text = value.strip()
        if re.fullmatch(r"\d+(?:\.\d+)?", text):
            return float(text)
        # ISO 8601 durations ("PT1M") are left to pydantic
        if text.startswith("P"):
            return text
        return parse_duration(text)

    @field_validator("max_duration")
    @classmethod
    def _positive_max_duration(cls, value: timedelta | None) -> timedelta | None:
        if value is not None and value <= timedelta(0):
            raise ValueError("max_duration must be positive")
        return value


class TaskRun:
    """One concrete instantiation of a process, with its resolved inputs.

    The launcher is the only writer of ``status``, ``exit_code``, ``output`` and
    ``timed_out``. Status changes are validated against
    :data:`ALLOWED_TRANSITIONS`.
    """

    def __init__(
        self,
        *,
        process_name: str,
        index: int,
        script: str,
        work_dir: Path | None,
        input: bytes | str | None = None,
        inputs: Mapping[str, object] | None = None,
        config: TaskConfig | None = None,
    ) -> None:
        self.process_name = process_name
        self.index = index
        self.script = script
        self.work_dir = work_dir
        self.input = input
        self.inputs: dict[str, object] = dict(inputs or {})
        self.config = config or TaskConfig()

        self.exit_code: int | None = None
        self.output: Path | None = None
        self.timed_out = False

        self._status = TaskStatus.CREATED
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return f"{self.process_name} ({self.index})"

    @property
    def status(self) -> TaskStatus:
        return self._status

    def transition(self, to: TaskStatus) -> None:
        with self._lock:
            if to not in ALLOWED_TRANSITIONS[self._status]:
                raise IllegalTransitionError(
                    f"Illegal transition for task {self.name}: {self._status.value} -> {to.value}"
                )
            self._status = to

    def is_success(self, exit_code: int | None) -> bool:
        return exit_code is not None and exit_code in self.config.valid_exit_codes

    def raise_for_status(self) -> None:
        """Raise :class:`ProcessFailure` if the task ended ``FAILED``."""

        if self._status is not TaskStatus.FAILED:
            return
        reason = "exceeded its max duration" if self.timed_out else "failed"
        raise ProcessFailure(
            f"Task {self.name} {reason} (exit code: {self.exit_code})",
            exit_code=self.exit_code,
            timed_out=self.timed_out,
        )

    def summary(self) -> dict[str, object]:
        return {
            "name": self.name,
            "status": self._status.value,
            "exit_code": self.exit_code,
            "timed_out": self.timed_out,
            "work_dir": str(self.work_dir) if self.work_dir is not None else None,
            "output": str(self.output) if self.output is not None else None,
        }

    def __repr__(self) -> str:
        return f"TaskRun(name={self.name!r}, status={self._status.value!r}, exit_code={self.exit_code!r})"
