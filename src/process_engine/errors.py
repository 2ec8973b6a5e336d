"""Error taxonomy shared by the dataflow and processor packages.

Only the synchronous failures are raised by the engine itself. A task that
exits with an invalid code (or is killed by its time limit) is recorded as
``FAILED`` on the task; :class:`ProcessFailure` is raised only when a caller
asks for it via ``TaskRun.raise_for_status()``.
"""

from __future__ import annotations


class ProcessEngineError(Exception):
    """Base class for every error raised by the engine."""


class PreconditionViolation(ProcessEngineError, ValueError):
    """A task is not ready to be launched (missing script, work dir, ...)."""


class ChannelResolutionError(ProcessEngineError, ValueError):
    """A process input source could not be resolved into a channel."""


class ChannelClosedError(ProcessEngineError):
    """An item was emitted into a stream that has already been closed."""


class LaunchFailure(ProcessEngineError):
    """The task subprocess could not be spawned."""


class IOFailure(ProcessEngineError):
    """A task artifact could not be written or read."""


class ProcessFailure(ProcessEngineError):
    """A task terminated with an exit code outside its valid set, or was killed."""

    def __init__(self, message: str, *, exit_code: int | None, timed_out: bool = False) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.timed_out = timed_out
