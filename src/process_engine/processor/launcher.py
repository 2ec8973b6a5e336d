"""Local task launcher: runs a TaskRun as a subprocess on this host."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
import threading
import time
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType
from typing import BinaryIO, TextIO

from process_engine.errors import IOFailure, LaunchFailure, PreconditionViolation
from process_engine.processor.script import (
    COMMAND_ENV_FILENAME,
    COMMAND_OUT_FILENAME,
    COMMAND_RUNNER_FILENAME,
    COMMAND_SCRIPT_FILENAME,
    DEFAULT_SHELL,
    normalize_script,
    render_environment,
    render_runner,
    write_artifact,
)
from process_engine.processor.streams import StdinFeeder, StdoutDrainer
from process_engine.processor.task import TaskRun, TaskStatus

logger = logging.getLogger(__name__)

DEFAULT_DRAIN_GRACE = 0.5
DEFAULT_POLL_INTERVAL = 0.1


def _kill_group(process: subprocess.Popen[bytes]) -> None:
    """SIGKILL the process group led by ``process``. Safe if it already exited."""

    try:
        os.killpg(process.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        # group is gone; make sure the leader itself is reaped
        if process.poll() is None:
            process.kill()


class _Execution:
    """Resources owned by a single launch, released exactly once."""

    def __init__(self, task: TaskRun, process: subprocess.Popen[bytes]) -> None:
        self.task = task
        self.process = process
        self.stop = threading.Event()
        self.feeder: StdinFeeder | None = None
        self.drainer: StdoutDrainer | None = None
        self.output_file: BinaryIO | None = None
        self.killed = False
        self._cleaned = False
        self._lock = threading.Lock()

    def kill(self) -> None:
        self.killed = True
        _kill_group(self.process)

    def close_output(self) -> None:
        if self.output_file is not None and not self.output_file.closed:
            self.output_file.close()

    def cleanup(self) -> None:
        with self._lock:
            if self._cleaned:
                return
            self._cleaned = True

        self.stop.set()
        if self.drainer is not None:
            self.drainer.stop()
        if self.feeder is not None:
            self.feeder.stop()

        for stream in (self.process.stdin, self.process.stdout, self.process.stderr):
            if stream is None:
                continue
            try:
                stream.close()
            except OSError:
                logger.debug("Closing task stream failed", extra={"task": self.task.name})

        self.close_output()

        if self.process.poll() is None:
            _kill_group(self.process)
        self.process.wait()


class LocalTaskLauncher:
    """Executes task runs as local subprocesses.

    Args:
        environment: Variables exported to every task. Defaults to a snapshot of
            ``os.environ`` taken when the launcher is created.
        drain_grace: Seconds given to the output drainer to flush after the
            process exits.
        poll_interval: Seconds between checks of the time limit, the cancel
            hook and the helper stop signal.
        shell: Interpreter used for scripts that carry no ``#!`` line.
        echo_stream: Where task output is mirrored when a task has ``echo`` set.
    """

    def __init__(
        self,
        *,
        environment: Mapping[str, str] | None = None,
        drain_grace: float = DEFAULT_DRAIN_GRACE,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        shell: str = DEFAULT_SHELL,
        echo_stream: TextIO | None = None,
    ) -> None:
        env = dict(os.environ) if environment is None else dict(environment)
        self.environment: Mapping[str, str] = MappingProxyType(env)
        self.drain_grace = drain_grace
        self.poll_interval = poll_interval
        self.shell = shell
        self._echo_stream = echo_stream

    def launch(self, task: TaskRun, *, cancel: threading.Event | None = None) -> TaskRun:
        """Run ``task`` to a terminal status and return it.

        A nonzero exit code or a time limit kill is recorded on the task as
        ``FAILED``; only precondition, artifact and spawn failures raise.
        ``cancel`` lets a controller request early termination.
        """

        self._check_preconditions(task)
        assert task.work_dir is not None
        scratch = task.work_dir
        logger.debug(
            "Launching task", extra={"task": task.name, "work_dir": str(scratch)}
        )

        runner = self._materialize(task, scratch)
        process = self._spawn(task, runner, scratch)
        task.transition(TaskStatus.RUNNING)

        execution = _Execution(task, process)
        out_path = scratch / COMMAND_OUT_FILENAME
        try:
            self._start_helpers(execution, out_path)
            exit_code = self._wait(execution, cancel)

            success = not execution.killed and task.is_success(exit_code)
            logger.debug(
                "Task completed",
                extra={
                    "task": task.name,
                    "exit_code": exit_code,
                    "success": success,
                    "timed_out": task.timed_out,
                },
            )

            assert execution.drainer is not None
            if not execution.drainer.await_eof(self.drain_grace):
                logger.debug("Task output not drained within grace period", extra={"task": task.name})
            execution.drainer.stop()
            execution.close_output()
        finally:
            execution.cleanup()
            task.output = out_path

        # terminal only once the process is destroyed and its streams are closed
        task.exit_code = exit_code
        task.transition(TaskStatus.COMPLETED if success else TaskStatus.FAILED)
        return task

    def _check_preconditions(self, task: TaskRun) -> None:
        if not task.script or not task.script.strip():
            raise PreconditionViolation(f"Task {task.name} has no script")
        if task.work_dir is None:
            raise PreconditionViolation(f"Task {task.name} has no work directory")
        if task.status is not TaskStatus.CREATED:
            raise PreconditionViolation(
                f"Task {task.name} cannot be launched from status {task.status.value}"
            )

    def _materialize(self, task: TaskRun, scratch: Path) -> Path:
        try:
            scratch.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise IOFailure(f"Unable to create work directory {scratch}: {e}") from e

        write_artifact(
            scratch / COMMAND_ENV_FILENAME,
            render_environment(self.environment, task_name=task.name),
        )
        write_artifact(
            scratch / COMMAND_SCRIPT_FILENAME,
            normalize_script(task.script, shell=self.shell),
            executable=True,
        )
        return write_artifact(
            scratch / COMMAND_RUNNER_FILENAME,
            render_runner(shell=self.shell),
            executable=True,
        )

    def _spawn(self, task: TaskRun, runner: Path, scratch: Path) -> subprocess.Popen[bytes]:
        try:
            return subprocess.Popen(
                [str(runner.absolute())],
                cwd=scratch,
                stdin=subprocess.PIPE if task.input is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                bufsize=0,
                start_new_session=True,
            )
        except OSError as e:
            raise LaunchFailure(f"Unable to launch task {task.name}: {e}") from e

    def _start_helpers(self, execution: _Execution, out_path: Path) -> None:
        task = execution.task
        process = execution.process

        if task.input is not None:
            assert process.stdin is not None
            execution.feeder = StdinFeeder(
                process.stdin,
                task.input,
                name=task.name,
                stop=execution.stop,
                poll_interval=self.poll_interval,
            )
            execution.feeder.start()

        try:
            execution.output_file = open(out_path, "wb")  # noqa: SIM115 (closed by cleanup)
        except OSError as e:
            raise IOFailure(f"Unable to open task output {out_path}: {e}") from e

        assert process.stdout is not None
        execution.drainer = StdoutDrainer(
            process.stdout,
            execution.output_file,
            name=task.name,
            stop=execution.stop,
            echo_stream=(self._echo_stream or sys.stdout) if task.config.echo else None,
            poll_interval=self.poll_interval,
        )
        execution.drainer.start()

    def _wait(self, execution: _Execution, cancel: threading.Event | None) -> int:
        task = execution.task
        process = execution.process
        max_duration = task.config.max_duration

        if max_duration is None and cancel is None:
            logger.debug("Running task, wait forever", extra={"task": task.name})
            return process.wait()

        limit = max_duration.total_seconds() if max_duration is not None else None
        logger.debug("Running task, waiting max", extra={"task": task.name, "max_seconds": limit})
        deadline = time.monotonic() + limit if limit is not None else None
        while True:
            timeout = self.poll_interval
            if deadline is not None:
                timeout = min(timeout, max(deadline - time.monotonic(), 0.0))
            try:
                return process.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                pass

            # the process may have exited between the wait and the checks below
            if process.poll() is not None:
                return process.returncode
            if deadline is not None and time.monotonic() >= deadline:
                logger.info("Task exceeded its max duration, killing", extra={"task": task.name})
                task.timed_out = True
                execution.kill()
                return process.wait()
            if cancel is not None and cancel.is_set():
                logger.info("Task cancelled, killing", extra={"task": task.name})
                execution.kill()
                return process.wait()
