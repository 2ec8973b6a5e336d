"""Process definitions and the runner turning them into launched task runs."""

from __future__ import annotations

import logging
import string
import uuid
from collections.abc import Callable, Iterable, Iterator, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

from process_engine.dataflow.inputs import ProcessInput
from process_engine.dataflow.scheduler import iter_input_tuples
from process_engine.errors import IOFailure
from process_engine.processor.launcher import LocalTaskLauncher
from process_engine.processor.task import TaskConfig, TaskRun

logger = logging.getLogger(__name__)

ScriptTemplate = Union[str, Callable[[Mapping[str, object]], str]]


def render_script(script: ScriptTemplate, inputs: Mapping[str, object]) -> str:
    """Render a script template against resolved input values.

    String templates use ``$name`` / ``${name}`` placeholders; placeholders that
    are not inputs are left for the shell.
    """

    if callable(script):
        return script(inputs)
    return string.Template(script).safe_substitute({k: str(v) for k, v in inputs.items()})


@dataclass(slots=True)
class ProcessDef:
    """A process: named inputs, a script template and task configuration."""

    name: str
    script: ScriptTemplate
    inputs: list[ProcessInput] = field(default_factory=list)
    stdin: str | None = None
    config: TaskConfig = field(default_factory=TaskConfig)

    def __post_init__(self) -> None:
        names = [item.name for item in self.inputs]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate input names in process {self.name}: {duplicates}")
        if self.stdin is not None and self.stdin not in names:
            raise ValueError(f"Process {self.name} has no input named {self.stdin!r} for stdin")

    def bind(self, **sources: object) -> ProcessDef:
        """Bind each input to the source passed under its name."""

        missing = [item.name for item in self.inputs if item.name not in sources]
        if missing:
            raise ValueError(f"Missing sources for process {self.name}: {missing}")
        for item in self.inputs:
            item.bind(sources[item.name])
        return self


def new_work_dir(root: Path) -> Path:
    """Create a work directory under ``root`` that no other task shares."""

    while True:
        key = uuid.uuid4().hex
        path = root / key[:2] / key[2:]
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.mkdir()
        except FileExistsError:
            continue
        except OSError as e:
            raise IOFailure(f"Unable to create work directory under {root}: {e}") from e
        return path


class ProcessRunner:
    """Creates one task run per input tuple and launches them concurrently."""

    def __init__(self, launcher: LocalTaskLauncher, *, work_root: Path, max_workers: int = 4) -> None:
        self.launcher = launcher
        self.work_root = work_root
        self.max_workers = max_workers

    def iter_tasks(self, process: ProcessDef) -> Iterator[TaskRun]:
        """Yield a task run as soon as each input tuple becomes available."""

        for index, values in enumerate(iter_input_tuples(process.inputs), start=1):
            yield self._create_task(process, index, values)

    def create_tasks(self, process: ProcessDef) -> list[TaskRun]:
        tasks = list(self.iter_tasks(process))
        logger.info(
            "Created tasks for process", extra={"process_name": process.name, "count": len(tasks)}
        )
        return tasks

    def _create_task(
        self, process: ProcessDef, index: int, values: Mapping[str, object]
    ) -> TaskRun:
        payload = values[process.stdin] if process.stdin is not None else None
        if payload is not None and not isinstance(payload, (bytes, str)):
            payload = str(payload)
        return TaskRun(
            process_name=process.name,
            index=index,
            script=render_script(process.script, values),
            work_dir=new_work_dir(self.work_root),
            input=payload,
            inputs=values,
            config=process.config,
        )

    def run(self, process: ProcessDef) -> list[TaskRun]:
        """Launch every task of ``process`` and return them once all are terminal.

        Each task starts as soon as its input tuple arrives; results keep index order.
        """

        tasks = self.launch_all(self.iter_tasks(process))
        logger.info(
            "Process finished", extra={"process_name": process.name, "count": len(tasks)}
        )
        return tasks

    def launch_all(self, tasks: Iterable[TaskRun]) -> list[TaskRun]:
        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="task-run"
        ) as pool:
            futures = [pool.submit(self.launcher.launch, task) for task in tasks]
            return [future.result() for future in futures]
