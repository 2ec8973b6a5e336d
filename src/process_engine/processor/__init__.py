"""Task materialization and local execution."""

from process_engine.processor.launcher import LocalTaskLauncher
from process_engine.processor.runner import ProcessDef, ProcessRunner
from process_engine.processor.task import TaskConfig, TaskRun, TaskStatus

__all__ = [
    "LocalTaskLauncher",
    "ProcessDef",
    "ProcessRunner",
    "TaskConfig",
    "TaskRun",
    "TaskStatus",
]
