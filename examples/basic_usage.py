#!/usr/bin/env python3
"""Programmatic process execution example.

This demonstrates using the engine components directly:

* load settings from `.env` / `PROCESS_ENGINE_*` variables
* bind a value input and an iterator input
* run one task per element and print where each task's output was captured
"""

from __future__ import annotations

import argparse
from typing import Sequence

from process_engine.dataflow.inputs import ProcessInput
from process_engine.engine.config import EngineSettings
from process_engine.engine.logging import configure_logging
from process_engine.processor.runner import ProcessDef
from process_engine.processor.task import TaskConfig, TaskStatus


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Greet a list of names, one task per name.")
    parser.add_argument("names", nargs="+", help="Names to greet")
    parser.add_argument("--greeting", default="Hello", help="Greeting to use")
    parser.add_argument("--max-duration", default="30s", help="Per-task time limit")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = EngineSettings()
    configure_logging(settings.log_level)

    process = ProcessDef(
        name="greet",
        script='echo "${greeting}, ${name}!"',
        inputs=[ProcessInput("greeting"), ProcessInput("name", iterator=True)],
        config=TaskConfig(max_duration=args.max_duration, echo=True),
    ).bind(greeting=args.greeting, name=args.names)

    tasks = settings.build_runner().run(process)

    for task in tasks:
        print(f"{task.name}: {task.status.value} (exit code {task.exit_code}) -> {task.output}")
    return 0 if all(t.status is TaskStatus.COMPLETED for t in tasks) else 1


if __name__ == "__main__":
    raise SystemExit(main())
