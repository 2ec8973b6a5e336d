"""CLI entrypoint for the local process engine."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from process_engine import __version__
from process_engine.dataflow.inputs import ProcessInput
from process_engine.engine.config import EngineSettings
from process_engine.engine.logging import configure_logging
from process_engine.errors import ProcessEngineError
from process_engine.processor.runner import ProcessDef
from process_engine.processor.task import TaskConfig, TaskStatus

logger = logging.getLogger(__name__)

STDIN_INPUT_NAME = "stdin"


def _parse_assignment(value: str, *, option: str) -> tuple[str, str]:
    name, sep, rest = value.partition("=")
    if not sep or not name.strip():
        raise ValueError(f"{option} expects NAME=VALUE, got {value!r}")
    return name.strip(), rest


def _parse_exit_codes(value: str) -> list[int]:
    parts = [p.strip() for p in value.split(",")]
    return [int(p) for p in parts if p]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="process-engine",
        description="Run workflow processes as local subprocess tasks",
    )
    parser.add_argument(
        "--version", action="version", version=f"workflow-process-engine {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser(
        "run",
        help="Run a process: one task per input tuple",
    )
    script = run.add_mutually_exclusive_group(required=True)
    script.add_argument("--script", default=None, help="Task script text")
    script.add_argument("--script-file", type=Path, default=None, help="File holding the task script")
    run.add_argument("--name", default="process", help="Process name used in task names")
    run.add_argument(
        "--input",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Value input, substituted as ${NAME} in the script (repeatable)",
    )
    run.add_argument(
        "--each",
        action="append",
        default=[],
        metavar="NAME=V1,V2,...",
        help="Iterator input: one task per element (repeatable, elements paired by position)",
    )
    run.add_argument(
        "--stdin-file",
        type=Path,
        default=None,
        help="File whose content is piped to every task's standard input",
    )
    run.add_argument(
        "--max-duration",
        default=None,
        help="Kill tasks running longer than this, e.g. '30s', '10 min', '2h'",
    )
    run.add_argument(
        "--valid-exit-codes",
        default="0",
        help="Comma-separated exit codes considered successful",
    )
    run.add_argument(
        "--echo",
        action="store_true",
        default=None,
        help="Mirror task output to the console",
    )
    run.add_argument(
        "--work-dir",
        type=Path,
        default=None,
        help="Root directory for task work directories (overrides PROCESS_ENGINE_WORK_DIR)",
    )
    return parser


def _build_process(args: argparse.Namespace, settings: EngineSettings) -> ProcessDef:
    script_text = args.script
    if args.script_file is not None:
        script_text = args.script_file.read_text(encoding="utf-8")

    inputs: list[ProcessInput] = []
    sources: dict[str, object] = {}

    for raw in args.input:
        name, value = _parse_assignment(raw, option="--input")
        inputs.append(ProcessInput(name))
        sources[name] = value

    for raw in args.each:
        name, values = _parse_assignment(raw, option="--each")
        inputs.append(ProcessInput(name, iterator=True))
        sources[name] = [v for v in values.split(",") if v]

    stdin_name: str | None = None
    if args.stdin_file is not None:
        stdin_name = STDIN_INPUT_NAME
        inputs.append(ProcessInput(stdin_name))
        sources[stdin_name] = args.stdin_file.read_bytes()

    echo = settings.echo if args.echo is None else args.echo
    config = TaskConfig(
        max_duration=args.max_duration,
        valid_exit_codes=_parse_exit_codes(args.valid_exit_codes),
        echo=echo,
    )

    process = ProcessDef(
        name=args.name,
        script=script_text,
        inputs=inputs,
        stdin=stdin_name,
        config=config,
    )
    return process.bind(**sources)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = EngineSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    try:
        if args.command == "run":
            if args.work_dir is not None:
                settings = settings.model_copy(update={"work_dir": args.work_dir})

            try:
                process = _build_process(args, settings)
            except (ValidationError, ValueError) as e:
                print(f"Invalid process definition: {e}", file=sys.stderr)
                return 2

            tasks = settings.build_runner().run(process)
            for task in tasks:
                print(json.dumps(task.summary(), ensure_ascii=False))

            failed = [t for t in tasks if t.status is not TaskStatus.COMPLETED]
            if failed:
                logger.warning(
                    "Some tasks failed",
                    extra={"process_name": process.name, "failed": [t.name for t in failed]},
                )
                return 1
            return 0

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except ProcessEngineError as e:
        logger.error(str(e), extra={"error": type(e).__name__})
        print(str(e), file=sys.stderr)
        return 1

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
