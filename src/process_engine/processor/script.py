"""On-disk task artifacts: environment, script and runner files."""

from __future__ import annotations

import logging
import re
import stat
import textwrap
from collections.abc import Mapping
from pathlib import Path

from process_engine.errors import IOFailure

logger = logging.getLogger(__name__)

COMMAND_ENV_FILENAME = ".command.env"
COMMAND_SCRIPT_FILENAME = ".command.sh"
COMMAND_RUNNER_FILENAME = ".command.run"
COMMAND_OUT_FILENAME = ".command.out"

DEFAULT_SHELL = "/bin/bash"

ENV_NAME_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def normalize_script(text: str, *, shell: str = DEFAULT_SHELL) -> str:
    """Normalize a script body so it can be executed directly.

    - line endings become ``\\n``
    - common indentation and leading blank lines are removed
    - a ``#!`` line for ``shell`` is prepended when the script has none
    - the result ends with a newline
    """

    body = text.replace("\r\n", "\n").replace("\r", "\n")
    body = textwrap.dedent(body).lstrip("\n").rstrip() + "\n"
    if not body.startswith("#!"):
        body = f"#!{shell}\n{body}"
    return body


def _quote(value: str) -> str:
    return "'" + value.replace("'", "'\"'\"'") + "'"


def render_environment(environment: Mapping[str, str], *, task_name: str = "") -> str:
    """Render ``export NAME='value'`` lines for every valid variable name.

    Names that are not shell identifiers are skipped.
    """

    lines: list[str] = []
    for name, value in environment.items():
        if ENV_NAME_PATTERN.fullmatch(name):
            lines.append(f"export {name}={_quote(str(value))}\n")
        else:
            logger.debug(
                "Invalid environment variable name: %r",
                name,
                extra={"task": task_name},
            )
    return "".join(lines)


def render_runner(*, shell: str = DEFAULT_SHELL) -> str:
    return normalize_script(
        f"""
        . ./{COMMAND_ENV_FILENAME}
        ./{COMMAND_SCRIPT_FILENAME}
        """,
        shell=shell,
    )


def write_artifact(path: Path, content: str, *, executable: bool = False) -> Path:
    try:
        path.write_text(content, encoding="utf-8", newline="\n")
        if executable:
            mode = path.stat().st_mode
            path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    except OSError as e:
        raise IOFailure(f"Unable to write task artifact {path}: {e}") from e
    return path
