"""Unit tests for task artifact rendering."""

from __future__ import annotations

import os
import re
from pathlib import Path

import pytest

from process_engine.errors import IOFailure
from process_engine.processor.script import (
    COMMAND_ENV_FILENAME,
    COMMAND_SCRIPT_FILENAME,
    normalize_script,
    render_environment,
    render_runner,
    write_artifact,
)

EXPORT_LINE = re.compile(r"export [A-Za-z_][A-Za-z0-9_]*='.*'")


def test_normalize_script_adds_shebang_and_trailing_newline() -> None:
    assert normalize_script("echo hello") == "#!/bin/bash\necho hello\n"


def test_normalize_script_keeps_existing_shebang_and_fixes_line_endings() -> None:
    text = "#!/bin/sh\r\necho a\r\necho b"
    assert normalize_script(text) == "#!/bin/sh\necho a\necho b\n"


def test_normalize_script_dedents_indented_blocks() -> None:
    text = """
        echo one
          echo two
    """
    assert normalize_script(text, shell="/bin/sh") == "#!/bin/sh\necho one\n  echo two\n"


def test_render_environment_skips_invalid_names() -> None:
    env = {
        "HOME": "/home/user",
        "_private": "1",
        "A1_B2": "x",
        "BAD-NAME": "nope",
        "1LEADING_DIGIT": "nope",
        "with space": "nope",
        "": "nope",
    }

    rendered = render_environment(env)
    lines = rendered.splitlines()

    assert lines == [
        "export HOME='/home/user'",
        "export _private='1'",
        "export A1_B2='x'",
    ]
    assert all(EXPORT_LINE.fullmatch(line) for line in lines)


def test_render_environment_quotes_single_quotes() -> None:
    rendered = render_environment({"QUOTE": "it's"})

    assert rendered == "export QUOTE='it'\"'\"'s'\n"
    assert EXPORT_LINE.fullmatch(rendered.rstrip("\n"))


def test_render_runner_sources_env_then_runs_script() -> None:
    runner = render_runner()

    assert runner.splitlines() == [
        "#!/bin/bash",
        f". ./{COMMAND_ENV_FILENAME}",
        f"./{COMMAND_SCRIPT_FILENAME}",
    ]


def test_write_artifact_marks_executable(tmp_path: Path) -> None:
    path = write_artifact(tmp_path / "run.sh", "#!/bin/sh\n", executable=True)

    assert path.read_text(encoding="utf-8") == "#!/bin/sh\n"
    assert os.access(path, os.X_OK)


def test_write_artifact_wraps_os_errors(tmp_path: Path) -> None:
    with pytest.raises(IOFailure):
        write_artifact(tmp_path / "missing" / "file", "x")
