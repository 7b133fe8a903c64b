import stat
import sys
import textwrap
from pathlib import Path

import pytest


@pytest.fixture
def make_tool(tmp_path):
    """Write an executable fake assistant CLI whose body is Python code.

    The script ignores its command-line flags, so it can stand in for the
    real tool behind ``RunConfig.tool_argv()``.
    """
    tools_dir = tmp_path / "bin"
    tools_dir.mkdir()
    counter = 0

    def _make(body: str) -> Path:
        nonlocal counter
        counter += 1
        path = tools_dir / f"fake-tool-{counter}"
        path.write_text(
            f"#!{sys.executable}\n"
            "import os, signal, sys, time\n"
            + textwrap.dedent(body)
        )
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _make


@pytest.fixture
def project(tmp_path):
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def spec_file(tmp_path):
    path = tmp_path / "app_spec.txt"
    path.write_text("Build a todo app.\n")
    return path
