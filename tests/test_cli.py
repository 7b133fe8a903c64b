"""Tests for the CLI entry point: preconditions and exit codes."""

import asyncio

import pytest

from aidd_runner.cli import async_main, build_parser, config_from_args


def _main(*argv):
    return asyncio.run(async_main(list(argv)))


def test_config_from_args_defaults(tmp_path):
    args = build_parser().parse_args(["--project-dir", str(tmp_path)])
    config = config_from_args(args)
    assert config.project_dir == tmp_path.resolve()
    assert config.max_iterations is None
    assert config.quit_threshold == 0
    assert config.spec_file is None
    assert config.echo is True


def test_bad_integer_is_usage_error(tmp_path):
    with pytest.raises(SystemExit) as exc_info:
        build_parser().parse_args(
            ["--project-dir", str(tmp_path), "--max-iterations", "many"]
        )
    assert exc_info.value.code == 2


def test_invalid_max_iterations(project, spec_file, make_tool):
    tool = make_tool("pass\n")
    code = _main(
        "--project-dir", str(project), "--spec", str(spec_file),
        "--cli", str(tool), "--max-iterations", "0",
    )
    assert code == 2


def test_missing_tool(project, spec_file, tmp_path):
    code = _main(
        "--project-dir", str(project), "--spec", str(spec_file),
        "--cli", str(tmp_path / "no-such-kilocode"),
    )
    assert code == 1


def test_missing_spec_for_new_project(project, make_tool):
    tool = make_tool("pass\n")
    code = _main("--project-dir", str(project), "--cli", str(tool), "--max-iterations", "1")
    assert code == 2
    assert not list((project / ".aidd").glob("iterations/*.log"))


def test_spec_file_does_not_exist(project, tmp_path, make_tool):
    tool = make_tool("pass\n")
    code = _main(
        "--project-dir", str(project), "--spec", str(tmp_path / "missing.txt"),
        "--cli", str(tool),
    )
    assert code == 2


def test_runs_to_max_iterations(tmp_path, spec_file, make_tool):
    project = tmp_path / "new-project"
    tool = make_tool('print("done")\n')
    code = _main(
        "--project-dir", str(project), "--spec", str(spec_file),
        "--cli", str(tool), "--max-iterations", "2", "--quiet",
    )
    assert code == 0
    logs = sorted(p.name for p in (project / ".aidd" / "iterations").glob("*.log"))
    assert logs == ["001.log", "002.log"]


def test_quit_threshold_exit_code(project, spec_file, make_tool):
    tool = make_tool("sys.exit(1)\n")
    code = _main(
        "--project-dir", str(project), "--spec", str(spec_file),
        "--cli", str(tool), "--max-iterations", "5",
        "--quit-on-abort", "2", "--quiet",
    )
    assert code == 3


def test_banner_points_at_iterations_dir(project, spec_file, make_tool, capsys):
    tool = make_tool('print("done")\n')
    code = _main(
        "--project-dir", str(project), "--spec", str(spec_file),
        "--cli", str(tool), "--max-iterations", "1", "--quiet",
    )
    assert code == 0
    out = capsys.readouterr().out
    logs_line = next(line for line in out.splitlines() if "Logs:" in line)
    assert str(project.resolve() / ".aidd" / "iterations") in logs_line
    assert "next: 001.log" in logs_line
