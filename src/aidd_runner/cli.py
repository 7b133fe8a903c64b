"""aidd-runner CLI: drives an AI coding assistant toward a spec, session by session."""

from __future__ import annotations

import argparse
import asyncio
import shutil
import signal
import sys
from pathlib import Path

from .config import (
    DEFAULT_GRACE_PERIOD,
    DEFAULT_IDLE_TIMEOUT,
    DEFAULT_QUIT_ON_ABORT,
    DEFAULT_TIMEOUT,
    KILOCODE_CLI,
    RunConfig,
)
from .controller import IterationController
from .display import (
    DIM,
    PANEL_WIDTH,
    RESET,
    WHITE,
    fmt_duration,
    log_error,
    log_warn,
    print_header,
)
from .errors import (
    EXIT_GENERAL_ERROR,
    EXIT_QUIT_THRESHOLD,
    EXIT_SUCCESS,
    AiddError,
    ToolUnavailableError,
)
from .models import StopReason
from .project import ensure_project_dir, find_or_create_metadata_dir, require_spec


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aidd-runner",
        description="Repeatedly run an AI coding assistant against a project until a limit is reached.",
    )
    parser.add_argument("--project-dir", required=True, type=Path, help="Project directory")
    parser.add_argument(
        "--spec",
        type=Path,
        help="Specification file (required until the project has one)",
    )
    parser.add_argument(
        "--max-iterations",
        type=int,
        default=None,
        help="Stop after this many sessions (default: unlimited)",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=DEFAULT_TIMEOUT,
        help=f"Hard timeout per session, enforced by the assistant (default: {DEFAULT_TIMEOUT})",
    )
    parser.add_argument(
        "--idle-timeout",
        type=float,
        default=DEFAULT_IDLE_TIMEOUT,
        help=f"Max seconds without an output line (default: {DEFAULT_IDLE_TIMEOUT:g})",
    )
    parser.add_argument(
        "--grace-period",
        type=float,
        default=DEFAULT_GRACE_PERIOD,
        help=f"Seconds between SIGTERM and SIGKILL (default: {DEFAULT_GRACE_PERIOD:g})",
    )
    parser.add_argument(
        "--quit-on-abort",
        type=int,
        default=DEFAULT_QUIT_ON_ABORT,
        metavar="N",
        help="Quit after N consecutive failed sessions (default: 0, never)",
    )
    parser.add_argument("--model", default="", help="Model passed to the assistant")
    parser.add_argument(
        "--cli",
        default=KILOCODE_CLI,
        help=f"Assistant command (default: {KILOCODE_CLI})",
    )
    parser.add_argument(
        "--prompts-dir",
        type=Path,
        help="Directory with initializer.md / coding.md overriding the built-in prompts",
    )
    parser.add_argument(
        "--quiet", action="store_true", help="Do not echo assistant output to the console"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    return parser


def config_from_args(args: argparse.Namespace) -> RunConfig:
    return RunConfig(
        project_dir=args.project_dir.expanduser().resolve(),
        spec_file=args.spec.expanduser().resolve() if args.spec else None,
        max_iterations=args.max_iterations,
        timeout=args.timeout,
        idle_timeout=args.idle_timeout,
        grace_period=args.grace_period,
        quit_threshold=args.quit_on_abort,
        model=args.model,
        cli=args.cli,
        prompts_dir=args.prompts_dir.expanduser().resolve() if args.prompts_dir else None,
        echo=not args.quiet,
        debug=args.debug,
    )


def check_tool_available(cli: str) -> str:
    path = shutil.which(cli)
    if path is None:
        raise ToolUnavailableError(
            f"Assistant CLI not found: {cli}. Please install it first."
        )
    return path


def print_banner(config: RunConfig, log_dir: Path, next_index: int) -> None:
    print_header("AIDD RUNNER")
    limit = str(config.max_iterations) if config.max_iterations else "unlimited"
    quit_on = str(config.quit_threshold) if config.quit_threshold else "never"
    col1 = f"{DIM}Iterations:{RESET} {WHITE}{limit}{RESET}"
    col2 = f"{DIM}Timeout:{RESET} {WHITE}{fmt_duration(config.timeout)}{RESET}"
    col3 = f"{DIM}Idle:{RESET} {WHITE}{fmt_duration(config.idle_timeout)}{RESET}"
    print(f"  {col1}  {DIM}│{RESET}  {col2}  {DIM}│{RESET}  {col3}")
    col4 = f"{DIM}Quit on abort:{RESET} {WHITE}{quit_on}{RESET}"
    col5 = f"{DIM}Model:{RESET} {WHITE}{config.model or 'default'}{RESET}"
    print(f"  {col4}  {DIM}│{RESET}  {col5}")
    print(f"  {DIM}Project:{RESET} {config.project_dir}")
    print(f"  {DIM}Logs:{RESET}    {log_dir} (next: {next_index:03d}.log)")
    print(f"  {DIM}{'─' * PANEL_WIDTH}{RESET}")


async def async_main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = config_from_args(args)

    try:
        config.validate()
        check_tool_available(config.cli)
        ensure_project_dir(config.project_dir)
        metadata_dir = find_or_create_metadata_dir(config.project_dir)
        require_spec(metadata_dir, config.spec_file)
        controller = IterationController(config, metadata_dir)
    except AiddError as e:
        log_error(str(e))
        return e.exit_code

    loop = asyncio.get_running_loop()
    main_task = asyncio.current_task()

    def handle_signal() -> None:
        if controller.stop_requested:
            log_error("Force quit.")
            if main_task is not None:
                main_task.cancel()
            return
        controller.request_stop()
        log_warn("Stopping: terminating the current session... (Ctrl+C again to force)")

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal)

    print_banner(config, controller.log_dir, controller.state.next_log_index)
    try:
        reason = await controller.run()
    except AiddError as e:
        log_error(str(e))
        return e.exit_code
    except asyncio.CancelledError:
        log_error("Interrupted.")
        return EXIT_GENERAL_ERROR
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)

    if reason is StopReason.QUIT_THRESHOLD:
        return EXIT_QUIT_THRESHOLD
    return EXIT_SUCCESS


def main() -> None:
    """Entry point for the aidd-runner CLI."""
    try:
        code = asyncio.run(async_main())
    except KeyboardInterrupt:
        print(f"\n{DIM}Interrupted.{RESET}", flush=True)
        sys.exit(EXIT_GENERAL_ERROR)
    sys.exit(code)


if __name__ == "__main__":
    main()
