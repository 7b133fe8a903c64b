"""Iteration controller: sequences sessions and decides when to stop."""

from __future__ import annotations

import asyncio
import time
from pathlib import Path

from .config import RunConfig
from .display import (
    BLUE,
    BOLD,
    DIM,
    GREEN,
    RED,
    RESET,
    YELLOW,
    fmt_duration,
    log,
    log_error,
    log_warn,
)
from .models import (
    Classification,
    IterationState,
    PromptMode,
    SessionOutcome,
    StopReason,
)
from .project import (
    install_spec,
    iterations_dir,
    next_log_index,
    probe_project,
    transcript_path,
)
from .session import run_session
from .stats import print_summary, session_record, write_stats


class IterationController:
    """Runs sessions one after another until a stop condition holds.

    Transcript numbering continues from the highest ``NNN.log`` already in
    the iterations directory, so restarts never reuse a path.
    """

    def __init__(
        self,
        config: RunConfig,
        metadata_dir: Path,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        self.config = config
        self.metadata_dir = metadata_dir
        self.log_dir = iterations_dir(metadata_dir)
        self.state = IterationState(next_log_index=next_log_index(self.log_dir))
        self.stop_event = stop_event if stop_event is not None else asyncio.Event()
        # One small dict per session; stats.json lists every session of the run.
        self.records: list[dict] = []
        self.started = time.strftime("%Y-%m-%d %H:%M:%S")

    @property
    def stop_requested(self) -> bool:
        return self.stop_event.is_set()

    def request_stop(self) -> None:
        """Stop issuing sessions and terminate the one in flight."""
        self.stop_event.set()

    def select_mode(self) -> PromptMode:
        probe = probe_project(self.metadata_dir)
        if probe.coding_ready:
            log("Required files found, sending coding prompt...")
            return PromptMode.CODING
        log("Required files not found, sending initializer prompt...")
        if self.config.spec_file is not None:
            install_spec(self.config.spec_file, self.metadata_dir)
        return PromptMode.INITIALIZER

    async def run(self) -> StopReason:
        run_start = time.monotonic()
        if self.config.max_iterations is None:
            log("Running unlimited iterations (use Ctrl+C to stop)")
        else:
            log(f"Running {self.config.max_iterations} iterations")

        reason = await self._loop()

        write_stats(
            self.log_dir, self.started, self.config.settings(), self.records, reason
        )
        print_summary(self.records, time.monotonic() - run_start, reason)
        return reason

    async def _loop(self) -> StopReason:
        cfg = self.config
        while True:
            if self.stop_requested:
                log_warn("Shutdown requested.")
                return StopReason.INTERRUPTED

            mode = self.select_mode()
            index = self.state.allocate_log_index()
            self.state.ordinal += 1
            ordinal = self.state.ordinal
            path = transcript_path(self.log_dir, index)

            of_max = f" of {cfg.max_iterations}" if cfg.max_iterations else ""
            print(
                f"\n  {BOLD}{BLUE}━━━ Iteration {ordinal}{of_max} ━━━{RESET}"
                f"  {DIM}{mode.value} │ {path.name}{RESET}"
            )

            outcome = await run_session(cfg, mode, ordinal, path, self.stop_event)
            self.state.record(outcome)
            self.records.append(session_record(ordinal, index, mode, outcome))
            write_stats(self.log_dir, self.started, cfg.settings(), self.records)
            self._print_status(outcome)

            if self.stop_requested:
                log_warn("Shutdown requested.")
                return StopReason.INTERRUPTED

            failures = self.state.consecutive_failures
            if cfg.quit_threshold and failures >= cfg.quit_threshold:
                log_error(
                    f"{failures} consecutive failed sessions reached the quit "
                    f"threshold ({cfg.quit_threshold}). Stopping."
                )
                return StopReason.QUIT_THRESHOLD

            if cfg.max_iterations is not None and ordinal >= cfg.max_iterations:
                log(f"Max iterations reached ({cfg.max_iterations}). Stopping.")
                return StopReason.MAX_REACHED

    def _print_status(self, outcome: SessionOutcome) -> None:
        if outcome.classification is Classification.COMPLETED:
            icon, color = f"{GREEN}✓{RESET}", GREEN
        elif outcome.classification is Classification.SIGNAL_TERMINATED:
            icon, color = f"{YELLOW}✗{RESET}", YELLOW
        else:
            icon, color = f"{RED}✗{RESET}", RED
        exit_str = "-" if outcome.exit_code is None else str(outcome.exit_code)
        streak = ""
        if self.state.consecutive_failures:
            streak = f"  {DIM}│{RESET}  {DIM}failures in a row: {self.state.consecutive_failures}{RESET}"
        print(
            f"\n  {icon}  {color}{outcome.classification.label}{RESET}"
            f"  {DIM}│{RESET}  {fmt_duration(outcome.duration)}"
            f"  {DIM}│{RESET}  {DIM}exit {exit_str}{RESET}{streak}"
        )
