"""Session runner: one assistant invocation with its own transcript."""

from __future__ import annotations

import asyncio
import os
from datetime import datetime
from pathlib import Path

from .config import RunConfig
from .errors import TranscriptError
from .models import PromptMode, SessionOutcome
from .prompt import resolve_prompt
from .supervisor import ProcessSupervisor


class TranscriptSink:
    """Append-only transcript for exactly one session.

    The file is created exclusively, so an existing transcript is never
    reopened. Every line is flushed as soon as it is written.
    """

    def __init__(self, path: Path, echo: bool = False) -> None:
        self.path = path
        self.echo = echo
        try:
            self._f = open(path, "xb")
        except FileExistsError as e:
            raise TranscriptError(
                f"Transcript {path} already exists; refusing to overwrite"
            ) from e
        except OSError as e:
            raise TranscriptError(f"Cannot create transcript {path}: {e}") from e

    def __call__(self, data: bytes) -> None:
        try:
            self._f.write(data)
            self._f.flush()
        except OSError as e:
            raise TranscriptError(f"Cannot write transcript {self.path}: {e}") from e
        if self.echo:
            print(data.decode("utf-8", errors="replace"), end="", flush=True)

    def note(self, text: str = "") -> None:
        self(f"{text}\n".encode("utf-8"))

    def close(self) -> None:
        if self._f.closed:
            return
        try:
            self._f.flush()
            os.fsync(self._f.fileno())
        except OSError as e:
            raise TranscriptError(f"Cannot sync transcript {self.path}: {e}") from e
        finally:
            self._f.close()

    def __enter__(self) -> TranscriptSink:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


async def run_session(
    config: RunConfig,
    mode: PromptMode,
    ordinal: int,
    log_path: Path,
    stop_event: asyncio.Event | None = None,
) -> SessionOutcome:
    """Run one assistant session and return its outcome.

    The transcript at ``log_path`` gets a header, every output line in
    arrival order, and a footer naming the classification.
    """
    prompt = resolve_prompt(mode, config.prompts_dir)
    argv = config.tool_argv()

    with TranscriptSink(log_path, echo=config.echo) as sink:
        if config.max_iterations is not None:
            sink.note(f"Iteration {ordinal} of {config.max_iterations}")
        else:
            sink.note(f"Iteration {ordinal}")
        sink.note(f"Transcript: {log_path}")
        sink.note(f"Mode: {mode.value}")
        sink.note(f"Started: {datetime.now().astimezone().isoformat(timespec='seconds')}")
        sink.note()

        supervisor = ProcessSupervisor(
            argv=argv,
            cwd=config.project_dir,
            prompt=prompt,
            idle_timeout=config.idle_timeout,
            grace_period=config.grace_period,
            sink=sink,
            stop_event=stop_event,
            debug=config.debug,
        )
        try:
            outcome = await supervisor.run()
        except asyncio.CancelledError:
            sink.note()
            sink.note(f"--- Iteration {ordinal} cancelled ---")
            raise

        exit_str = "none" if outcome.exit_code is None else str(outcome.exit_code)
        sink.note()
        sink.note(f"--- End of iteration {ordinal} ---")
        sink.note(
            f"Result: {outcome.classification.value} "
            f"(session code {outcome.classification.session_exit_code}, exit {exit_str})"
        )
        sink.note(f"Finished: {outcome.ended_at.isoformat(timespec='seconds')}")

    return outcome.with_log_path(log_path)
