"""Process supervisor: spawns one assistant session and watches its output."""

from __future__ import annotations

import asyncio
import os
import signal
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable

from .classifier import classify
from .config import SIGNAL_EXIT_CODES
from .display import debug_log, log_error, log_warn
from .errors import SpawnError
from .models import Classification, FailureSignal, SessionOutcome

READ_CHUNK = 65536

LineSink = Callable[[bytes], None]

_TRIGGER_MESSAGES = {
    FailureSignal.NO_ASSISTANT: "Detected 'no assistant messages' from model; aborting.",
    FailureSignal.PROVIDER_ERROR: "Detected 'provider error' from model; aborting.",
}


def classify_exit(returncode: int | None) -> Classification:
    """Classify a session that ended without a trigger."""
    if returncode is None or returncode < 0 or returncode in SIGNAL_EXIT_CODES:
        return Classification.SIGNAL_TERMINATED
    if returncode != 0:
        return Classification.GENERAL_ERROR
    return Classification.COMPLETED


class ProcessSupervisor:
    """Runs a single child process under an idle-silence budget.

    Output (stdout and stderr merged) is split into lines; every line goes to
    ``sink`` as soon as it is complete and is then checked for a failure
    signature. A signature, ``idle_timeout`` seconds without a complete line,
    or ``stop_event`` being set ends the watch: the child's process group gets
    SIGTERM, then SIGKILL if it is still alive after ``grace_period`` seconds.

    The wall-clock budget belongs to the tool itself and is not enforced here.
    Use a fresh instance per session.
    """

    def __init__(
        self,
        argv: list[str],
        cwd: Path,
        prompt: bytes,
        idle_timeout: float,
        grace_period: float,
        sink: LineSink,
        stop_event: asyncio.Event | None = None,
        debug: bool = False,
    ) -> None:
        self.argv = argv
        self.cwd = cwd
        self.prompt = prompt
        self.idle_timeout = idle_timeout
        self.grace_period = grace_period
        self.sink = sink
        self.stop_event = stop_event
        self.debug = debug
        self._buf = b""
        self._terminated = False

    async def run(self) -> SessionOutcome:
        started_at = datetime.now().astimezone()
        start_time = time.monotonic()

        debug_log(f"Spawning: {' '.join(self.argv)} (cwd={self.cwd})", self.debug)
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.argv,
                cwd=self.cwd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError as e:
            raise SpawnError(f"Cannot start '{self.argv[0]}': {e}") from e

        stdin_task = asyncio.create_task(self._feed_stdin(proc))
        try:
            try:
                trigger = await self._monitor(proc)
            except BaseException:
                # Cancellation or a sink failure: never leave the child behind.
                await self._terminate(proc)
                raise
            if trigger is not None:
                await self._terminate(proc)
            else:
                await self._wait_exit(proc)
        finally:
            stdin_task.cancel()
            try:
                await stdin_task
            except asyncio.CancelledError:
                pass

        if trigger is not None:
            classification = trigger
        else:
            classification = classify_exit(proc.returncode)

        duration = time.monotonic() - start_time
        exit_code = None if self._terminated else proc.returncode
        debug_log(
            f"pid {proc.pid} returncode={proc.returncode} -> {classification.value}",
            self.debug,
        )
        return SessionOutcome(
            classification=classification,
            exit_code=exit_code,
            started_at=started_at,
            ended_at=started_at + timedelta(seconds=duration),
            duration=duration,
        )

    async def _feed_stdin(self, proc: asyncio.subprocess.Process) -> None:
        assert proc.stdin is not None
        try:
            proc.stdin.write(self.prompt)
            await proc.stdin.drain()
            proc.stdin.close()
        except (BrokenPipeError, ConnectionResetError, OSError) as e:
            debug_log(f"Prompt not fully delivered: {e}", self.debug)

    async def _monitor(
        self, proc: asyncio.subprocess.Process
    ) -> Classification | None:
        """Watch output until EOF (returns None) or a trigger (returns it)."""
        assert proc.stdout is not None
        stop_waiter = (
            asyncio.create_task(self.stop_event.wait())
            if self.stop_event is not None
            else None
        )
        read_task: asyncio.Task | None = None
        last_line = time.monotonic()
        try:
            while True:
                remaining = self.idle_timeout - (time.monotonic() - last_line)
                if remaining <= 0:
                    log_error(
                        f"Idle timeout ({self.idle_timeout:g}s) waiting for "
                        "assistant output; aborting."
                    )
                    return Classification.IDLE_TIMEOUT

                if read_task is None:
                    read_task = asyncio.create_task(proc.stdout.read(READ_CHUNK))
                waiters = {read_task}
                if stop_waiter is not None:
                    waiters.add(stop_waiter)
                done, _ = await asyncio.wait(
                    waiters, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
                )

                if read_task in done:
                    chunk = read_task.result()
                    read_task = None
                    if not chunk:
                        return self._finish_stream()
                    self._buf += chunk
                    while b"\n" in self._buf:
                        line, self._buf = self._buf.split(b"\n", 1)
                        last_line = time.monotonic()
                        trigger = self._emit(line + b"\n")
                        if trigger is not None:
                            return trigger

                if stop_waiter is not None and stop_waiter in done:
                    log_warn("Stop requested; terminating assistant session.")
                    return Classification.SIGNAL_TERMINATED
        finally:
            for task in (read_task, stop_waiter):
                if task is not None and not task.done():
                    task.cancel()
                    try:
                        await task
                    except asyncio.CancelledError:
                        pass
            # Whatever arrived before the decision still belongs in the transcript.
            if self._buf:
                self.sink(self._buf)
                self._buf = b""

    def _emit(self, line: bytes) -> Classification | None:
        self.sink(line)
        signal_ = classify(line)
        if signal_ is None:
            return None
        log_error(_TRIGGER_MESSAGES[signal_])
        return signal_.classification

    def _finish_stream(self) -> Classification | None:
        """Handle EOF: a trailing unterminated line is still a line."""
        if not self._buf:
            return None
        line, self._buf = self._buf, b""
        return self._emit(line)

    async def _wait_exit(self, proc: asyncio.subprocess.Process) -> None:
        try:
            await asyncio.wait_for(proc.wait(), timeout=self.grace_period)
        except asyncio.TimeoutError:
            log_warn(
                f"Assistant closed its output but is still running after "
                f"{self.grace_period:g}s; killing."
            )
            self._terminated = True
            await self._kill(proc)
        except asyncio.CancelledError:
            self._terminated = True
            await self._kill(proc)
            raise

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        self._terminated = True
        self._signal(proc, signal.SIGTERM)
        try:
            await asyncio.wait_for(proc.wait(), timeout=self.grace_period)
        except asyncio.TimeoutError:
            log_warn(
                f"Assistant ignored SIGTERM for {self.grace_period:g}s; killing."
            )
            await self._kill(proc)
        except asyncio.CancelledError:
            # Cancelled during the grace period: skip straight to SIGKILL.
            await self._kill(proc)
            raise

    async def _kill(self, proc: asyncio.subprocess.Process) -> None:
        self._signal(proc, signal.SIGKILL)
        try:
            await asyncio.wait_for(proc.wait(), timeout=max(self.grace_period, 1.0))
        except asyncio.TimeoutError:
            # The leader is gone but something outside its group holds the pipe.
            log_warn(f"Process {proc.pid} output pipe still open after SIGKILL.")

    def _signal(self, proc: asyncio.subprocess.Process, sig: int) -> None:
        debug_log(f"Sending {signal.Signals(sig).name} to group {proc.pid}", self.debug)
        try:
            os.killpg(proc.pid, sig)
        except ProcessLookupError:
            pass
        except PermissionError:
            try:
                proc.send_signal(sig)
            except ProcessLookupError:
                pass
