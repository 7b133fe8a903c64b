"""Tests for ProcessSupervisor against real child processes."""

import asyncio
import os
import sys
import textwrap
import time

import pytest

from aidd_runner.errors import SpawnError
from aidd_runner.models import Classification
from aidd_runner.supervisor import ProcessSupervisor


def _argv(code: str) -> list[str]:
    return [sys.executable, "-u", "-c", textwrap.dedent(code)]


def _supervise(tmp_path, code, idle_timeout=5.0, grace_period=2.0, stop_after=None):
    lines: list[bytes] = []

    async def go():
        stop_event = asyncio.Event()
        if stop_after is not None:
            asyncio.get_running_loop().call_later(stop_after, stop_event.set)
        supervisor = ProcessSupervisor(
            argv=_argv(code),
            cwd=tmp_path,
            prompt=b"do the next feature\n",
            idle_timeout=idle_timeout,
            grace_period=grace_period,
            sink=lines.append,
            stop_event=stop_event,
        )
        return await supervisor.run()

    return asyncio.run(go()), lines


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    return True


def test_completed(tmp_path):
    outcome, lines = _supervise(tmp_path, """
        print("line one")
        print("line two")
    """)
    assert outcome.classification is Classification.COMPLETED
    assert outcome.exit_code == 0
    assert lines == [b"line one\n", b"line two\n"]
    assert outcome.ended_at >= outcome.started_at


def test_prompt_is_fed_on_stdin(tmp_path):
    outcome, lines = _supervise(tmp_path, """
        import sys
        print("got: " + sys.stdin.read().strip())
    """)
    assert outcome.classification is Classification.COMPLETED
    assert lines == [b"got: do the next feature\n"]


def test_runs_in_working_directory(tmp_path):
    outcome, lines = _supervise(tmp_path, """
        import os
        print(os.getcwd())
    """)
    assert lines[0].decode().strip() == os.path.realpath(tmp_path)


def test_general_error(tmp_path):
    outcome, _ = _supervise(tmp_path, """
        import sys
        print("boom")
        sys.exit(3)
    """)
    assert outcome.classification is Classification.GENERAL_ERROR
    assert outcome.exit_code == 3


def test_signal_exit_code(tmp_path):
    outcome, _ = _supervise(tmp_path, "import sys; sys.exit(124)")
    assert outcome.classification is Classification.SIGNAL_TERMINATED
    assert outcome.exit_code == 124


def test_no_assistant_terminates_early(tmp_path):
    outcome, lines = _supervise(tmp_path, """
        import time
        print("thinking")
        print("Error: The model returned no assistant messages")
        time.sleep(30)
        print("never seen")
    """, idle_timeout=20)
    assert outcome.classification is Classification.NO_ASSISTANT_MESSAGES
    assert outcome.exit_code is None
    assert outcome.duration < 10
    assert b"Error: The model returned no assistant messages\n" in lines
    assert b"never seen\n" not in lines


def test_provider_error_on_stderr(tmp_path):
    outcome, lines = _supervise(tmp_path, """
        import sys, time
        print("Provider returned error (429)", file=sys.stderr, flush=True)
        time.sleep(30)
    """, idle_timeout=20)
    assert outcome.classification is Classification.PROVIDER_ERROR
    assert outcome.duration < 10
    assert lines == [b"Provider returned error (429)\n"]


def test_trigger_wins_over_clean_exit(tmp_path):
    outcome, _ = _supervise(tmp_path, """
        print("Provider returned error")
    """)
    assert outcome.classification is Classification.PROVIDER_ERROR


def test_unterminated_last_line_is_classified(tmp_path):
    outcome, lines = _supervise(tmp_path, """
        import sys
        sys.stdout.write("The model returned no assistant messages")
    """)
    assert outcome.classification is Classification.NO_ASSISTANT_MESSAGES
    assert lines == [b"The model returned no assistant messages"]


def test_idle_timeout(tmp_path):
    outcome, lines = _supervise(tmp_path, """
        import time
        print("working")
        time.sleep(3)
        print("late")
    """, idle_timeout=0.5)
    assert outcome.classification is Classification.IDLE_TIMEOUT
    assert outcome.exit_code is None
    assert outcome.duration < 2.5
    assert lines == [b"working\n"]


def test_idle_deadline_resets_on_each_line(tmp_path):
    outcome, lines = _supervise(tmp_path, """
        import time
        for i in range(6):
            print(f"tick {i}")
            time.sleep(0.3)
    """, idle_timeout=1.0)
    assert outcome.classification is Classification.COMPLETED
    assert len(lines) == 6


def test_partial_line_does_not_reset_idle_deadline(tmp_path):
    outcome, lines = _supervise(tmp_path, """
        import sys, time
        print("start")
        for _ in range(10):
            sys.stdout.write(".")
            sys.stdout.flush()
            time.sleep(0.2)
        print()
    """, idle_timeout=0.8)
    assert outcome.classification is Classification.IDLE_TIMEOUT
    assert lines[0] == b"start\n"
    # Dots received before the deadline are kept in the transcript.
    assert b"".join(lines[1:]).startswith(b"..")


def test_sigterm_ignored_then_killed(tmp_path):
    outcome, lines = _supervise(tmp_path, """
        import signal, time
        signal.signal(signal.SIGTERM, signal.SIG_IGN)
        print("ready")
        time.sleep(30)
    """, idle_timeout=0.5, grace_period=0.5)
    assert outcome.classification is Classification.IDLE_TIMEOUT
    assert outcome.exit_code is None
    assert outcome.duration < 5
    assert lines == [b"ready\n"]


def test_stop_event_terminates_session(tmp_path):
    outcome, lines = _supervise(tmp_path, """
        import time
        print("working")
        time.sleep(30)
    """, idle_timeout=20, stop_after=0.5)
    assert outcome.classification is Classification.SIGNAL_TERMINATED
    assert outcome.exit_code is None
    assert outcome.duration < 10
    assert lines == [b"working\n"]


def test_cancellation_kills_child(tmp_path):
    pid_file = tmp_path / "child.pid"

    async def go():
        supervisor = ProcessSupervisor(
            argv=_argv(f"""
                import os, time
                open({str(pid_file)!r}, "w").write(str(os.getpid()))
                print("started")
                time.sleep(30)
            """),
            cwd=tmp_path,
            prompt=b"",
            idle_timeout=20,
            grace_period=2,
            sink=lambda line: None,
        )
        task = asyncio.create_task(supervisor.run())
        for _ in range(100):
            if pid_file.exists() and pid_file.read_text():
                break
            await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(go())
    assert not _pid_alive(int(pid_file.read_text()))


def test_cancel_during_grace_period_kills_child(tmp_path):
    pid_file = tmp_path / "child.pid"

    async def go():
        stop_event = asyncio.Event()
        supervisor = ProcessSupervisor(
            argv=_argv(f"""
                import os, signal, time
                signal.signal(signal.SIGTERM, signal.SIG_IGN)
                open({str(pid_file)!r}, "w").write(str(os.getpid()))
                print("started")
                time.sleep(30)
            """),
            cwd=tmp_path,
            prompt=b"",
            idle_timeout=20,
            grace_period=5,
            sink=lambda line: None,
            stop_event=stop_event,
        )
        task = asyncio.create_task(supervisor.run())
        for _ in range(100):
            if pid_file.exists() and pid_file.read_text():
                break
            await asyncio.sleep(0.05)
        # SIGTERM is ignored, so the supervisor sits in its grace period.
        stop_event.set()
        await asyncio.sleep(0.5)
        start = time.monotonic()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return time.monotonic() - start

    elapsed = asyncio.run(go())
    assert elapsed < 4
    assert not _pid_alive(int(pid_file.read_text()))


def test_spawn_failure(tmp_path):
    async def go():
        supervisor = ProcessSupervisor(
            argv=[str(tmp_path / "no-such-tool")],
            cwd=tmp_path,
            prompt=b"",
            idle_timeout=1,
            grace_period=1,
            sink=lambda line: None,
        )
        await supervisor.run()

    with pytest.raises(SpawnError):
        asyncio.run(go())
