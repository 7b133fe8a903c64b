"""Terminal display helpers: colors, levelled logging, formatting."""

from __future__ import annotations

import os
import sys
import time


def _color_enabled() -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    return sys.stdout.isatty()


_COLOR = _color_enabled()


def _c(code: str) -> str:
    return code if _COLOR else ""


# ANSI colors: 256-color for consistent rendering in iTerm2 + tmux
DIM = _c("\033[90m")
BOLD = _c("\033[1m")
RED = _c("\033[38;5;203m")
GREEN = _c("\033[38;5;114m")
YELLOW = _c("\033[38;5;221m")
BLUE = _c("\033[38;5;75m")
CYAN = _c("\033[38;5;81m")
WHITE = _c("\033[38;5;255m")
RESET = _c("\033[0m")

PANEL_WIDTH = 70


def fmt_duration(secs: float) -> str:
    if secs < 60:
        return f"{secs:.0f}s"
    if secs < 3600:
        m, s = divmod(int(secs), 60)
        return f"{m}m{s:02d}s"
    h, rem = divmod(int(secs), 3600)
    return f"{h}h{rem // 60:02d}m"


def log(msg: str) -> None:
    ts = time.strftime("%H:%M:%S")
    print(f"  {DIM}{ts}{RESET}  {msg}", flush=True)


def log_warn(msg: str) -> None:
    log(f"{YELLOW}{msg}{RESET}")


def log_error(msg: str) -> None:
    log(f"{RED}{msg}{RESET}")


def debug_log(msg: str, debug: bool) -> None:
    if debug:
        ts = time.strftime("%H:%M:%S")
        print(f"[{ts}] [DEBUG] {msg}", file=sys.stderr, flush=True)


def print_header(title: str) -> None:
    print()
    print(f"  {BOLD}{CYAN}◉ {title}{RESET}")
    print(f"  {DIM}{'─' * PANEL_WIDTH}{RESET}")
