"""Stats tracking and the end-of-run summary."""

from __future__ import annotations

import json
from collections import Counter
from pathlib import Path

from .config import STATS_FILE_NAME
from .display import BOLD, DIM, GREEN, PANEL_WIDTH, RED, RESET, WHITE, fmt_duration
from .models import Classification, PromptMode, SessionOutcome, StopReason


def session_record(
    ordinal: int, log_index: int, mode: PromptMode, outcome: SessionOutcome
) -> dict:
    return {
        "ordinal": ordinal,
        "log_index": log_index,
        "mode": mode.value,
        "classification": outcome.classification.value,
        "exit_code": outcome.exit_code,
        "started_at": outcome.started_at.isoformat(timespec="seconds"),
        "ended_at": outcome.ended_at.isoformat(timespec="seconds"),
        "duration_s": round(outcome.duration, 1),
        "transcript": str(outcome.log_path) if outcome.log_path else None,
    }


def classification_counts(records: list[dict]) -> dict[str, int]:
    counts = Counter(r["classification"] for r in records)
    return {c.value: counts[c.value] for c in Classification if counts[c.value]}


def write_stats(
    log_dir: Path,
    started: str,
    settings: dict,
    records: list[dict],
    stop_reason: StopReason | None = None,
) -> None:
    """Write cumulative stats for this run to stats.json."""
    totals = {
        "sessions": len(records),
        "duration_s": round(sum(r["duration_s"] for r in records), 1),
        "classifications": classification_counts(records),
    }
    stats = {
        "started": started,
        "settings": settings,
        "stop_reason": stop_reason.value if stop_reason else None,
        "sessions": records,
        "totals": totals,
    }
    (log_dir / STATS_FILE_NAME).write_text(json.dumps(stats, indent=2))


def print_summary(records: list[dict], total_time: float, stop_reason: StopReason) -> None:
    print()
    print(f"  {DIM}{'━' * PANEL_WIDTH}{RESET}")
    print(f"  {BOLD}{WHITE}Summary{RESET}")
    print(f"  {DIM}{'─' * PANEL_WIDTH}{RESET}")
    print(
        f"  {DIM}Sessions:{RESET} {WHITE}{len(records)}{RESET}"
        f"  {DIM}│{RESET}  {DIM}Time:{RESET} {WHITE}{fmt_duration(total_time)}{RESET}"
        f"  {DIM}│{RESET}  {DIM}Stopped:{RESET} {WHITE}{stop_reason.value}{RESET}"
    )
    for name, count in classification_counts(records).items():
        color = GREEN if name == Classification.COMPLETED.value else RED
        print(f"  {color}{name:<24}{RESET} {count:>4}")
    print(f"  {DIM}{'━' * PANEL_WIDTH}{RESET}")
