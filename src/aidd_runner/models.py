"""Data models for aidd-runner."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from pathlib import Path

from .config import (
    SESSION_EXIT_IDLE_TIMEOUT,
    SESSION_EXIT_NO_ASSISTANT,
    SESSION_EXIT_PROVIDER_ERROR,
    SESSION_EXIT_SIGNAL,
)
from .errors import EXIT_GENERAL_ERROR, EXIT_SUCCESS


class Classification(str, Enum):
    """How a session ended."""

    COMPLETED = "completed"
    NO_ASSISTANT_MESSAGES = "no_assistant_messages"
    PROVIDER_ERROR = "provider_error"
    IDLE_TIMEOUT = "idle_timeout"
    SIGNAL_TERMINATED = "signal_terminated"
    GENERAL_ERROR = "general_error"

    @property
    def session_exit_code(self) -> int:
        return _SESSION_EXIT_CODES[self]

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


_SESSION_EXIT_CODES = {
    Classification.COMPLETED: EXIT_SUCCESS,
    Classification.NO_ASSISTANT_MESSAGES: SESSION_EXIT_NO_ASSISTANT,
    Classification.PROVIDER_ERROR: SESSION_EXIT_PROVIDER_ERROR,
    Classification.IDLE_TIMEOUT: SESSION_EXIT_IDLE_TIMEOUT,
    Classification.SIGNAL_TERMINATED: SESSION_EXIT_SIGNAL,
    Classification.GENERAL_ERROR: EXIT_GENERAL_ERROR,
}


class FailureSignal(str, Enum):
    """A recognised failure signature in a single output line."""

    NO_ASSISTANT = "no_assistant"
    PROVIDER_ERROR = "provider_error"

    @property
    def classification(self) -> Classification:
        if self is FailureSignal.NO_ASSISTANT:
            return Classification.NO_ASSISTANT_MESSAGES
        return Classification.PROVIDER_ERROR


class PromptMode(str, Enum):
    INITIALIZER = "initializer"
    CODING = "coding"


class StopReason(str, Enum):
    MAX_REACHED = "max_reached"
    QUIT_THRESHOLD = "quit_threshold"
    INTERRUPTED = "interrupted"


@dataclass(frozen=True)
class SessionOutcome:
    """Result of a single assistant session. Never mutated once built."""

    classification: Classification
    exit_code: int | None
    started_at: datetime
    ended_at: datetime
    duration: float = 0.0
    log_path: Path | None = None

    def __post_init__(self) -> None:
        if self.ended_at < self.started_at:
            raise ValueError(
                f"ended_at ({self.ended_at}) precedes started_at ({self.started_at})"
            )

    @property
    def ok(self) -> bool:
        return self.classification is Classification.COMPLETED

    def with_log_path(self, path: Path) -> SessionOutcome:
        return replace(self, log_path=path)


@dataclass(frozen=True)
class ProjectProbe:
    """Marker files observed under the metadata directory."""

    spec_present: bool
    feature_list_present: bool

    @property
    def coding_ready(self) -> bool:
        return self.spec_present and self.feature_list_present


@dataclass
class IterationState:
    """Loop state for one controller run."""

    next_log_index: int
    ordinal: int = 0
    consecutive_failures: int = 0
    last_outcome: SessionOutcome | None = None

    def allocate_log_index(self) -> int:
        index = self.next_log_index
        self.next_log_index += 1
        return index

    def record(self, outcome: SessionOutcome) -> None:
        self.last_outcome = outcome
        if outcome.ok:
            self.consecutive_failures = 0
        else:
            self.consecutive_failures += 1
