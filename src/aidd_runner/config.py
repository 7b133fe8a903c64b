"""Configuration constants, defaults, and the per-run settings object."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigError


def _get_int_env(name: str, default: int) -> int:
    """Parse int env var with safe fallback."""
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


def _get_float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


# Conventional per-session codes, reported in transcripts and stats only
SESSION_EXIT_NO_ASSISTANT = 70
SESSION_EXIT_IDLE_TIMEOUT = 71
SESSION_EXIT_PROVIDER_ERROR = 72
SESSION_EXIT_SIGNAL = 124

# Return codes that mean "the tool was stopped by a signal" when seen from a
# shell wrapper: timeout(1), 128+SIGINT, 128+SIGTERM.
SIGNAL_EXIT_CODES = frozenset({SESSION_EXIT_SIGNAL, 130, 143})

DEFAULT_TIMEOUT = _get_int_env("AIDD_TIMEOUT", 600)
DEFAULT_IDLE_TIMEOUT = _get_float_env("AIDD_IDLE_TIMEOUT", 180.0)
DEFAULT_GRACE_PERIOD = _get_float_env("AIDD_GRACE_PERIOD", 10.0)
DEFAULT_QUIT_ON_ABORT = 0  # never stop on consecutive failures

# Failure signatures in assistant output (case-sensitive substrings)
PATTERN_NO_ASSISTANT = "The model returned no assistant messages"
PATTERN_PROVIDER_ERROR = "Provider returned error"

# Assistant CLI invocation
KILOCODE_CLI = os.getenv("AIDD_KILOCODE_CLI", "kilocode")
KILOCODE_MODE = "code"
KILOCODE_AUTO_FLAG = "--auto"
KILOCODE_NOSPLASH_FLAG = "--nosplash"

# Project layout
METADATA_DIR_NAME = ".aidd"
LEGACY_METADATA_DIR_AUTOK = ".autok"
LEGACY_METADATA_DIR_AUTOMAKER = ".automaker"
ITERATIONS_DIR_NAME = "iterations"
SPEC_FILE_NAME = "spec.txt"
FEATURE_LIST_FILE = "feature_list.json"
STATS_FILE_NAME = "stats.json"


@dataclass
class RunConfig:
    """Every setting a run needs, passed explicitly to the controller."""

    project_dir: Path
    spec_file: Path | None = None
    max_iterations: int | None = None
    timeout: int = DEFAULT_TIMEOUT
    idle_timeout: float = DEFAULT_IDLE_TIMEOUT
    grace_period: float = DEFAULT_GRACE_PERIOD
    quit_threshold: int = DEFAULT_QUIT_ON_ABORT
    model: str = ""
    cli: str = KILOCODE_CLI
    prompts_dir: Path | None = None
    echo: bool = True
    debug: bool = False

    def validate(self) -> None:
        """Raise ConfigError if the settings cannot produce a valid run."""
        if self.max_iterations is not None and self.max_iterations < 1:
            raise ConfigError(
                f"--max-iterations must be at least 1 (got {self.max_iterations})"
            )
        if self.timeout <= 0:
            raise ConfigError(f"--timeout must be positive (got {self.timeout})")
        if self.idle_timeout <= 0:
            raise ConfigError(
                f"--idle-timeout must be positive (got {self.idle_timeout})"
            )
        if self.grace_period < 0:
            raise ConfigError(
                f"--grace-period must not be negative (got {self.grace_period})"
            )
        if self.quit_threshold < 0:
            raise ConfigError(
                f"--quit-on-abort must not be negative (got {self.quit_threshold})"
            )
        if self.spec_file is not None and not self.spec_file.is_file():
            raise ConfigError(f"Spec file '{self.spec_file}' does not exist")
        if self.prompts_dir is not None and not self.prompts_dir.is_dir():
            raise ConfigError(f"Prompts directory '{self.prompts_dir}' does not exist")

    def tool_argv(self) -> list[str]:
        """Command line for one assistant session; the hard budget rides along."""
        cmd = [
            self.cli,
            "--mode", KILOCODE_MODE,
            KILOCODE_AUTO_FLAG,
            "--timeout", str(self.timeout),
            KILOCODE_NOSPLASH_FLAG,
        ]
        if self.model:
            cmd.extend(["--model", self.model])
        return cmd

    def settings(self) -> dict:
        return {
            "max_iterations": self.max_iterations,
            "timeout": self.timeout,
            "idle_timeout": self.idle_timeout,
            "grace_period": self.grace_period,
            "quit_threshold": self.quit_threshold,
            "model": self.model,
            "cli": self.cli,
        }
