"""Controller-level errors.

Anything raised from here aborts the whole run. A session that merely ends
badly is reported as a ``SessionOutcome``, never as an exception.
"""

from __future__ import annotations

# Exit codes of the runner itself
EXIT_SUCCESS = 0
EXIT_GENERAL_ERROR = 1
EXIT_INVALID_ARGS = 2
EXIT_QUIT_THRESHOLD = 3


class AiddError(Exception):
    """Base class for fatal runner errors."""

    exit_code = EXIT_GENERAL_ERROR


class ConfigError(AiddError):
    """Invalid settings or a missing required input file."""

    exit_code = EXIT_INVALID_ARGS


class ToolUnavailableError(AiddError):
    """The assistant CLI is not installed or not on PATH."""


class SpawnError(AiddError):
    """The assistant process could not be started at all."""


class TranscriptError(AiddError):
    """A session transcript could not be created or written."""
