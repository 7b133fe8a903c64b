"""Failure-signature matching for assistant output lines."""

from __future__ import annotations

from .config import PATTERN_NO_ASSISTANT, PATTERN_PROVIDER_ERROR
from .models import FailureSignal

# Checked in order; the first signature found wins.
_SIGNATURES = (
    (PATTERN_NO_ASSISTANT, FailureSignal.NO_ASSISTANT),
    (PATTERN_PROVIDER_ERROR, FailureSignal.PROVIDER_ERROR),
)


def classify(line: str | bytes) -> FailureSignal | None:
    """Return the failure signal carried by one output line, if any."""
    if isinstance(line, (bytes, bytearray)):
        line = bytes(line).decode("utf-8", errors="replace")
    for pattern, signal in _SIGNATURES:
        if pattern in line:
            return signal
    return None
