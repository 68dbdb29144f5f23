"""Shared utility functions for voicereport."""

import time


class MonotonicIds:
    """Millisecond-timestamp ids that never repeat or go backwards."""

    def __init__(self) -> None:
        self._last = 0

    def next(self) -> int:
        candidate = time.time_ns() // 1_000_000
        self._last = max(candidate, self._last + 1)
        return self._last

    def advance_past(self, value: int) -> None:
        """Guarantee later ids exceed ``value`` (e.g. after rehydration)."""
        self._last = max(self._last, value)
