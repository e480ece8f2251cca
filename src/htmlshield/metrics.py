"""In-memory counters for what a shield has done."""

from __future__ import annotations

import threading
from collections import Counter


class ShieldMetrics:
    """Thread-safe event counters, read back with `snapshot()`.

    - pattern_detected: values that matched an XSS pattern
    - sanitized, strict_sanitized, form_sanitized: values run through each policy
    - json_skipped: payload values left alone because their field is ignored
    - param_skipped: values left alone because their path is excluded
    """

    FIELDS = (
        "pattern_detected",
        "sanitized",
        "strict_sanitized",
        "form_sanitized",
        "json_skipped",
        "param_skipped",
    )

    __slots__ = ("_counts", "_lock")

    def __init__(self) -> None:
        self._counts: Counter[str] = Counter()
        self._lock = threading.Lock()

    def increment(self, name: str, amount: int = 1) -> None:
        if name not in self.FIELDS:
            raise KeyError(f"Unknown metric: {name}")
        with self._lock:
            self._counts[name] += amount

    def get(self, name: str) -> int:
        if name not in self.FIELDS:
            raise KeyError(f"Unknown metric: {name}")
        with self._lock:
            return self._counts[name]

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return {name: self._counts[name] for name in self.FIELDS}

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()

    def __repr__(self) -> str:
        counts = ", ".join(f"{name}={value}" for name, value in self.snapshot().items())
        return f"<ShieldMetrics {counts}>"
