"""
Logging helpers for high-frequency realtime traffic.

Audio frames arrive many times per second, so per-frame log lines are gated by
LogThrottle. Upstream payloads carry large base64 blobs, so they are passed
through sanitize_strings_deep before being logged.
"""

import time
from typing import Any, Callable, Dict, Optional


class LogThrottle:
    """Allows one log call per (session, key) pair per interval."""

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.monotonic
        self._timestamps: Dict[str, float] = {}

    def should_log(self, session_id: str, key: str, interval: float = 3.0) -> bool:
        composite_key = f"{session_id}:{key}"
        now = self._clock()
        last = self._timestamps.get(composite_key)
        if last is not None and now - last < interval:
            return False
        self._timestamps[composite_key] = now
        return True

    def log(self, session_id: str, key: str, log_fn: Callable[[], None], interval: float = 3.0) -> None:
        if self.should_log(session_id, key, interval):
            log_fn()

    def forget(self, session_id: str) -> None:
        """Drop all timestamps recorded for a session."""
        prefix = f"{session_id}:"
        for composite_key in [k for k in self._timestamps if k.startswith(prefix)]:
            del self._timestamps[composite_key]


def sanitize_strings_deep(value: Any, max_len: int = 200) -> Any:
    """Return a copy of value with every string longer than max_len replaced by '...'."""
    seen = set()

    def walk(val: Any) -> Any:
        if isinstance(val, str):
            return "..." if len(val) > max_len else val
        if isinstance(val, (list, tuple, dict)):
            if id(val) in seen:
                return "[Circular]"
            seen.add(id(val))
        if isinstance(val, (list, tuple)):
            return [walk(v) for v in val]
        if isinstance(val, dict):
            return {k: walk(v) for k, v in val.items()}
        return val

    return walk(value)
