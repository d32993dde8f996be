"""Request timeout policies."""

from __future__ import annotations


class FixedRequestTimeoutPolicy:
    """Returns the same timeout for every request; ``None`` waits indefinitely."""

    def __init__(self, timeout: float | None = None) -> None:
        if timeout is not None and timeout < 0:
            raise ValueError("Timeout must be non-negative or None.")
        self._timeout = timeout

    def get_timeout(self) -> float | None:
        return self._timeout
