from __future__ import annotations

import threading


class CancellationToken:
    """Thread-safe, one-way cancel flag. Safe to set from a signal handler."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def event(self) -> threading.Event:
        return self._event

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; return early (True) once cancelled."""
        return self._event.wait(timeout)
