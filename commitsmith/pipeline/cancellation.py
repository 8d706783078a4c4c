"""Cooperative cancellation for pipeline runs."""

import threading

from commitsmith.pipeline.errors import PipelineCancelled


class CancellationToken:
    """Set from any thread; the pipeline checks it before each backend call."""

    def __init__(self):
        self._event = threading.Event()
        self.reason = ""

    def cancel(self, reason: str = "cancelled") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str) -> None:
        if self._event.is_set():
            raise PipelineCancelled(f"Cancelled before {stage}: {self.reason}")
