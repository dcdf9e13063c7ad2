"""Run-level cancellation."""

import threading
from typing import Optional


class CancellationToken:
    """Stops dispatch of new operations; in-flight work finishes and is recorded."""

    def __init__(self):
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "run cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
