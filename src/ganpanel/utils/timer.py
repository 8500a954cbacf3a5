"""Interval scheduling for poll ticks."""

from __future__ import annotations

import threading
from typing import Callable, Optional


class RecurringTask:
    """Calls ``callback`` every ``interval`` seconds on a daemon thread until stopped.

    The callback should only post work elsewhere (e.g. into a queue); it runs
    on the timer thread.
    """

    def __init__(self, interval: float, callback: Callable[[], None], name: str = "recurring-task") -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.interval = interval
        self.callback = callback
        self.name = name
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_active(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()

    def start(self) -> None:
        if self.is_active:
            return
        self._stop = threading.Event()
        stop = self._stop

        def run() -> None:
            while not stop.wait(self.interval):
                self.callback()

        self._thread = threading.Thread(target=run, name=self.name, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=self.interval * 2 + 1)
        self._thread = None
