"""Periodic task runner.

Runs a task once immediately, then again ``interval`` seconds after each
run finishes. Runs are serialized by a lock, so two runs of the same
task never overlap, even across a stop() that timed out and a restart.
Exceptions are logged and the schedule continues.

Usage::

    runner = PeriodicRunner(supplier.refresh_clusters, interval=600, name="prod")
    runner.start()
    ...
    runner.stop()
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class PeriodicRunner:
    """Run *task* now and then every *interval* seconds until stopped."""

    def __init__(
        self,
        task: Callable[[], Any],
        interval: float,
        name: str = "periodic-task",
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._task = task
        self._interval = interval
        self._name = name
        self._stop_event = threading.Event()
        self._run_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._runs = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def runs(self) -> int:
        """Number of completed runs (successful or not)."""
        return self._runs

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the background thread. Calling twice is a no-op.

        After a stop() whose join timed out, the old thread may still be
        finishing its run. The new thread gets its own stop event and waits
        for that run before starting the next one.
        """
        if self.is_running and not self._stop_event.is_set():
            return
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._loop,
            args=(self._stop_event,),
            name=f"runner-{self._name}",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """Stop scheduling further runs and wait for the current one to end."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if not self._thread.is_alive():
                self._thread = None

    def run_once(self) -> None:
        """Run the task in the calling thread, logging any exception."""
        with self._run_lock:
            try:
                self._task()
            except Exception:
                logger.exception("Periodic task %s failed", self._name)
            finally:
                self._runs += 1

    def _loop(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            self.run_once()
            if stop_event.wait(self._interval):
                break
