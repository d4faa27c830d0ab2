"""Background sweep scheduling.

A ``PeriodicSweeper`` runs a callback on a daemon thread at a fixed
interval. The callback returns ``True`` to keep running; returning ``False``
ends the loop. Owners call ``release()`` from inside the callback (while
holding their own lock) so a concurrent ``start()`` can schedule a fresh
thread.
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicSweeper:
    """Runs ``callback`` every ``interval_ms`` until stopped.

    Usage:
        sweeper = PeriodicSweeper(60_000, cache._sweep_tick, name="search-cache")
        sweeper.start()     # idempotent
        ...
        sweeper.stop()      # wakes the thread and joins it
    """

    def __init__(
        self,
        interval_ms: int,
        callback: Callable[[], bool],
        name: str = "sweeper",
    ):
        self._interval_seconds = interval_ms / 1000
        self._callback = callback
        self._name = name
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._thread is not None

    def start(self) -> None:
        """Start the background thread if it is not already running."""
        with self._lock:
            if self._thread is not None:
                return
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run,
                args=(stop_event,),
                name=f"{self._name}-sweeper",
                daemon=True,
            )
            self._stop_event = stop_event
            self._thread = thread
            thread.start()
        logger.debug(f"Started {self._name} sweeper (interval: {self._interval_seconds}s)")

    def release(self) -> None:
        """Forget the current thread without signalling it.

        Called by the callback that is about to return ``False``. A no-op
        when called from any thread other than the tracked one.
        """
        with self._lock:
            if self._thread is not threading.current_thread():
                return
            self._thread = None
            self._stop_event = None

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the background thread and wait for it to exit."""
        with self._lock:
            thread, stop_event = self._thread, self._stop_event
            self._thread = None
            self._stop_event = None
        if thread is None or stop_event is None:
            return

        stop_event.set()
        if thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                logger.warning(f"{self._name} sweeper did not stop within {timeout}s")
        logger.debug(f"Stopped {self._name} sweeper")

    def _run(self, stop_event: threading.Event) -> None:
        # Event.wait returns True once stop() sets the event
        while not stop_event.wait(self._interval_seconds):
            try:
                keep_running = self._callback()
            except Exception:
                logger.exception(f"Error during {self._name} sweep")
                continue
            if not keep_running:
                logger.debug(f"{self._name} sweeper idle, exiting")
                return
