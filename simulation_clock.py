"""Fixed-rate scheduler driving the simulation ticks.

The first tick runs as soon as the clock starts.  Following ticks are
scheduled against absolute deadlines (start + n * period): when a tick
overruns its period the clock does not drift, it catches up by running the
late ticks back to back.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

LOG = logging.getLogger(__name__)

# Period between two ticks in milliseconds (~25 Hz)
UPDATE_RATE_MS = 40


class SimulationClock:
    """Invoke ``tick`` every ``period_s`` seconds on a dedicated thread.

    Public methods:
    * start: begin ticking (allowed once).
    * stop: cancel future ticks and wait for an in-flight tick to finish.
    """

    def __init__(
            self,
            tick: Callable[[], object],
            period_s: float = UPDATE_RATE_MS / 1000.0,
            name: str = "simulation-clock",
    ) -> None:
        if period_s <= 0:
            raise ValueError("period_s must be positive.")

        self._tick = tick
        self.period_s = float(period_s)
        self.name = name
        self._thread: Optional[threading.Thread] = None
        self._stopped = threading.Event()
        # Held while a tick runs; stop() flags under it so no tick starts afterwards
        self._tick_lock = threading.RLock()
        self._ticks = 0
        self.failure: Optional[BaseException] = None

    @property
    def ticks(self) -> int:
        """Number of completed ticks."""
        return self._ticks

    @property
    def running(self) -> bool:
        return (
                self._thread is not None
                and self._thread.is_alive()
                and not self._stopped.is_set()
        )

    def start(self) -> None:
        """Start ticking immediately.

        Raises
        ------
        RuntimeError
            If the clock was already started.
        """
        if self._thread is not None:
            raise RuntimeError("The simulation clock can only be started once.")

        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        LOG.info("clock started (period %.0f ms)", self.period_s * 1000.0)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Cancel every future tick.

        No tick begins after this method returns.  A tick already running is
        not interrupted: the call blocks until it has completed, unless it is
        made from the clock thread itself (for instance by the tick callback).
        """
        with self._tick_lock:
            self._stopped.set()

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        LOG.info("clock stopped after %d ticks", self._ticks)

    def _run(self) -> None:
        deadline = time.monotonic()
        while not self._stopped.is_set():
            delay = deadline - time.monotonic()
            if delay > 0 and self._stopped.wait(delay):
                break

            with self._tick_lock:
                if self._stopped.is_set():
                    break
                try:
                    self._tick()
                except Exception as exc:
                    LOG.exception("tick %d failed, stopping the clock", self._ticks + 1)
                    self.failure = exc
                    self._stopped.set()
                    break
                self._ticks += 1

            deadline += self.period_s


__all__ = ["SimulationClock", "UPDATE_RATE_MS"]
