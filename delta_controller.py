"""Time-step control for the ring simulation.

The simulation advances every vehicle by a fixed amount of simulated time per
tick (the *delta*).  An operator may change that value while the simulation is
running; the controller keeps exactly one level of history so that the last
change can be rolled back.
"""

from __future__ import annotations

import math
import threading
import warnings

DEFAULT_DELTA_S = 0.15


class DeltaController:
    """Own the default, current and previous simulation time-steps (seconds).

    ``current_delta`` is strictly positive at all times.  Before the first
    accepted :meth:`set_delta` call, both ``current_delta`` and
    ``previous_delta`` equal ``default_delta``.
    """

    def __init__(self, default_delta: float = DEFAULT_DELTA_S) -> None:
        if not _is_valid_delta(default_delta):
            raise ValueError("default_delta must be a positive, finite number.")

        self._lock = threading.Lock()
        self._default = float(default_delta)
        self._current = self._default
        self._previous = self._default

    @property
    def default_delta(self) -> float:
        return self._default

    @property
    def current_delta(self) -> float:
        with self._lock:
            return self._current

    @property
    def previous_delta(self) -> float:
        with self._lock:
            return self._previous

    def set_delta(self, value: float) -> None:
        """Make ``value`` the active delta and remember the one it replaces.

        Raises
        ------
        ValueError
            If ``value`` is not a positive, finite number.  The controller
            state is left untouched in that case.
        """
        if not _is_valid_delta(value):
            raise ValueError(f"delta must be a positive, finite number, got {value!r}.")

        if value > 1.0:
            warnings.warn(
                f"delta={value} s is unusually large. "
                f"Vehicles may jump over their front vehicle in a single tick.",
                UserWarning,
            )

        with self._lock:
            self._previous = self._current
            self._current = float(value)

    def __repr__(self) -> str:
        return (
            f"DeltaController(default={self._default}, "
            f"current={self.current_delta}, previous={self.previous_delta})"
        )


def _is_valid_delta(value: float) -> bool:
    # bool is an int subclass but never a meaningful time-step
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


__all__ = ["DEFAULT_DELTA_S", "DeltaController"]
