"""Traffic statistics sampled independently from the simulation clock.

The collector keeps the fleet it was given for the whole run and samples it
on its own thread.  Each sample goes through :meth:`Fleet.snapshot`, which
waits for an in-flight tick to finish, so a sample always describes the
state between two ticks.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from fleet import Fleet
from road_network import RoadNetwork
from vehicle import VehicleState

LOG = logging.getLogger(__name__)

STATISTICS_RATE_S = 1.0

COLUMNS = [
    "time_s",
    "vehicles",
    "density_veh_per_km",
    "mean_speed_mps",
    "min_speed_mps",
    "max_speed_mps",
    "std_speed_mps",
    "mean_gap_m",
    "min_gap_m",
]


def ring_gaps(states: Sequence[VehicleState], route_length: float) -> np.ndarray:
    """Bumper-to-bumper gap (m) from every vehicle to its front vehicle."""
    gaps = []
    for state in states:
        if state.front_index is None:
            continue
        front = states[state.front_index]
        distance = (front.position - state.position) % route_length
        if distance == 0.0:
            distance = route_length
        gaps.append(distance - front.length)
    return np.asarray(gaps, dtype=float)


class Statistics:
    """Periodic sampler of aggregate traffic indicators.

    Parameters
    ----------
    fleet:
        Vehicle collection of the simulation.  The same object is read for
        the whole run.
    road_network:
        Network the vehicles drive on; its length is the ring length.
    sampling_rate:
        Seconds of wall-clock time between two samples (must be positive).
    """

    def __init__(self, fleet: Fleet, road_network: RoadNetwork, sampling_rate: float = STATISTICS_RATE_S) -> None:
        if sampling_rate <= 0:
            raise ValueError("sampling_rate must be positive.")

        self.fleet = fleet
        self.road_network = road_network
        self.sampling_rate = float(sampling_rate)
        self._records: List[Dict[str, float]] = []
        self._records_lock = threading.Lock()
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._started_at: Optional[float] = None

    def start(self) -> None:
        """Take a first sample and keep sampling on a background thread.

        A stopped collector may be started again; its records are kept.
        """
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("Statistics are already running.")

        self._stopped.clear()
        if self._started_at is None:
            self._started_at = time.monotonic()
        self.sample()
        self._thread = threading.Thread(target=self._run, name="statistics", daemon=True)
        self._thread.start()
        LOG.info("statistics started (every %.2f s)", self.sampling_rate)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stopped.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self._stopped.wait(self.sampling_rate):
            self.sample()

    def sample(self) -> Dict[str, float]:
        """Record and return one sample of the fleet."""
        states = self.fleet.snapshot()
        route_length = self.road_network.length
        elapsed = 0.0 if self._started_at is None else time.monotonic() - self._started_at

        record: Dict[str, float] = {
            "time_s": elapsed,
            "vehicles": float(len(states)),
            "density_veh_per_km": len(states) / (route_length / 1000.0) if route_length > 0 else 0.0,
        }
        if states:
            speeds = np.array([state.speed for state in states], dtype=float)
            gaps = ring_gaps(states, route_length) if route_length > 0 else np.zeros(0)
            record.update(
                mean_speed_mps=float(speeds.mean()),
                min_speed_mps=float(speeds.min()),
                max_speed_mps=float(speeds.max()),
                std_speed_mps=float(speeds.std()),
                mean_gap_m=float(gaps.mean()) if gaps.size else float("nan"),
                min_gap_m=float(gaps.min()) if gaps.size else float("nan"),
            )
        else:
            for column in COLUMNS[3:]:
                record[column] = float("nan")

        with self._records_lock:
            self._records.append(record)
        LOG.debug("statistics sample %s", record)
        return record

    @property
    def records(self) -> List[Dict[str, float]]:
        with self._records_lock:
            return list(self._records)

    def to_dataframe(self) -> pd.DataFrame:
        """Return the samples as a ``DataFrame`` indexed by ``time_s``."""
        frame = pd.DataFrame(self.records, columns=COLUMNS)
        return frame.set_index("time_s")


__all__ = ["STATISTICS_RATE_S", "Statistics", "ring_gaps"]
