"""Index-based storage for the simulated vehicles.

Vehicles live in one list owned by a :class:`Fleet`.  The ring of front
vehicles is expressed as integer indices into that list, which makes the
single-cycle invariant checkable without following live object references.

The fleet object and its backing list are created once and reused for the
whole simulation, so collaborators may keep a reference to it.  Its lock is
held by the stepper for the duration of a tick; :meth:`Fleet.snapshot` takes
the same lock so that readers never observe a half-applied tick.
"""

from __future__ import annotations

import threading
from typing import Iterator, List, Optional, Sequence, Tuple

from vehicle import Vehicle, VehicleState


class SimulationInvariantError(RuntimeError):
    """Raised when the simulation reaches a state that must never happen."""


class Fleet:
    """Ordered vehicle collection with ring links stored as indices.

    Iteration, indexing and :attr:`vehicles` hand out the live vehicles without
    locking.  While a simulation is running, outside readers must use
    :meth:`snapshot` or hold :attr:`lock` themselves.
    """

    def __init__(self, vehicles: Optional[Sequence[Vehicle]] = None) -> None:
        self._vehicles: List[Vehicle] = list(vehicles or [])
        self.lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._vehicles)

    def __iter__(self) -> Iterator[Vehicle]:
        return iter(self._vehicles)

    def __getitem__(self, index: int) -> Vehicle:
        return self._vehicles[index]

    @property
    def vehicles(self) -> List[Vehicle]:
        """The backing list (same object for the lifetime of the fleet)."""
        return self._vehicles

    def front_of(self, index: int) -> Vehicle:
        """Return the vehicle ahead of the one stored at ``index``.

        Raises
        ------
        SimulationInvariantError
            If the vehicle has no front link or the link points outside the
            fleet.
        """
        vehicle = self._vehicles[index]
        front_index = vehicle.front_index
        if front_index is None:
            raise SimulationInvariantError(f"{vehicle!r} has no front vehicle.")
        if not 0 <= front_index < len(self._vehicles):
            raise SimulationInvariantError(
                f"{vehicle!r} points to front index {front_index} outside the fleet "
                f"of {len(self._vehicles)} vehicles."
            )
        return self._vehicles[front_index]

    def ring_order(self, start: int = 0) -> List[int]:
        """Indices visited by following front links from ``start`` until a repeat."""
        visited: List[int] = []
        seen = set()
        index: Optional[int] = start
        while index is not None and index not in seen:
            if not 0 <= index < len(self._vehicles):
                break
            seen.add(index)
            visited.append(index)
            index = self._vehicles[index].front_index
        return visited

    def check_ring(self) -> None:
        """Verify that front links form exactly one cycle over every vehicle.

        An empty fleet trivially passes.

        Raises
        ------
        SimulationInvariantError
            If some vehicle is unlinked, or the links split into several
            cycles, or a chain does not close back on its start.
        """
        if not self._vehicles:
            return
        order = self.ring_order(0)
        if len(order) != len(self._vehicles):
            raise SimulationInvariantError(
                f"Front links visit {len(order)} of {len(self._vehicles)} vehicles from index 0."
            )
        last = self._vehicles[order[-1]]
        if last.front_index != 0:
            raise SimulationInvariantError("Front links do not close back on the first vehicle.")

    def snapshot(self) -> Tuple[VehicleState, ...]:
        """Consistent copy of every vehicle's state, in fleet order."""
        with self.lock:
            return tuple(vehicle.state() for vehicle in self._vehicles)

    def __repr__(self) -> str:
        return f"Fleet(vehicles={len(self._vehicles)})"


__all__ = ["Fleet", "SimulationInvariantError"]
