"""One simulation tick over the whole fleet.

Vehicles are updated one after the other in fleet (ring generation) order.
A vehicle whose front neighbour comes earlier in that order therefore sees
the neighbour's state of the current tick, and the state of the previous
tick otherwise.  This staggered update is part of the model: the vehicles are
not updated simultaneously.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import List, Optional, Tuple

from delta_controller import DeltaController
from fleet import Fleet, SimulationInvariantError
from rendering import RenderContext
from vehicle import VehicleBehaviour, VehicleState

LOG = logging.getLogger(__name__)

# Snapshots kept per subscriber before the oldest ones are dropped
DEFAULT_CHANNEL_SIZE = 64


@dataclass(frozen=True)
class TickSnapshot:
    """State of every vehicle once a tick has completed."""

    tick: int
    delta: float
    vehicles: Tuple[VehicleState, ...]


class VehicleStepper:
    """Apply the current delta to every vehicle and publish the result."""

    def __init__(
            self,
            fleet: Fleet,
            deltas: DeltaController,
            context: RenderContext,
            scale: float,
            behaviour: VehicleBehaviour = VehicleBehaviour.LOOP,
    ) -> None:
        self.fleet = fleet
        self.deltas = deltas
        self.context = context
        self.scale = scale
        self.behaviour = behaviour
        self._tick = 0
        self._latest: Optional[TickSnapshot] = None
        self._channels: List[queue.Queue] = []
        self._channels_lock = threading.Lock()

    @property
    def ticks(self) -> int:
        return self._tick

    @property
    def latest(self) -> Optional[TickSnapshot]:
        """Snapshot published by the most recent tick, if any."""
        return self._latest

    def subscribe(self, maxsize: int = DEFAULT_CHANNEL_SIZE) -> "queue.Queue[TickSnapshot]":
        """Return a channel receiving one :class:`TickSnapshot` per tick.

        When the consumer falls behind by ``maxsize`` snapshots, the oldest
        ones are discarded.
        """
        channel: "queue.Queue[TickSnapshot]" = queue.Queue(maxsize=maxsize)
        with self._channels_lock:
            self._channels.append(channel)
        return channel

    def unsubscribe(self, channel: "queue.Queue[TickSnapshot]") -> None:
        with self._channels_lock:
            self._channels.remove(channel)

    def step(self) -> TickSnapshot:
        """Run one tick.

        Raises
        ------
        SimulationInvariantError
            If the active delta is not positive or a vehicle has no valid
            front vehicle.
        """
        delta = self.deltas.current_delta
        if not delta > 0:
            raise SimulationInvariantError(f"Non-positive delta {delta!r} reached the stepper.")

        with self.fleet.lock:
            for index, vehicle in enumerate(self.fleet):
                front = self.fleet.front_of(index)
                vehicle.update(delta, front, self.behaviour)
                vehicle.draw(self.context, self.scale)
                LOG.debug("%r", vehicle)

            self._tick += 1
            snapshot = TickSnapshot(
                tick=self._tick,
                delta=delta,
                vehicles=tuple(vehicle.state() for vehicle in self.fleet),
            )
            self._latest = snapshot

        self._publish(snapshot)
        self.context.repaint()
        return snapshot

    def _publish(self, snapshot: TickSnapshot) -> None:
        with self._channels_lock:
            channels = list(self._channels)
        for channel in channels:
            while True:
                try:
                    channel.put_nowait(snapshot)
                    break
                except queue.Full:
                    try:
                        channel.get_nowait()
                    except queue.Empty:
                        pass


__all__ = ["TickSnapshot", "VehicleStepper"]
