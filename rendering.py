"""Rendering context shared by the road network, the vehicles and the stepper.

Drawing calls made during a tick are collected into a pending frame;
:meth:`RenderContext.repaint` publishes it atomically.  Any thread can then
read :attr:`RenderContext.last_frame` or write it to an image with
:meth:`RenderContext.save` without seeing a frame that mixes two ticks.

The context is a plain object created once and handed to the simulation.
"""

from __future__ import annotations

import logging
import math
import os
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

import numpy as np
from matplotlib.figure import Figure

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class VehicleSprite:
    vehicle_id: int
    x: float
    y: float
    heading: float
    length: float
    color: str


@dataclass(frozen=True)
class Frame:
    """Everything drawn between two repaints."""

    number: int
    roads: Tuple[Tuple[str, np.ndarray], ...]
    vehicles: Tuple[VehicleSprite, ...]


class RenderContext:
    """Collects drawing primitives and publishes them one frame at a time."""

    def __init__(self, title: str = "Ring traffic simulation") -> None:
        self.title = title
        self._lock = threading.Lock()
        self._roads: Dict[str, np.ndarray] = {}
        self._pending: List[VehicleSprite] = []
        self._frame: Optional[Frame] = None
        self._repaints = 0

    def draw_road(self, road_id: str, points: np.ndarray) -> None:
        """Register the polyline of a road; roads persist across frames."""
        with self._lock:
            self._roads[road_id] = np.asarray(points, dtype=float)

    def draw_vehicle(
            self,
            vehicle_id: int,
            x: float,
            y: float,
            heading: float,
            length: float,
            color: str,
    ) -> None:
        with self._lock:
            self._pending.append(VehicleSprite(vehicle_id, x, y, heading, length, color))

    def repaint(self) -> Frame:
        """Publish the vehicles drawn since the previous repaint as a new frame."""
        with self._lock:
            self._repaints += 1
            self._frame = Frame(
                number=self._repaints,
                roads=tuple(self._roads.items()),
                vehicles=tuple(self._pending),
            )
            self._pending = []
            return self._frame

    @property
    def repaints(self) -> int:
        with self._lock:
            return self._repaints

    @property
    def last_frame(self) -> Optional[Frame]:
        with self._lock:
            return self._frame

    def save(self, path: Union[str, "os.PathLike[str]"], dpi: int = 150) -> None:
        """Write the last published frame (or the bare network) to an image file."""
        with self._lock:
            frame = self._frame
            roads = tuple(self._roads.items())
        vehicles = frame.vehicles if frame is not None else ()

        fig = Figure(figsize=(8, 8))
        ax = fig.add_subplot(1, 1, 1)
        for road_id, points in roads:
            if len(points):
                ax.plot(points[:, 0], points[:, 1], color="0.6", linewidth=6, zorder=1)

        for sprite in vehicles:
            # Segment from the rear bumper to the front bumper
            dx = math.cos(sprite.heading) * sprite.length
            dy = math.sin(sprite.heading) * sprite.length
            ax.plot(
                [sprite.x - dx, sprite.x],
                [sprite.y - dy, sprite.y],
                color=sprite.color,
                linewidth=4,
                solid_capstyle="butt",
                zorder=2,
            )

        ax.set_aspect("equal")
        number = frame.number if frame is not None else 0
        ax.set_title(f"{self.title} - frame {number}")
        fig.savefig(path, dpi=dpi, bbox_inches="tight")
        LOG.info("saved frame %d to %s", number, path)


__all__ = ["Frame", "RenderContext", "VehicleSprite"]
