"""Road network model and OpenDRIVE loading.

Only the subset of OpenDRIVE needed to drive vehicles around a closed route is
understood:

* ``<road>`` elements outside junctions (junction roads are ignored, the
  simulation does not model intersections);
* the ``<planView>`` reference line made of ``<geometry>`` records whose shape
  is either ``<line/>`` or ``<arc curvature="..."/>``.

Lanes, elevation and lateral profiles are not read.  Positions along a road
are expressed in metres from the start of its reference line.
"""

from __future__ import annotations

import logging
import math
import os
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import IO, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

LOG = logging.getLogger(__name__)

Source = Union[str, "os.PathLike[str]", IO[bytes], IO[str]]
Pose = Tuple[float, float, float]


@dataclass(frozen=True)
class Geometry:
    """One record of a road's reference line.

    - s: Start offset along the road (m).
    - x, y: Start coordinates (m).
    - heading: Start heading (rad).
    - length: Length of the record (m, must be > 0).
    - curvature: 0 for a straight line, 1/radius for an arc (signed).
    """

    s: float
    x: float
    y: float
    heading: float
    length: float
    curvature: float = 0.0

    def __post_init__(self) -> None:
        if self.length <= 0:
            raise ValueError("Geometry length must be positive.")
        if self.s < 0:
            raise ValueError("Geometry start offset cannot be negative.")

    def pose_at(self, ds: float) -> Pose:
        """Return ``(x, y, heading)`` at ``ds`` metres from the record start."""
        ds = min(max(ds, 0.0), self.length)
        if self.curvature == 0.0:
            return (
                self.x + ds * math.cos(self.heading),
                self.y + ds * math.sin(self.heading),
                self.heading,
            )
        k = self.curvature
        heading = self.heading + k * ds
        x = self.x + (math.sin(heading) - math.sin(self.heading)) / k
        y = self.y - (math.cos(heading) - math.cos(self.heading)) / k
        return x, y, heading


@dataclass(frozen=True)
class RoadSegment:
    """A drivable road made of consecutive reference-line geometries."""

    road_id: str
    geometries: Tuple[Geometry, ...]
    length: float
    name: str = ""

    def __post_init__(self) -> None:
        if not self.geometries:
            raise ValueError(f"Road '{self.road_id}' has no plan view geometry.")
        if self.length <= 0:
            raise ValueError(f"Road '{self.road_id}' must have a positive length.")

    def pose_at(self, offset: float) -> Pose:
        """Return the reference-line pose at ``offset`` metres along the road."""
        offset = min(max(offset, 0.0), self.length)
        current = self.geometries[0]
        for geometry in self.geometries:
            if geometry.s > offset:
                break
            current = geometry
        return current.pose_at(offset - current.s)

    def polyline(self, samples_per_geometry: int = 16) -> np.ndarray:
        """Return an ``(n, 2)`` array of points sampled along the road."""
        points = []
        for geometry in self.geometries:
            for ds in np.linspace(0.0, geometry.length, samples_per_geometry):
                x, y, _ = geometry.pose_at(float(ds))
                points.append((x, y))
        return np.asarray(points, dtype=float)


class RoadNetwork:
    """Ordered collection of road segments.

    Iteration yields segments in the order they were added, which for a
    loaded network is the order of the ``<road>`` elements in the file.
    """

    def __init__(self, segments: Optional[Sequence[RoadSegment]] = None) -> None:
        self._segments: List[RoadSegment] = list(segments or [])

    def add_segment(self, segment: RoadSegment) -> None:
        self._segments.append(segment)

    def __iter__(self) -> Iterator[RoadSegment]:
        return iter(self._segments)

    def __len__(self) -> int:
        return len(self._segments)

    @property
    def length(self) -> float:
        """Total length (m) of all segments."""
        return sum(segment.length for segment in self._segments)

    def draw(self, context, scale: float) -> None:
        """Draw every segment on ``context`` with coordinates multiplied by ``scale``."""
        for segment in self._segments:
            context.draw_road(segment.road_id, segment.polyline() * scale)

    def __repr__(self) -> str:
        return f"RoadNetwork(segments={len(self._segments)}, length={self.length:.1f})"


def load_road_network(network: RoadNetwork, source: Source) -> RoadNetwork:
    """Populate ``network`` from an OpenDRIVE document.

    Parameters
    ----------
    network:
        Network receiving the parsed segments.  It is only modified once the
        whole document has been parsed successfully.
    source:
        Path or open file object of the OpenDRIVE XML document.

    Returns
    -------
    RoadNetwork
        The populated ``network`` (for chaining).

    Raises
    ------
    FileNotFoundError
        If ``source`` is a path that does not exist.
    ValueError
        If the document is not well-formed XML, is not OpenDRIVE, contains an
        invalid road, or defines no drivable road.
    """
    LOG.info("parsing %s", source)
    try:
        tree = ET.parse(source)
    except ET.ParseError as exc:
        raise ValueError(f"Malformed OpenDRIVE document {source!r}: {exc}") from exc

    root = tree.getroot()
    if root.tag != "OpenDRIVE":
        raise ValueError(f"Expected an <OpenDRIVE> root element, found <{root.tag}>.")

    segments: List[RoadSegment] = []
    for road in root.findall("road"):
        road_id = road.get("id", str(len(segments)))
        if road.get("junction", "-1") != "-1":
            LOG.debug("skipping junction road %s", road_id)
            continue
        segments.append(_parse_road(road, road_id))

    if not segments:
        raise ValueError(f"OpenDRIVE document {source!r} defines no drivable road.")

    for segment in segments:
        network.add_segment(segment)
    LOG.info("loaded %d road segments (%.1f m)", len(segments), network.length)
    return network


def _parse_road(road: ET.Element, road_id: str) -> RoadSegment:
    geometries: List[Geometry] = []
    for record in road.findall("planView/geometry"):
        arc = record.find("arc")
        try:
            geometries.append(
                Geometry(
                    s=_float_attr(record, "s"),
                    x=_float_attr(record, "x"),
                    y=_float_attr(record, "y"),
                    heading=_float_attr(record, "hdg"),
                    length=_float_attr(record, "length"),
                    curvature=_float_attr(arc, "curvature") if arc is not None else 0.0,
                )
            )
        except ValueError as exc:
            raise ValueError(f"Invalid geometry in road '{road_id}': {exc}") from exc

    geometries.sort(key=lambda geometry: geometry.s)
    declared = road.get("length")
    if declared is not None:
        length = _float_attr(road, "length")
    else:
        length = sum(geometry.length for geometry in geometries)
    return RoadSegment(
        road_id=road_id,
        geometries=tuple(geometries),
        length=length,
        name=road.get("name", ""),
    )


def _float_attr(element: ET.Element, name: str) -> float:
    raw = element.get(name)
    if raw is None:
        raise ValueError(f"<{element.tag}> is missing the '{name}' attribute.")
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"<{element.tag}> attribute {name}={raw!r} is not a number.") from exc


@dataclass(frozen=True)
class ItineraryPath:
    """A road segment as seen by an itinerary, with the rendering scale."""

    segment: RoadSegment
    scale: float

    @property
    def length(self) -> float:
        return self.segment.length

    def scaled_pose(self, offset: float) -> Pose:
        """Pose at ``offset`` with coordinates multiplied by the path scale."""
        x, y, heading = self.segment.pose_at(offset)
        return x * self.scale, y * self.scale, heading


@dataclass(frozen=True)
class Itinerary:
    """Closed route made of consecutive itinerary paths.

    Shared read-only by every vehicle.  A position is a distance in metres from
    the start of the first path.
    """

    paths: Tuple[ItineraryPath, ...]
    base_offset: float = 0.0
    _length: float = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.paths:
            raise ValueError("An itinerary needs at least one path.")
        object.__setattr__(self, "_length", sum(path.length for path in self.paths))

    @property
    def length(self) -> float:
        return self._length

    def locate(self, position: float) -> Pose:
        """Return the scaled ``(x, y, heading)`` of ``position`` on the route.

        Positions beyond the route length are folded back onto it.
        """
        offset = position % self._length
        for path in self.paths:
            if offset <= path.length:
                return path.scaled_pose(offset)
            offset -= path.length
        return self.paths[-1].scaled_pose(self.paths[-1].length)


def build_itinerary(network: RoadNetwork, scale: float) -> Itinerary:
    """Build the default itinerary following every segment of ``network`` in order."""
    return Itinerary(paths=tuple(ItineraryPath(segment, scale) for segment in network))


__all__ = [
    "Geometry",
    "Itinerary",
    "ItineraryPath",
    "RoadNetwork",
    "RoadSegment",
    "build_itinerary",
    "load_road_network",
]
