"""Radius queries over station positions.

Backed by shapely's STRtree, a packed bounding-box R-tree. The index is
built once per pass over stations with finite coordinates and is read-only
afterwards.
"""

from __future__ import annotations

__all__ = ["SpatialIndex"]

import math
from typing import Collection, Iterable

from shapely import STRtree
from shapely.geometry import Point as ShapelyPoint
from shapely.geometry import box

from metro_schematic.layout.constants import DEFAULT_CLUSTERING_DISTANCE
from metro_schematic.network.model import Point, Station, is_finite_point


class SpatialIndex:
    """Bounding-box tree over a snapshot of station positions."""

    def __init__(self, stations: Iterable[Station]) -> None:
        self._stations = [s for s in stations if is_finite_point(s.position)]
        self._tree = STRtree([ShapelyPoint(s.position) for s in self._stations])

    def __len__(self) -> int:
        return len(self._stations)

    def query_point(
        self,
        point: Point,
        radius: float,
        within: Collection[int] | None = None,
    ) -> list[Station]:
        """Return indexed stations at Euclidean distance <= radius from point.

        ``within`` restricts results to the given station IDs. A
        non-positive radius falls back to DEFAULT_CLUSTERING_DISTANCE.
        """
        if radius <= 0:
            radius = DEFAULT_CLUSTERING_DISTANCE
        if not self._stations or not is_finite_point(point):
            return []

        envelope = box(point[0] - radius, point[1] - radius, point[0] + radius, point[1] + radius)
        hits: list[Station] = []
        for idx in sorted(int(i) for i in self._tree.query(envelope)):
            station = self._stations[idx]
            if within is not None and station.id not in within:
                continue
            if math.dist(station.position, point) <= radius:
                hits.append(station)
        return hits

    def query(
        self,
        station: Station,
        radius: float,
        within: Collection[int] | None = None,
    ) -> list[Station]:
        """Return stations near ``station``, excluding the station itself."""
        return [
            s
            for s in self.query_point(station.position, radius, within)
            if s.id != station.id
        ]
