"""Geometry helpers shared by the layout stages."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from metro_schematic.errors import DegenerateLayoutError, InvariantViolationError
from metro_schematic.layout.constants import COLLINEAR_EPSILON, GRID_SIZE, MIN_COORD_DELTA
from metro_schematic.network.model import Point, is_finite_point


def coordinate_range(points: Iterable[Point]) -> tuple[float, float, float, float]:
    """Return (min_x, min_y, max_x, max_y) of finite points."""
    pts = list(points)
    if not pts:
        raise InvariantViolationError("No positions to measure")
    for p in pts:
        if not is_finite_point(p):
            raise InvariantViolationError(f"Non-finite position {p}")
    xs = [p[0] for p in pts]
    ys = [p[1] for p in pts]
    return min(xs), min(ys), max(xs), max(ys)


def check_range(points: Iterable[Point], epsilon: float = MIN_COORD_DELTA) -> None:
    """Raise DegenerateLayoutError when width or height falls below epsilon."""
    min_x, min_y, max_x, max_y = coordinate_range(points)
    width = max_x - min_x
    height = max_y - min_y
    if width < epsilon or height < epsilon:
        raise DegenerateLayoutError(
            "Node coordinates are too close together for meaningful "
            f"normalization (width={width:.3g}, height={height:.3g})"
        )


@dataclass(frozen=True)
class Frame:
    """Uniform affine map between input coordinates and a working frame.

    The larger bounding-box side maps onto ``extent``; both axes share one
    scale so angles survive the round trip.
    """

    origin_x: float
    origin_y: float
    scale: float

    @classmethod
    def fit(cls, points: Iterable[Point], extent: float = 1.0) -> Frame:
        pts = list(points)
        check_range(pts)
        min_x, min_y, max_x, max_y = coordinate_range(pts)
        side = max(max_x - min_x, max_y - min_y)
        return cls(min_x, min_y, extent / side)

    def to_frame(self, p: Point) -> Point:
        return ((p[0] - self.origin_x) * self.scale, (p[1] - self.origin_y) * self.scale)

    def from_frame(self, p: Point) -> Point:
        return (p[0] / self.scale + self.origin_x, p[1] / self.scale + self.origin_y)


def length(v: Point) -> float:
    return math.hypot(v[0], v[1])


def normalized(v: Point) -> Point:
    """Unit vector along v, or (0, 0) for a zero vector."""
    n = length(v)
    if n == 0:
        return (0.0, 0.0)
    return (v[0] / n, v[1] / n)


def snap_angle(angle_deg: float, step_deg: float) -> float:
    """Round an angle in degrees to the nearest multiple of step_deg."""
    return round(angle_deg / step_deg) * step_deg


def snap_direction(v: Point, step_deg: float) -> Point:
    """Unit vector along v with its angle rounded to a multiple of step_deg."""
    angle = math.degrees(math.atan2(v[1], v[0]))
    snapped = math.radians(snap_angle(angle, step_deg))
    return (math.cos(snapped), math.sin(snapped))


def snap_to_grid(p: Point, cell: float = GRID_SIZE) -> Point:
    return (round(p[0] / cell) * cell, round(p[1] / cell) * cell)


def centroid(points: Iterable[Point]) -> Point:
    pts = list(points)
    if not pts:
        raise InvariantViolationError("Centroid of an empty point set")
    return (
        sum(p[0] for p in pts) / len(pts),
        sum(p[1] for p in pts) / len(pts),
    )


def is_collinear(p1: Point, p2: Point, p3: Point, epsilon: float = COLLINEAR_EPSILON) -> bool:
    """True when the triangle p1-p2-p3 has (doubled) area within epsilon."""
    area = abs((p2[0] - p1[0]) * (p3[1] - p1[1]) - (p3[0] - p1[0]) * (p2[1] - p1[1]))
    return area <= epsilon
