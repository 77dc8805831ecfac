"""Data model for transit networks handed to the layout engine."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum

from metro_schematic.errors import InvariantViolationError

Point = tuple[float, float]


class NodeType(Enum):
    """Role of a station in the network."""

    REGULAR = "regular"
    TRANSFER = "transfer"
    TERMINAL = "terminal"


def is_finite_point(point: Point) -> bool:
    return math.isfinite(point[0]) and math.isfinite(point[1])


@dataclass(frozen=True)
class Station:
    """A station node.

    Stations are values: every position or type change produces a new
    Station bound to the same ``id`` and ``original_position``. Two
    stations compare equal when their ids match.
    """

    id: int
    stop_id: str = field(compare=False)
    name: str = field(compare=False)
    position: Point = field(compare=False)
    type: NodeType = field(default=NodeType.REGULAR, compare=False)
    connection_count: int = field(default=0, compare=False)
    original_position: Point | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        # Snapshot taken once, at creation
        if self.original_position is None:
            object.__setattr__(self, "original_position", self.position)

    @property
    def x(self) -> float:
        return self.position[0]

    @property
    def y(self) -> float:
        return self.position[1]

    @property
    def is_valid(self) -> bool:
        """True when the station can take part in geometry."""
        return (
            is_finite_point(self.position)
            and self.id >= 0
            and bool(self.stop_id.strip())
            and bool(self.name.strip())
        )

    def moved_to(self, position: Point) -> Station:
        if not is_finite_point(position):
            raise InvariantViolationError(
                f"Station {self.id} cannot move to non-finite position {position}"
            )
        return replace(self, position=(float(position[0]), float(position[1])))

    def with_type(self, node_type: NodeType) -> Station:
        return replace(self, type=node_type)

    def with_connections(self, count: int) -> Station:
        return replace(self, connection_count=count)


@dataclass(frozen=True)
class Link:
    """An undirected link between two stations, belonging to a route."""

    id: int
    source: int
    target: int
    route_id: str
    weight: float = 1.0

    def with_weight(self, weight: float) -> Link:
        return replace(self, weight=weight)

    def with_endpoints(self, source: int, target: int) -> Link:
        return replace(self, source=source, target=target)


@dataclass
class Network:
    """The canonical (stations, links) pair threaded through every stage."""

    stations: list[Station] = field(default_factory=list)
    links: list[Link] = field(default_factory=list)

    def station_map(self) -> dict[int, Station]:
        return {s.id: s for s in self.stations}

    def route_ids(self) -> list[str]:
        """Return distinct route IDs in link order."""
        return list(dict.fromkeys(link.route_id for link in self.links))

    def dangling_links(self) -> list[Link]:
        """Return links whose endpoints do not resolve to a station."""
        ids = {s.id for s in self.stations}
        return [
            link
            for link in self.links
            if link.source not in ids or link.target not in ids
        ]

    def bounds(self) -> tuple[float, float, float, float]:
        """Return (min_x, min_y, max_x, max_y) over finite stations."""
        points = [s.position for s in self.stations if is_finite_point(s.position)]
        if not points:
            raise InvariantViolationError("Network has no finite station positions")
        xs = [p[0] for p in points]
        ys = [p[1] for p in points]
        return min(xs), min(ys), max(xs), max(ys)
