"""Route identifiers and per-route aggregates.

Source feeds encode the "main route" of a stop or trip variant as the
first ``_``-separated token of its identifier (``A_north`` and ``A_south``
both belong to route ``A``). That convention lives here and nowhere else.
"""

from __future__ import annotations

__all__ = [
    "ROUTE_DELIMITER",
    "RouteMetrics",
    "compute_route_metrics",
    "main_route_id",
    "route_prefix",
    "shares_route_prefix",
]

import math
from collections import defaultdict
from dataclasses import dataclass, field

from metro_schematic.network.model import Link, NodeType, Station

ROUTE_DELIMITER = "_"

IMPORTANCE_LENGTH_WEIGHT = 0.4
IMPORTANCE_STATIONS_WEIGHT = 0.3
IMPORTANCE_TRANSFERS_WEIGHT = 0.3

# Routes scoring above this are treated as main lines
MAIN_LINE_THRESHOLD = 0.5


def main_route_id(identifier: str) -> str:
    """Return the main route token of a route or stop identifier."""
    return identifier.split(ROUTE_DELIMITER)[0]


def route_prefix(station: Station) -> str:
    """Return the route-prefix token derived from a station's stop ID."""
    return main_route_id(station.stop_id)


def shares_route_prefix(station: Station, prefix: str) -> bool:
    """True when the station's stop ID starts with the given route prefix."""
    return station.stop_id.startswith(prefix)


@dataclass
class RouteMetrics:
    """Derived metrics for one main route. Never persisted beyond a run."""

    route_id: str
    station_ids: list[int] = field(default_factory=list)
    station_count: int = 0
    transfer_count: int = 0
    total_length: float = 0.0
    importance: float = 0.0
    is_main_line: bool = False


def _ratio(value: float, maximum: float) -> float:
    return value / maximum if maximum > 0 else 0.0


def compute_route_metrics(
    stations: list[Station], links: list[Link]
) -> dict[str, RouteMetrics]:
    """Aggregate links by main route and score each route's importance.

    Importance blends total length (40%), station count (30%) and
    transfer count (30%), each normalized against the network maximum.
    Links with an endpoint missing from ``stations`` are ignored.
    """
    by_id = {s.id: s for s in stations}
    metrics: dict[str, RouteMetrics] = {}
    members: dict[str, dict[int, None]] = defaultdict(dict)

    for link in links:
        src = by_id.get(link.source)
        tgt = by_id.get(link.target)
        if src is None or tgt is None:
            continue
        rid = main_route_id(link.route_id)
        route = metrics.setdefault(rid, RouteMetrics(route_id=rid))
        members[rid][src.id] = None
        members[rid][tgt.id] = None
        length = math.dist(src.position, tgt.position)
        if math.isfinite(length):
            route.total_length += length

    for rid, route in metrics.items():
        route.station_ids = list(members[rid])
        route.transfer_count = sum(
            1 for sid in route.station_ids if by_id[sid].type == NodeType.TRANSFER
        )
        route.station_count = len(route.station_ids) - route.transfer_count

    if not metrics:
        return metrics

    max_length = max(r.total_length for r in metrics.values())
    max_stations = max(r.station_count for r in metrics.values())
    max_transfers = max(r.transfer_count for r in metrics.values())

    for route in metrics.values():
        route.importance = (
            _ratio(route.total_length, max_length) * IMPORTANCE_LENGTH_WEIGHT
            + _ratio(route.station_count, max_stations) * IMPORTANCE_STATIONS_WEIGHT
            + _ratio(route.transfer_count, max_transfers) * IMPORTANCE_TRANSFERS_WEIGHT
        )
        route.is_main_line = route.importance > MAIN_LINE_THRESHOLD

    return metrics
