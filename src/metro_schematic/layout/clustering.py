"""Node clustering: merge near-duplicate stations that share a route.

Each route is processed independently. For every not-yet-processed
station on the route, the spatial index returns the route's other
stations within the clustering radius; the station and those immediate
neighbors collapse into one station at their centroid. This is a single
merge pass, not transitive growth (see topology.py for the transitive
variant).
"""

from __future__ import annotations

__all__ = ["ClusterResult", "cluster_stations", "merge_stations"]

import logging
from dataclasses import dataclass, field

from metro_schematic.errors import InvalidNetworkError, InvariantViolationError
from metro_schematic.layout.geometry import centroid
from metro_schematic.layout.links import rebuild_links, with_connection_counts
from metro_schematic.layout.spatial import SpatialIndex
from metro_schematic.network.model import Link, Network, NodeType, Station, is_finite_point

logger = logging.getLogger(__name__)


@dataclass
class ClusterResult:
    """Output of a clustering pass."""

    network: Network
    # absorbed station ID -> surviving station ID
    merged: dict[int, int] = field(default_factory=dict)
    dropped: list[int] = field(default_factory=list)


def merge_stations(members: list[Station]) -> Station:
    """Collapse a cluster into one station at the centroid of its valid members.

    The first valid member supplies id, stop_id, name and original
    position. The result is a Transfer station when more than one member
    took part, otherwise it keeps the member's type.
    """
    valid = [m for m in members if is_finite_point(m.position)]
    if not valid:
        raise InvariantViolationError(
            f"Cannot merge cluster {[m.id for m in members]}: no valid members"
        )
    base = valid[0]
    merged = base.moved_to(centroid(m.position for m in valid))
    if len(valid) > 1:
        merged = merged.with_type(NodeType.TRANSFER)
    return merged


def _log_coordinate_ranges(stage: str, stations: list[Station]) -> None:
    finite = [s for s in stations if is_finite_point(s.position)]
    if not finite:
        logger.info("%s: no finite stations", stage)
        return
    xs = [s.x for s in finite]
    ys = [s.y for s in finite]
    logger.info(
        "%s: X %.6f to %.6f, Y %.6f to %.6f (%d of %d valid)",
        stage, min(xs), max(xs), min(ys), max(ys), len(finite), len(stations),
    )


def _route_groups(links: list[Link]) -> dict[str, dict[int, None]]:
    """Station IDs per route, in first-seen order."""
    groups: dict[str, dict[int, None]] = {}
    for link in links:
        members = groups.setdefault(link.route_id, {})
        members[link.source] = None
        members[link.target] = None
    return groups


def cluster_stations(network: Network, radius: float) -> ClusterResult:
    """Merge stations of the same route lying within ``radius`` of each other.

    Invalid stations (non-finite coordinates, negative ID, blank stop ID
    or name) are dropped before any query.
    Links are remapped onto surviving stations and reweighted; links with
    an unresolvable endpoint are dropped.
    """
    if not network.stations:
        raise InvalidNetworkError("No stations provided for clustering")
    if not network.links:
        raise InvalidNetworkError("No links provided for clustering")

    _log_coordinate_ranges("Before clustering", network.stations)

    valid = [s for s in network.stations if s.is_valid]
    dropped = [s.id for s in network.stations if not s.is_valid]
    if dropped:
        logger.warning("Skipping %d invalid stations: %s", len(dropped), dropped[:10])
    if not valid:
        raise InvalidNetworkError("No valid stations provided for clustering")

    by_id = {s.id: s for s in valid}
    index = SpatialIndex(valid)
    groups = _route_groups(network.links)
    logger.info("Clustering %d stations across %d routes", len(valid), len(groups))

    processed: set[int] = set()
    output: list[Station] = []
    merged: dict[int, int] = {}

    for route_id, members in groups.items():
        for sid in members:
            if sid in processed:
                continue
            station = by_id.get(sid)
            if station is None:
                continue

            nearby = [
                n for n in index.query(station, radius, within=members)
                if n.id not in processed
            ]
            if nearby:
                survivor = merge_stations([station, *nearby])
                output.append(survivor)
                processed.add(station.id)
                for n in nearby:
                    processed.add(n.id)
                    merged[n.id] = survivor.id
                logger.debug("Route %s: merged %s into %d",
                             route_id, [n.id for n in nearby], survivor.id)
            else:
                output.append(station)
                processed.add(station.id)

    # Stations not served by any route pass through unchanged
    for station in valid:
        if station.id not in processed:
            output.append(station)
            processed.add(station.id)

    links = rebuild_links(output, network.links, merged)
    output = with_connection_counts(output, links)

    _log_coordinate_ranges("After clustering", output)
    logger.info("Clustering produced %d stations and %d links", len(output), len(links))
    return ClusterResult(Network(output, links), merged, dropped)
