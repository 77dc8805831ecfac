"""Topology refinement: constrained clustering, relaxation, angle snapping, simplification.

Runs in a uniformly normalized frame (the larger bounding-box side maps to
1.0) so NodeClusteringDistance is expressed relative to the network extent
and snapped angles survive the mapping back.
"""

from __future__ import annotations

__all__ = [
    "TopologyResult",
    "align_angles",
    "bridge_links",
    "collinear_stations",
    "constrained_clusters",
    "merge_clusters",
    "refine_topology",
    "simplify",
]

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Mapping

import networkx as nx

from metro_schematic.errors import InvalidNetworkError, InvariantViolationError
from metro_schematic.layout.clustering import merge_stations
from metro_schematic.layout.constants import COLLINEAR_EPSILON, MIN_FORCE_DISTANCE
from metro_schematic.layout.geometry import Frame, is_collinear, snap_direction
from metro_schematic.layout.links import build_adjacency, rebuild_links, with_connection_counts
from metro_schematic.layout.options import LayoutOptions
from metro_schematic.layout.relax import RelaxParams, RelaxResult, relax_until_stable
from metro_schematic.network.model import Link, Network, Point, Station
from metro_schematic.network.routes import route_prefix, shares_route_prefix

logger = logging.getLogger(__name__)


@dataclass
class TopologyResult:
    network: Network
    # absorbed station ID -> surviving station ID
    merged: dict[int, int] = field(default_factory=dict)
    simplified: set[int] = field(default_factory=set)
    relax: RelaxResult | None = None


def constrained_clusters(
    stations: list[Station],
    adjacency: nx.Graph,
    radius: float,
) -> list[list[Station]]:
    """Group stations into route-prefix constrained connected clusters.

    Stations are grouped by route prefix. Starting from each unvisited
    station, the cluster grows along links to neighbors whose stop ID
    starts with the group's prefix and which lie within ``radius`` of the
    station being expanded. Growth is transitive. Stations without links
    form singleton clusters.
    """
    by_id = {s.id: s for s in stations}
    groups: dict[str, list[Station]] = {}
    for station in stations:
        groups.setdefault(route_prefix(station), []).append(station)

    visited: set[int] = set()
    clusters: list[list[Station]] = []
    for prefix, members in groups.items():
        for seed in members:
            if seed.id in visited:
                continue
            visited.add(seed.id)
            cluster: list[Station] = []
            queue: deque[Station] = deque([seed])
            while queue:
                current = queue.popleft()
                cluster.append(current)
                if current.id not in adjacency:
                    continue
                for nb_id in adjacency.neighbors(current.id):
                    if nb_id in visited or nb_id not in by_id:
                        continue
                    neighbor = by_id[nb_id]
                    if not shares_route_prefix(neighbor, prefix):
                        continue
                    if math.dist(current.position, neighbor.position) <= radius:
                        visited.add(nb_id)
                        queue.append(neighbor)
            clusters.append(cluster)
    return clusters


def merge_clusters(clusters: Iterable[list[Station]]) -> tuple[list[Station], dict[int, int]]:
    """Collapse each cluster to one station; return stations and merge records."""
    merged_stations: list[Station] = []
    merged: dict[int, int] = {}
    for cluster in clusters:
        if not cluster:
            continue
        survivor = merge_stations(cluster)
        merged_stations.append(survivor)
        for member in cluster:
            if member.id != survivor.id:
                merged[member.id] = survivor.id
    return merged_stations, merged


def align_angles(
    positions: dict[int, Point],
    adjacency: nx.Graph,
    angle_step: float,
    order: Iterable[int] | None = None,
) -> dict[int, Point]:
    """Snap each station's first incident link to a multiple of ``angle_step``.

    The station moves so that the direction from it to its first neighbor
    is snapped while the link length is preserved. Stations are processed
    in ``order`` and later stations see earlier moves. Updates ``positions``
    in place and returns it.
    """
    for sid in (order if order is not None else list(positions)):
        if sid not in adjacency or sid not in positions:
            continue
        for nb in adjacency.neighbors(sid):
            if nb not in positions:
                continue
            p = positions[sid]
            q = positions[nb]
            distance = math.dist(p, q)
            if distance < MIN_FORCE_DISTANCE:
                continue
            ux, uy = snap_direction((q[0] - p[0], q[1] - p[1]), angle_step)
            positions[sid] = (q[0] - ux * distance, q[1] - uy * distance)
            break
    return positions


def collinear_stations(
    positions: Mapping[int, Point],
    adjacency: nx.Graph,
    epsilon: float = COLLINEAR_EPSILON,
) -> set[int]:
    """Stations with exactly two neighbors lying on a line through them.

    Decided against one snapshot of positions. A connected component is
    never removed entirely; its first station is kept.
    """
    removed: set[int] = set()
    for sid, p in positions.items():
        if sid not in adjacency:
            continue
        neighbors = list(adjacency.neighbors(sid))
        if len(neighbors) != 2:
            continue
        prev, nxt = neighbors
        if prev not in positions or nxt not in positions:
            continue
        if is_collinear(positions[prev], p, positions[nxt], epsilon):
            removed.add(sid)

    for component in nx.connected_components(adjacency.subgraph(positions)):
        if component <= removed:
            keep = next(sid for sid in positions if sid in component)
            removed.discard(keep)
    return removed


def simplify(
    stations: list[Station], adjacency: nx.Graph
) -> tuple[list[Station], set[int]]:
    """Drop collinear interior stations; return kept stations and removed IDs."""
    removed = collinear_stations({s.id: s.position for s in stations}, adjacency)
    return [s for s in stations if s.id not in removed], removed


def bridge_links(links: list[Link], removed: set[int]) -> list[Link]:
    """Reconnect the neighbors of removed stations, route by route.

    For each route, a removed station with exactly two links on that route
    is replaced by one link between its neighbors, keeping the lower link
    ID. Other links touching removed stations are dropped. The result
    never holds more links than the input.
    """
    if not removed:
        return list(links)

    kept = [link for link in links if link.source not in removed and link.target not in removed]
    touching: dict[str, list[Link]] = {}
    for link in links:
        if link.source in removed or link.target in removed:
            touching.setdefault(link.route_id, [])
    for link in links:
        if link.route_id in touching:
            touching[link.route_id].append(link)

    bridged: list[Link] = []
    for route_id, route_links in touching.items():
        G = nx.Graph()
        for link in route_links:
            if link.source != link.target:
                G.add_edge(link.source, link.target, link=link)
        for sid in [n for n in G.nodes if n in removed]:
            if G.degree(sid) == 2:
                a, b = list(G.neighbors(sid))
                first = G.edges[a, sid]["link"]
                second = G.edges[sid, b]["link"]
                if a != b and not G.has_edge(a, b):
                    G.add_edge(a, b, link=Link(
                        id=min(first.id, second.id),
                        source=a,
                        target=b,
                        route_id=route_id,
                        weight=first.weight,
                    ), bridged=True)
            G.remove_node(sid)
        bridged.extend(data["link"] for _, _, data in G.edges(data=True) if data.get("bridged"))

    return kept + bridged


def refine_topology(network: Network, options: LayoutOptions | None = None) -> TopologyResult:
    """Run constrained clustering, relaxation, angle alignment and simplification."""
    if options is None:
        options = LayoutOptions()
    if not network.stations:
        raise InvalidNetworkError("No stations provided for topology refinement")
    if not network.links:
        raise InvalidNetworkError("No links provided for topology refinement")

    valid = [s for s in network.stations if s.is_valid]
    if len(valid) < len(network.stations):
        logger.warning("Excluding %d invalid stations from topology refinement",
                       len(network.stations) - len(valid))
    if not valid:
        raise InvalidNetworkError("No valid nodes provided for topology optimization")

    frame = Frame.fit(s.position for s in valid)
    local = [s.moved_to(frame.to_frame(s.position)) for s in valid]
    adjacency = build_adjacency(network.links, [s.id for s in local])

    clusters = constrained_clusters(local, adjacency, options.node_clustering_distance)
    merged_stations, merged = merge_clusters(clusters)
    if not merged_stations:
        raise InvariantViolationError("Node clustering produced no valid results")
    logger.info("Topology clustering merged %d stations into %d",
                len(local), len(merged_stations))

    links = rebuild_links(merged_stations, network.links, merged)
    adjacency = build_adjacency(links, [s.id for s in merged_stations])
    positions = {s.id: s.position for s in merged_stations}

    relax = relax_until_stable(
        positions,
        adjacency,
        RelaxParams(
            optimal_distance=options.min_stop_distance / math.sqrt(len(positions)),
            workers=options.parallel_processes,
        ),
        options.initial_temperature,
        options.cooling_factor,
        options.stop_criterion,
    )
    positions = relax.positions

    align_angles(positions, adjacency, options.angle_snap, [s.id for s in merged_stations])

    removed = collinear_stations(positions, adjacency)
    logger.info("Simplification removed %d collinear stations", len(removed))

    stations = [
        s.moved_to(frame.from_frame(positions[s.id]))
        for s in merged_stations
        if s.id not in removed
    ]
    links = rebuild_links(stations, bridge_links(links, removed))
    stations = with_connection_counts(stations, links)
    return TopologyResult(Network(stations, links), merged, removed, relax)
