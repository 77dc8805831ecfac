"""Schematic optimization: octilinear straightening and conflict resolution.

The network is mapped into a schematic frame whose units match the grid
(GRID_SIZE) and the minimum station distance (MIN_STATION_DISTANCE). After
an iteration-bounded relaxation pass, each iteration runs four steps in
fixed order:

1. Straighten every line, most important first, toward octilinear
   segment directions.
2. Place transfer hubs at the importance-weighted centroid of the lines
   meeting there.
3. Resolve pairwise conflicts closer than the minimum distance.
4. Push apart any pair still under the minimum distance.

The loop ends when the largest movement of an iteration drops to
CONVERGENCE_THRESHOLD or the iteration cap is reached. Positions are kept
in an ID-indexed working map and written back to Station values once, at
the end of the stage.
"""

from __future__ import annotations

__all__ = [
    "SchematicResult",
    "TransitLine",
    "enforce_spacing",
    "find_close_pairs",
    "identify_lines",
    "optimal_position",
    "optimize_schematic",
    "order_line_stations",
    "place_transfer_hubs",
    "resolve_conflicts",
    "straighten_line",
]

import logging
import math
from dataclasses import dataclass, field
from typing import Mapping

import networkx as nx

from metro_schematic.errors import InvalidNetworkError
from metro_schematic.layout.constants import (
    CONFLICT_SEPARATION,
    CONVERGENCE_THRESHOLD,
    FRAME_SPACING_FACTOR,
    GRID_SIZE,
    MIN_STATION_DISTANCE,
    OCTILINEAR_ANGLE,
    SPACING_WEIGHT,
    STRAIGHTNESS_WEIGHT,
)
from metro_schematic.layout.geometry import (
    Frame,
    centroid,
    normalized,
    snap_direction,
    snap_to_grid,
)
from metro_schematic.layout.links import build_adjacency
from metro_schematic.layout.options import LayoutOptions
from metro_schematic.layout.relax import RelaxParams, relax_iterations
from metro_schematic.network.model import Network, NodeType, Point
from metro_schematic.network.routes import RouteMetrics, compute_route_metrics, main_route_id

logger = logging.getLogger(__name__)

Positions = dict[int, Point]

# Slack below which a pair already counts as spaced
_SPACING_TOLERANCE = 1e-9

_X_AXIS: Point = (1.0, 0.0)


@dataclass
class TransitLine:
    """A main route as seen by the optimizer."""

    route_id: str
    station_ids: list[int]
    importance: float
    graph: nx.Graph = field(default_factory=nx.Graph, repr=False)


@dataclass
class SchematicResult:
    network: Network
    iterations: int
    max_movement: float
    converged: bool
    # (station_a, station_b, distance) pairs left under the minimum distance
    close_pairs: list[tuple[int, int, float]] = field(default_factory=list)


def identify_lines(
    network: Network, metrics: Mapping[str, RouteMetrics] | None = None
) -> list[TransitLine]:
    """Group links into lines by main route, most important first."""
    if metrics is None:
        metrics = compute_route_metrics(network.stations, network.links)
    lines = []
    for rid, route in metrics.items():
        route_links = [link for link in network.links if main_route_id(link.route_id) == rid]
        lines.append(TransitLine(
            route_id=rid,
            station_ids=list(route.station_ids),
            importance=route.importance,
            graph=build_adjacency(route_links),
        ))
    return sorted(lines, key=lambda line: -line.importance)


def order_line_stations(
    line: TransitLine,
    positions: Mapping[int, Point],
    types: Mapping[int, NodeType],
) -> list[int]:
    """Order a line's stations by greedy nearest-neighbor traversal.

    Starts at a Terminal station, else at a station with a single
    neighbor on the line, else at the first station. This is a heuristic
    walk, not a shortest tour.
    """
    ids = [sid for sid in line.station_ids if sid in positions]
    if not ids:
        return []

    start = next((sid for sid in ids if types.get(sid) == NodeType.TERMINAL), None)
    if start is None:
        start = next(
            (sid for sid in ids if sid in line.graph and line.graph.degree(sid) == 1),
            ids[0],
        )

    ordered = [start]
    remaining = [sid for sid in ids if sid != start]
    while remaining:
        last = positions[ordered[-1]]
        nearest = min(remaining, key=lambda sid: math.dist(positions[sid], last))
        ordered.append(nearest)
        remaining.remove(nearest)
    return ordered


def _away(p: Point, q: Point) -> Point:
    """Unit vector from q toward p, the X axis when they coincide."""
    d = normalized((p[0] - q[0], p[1] - q[1]))
    return d if d != (0.0, 0.0) else _X_AXIS


def _spacing_force(prev: Point, curr: Point, nxt: Point, min_distance: float) -> Point:
    fx = fy = 0.0
    for other in (prev, nxt):
        d = math.dist(curr, other)
        if d < min_distance:
            ux, uy = _away(curr, other)
            fx += ux * (min_distance - d)
            fy += uy * (min_distance - d)
    return (fx, fy)


def optimal_position(
    prev: Point,
    curr: Point,
    nxt: Point,
    angle_step: float = OCTILINEAR_ANGLE,
    min_distance: float = MIN_STATION_DISTANCE,
    grid: float = GRID_SIZE,
) -> Point:
    """Blend an interior station toward octilinear incoming/outgoing segments.

    The octilinear target is the midpoint of where the station would sit
    if the incoming segment kept its length along its snapped direction
    from ``prev``, and likewise for the outgoing segment into ``nxt``.
    """
    in_vec = (curr[0] - prev[0], curr[1] - prev[1])
    out_vec = (nxt[0] - curr[0], nxt[1] - curr[1])
    in_len = math.hypot(*in_vec)
    out_len = math.hypot(*out_vec)
    in_dir = snap_direction(in_vec, angle_step)
    out_dir = snap_direction(out_vec, angle_step)

    from_prev = (prev[0] + in_dir[0] * in_len, prev[1] + in_dir[1] * in_len)
    from_next = (nxt[0] - out_dir[0] * out_len, nxt[1] - out_dir[1] * out_len)
    target = ((from_prev[0] + from_next[0]) / 2, (from_prev[1] + from_next[1]) / 2)

    sx, sy = _spacing_force(prev, curr, nxt, min_distance)
    candidate = (
        curr[0] + STRAIGHTNESS_WEIGHT * (target[0] - curr[0]) + SPACING_WEIGHT * sx,
        curr[1] + STRAIGHTNESS_WEIGHT * (target[1] - curr[1]) + SPACING_WEIGHT * sy,
    )
    return snap_to_grid(candidate, grid)


def straighten_line(
    line: TransitLine,
    positions: Positions,
    types: Mapping[int, NodeType],
    angle_step: float = OCTILINEAR_ANGLE,
) -> float:
    """Straighten one line in place; return the largest accepted movement."""
    ordered = order_line_stations(line, positions, types)
    max_movement = 0.0
    for i in range(1, len(ordered) - 1):
        sid = ordered[i]
        curr = positions[sid]
        new = optimal_position(positions[ordered[i - 1]], curr, positions[ordered[i + 1]], angle_step)
        movement = math.dist(new, curr)
        if movement > CONVERGENCE_THRESHOLD:
            positions[sid] = new
            max_movement = max(max_movement, movement)
    return max_movement


def place_transfer_hubs(
    positions: Positions,
    types: Mapping[int, NodeType],
    lines: list[TransitLine],
) -> float:
    """Move each transfer hub to the weighted centroid of its lines' centers."""
    max_movement = 0.0
    for sid, node_type in types.items():
        if node_type != NodeType.TRANSFER or sid not in positions:
            continue
        connected = [line for line in lines if sid in line.station_ids]
        if len(connected) < 2:
            continue

        wx = wy = total = 0.0
        for line in connected:
            others = [positions[o] for o in line.station_ids if o != sid and o in positions]
            if not others:
                continue
            cx, cy = centroid(others)
            wx += cx * line.importance
            wy += cy * line.importance
            total += line.importance
        if total <= 0:
            continue

        new = snap_to_grid((wx / total, wy / total))
        movement = math.dist(new, positions[sid])
        if movement > CONVERGENCE_THRESHOLD:
            positions[sid] = new
            max_movement = max(max_movement, movement)
    return max_movement


def resolve_conflicts(
    positions: Positions,
    types: Mapping[int, NodeType],
    min_distance: float = MIN_STATION_DISTANCE,
    separation: float = CONFLICT_SEPARATION,
) -> float:
    """Separate every pair of stations closer than ``min_distance``.

    A transfer hub paired with a non-transfer station stays put and the
    other station is placed ``separation`` away from it. Otherwise both
    stations move symmetrically until they sit ``separation`` apart.
    """
    ids = list(positions)
    max_movement = 0.0
    for i, a in enumerate(ids):
        for b in ids[i + 1:]:
            pa, pb = positions[a], positions[b]
            distance = math.dist(pa, pb)
            if distance >= min_distance:
                continue

            ux, uy = _away(pb, pa)
            a_hub = types.get(a) == NodeType.TRANSFER
            b_hub = types.get(b) == NodeType.TRANSFER
            if a_hub and not b_hub:
                new_b = (pa[0] + ux * separation, pa[1] + uy * separation)
                movement = math.dist(new_b, pb)
                positions[b] = new_b
            elif b_hub and not a_hub:
                new_a = (pb[0] - ux * separation, pb[1] - uy * separation)
                movement = math.dist(new_a, pa)
                positions[a] = new_a
            else:
                movement = (separation - distance) / 2
                positions[a] = (pa[0] - ux * movement, pa[1] - uy * movement)
                positions[b] = (pb[0] + ux * movement, pb[1] + uy * movement)
            max_movement = max(max_movement, movement)
    return max_movement


def enforce_spacing(positions: Positions, min_distance: float = MIN_STATION_DISTANCE) -> float:
    """Push apart pairs within the search radius that are under the minimum."""
    radius = min_distance * 2
    max_movement = 0.0
    for a in list(positions):
        for b in list(positions):
            if a == b:
                continue
            pa, pb = positions[a], positions[b]
            distance = math.dist(pa, pb)
            if distance > radius or distance >= min_distance - _SPACING_TOLERANCE:
                continue
            ux, uy = _away(pb, pa)
            shift = (min_distance - distance) / 2
            positions[a] = (pa[0] - ux * shift, pa[1] - uy * shift)
            positions[b] = (pb[0] + ux * shift, pb[1] + uy * shift)
            max_movement = max(max_movement, shift)
    return max_movement


def find_close_pairs(
    positions: Mapping[int, Point], min_distance: float = MIN_STATION_DISTANCE
) -> list[tuple[int, int, float]]:
    ids = list(positions)
    pairs = []
    for i, a in enumerate(ids):
        for b in ids[i + 1:]:
            d = math.dist(positions[a], positions[b])
            if d < min_distance - _SPACING_TOLERANCE:
                pairs.append((a, b, d))
    return pairs


def optimize_schematic(
    network: Network,
    options: LayoutOptions | None = None,
    metrics: Mapping[str, RouteMetrics] | None = None,
) -> SchematicResult:
    """Run the schematic stage and return stations in the input frame."""
    if options is None:
        options = LayoutOptions()
    if not network.stations:
        raise InvalidNetworkError("Node list is empty")
    if not network.links:
        raise InvalidNetworkError("Edge list is empty")

    if metrics is None:
        metrics = compute_route_metrics(network.stations, network.links)
    lines = identify_lines(network, metrics)
    logger.info("Identified %d lines (%d main lines)",
                len(lines), sum(1 for r in metrics.values() if r.is_main_line))

    count = len(network.stations)
    extent = MIN_STATION_DISTANCE * FRAME_SPACING_FACTOR * math.ceil(math.sqrt(count))
    frame = Frame.fit((s.position for s in network.stations), extent)
    positions: Positions = {s.id: frame.to_frame(s.position) for s in network.stations}
    types = {s.id: s.type for s in network.stations}

    adjacency = build_adjacency(network.links, positions)
    smoothing = relax_iterations(
        positions,
        adjacency,
        RelaxParams(
            optimal_distance=options.min_stop_distance / math.sqrt(count),
            workers=options.parallel_processes,
        ),
        options.force_directed_iterations,
    )
    positions = {sid: snap_to_grid(p) for sid, p in smoothing.positions.items()}

    iteration = 0
    max_movement = math.inf
    while iteration < options.force_directed_iterations and max_movement > CONVERGENCE_THRESHOLD:
        iteration += 1
        max_movement = 0.0
        for line in lines:
            max_movement = max(max_movement, straighten_line(line, positions, types, options.angle_snap))
        max_movement = max(max_movement, place_transfer_hubs(positions, types, lines))
        max_movement = max(max_movement, resolve_conflicts(positions, types))
        max_movement = max(max_movement, enforce_spacing(positions))
        logger.debug("Schematic iteration %d: max movement %.3f", iteration, max_movement)

    converged = max_movement <= CONVERGENCE_THRESHOLD
    close_pairs = find_close_pairs(positions)
    for a, b, d in close_pairs[:20]:
        logger.warning("Stations %d and %d are too close: %.2f", a, b, d)
    if len(close_pairs) > 20:
        logger.warning("... and %d more close station pairs", len(close_pairs) - 20)

    stations = [s.moved_to(frame.from_frame(positions[s.id])) for s in network.stations]
    logger.info("Schematic optimization finished after %d iterations (converged=%s)",
                iteration, converged)
    return SchematicResult(
        Network(stations, list(network.links)),
        iteration,
        0.0 if max_movement == math.inf else max_movement,
        converged,
        close_pairs,
    )
