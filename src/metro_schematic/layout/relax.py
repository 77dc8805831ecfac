"""Force-directed relaxation shared by the schematic and topology stages.

Every station is pushed away from every other station (k / d^2) and
pulled toward its linked neighbors by a spring with rest length
``optimal_distance``. Forces for an iteration are computed against a
frozen snapshot of the previous positions and applied together, so no
station sees a neighbor's update from the same iteration.

Two stopping policies are offered:

- ``relax_iterations``: a fixed number of iterations with a temperature
  decaying linearly as ``1 - i/N``.
- ``relax_until_stable``: geometric cooling from an initial temperature,
  stopping once the temperature or the largest displacement drops below
  the stop criterion, with an absolute ceiling on iterations.

Both run in a unit box: positions are mapped into [0, 1] before the pass,
clamped there while relaxing, and mapped back afterwards.
"""

from __future__ import annotations

__all__ = [
    "RelaxParams",
    "RelaxResult",
    "compute_forces",
    "relax_iterations",
    "relax_step",
    "relax_until_stable",
]

import logging
import math
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Mapping, Sequence

import networkx as nx

from metro_schematic.layout.constants import (
    ATTRACTION_FACTOR,
    MAX_FORCE,
    MAX_RELAX_ITERATIONS,
    MIN_FORCE_DISTANCE,
    REPULSION_FACTOR,
)
from metro_schematic.layout.geometry import Frame
from metro_schematic.network.model import Point

logger = logging.getLogger(__name__)

Positions = dict[int, Point]
Neighbors = Mapping[int, Sequence[int]]


@dataclass(frozen=True)
class RelaxParams:
    """Force constants for one relaxation call site."""

    optimal_distance: float
    repulsion: float = REPULSION_FACTOR
    attraction: float = ATTRACTION_FACTOR
    min_distance: float = MIN_FORCE_DISTANCE
    max_force: float = MAX_FORCE
    workers: int = 1


@dataclass
class RelaxResult:
    positions: Positions
    iterations: int
    temperature: float
    max_displacement: float
    # True only when the displacement criterion stopped the run
    converged: bool = False


def _force_on(
    node: int,
    snapshot: Mapping[int, Point],
    neighbors: Neighbors,
    params: RelaxParams,
) -> Point:
    px, py = snapshot[node]
    fx = fy = 0.0

    for other, (ox, oy) in snapshot.items():
        if other == node:
            continue
        dx, dy = px - ox, py - oy
        d = math.hypot(dx, dy)
        if d < params.min_distance:
            continue
        magnitude = params.repulsion / (d * d)
        fx += dx / d * magnitude
        fy += dy / d * magnitude

    for other in neighbors.get(node, ()):
        if other not in snapshot:
            continue
        ox, oy = snapshot[other]
        dx, dy = ox - px, oy - py
        d = math.hypot(dx, dy)
        if d < params.min_distance:
            continue
        # Positive when stretched (pull together), negative when compressed
        magnitude = params.attraction * (d - params.optimal_distance)
        fx += dx / d * magnitude
        fy += dy / d * magnitude

    return (fx, fy)


def compute_forces(
    snapshot: Mapping[int, Point],
    neighbors: Neighbors,
    params: RelaxParams,
    nodes: Sequence[int] | None = None,
) -> dict[int, Point]:
    """Net force on each node (all nodes by default) for one snapshot."""
    if nodes is None:
        nodes = list(snapshot)
    return {n: _force_on(n, snapshot, neighbors, params) for n in nodes}


def _chunks(items: list[int], count: int) -> list[list[int]]:
    size = max(1, math.ceil(len(items) / count))
    return [items[i:i + size] for i in range(0, len(items), size)]


def _clamp_unit(value: float) -> float:
    return min(1.0, max(0.0, value))


def relax_step(
    positions: Mapping[int, Point],
    neighbors: Neighbors,
    params: RelaxParams,
    temperature: float,
    executor: Executor | None = None,
) -> tuple[Positions, float]:
    """Run one Jacobi iteration on unit-box positions.

    Returns the new positions and the largest displacement applied.
    """
    snapshot = dict(positions)
    nodes = list(snapshot)

    if executor is not None and params.workers > 1 and len(nodes) > 1:
        futures = [
            executor.submit(compute_forces, snapshot, neighbors, params, chunk)
            for chunk in _chunks(nodes, params.workers)
        ]
        forces: dict[int, Point] = {}
        # Barrier: every chunk finishes before anything moves
        for future in futures:
            forces.update(future.result())
    else:
        forces = compute_forces(snapshot, neighbors, params, nodes)

    updated: Positions = {}
    max_displacement = 0.0
    for node in nodes:
        fx, fy = forces[node]
        fx *= temperature
        fy *= temperature
        magnitude = math.hypot(fx, fy)
        if magnitude > params.max_force:
            fx *= params.max_force / magnitude
            fy *= params.max_force / magnitude
        px, py = snapshot[node]
        new = (_clamp_unit(px + fx), _clamp_unit(py + fy))
        max_displacement = max(max_displacement, math.dist(new, (px, py)))
        updated[node] = new

    return updated, max_displacement


def _neighbor_lists(adjacency: nx.Graph | Neighbors) -> dict[int, list[int]]:
    if isinstance(adjacency, nx.Graph):
        return {n: list(adjacency.neighbors(n)) for n in adjacency.nodes}
    return {n: list(nbrs) for n, nbrs in adjacency.items()}


def _executor(params: RelaxParams) -> ThreadPoolExecutor | None:
    if params.workers > 1:
        return ThreadPoolExecutor(max_workers=params.workers)
    return None


def relax_iterations(
    positions: Mapping[int, Point],
    adjacency: nx.Graph | Neighbors,
    params: RelaxParams,
    iterations: int,
) -> RelaxResult:
    """Relax for a fixed number of iterations with linear cooling."""
    if iterations <= 0 or len(positions) < 2:
        return RelaxResult(dict(positions), 0, 1.0, 0.0)

    frame = Frame.fit(positions.values())
    current: Positions = {n: frame.to_frame(p) for n, p in positions.items()}
    neighbors = _neighbor_lists(adjacency)

    max_displacement = 0.0
    temperature = 1.0
    executor = _executor(params)
    try:
        for i in range(iterations):
            temperature = 1.0 - i / iterations
            current, max_displacement = relax_step(
                current, neighbors, params, temperature, executor
            )
            logger.debug("Relax iteration %d/%d: max displacement %.5f",
                         i + 1, iterations, max_displacement)
    finally:
        if executor is not None:
            executor.shutdown()

    return RelaxResult(
        {n: frame.from_frame(p) for n, p in current.items()},
        iterations,
        temperature,
        max_displacement,
    )


def relax_until_stable(
    positions: Mapping[int, Point],
    adjacency: nx.Graph | Neighbors,
    params: RelaxParams,
    initial_temperature: float,
    cooling_factor: float,
    stop_criterion: float,
    max_iterations: int = MAX_RELAX_ITERATIONS,
) -> RelaxResult:
    """Relax with geometric cooling until movement or temperature settles."""
    if len(positions) < 2:
        return RelaxResult(dict(positions), 0, initial_temperature, 0.0, True)

    frame = Frame.fit(positions.values())
    current: Positions = {n: frame.to_frame(p) for n, p in positions.items()}
    neighbors = _neighbor_lists(adjacency)

    temperature = initial_temperature
    iteration = 0
    max_displacement = 0.0
    converged = False
    executor = _executor(params)
    try:
        while temperature >= stop_criterion and iteration < max_iterations:
            iteration += 1
            current, max_displacement = relax_step(
                current, neighbors, params, temperature, executor
            )
            temperature *= cooling_factor
            if max_displacement < stop_criterion:
                converged = True
                break
    finally:
        if executor is not None:
            executor.shutdown()

    logger.info(
        "Relaxation stopped after %d iterations (temperature %.4f, max displacement %.5f)",
        iteration, temperature, max_displacement,
    )
    return RelaxResult(
        {n: frame.from_frame(p) for n, p in current.items()},
        iteration,
        temperature,
        max_displacement,
        converged,
    )
