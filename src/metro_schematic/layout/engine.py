"""Layout coordinator: runs clustering, schematic optimization and topology refinement.

Each stage consumes and produces a Network. Stage boundaries are validated
(non-empty, finite, non-degenerate extent) and any violation aborts the
whole run without partial output.
"""

from __future__ import annotations

__all__ = ["LayoutResult", "StageReport", "compute_layout", "validate_network"]

import logging
import time
from dataclasses import dataclass, field

from metro_schematic.errors import InvalidNetworkError, InvariantViolationError
from metro_schematic.layout.clustering import cluster_stations
from metro_schematic.layout.constants import MIN_COORD_DELTA
from metro_schematic.layout.geometry import check_range
from metro_schematic.layout.links import rebuild_links, resolve_id
from metro_schematic.layout.options import LayoutOptions
from metro_schematic.layout.schematic import optimize_schematic
from metro_schematic.layout.topology import refine_topology
from metro_schematic.network.model import Network, is_finite_point
from metro_schematic.network.routes import RouteMetrics, compute_route_metrics

logger = logging.getLogger(__name__)


@dataclass
class StageReport:
    name: str
    stations: int
    links: int
    elapsed: float


@dataclass
class LayoutResult:
    """Final network plus per-stage bookkeeping."""

    network: Network
    stages: list[StageReport] = field(default_factory=list)
    routes: dict[str, RouteMetrics] = field(default_factory=dict)
    # valid input station ID -> station ID representing it in the output
    merged: dict[int, int] = field(default_factory=dict)
    simplified: set[int] = field(default_factory=set)


def validate_network(network: Network, stage: str, check_extent: bool = True) -> None:
    """Raise unless the network is fit to enter or leave a stage."""
    if network is None or not network.stations:
        raise InvalidNetworkError(f"{stage}: station list is empty")
    if not network.links:
        raise InvalidNetworkError(f"{stage}: link list is empty")
    for station in network.stations:
        if not is_finite_point(station.position):
            raise InvariantViolationError(
                f"{stage}: station {station.id} has non-finite position {station.position}"
            )
    if check_extent:
        check_range((s.position for s in network.stations), MIN_COORD_DELTA)


def _report(name: str, network: Network, started: float) -> StageReport:
    report = StageReport(name, len(network.stations), len(network.links),
                         time.perf_counter() - started)
    logger.info("[%.2fs] %s completed: %d stations, %d links",
                report.elapsed, name, report.stations, report.links)
    return report


def compute_layout(network: Network, options: LayoutOptions | None = None) -> LayoutResult:
    """Compute schematic positions for every station in the network.

    Stages run in fixed order: clustering, schematic optimization,
    topology refinement. The returned links all resolve to returned
    stations and never outnumber the input links.
    """
    if options is None:
        options = LayoutOptions()
    if network is None or not network.stations:
        raise InvalidNetworkError("No stations provided")
    if not network.links:
        raise InvalidNetworkError("No links provided")

    input_links = len(network.links)
    stages: list[StageReport] = []
    started = time.perf_counter()

    # Stage 1: merge near-duplicate stations per route
    clustered = cluster_stations(network, options.node_clustering_distance)
    validate_network(clustered.network, "Clustering")
    stages.append(_report("Clustering", clustered.network, started))

    # Stage 2: octilinear schematic layout
    started = time.perf_counter()
    routes = compute_route_metrics(clustered.network.stations, clustered.network.links)
    schematic = optimize_schematic(clustered.network, options, routes)
    validate_network(schematic.network, "Schematic optimization")
    stages.append(_report("Schematic optimization", schematic.network, started))

    # Stage 3: topology refinement
    started = time.perf_counter()
    refined = refine_topology(schematic.network, options)
    validate_network(refined.network, "Topology refinement", check_extent=False)
    stages.append(_report("Topology refinement", refined.network, started))

    merged = dict(clustered.merged)
    merged.update(refined.merged)
    final = Network(
        refined.network.stations,
        rebuild_links(refined.network.stations, refined.network.links, merged),
    )
    if len(final.links) > input_links:
        raise InvariantViolationError(
            f"Link count grew from {input_links} to {len(final.links)}"
        )
    if final.dangling_links():
        raise InvariantViolationError("Final links reference missing stations")

    resolved = {
        s.id: resolve_id(s.id, merged)
        for s in network.stations
        if s.is_valid
    }
    return LayoutResult(
        final,
        stages,
        compute_route_metrics(final.stations, final.links),
        resolved,
        refined.simplified,
    )
