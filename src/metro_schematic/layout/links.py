"""Link bookkeeping shared by the layout stages: adjacency, weights, remapping."""

from __future__ import annotations

import math
from typing import Iterable, Mapping

import networkx as nx

from metro_schematic.layout.constants import (
    EDGE_WEIGHT_MAX,
    EDGE_WEIGHT_MIN,
    EDGE_WEIGHT_NORMALIZER,
)
from metro_schematic.network.model import Link, Station


def link_weight(distance: float) -> float:
    """Map a link length onto a weight clamped to [0.1, 1.0]."""
    return max(EDGE_WEIGHT_MIN, min(EDGE_WEIGHT_MAX, distance / EDGE_WEIGHT_NORMALIZER))


def build_adjacency(links: Iterable[Link], station_ids: Iterable[int] | None = None) -> nx.Graph:
    """Build an undirected adjacency graph from links.

    Neighbor order follows link order. When ``station_ids`` is given every
    ID becomes a node, including isolated ones, and links touching other IDs
    are skipped.
    """
    G = nx.Graph()
    allowed = None
    if station_ids is not None:
        allowed = set(station_ids)
        G.add_nodes_from(station_ids)
    for link in links:
        if link.source == link.target:
            continue
        if allowed is not None and (link.source not in allowed or link.target not in allowed):
            continue
        G.add_edge(link.source, link.target)
    return G


def resolve_id(station_id: int, merged: Mapping[int, int]) -> int:
    """Follow merge records until reaching a surviving station ID."""
    seen = set()
    while station_id in merged and station_id not in seen:
        seen.add(station_id)
        station_id = merged[station_id]
    return station_id


def rebuild_links(
    stations: Iterable[Station],
    links: Iterable[Link],
    merged: Mapping[int, int] | None = None,
) -> list[Link]:
    """Remap links through merges and recompute their weights.

    Links whose endpoints do not both resolve to a station in ``stations``
    are dropped, as are links collapsed onto a single station. The result
    never holds more links than the input.
    """
    merged = merged or {}
    by_id = {s.id: s for s in stations}
    rebuilt: list[Link] = []
    for link in links:
        source = resolve_id(link.source, merged)
        target = resolve_id(link.target, merged)
        if source == target:
            continue
        src = by_id.get(source)
        tgt = by_id.get(target)
        if src is None or tgt is None:
            continue
        distance = math.dist(src.position, tgt.position)
        if not math.isfinite(distance):
            continue
        rebuilt.append(link.with_endpoints(source, target).with_weight(link_weight(distance)))
    return list(dict.fromkeys(rebuilt))


def with_connection_counts(stations: list[Station], links: Iterable[Link]) -> list[Station]:
    """Return stations with connection_count set to their adjacency degree."""
    G = build_adjacency(links, [s.id for s in stations])
    return [s.with_connections(G.degree(s.id)) for s in stations]
