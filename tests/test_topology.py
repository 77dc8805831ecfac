"""Tests for topology refinement."""

import math
from pathlib import Path

import networkx as nx
import pytest

from metro_schematic.errors import InvalidNetworkError
from metro_schematic.layout.links import build_adjacency
from metro_schematic.layout.options import LayoutOptions
from metro_schematic.layout.schematic import optimize_schematic
from metro_schematic.layout.topology import (
    align_angles,
    bridge_links,
    collinear_stations,
    constrained_clusters,
    merge_clusters,
    refine_topology,
    simplify,
)
from metro_schematic.network.loader import load_network
from metro_schematic.network.model import Link, Network, NodeType, Station

TWO_LINES_JSON = Path(__file__).resolve().parent.parent / "examples" / "two_lines.json"


def _station(sid, x, y, stop_id=None):
    return Station(sid, stop_id or f"A_{sid}", f"Stop {sid}", (x, y))


def _link_angle(p, q):
    return math.degrees(math.atan2(q[1] - p[1], q[0] - p[0]))


class TestConstrainedClusters:
    def _chain(self):
        stations = [
            _station(1, 0.0, 0.0),
            _station(2, 0.04, 0.0),
            _station(3, 0.08, 0.0),
            _station(4, 0.02, 0.01, stop_id="B_4"),
            _station(5, 0.5, 0.5),
        ]
        links = [Link(1, 1, 2, "A"), Link(2, 2, 3, "A"), Link(3, 1, 4, "B")]
        return stations, build_adjacency(links, [s.id for s in stations])

    def test_growth_is_transitive(self):
        stations, adjacency = self._chain()
        clusters = constrained_clusters(stations, adjacency, 0.05)
        assert sorted(s.id for s in clusters[0]) == [1, 2, 3]

    def test_growth_is_limited_to_route_prefix(self):
        stations, adjacency = self._chain()
        clusters = constrained_clusters(stations, adjacency, 0.05)
        assert [sorted(s.id for s in c) for c in clusters] == [[1, 2, 3], [5], [4]]

    def test_every_station_lands_in_exactly_one_cluster(self):
        stations, adjacency = self._chain()
        clusters = constrained_clusters(stations, adjacency, 0.05)
        ids = [s.id for c in clusters for s in c]
        assert sorted(ids) == [1, 2, 3, 4, 5]

    def test_long_chain_does_not_recurse(self):
        stations = [_station(i, i * 0.01, 0.0) for i in range(5000)]
        links = [Link(i, i, i + 1, "A") for i in range(4999)]
        clusters = constrained_clusters(stations, build_adjacency(links), 0.05)
        assert len(clusters) == 1
        assert len(clusters[0]) == 5000

    def test_merge_clusters(self):
        stations, adjacency = self._chain()
        merged_stations, merged = merge_clusters(constrained_clusters(stations, adjacency, 0.05))
        assert [s.id for s in merged_stations] == [1, 5, 4]
        assert merged == {2: 1, 3: 1}
        assert merged_stations[0].position == pytest.approx((0.04, 0.0))
        assert merged_stations[0].type == NodeType.TRANSFER


class TestAlignAngles:
    def test_snaps_first_link(self):
        positions = {1: (0.0, 0.0), 2: (1.0, 0.2)}
        G = nx.Graph([(1, 2)])
        align_angles(positions, G, 45.0, order=[1, 2])
        angle = _link_angle(positions[1], positions[2])
        assert angle / 45.0 == pytest.approx(round(angle / 45.0), abs=1e-9)
        # Link length is preserved
        assert math.dist(positions[1], positions[2]) == pytest.approx(math.hypot(1.0, 0.2))

    def test_second_pass_is_idempotent(self):
        positions = {1: (0.0, 0.0), 2: (1.0, 0.2), 3: (1.3, 1.5)}
        G = nx.Graph([(1, 2), (2, 3)])
        align_angles(positions, G, 45.0, order=[1, 2, 3])
        first = dict(positions)
        align_angles(positions, G, 45.0, order=[1, 2, 3])
        for sid, p in first.items():
            assert positions[sid] == pytest.approx(p, abs=1e-9)

    def test_aligned_link_is_unchanged(self):
        positions = {1: (0.0, 0.0), 2: (1.0, 1.0)}
        align_angles(positions, nx.Graph([(1, 2)]), 45.0)
        assert positions[1] == pytest.approx((0.0, 0.0), abs=1e-12)
        assert positions[2] == pytest.approx((1.0, 1.0), abs=1e-12)

    def test_does_not_collapse_onto_neighbor(self):
        positions = {1: (0.0, 0.0), 2: (3.0, 0.4)}
        align_angles(positions, nx.Graph([(1, 2)]), 90.0, order=[1])
        assert math.dist(positions[1], positions[2]) > 1.0


class TestSimplify:
    def test_collinear_middle_is_removed(self):
        stations = [_station(1, 0.0, 0.0), _station(2, 1.0, 0.0), _station(3, 2.0, 0.0)]
        links = [Link(1, 1, 2, "A"), Link(2, 2, 3, "A")]
        kept, removed = simplify(stations, build_adjacency(links))
        assert [s.id for s in kept] == [1, 3]
        assert removed == {2}

    def test_bent_middle_is_kept(self):
        stations = [_station(1, 0.0, 0.0), _station(2, 1.0, 0.5), _station(3, 2.0, 0.0)]
        links = [Link(1, 1, 2, "A"), Link(2, 2, 3, "A")]
        kept, removed = simplify(stations, build_adjacency(links))
        assert removed == set()
        assert len(kept) == 3

    def test_component_is_never_emptied(self):
        positions = {1: (0.0, 0.0), 2: (1.0, 0.0), 3: (2.0, 0.0)}
        ring = nx.Graph([(1, 2), (2, 3), (3, 1)])
        removed = collinear_stations(positions, ring)
        assert removed == {2, 3}

    def test_bridge_links_reconnects_neighbors(self):
        links = [Link(1, 1, 2, "A"), Link(2, 2, 3, "A")]
        bridged = bridge_links(links, {2})
        assert [(link.id, link.source, link.target, link.route_id) for link in bridged] == [
            (1, 1, 3, "A")
        ]

    def test_bridge_links_per_route(self):
        links = [
            Link(1, 1, 2, "A"), Link(2, 2, 3, "A"),
            Link(3, 4, 2, "B"),
            Link(4, 5, 6, "C"),
        ]
        bridged = bridge_links(links, {2})
        # Route B has a dangling end at 2 and is dropped there
        assert sorted((link.id, link.source, link.target) for link in bridged) == [
            (1, 1, 3),
            (4, 5, 6),
        ]
        assert len(bridged) <= len(links)


class TestRefineTopology:
    def test_pipeline_output_is_consistent(self):
        network = load_network(TWO_LINES_JSON)
        schematic = optimize_schematic(network, LayoutOptions(parallel_processes=1))
        result = refine_topology(schematic.network, LayoutOptions(parallel_processes=2))

        ids = {s.id for s in result.network.stations}
        assert len(result.network.stations) <= len(network.stations)
        assert len(result.network.links) <= len(network.links)
        assert not result.network.dangling_links()
        assert result.simplified.isdisjoint(ids)
        for station in result.network.stations:
            assert math.isfinite(station.x) and math.isfinite(station.y)
        assert result.relax is not None

    def test_invalid_stations_are_excluded(self):
        network = Network(
            [
                _station(1, 0.0, 0.0),
                _station(2, 1.0, 1.0),
                Station(3, "A_3", "", (2.0, 0.5)),
            ],
            [Link(1, 1, 2, "A"), Link(2, 2, 3, "A")],
        )
        result = refine_topology(network, LayoutOptions(parallel_processes=1))
        assert 3 not in {s.id for s in result.network.stations}
        assert not result.network.dangling_links()

    def test_empty_input_is_rejected(self):
        with pytest.raises(InvalidNetworkError):
            refine_topology(Network([], [Link(1, 1, 2, "A")]))
        with pytest.raises(InvalidNetworkError):
            refine_topology(Network([_station(1, 0.0, 0.0)], []))
