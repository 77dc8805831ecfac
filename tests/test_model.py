"""Tests for the network data model and route metrics."""

import math

import pytest

from metro_schematic.errors import InvariantViolationError
from metro_schematic.network.model import Link, Network, NodeType, Station
from metro_schematic.network.routes import (
    compute_route_metrics,
    main_route_id,
    route_prefix,
    shares_route_prefix,
)


def _station(sid, x, y, stop_id=None, node_type=NodeType.REGULAR):
    return Station(sid, stop_id or f"A_{sid}", f"Stop {sid}", (x, y), node_type)


class TestStation:
    def test_equality_by_id(self):
        a = Station(1, "A_1", "One", (0.0, 0.0))
        b = Station(1, "B_9", "Other", (5.0, 5.0))
        assert a == b
        assert hash(a) == hash(b)

    def test_moved_to_keeps_identity_and_original(self):
        s = _station(3, 1.0, 2.0)
        moved = s.moved_to((4.0, 5.0))
        assert moved.id == 3
        assert moved.position == (4.0, 5.0)
        assert moved.original_position == (1.0, 2.0)
        # The original value is untouched
        assert s.position == (1.0, 2.0)

    def test_moved_to_rejects_non_finite(self):
        s = _station(1, 0.0, 0.0)
        with pytest.raises(InvariantViolationError):
            s.moved_to((math.nan, 0.0))
        with pytest.raises(InvariantViolationError):
            s.moved_to((0.0, math.inf))

    def test_validity(self):
        assert _station(1, 0.0, 0.0).is_valid
        assert not _station(1, math.nan, 0.0).is_valid
        assert not _station(-1, 0.0, 0.0).is_valid
        assert not Station(1, "A_1", "  ", (0.0, 0.0)).is_valid
        assert not Station(1, "", "Name", (0.0, 0.0)).is_valid

    def test_with_type_and_connections(self):
        s = _station(1, 0.0, 0.0).with_type(NodeType.TRANSFER).with_connections(3)
        assert s.type == NodeType.TRANSFER
        assert s.connection_count == 3
        assert s.original_position == (0.0, 0.0)


def test_link_helpers():
    link = Link(1, 10, 20, "A")
    assert link.with_weight(0.5).weight == 0.5
    assert link.with_endpoints(11, 21).source == 11


def test_network_queries():
    network = Network(
        [_station(1, 0.0, 0.0), _station(2, 3.0, -1.0), _station(3, math.nan, 0.0)],
        [Link(1, 1, 2, "A_x"), Link(2, 2, 4, "B"), Link(3, 1, 2, "A_x")],
    )
    assert network.route_ids() == ["A_x", "B"]
    assert [link.id for link in network.dangling_links()] == [2]
    assert network.bounds() == (0.0, -1.0, 3.0, 0.0)


class TestRoutes:
    def test_main_route_id(self):
        assert main_route_id("A_north") == "A"
        assert main_route_id("A") == "A"
        assert main_route_id("RER_B_1") == "RER"

    def test_prefix_helpers(self):
        station = Station(1, "B_12", "Somewhere", (0.0, 0.0))
        assert route_prefix(station) == "B"
        assert shares_route_prefix(station, "B")
        assert not shares_route_prefix(station, "A")

    def test_importance_scores(self):
        stations = [
            _station(1, 0.0, 0.0),
            _station(2, 1.0, 0.0),
            _station(3, 2.0, 0.0, node_type=NodeType.TRANSFER),
            _station(4, 2.0, 1.0, stop_id="B_4"),
        ]
        links = [Link(1, 1, 2, "A_1"), Link(2, 2, 3, "A_2"), Link(3, 3, 4, "B")]
        metrics = compute_route_metrics(stations, links)

        assert set(metrics) == {"A", "B"}
        a, b = metrics["A"], metrics["B"]
        assert a.station_ids == [1, 2, 3]
        assert a.station_count == 2
        assert a.transfer_count == 1
        assert a.total_length == pytest.approx(2.0)
        assert a.importance == pytest.approx(1.0)
        assert b.importance == pytest.approx(0.65)
        assert a.is_main_line and b.is_main_line

    def test_no_transfers_does_not_divide_by_zero(self):
        stations = [_station(1, 0.0, 0.0), _station(2, 1.0, 0.0)]
        metrics = compute_route_metrics(stations, [Link(1, 1, 2, "A")])
        assert metrics["A"].importance == pytest.approx(0.7)

    def test_links_to_unknown_stations_are_ignored(self):
        metrics = compute_route_metrics([_station(1, 0.0, 0.0)], [Link(1, 1, 2, "A")])
        assert metrics == {}
