"""Tests for the layout pipeline."""

import json
import math
from pathlib import Path

import pytest

from metro_schematic.errors import (
    DegenerateLayoutError,
    InvalidNetworkError,
    InvariantViolationError,
)
from metro_schematic.layout import LayoutOptions, compute_layout
from metro_schematic.layout.engine import validate_network
from metro_schematic.network.loader import load_network, parse_network
from metro_schematic.network.model import Link, Network, Station

TWO_LINES_JSON = Path(__file__).resolve().parent.parent / "examples" / "two_lines.json"


def _grid_network(rows=3, cols=4):
    """Two perpendicular families of routes over a slightly jittered grid."""
    stations = []
    for r in range(rows):
        for c in range(cols):
            sid = r * cols + c
            stations.append(Station(
                sid, f"R{r}_{sid}", f"Stop {sid}",
                (c * 1.0 + 0.1 * ((sid * 7) % 3), r * 1.0 + 0.1 * ((sid * 5) % 2)),
            ))
    links = []
    for r in range(rows):
        for c in range(cols - 1):
            links.append(Link(len(links), r * cols + c, r * cols + c + 1, f"R{r}"))
    for c in range(cols):
        for r in range(rows - 1):
            links.append(Link(len(links), r * cols + c, (r + 1) * cols + c, f"C{c}"))
    return Network(stations, links)


@pytest.mark.parametrize("network_factory", [
    lambda: load_network(TWO_LINES_JSON),
    _grid_network,
])
def test_layout_properties(network_factory):
    network = network_factory()
    result = compute_layout(network, LayoutOptions(parallel_processes=2))
    out = result.network

    ids = {s.id for s in out.stations}
    assert out.stations
    assert len(out.stations) <= len(network.stations)
    assert len(out.links) <= len(network.links)
    assert not out.dangling_links()
    for station in out.stations:
        assert math.isfinite(station.x) and math.isfinite(station.y)
    for link in out.links:
        assert link.source != link.target
        assert 0.1 <= link.weight <= 1.0

    # Every input station is accounted for
    for sid, target in result.merged.items():
        assert target in ids or target in result.simplified


def test_stage_reports():
    result = compute_layout(load_network(TWO_LINES_JSON), LayoutOptions(parallel_processes=1))
    assert [s.name for s in result.stages] == [
        "Clustering",
        "Schematic optimization",
        "Topology refinement",
    ]
    assert all(s.elapsed >= 0 for s in result.stages)
    assert set(result.routes) <= {"A", "B"}


def test_default_options():
    result = compute_layout(load_network(TWO_LINES_JSON))
    assert result.network.stations


def test_non_finite_input_station_is_dropped():
    network = load_network(TWO_LINES_JSON)
    network.stations.append(Station(99, "A_99", "Ghost", (math.nan, 0.0)))
    network.links.append(Link(99, 99, 1, "A"))
    result = compute_layout(network, LayoutOptions(parallel_processes=1))
    assert 99 not in {s.id for s in result.network.stations}
    assert 99 not in result.merged
    assert not result.network.dangling_links()


def test_unnamed_station_is_dropped_from_merge_map():
    doc = json.loads(TWO_LINES_JSON.read_text())
    del doc["stations"][1]["name"]
    result = compute_layout(parse_network(doc), LayoutOptions(parallel_processes=1))

    ids = {s.id for s in result.network.stations}
    assert 2 not in ids
    assert 2 not in result.merged
    assert not result.network.dangling_links()
    for target in result.merged.values():
        assert target in ids or target in result.simplified


def test_all_unnamed_stations_are_rejected():
    doc = json.loads(TWO_LINES_JSON.read_text())
    for station in doc["stations"]:
        station["name"] = ""
    with pytest.raises(InvalidNetworkError):
        compute_layout(parse_network(doc))


def test_degenerate_input_is_rejected():
    """Stations along a horizontal line have no height to normalize."""
    stations = [Station(i, f"A_{i}", f"S{i}", (float(i), 0.0)) for i in range(4)]
    links = [Link(i, i, i + 1, "A") for i in range(3)]
    with pytest.raises(DegenerateLayoutError):
        compute_layout(Network(stations, links))


def test_coincident_input_is_rejected():
    stations = [Station(i, f"A_{i}", f"S{i}", (1.0, 1.0 + i * 1e-9)) for i in range(3)]
    links = [Link(0, 0, 1, "A"), Link(1, 1, 2, "B")]
    with pytest.raises(DegenerateLayoutError):
        compute_layout(Network(stations, links))


def test_empty_input_is_rejected():
    with pytest.raises(InvalidNetworkError):
        compute_layout(Network([], []))
    with pytest.raises(InvalidNetworkError):
        compute_layout(Network([Station(1, "A_1", "One", (0.0, 0.0))], []))


def test_validate_network():
    good = Network(
        [Station(1, "A_1", "One", (0.0, 0.0)), Station(2, "A_2", "Two", (1.0, 1.0))],
        [Link(1, 1, 2, "A")],
    )
    validate_network(good, "check")

    bad = Network(
        [Station(1, "A_1", "One", (0.0, 0.0)), Station(2, "A_2", "Two", (math.inf, 1.0))],
        [Link(1, 1, 2, "A")],
    )
    with pytest.raises(InvariantViolationError):
        validate_network(bad, "check")
