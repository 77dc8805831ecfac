"""Tests for layout options."""

import pytest

from metro_schematic.errors import InvalidNetworkError
from metro_schematic.layout.constants import MAX_OPTIMIZATION_ITERATIONS
from metro_schematic.layout.options import LayoutOptions


def test_defaults():
    options = LayoutOptions()
    assert options.node_clustering_distance == 0.05
    assert options.min_stop_distance == 0.5
    assert options.angle_snap == 45.0
    assert options.force_directed_iterations == MAX_OPTIMIZATION_ITERATIONS == 100
    assert options.parallel_processes == 4
    assert options.cooling_factor == 0.95
    assert options.stop_criterion == 0.01


def test_from_mapping_accepts_documented_names():
    options = LayoutOptions.from_mapping({
        "NodeClusteringDistance": 0.1,
        "AngleSnap": 90,
        "ForceDirectedIterations": "20",
        "parallel_processes": 2,
    })
    assert options.node_clustering_distance == 0.1
    assert options.angle_snap == 90.0
    assert options.force_directed_iterations == 20
    assert isinstance(options.force_directed_iterations, int)
    assert options.parallel_processes == 2


def test_penalties_are_accepted():
    options = LayoutOptions.from_mapping({"BendPenalty": 3, "OverlapPenalty": 4})
    assert options.bend_penalty == 3.0
    assert options.overlap_penalty == 4.0


@pytest.mark.parametrize("data", [
    {"Unknown": 1},
    {"AngleSnap": "wide"},
    {"AngleSnap": 0},
    {"CoolingFactor": 1.0},
    {"ParallelProcesses": 0},
    {"MinStopDistance": -1},
    {"StopCriterion": 0},
    {"NodeClusteringDistance": -0.1},
])
def test_invalid_values_are_rejected(data):
    with pytest.raises(InvalidNetworkError):
        LayoutOptions.from_mapping(data)


def test_updated_ignores_none():
    options = LayoutOptions().updated(angle_snap=None, parallel_processes=1)
    assert options.angle_snap == 45.0
    assert options.parallel_processes == 1


def test_updated_validates():
    with pytest.raises(InvalidNetworkError):
        LayoutOptions().updated(force_directed_iterations=-1)
