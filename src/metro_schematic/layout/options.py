"""Recognized layout options."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping

from metro_schematic.errors import InvalidNetworkError
from metro_schematic.layout.constants import MAX_OPTIMIZATION_ITERATIONS

# Documented option names mapped to LayoutOptions attributes
OPTION_ALIASES: dict[str, str] = {
    "NodeClusteringDistance": "node_clustering_distance",
    "MinStopDistance": "min_stop_distance",
    "AngleSnap": "angle_snap",
    "ForceDirectedIterations": "force_directed_iterations",
    "DenseAreaThreshold": "dense_area_threshold",
    "ParallelProcesses": "parallel_processes",
    "InitialTemperature": "initial_temperature",
    "CoolingFactor": "cooling_factor",
    "StopCriterion": "stop_criterion",
    "BendPenalty": "bend_penalty",
    "OverlapPenalty": "overlap_penalty",
}


@dataclass
class LayoutOptions:
    """Options for one pipeline run."""

    node_clustering_distance: float = 0.05
    min_stop_distance: float = 0.5
    angle_snap: float = 45.0
    force_directed_iterations: int = MAX_OPTIMIZATION_ITERATIONS
    dense_area_threshold: float = 0.1  # reserved
    parallel_processes: int = 4
    initial_temperature: float = 1.0
    cooling_factor: float = 0.95
    stop_criterion: float = 0.01
    # Declared for compatibility, not read by any stage
    bend_penalty: float = 1.0
    overlap_penalty: float = 2.0

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if self.node_clustering_distance < 0:
            raise InvalidNetworkError("NodeClusteringDistance must be >= 0")
        if self.min_stop_distance <= 0:
            raise InvalidNetworkError("MinStopDistance must be > 0")
        if not 0 < self.angle_snap <= 180:
            raise InvalidNetworkError("AngleSnap must be in (0, 180] degrees")
        if self.force_directed_iterations < 0:
            raise InvalidNetworkError("ForceDirectedIterations must be >= 0")
        if self.parallel_processes < 1:
            raise InvalidNetworkError("ParallelProcesses must be >= 1")
        if self.initial_temperature <= 0:
            raise InvalidNetworkError("InitialTemperature must be > 0")
        if not 0 < self.cooling_factor < 1:
            raise InvalidNetworkError("CoolingFactor must be in (0, 1)")
        if self.stop_criterion <= 0:
            raise InvalidNetworkError("StopCriterion must be > 0")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> LayoutOptions:
        """Build options from documented names or snake_case keys."""
        known = {f.name: f for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            name = OPTION_ALIASES.get(key, key)
            if name not in known:
                raise InvalidNetworkError(f"Unknown layout option '{key}'")
            caster = int if known[name].type == "int" else float
            try:
                kwargs[name] = caster(value)
            except (TypeError, ValueError) as e:
                raise InvalidNetworkError(
                    f"Layout option '{key}' has invalid value {value!r}"
                ) from e
        return cls(**kwargs)

    def updated(self, **changes: Any) -> LayoutOptions:
        """Return a copy with the given non-None fields replaced."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update({k: v for k, v in changes.items() if v is not None})
        return LayoutOptions(**values)
