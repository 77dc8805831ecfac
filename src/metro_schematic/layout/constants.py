"""Layout constants used across layout modules.

Centralizes the numeric parameters of the clusterer, relaxer, schematic
optimizer and topology refiner.
"""

# ---------------------------------------------------------------------------
# Clustering / spatial index
# ---------------------------------------------------------------------------
DEFAULT_CLUSTERING_DISTANCE: float = 0.05
"""Fallback query radius when a non-positive radius is requested."""

EDGE_WEIGHT_MIN: float = 0.1
"""Lower clamp for recomputed link weights."""

EDGE_WEIGHT_MAX: float = 1.0
"""Upper clamp for recomputed link weights."""

EDGE_WEIGHT_NORMALIZER: float = 0.1
"""Distance that maps to a link weight of 1.0."""

# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
MIN_COORD_DELTA: float = 1e-6
"""Smallest bounding-box width/height that can be normalized."""

COLLINEAR_EPSILON: float = 1e-10
"""Maximum doubled triangle area for three points to count as collinear."""

# ---------------------------------------------------------------------------
# Force-directed relaxation
# ---------------------------------------------------------------------------
REPULSION_FACTOR: float = 1e-4
"""Repulsion constant k in k / distance^2 (unit-box coordinates)."""

ATTRACTION_FACTOR: float = 0.15
"""Spring constant k' for linked station pairs."""

MIN_FORCE_DISTANCE: float = 1e-6
"""Pairs closer than this are skipped to avoid singular forces."""

MAX_FORCE: float = 0.05
"""Largest displacement a single station may take in one iteration."""

MAX_RELAX_ITERATIONS: int = 1000
"""Safety ceiling for threshold-bounded relaxation."""

# ---------------------------------------------------------------------------
# Schematic optimization
# ---------------------------------------------------------------------------
GRID_SIZE: float = 1.0
"""Cell size of the grid accepted positions are snapped to."""

MIN_STATION_DISTANCE: float = 2.0
"""Minimum spacing between stations in schematic units."""

CONFLICT_SEPARATION: float = MIN_STATION_DISTANCE * 1.1
"""Separation enforced when two stations conflict."""

OCTILINEAR_ANGLE: float = 45.0
"""Angle step (degrees) for schematic line directions."""

STRAIGHTNESS_WEIGHT: float = 0.7
"""Blend weight of the octilinear target position."""

SPACING_WEIGHT: float = 0.3
"""Blend weight of the spacing correction."""

MAX_OPTIMIZATION_ITERATIONS: int = 100
"""Default ForceDirectedIterations: smoothing iterations and schematic loop cap."""

CONVERGENCE_THRESHOLD: float = 0.01
"""Largest movement at which the schematic loop is considered converged."""

FRAME_SPACING_FACTOR: float = 2.0
"""Schematic frame side, per sqrt(station count), in minimum distances."""
