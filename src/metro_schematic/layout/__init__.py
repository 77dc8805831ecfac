"""Layout engine for schematic metro maps."""

from metro_schematic.layout.engine import LayoutResult, compute_layout
from metro_schematic.layout.options import LayoutOptions

__all__ = ["LayoutOptions", "LayoutResult", "compute_layout"]
