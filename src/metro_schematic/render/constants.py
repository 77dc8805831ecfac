"""Named constants for preview rendering."""

from __future__ import annotations

DEFAULT_WIDTH: int = 1200
"""Canvas width in pixels when none is given."""

DEFAULT_HEIGHT: int = 800
"""Canvas height in pixels when none is given."""

CANVAS_PADDING: float = 60.0
"""Margin between the drawing and the canvas edge."""

LABEL_OFFSET: float = 8.0
"""Gap between a station marker and its label."""

LEGEND_LINE_HEIGHT: float = 22.0
"""Vertical distance between legend rows."""

LEGEND_SWATCH_WIDTH: float = 28.0
"""Length of the coloured line sample in a legend row."""

ROUTE_COLORS: dict[str, str] = {
    "A": "#E8308A",
    "B": "#0075BF",
    "C": "#F59C00",
    "D": "#009E3D",
    "M": "#8C368C",
    "T": "#778186",
}
"""Line colours keyed by the first letter of a main route ID."""
