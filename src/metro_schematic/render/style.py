"""Theme and style constants for schematic map previews."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Theme:
    """Visual theme for a preview rendering."""

    name: str
    background_color: str
    station_fill: str
    station_stroke: str
    station_radius: float
    station_stroke_width: float
    transfer_radius: float
    line_width: float
    label_color: str
    label_font_family: str
    label_font_size: float
    legend_text_color: str
    legend_font_size: float
    fallback_line_color: str = "#666666"
