"""Preview rendering of laid-out networks."""

from metro_schematic.render.svg import render_svg

__all__ = ["render_svg"]
