"""SVG previews of laid-out networks using drawsvg."""

from __future__ import annotations

import drawsvg as draw

from metro_schematic.network.model import Network, NodeType, is_finite_point
from metro_schematic.network.routes import main_route_id
from metro_schematic.render.constants import (
    CANVAS_PADDING,
    DEFAULT_HEIGHT,
    DEFAULT_WIDTH,
    LABEL_OFFSET,
    LEGEND_LINE_HEIGHT,
    LEGEND_SWATCH_WIDTH,
    ROUTE_COLORS,
)
from metro_schematic.render.style import Theme


def line_color(route_id: str, theme: Theme | None = None) -> str:
    """Colour for a route, picked from the first letter of its main route."""
    main = main_route_id(route_id)
    fallback = theme.fallback_line_color if theme is not None else "#666666"
    if not main:
        return fallback
    return ROUTE_COLORS.get(main[0].upper(), fallback)


def _projection(network: Network, width: float, height: float, padding: float):
    """Return a function mapping layout coordinates onto the canvas.

    Uniform scale keeps octilinear angles intact. Y grows upward in the
    layout and downward in SVG, so it is flipped.
    """
    min_x, min_y, max_x, max_y = network.bounds()
    span = max(max_x - min_x, max_y - min_y) or 1.0
    scale = min(width - 2 * padding, height - 2 * padding) / span

    def project(point: tuple[float, float]) -> tuple[float, float]:
        return (
            padding + (point[0] - min_x) * scale,
            height - padding - (point[1] - min_y) * scale,
        )

    return project


def _render_legend(d: draw.Drawing, route_ids: list[str], theme: Theme, height: float) -> None:
    x = CANVAS_PADDING / 2
    y = height - CANVAS_PADDING / 2 - LEGEND_LINE_HEIGHT * (len(route_ids) - 1)
    for route_id in route_ids:
        d.append(draw.Line(
            x, y, x + LEGEND_SWATCH_WIDTH, y,
            stroke=line_color(route_id, theme),
            stroke_width=theme.line_width,
            stroke_linecap="round",
        ))
        d.append(draw.Text(
            route_id,
            theme.legend_font_size,
            x + LEGEND_SWATCH_WIDTH + LABEL_OFFSET, y,
            fill=theme.legend_text_color,
            font_family=theme.label_font_family,
            dominant_baseline="middle",
        ))
        y += LEGEND_LINE_HEIGHT


def render_svg(
    network: Network,
    theme: Theme,
    width: int | None = None,
    height: int | None = None,
    labels: bool = True,
) -> str:
    """Render a laid-out network to an SVG string."""
    if not network.stations:
        return '<svg xmlns="http://www.w3.org/2000/svg"></svg>'

    svg_width = width or DEFAULT_WIDTH
    svg_height = height or DEFAULT_HEIGHT
    project = _projection(network, svg_width, svg_height, CANVAS_PADDING)
    stations = {
        sid: s for sid, s in network.station_map().items() if is_finite_point(s.position)
    }

    d = draw.Drawing(svg_width, svg_height)
    d.append(draw.Rectangle(0, 0, svg_width, svg_height, fill=theme.background_color))

    # Lines first so station markers sit on top
    for link in network.links:
        if link.source not in stations or link.target not in stations:
            continue
        x1, y1 = project(stations[link.source].position)
        x2, y2 = project(stations[link.target].position)
        d.append(draw.Line(
            x1, y1, x2, y2,
            stroke=line_color(link.route_id, theme),
            stroke_width=theme.line_width,
            stroke_linecap="round",
        ))

    for station in stations.values():
        cx, cy = project(station.position)
        radius = (
            theme.transfer_radius
            if station.type == NodeType.TRANSFER
            else theme.station_radius
        )
        d.append(draw.Circle(
            cx, cy, radius,
            fill=theme.station_fill,
            stroke=theme.station_stroke,
            stroke_width=theme.station_stroke_width,
        ))
        if labels and station.name:
            d.append(draw.Text(
                station.name,
                theme.label_font_size,
                cx + radius + LABEL_OFFSET, cy,
                fill=theme.label_color,
                font_family=theme.label_font_family,
                dominant_baseline="middle",
            ))

    route_ids = sorted({main_route_id(link.route_id) for link in network.links})
    if route_ids:
        _render_legend(d, route_ids, theme, svg_height)

    return d.as_svg()
