"""Light theme (white paper, black outlines)."""

from metro_schematic.render.style import Theme

LIGHT_THEME = Theme(
    name="light",
    background_color="#ffffff",
    station_fill="#ffffff",
    station_stroke="#000000",
    station_radius=4.0,
    station_stroke_width=1.5,
    transfer_radius=6.0,
    line_width=3.0,
    label_color="#000000",
    label_font_family="'Helvetica Neue', Helvetica, Arial, sans-serif",
    label_font_size=12.0,
    legend_text_color="#333333",
    legend_font_size=13.0,
)
