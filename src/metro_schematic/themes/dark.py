"""Dark grey theme."""

from metro_schematic.render.style import Theme

DARK_THEME = Theme(
    name="dark",
    background_color="#2b2b2b",
    station_fill="#ffffff",
    station_stroke="#333333",
    station_radius=4.0,
    station_stroke_width=1.5,
    transfer_radius=6.0,
    line_width=3.0,
    label_color="#e0e0e0",
    label_font_family="'Helvetica Neue', Helvetica, Arial, sans-serif",
    label_font_size=12.0,
    legend_text_color="#e0e0e0",
    legend_font_size=13.0,
    fallback_line_color="#888888",
)
