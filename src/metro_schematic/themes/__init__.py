"""Theme definitions for schematic map previews."""

from metro_schematic.themes.dark import DARK_THEME
from metro_schematic.themes.light import LIGHT_THEME

THEMES = {
    "light": LIGHT_THEME,
    "dark": DARK_THEME,
}

__all__ = ["THEMES", "DARK_THEME", "LIGHT_THEME"]
