"""metro-schematic: schematic metro map layouts from geo-referenced networks."""

__version__ = "0.1.0"
