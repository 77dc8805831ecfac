"""Transit network model and its JSON boundary."""

from metro_schematic.network.loader import dump_network, load_network, parse_network
from metro_schematic.network.model import Link, Network, NodeType, Station

__all__ = [
    "Link",
    "Network",
    "NodeType",
    "Station",
    "dump_network",
    "load_network",
    "parse_network",
]
