"""JSON codec for networks exchanged with the ingestion and rendering sides.

Document shape::

    {
      "stations": [{"id": 1, "stop_id": "A_1", "name": "Central",
                    "x": 2.35, "y": 48.85, "type": "regular"}, ...],
      "links": [{"id": 1, "source": 1, "target": 2, "route_id": "A",
                 "weight": 1.0}, ...],
      "options": {"NodeClusteringDistance": 0.05, ...}
    }

``type``, ``weight`` and ``options`` are optional. Coordinates are taken
as given; the layout engine decides what to do with non-finite values.
"""

from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any

from metro_schematic.errors import InvalidNetworkError
from metro_schematic.network.model import Link, Network, NodeType, Station


def _require(record: dict[str, Any], key: str, kind: str, index: int) -> Any:
    if key not in record:
        raise InvalidNetworkError(f"{kind} #{index} is missing '{key}'")
    return record[key]


def _parse_station(record: Any, index: int) -> Station:
    if not isinstance(record, dict):
        raise InvalidNetworkError(f"Station #{index} must be an object")
    try:
        node_type = NodeType(record.get("type", NodeType.REGULAR.value))
    except ValueError:
        raise InvalidNetworkError(
            f"Station #{index} has unknown type {record.get('type')!r}"
        ) from None
    try:
        station = Station(
            id=int(_require(record, "id", "Station", index)),
            stop_id=str(_require(record, "stop_id", "Station", index)),
            name=str(record.get("name", "")),
            position=(
                float(_require(record, "x", "Station", index)),
                float(_require(record, "y", "Station", index)),
            ),
            type=node_type,
        )
    except InvalidNetworkError:
        raise
    except (TypeError, ValueError) as e:
        raise InvalidNetworkError(f"Station #{index} is malformed: {e}") from e
    return station


def _parse_link(record: Any, index: int) -> Link:
    if not isinstance(record, dict):
        raise InvalidNetworkError(f"Link #{index} must be an object")
    try:
        weight = float(record.get("weight", 1.0))
        link = Link(
            id=int(_require(record, "id", "Link", index)),
            source=int(_require(record, "source", "Link", index)),
            target=int(_require(record, "target", "Link", index)),
            route_id=str(_require(record, "route_id", "Link", index)),
            weight=weight,
        )
    except InvalidNetworkError:
        raise
    except (TypeError, ValueError) as e:
        raise InvalidNetworkError(f"Link #{index} is malformed: {e}") from e
    if weight < 0 or not math.isfinite(weight):
        raise InvalidNetworkError(f"Link #{index} has invalid weight {weight}")
    return link


def parse_network(document: Any) -> Network:
    """Build a Network from a decoded JSON document."""
    if not isinstance(document, dict):
        raise InvalidNetworkError("Network document must be a JSON object")
    stations = document.get("stations")
    links = document.get("links")
    if not isinstance(stations, list) or not isinstance(links, list):
        raise InvalidNetworkError("Network document needs 'stations' and 'links' lists")
    return Network(
        [_parse_station(r, i) for i, r in enumerate(stations)],
        [_parse_link(r, i) for i, r in enumerate(links)],
    )


def load_document(path: Path) -> dict[str, Any]:
    try:
        document = json.loads(Path(path).read_text())
    except json.JSONDecodeError as e:
        raise InvalidNetworkError(f"{path} is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise InvalidNetworkError(f"{path} must contain a JSON object")
    return document


def load_network(path: Path) -> Network:
    """Read a network JSON file."""
    return parse_network(load_document(path))


def dump_network(network: Network) -> dict[str, Any]:
    """Encode a network as a JSON-serializable document."""
    return {
        "stations": [
            {
                "id": s.id,
                "stop_id": s.stop_id,
                "name": s.name,
                "x": s.x,
                "y": s.y,
                "type": s.type.value,
                "connections": s.connection_count,
                "original_x": s.original_position[0],
                "original_y": s.original_position[1],
            }
            for s in network.stations
        ],
        "links": [
            {
                "id": link.id,
                "source": link.source,
                "target": link.target,
                "route_id": link.route_id,
                "weight": link.weight,
            }
            for link in network.links
        ],
    }
