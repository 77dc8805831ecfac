"""CLI for metro-schematic."""

from __future__ import annotations

import json
import logging
import math
from collections import Counter
from pathlib import Path
from typing import NoReturn

import click

from metro_schematic import __version__
from metro_schematic.errors import LayoutError
from metro_schematic.layout import LayoutOptions, compute_layout
from metro_schematic.network import dump_network, parse_network
from metro_schematic.network.loader import load_document
from metro_schematic.network.routes import compute_route_metrics
from metro_schematic.render import render_svg
from metro_schematic.themes import THEMES


def _fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    raise SystemExit(1)


def _build_options(document: dict, options_file: Path | None, **overrides) -> LayoutOptions:
    """Merge options from the network document, an options file and flags."""
    data = dict(document.get("options") or {})
    if options_file is not None:
        data.update(load_document(options_file))
    return LayoutOptions.from_mapping(data).updated(**overrides)


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """metro-schematic: Lay out transit networks as octilinear schematic maps."""


@cli.command()
@click.argument("input_file", type=click.Path(exists=True, path_type=Path))
@click.option("-o", "--output", type=click.Path(path_type=Path), default=None,
              help="Output JSON file path. Defaults to <input>_layout.json")
@click.option("--svg", "svg_output", type=click.Path(path_type=Path), default=None,
              help="Also write an SVG preview to this path")
@click.option("--theme", type=click.Choice(list(THEMES.keys())), default="light",
              help="Preview theme (default: light)")
@click.option("--options", "options_file", type=click.Path(exists=True, path_type=Path),
              default=None, help="JSON file with layout options")
@click.option("--clustering-distance", type=float, default=None,
              help="Station clustering radius (default: 0.05)")
@click.option("--angle-snap", type=float, default=None,
              help="Angle snapping step in degrees (default: 45)")
@click.option("--iterations", type=int, default=None,
              help="Schematic iteration budget (default: 100)")
@click.option("--workers", type=int, default=None,
              help="Worker threads for force computation (default: 4)")
@click.option("-v", "--verbose", is_flag=True, help="Log per-iteration detail")
def layout(
    input_file: Path,
    output: Path | None,
    svg_output: Path | None,
    theme: str,
    options_file: Path | None,
    clustering_distance: float | None,
    angle_snap: float | None,
    iterations: int | None,
    workers: int | None,
    verbose: bool,
) -> None:
    """Compute a schematic layout for a network JSON file."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        document = load_document(input_file)
        network = parse_network(document)
        options = _build_options(
            document,
            options_file,
            node_clustering_distance=clustering_distance,
            angle_snap=angle_snap,
            force_directed_iterations=iterations,
            parallel_processes=workers,
        )
        result = compute_layout(network, options)
    except LayoutError as e:
        _fail(str(e))

    if output is None:
        output = input_file.with_name(f"{input_file.stem}_layout.json")

    payload = dump_network(result.network)
    payload["stages"] = [
        {"name": s.name, "stations": s.stations, "links": s.links, "elapsed": s.elapsed}
        for s in result.stages
    ]
    output.write_text(json.dumps(payload, indent=2))

    if svg_output is not None:
        svg_output.write_text(render_svg(result.network, THEMES[theme]))

    click.echo(f"Laid out {len(network.stations)} -> {len(result.network.stations)} stations, "
               f"{len(network.links)} -> {len(result.network.links)} links -> {output}")


@cli.command()
@click.argument("input_file", type=click.Path(exists=True, path_type=Path))
def validate(input_file: Path) -> None:
    """Check a network JSON file for structural problems."""
    try:
        network = parse_network(load_document(input_file))
    except LayoutError as e:
        _fail(str(e))

    errors = []
    if not network.stations:
        errors.append("No stations defined")
    if not network.links:
        errors.append("No links defined")

    counts = Counter(s.id for s in network.stations)
    for sid, count in counts.items():
        if count > 1:
            errors.append(f"Station ID {sid} is used {count} times")

    for station in network.stations:
        if not all(math.isfinite(c) for c in station.position):
            errors.append(f"Station {station.id} has non-finite position {station.position}")

    for link in network.dangling_links():
        errors.append(f"Link {link.id} ({link.source} -> {link.target}) "
                      f"references an unknown station")

    if errors:
        click.echo("Validation errors:", err=True)
        for err in errors:
            click.echo(f"  - {err}", err=True)
        raise SystemExit(1)

    click.echo(f"Valid: {len(network.stations)} stations, "
               f"{len(network.links)} links, "
               f"{len(network.route_ids())} routes")


@cli.command()
@click.argument("input_file", type=click.Path(exists=True, path_type=Path))
def info(input_file: Path) -> None:
    """Show information about a network JSON file."""
    try:
        network = parse_network(load_document(input_file))
    except LayoutError as e:
        _fail(str(e))

    click.echo(f"Stations: {len(network.stations)}")
    click.echo(f"Links: {len(network.links)}")
    click.echo(f"Routes: {len(network.route_ids())}")
    metrics = compute_route_metrics(network.stations, network.links)
    for rid, route in sorted(metrics.items(), key=lambda item: -item[1].importance):
        marker = " (main line)" if route.is_main_line else ""
        click.echo(f"  {rid}: {route.station_count} stations, "
                   f"importance {route.importance:.2f}{marker}")
