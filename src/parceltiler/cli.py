"""Command-line interface for parceltiler.

Wraps :func:`parceltiler.pipeline.process_archive` in a Typer app. Option
defaults come from the configuration, see :mod:`parceltiler.config`.
"""
import logging
import pathlib
import zipfile
from typing import Optional

import typer
from fiona.errors import FionaError

from . import config
from .errors import ParcelTilerError
from .optimize import parse_property_list
from .pipeline import process_archive

app = typer.Typer(add_completion=False)


@app.callback()
def main():
    """Process GIS property boundary files into grid tiles for web maps."""


@app.command()
def process(
    zipfile_path: pathlib.Path = typer.Argument(
        ..., metavar="ZIPFILE", help="ZIP file containing the property boundary shapefile."),
    output: Optional[pathlib.Path] = typer.Option(
        None, "--output", "-o", help="Output directory for tiles and index."),
    grid_size: Optional[float] = typer.Option(
        None, "--grid-size", "-g", help="Size of grid cells in degrees."),
    properties: Optional[str] = typer.Option(
        None, "--properties", "-p", help="Comma-separated list of properties to keep."),
    index_name: Optional[str] = typer.Option(
        None, "--index-name", "-i", help="Name of the index file."),
    env: str = typer.Option("DEFAULT", "--env", help="Settings environment to use."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output."),
):
    """Split a zipped shapefile into grid tiles and update the index."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO,
                        format="%(levelname)s %(name)s: %(message)s")
    if env != "DEFAULT":
        config.change_env(env)

    output = output or pathlib.Path(config.get("output_dir"))
    keep = parse_property_list(properties) if properties is not None else None
    typer.echo(f"Input file: {zipfile_path}")
    typer.echo(f"Output directory: {output}")
    try:
        summary = process_archive(zipfile_path, output_dir=output, grid_size=grid_size,
                                  properties=keep, index_name=index_name)
    except (ParcelTilerError, zipfile.BadZipFile, FionaError, OSError) as err:
        typer.echo(f"Error processing GIS data: {err}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Processed {summary.features_read} features into "
               f"{summary.tiles_written} tiles")
    typer.echo(f"Index file: {summary.index_path}")
