"""Run the full partitioning pipeline.

1. Scan all features once to find the bounds of the area-bearing features.
2. Build the grid over those bounds.
3. Read the features again, reduce their properties and assign them to cells.
4. Write a tile per non-empty cell.
5. Merge the written cells into the index file.
"""
import logging
import pathlib
import shutil
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from . import config
from .assign import assign_feature
from .bounds import scan_bounds
from .grid import build_grid, grid_extent, validate_grid_size
from .index import timestamp_now, update_index
from .optimize import optimize_properties, parse_property_list
from .projection import resolve_transform, transform_feature
from .reader import FeatureSource, extract_archive
from .tiles import write_tiles

logger = logging.getLogger(__name__)

TEMP_DIR_NAME = "_temp"


@dataclass
class RunSummary:
    features_read: int
    grid_cells: int
    tiles_written: int
    feature_occurrences: int
    index_path: pathlib.Path
    index: dict


def _allow_list(properties):
    if isinstance(properties, str):
        return parse_property_list(properties)
    return list(properties)


def _reprojected(features, transform):
    for feature in features:
        yield transform_feature(feature, transform)


def process(source: Iterable[dict], output_dir=None, grid_size=None,
            properties: Optional[Sequence[str]] = None, index_name=None,
            crs_text: Optional[str] = None, timestamp: Optional[str] = None) -> RunSummary:
    """Partition ``source`` into tiles and update the index.

    Parameters
    ----------
    source : iterable of dict
        GeoJSON-like features. It is iterated twice and must yield the same
        features both times (e.g. a :class:`~parceltiler.reader.FeatureSource`
        or a list).
    output_dir : str or pathlib.Path, optional
        Where tiles and the index are written. Defaults to the
        ``output_dir`` setting.
    grid_size : float, optional
        Cell edge length in degrees. Defaults to the ``grid_size`` setting.
    properties : sequence of str, optional
        Property names to keep on each feature. Defaults to the
        ``properties`` setting.
    index_name : str, optional
        Index file name. Defaults to the ``index_name`` setting.
    crs_text : str, optional
        Projection description of the source coordinates. ``None`` means
        the coordinates are already longitude/latitude.
    timestamp : str, optional
        Run time recorded in the index; defaults to now.

    Returns
    -------
    RunSummary
    """
    output_dir = pathlib.Path(output_dir or config.get("output_dir"))
    grid_size = validate_grid_size(grid_size if grid_size is not None
                                   else config.get("grid_size"))
    keep = _allow_list(properties if properties is not None else config.get("properties"))
    index_name = index_name or config.get("index_name")
    timestamp = timestamp or timestamp_now()

    transform = resolve_transform(crs_text)
    if transform is not None:
        logger.info("Reprojecting from %s", transform.source_crs.name)

    logger.info("Analyzing data and determining bounds")
    bounds, features_read = scan_bounds(_reprojected(source, transform))
    logger.info("Found %d features", features_read)

    grid = build_grid(bounds, grid_size, warn_cells=config.get("grid_cell_warning"))
    extent = grid_extent(grid)

    logger.info("Processing features and assigning to grid cells")
    occurrences = 0
    for feature in _reprojected(source, transform):
        feature = {**feature,
                   "properties": optimize_properties(feature.get("properties"), keep)}
        occurrences += assign_feature(feature, grid, grid_size, extent=extent)

    logger.info("Writing grid files")
    written = write_tiles(grid, output_dir)

    logger.info("Creating index file")
    index = update_index(written, output_dir, index_name, grid_size, timestamp=timestamp)

    return RunSummary(
        features_read=features_read,
        grid_cells=len(grid),
        tiles_written=len(written),
        feature_occurrences=occurrences,
        index_path=output_dir / index_name,
        index=index,
    )


def process_archive(zip_path, output_dir=None, grid_size=None, properties=None,
                    index_name=None, timestamp=None) -> RunSummary:
    """Extract a zipped shapefile and run :func:`process` on it.

    The archive is unpacked into ``<output_dir>/_temp``, which is removed
    afterwards whether or not the run succeeds.
    """
    output_dir = pathlib.Path(output_dir or config.get("output_dir"))
    output_dir.mkdir(parents=True, exist_ok=True)
    tmp_dir = output_dir / TEMP_DIR_NAME
    try:
        logger.info("Extracting ZIP file %s", zip_path)
        shp_path, crs_text = extract_archive(zip_path, tmp_dir)
        if crs_text is not None:
            logger.info("Parsed projection information")
        return process(FeatureSource(shp_path), output_dir=output_dir,
                       grid_size=grid_size, properties=properties,
                       index_name=index_name, crs_text=crs_text,
                       timestamp=timestamp)
    finally:
        shutil.rmtree(tmp_dir, ignore_errors=True)
