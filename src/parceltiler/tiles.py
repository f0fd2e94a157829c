"""Write one GeoJSON FeatureCollection per non-empty grid cell."""
import json
import logging
import pathlib
from typing import Dict, List

from .errors import TileWriteError
from .grid import GridCell

logger = logging.getLogger(__name__)


def tile_filename(key: str) -> str:
    """Return the tile file name for a cell key, e.g. ``parcels_33.120000_-112.130000.json``."""
    return f"parcels_{key}.json"


def write_tile(cell: GridCell, output_dir) -> pathlib.Path:
    filename = tile_filename(cell.key)
    path = pathlib.Path(output_dir) / filename
    collection = {
        "type": "FeatureCollection",
        "features": cell.features,
    }
    try:
        with open(path, "w") as fp:
            json.dump(collection, fp, separators=(",", ":"))
    except OSError as err:
        raise TileWriteError(f"Could not write tile {path}: {err}") from err

    cell.filename = filename
    cell.feature_count = len(cell.features)
    cell.features = None
    return path


def write_tiles(grid: Dict[str, GridCell], output_dir) -> List[GridCell]:
    """Write all non-empty cells of ``grid`` to ``output_dir``.

    Each written cell gets its ``filename`` and ``feature_count`` set and its
    feature list released. Empty cells produce no file.

    Parameters
    ----------
    grid : dict
        Mapping of cell key to :class:`GridCell`.
    output_dir : str or pathlib.Path
        Directory for the tiles; created if missing.

    Returns
    -------
    list of GridCell
        The finalised cells, in grid order.

    Raises
    ------
    TileWriteError
        If any tile cannot be written.
    """
    output_path = pathlib.Path(output_dir)
    try:
        output_path.mkdir(parents=True, exist_ok=True)
    except OSError as err:
        raise TileWriteError(f"Could not create output directory {output_path}: {err}") from err

    written = []
    for cell in grid.values():
        if not cell.features:
            continue
        write_tile(cell, output_path)
        written.append(cell)
    logger.info("Wrote %d tiles to %s", len(written), output_path)
    return written
