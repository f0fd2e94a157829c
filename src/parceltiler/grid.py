"""Uniform degree grid and the cell-key scheme shared with map clients.

Cells are addressed by the floor division of latitude and longitude by the
grid size. The key string is part of the contract with the client, which
derives the same keys from its viewport to decide which tiles to fetch.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from .bounds import GeographicBounds
from .errors import EmptyBoundsError, GridConfigError

logger = logging.getLogger(__name__)

KEY_PRECISION = 6


@dataclass
class GridCell:
    """One square of the grid.

    ``features`` collects the features assigned during the second pass and
    is released once the tile is written, at which point ``filename`` and
    ``feature_count`` are set.
    """
    key: str
    bounds: GeographicBounds
    features: Optional[List[dict]] = field(default_factory=list)
    filename: Optional[str] = None
    feature_count: int = 0

    def to_index_entry(self) -> dict:
        return {
            "bounds": self.bounds.to_dict(),
            "filename": self.filename,
            "featureCount": self.feature_count,
        }


def validate_grid_size(grid_size) -> float:
    try:
        size = float(grid_size)
    except (TypeError, ValueError):
        raise GridConfigError(f"Grid size must be a number, got {grid_size!r}")
    if not math.isfinite(size) or size <= 0:
        raise GridConfigError(f"Grid size must be positive, got {grid_size!r}")
    return size


def cell_index(value: float, grid_size: float) -> int:
    return math.floor(value / grid_size)


def key_for_index(lat_index: int, lng_index: int, grid_size: float) -> str:
    lat = lat_index * grid_size
    lng = lng_index * grid_size
    return f"{lat:.{KEY_PRECISION}f}_{lng:.{KEY_PRECISION}f}"


def cell_key(lat: float, lng: float, grid_size: float) -> str:
    """Return the key of the cell containing ``(lat, lng)``.

    Parameters
    ----------
    lat, lng : float
        Coordinates in degrees.
    grid_size : float
        Cell edge length in degrees.

    Returns
    -------
    str
        ``"<lat>_<lng>"`` with the south-west corner of the cell, each to six
        decimals, e.g. ``"33.120000_-112.130000"``.
    """
    return key_for_index(cell_index(lat, grid_size), cell_index(lng, grid_size),
                         grid_size)


def cells_for_bounds(bounds: GeographicBounds, grid_size: float,
                     within: Optional[GeographicBounds] = None) -> Iterator[str]:
    """Yield the key of every cell touched by a bounding box.

    When ``within`` is given, only cells touching that box as well are
    yielded, so a large box far from the grid costs nothing to walk.
    """
    if bounds.is_empty:
        return
    lat_first = cell_index(bounds.min_lat, grid_size)
    lat_last = cell_index(bounds.max_lat, grid_size)
    lng_first = cell_index(bounds.min_lng, grid_size)
    lng_last = cell_index(bounds.max_lng, grid_size)
    if within is not None:
        if within.is_empty:
            return
        lat_first = max(lat_first, cell_index(within.min_lat, grid_size))
        lat_last = min(lat_last, cell_index(within.max_lat, grid_size))
        lng_first = max(lng_first, cell_index(within.min_lng, grid_size))
        lng_last = min(lng_last, cell_index(within.max_lng, grid_size))
    for i in range(lat_first, lat_last + 1):
        for j in range(lng_first, lng_last + 1):
            yield key_for_index(i, j, grid_size)


def build_grid(bounds: GeographicBounds, grid_size,
               warn_cells: int = 1_000_000) -> Dict[str, GridCell]:
    """Create every cell covering ``bounds`` plus a one-cell buffer.

    Parameters
    ----------
    bounds : GeographicBounds
        Extent of the data in degrees.
    grid_size : float
        Cell edge length in degrees.
    warn_cells : int, optional
        Log a warning when the grid has more cells than this. The cell count
        grows quadratically as ``grid_size`` shrinks; no cap is applied.

    Returns
    -------
    dict
        Mapping of cell key to :class:`GridCell`.

    Raises
    ------
    GridConfigError
        If ``grid_size`` is not a positive number.
    EmptyBoundsError
        If ``bounds`` is empty.
    """
    grid_size = validate_grid_size(grid_size)
    if bounds.is_empty:
        raise EmptyBoundsError(
            "No Polygon or MultiPolygon features found, cannot build grid")

    lat_start = math.floor(bounds.min_lat / grid_size) - 1
    lat_stop = math.ceil(bounds.max_lat / grid_size) + 1
    lng_start = math.floor(bounds.min_lng / grid_size) - 1
    lng_stop = math.ceil(bounds.max_lng / grid_size) + 1

    n_cells = (lat_stop - lat_start) * (lng_stop - lng_start)
    if n_cells > warn_cells:
        logger.warning("Grid size %g gives %d cells, this may use a lot of memory",
                       grid_size, n_cells)

    grid = {}
    for i in range(lat_start, lat_stop):
        lat = i * grid_size
        for j in range(lng_start, lng_stop):
            lng = j * grid_size
            key = key_for_index(i, j, grid_size)
            grid[key] = GridCell(
                key=key,
                bounds=GeographicBounds(min_lat=lat, max_lat=lat + grid_size,
                                        min_lng=lng, max_lng=lng + grid_size),
            )
    logger.info("Created grid with %d cells", len(grid))
    return grid


def grid_extent(grid: Dict[str, GridCell]) -> GeographicBounds:
    """Return the box covered by all cells of ``grid``."""
    extent = GeographicBounds.empty()
    for cell in grid.values():
        extent.extend(cell.bounds.min_lng, cell.bounds.min_lat)
        extent.extend(cell.bounds.max_lng, cell.bounds.max_lat)
    return extent
