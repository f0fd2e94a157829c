"""Second pass: place each feature in every grid cell its bounding box touches."""
from typing import Dict, Optional

from .bounds import GeographicBounds, geometry_bounds
from .grid import GridCell, cells_for_bounds


def assign_feature(feature: dict, grid: Dict[str, GridCell], grid_size: float,
                   extent: Optional[GeographicBounds] = None) -> int:
    """Append ``feature`` to all grid cells overlapped by its bounding box.

    A feature crossing cell edges is added to each cell so every tile can be
    drawn on its own. Keys missing from ``grid`` are skipped. Passing the
    grid's ``extent`` (see :func:`~parceltiler.grid.grid_extent`) limits the
    walk to cells that can exist.

    Returns
    -------
    int
        Number of cells the feature was added to; 0 for features without
        vertices.
    """
    bounds = geometry_bounds(feature.get("geometry"))
    added = 0
    for key in cells_for_bounds(bounds, grid_size, within=extent):
        cell = grid.get(key)
        if cell is None:
            continue
        cell.features.append(feature)
        added += 1
    return added
