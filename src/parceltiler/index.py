"""The index document mapping cell keys to tile files.

The index is the only output that outlives a run. Each run reads the index
left by earlier runs, merges its own cells over it (a new entry replaces an
existing entry with the same key) and writes the whole document back, so
several datasets can be processed into the same output directory one after
the other.

Document layout::

    {
      "gridSize": 0.01,
      "cells": {
        "33.120000_-112.130000": {
          "bounds": {"minLat": ..., "maxLat": ..., "minLng": ..., "maxLng": ...},
          "filename": "parcels_33.120000_-112.130000.json",
          "featureCount": 12
        }
      },
      "metadata": {
        "totalCells": 1,
        "totalFeatures": 12,
        "generatedAt": "2026-10-18T09:30:00.000Z",
        "lastUpdated": "2026-10-18T09:30:00.000Z"
      }
    }
"""
import json
import logging
import os
import pathlib
import tempfile
from typing import Dict, Iterable, List, Optional

import pandas as pd

from .bounds import GeographicBounds
from .errors import IndexWriteError
from .grid import GridCell, cells_for_bounds

logger = logging.getLogger(__name__)


def timestamp_now() -> str:
    """Current UTC time as an ISO 8601 string with millisecond precision."""
    return (pd.Timestamp.now(tz="UTC")
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"))


def _feature_count(entry) -> int:
    if not isinstance(entry, dict):
        return 0
    try:
        return int(entry.get("featureCount") or 0)
    except (TypeError, ValueError):
        return 0


def load_index(path) -> Optional[dict]:
    """Read an existing index document.

    Returns ``None`` if the file does not exist. A file that cannot be read
    or parsed, or that is not shaped like an index, is reported with a
    warning and also gives ``None``.
    """
    path = pathlib.Path(path)
    if not path.exists():
        return None
    try:
        with open(path, "r") as fp:
            data = json.load(fp)
    except (OSError, ValueError) as err:
        logger.warning("Error reading existing index file %s: %s", path, err)
        logger.warning("Creating new index file")
        return None
    if (not isinstance(data, dict)
            or not isinstance(data.get("cells", {}), dict)
            or not isinstance(data.get("metadata", {}), dict)):
        logger.warning("Existing index file %s is malformed, creating new index file", path)
        return None
    return data


def merge_index(prior: Optional[dict], new_cells: Dict[str, dict],
                grid_size: float, timestamp: str) -> dict:
    """Merge this run's cell entries into a prior index.

    Parameters
    ----------
    prior : dict or None
        The index from earlier runs, if any. It is not modified.
    new_cells : dict
        Cell key to index entry (``bounds``, ``filename``, ``featureCount``).
    grid_size : float
        Grid size of this run.
    timestamp : str
        Time of this run, stored as ``lastUpdated`` and, for a new index,
        as ``generatedAt``.

    Returns
    -------
    dict
        The merged index document. Totals are recomputed from the merged
        cells so replacing an entry never double counts.
    """
    prior = prior or {}
    prior_meta = prior.get("metadata")
    if not isinstance(prior_meta, dict):
        prior_meta = {}
    prior_cells = prior.get("cells")
    if not isinstance(prior_cells, dict):
        prior_cells = {}
    prior_size = prior.get("gridSize")
    if prior_size is not None and prior_size != grid_size:
        logger.warning("Existing index uses grid size %s, this run uses %s",
                       prior_size, grid_size)

    cells = dict(prior_cells)
    cells.update(new_cells)

    return {
        "gridSize": grid_size,
        "cells": cells,
        "metadata": {
            "totalCells": len(cells),
            "totalFeatures": sum(_feature_count(entry) for entry in cells.values()),
            "generatedAt": prior_meta.get("generatedAt") or timestamp,
            "lastUpdated": timestamp,
        },
    }


def write_index(index: dict, path) -> pathlib.Path:
    """Write the index in full, replacing any previous file atomically."""
    path = pathlib.Path(path)
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile("w", dir=path.parent, prefix=".",
                                         suffix=".tmp", delete=False) as fp:
            tmp_name = fp.name
            json.dump(index, fp, indent=2)
        # Temp files are created 0600; the index must be as readable as the tiles.
        umask = os.umask(0)
        os.umask(umask)
        os.chmod(tmp_name, 0o666 & ~umask)
        os.replace(tmp_name, path)
    except OSError as err:
        if tmp_name and os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise IndexWriteError(f"Could not write index {path}: {err}") from err
    return path


def update_index(cells: Iterable[GridCell], output_dir, index_name: str,
                 grid_size: float, timestamp: Optional[str] = None) -> dict:
    """Merge finalised cells into the index file in ``output_dir``.

    Parameters
    ----------
    cells : iterable of GridCell
        Cells written in this run. Cells without a filename are ignored.
    output_dir : str or pathlib.Path
        Directory holding the tiles and the index.
    index_name : str
        File name of the index, e.g. ``parcel-index.json``.
    grid_size : float
        Grid size of this run.
    timestamp : str, optional
        Run time; defaults to now.

    Returns
    -------
    dict
        The index document as written.
    """
    timestamp = timestamp or timestamp_now()
    new_cells = {cell.key: cell.to_index_entry() for cell in cells if cell.filename}
    new_features = sum(entry["featureCount"] for entry in new_cells.values())

    index_path = pathlib.Path(output_dir) / index_name
    prior = load_index(index_path)
    if prior is not None:
        logger.info("Index file already exists, appending new data")
    index = merge_index(prior, new_cells, grid_size, timestamp)
    write_index(index, index_path)

    meta = index["metadata"]
    if prior is not None:
        logger.info("Updated index with %d new cells containing %d features",
                    len(new_cells), new_features)
        logger.info("Total: %d cells containing %d features",
                    meta["totalCells"], meta["totalFeatures"])
    else:
        logger.info("Created index with %d cells containing %d features",
                    meta["totalCells"], meta["totalFeatures"])
    return index


def tiles_for_viewport(index: dict, viewport: GeographicBounds,
                       cached: Iterable[str] = ()) -> List[str]:
    """Return the tile files a client needs to show ``viewport``.

    Cell keys are derived from the viewport with the same floor division
    used to write the tiles. Files listed in ``cached`` are left out.
    """
    cached = set(cached)
    cells = index.get("cells") or {}
    filenames = []
    for key in cells_for_bounds(viewport, float(index["gridSize"])):
        entry = cells.get(key)
        if not entry:
            continue
        filename = entry.get("filename")
        if filename and filename not in cached and filename not in filenames:
            filenames.append(filename)
    return filenames
