"""Partition property boundary datasets into geographically indexed tiles."""
from . import config
from .errors import (EmptyBoundsError, GridConfigError, IndexWriteError,
                     MissingGeometryError, ParcelTilerError, TileWriteError)
from .grid import cell_key
from .pipeline import RunSummary, process, process_archive

__version__ = "1.0.0"
