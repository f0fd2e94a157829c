"""Exceptions raised by the partitioning engine.

Every condition that aborts a run derives from ParcelTilerError so the
command-line wrapper can report it and exit with a non-zero status.
"""


class ParcelTilerError(Exception):
    """Base class for errors that abort a run."""


class GridConfigError(ParcelTilerError):
    """Grid size is zero, negative or not a finite number."""


class EmptyBoundsError(ParcelTilerError):
    """No Polygon or MultiPolygon vertex was found while scanning bounds."""


class MissingGeometryError(ParcelTilerError):
    """The input archive does not contain a .shp geometry file."""


class TileWriteError(ParcelTilerError):
    """A tile file could not be written to the output directory."""


class IndexWriteError(ParcelTilerError):
    """The index file could not be written; any previous index is left intact."""
