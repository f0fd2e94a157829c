"""Reading vector features and unpacking input archives.

Features are read with Fiona and handed on as plain GeoJSON-like dicts.
"""
import logging
import pathlib
import zipfile
from typing import Iterator, Optional, Tuple

import fiona
from fiona.model import to_dict

from .errors import MissingGeometryError

logger = logging.getLogger(__name__)


class FeatureSource:
    """Restartable sequence of features from a vector file.

    Every iteration reopens the file, so the bounds pass and the assignment
    pass see the same features in the same order.

    Parameters
    ----------
    path : str or pathlib.Path
        Path to a dataset Fiona can open, e.g. a ``.shp`` file.
    """

    def __init__(self, path):
        self.path = pathlib.Path(path)

    def __iter__(self) -> Iterator[dict]:
        with fiona.open(self.path) as src:
            for record in src:
                yield to_dict(record)

    def __repr__(self):
        return f"FeatureSource({str(self.path)!r})"


def read_projection(geometry_path) -> Optional[str]:
    """Return the ``.prj`` sidecar text next to ``geometry_path``, if any."""
    geometry_path = pathlib.Path(geometry_path)
    for prj in sorted(geometry_path.parent.iterdir()):
        if prj.stem == geometry_path.stem and prj.suffix.lower() == ".prj":
            return prj.read_text(encoding="utf-8", errors="replace")
    return None


def extract_archive(zip_path, work_dir) -> Tuple[pathlib.Path, Optional[str]]:
    """Unpack a ZIP archive and locate its shapefile.

    Parameters
    ----------
    zip_path : str or pathlib.Path
        Archive holding one shapefile dataset.
    work_dir : str or pathlib.Path
        Directory to extract into; created if missing.

    Returns
    -------
    tuple
        ``(shp_path, projection_text)``; the projection text is ``None``
        when the archive has no ``.prj`` file.

    Raises
    ------
    MissingGeometryError
        If the archive contains no ``.shp`` file.
    """
    work_dir = pathlib.Path(work_dir)
    work_dir.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(zip_path) as z:
        z.extractall(work_dir)

    files = sorted(p for p in work_dir.rglob("*") if p.is_file())
    shp_files = [p for p in files if p.suffix.lower() == ".shp"]
    if not shp_files:
        raise MissingGeometryError(f"No .shp file found in the ZIP archive {zip_path}")
    shp_path = shp_files[0]
    if len(shp_files) > 1:
        logger.warning("Archive holds %d shapefiles, using %s",
                       len(shp_files), shp_path.name)
    logger.info("Found shapefile: %s", shp_path.name)

    projection = read_projection(shp_path)
    if projection is None:
        prj_files = [p for p in files if p.suffix.lower() == ".prj"]
        if prj_files:
            projection = prj_files[0].read_text(encoding="utf-8", errors="replace")
    return shp_path, projection
