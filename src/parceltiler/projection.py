"""Coordinate reprojection to geographic longitude/latitude.

A dataset's projection description (usually the WKT from a shapefile
``.prj`` sidecar) is resolved into a :class:`PointTransform` that maps
source ``(x, y)`` coordinates to WGS84 ``(lng, lat)``. Descriptions that
already denote WGS84 geographic coordinates resolve to ``None`` and the
features are used untouched.

Resolution never fails a run: unparseable descriptions log a warning and
fall back to identity. Points that cannot be transformed are passed through
unchanged, again with a warning.
"""
import logging
from typing import Optional, Sequence

import numpy as np
from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError, ProjError

from .bounds import COORDINATE_DEPTH

logger = logging.getLogger(__name__)

GEOGRAPHIC_NAMES = (
    'GEOGCS["GCS_WGS_1984"',
    'GEOGCS["WGS 84"',
    'GEOGCRS["WGS 84"',
)
TARGET_CRS = "EPSG:4326"


def is_geographic(crs_text: str) -> bool:
    """Return True if the description names WGS84 geographic coordinates.

    Projected systems embed their geographic base CRS, so any description
    containing a PROJCS/PROJCRS block is treated as projected even when it
    mentions WGS 84.
    """
    text = crs_text.strip()
    if "PROJCS[" in text or "PROJCRS[" in text:
        return False
    if text.upper() in ("EPSG:4326", "WGS84", "WGS 84"):
        return True
    return any(name in text for name in GEOGRAPHIC_NAMES)


class PointTransform:
    """Transform positions from a source CRS to WGS84 longitude/latitude.

    Parameters
    ----------
    source_crs : pyproj.CRS
        The CRS the input coordinates are expressed in.

    Notes
    -----
    Positions are ``(x, y[, z...])`` sequences; only the first two ordinates
    are transformed and any further ordinates are carried over.
    """

    def __init__(self, source_crs: CRS):
        self.source_crs = source_crs
        self._transformer = Transformer.from_crs(
            source_crs, TARGET_CRS, always_xy=True
        )

    def __call__(self, point: Sequence[float]) -> list:
        return self.transform_positions([point])[0]

    def transform_positions(self, positions: Sequence[Sequence[float]]) -> list:
        """Transform a list of positions, keeping failures unchanged.

        Parameters
        ----------
        positions : sequence of sequence of float
            Positions in source coordinates.

        Returns
        -------
        list of list of float
            Transformed positions in ``[lng, lat, ...]`` order.
        """
        positions = [p for p in positions if len(p) >= 2]
        if len(positions) == 0:
            return []
        xy = np.asarray([p[:2] for p in positions], dtype=np.float64)
        xs = xy[:, 0]
        ys = xy[:, 1]
        try:
            lngs, lats = self._transformer.transform(xs, ys)
            lngs = np.asarray(lngs, dtype=np.float64)
            lats = np.asarray(lats, dtype=np.float64)
        except ProjError:
            lngs, lats = self._transform_each(xs, ys)

        failed = ~(np.isfinite(lngs) & np.isfinite(lats))
        if failed.any():
            logger.warning(
                "Could not transform %d of %d points, using original coordinates",
                int(failed.sum()), len(positions))
            lngs = np.where(failed, xs, lngs)
            lats = np.where(failed, ys, lats)

        return [[float(lng), float(lat), *pos[2:]]
                for lng, lat, pos in zip(lngs, lats, positions)]

    def _transform_each(self, xs, ys):
        lngs = np.full(xs.shape, np.nan)
        lats = np.full(ys.shape, np.nan)
        for i, (x, y) in enumerate(zip(xs, ys)):
            try:
                lngs[i], lats[i] = self._transformer.transform(x, y, errcheck=True)
            except ProjError:
                continue
        return lngs, lats


def resolve_transform(crs_text: Optional[str]) -> Optional[PointTransform]:
    """Build the transform for a projection description.

    Parameters
    ----------
    crs_text : str or None
        WKT (or any pyproj-readable) CRS description.

    Returns
    -------
    PointTransform or None
        ``None`` when no transformation is needed or the description could
        not be understood.
    """
    if crs_text is None or not crs_text.strip():
        return None
    if is_geographic(crs_text):
        return None
    try:
        source_crs = CRS.from_user_input(crs_text.strip())
        return PointTransform(source_crs)
    except (CRSError, ProjError) as err:
        logger.warning(
            "Could not parse projection information (%s). Using raw coordinates.",
            err)
        return None


def _map_positions(coords, depth, transform):
    if depth == 0:
        if len(coords) < 2:
            return coords
        return transform.transform_positions([coords])[0]
    if depth == 1:
        return transform.transform_positions(list(coords))
    return [_map_positions(part, depth - 1, transform) for part in coords]


def transform_geometry(geometry, transform):
    """Return a copy of a GeoJSON geometry with every vertex transformed.

    Null geometries and unknown geometry types are returned unchanged.
    """
    if geometry is None or transform is None:
        return geometry
    gtype = geometry.get("type")
    if gtype == "GeometryCollection":
        return {**geometry,
                "geometries": [transform_geometry(geom, transform)
                               for geom in geometry.get("geometries", [])]}
    depth = COORDINATE_DEPTH.get(gtype)
    coords = geometry.get("coordinates")
    if depth is None or coords is None:
        return geometry
    return {**geometry, "coordinates": _map_positions(coords, depth, transform)}


def transform_feature(feature, transform):
    """Return a copy of ``feature`` with its geometry reprojected."""
    if transform is None:
        return feature
    transformed = dict(feature)
    transformed["geometry"] = transform_geometry(feature.get("geometry"), transform)
    return transformed
