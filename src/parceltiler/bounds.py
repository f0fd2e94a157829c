"""Geographic bounding boxes and the first (bounds) pass over the features."""
import logging
import math
from dataclasses import dataclass
from typing import Iterable, Iterator, Tuple

logger = logging.getLogger(__name__)

AREA_TYPES = ("Polygon", "MultiPolygon")


@dataclass
class GeographicBounds:
    """Bounding box in degrees.

    A freshly created box is empty (``min > max``) and widens monotonically
    as points are added with :meth:`extend`.
    """
    min_lat: float = math.inf
    max_lat: float = -math.inf
    min_lng: float = math.inf
    max_lng: float = -math.inf

    @classmethod
    def empty(cls):
        return cls()

    @property
    def is_empty(self) -> bool:
        return self.min_lat > self.max_lat or self.min_lng > self.max_lng

    def extend(self, lng: float, lat: float):
        if lat < self.min_lat:
            self.min_lat = lat
        if lat > self.max_lat:
            self.max_lat = lat
        if lng < self.min_lng:
            self.min_lng = lng
        if lng > self.max_lng:
            self.max_lng = lng

    def extend_geometry(self, geometry):
        for lng, lat in iter_coordinates(geometry):
            self.extend(lng, lat)

    def intersects(self, other: "GeographicBounds") -> bool:
        """Return True if the boxes overlap or touch."""
        if self.is_empty or other.is_empty:
            return False
        return not (self.max_lat < other.min_lat or self.min_lat > other.max_lat
                    or self.max_lng < other.min_lng or self.min_lng > other.max_lng)

    def contains(self, lng: float, lat: float) -> bool:
        return (self.min_lat <= lat <= self.max_lat
                and self.min_lng <= lng <= self.max_lng)

    def to_dict(self) -> dict:
        """Serialise with the index document's field names."""
        return {
            "minLat": self.min_lat,
            "maxLat": self.max_lat,
            "minLng": self.min_lng,
            "maxLng": self.max_lng,
        }

    @classmethod
    def from_dict(cls, data: dict):
        return cls(min_lat=float(data["minLat"]), max_lat=float(data["maxLat"]),
                   min_lng=float(data["minLng"]), max_lng=float(data["maxLng"]))


def _iter_positions(coords, depth):
    if depth == 0:
        if coords is not None and len(coords) >= 2:
            yield float(coords[0]), float(coords[1])
        return
    for part in coords or ():
        yield from _iter_positions(part, depth - 1)


COORDINATE_DEPTH = {
    "Point": 0,
    "LineString": 1,
    "MultiPoint": 1,
    "Polygon": 2,
    "MultiLineString": 2,
    "MultiPolygon": 3,
}


def iter_coordinates(geometry) -> Iterator[Tuple[float, float]]:
    """Yield every ``(lng, lat)`` vertex of a GeoJSON geometry.

    GeometryCollections are walked recursively. Null geometries and
    unknown types yield nothing.
    """
    if not geometry:
        return
    gtype = geometry.get("type")
    if gtype == "GeometryCollection":
        for geom in geometry.get("geometries") or ():
            yield from iter_coordinates(geom)
        return
    depth = COORDINATE_DEPTH.get(gtype)
    if depth is None:
        return
    yield from _iter_positions(geometry.get("coordinates"), depth)


def geometry_bounds(geometry) -> GeographicBounds:
    """Return the bounds of all vertices of a geometry of any type."""
    bounds = GeographicBounds.empty()
    bounds.extend_geometry(geometry)
    return bounds


def scan_bounds(features: Iterable[dict]) -> Tuple[GeographicBounds, int]:
    """Compute the bounds of all area-bearing features.

    Only Polygon and MultiPolygon geometries contribute. Features without a
    geometry are skipped.

    Parameters
    ----------
    features : iterable of dict
        GeoJSON-like features in geographic coordinates.

    Returns
    -------
    tuple
        ``(bounds, feature_count)`` where ``feature_count`` counts every
        feature read, contributing or not. ``bounds`` is empty when no
        area-bearing feature was seen.
    """
    bounds = GeographicBounds.empty()
    count = 0
    for feature in features:
        count += 1
        geometry = feature.get("geometry")
        if not geometry or geometry.get("type") not in AREA_TYPES:
            continue
        bounds.extend_geometry(geometry)
    logger.info("Scanned %d features, bounds %s", count, bounds.to_dict())
    return bounds, count
