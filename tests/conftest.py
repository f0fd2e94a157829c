"""Shared pytest fixtures for parceltiler tests."""

import tempfile
from pathlib import Path

import pytest


def make_polygon_feature(min_lng, min_lat, max_lng, max_lat, properties=None):
    """Build a rectangular Polygon feature from its corners."""
    ring = [
        [min_lng, min_lat],
        [max_lng, min_lat],
        [max_lng, max_lat],
        [min_lng, max_lat],
        [min_lng, min_lat],
    ]
    return {
        "type": "Feature",
        "properties": dict(properties or {}),
        "geometry": {"type": "Polygon", "coordinates": [ring]},
    }


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def parcel_properties():
    """Attributes as found in a county parcel shapefile."""
    return {
        "APN": "301-12-345",
        "StreetNumb": "1204",
        "StreetName": "MAIN",
        "StreetType": "ST",
        "StreetDir": "N",
        "City": "BUCKEYE",
        "ZipCode": "85326",
        "OwnerName": "DOE JOHN",
        "Shape_Area": 7312.5,
        "LegalDesc": None,
    }


@pytest.fixture
def boundary_parcel(parcel_properties):
    """Parcel crossing the -112.12 longitude cell edge at grid size 0.01."""
    return make_polygon_feature(-112.1225, 33.1205, -112.1195, 33.1215,
                                parcel_properties)


@pytest.fixture
def corner_parcel():
    """Parcel whose bounding box spans 2x2 cells at grid size 0.01."""
    return make_polygon_feature(-112.125, 33.115, -112.115, 33.125, {"APN": "corner"})


@pytest.fixture
def mixed_features(boundary_parcel):
    """Features of every kind a parcel dataset may contain."""
    return [
        boundary_parcel,
        {"type": "Feature", "properties": {"APN": "nogeom"}, "geometry": None},
        {"type": "Feature", "properties": {"APN": "pt"},
         "geometry": {"type": "Point", "coordinates": [-112.1201, 33.1209]}},
        make_polygon_feature(-112.1105, 33.1305, -112.1101, 33.1309, {"APN": "inner"}),
    ]
