"""Tests for the parceltiler.index module."""

import json
import os
import stat
from unittest.mock import patch

import pytest

from parceltiler import index
from parceltiler.bounds import GeographicBounds
from parceltiler.errors import IndexWriteError
from parceltiler.grid import GridCell, cell_key

GRID_SIZE = 0.01
T0 = "2026-01-01T00:00:00.000Z"
T1 = "2026-02-01T00:00:00.000Z"
T2 = "2026-03-01T00:00:00.000Z"


def _entry(key, count):
    lat, lng = (float(v) for v in key.split("_"))
    return {
        "bounds": {"minLat": lat, "maxLat": lat + GRID_SIZE,
                   "minLng": lng, "maxLng": lng + GRID_SIZE},
        "filename": f"parcels_{key}.json",
        "featureCount": count,
    }


def _cell(key, count):
    lat, lng = (float(v) for v in key.split("_"))
    return GridCell(key=key,
                    bounds=GeographicBounds(lat, lat + GRID_SIZE, lng, lng + GRID_SIZE),
                    features=None,
                    filename=f"parcels_{key}.json",
                    feature_count=count)


class TestMergeIndex:
    """Tests for merge_index."""

    def test_new_index(self):
        merged = index.merge_index(None, {"A": _entry("1.000000_2.000000", 3)}, GRID_SIZE, T0)
        assert merged["gridSize"] == GRID_SIZE
        assert merged["metadata"] == {
            "totalCells": 1,
            "totalFeatures": 3,
            "generatedAt": T0,
            "lastUpdated": T0,
        }

    def test_merge_keeps_generated_at(self):
        """Merging into an existing index keeps generatedAt and adds totals."""
        prior = index.merge_index(None, {"A": _entry("1.000000_2.000000", 5)}, GRID_SIZE, T0)
        merged = index.merge_index(prior, {"B": _entry("1.010000_2.000000", 3)}, GRID_SIZE, T1)
        assert merged["metadata"]["totalFeatures"] == 8
        assert merged["metadata"]["totalCells"] == 2
        assert merged["metadata"]["generatedAt"] == T0
        assert merged["metadata"]["lastUpdated"] == T1

    def test_disjoint_runs_are_additive(self):
        first = {"A": _entry("1.000000_2.000000", 4), "B": _entry("1.000000_2.010000", 1)}
        second = {"C": _entry("5.000000_2.000000", 7)}
        merged = index.merge_index(index.merge_index(None, first, GRID_SIZE, T0),
                                   second, GRID_SIZE, T1)
        assert merged["metadata"]["totalFeatures"] == 12
        assert merged["metadata"]["totalCells"] == 3

    def test_remerging_same_cells_is_idempotent(self):
        """Re-running with the same keys must not double count."""
        cells = {"A": _entry("1.000000_2.000000", 4), "B": _entry("1.000000_2.010000", 1)}
        once = index.merge_index(None, cells, GRID_SIZE, T0)
        twice = index.merge_index(once, cells, GRID_SIZE, T1)
        assert twice["metadata"]["totalFeatures"] == once["metadata"]["totalFeatures"] == 5
        assert twice["metadata"]["totalCells"] == once["metadata"]["totalCells"] == 2

    def test_last_write_wins_per_key(self):
        prior = index.merge_index(None, {"A": _entry("1.000000_2.000000", 10)}, GRID_SIZE, T0)
        merged = index.merge_index(prior, {"A": _entry("1.000000_2.000000", 2)}, GRID_SIZE, T1)
        assert merged["cells"]["A"]["featureCount"] == 2
        assert merged["metadata"]["totalFeatures"] == 2

    def test_totals_recomputed_from_cells(self):
        """Stale totals in the prior metadata are ignored."""
        prior = {"gridSize": GRID_SIZE,
                 "cells": {"A": _entry("1.000000_2.000000", 5)},
                 "metadata": {"totalCells": 99, "totalFeatures": 1000, "generatedAt": T0}}
        merged = index.merge_index(prior, {}, GRID_SIZE, T1)
        assert merged["metadata"]["totalFeatures"] == 5
        assert merged["metadata"]["totalCells"] == 1

    def test_prior_is_not_modified(self):
        prior = index.merge_index(None, {"A": _entry("1.000000_2.000000", 5)}, GRID_SIZE, T0)
        index.merge_index(prior, {"B": _entry("1.010000_2.000000", 3)}, GRID_SIZE, T1)
        assert list(prior["cells"]) == ["A"]
        assert prior["metadata"]["lastUpdated"] == T0

    def test_grid_size_mismatch_warns(self, caplog):
        prior = index.merge_index(None, {"A": _entry("1.000000_2.000000", 5)}, 0.05, T0)
        with caplog.at_level("WARNING", logger="parceltiler.index"):
            index.merge_index(prior, {}, GRID_SIZE, T1)
        assert "grid size" in caplog.text

    @pytest.mark.parametrize("prior", [
        {"cells": {}, "metadata": "oops"},
        {"cells": {}, "metadata": [1, 2]},
        {"cells": "oops", "metadata": {"generatedAt": T0}},
    ])
    def test_tolerates_wrongly_typed_prior(self, prior):
        """Parts of a prior index with the wrong type are treated as absent."""
        merged = index.merge_index(prior, {"A": _entry("1.000000_2.000000", 5)}, GRID_SIZE, T1)
        assert list(merged["cells"]) == ["A"]
        assert merged["metadata"]["totalFeatures"] == 5
        assert merged["metadata"]["lastUpdated"] == T1


class TestLoadIndex:
    """Tests for load_index."""

    def test_missing_file(self, temp_dir):
        assert index.load_index(temp_dir / "parcel-index.json") is None

    def test_malformed_json_warns(self, temp_dir, caplog):
        path = temp_dir / "parcel-index.json"
        path.write_text("{not json")
        with caplog.at_level("WARNING", logger="parceltiler.index"):
            assert index.load_index(path) is None
        assert "Error reading existing index" in caplog.text

    @pytest.mark.parametrize("content", [
        "[1, 2]",
        '{"cells": [1]}',
        '"text"',
        '{"cells": {}, "metadata": "oops"}',
    ])
    def test_wrong_shape_warns(self, temp_dir, caplog, content):
        path = temp_dir / "parcel-index.json"
        path.write_text(content)
        with caplog.at_level("WARNING", logger="parceltiler.index"):
            assert index.load_index(path) is None
        assert "malformed" in caplog.text

    def test_reads_valid_index(self, temp_dir):
        path = temp_dir / "parcel-index.json"
        doc = index.merge_index(None, {"A": _entry("1.000000_2.000000", 5)}, GRID_SIZE, T0)
        path.write_text(json.dumps(doc))
        assert index.load_index(path) == doc


class TestWriteIndex:
    """Tests for write_index."""

    def test_writes_json(self, temp_dir):
        path = temp_dir / "parcel-index.json"
        doc = index.merge_index(None, {}, GRID_SIZE, T0)
        index.write_index(doc, path)
        with open(path) as f:
            assert json.load(f) == doc

    def test_leaves_no_temp_files(self, temp_dir):
        path = temp_dir / "parcel-index.json"
        index.write_index(index.merge_index(None, {}, GRID_SIZE, T0), path)
        assert [p.name for p in temp_dir.iterdir()] == ["parcel-index.json"]

    def test_file_mode_follows_umask(self, temp_dir):
        """The index is as readable as any other file written by the process."""
        path = temp_dir / "parcel-index.json"
        index.write_index(index.merge_index(None, {}, GRID_SIZE, T0), path)
        umask = os.umask(0)
        os.umask(umask)
        assert stat.S_IMODE(path.stat().st_mode) == 0o666 & ~umask

    def test_failure_keeps_previous_index(self, temp_dir):
        """A failed write must not leave a half-written index behind."""
        path = temp_dir / "parcel-index.json"
        original = index.merge_index(None, {"A": _entry("1.000000_2.000000", 5)}, GRID_SIZE, T0)
        index.write_index(original, path)
        with patch("parceltiler.index.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(IndexWriteError):
                index.write_index(index.merge_index(original, {}, GRID_SIZE, T1), path)
        with open(path) as f:
            assert json.load(f) == original
        assert [p.name for p in temp_dir.iterdir()] == ["parcel-index.json"]


class TestUpdateIndex:
    """Tests for update_index."""

    def test_creates_then_updates(self, temp_dir):
        """Two runs into one directory accumulate cells."""
        index.update_index([_cell("33.120000_-112.130000", 5)], temp_dir,
                           "parcel-index.json", GRID_SIZE, timestamp=T0)
        result = index.update_index([_cell("33.130000_-112.130000", 3)], temp_dir,
                                    "parcel-index.json", GRID_SIZE, timestamp=T1)
        assert result["metadata"]["totalFeatures"] == 8
        assert result["metadata"]["totalCells"] == 2
        assert result["metadata"]["generatedAt"] == T0
        assert result["metadata"]["lastUpdated"] == T1
        with open(temp_dir / "parcel-index.json") as f:
            assert json.load(f) == result

    def test_ignores_unwritten_cells(self, temp_dir):
        unwritten = GridCell(key="0.000000_0.000000",
                             bounds=GeographicBounds(0.0, 0.01, 0.0, 0.01))
        result = index.update_index([unwritten], temp_dir, "parcel-index.json",
                                    GRID_SIZE, timestamp=T0)
        assert result["cells"] == {}
        assert result["metadata"]["totalCells"] == 0

    def test_recovers_from_corrupt_index(self, temp_dir):
        (temp_dir / "parcel-index.json").write_text("garbage")
        result = index.update_index([_cell("33.120000_-112.130000", 5)], temp_dir,
                                    "parcel-index.json", GRID_SIZE, timestamp=T2)
        assert result["metadata"]["generatedAt"] == T2
        assert result["metadata"]["totalFeatures"] == 5

    def test_recovers_from_wrongly_typed_metadata(self, temp_dir):
        (temp_dir / "parcel-index.json").write_text('{"cells": {}, "metadata": "oops"}')
        result = index.update_index([_cell("33.120000_-112.130000", 5)], temp_dir,
                                    "parcel-index.json", GRID_SIZE, timestamp=T2)
        assert result["metadata"]["generatedAt"] == T2
        assert result["metadata"]["totalCells"] == 1

    def test_default_timestamp(self, temp_dir):
        result = index.update_index([], temp_dir, "parcel-index.json", GRID_SIZE)
        assert result["metadata"]["lastUpdated"].endswith("Z")
        assert result["metadata"]["generatedAt"] == result["metadata"]["lastUpdated"]


class TestTilesForViewport:
    """Tests for tiles_for_viewport."""

    def _index(self):
        keys = ["33.120000_-112.130000", "33.120000_-112.120000", "40.000000_-100.000000"]
        return index.merge_index(None, {k: _entry(k, 1) for k in keys}, GRID_SIZE, T0)

    def test_returns_overlapping_tiles(self):
        viewport = GeographicBounds(33.121, 33.129, -112.125, -112.115)
        assert sorted(index.tiles_for_viewport(self._index(), viewport)) == [
            "parcels_33.120000_-112.120000.json",
            "parcels_33.120000_-112.130000.json",
        ]

    def test_skips_cached_tiles(self):
        viewport = GeographicBounds(33.121, 33.129, -112.125, -112.115)
        result = index.tiles_for_viewport(self._index(), viewport,
                                          cached=["parcels_33.120000_-112.130000.json"])
        assert result == ["parcels_33.120000_-112.120000.json"]

    def test_uses_same_keys_as_producer(self):
        viewport = GeographicBounds(40.001, 40.002, -99.999, -99.998)
        key = cell_key(40.001, -99.999, GRID_SIZE)
        assert index.tiles_for_viewport(self._index(), viewport) == [f"parcels_{key}.json"]


class TestTimestampNow:
    """Tests for timestamp_now."""

    def test_iso_format(self):
        stamp = index.timestamp_now()
        assert stamp.endswith("Z")
        assert "T" in stamp
        assert len(stamp) == len("2026-01-01T00:00:00.000Z")
