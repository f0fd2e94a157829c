"""Tests for the parceltiler.errors module."""

import pytest

from parceltiler import errors

FATAL_ERRORS = [
    errors.GridConfigError,
    errors.EmptyBoundsError,
    errors.MissingGeometryError,
    errors.TileWriteError,
    errors.IndexWriteError,
]


class TestErrors:
    """Tests for the exception hierarchy."""

    @pytest.mark.parametrize("error", FATAL_ERRORS)
    def test_fatal_errors_share_base(self, error):
        """The CLI catches every fatal condition through the base class."""
        assert issubclass(error, errors.ParcelTilerError)

    @pytest.mark.parametrize("error", [errors.ParcelTilerError] + FATAL_ERRORS)
    def test_errors_are_documented(self, error):
        assert error.__doc__ and error.__doc__.strip()
