"""Tests for column projection."""
import pytest

from geosdk.core.columns import SEARCH_COLUMNS, columns_for
from geosdk.core.errors import InvalidQuery
from geosdk.core.models import ADDRESS_COLUMNS, DetailLevel


def test_minimal_columns():
    assert columns_for("minimal") == ("addr_id", "longitude", "latitude")


def test_levels_strictly_grow():
    """minimal < postcode < region < full."""
    levels = ["minimal", "postcode", "region", "full"]
    sets = [set(columns_for(level)) for level in levels]
    for smaller, larger in zip(sets, sets[1:]):
        assert smaller < larger


def test_full_is_every_address_column():
    assert columns_for(DetailLevel.FULL) == ADDRESS_COLUMNS
    assert len(ADDRESS_COLUMNS) == 16


def test_level_names_are_case_insensitive():
    assert columns_for("POSTCODE") == columns_for(DetailLevel.POSTCODE)


def test_unknown_level_rejected():
    with pytest.raises(InvalidQuery):
        columns_for("everything")


def test_search_columns_omit_h3_index():
    assert "h3_index" not in SEARCH_COLUMNS
    assert "full_address_ar" in SEARCH_COLUMNS
