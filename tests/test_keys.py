"""
Tests for county_health_db.keys module.

Tests cover:
- Canonical county names across source spellings
- Null handling
- FIPS zero padding
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
import numpy as np
import pandas as pd

from county_health_db.keys import (
    canonicalize_county_name,
    canonicalize_county_names,
    format_fips,
)


class TestCanonicalizeCountyName:
    """Tests for canonicalize_county_name()."""

    @pytest.mark.parametrize("raw", [
        "Alamance",
        "Alamance County",
        "Alamance County, North Carolina",
        "  alamance   county ",
        "ALAMANCE COUNTY",
        "Alamance County,",
    ])
    def test_source_spellings_agree(self, raw):
        """Every source spelling should map to the same key."""
        assert canonicalize_county_name(raw) == "ALAMANCE"

    def test_multiword_names_keep_inner_space(self):
        """Multi-word county names should keep a single inner space."""
        assert canonicalize_county_name("New  Hanover County") == "NEW HANOVER"

    def test_county_inside_name_is_kept(self):
        """Only a trailing 'County' suffix should be dropped."""
        assert canonicalize_county_name("County Line") == "COUNTY LINE"

    def test_null_stays_null(self):
        """None and NaN should canonicalize to None."""
        assert canonicalize_county_name(None) is None
        assert canonicalize_county_name(np.nan) is None

    def test_blank_becomes_null(self):
        """A blank name should not become an empty-string key."""
        assert canonicalize_county_name("   ") is None

    def test_idempotent(self):
        """Canonicalizing a canonical key should not change it."""
        key = canonicalize_county_name("Bertie County, North Carolina")
        assert canonicalize_county_name(key) == key


class TestCanonicalizeCountyNames:
    """Tests for the vectorized form."""

    def test_series(self):
        """Should canonicalize a Series element-wise, preserving the index."""
        s = pd.Series(["Wake County", None, "Dare"], index=[10, 11, 12])
        out = canonicalize_county_names(s)
        assert list(out.index) == [10, 11, 12]
        assert out.iloc[0] == "WAKE"
        assert pd.isna(out.iloc[1])
        assert out.iloc[2] == "DARE"


class TestFormatFips:
    """Tests for format_fips()."""

    def test_pads_numbers_and_strings(self):
        """Integers, floats and short strings should pad to five digits."""
        out = format_fips(pd.Series([1001, 1001.0, "1001", "37001"]))
        assert list(out) == ["01001", "01001", "01001", "37001"]

    def test_custom_width(self):
        """ZIP codes use the same padding."""
        assert list(format_fips(pd.Series([501]), width=5)) == ["00501"]

    def test_null_preserved(self):
        """Null codes should stay null."""
        out = format_fips(pd.Series([37001, None]))
        assert pd.isna(out.iloc[1])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
