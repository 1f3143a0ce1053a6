"""
County key canonicalization.

Every source spells county names differently ("Alamance County",
"Alamance County, North Carolina", "ALAMANCE"). All tables pass their key
column through canonicalize_county_names before widening or joining.
"""

import re

import pandas as pd


COUNTY_KEY = "county_name"

_STATE_QUALIFIER = re.compile(r",\s*[^,]*$")
_COUNTY_SUFFIX = re.compile(r"\s+county$", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


def canonicalize_county_name(name) -> str | None:
    """
    Return the canonical form of a single county name.

    Drops a trailing ", <State>" qualifier and " County" suffix, collapses
    whitespace and upper-cases. Null input stays null.

    >>> canonicalize_county_name("  Alamance County, North Carolina ")
    'ALAMANCE'
    """
    if name is None or (not isinstance(name, str) and pd.isna(name)):
        return None
    text = _WHITESPACE.sub(" ", str(name)).strip()
    text = _STATE_QUALIFIER.sub("", text).strip()
    text = _COUNTY_SUFFIX.sub("", text).strip()
    return text.upper() or None


def canonicalize_county_names(values: pd.Series) -> pd.Series:
    """Vectorized canonicalize_county_name over a Series."""
    return values.map(canonicalize_county_name).astype(object)


def format_fips(values: pd.Series, width: int = 5) -> pd.Series:
    """Zero-pad numeric or string FIPS codes to a fixed width."""
    def _one(v):
        if v is None or pd.isna(v):
            return None
        if isinstance(v, float):
            v = int(v)
        return str(v).strip().zfill(width)

    return values.map(_one).astype(object)
