"""
Per-source normalization: raw extracts to one wide row per county.

Two generic transforms do the work:

- normalize_source: wide raw table + FieldMapping list -> key + mapped
  attributes (sums of raw columns, nulls propagate).
- widen_long: long raw table (one row per county and measure) -> wide,
  after asserting each (county, field) pair occurs once.

The source-specific normalizers below compose them for RUCC, PLACES, ACS
and the unmet-need score.
"""

import logging
from typing import Mapping, Sequence

import numpy as np
import pandas as pd

from county_health_db.errors import DuplicateKeyFieldError, MissingFieldError
from county_health_db.field_maps import (
    ACS_TABLE_MAPPINGS,
    AGE_BANDS,
    SEXES,
    FieldMapping,
    age_column,
    raw_columns,
)
from county_health_db.join import join_sources
from county_health_db.keys import COUNTY_KEY, canonicalize_county_names, format_fips


def _require_columns(df: pd.DataFrame, columns: Sequence[str], source: str) -> None:
    for col in columns:
        if col not in df.columns:
            raise MissingFieldError(col, source)


def _drop_null_keys(
    df: pd.DataFrame,
    source: str,
    logger: logging.Logger | None,
) -> pd.DataFrame:
    null_keys = df[COUNTY_KEY].isna()
    if null_keys.any():
        if logger:
            logger.warning(f"{source}: dropping {int(null_keys.sum())} rows with no county key")
        df = df[~null_keys]
    return df


def normalize_source(
    raw: pd.DataFrame,
    mappings: Sequence[FieldMapping],
    key: str,
    source: str,
    passthrough: Sequence[str] = (),
    logger: logging.Logger | None = None,
) -> pd.DataFrame:
    """
    Map a wide raw table onto named attributes, one row per county.

    Args:
        raw: Raw source table, one row per county.
        mappings: Attribute definitions (each a sum of raw columns).
        key: Raw column holding the county name.
        source: Source name used in error messages.
        passthrough: Raw columns copied unchanged (e.g. GEOID).
        logger: Optional logger.

    Returns:
        DataFrame with county_name, passthrough columns and one column per
        mapping, in declaration order.

    Raises:
        MissingFieldError: If the key or any referenced raw column is absent.
        DuplicateKeyFieldError: If two rows canonicalize to the same county.
    """
    _require_columns(raw, [key, *passthrough, *raw_columns(list(mappings))], source)

    columns: dict[str, np.ndarray] = {
        COUNTY_KEY: canonicalize_county_names(raw[key]).to_numpy(),
    }
    for col in passthrough:
        columns[col] = raw[col].to_numpy()
    for m in mappings:
        values = raw[list(m.sources)].apply(pd.to_numeric, errors="coerce")
        columns[m.target] = values.sum(axis=1, skipna=False).to_numpy()

    out = pd.DataFrame(columns)
    out = _drop_null_keys(out, source, logger)

    duplicated = out[COUNTY_KEY].duplicated(keep=False)
    if duplicated.any():
        dups = sorted(out.loc[duplicated, COUNTY_KEY].unique())
        raise DuplicateKeyFieldError(source, dups)

    return out.reset_index(drop=True)


def widen_long(
    long: pd.DataFrame,
    key: str,
    field_cols: Sequence[str],
    value_col: str,
    source: str,
    logger: logging.Logger | None = None,
) -> pd.DataFrame:
    """
    Reshape a long table to one row per county and one column per field.

    Field names are the values of field_cols joined with "_", so PLACES
    rows (BRFSS, CANCER, CrdPrv) become the column BRFSS_CANCER_CrdPrv.

    Raises:
        MissingFieldError: If key, a field column or the value column is absent.
        DuplicateKeyFieldError: If any (county, field) pair occurs twice.
    """
    _require_columns(long, [key, *field_cols, value_col], source)
    if long.empty:
        return pd.DataFrame(columns=[COUNTY_KEY])

    df = pd.DataFrame({
        COUNTY_KEY: canonicalize_county_names(long[key]).to_numpy(),
        "_field": long[list(field_cols)].astype(str).agg("_".join, axis=1).to_numpy(),
        "_value": long[value_col].to_numpy(),
    })
    df = _drop_null_keys(df, source, logger)

    duplicated = df.duplicated([COUNTY_KEY, "_field"], keep=False)
    if duplicated.any():
        pairs = sorted(set(zip(df.loc[duplicated, COUNTY_KEY], df.loc[duplicated, "_field"])))
        raise DuplicateKeyFieldError(source, pairs)

    wide = df.pivot(index=COUNTY_KEY, columns="_field", values="_value")
    wide.columns.name = None
    return wide.reset_index()


# =============================================================================
# Source-specific normalizers
# =============================================================================

RUCC_FIELD = "RUCC_2023"


def normalize_rucc(
    raw: pd.DataFrame,
    state_abbr: str,
    logger: logging.Logger | None = None,
) -> pd.DataFrame:
    """
    Normalize the USDA Rural-Urban Continuum Codes long file.

    The ERS file has one row per county and attribute (RUCC_2023,
    Population_2020, Description). Only the numeric code is kept.
    """
    _require_columns(raw, ["State"], "rucc")
    state_rows = raw[raw["State"] == state_abbr]

    wide = widen_long(state_rows, "County_Name", ["Attribute"], "Value", "rucc", logger)
    _require_columns(wide, [RUCC_FIELD], "rucc")

    out = wide[[COUNTY_KEY, RUCC_FIELD]].copy()
    out[RUCC_FIELD] = pd.to_numeric(out[RUCC_FIELD], errors="coerce").astype(float)

    if logger:
        logger.info(f"RUCC: {len(out)} counties for {state_abbr}")
    return out


PLACES_FIELDS = ["DataSource", "MeasureId", "DataValueTypeID"]


def normalize_places(
    raw: pd.DataFrame,
    state_abbr: str,
    year: int,
    logger: logging.Logger | None = None,
) -> pd.DataFrame:
    """
    Normalize CDC PLACES county data for one state and release year.

    Each DataSource/MeasureId/DataValueTypeID combination becomes a column,
    e.g. BRFSS_CANCER_CrdPrv (crude prevalence, percent).
    """
    _require_columns(raw, ["StateAbbr", "Year"], "places")
    rows = raw[(raw["StateAbbr"] == state_abbr) & (pd.to_numeric(raw["Year"]) == year)]

    wide = widen_long(rows, "LocationName", PLACES_FIELDS, "Data_Value", "places", logger)
    measure_cols = [c for c in wide.columns if c != COUNTY_KEY]
    wide[measure_cols] = wide[measure_cols].apply(pd.to_numeric, errors="coerce")

    if logger:
        logger.info(f"PLACES: {len(wide)} counties, {len(measure_cols)} measures ({year})")
    return wide


def add_other_race_bands(df: pd.DataFrame) -> pd.DataFrame:
    """
    Derive the non-white, non-Hispanic age bands as total - white - hispanic.

    Matches the three race/ethnicity groups of the state population
    projection file.
    """
    df = df.copy()
    others = {}
    for sex in SEXES:
        for band in AGE_BANDS:
            others[age_column("other", sex, band)] = (
                df[age_column("total", sex, band)]
                - df[age_column("white", sex, band)]
                - df[age_column("hispanic", sex, band)]
            )
    return pd.concat([df, pd.DataFrame(others, index=df.index)], axis=1)


def normalize_acs(
    tables: Mapping[str, pd.DataFrame],
    logger: logging.Logger | None = None,
) -> pd.DataFrame:
    """
    Normalize and combine the ACS 5-year county tables.

    Args:
        tables: Raw Census API frames keyed by table id (B01001, B01001H,
            B01001I, B19001, B27010). Each has GEOID, NAME and <table>_<cell>E.
        logger: Optional logger.

    Returns:
        One row per county: county_name, geoid, age bands by group and sex,
        household income bands and insurance categories by age group.
    """
    normalized = []
    for i, (table, mappings) in enumerate(ACS_TABLE_MAPPINGS.items()):
        if table not in tables:
            raise MissingFieldError(table, "acs")
        passthrough = ("GEOID",) if i == 0 else ()
        df = normalize_source(tables[table], mappings, key="NAME",
                              source=f"acs_{table}", passthrough=passthrough,
                              logger=logger)
        normalized.append((table, df))

    anchor_name, anchor = normalized[0]
    anchor = anchor.rename(columns={"GEOID": "geoid"})
    anchor["geoid"] = format_fips(anchor["geoid"])

    acs = join_sources(anchor, normalized[1:], anchor_name=f"acs_{anchor_name}", logger=logger)
    acs = add_other_race_bands(acs)

    if logger:
        logger.info(f"ACS: {len(acs)} counties, {acs.shape[1] - 2} attributes")
    return acs


def aggregate_uns_to_county(
    crosswalk: pd.DataFrame,
    uns: pd.DataFrame,
    county_lookup: pd.DataFrame,
    logger: logging.Logger | None = None,
) -> pd.DataFrame:
    """
    Aggregate ZIP-level unmet need scores to counties.

    Each county's score is the residential-ratio weighted mean over the
    ZIPs that have a score:

        weighted_uns = sum(zcta_uns * res_ratio) / sum(res_ratio)

    A county whose scored ZIPs carry zero total weight gets a null score.

    Args:
        crosswalk: HUD ZIP-to-county crosswalk with zip, geoid, res_ratio.
        uns: ZIP-level scores with zip_code, zcta_uns.
        county_lookup: geoid -> county_name (the normalized ACS table).
        logger: Optional logger.

    Returns:
        DataFrame with county_name and weighted_uns.
    """
    _require_columns(crosswalk, ["zip", "geoid", "res_ratio"], "hud_crosswalk")
    _require_columns(uns, ["zip_code", "zcta_uns"], "uns")
    _require_columns(county_lookup, ["geoid", COUNTY_KEY], "county_lookup")

    xwalk = pd.DataFrame({
        "zip_code": format_fips(crosswalk["zip"]),
        "geoid": format_fips(crosswalk["geoid"]),
        "res_ratio": pd.to_numeric(crosswalk["res_ratio"], errors="coerce"),
    })
    scores = pd.DataFrame({
        "zip_code": format_fips(uns["zip_code"]),
        "zcta_uns": pd.to_numeric(uns["zcta_uns"], errors="coerce"),
    })

    duplicated = scores["zip_code"].duplicated(keep=False)
    if duplicated.any():
        dups = sorted(scores.loc[duplicated, "zip_code"].dropna().unique())
        raise DuplicateKeyFieldError("uns", dups)

    merged = xwalk.merge(scores, on="zip_code", how="left")
    merged = merged.dropna(subset=["zcta_uns", "res_ratio"])
    merged["weighted"] = merged["zcta_uns"] * merged["res_ratio"]

    by_county = merged.groupby("geoid", sort=True).agg(
        weighted=("weighted", "sum"),
        weight=("res_ratio", "sum"),
    ).reset_index()
    by_county["weighted_uns"] = by_county["weighted"] / by_county["weight"].where(by_county["weight"] != 0)

    lookup = county_lookup[["geoid", COUNTY_KEY]].copy()
    lookup["geoid"] = format_fips(lookup["geoid"])
    out = by_county.merge(lookup, on="geoid", how="left")

    unmatched = out[COUNTY_KEY].isna()
    if unmatched.any() and logger:
        logger.warning(f"UNS: {int(unmatched.sum())} county FIPS codes not in lookup, dropped")
    out = out[~unmatched]

    if logger:
        logger.info(f"UNS: weighted scores for {len(out)} counties from {len(merged)} ZIP-county pairs")
    return out[[COUNTY_KEY, "weighted_uns"]].reset_index(drop=True)
