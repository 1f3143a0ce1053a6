"""
Raw source access: remote downloads and local workbook/CSV readers.

These are thin wrappers. They return raw frames in the layout each
normalizer expects and carry no business logic beyond column naming.
HTTP errors propagate via raise_for_status().

Credentials are read from the environment:
    CENSUS_API_KEY  - optional Census API key
    HUD_API_TOKEN   - bearer token for the HUD USPS crosswalk API
"""

import io
import logging
import os
import re
from pathlib import Path
from typing import Mapping

import numpy as np
import pandas as pd
import requests

from county_health_db.errors import MissingFieldError
from county_health_db.keys import COUNTY_KEY


CENSUS_API_BASE = "https://api.census.gov/data"
HUD_USPS_API = "https://www.huduser.gov/hudapi/public/usps"

# HUD USPS crosswalk type 2 is ZIP -> county
HUD_ZIP_COUNTY = 2

# Census annotation values (-666666666 = estimate not available, etc.)
CENSUS_SENTINELS = [-999999999, -888888888, -666666666, -555555555, -333333333, -222222222]

DEFAULT_TIMEOUT = 120


def _get(url: str, timeout: int = DEFAULT_TIMEOUT, **kwargs) -> requests.Response:
    response = requests.get(url, timeout=timeout, **kwargs)
    response.raise_for_status()
    return response


def fetch_places_csv(
    url: str,
    logger: logging.Logger | None = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> pd.DataFrame:
    """Download the CDC PLACES county CSV (all states, long layout)."""
    if logger:
        logger.info(f"Fetching PLACES: {url}")
    response = _get(url, timeout=timeout)
    df = pd.read_csv(io.StringIO(response.text), low_memory=False)
    if logger:
        logger.info(f"  Got {len(df):,} PLACES rows")
    return df


def fetch_rucc_csv(
    url: str,
    logger: logging.Logger | None = None,
    timeout: int = DEFAULT_TIMEOUT,
    encoding: str = "latin-1",
) -> pd.DataFrame:
    """
    Download the USDA ERS Rural-Urban Continuum Codes CSV.

    The ERS file is not UTF-8 (county names carry accented characters).
    """
    if logger:
        logger.info(f"Fetching RUCC: {url}")
    response = _get(url, timeout=timeout)
    df = pd.read_csv(io.StringIO(response.content.decode(encoding)), dtype={"FIPS": str})
    if logger:
        logger.info(f"  Got {len(df):,} RUCC rows")
    return df


def fetch_acs_table(
    table: str,
    state_fips: str,
    year: int,
    dataset: str = "acs/acs5",
    api_key: str | None = None,
    logger: logging.Logger | None = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> pd.DataFrame:
    """
    Fetch one ACS detailed table for every county in a state.

    Args:
        table: Table id, e.g. "B01001".
        state_fips: Two-digit state FIPS code.
        year: ACS end year.
        dataset: Census API dataset path.
        api_key: Census API key; defaults to $CENSUS_API_KEY if set.
        logger: Optional logger.
        timeout: Request timeout in seconds.

    Returns:
        DataFrame with GEOID (five-digit county FIPS), NAME and the table's
        estimate columns (<table>_<cell>E) as numbers. Census sentinel
        values become NaN.
    """
    params = {
        "get": f"NAME,group({table})",
        "for": "county:*",
        "in": f"state:{state_fips}",
    }
    api_key = api_key or os.environ.get("CENSUS_API_KEY")
    if api_key:
        params["key"] = api_key

    url = f"{CENSUS_API_BASE}/{year}/{dataset}"
    if logger:
        logger.info(f"Fetching ACS {table} ({year}) for state {state_fips}...")
    data = _get(url, params=params, timeout=timeout).json()

    headers, rows = data[0], data[1:]
    raw = pd.DataFrame(rows, columns=headers)
    # group() repeats NAME; keep the first
    raw = raw.loc[:, ~raw.columns.duplicated()]

    estimate = re.compile(rf"^{re.escape(table)}_\d{{3}}E$")
    value_cols = [c for c in raw.columns if estimate.match(c)]

    df = pd.DataFrame({
        "GEOID": raw["state"].str.zfill(2) + raw["county"].str.zfill(3),
        "NAME": raw["NAME"],
    })
    values = raw[value_cols].apply(pd.to_numeric, errors="coerce")
    values = values.mask(values.isin(CENSUS_SENTINELS), np.nan)
    df = pd.concat([df, values], axis=1)

    if logger:
        logger.info(f"  Got {len(df)} counties, {len(value_cols)} estimates")
    return df


def fetch_hud_zip_county(
    state_abbr: str,
    token: str | None = None,
    logger: logging.Logger | None = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> pd.DataFrame:
    """
    Fetch the HUD USPS ZIP-to-county crosswalk for a state.

    Args:
        state_abbr: Two-letter state abbreviation.
        token: HUD API bearer token; defaults to $HUD_API_TOKEN.
        logger: Optional logger.
        timeout: Request timeout in seconds.

    Returns:
        DataFrame with zip, geoid, res_ratio (plus the other ratio columns).

    Raises:
        ValueError: If no token is available.
    """
    token = token or os.environ.get("HUD_API_TOKEN")
    if not token:
        raise ValueError("HUD API token required: set HUD_API_TOKEN")

    if logger:
        logger.info(f"Fetching HUD ZIP-county crosswalk for {state_abbr}...")
    payload = _get(
        HUD_USPS_API,
        params={"type": HUD_ZIP_COUNTY, "query": state_abbr},
        headers={"Authorization": f"Bearer {token}"},
        timeout=timeout,
    ).json()

    results = payload.get("data", {}).get("results", [])
    df = pd.DataFrame(results)
    for col in ("zip", "geoid", "res_ratio"):
        if col not in df.columns:
            raise MissingFieldError(col, "hud_crosswalk")
    df["zip"] = df["zip"].astype(str).str.zfill(5)
    df["geoid"] = df["geoid"].astype(str).str.zfill(5)

    if logger:
        logger.info(f"  Got {len(df):,} ZIP-county pairs")
    return df


def clean_column_name(name: str) -> str:
    """Snake-case a spreadsheet header: 'ZCTA UNS' -> 'zcta_uns'."""
    name = re.sub(r"[^0-9a-zA-Z]+", "_", str(name)).strip("_")
    name = re.sub(r"(?<=[a-z0-9])(?=[A-Z][a-z])", "_", name)
    return name.lower()


def read_uns_workbook(
    path: Path | str,
    state_abbr: str,
    sheet_name: str | int = 0,
    logger: logging.Logger | None = None,
) -> pd.DataFrame:
    """
    Read the HRSA Unmet Need Score workbook for one state.

    Returns:
        DataFrame with zip_code (five-digit string), zcta and zcta_uns.
    """
    raw = pd.read_excel(path, sheet_name=sheet_name, engine="openpyxl")
    if "State" not in raw.columns:
        raise MissingFieldError("State", "uns")
    raw = raw[raw["State"] == state_abbr]

    raw.columns = [clean_column_name(c) for c in raw.columns]
    raw = raw.rename(columns={"zip_code_tabulation_area_zcta_map": "zcta"})
    for col in ("zip_code", "zcta_uns"):
        if col not in raw.columns:
            raise MissingFieldError(col, "uns")

    out = pd.DataFrame({
        "zip_code": raw["zip_code"].astype(str).str.replace(r"\.0$", "", regex=True).str.zfill(5),
        "zcta": raw["zcta"] if "zcta" in raw.columns else pd.NA,
        "zcta_uns": pd.to_numeric(raw["zcta_uns"], errors="coerce"),
    })

    if logger:
        logger.info(f"UNS workbook: {len(out):,} ZIP rows for {state_abbr}")
    return out.reset_index(drop=True)


def read_utilization_csv(
    path: Path | str,
    county_column: str,
    value_columns: Mapping[str, str],
    logger: logging.Logger | None = None,
) -> pd.DataFrame:
    """
    Read a county-level utilization extract.

    Args:
        path: CSV path.
        county_column: Column holding the county name.
        value_columns: Raw column -> attribute name, e.g.
            {"Number_of_Patients": "Acute_HospAdmit"}.
        logger: Optional logger.

    Returns:
        DataFrame with county_name and the renamed value columns.
    """
    raw = pd.read_csv(path)
    for col in (county_column, *value_columns):
        if col not in raw.columns:
            raise MissingFieldError(col, Path(path).name)

    out = raw[[county_column, *value_columns]].rename(
        columns={county_column: COUNTY_KEY, **value_columns}
    )
    for col in value_columns.values():
        out[col] = pd.to_numeric(out[col], errors="coerce")

    if logger:
        logger.info(f"Utilization {Path(path).name}: {len(out)} rows")
    return out
