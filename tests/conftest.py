"""
Pytest configuration and shared fixtures.

This module provides common fixtures used across test modules.
"""

import logging
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
import pandas as pd
import numpy as np


STATE_ABBR = "NC"
PLACES_MEASURES = ["CANCER", "CHD", "CSMOKING", "OBESITY", "STROKE", "COPD", "LACKTRPT"]


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    from county_health_db.paths import get_project_root
    return get_project_root()


@pytest.fixture(scope="session")
def test_logger(tmp_path_factory):
    """Logger writing JSONL to a temporary directory."""
    from county_health_db.logging_utils import get_logger
    return get_logger(
        "pytest",
        run_id="pytest_session",
        console_level=logging.WARNING,
        log_dir=tmp_path_factory.mktemp("logs"),
    )


@pytest.fixture
def three_county_anchor():
    """RUCC-style anchor table with three counties."""
    return pd.DataFrame({
        "county_name": ["Alamance County", "Bertie County", "Camden County"],
        "RUCC_2023": [2.0, 8.0, 5.0],
    })


@pytest.fixture
def rucc_long():
    """RUCC long file: one row per county and attribute, two states."""
    rows = []
    for fips, state, county, code in [
        ("37001", "NC", "Alamance County", "2"),
        ("37015", "NC", "Bertie County", "8"),
        ("37029", "NC", "Camden County", "5"),
        ("51001", "VA", "Accomack County", "7"),
    ]:
        rows.append((fips, state, county, "Population_2020", "100000"))
        rows.append((fips, state, county, "RUCC_2023", code))
        rows.append((fips, state, county, "Description", "Metro - Counties in metro areas"))
    return pd.DataFrame(rows, columns=["FIPS", "State", "County_Name", "Attribute", "Value"])


@pytest.fixture
def places_long():
    """PLACES long file for three NC counties plus rows to be filtered out."""
    rows = []
    for i, county in enumerate(["Alamance", "Bertie", "Camden"]):
        for j, measure in enumerate(PLACES_MEASURES):
            value = 10.0 + i + j
            rows.append((2022, STATE_ABBR, county, "BRFSS", measure, "CrdPrv", value))
            rows.append((2022, STATE_ABBR, county, "BRFSS", measure, "AgeAdjPrv", value - 0.5))
            rows.append((2021, STATE_ABBR, county, "BRFSS", measure, "CrdPrv", value + 1.0))
    rows.append((2022, "VA", "Accomack", "BRFSS", "CANCER", "CrdPrv", 9.0))
    return pd.DataFrame(rows, columns=[
        "Year", "StateAbbr", "LocationName", "DataSource", "MeasureId", "DataValueTypeID", "Data_Value",
    ])


@pytest.fixture
def make_acs_tables():
    """
    Factory for raw ACS tables in Census API wide layout.

    Every sex-by-age cell of B01001 is 100, B01001H 50 and B01001I 10;
    B19001 cells are 10; B27010 cells are 5 except group totals (100).
    """
    from county_health_db.field_maps import ACS_TABLE_MAPPINGS, acs_var, raw_columns

    def _make(names=("Alamance", "Bertie", "Camden"), geoids=("37001", "37015", "37029")):
        full_names = [f"{n} County, North Carolina" for n in names]
        fill = {"B01001": 100.0, "B01001H": 50.0, "B01001I": 10.0, "B19001": 10.0, "B27010": 5.0}
        tables = {}
        for table, mappings in ACS_TABLE_MAPPINGS.items():
            df = pd.DataFrame({"GEOID": list(geoids), "NAME": full_names})
            for col in raw_columns(mappings):
                df[col] = fill[table]
            tables[table] = df
        tables["B01001"][acs_var("B01001", 1)] = 2800.0
        tables["B19001"][acs_var("B19001", 1)] = 160.0
        for cell in (2, 18, 34, 51):
            tables["B27010"][acs_var("B27010", cell)] = 100.0
        return tables

    return _make


@pytest.fixture
def regression_frame():
    """
    Synthetic county table with a count-rate outcome and predictors.

    RATE depends on X1 and the RUCC_CAT level; X2 is unrelated noise.
    """
    rng = np.random.default_rng(20240601)
    n = 60
    x1 = rng.uniform(0.0, 1.0, n)
    x2 = rng.uniform(0.0, 1.0, n)
    cat = np.array(["Micro", "Rural", "Urban"])[np.arange(n) % 3]
    effect = np.select([cat == "Micro", cat == "Rural"], [0.3, 0.6], 0.0)
    mu = np.exp(1.0 + 1.5 * x1 + effect)
    counts = rng.poisson(mu * 20).astype(float)
    return pd.DataFrame({
        "county_name": [f"COUNTY{i:02d}" for i in range(n)],
        "RATE": counts / 20.0,
        "X1": x1,
        "X2": x2,
        "RUCC_CAT": cat,
        "Y": 2.0 + 3.0 * x1 + rng.normal(0.0, 0.1, n),
    })


# Markers for test categorization
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (runs several pipeline stages)"
    )
