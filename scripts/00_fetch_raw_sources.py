#!/usr/bin/env python3
"""
00_fetch_raw_sources.py

Download the remote county-level sources and store them as raw CSVs.

Pipeline Step: 00

Inputs:
    - CDC PLACES county data (all states; filtered to the study state)
    - USDA ERS Rural-Urban Continuum Codes 2023
    - Census API ACS 5-year tables B01001, B01001H, B01001I, B19001, B27010
    - HUD USPS ZIP-to-county crosswalk (needs HUD_API_TOKEN)
    - configs/params.yml, configs/sources.yml

Outputs:
    - data/raw/places/places_county.csv
    - data/raw/rucc/rucc_2023.csv
    - data/raw/acs/acs_<table>_<year>.csv
    - data/raw/uns/hud_zip_county.csv

Not fetched (manual downloads):
    - data/raw/uns/full_UNS.xlsx (HRSA Unmet Need Score workbook)
    - data/raw/utilization/*.csv

Failure Modes:
    - HTTP error from any endpoint
    - Missing HUD_API_TOKEN
"""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import logging

import pandas as pd

from county_health_db.config import Params, load_params, load_sources
from county_health_db.io_utils import atomic_write_csv
from county_health_db.logging_utils import (
    get_logger, get_run_id, log_output_written, log_step_end, log_step_start
)
from county_health_db.paths import paths
from county_health_db.sources import (
    fetch_acs_table, fetch_hud_zip_county, fetch_places_csv, fetch_rucc_csv
)


SCRIPT_NAME = "00_fetch_raw_sources"


def _write_raw(df: pd.DataFrame, path: Path, logger: logging.Logger) -> Path:
    atomic_write_csv(path, df)
    log_output_written(logger, path, row_count=len(df))
    return path


def fetch_places(params: Params, sources: dict, logger: logging.Logger) -> Path:
    """Download PLACES and keep the study state's rows."""
    log_step_start(logger, "fetch_places")
    cfg = sources["places"]
    raw = fetch_places_csv(cfg["url"], logger)
    state_rows = raw[raw["StateAbbr"] == params.state_abbr]
    path = _write_raw(state_rows, paths.raw_places / cfg["raw_file"], logger)
    log_step_end(logger, "fetch_places", rows=len(state_rows))
    return path


def fetch_rucc(sources: dict, logger: logging.Logger) -> Path:
    """Download the RUCC file (all states; the normalizer filters)."""
    log_step_start(logger, "fetch_rucc")
    cfg = sources["rucc"]
    raw = fetch_rucc_csv(cfg["url"], logger, encoding=cfg.get("encoding", "latin-1"))
    path = _write_raw(raw, paths.raw_rucc / cfg["raw_file"], logger)
    log_step_end(logger, "fetch_rucc", rows=len(raw))
    return path


def fetch_acs(params: Params, sources: dict, logger: logging.Logger) -> list[Path]:
    """Fetch each configured ACS table for the study state's counties."""
    log_step_start(logger, "fetch_acs", tables=list(params.acs_tables))
    pattern = sources["acs"]["raw_file"]
    written = []
    for table in params.acs_tables:
        df = fetch_acs_table(table, params.state_fips, params.acs_year,
                             dataset=params.acs_dataset, logger=logger)
        path = paths.raw_acs / pattern.format(table=table, year=params.acs_year)
        written.append(_write_raw(df, path, logger))
    log_step_end(logger, "fetch_acs", files=len(written))
    return written


def fetch_crosswalk(params: Params, sources: dict, logger: logging.Logger) -> Path:
    """Fetch the HUD ZIP-to-county crosswalk."""
    log_step_start(logger, "fetch_hud_crosswalk")
    df = fetch_hud_zip_county(params.state_abbr, logger=logger)
    path = _write_raw(df, paths.raw_uns / sources["hud_crosswalk"]["raw_file"], logger)
    log_step_end(logger, "fetch_hud_crosswalk", rows=len(df))
    return path


def main():
    """Main entry point for 00_fetch_raw_sources."""

    run_id = get_run_id()
    logger = get_logger(SCRIPT_NAME, run_id)

    logger.info("=" * 60)
    logger.info(f"Starting {SCRIPT_NAME}")
    logger.info(f"Run ID: {run_id}")
    logger.info("=" * 60)

    try:
        params = load_params()
        sources = load_sources()
        logger.info(f"Study area: {params.state_name} ({params.state_abbr}, FIPS {params.state_fips})")

        outputs = [
            fetch_places(params, sources, logger),
            fetch_rucc(sources, logger),
            *fetch_acs(params, sources, logger),
            fetch_crosswalk(params, sources, logger),
        ]

        uns_workbook = paths.raw_uns / sources["uns"]["raw_file"]
        if not uns_workbook.exists():
            logger.warning(f"UNS workbook not found, download it manually: {uns_workbook}")

        logger.info("=" * 60)
        logger.info(f"✅ {SCRIPT_NAME} completed successfully")
        logger.info(f"   Raw files written: {len(outputs)}")
        logger.info("=" * 60)

        return 0

    except Exception as e:
        logger.exception(f"Pipeline failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
