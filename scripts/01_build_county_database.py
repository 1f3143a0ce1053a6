#!/usr/bin/env python3
"""
01_build_county_database.py

Normalize the raw sources and assemble the county population database.

Pipeline Step: 01

Inputs:
    - data/raw/rucc, data/raw/places, data/raw/acs (from step 00)
    - data/raw/uns/hud_zip_county.csv and full_UNS.xlsx
    - configs/params.yml, configs/sources.yml

Outputs:
    - data/clean/county_population_database.csv
    - data/clean/county_population_database_metadata.json

QA Checks:
    - Unique, non-null county keys
    - Row count equals the RUCC anchor (left-join invariant)
    - RUCC codes in 1-9, PLACES prevalence in 0-100
    - Positive crosswalk weight per county

Failure Modes:
    - Missing raw file or mapped column
    - Duplicate county keys within a source
    - Schema drift in the assembled table
"""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import logging

import pandas as pd

from county_health_db.config import Params, load_params, load_sources
from county_health_db.field_maps import ACS_TABLES
from county_health_db.hashing import write_metadata_sidecar
from county_health_db.io_utils import atomic_write_csv, read_csv_table
from county_health_db.join import join_sources
from county_health_db.keys import COUNTY_KEY
from county_health_db.logging_utils import (
    get_logger, get_run_id, log_output_written, log_step_end, log_step_start
)
from county_health_db.metrics import DATABASE_METRICS, apply_metrics
from county_health_db.normalize import (
    aggregate_uns_to_county, normalize_acs, normalize_places, normalize_rucc
)
from county_health_db.paths import ensure_dir, paths
from county_health_db.qa import check_weights_positive, run_database_qa_checks
from county_health_db.schemas import SCHEMA_COUNTY_DATABASE, validate_schema
from county_health_db.sources import read_uns_workbook


SCRIPT_NAME = "01_build_county_database"


def raw_inputs(params: Params, sources: dict) -> dict[str, Path]:
    """Raw file locations keyed by source."""
    acs_pattern = sources["acs"]["raw_file"]
    inputs = {
        "rucc": paths.raw_rucc / sources["rucc"]["raw_file"],
        "places": paths.raw_places / sources["places"]["raw_file"],
        "hud_crosswalk": paths.raw_uns / sources["hud_crosswalk"]["raw_file"],
        "uns": paths.raw_uns / sources["uns"]["raw_file"],
    }
    for table in ACS_TABLES:
        inputs[f"acs_{table}"] = paths.raw_acs / acs_pattern.format(table=table, year=params.acs_year)
    return inputs


def normalize_sources(
    params: Params,
    sources: dict,
    inputs: dict[str, Path],
    logger: logging.Logger,
) -> dict[str, pd.DataFrame]:
    """Read every raw file and normalize it to one row per county."""
    log_step_start(logger, "normalize_sources")

    rucc = normalize_rucc(read_csv_table(inputs["rucc"], string_columns=("FIPS",)),
                          params.state_abbr, logger)
    places = normalize_places(read_csv_table(inputs["places"]),
                              params.state_abbr, params.places_year, logger)

    acs_raw = {
        table: read_csv_table(inputs[f"acs_{table}"], string_columns=("GEOID",))
        for table in ACS_TABLES
    }
    acs = normalize_acs(acs_raw, logger)

    crosswalk = read_csv_table(inputs["hud_crosswalk"], string_columns=("zip", "geoid"))
    check_weights_positive(crosswalk, logger=logger)
    uns_zip = read_uns_workbook(inputs["uns"], params.state_abbr,
                                sheet_name=sources["uns"].get("sheet", 0), logger=logger)
    uns = aggregate_uns_to_county(crosswalk, uns_zip, acs[["geoid", COUNTY_KEY]], logger)

    log_step_end(logger, "normalize_sources", counties_rucc=len(rucc), counties_acs=len(acs))
    return {"rucc": rucc, "places": places, "acs": acs, "uns": uns}


def assemble_database(normalized: dict[str, pd.DataFrame], logger: logging.Logger) -> pd.DataFrame:
    """Left-join PLACES, ACS and UNS onto the RUCC anchor and derive metrics."""
    log_step_start(logger, "assemble_database")

    database = join_sources(
        normalized["rucc"],
        [("places", normalized["places"]), ("acs", normalized["acs"]), ("uns", normalized["uns"])],
        anchor_name="rucc",
        logger=logger,
    )
    database = apply_metrics(database, DATABASE_METRICS, "county database", logger)

    log_step_end(logger, "assemble_database", rows=len(database), columns=database.shape[1])
    return database


def main():
    """Main entry point for 01_build_county_database."""

    run_id = get_run_id()
    logger = get_logger(SCRIPT_NAME, run_id)

    logger.info("=" * 60)
    logger.info(f"Starting {SCRIPT_NAME}")
    logger.info(f"Run ID: {run_id}")
    logger.info("=" * 60)

    try:
        params = load_params()
        sources = load_sources()
        inputs = raw_inputs(params, sources)

        normalized = normalize_sources(params, sources, inputs, logger)
        database = assemble_database(normalized, logger)

        prevalence_cols = [c for c in database.columns if c.startswith("BRFSS_") and c.endswith("Prv")]
        run_database_qa_checks(database, len(normalized["rucc"]), prevalence_cols, logger)
        validate_schema(database, SCHEMA_COUNTY_DATABASE)

        output_path = ensure_dir(paths.data_clean) / params.database_file
        atomic_write_csv(output_path, database)
        log_output_written(logger, output_path, row_count=len(database))

        metadata_path = write_metadata_sidecar(
            output_path=output_path,
            run_id=run_id,
            input_files=list(inputs.values()),
            config_files=[paths.params_yml, paths.sources_yml],
            parameters={
                "state_abbr": params.state_abbr,
                "acs_year": params.acs_year,
                "places_year": params.places_year,
            },
            row_count=len(database),
        )
        logger.info(f"Wrote metadata sidecar: {metadata_path}")

        logger.info("=" * 60)
        logger.info(f"✅ {SCRIPT_NAME} completed successfully")
        logger.info(f"   Counties: {len(database)}")
        logger.info(f"   Columns: {database.shape[1]}")
        logger.info(f"   Output: {output_path}")
        logger.info("=" * 60)

        return 0

    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        logger.error("Run 00_fetch_raw_sources.py first and place the UNS workbook under data/raw/uns/.")
        return 1

    except Exception as e:
        logger.exception(f"Pipeline failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
