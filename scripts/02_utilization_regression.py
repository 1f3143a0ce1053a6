#!/usr/bin/env python3
"""
02_utilization_regression.py

Join county utilization counts to the population database and fit the
model catalog.

Pipeline Step: 02

Inputs:
    - data/clean/county_population_database.csv (from step 01)
    - data/raw/utilization/Destination_agg.csv (acute admissions by patient origin)
    - data/raw/utilization/Homehealth_agg.csv (home health visits by county)
    - configs/params.yml, configs/sources.yml, configs/models.yml

Outputs:
    - reports/tables/model_summary.md

Analysis:
    - HOSP_ADMIT and HOMEHEALTH rates per resident
    - Outcome distributions after |z| > 3 outlier removal
    - Complete-case correlation matrix of the model variables
    - Quasi-Poisson and OLS fits from configs/models.yml
    - Forward and backward AIC selection

Failure Modes:
    - Missing database or utilization file
    - Degenerate outcome column
    - Singular design matrix
"""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import logging

import pandas as pd

from county_health_db.config import Params, load_model_specs, load_params, load_sources, load_stepwise_specs
from county_health_db.io_utils import atomic_write_text, read_csv_table
from county_health_db.join import join_sources
from county_health_db.keys import COUNTY_KEY
from county_health_db.logging_utils import (
    get_logger, get_run_id, log_output_written, log_step_end, log_step_start
)
from county_health_db.metrics import DATABASE_METRICS, UTILIZATION_METRICS, apply_metrics, metric_names
from county_health_db.models import FittedModel, fit_model
from county_health_db.outliers import describe_distribution, filter_outliers
from county_health_db.paths import ensure_dir, paths
from county_health_db.reporting import (
    build_model_report, coefficient_frame, correlation_table, format_coefficient_table
)
from county_health_db.schemas import SCHEMA_COUNTY_DATABASE, SCHEMA_MODEL_DATA, validate_schema
from county_health_db.sources import read_utilization_csv
from county_health_db.stepwise import StepwiseResult, stepwise


SCRIPT_NAME = "02_utilization_regression"


def load_model_data(params: Params, sources: dict, logger: logging.Logger) -> pd.DataFrame:
    """Read the county database, join utilization counts and derive rates."""
    log_step_start(logger, "load_model_data")

    database = read_csv_table(paths.data_clean / params.database_file,
                              string_columns=(COUNTY_KEY, "geoid"))
    validate_schema(database, SCHEMA_COUNTY_DATABASE)

    extracts = []
    for name, cfg in sources["utilization"].items():
        extract = read_utilization_csv(
            paths.raw_utilization / cfg["raw_file"],
            county_column=cfg["county_column"],
            value_columns=cfg["value_columns"],
            logger=logger,
        )
        extracts.append((name, extract))

    model_data = join_sources(database, extracts, anchor_name="county_database", logger=logger)
    model_data = apply_metrics(model_data, UTILIZATION_METRICS, "model data", logger)
    validate_schema(model_data, SCHEMA_MODEL_DATA)

    log_step_end(logger, "load_model_data", rows=len(model_data))
    return model_data


def outcome_distributions(
    model_data: pd.DataFrame,
    params: Params,
    logger: logging.Logger,
) -> dict[str, dict]:
    """Summaries of each outcome after outlier removal (on a copy)."""
    log_step_start(logger, "outcome_distributions")
    distributions = {}
    for column in params.outlier_columns:
        kept = filter_outliers(model_data, column, params.z_threshold, logger)
        distributions[column] = describe_distribution(kept[column])
    log_step_end(logger, "outcome_distributions")
    return distributions


def fit_catalog(model_data: pd.DataFrame, logger: logging.Logger) -> list[FittedModel]:
    """Fit every model in configs/models.yml."""
    log_step_start(logger, "fit_catalog")
    fits = []
    for spec in load_model_specs():
        fitted = fit_model(model_data, spec, logger)
        for line in format_coefficient_table(fitted).splitlines():
            logger.info(line)
        fits.append(fitted)

    coef = coefficient_frame(fits)
    n_sig = int((coef["p_value"] < 0.05).sum())
    logger.info(f"{len(fits)} models, {len(coef)} coefficients, {n_sig} with p < 0.05")
    log_step_end(logger, "fit_catalog", models=len(fits))
    return fits


def run_selection(model_data: pd.DataFrame, logger: logging.Logger) -> list[StepwiseResult]:
    """Run every configured stepwise selection in each of its directions."""
    log_step_start(logger, "stepwise_selection")
    results = []
    for entry in load_stepwise_specs():
        for direction in entry.directions:
            result = stepwise(model_data, entry.spec, direction, logger)
            logger.info(f"{entry.spec.name} ({direction}): selected {list(result.selected)}")
            results.append(result)
    log_step_end(logger, "stepwise_selection", runs=len(results))
    return results


def main():
    """Main entry point for 02_utilization_regression."""

    run_id = get_run_id()
    logger = get_logger(SCRIPT_NAME, run_id)

    logger.info("=" * 60)
    logger.info(f"Starting {SCRIPT_NAME}")
    logger.info(f"Run ID: {run_id}")
    logger.info("=" * 60)

    try:
        params = load_params()
        sources = load_sources()

        model_data = load_model_data(params, sources, logger)
        distributions = outcome_distributions(model_data, params, logger)

        numeric_metrics = [
            name for name in metric_names(DATABASE_METRICS + UTILIZATION_METRICS)
            if name != "RUCC_CAT"
        ]
        correlations = correlation_table(model_data, numeric_metrics + ["weighted_uns"])

        fits = fit_catalog(model_data, logger)
        selections = run_selection(model_data, logger)

        report = build_model_report(fits, selections, distributions, correlations, params.z_threshold)
        report_path = ensure_dir(paths.reports_tables) / params.report_file
        atomic_write_text(report_path, report)
        log_output_written(logger, report_path)

        logger.info("=" * 60)
        logger.info(f"✅ {SCRIPT_NAME} completed successfully")
        logger.info(f"   Counties: {len(model_data)}")
        logger.info(f"   Models: {len(fits)}, selections: {len(selections)}")
        logger.info(f"   Report: {report_path}")
        logger.info("=" * 60)

        return 0

    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        logger.error("Run 01_build_county_database.py first and place utilization extracts under data/raw/utilization/.")
        return 1

    except Exception as e:
        logger.exception(f"Pipeline failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
