"""
QA checks on the assembled county tables.

Each check returns a QAResult (truthy when it passed) and, given a
logger, records a qa_check event. Checks never raise on bad data;
run_database_qa_checks() decides whether failures stop the build.
"""

import logging
from dataclasses import dataclass
from typing import Any

import pandas as pd

from county_health_db.keys import COUNTY_KEY
from county_health_db.logging_utils import log_qa_check


# RUCC 2023: 1 = metro of 1M+ ... 9 = nonmetro, under 5k urban, not adjacent
RUCC_RANGE = (1, 9)

# PLACES crude prevalence, in percent
PREVALENCE_RANGE = (0, 100)

_SAMPLE_SIZE = 5


@dataclass
class QAResult:
    check_name: str
    passed: bool
    message: str
    details: dict[str, Any] | None = None

    def __bool__(self) -> bool:
        return self.passed


def _record(
    logger: logging.Logger | None,
    check_name: str,
    passed: bool,
    message: str,
    **details: Any,
) -> QAResult:
    result = QAResult(check_name, passed, message, details or None)
    if logger:
        log_qa_check(logger, check_name, passed, message, **details)
    return result


def _absent(df: pd.DataFrame, columns) -> list[str]:
    return [c for c in columns if c not in df.columns]


def check_unique_ids(
    df: pd.DataFrame,
    id_column: str,
    logger: logging.Logger | None = None,
) -> QAResult:
    """One row per key; the most repeated keys are sampled into the details."""
    if id_column not in df.columns:
        return _record(logger, "unique_ids", False, f"ID column '{id_column}' not found",
                       columns=list(df.columns))

    counts = df[id_column].value_counts()
    repeated = counts[counts > 1]
    if repeated.empty:
        return _record(logger, "unique_ids", True, f"{len(df)} unique {id_column} values",
                       column=id_column, total=len(df))

    extra_rows = int(repeated.sum() - len(repeated))
    return _record(
        logger, "unique_ids", False, f"{extra_rows} duplicate {id_column} rows",
        column=id_column,
        total=len(df),
        duplicates=extra_rows,
        sample_duplicates={str(k): int(v) for k, v in repeated.head(_SAMPLE_SIZE).items()},
    )


def check_no_nulls(
    df: pd.DataFrame,
    columns: list[str],
    logger: logging.Logger | None = None,
) -> QAResult:
    missing = _absent(df, columns)
    if missing:
        return _record(logger, "no_nulls", False, f"Columns not found: {missing}",
                       missing_columns=missing)

    null_counts = df[list(columns)].isna().sum()
    with_nulls = {c: int(n) for c, n in null_counts.items() if n > 0}
    if not with_nulls:
        return _record(logger, "no_nulls", True, f"{len(columns)} columns complete",
                       columns=list(columns))
    return _record(logger, "no_nulls", False, f"{sum(with_nulls.values())} null values",
                   columns_with_nulls=with_nulls)


def check_row_count(
    df: pd.DataFrame,
    expected: int,
    label: str = "table",
    logger: logging.Logger | None = None,
) -> QAResult:
    """Exact row count, e.g. a left-joined table against its anchor."""
    actual = len(df)
    message = f"{actual} rows" if actual == expected else f"{actual} rows, expected {expected}"
    return _record(logger, f"row_count_{label}", actual == expected, message,
                   actual=actual, expected=expected)


def check_value_range(
    df: pd.DataFrame,
    column: str,
    min_value: float,
    max_value: float,
    logger: logging.Logger | None = None,
) -> QAResult:
    """
    Non-null values of `column` within [min_value, max_value].

    Nulls are not range failures; completeness is check_no_nulls' job.
    """
    check_name = f"value_range_{column}"
    if column not in df.columns:
        return _record(logger, check_name, False, f"Column '{column}' not found")

    values = pd.to_numeric(df[column], errors="coerce").dropna()
    outside = values[~values.between(min_value, max_value)]
    bounds = f"[{min_value}, {max_value}]"
    if outside.empty:
        return _record(logger, check_name, True, f"{len(values)} values within {bounds}",
                       n=int(len(values)))
    return _record(
        logger, check_name, False, f"{len(outside)} values outside {bounds}",
        n_out_of_range=int(len(outside)),
        observed_min=float(values.min()),
        observed_max=float(values.max()),
    )


def check_weights_positive(
    crosswalk: pd.DataFrame,
    group_column: str = "geoid",
    weight_column: str = "res_ratio",
    logger: logging.Logger | None = None,
) -> QAResult:
    """Every county in the ZIP crosswalk must have a positive total residential weight."""
    missing = _absent(crosswalk, (group_column, weight_column))
    if missing:
        return _record(logger, "weights_positive", False, f"Columns not found: {missing}",
                       missing_columns=missing)

    totals = pd.to_numeric(crosswalk[weight_column], errors="coerce").groupby(crosswalk[group_column]).sum()
    empty_groups = totals.index[totals <= 0]
    if len(empty_groups) == 0:
        return _record(logger, "weights_positive", True,
                       f"{len(totals)} groups with positive {weight_column} totals",
                       groups=int(len(totals)))
    return _record(logger, "weights_positive", False,
                   f"{len(empty_groups)} groups with non-positive {weight_column} totals",
                   sample_groups=[str(g) for g in empty_groups[:_SAMPLE_SIZE]])


def run_database_qa_checks(
    df: pd.DataFrame,
    anchor_rows: int,
    prevalence_columns: list[str] | None = None,
    logger: logging.Logger | None = None,
    fail_on_error: bool = True,
) -> list[QAResult]:
    """
    Standard checks on the county database before it is written.

    Checks the key (unique, non-null), that the joins kept exactly the RUCC
    anchor's rows, the RUCC code range and the given PLACES percent columns.

    Raises:
        ValueError: Listing every failed check, if fail_on_error is set.
    """
    results = [
        check_unique_ids(df, COUNTY_KEY, logger),
        check_no_nulls(df, [COUNTY_KEY], logger),
        check_row_count(df, anchor_rows, "county_database", logger),
        check_value_range(df, "RUCC_2023", *RUCC_RANGE, logger=logger),
    ]
    results.extend(
        check_value_range(df, column, *PREVALENCE_RANGE, logger=logger)
        for column in prevalence_columns or ()
    )

    failed = [r for r in results if not r]
    if fail_on_error and failed:
        raise ValueError("QA checks failed:\n" + "\n".join(f"{r.check_name}: {r.message}" for r in failed))
    return results
