"""
Standardized-score outlier filtering for distribution checks.

Each analysis filters its own copy; the shared county table is never
mutated. Rows with a null value in the checked column are excluded
(complete-case) before scores are computed.
"""

import logging

import numpy as np
import pandas as pd
from scipy import stats

from county_health_db.errors import DegenerateColumnError
from county_health_db.logging_utils import log_qa_check


DEFAULT_Z_THRESHOLD = 3.0


def standardize(values: pd.Series, column: str | None = None) -> pd.Series:
    """
    Sample z-scores (ddof=1) of a numeric series; nulls stay null.

    Raises:
        DegenerateColumnError: If fewer than two non-null values remain or
            all non-null values are equal up to rounding.
    """
    name = column or str(values.name)
    numeric = pd.to_numeric(values, errors="coerce")
    present = numeric.dropna()

    if len(present) < 2:
        raise DegenerateColumnError(name, f"{len(present)} non-null values")
    # Spread at rounding level counts as constant: [0.3, 0.1 + 0.2] has std ~1e-17
    spread = present.std(ddof=1)
    if present.nunique() == 1 or spread <= np.finfo(float).eps * max(1.0, abs(present.mean())):
        raise DegenerateColumnError(name, "zero variance")

    z = stats.zscore(present.to_numpy(dtype=float), ddof=1)
    if not np.isfinite(z).all():
        raise DegenerateColumnError(name, "non-finite z-scores")

    scores = pd.Series(np.nan, index=values.index, dtype=float)
    scores[present.index] = z
    return scores


def filter_outliers(
    df: pd.DataFrame,
    column: str,
    threshold: float = DEFAULT_Z_THRESHOLD,
    logger: logging.Logger | None = None,
) -> pd.DataFrame:
    """
    Return a copy of df without null rows and rows with |z| > threshold.

    Args:
        df: Input table (not modified).
        column: Numeric column to standardize.
        threshold: Absolute z-score cut-off.
        logger: Optional logger.

    Raises:
        KeyError: If column is absent.
        DegenerateColumnError: If the column cannot be standardized.
    """
    if column not in df.columns:
        raise KeyError(f"Column '{column}' not found")

    complete = df[pd.to_numeric(df[column], errors="coerce").notna()]
    scores = standardize(complete[column], column)
    kept = complete[scores.abs() <= threshold].copy()

    if logger:
        n_null = len(df) - len(complete)
        n_out = len(complete) - len(kept)
        log_qa_check(logger, f"outliers_{column}", True,
                     f"{n_out} rows beyond |z|>{threshold}, {n_null} null rows excluded",
                     column=column, n_input=len(df), n_kept=len(kept))
    return kept


def describe_distribution(values: pd.Series) -> dict[str, float]:
    """Summary statistics of a numeric series (nulls ignored)."""
    numeric = pd.to_numeric(values, errors="coerce").dropna()
    if numeric.empty:
        return {"n": 0}
    return {
        "n": int(len(numeric)),
        "mean": float(numeric.mean()),
        "std": float(numeric.std(ddof=1)) if len(numeric) > 1 else float("nan"),
        "min": float(numeric.min()),
        "median": float(numeric.median()),
        "max": float(numeric.max()),
        "skew": float(stats.skew(numeric)) if len(numeric) > 2 else float("nan"),
    }
