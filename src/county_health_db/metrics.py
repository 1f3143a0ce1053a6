"""
Derived metrics computed from the assembled county table.

Two kinds of definitions, applied in order by apply_metrics:

- RatioMetric: sum(numerator columns) / sum(denominator columns) / divisor.
  A null or zero denominator yields null, never an exception or a zero.
- BucketMetric: ordered cutoffs mapped to labels. All cutoffs but the last
  are strict upper bounds; the last is inclusive. Anything left over,
  null included, gets the missing label.

The metric catalog is defined once here and referenced by name everywhere
else.
"""

import logging
from dataclasses import dataclass
from typing import Sequence, Union

import pandas as pd

from county_health_db.errors import MissingFieldError
from county_health_db.field_maps import age_column


@dataclass(frozen=True)
class RatioMetric:
    """Row-wise ratio of column sums."""
    name: str
    numerator: tuple[str, ...]
    denominator: tuple[str, ...] = ()
    divisor: float = 1.0

    def columns(self) -> list[str]:
        return [*self.numerator, *self.denominator]

    def compute(self, df: pd.DataFrame) -> pd.Series:
        num = _numeric(df, self.numerator).sum(axis=1, skipna=False)
        if self.denominator:
            den = _numeric(df, self.denominator).sum(axis=1, skipna=False)
            num = num / den.where(den != 0)
        return num / self.divisor


@dataclass(frozen=True)
class BucketMetric:
    """Categorical bucket of a numeric column by ascending cutoffs."""
    name: str
    column: str
    bins: tuple[tuple[float, str], ...]
    missing_label: str = "Missing"

    def __post_init__(self):
        cutoffs = [c for c, _ in self.bins]
        if not cutoffs:
            raise ValueError(f"BucketMetric '{self.name}' needs at least one cutoff")
        if any(b <= a for a, b in zip(cutoffs, cutoffs[1:])):
            raise ValueError(f"BucketMetric '{self.name}' cutoffs must be strictly ascending: {cutoffs}")

    def columns(self) -> list[str]:
        return [self.column]

    def compute(self, df: pd.DataFrame) -> pd.Series:
        values = pd.to_numeric(df[self.column], errors="coerce")
        labels = pd.Series(self.missing_label, index=df.index, dtype=object)
        assigned = values.isna()

        last = len(self.bins) - 1
        for i, (cutoff, label) in enumerate(self.bins):
            hit = (values <= cutoff) if i == last else (values < cutoff)
            hit = hit & ~assigned
            labels[hit] = label
            assigned = assigned | hit
        return labels


Metric = Union[RatioMetric, BucketMetric]


def _numeric(df: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    return df[list(columns)].apply(pd.to_numeric, errors="coerce")


def apply_metrics(
    df: pd.DataFrame,
    metrics: Sequence[Metric],
    source: str = "assembled table",
    logger: logging.Logger | None = None,
) -> pd.DataFrame:
    """
    Append derived metric columns to a copy of df.

    Raw columns are kept. A metric may reference metrics defined earlier in
    the same list.

    Raises:
        MissingFieldError: If a metric references an absent column.
    """
    out = df.copy()
    for metric in metrics:
        for col in metric.columns():
            if col not in out.columns:
                raise MissingFieldError(col, source)
        out[metric.name] = metric.compute(out)
        if logger:
            logger.debug(f"Derived {metric.name}: {int(out[metric.name].isna().sum())} nulls")
    return out


def metric_names(metrics: Sequence[Metric]) -> list[str]:
    return [m.name for m in metrics]


# =============================================================================
# Catalog
# =============================================================================

_WORKING_AGE = ("A1934", "A3564")


def _insurance_share(name: str, category: str) -> RatioMetric:
    return RatioMetric(
        name,
        numerator=tuple(f"{category}_{g}" for g in _WORKING_AGE),
        denominator=tuple(f"POP_{g}" for g in _WORKING_AGE),
    )


def _prevalence(name: str, measure: str) -> RatioMetric:
    # PLACES crude prevalence is a percent
    return RatioMetric(name, numerator=(f"BRFSS_{measure}_CrdPrv",), divisor=100.0)


RUCC_CATEGORY = BucketMetric(
    "RUCC_CAT",
    column="RUCC_2023",
    bins=((4, "Urban"), (7, "Micro"), (10, "Rural")),
)

DATABASE_METRICS: list[Metric] = [
    RatioMetric("HHINC_UNDER25K", ("hh_income_under25k",), ("total_hh",)),
    RatioMetric("HHINC_OVER100K", ("hh_income_over100k",), ("total_hh",)),
    _insurance_share("PUB_INS_PCT", "PUB_INS"),
    _insurance_share("PRIV_INS_PCT", "PRIV_INS"),
    _insurance_share("UNINS_PCT", "UNINS"),
    RatioMetric(
        "ABOVE65",
        numerator=tuple(
            age_column("total", sex, band)
            for sex in ("m", "f")
            for band in ("65to74", "75to84", "85above")
        ),
        denominator=("totalpop",),
    ),
    RUCC_CATEGORY,
    _prevalence("CANCER", "CANCER"),
    _prevalence("HEARTDIS", "CHD"),
    _prevalence("SMOKING", "CSMOKING"),
    _prevalence("OBESITY", "OBESITY"),
    _prevalence("STROKE", "STROKE"),
    _prevalence("COPD", "COPD"),
    _prevalence("LACKTRPT", "LACKTRPT"),
]

UTILIZATION_METRICS: list[Metric] = [
    RatioMetric("HOSP_ADMIT", ("Acute_HospAdmit",), ("totalpop",)),
    RatioMetric("HOMEHEALTH", ("total_homehealth_visits",), ("totalpop",)),
]
