"""
Regression model specification and fitting.

Models are described as data (ModelSpec) and fitted with statsmodels:

- gaussian: ordinary least squares, QR solution of the normal equations.
- quasipoisson: Poisson family with log link fitted by IRLS, dispersion
  estimated from the Pearson chi-square (scale="X2") and t-based inference,
  as R's glm(family = quasipoisson(link = "log")).

Rows with a null response or predictor are excluded before fitting
(complete-case analysis). Categorical predictors are expanded into
indicator columns with the first sorted level as reference.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Sequence

import numpy as np
import pandas as pd
import statsmodels.api as sm
from pandas.api.types import is_numeric_dtype

from county_health_db.errors import MissingFieldError, SingularDesignError
from county_health_db.logging_utils import log_model_fit


FAMILIES = ("gaussian", "quasipoisson")
INTERCEPT = "Intercept"


@dataclass(frozen=True)
class ModelSpec:
    """Response, predictors and family of one regression model."""
    name: str
    response: str
    predictors: tuple[str, ...] = ()
    family: str = "quasipoisson"
    categorical: tuple[str, ...] = ()
    description: str = ""

    def __post_init__(self):
        if self.family not in FAMILIES:
            raise ValueError(f"Unknown family '{self.family}' for model '{self.name}'. Use one of {FAMILIES}")
        object.__setattr__(self, "predictors", tuple(self.predictors))
        object.__setattr__(self, "categorical", tuple(self.categorical))
        if len(set(self.predictors)) != len(self.predictors):
            raise ValueError(f"Model '{self.name}' lists a predictor twice: {self.predictors}")

    def with_predictors(self, predictors: Sequence[str]) -> "ModelSpec":
        return replace(self, predictors=tuple(predictors))

    def formula(self) -> str:
        rhs = " + ".join(
            f"factor({p})" if p in self.categorical else p for p in self.predictors
        ) or "1"
        return f"{self.response} ~ {rhs}"


@dataclass
class DesignMatrix:
    """Complete-case response vector and expanded predictor matrix."""
    y: pd.Series
    X: pd.DataFrame
    terms: dict[str, list[str]]
    n_dropped: int


@dataclass
class FittedModel:
    """Coefficient table and headline diagnostics of a fitted model."""
    spec: ModelSpec
    n_obs: int
    coefficients: pd.DataFrame
    aic: float
    dispersion: float
    df_resid: float
    n_dropped: int = 0
    r_squared: float | None = None
    deviance: float | None = None
    result: Any = field(default=None, repr=False)

    def coefficient(self, term: str) -> float:
        row = self.coefficients[self.coefficients["term"] == term]
        if row.empty:
            raise KeyError(f"Term '{term}' not in model '{self.spec.name}'")
        return float(row["estimate"].iloc[0])


def complete_cases(data: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    """
    Rows of data with no null in any of columns.

    Raises:
        MissingFieldError: If a column is absent.
    """
    for col in columns:
        if col not in data.columns:
            raise MissingFieldError(col, "model data")
    return data.dropna(subset=list(columns))


def _level_label(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _is_categorical(data: pd.DataFrame, spec: ModelSpec, column: str) -> bool:
    return column in spec.categorical or not is_numeric_dtype(data[column])


def _level_order(value) -> tuple:
    # Numbers sort numerically ahead of text, so mixed object columns still order
    if isinstance(value, (int, float, np.number)):
        return (0, float(value), "")
    return (1, 0.0, str(value))


def _indicator_columns(values: pd.Series, column: str) -> pd.DataFrame:
    levels = sorted(values.unique(), key=_level_order)
    labels = list(dict.fromkeys(_level_label(v) for v in levels))
    coded = pd.Categorical(values.map(_level_label), categories=labels)
    dummies = pd.get_dummies(coded, prefix=column, prefix_sep="_", drop_first=True, dtype=float)
    dummies.index = values.index
    return dummies


def build_design(data: pd.DataFrame, spec: ModelSpec) -> DesignMatrix:
    """
    Build the complete-case design matrix for a model.

    Raises:
        MissingFieldError: If the response or a predictor is absent.
        SingularDesignError: If no rows remain, there are no residual
            degrees of freedom, or the columns are linearly dependent.
    """
    rows = complete_cases(data, [spec.response, *spec.predictors])
    if rows.empty:
        raise SingularDesignError(spec.name, "no complete cases")

    y = pd.to_numeric(rows[spec.response], errors="raise").astype(float)

    parts = [pd.DataFrame({INTERCEPT: 1.0}, index=rows.index)]
    terms: dict[str, list[str]] = {INTERCEPT: [INTERCEPT]}
    for col in spec.predictors:
        if _is_categorical(rows, spec, col):
            part = _indicator_columns(rows[col], col)
        else:
            part = rows[[col]].astype(float)
        terms[col] = list(part.columns)
        parts.append(part)

    X = pd.concat(parts, axis=1)

    n, p = X.shape
    if n <= p:
        raise SingularDesignError(spec.name, f"{n} complete rows for {p} parameters")
    rank = int(np.linalg.matrix_rank(X.to_numpy()))
    if rank < p:
        raise SingularDesignError(
            spec.name, f"design rank {rank} < {p} columns (collinear predictors among {list(spec.predictors)})"
        )

    return DesignMatrix(y=y, X=X, terms=terms, n_dropped=len(data) - n)


def significance_stars(p_value: float) -> str:
    """R-style significance codes."""
    if p_value is None or np.isnan(p_value):
        return ""
    if p_value < 0.001:
        return "***"
    if p_value < 0.01:
        return "**"
    if p_value < 0.05:
        return "*"
    if p_value < 0.1:
        return "."
    return ""


def _coefficient_table(result) -> pd.DataFrame:
    table = pd.DataFrame({
        "term": list(result.params.index),
        "estimate": result.params.to_numpy(),
        "std_error": result.bse.to_numpy(),
        "statistic": result.tvalues.to_numpy(),
        "p_value": result.pvalues.to_numpy(),
    })
    table["stars"] = table["p_value"].map(significance_stars)
    return table


def fit_model(
    data: pd.DataFrame,
    spec: ModelSpec,
    logger: logging.Logger | None = None,
) -> FittedModel:
    """
    Fit a model specification against a table.

    The information criterion stored as aic is the Gaussian AIC for OLS and,
    for quasi-Poisson, the AIC of the underlying (unscaled) Poisson
    likelihood. It is used only to rank candidate models in stepwise
    selection.

    Raises:
        MissingFieldError: If a model column is absent.
        SingularDesignError: If the design matrix is rank deficient.
        ValueError: If a quasi-Poisson response is negative.
    """
    design = build_design(data, spec)
    y, X = design.y, design.X

    if spec.family == "gaussian":
        result = sm.OLS(y, X).fit(method="qr")
        aic = float(result.aic)
        dispersion = float(result.scale)
        r_squared = float(result.rsquared)
        deviance = float(result.ssr)
    else:
        if (y < 0).any():
            raise ValueError(f"Model '{spec.name}': quasi-Poisson response '{spec.response}' has negative values")
        model = sm.GLM(y, X, family=sm.families.Poisson(link=sm.families.links.Log()))
        result = model.fit(method="IRLS", scale="X2", use_t=True)
        loglike = model.family.loglike(y.to_numpy(), result.mu, scale=1.0)
        aic = float(-2.0 * loglike + 2.0 * len(result.params))
        dispersion = float(result.scale)
        r_squared = None
        deviance = float(result.deviance)

    if not np.all(np.isfinite(result.params)):
        raise SingularDesignError(spec.name, "non-finite coefficient estimates")

    fitted = FittedModel(
        spec=spec,
        n_obs=int(result.nobs),
        coefficients=_coefficient_table(result),
        aic=aic,
        dispersion=dispersion,
        df_resid=float(result.df_resid),
        n_dropped=design.n_dropped,
        r_squared=r_squared,
        deviance=deviance,
        result=result,
    )

    if logger:
        log_model_fit(logger, spec.name, spec.family, fitted.n_obs, fitted.aic,
                      dispersion=fitted.dispersion, formula=spec.formula(),
                      n_dropped=design.n_dropped)
    return fitted
