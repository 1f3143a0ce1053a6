"""
Human-readable model summaries.

Fitted models are reported, not persisted: coefficient tables go to the
log and to a Markdown report under reports/tables/.
"""

from typing import Sequence

import numpy as np
import pandas as pd

from county_health_db.models import FittedModel
from county_health_db.stepwise import StepwiseResult


SIGNIFICANCE_LEGEND = "Signif. codes: 0 '***' 0.001 '**' 0.01 '*' 0.05 '.' 0.1 ' ' 1"


def _fmt(value: float, digits: int = 4) -> str:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return "NA"
    return f"{value:.{digits}f}"


def _fmt_p(p: float) -> str:
    if p is None or np.isnan(p):
        return "NA"
    return "<0.001" if p < 0.001 else f"{p:.3f}"


def format_coefficient_table(fitted: FittedModel) -> str:
    """Plain-text coefficient table with significance stars."""
    coef = fitted.coefficients
    width = max([len("term"), *(len(t) for t in coef["term"])])
    lines = [
        f"{fitted.spec.name}: {fitted.spec.formula()} [{fitted.spec.family}]",
        f"{'term':<{width}}  {'estimate':>12}  {'std.error':>12}  {'p':>7}",
    ]
    for row in coef.itertuples(index=False):
        lines.append(
            f"{row.term:<{width}}  {_fmt(row.estimate):>12}  {_fmt(row.std_error):>12}  "
            f"{_fmt_p(row.p_value):>7} {row.stars}"
        )
    footer = f"n = {fitted.n_obs}, AIC = {_fmt(fitted.aic, 2)}"
    if fitted.spec.family == "quasipoisson":
        footer += f", dispersion = {_fmt(fitted.dispersion, 3)}"
    elif fitted.r_squared is not None:
        footer += f", R² = {_fmt(fitted.r_squared, 3)}"
    lines.append(footer)
    return "\n".join(lines)


def _markdown_coefficients(fitted: FittedModel) -> list[str]:
    lines = [
        "| Term | Estimate | Std. Error | p | |",
        "|------|----------|------------|---|---|",
    ]
    for row in fitted.coefficients.itertuples(index=False):
        lines.append(
            f"| {row.term} | {_fmt(row.estimate)} | {_fmt(row.std_error)} | "
            f"{_fmt_p(row.p_value)} | {row.stars} |"
        )
    return lines


def _model_section(fitted: FittedModel, heading: str = "###") -> list[str]:
    spec = fitted.spec
    lines = [f"{heading} {spec.name}", ""]
    if spec.description:
        lines.extend([spec.description, ""])
    lines.extend([
        f"- **Formula:** `{spec.formula()}`",
        f"- **Family:** {spec.family}",
        f"- **N observations:** {fitted.n_obs} ({fitted.n_dropped} incomplete rows excluded)",
        f"- **AIC:** {_fmt(fitted.aic, 2)}",
    ])
    if spec.family == "quasipoisson":
        lines.append(f"- **Dispersion:** {_fmt(fitted.dispersion, 3)}")
    if fitted.r_squared is not None:
        lines.append(f"- **R²:** {_fmt(fitted.r_squared, 3)}")
    lines.append("")
    lines.extend(_markdown_coefficients(fitted))
    lines.append("")
    return lines


def coefficient_frame(fits: Sequence[FittedModel]) -> pd.DataFrame:
    """Long table of coefficients across models."""
    frames = []
    for fitted in fits:
        coef = fitted.coefficients.copy()
        coef.insert(0, "model", fitted.spec.name)
        coef["family"] = fitted.spec.family
        coef["n_obs"] = fitted.n_obs
        frames.append(coef)
    if not frames:
        return pd.DataFrame(columns=["model", "term", "estimate", "std_error",
                                     "statistic", "p_value", "stars", "family", "n_obs"])
    return pd.concat(frames, ignore_index=True)


def correlation_table(df: pd.DataFrame, columns: Sequence[str] | None = None) -> pd.DataFrame:
    """
    Pearson correlations over rows complete in every selected column.

    Defaults to all numeric columns.
    """
    if columns is None:
        columns = [c for c in df.columns if pd.api.types.is_numeric_dtype(df[c])]
    return df[list(columns)].dropna().corr(method="pearson")


def build_model_report(
    fits: Sequence[FittedModel],
    selections: Sequence[StepwiseResult] = (),
    distributions: dict[str, dict] | None = None,
    correlations: pd.DataFrame | None = None,
    z_threshold: float = 3.0,
) -> str:
    """Assemble the Markdown model report."""
    lines = [
        "# County Utilization Model Summary",
        "",
        "Quasi-Poisson (log link) and OLS models of county utilization rates on",
        "community characteristics. Incomplete rows are excluded per model.",
        "",
    ]

    if distributions:
        lines.extend([
            f"## Outcome Distributions (|z| <= {z_threshold:g})",
            "",
            "| Variable | n | Mean | SD | Min | Median | Max |",
            "|----------|---|------|----|-----|--------|-----|",
        ])
        for name, d in distributions.items():
            lines.append(
                f"| {name} | {d.get('n', 0)} | {_fmt(d.get('mean'))} | {_fmt(d.get('std'))} | "
                f"{_fmt(d.get('min'))} | {_fmt(d.get('median'))} | {_fmt(d.get('max'))} |"
            )
        lines.append("")

    if correlations is not None and not correlations.empty:
        cols = list(correlations.columns)
        lines.extend(["## Correlations (complete cases)", ""])
        lines.append("| | " + " | ".join(cols) + " |")
        lines.append("|---|" + "---|" * len(cols))
        for name, row in correlations.iterrows():
            lines.append(f"| {name} | " + " | ".join(_fmt(v, 2) for v in row) + " |")
        lines.append("")

    lines.extend(["## Models", ""])
    for fitted in fits:
        lines.extend(_model_section(fitted))

    if selections:
        lines.extend(["## Stepwise Selection", ""])
        for sel in selections:
            spec = sel.fitted.spec
            lines.extend([
                f"### {spec.name} ({sel.direction})",
                "",
                f"Candidates: {', '.join(sel.candidates)}",
                "",
                "| Step | Action | Term | AIC |",
                "|------|--------|------|-----|",
            ])
            for rec in sel.history:
                lines.append(f"| {rec.step} | {rec.action} | {rec.term or ''} | {_fmt(rec.aic, 2)} |")
            lines.append("")
            lines.extend(_model_section(sel.fitted, heading="####"))

    lines.extend(["", SIGNIFICANCE_LEGEND, ""])
    return "\n".join(lines)
