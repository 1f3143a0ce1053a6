"""
Tests for county_health_db.reporting module.

Tests cover:
- Plain-text coefficient tables
- Long coefficient frames across models
- Complete-case correlations
- Markdown report sections
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
import pandas as pd
import numpy as np

from county_health_db.models import ModelSpec, fit_model
from county_health_db.reporting import (
    SIGNIFICANCE_LEGEND,
    build_model_report,
    coefficient_frame,
    correlation_table,
    format_coefficient_table,
)
from county_health_db.stepwise import forward_select


@pytest.fixture
def fits(regression_frame):
    return [
        fit_model(regression_frame, ModelSpec("rate_model", "RATE", ("X1", "RUCC_CAT"),
                                              description="Rate on X1 and rurality.")),
        fit_model(regression_frame, ModelSpec("ols_model", "Y", ("X1",), family="gaussian")),
    ]


class TestFormatCoefficientTable:
    """Tests for format_coefficient_table()."""

    def test_contains_terms_and_footer(self, fits):
        """Every term and the fit summary should be listed."""
        text = format_coefficient_table(fits[0])
        assert text.splitlines()[0] == "rate_model: RATE ~ X1 + RUCC_CAT [quasipoisson]"
        for term in ["Intercept", "X1", "RUCC_CAT_Rural", "RUCC_CAT_Urban"]:
            assert term in text
        assert "dispersion" in text.splitlines()[-1]

    def test_gaussian_footer_has_r_squared(self, fits):
        """OLS summaries should report R²."""
        assert "R²" in format_coefficient_table(fits[1]).splitlines()[-1]


class TestCoefficientFrame:
    """Tests for coefficient_frame()."""

    def test_long_layout(self, fits):
        """One row per model term, tagged with model and family."""
        frame = coefficient_frame(fits)
        assert len(frame) == 4 + 2
        assert list(frame.columns) == [
            "model", "term", "estimate", "std_error", "statistic", "p_value", "stars", "family", "n_obs",
        ]
        assert set(frame.loc[frame["model"] == "ols_model", "family"]) == {"gaussian"}

    def test_empty(self):
        """No fits should give an empty frame with the same columns."""
        frame = coefficient_frame([])
        assert frame.empty
        assert "estimate" in frame.columns


class TestCorrelationTable:
    """Tests for correlation_table()."""

    def test_complete_cases(self):
        """Rows with a null in any selected column are dropped first."""
        df = pd.DataFrame({
            "A": [1.0, 2.0, 3.0, 4.0],
            "B": [2.0, 4.0, 6.0, np.nan],
            "C": [4.0, 3.0, 2.0, 100.0],
        })
        corr = correlation_table(df)
        assert corr.loc["A", "B"] == pytest.approx(1.0)
        # The outlying C value sits on the dropped row
        assert corr.loc["A", "C"] == pytest.approx(-1.0)

    def test_default_numeric_only(self, regression_frame):
        """Text columns should be left out by default."""
        corr = correlation_table(regression_frame)
        assert "RUCC_CAT" not in corr.columns
        assert "county_name" not in corr.columns
        assert "X1" in corr.columns


class TestBuildModelReport:
    """Tests for build_model_report()."""

    def test_sections(self, fits, regression_frame):
        """The report should carry every requested section."""
        selection = forward_select(
            regression_frame, ModelSpec("sel", "RATE", ("X2", "X1", "RUCC_CAT")),
        )
        report = build_model_report(
            fits,
            selections=[selection],
            distributions={"RATE": {"n": 60, "mean": 1.0, "std": 0.5, "min": 0.1, "median": 1.0, "max": 3.0}},
            correlations=correlation_table(regression_frame, ["RATE", "X1"]),
            z_threshold=2.5,
        )
        assert report.startswith("# County Utilization Model Summary")
        assert "## Outcome Distributions (|z| <= 2.5)" in report
        assert "## Correlations (complete cases)" in report
        assert "### rate_model" in report
        assert "Rate on X1 and rurality." in report
        assert "### sel (forward)" in report
        assert "| 0 | start |  |" in report
        assert SIGNIFICANCE_LEGEND in report

    def test_minimal(self, fits):
        """Optional sections are omitted when not given."""
        report = build_model_report(fits)
        assert "## Models" in report
        assert "Stepwise" not in report
        assert "Outcome Distributions" not in report


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
