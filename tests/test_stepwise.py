"""
Tests for county_health_db.stepwise module.

Tests cover:
- Forward selection and backward elimination on a known design
- Strict-improvement stopping rule
- Tie-breaking by declared order
- Same complete-case rows for every candidate
- Categorical terms entering as a block
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
import pandas as pd
import numpy as np

from county_health_db.models import ModelSpec, fit_model
from county_health_db.stepwise import (
    DIRECTIONS,
    StepwiseResult,
    backward_select,
    forward_select,
    stepwise,
)


@pytest.fixture
def signal_and_noise():
    """
    Y depends on P1 only; P2 is exactly orthogonal to everything in Y.

    Adding P2 leaves the residual sum of squares unchanged, so it can only
    raise the AIC.
    """
    n = 30
    i = np.arange(n, dtype=float)
    p1 = np.linspace(0.0, 1.0, n)
    e = 0.3 * np.sin(1.7 * i)
    y = 1.0 + 3.0 * p1 + e

    basis = np.column_stack([np.ones(n), p1, e])
    v = np.cos(0.37 * i)
    coef, *_ = np.linalg.lstsq(basis, v, rcond=None)
    p2 = v - basis @ coef

    return pd.DataFrame({"county_name": [f"C{k}" for k in range(n)], "Y": y, "P1": p1, "P2": p2})


class TestForwardSelect:
    """Tests for forward_select()."""

    def test_selects_signal_only(self, signal_and_noise):
        """Only the informative predictor should enter."""
        spec = ModelSpec("fw", "Y", ("P1", "P2"), family="gaussian")
        result = forward_select(signal_and_noise, spec)
        assert result.selected == ("P1",)
        assert result.direction == "forward"
        assert result.candidates == ("P1", "P2")

    def test_history(self, signal_and_noise):
        """History should start intercept-only and record one addition."""
        spec = ModelSpec("fw", "Y", ("P2", "P1"), family="gaussian")
        result = forward_select(signal_and_noise, spec)
        assert [r.action for r in result.history] == ["start", "add"]
        assert result.history[0].terms == ()
        assert result.history[0].term is None
        assert result.history[1].term == "P1"
        assert result.history[1].step == 1
        assert result.history[1].aic < result.history[0].aic

    def test_final_model_matches_direct_fit(self, signal_and_noise):
        """The returned fit should equal fitting the selected terms directly."""
        spec = ModelSpec("fw", "Y", ("P1", "P2"), family="gaussian")
        result = forward_select(signal_and_noise, spec)
        direct = fit_model(signal_and_noise, spec.with_predictors(("P1",)))
        assert result.fitted.aic == pytest.approx(direct.aic)
        assert result.fitted.coefficient("P1") == pytest.approx(direct.coefficient("P1"))

    def test_no_improvement_keeps_intercept_only(self, signal_and_noise):
        """When no candidate lowers AIC the intercept-only model is returned."""
        # Y is a shifted P2, which is orthogonal to Z
        df = signal_and_noise.assign(Y=signal_and_noise["P2"] + 5.0, Z=signal_and_noise["P1"])
        spec = ModelSpec("fw", "Y", ("Z",), family="gaussian")
        result = forward_select(df, spec)
        assert result.selected == ()
        assert len(result.history) == 1

    def test_exact_tie_goes_to_first_declared(self, signal_and_noise):
        """Two identical candidates tie; the first declared one is chosen."""
        df = signal_and_noise.assign(B=signal_and_noise["P1"])
        spec = ModelSpec("tie", "Y", ("B", "P1"), family="gaussian")
        result = forward_select(df, spec)
        assert result.history[1].term == "B"
        # P1 is aliased with B afterwards and is skipped
        assert result.selected == ("B",)

    def test_same_rows_for_all_candidates(self, regression_frame):
        """A null in an unselected candidate still removes that row from every fit."""
        df = regression_frame.copy()
        df.loc[0, "X2"] = np.nan
        spec = ModelSpec("fw", "Y", ("X1", "X2"), family="gaussian")
        result = forward_select(df, spec)
        assert result.fitted.n_obs == len(df) - 1

    def test_categorical_term_enters_as_block(self, regression_frame):
        """RUCC_CAT should enter with all its indicators; noise should stay out."""
        spec = ModelSpec("qp", "RATE", ("X2", "X1", "RUCC_CAT"), family="quasipoisson")
        result = forward_select(regression_frame, spec)
        assert set(result.selected) == {"X1", "RUCC_CAT"}
        assert result.history[1].term == "X1"
        terms = list(result.fitted.coefficients["term"])
        assert "RUCC_CAT_Rural" in terms
        assert "RUCC_CAT_Urban" in terms

    def test_aic_strictly_decreases(self, regression_frame):
        """Every accepted step should lower the criterion."""
        spec = ModelSpec("qp", "RATE", ("X2", "X1", "RUCC_CAT"), family="quasipoisson")
        aics = [r.aic for r in forward_select(regression_frame, spec).history]
        assert all(later < earlier for earlier, later in zip(aics, aics[1:]))

    def test_logs_steps(self, signal_and_noise, test_logger):
        """Passing a logger should not change the selection."""
        spec = ModelSpec("fw", "Y", ("P1", "P2"), family="gaussian")
        assert forward_select(signal_and_noise, spec, logger=test_logger).selected == ("P1",)


class TestBackwardSelect:
    """Tests for backward_select()."""

    def test_removes_noise(self, signal_and_noise):
        """The orthogonal predictor should be removed; the signal kept."""
        spec = ModelSpec("bw", "Y", ("P1", "P2"), family="gaussian")
        result = backward_select(signal_and_noise, spec)
        assert result.selected == ("P1",)
        assert [r.action for r in result.history] == ["start", "remove"]
        assert result.history[0].terms == ("P1", "P2")
        assert result.history[1].term == "P2"

    def test_keeps_full_model_when_every_term_helps(self, regression_frame):
        """No step is taken when every removal raises the AIC."""
        spec = ModelSpec("bw", "RATE", ("X1", "RUCC_CAT"), family="quasipoisson")
        result = backward_select(regression_frame, spec)
        assert result.selected == ("X1", "RUCC_CAT")
        assert len(result.history) == 1

    def test_forward_and_backward_agree(self, signal_and_noise):
        """On this design both directions should reach the same model."""
        spec = ModelSpec("both", "Y", ("P1", "P2"), family="gaussian")
        fw = forward_select(signal_and_noise, spec)
        bw = backward_select(signal_and_noise, spec)
        assert fw.selected == bw.selected
        assert fw.fitted.aic == pytest.approx(bw.fitted.aic)


class TestStepwise:
    """Tests for the stepwise() dispatcher."""

    @pytest.mark.parametrize("direction", DIRECTIONS)
    def test_dispatch(self, signal_and_noise, direction):
        """Each supported direction should return a StepwiseResult."""
        spec = ModelSpec("s", "Y", ("P1", "P2"), family="gaussian")
        result = stepwise(signal_and_noise, spec, direction=direction)
        assert isinstance(result, StepwiseResult)
        assert result.direction == direction

    def test_unknown_direction(self, signal_and_noise):
        """An unsupported direction should raise ValueError."""
        spec = ModelSpec("s", "Y", ("P1",), family="gaussian")
        with pytest.raises(ValueError, match="Unknown direction"):
            stepwise(signal_and_noise, spec, direction="both")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
