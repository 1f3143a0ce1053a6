"""
Forward and backward stepwise variable selection by AIC.

A term is one declared predictor; a categorical predictor enters or leaves
with all of its indicator columns. Every candidate model is fitted on the
same complete-case rows (complete over the response and all candidate
predictors) so criteria are comparable between steps.

A step is taken only when it strictly lowers the criterion. Exact ties go
to the first term in declared order.
"""

import logging
from dataclasses import dataclass, field
from typing import Sequence

import pandas as pd

from county_health_db.errors import SingularDesignError
from county_health_db.logging_utils import log_event
from county_health_db.models import FittedModel, ModelSpec, complete_cases, fit_model


DIRECTIONS = ("forward", "backward")


@dataclass(frozen=True)
class StepRecord:
    """One accepted step of a selection run."""
    step: int
    action: str
    term: str | None
    aic: float
    terms: tuple[str, ...]


@dataclass
class StepwiseResult:
    """Final model of a selection run plus the path that led to it."""
    direction: str
    candidates: tuple[str, ...]
    fitted: FittedModel
    history: list[StepRecord] = field(default_factory=list)

    @property
    def selected(self) -> tuple[str, ...]:
        return self.fitted.spec.predictors


def _log_step(logger: logging.Logger | None, spec: ModelSpec, record: StepRecord) -> None:
    if logger is None:
        return
    if record.term is None:
        message = f"{spec.name}: start AIC={record.aic:.2f} with {list(record.terms)}"
    else:
        message = f"{spec.name}: step {record.step} {record.action} {record.term} -> AIC={record.aic:.2f}"
    log_event(logger, logging.INFO, message, "stepwise_step",
              model_name=spec.name, step=record.step, action=record.action,
              term=record.term, aic=record.aic, terms=list(record.terms))


def _best_candidate(
    rows: pd.DataFrame,
    spec: ModelSpec,
    options: Sequence[tuple[str, tuple[str, ...]]],
    current_aic: float,
    logger: logging.Logger | None = None,
) -> tuple[str, FittedModel] | None:
    """
    Fit each (term, predictors) option; return the strict improvement with lowest AIC.

    An option whose design is singular (an aliased term) is skipped.
    """
    best: tuple[str, FittedModel] | None = None
    for term, predictors in options:
        try:
            fitted = fit_model(rows, spec.with_predictors(predictors))
        except SingularDesignError as e:
            if logger:
                logger.debug(f"{spec.name}: skipping {term}: {e}")
            continue
        threshold = best[1].aic if best is not None else current_aic
        if fitted.aic < threshold:
            best = (term, fitted)
    return best


def forward_select(
    data: pd.DataFrame,
    spec: ModelSpec,
    logger: logging.Logger | None = None,
) -> StepwiseResult:
    """
    Forward selection from the intercept-only model.

    Args:
        data: Analysis table.
        spec: Model whose predictors are the candidate terms.
        logger: Optional logger.

    Returns:
        StepwiseResult with the selected model.
    """
    candidates = tuple(spec.predictors)
    rows = complete_cases(data, [spec.response, *candidates])

    current: tuple[str, ...] = ()
    fitted = fit_model(rows, spec.with_predictors(current))
    history = [StepRecord(0, "start", None, fitted.aic, current)]
    _log_step(logger, spec, history[-1])

    while len(current) < len(candidates):
        remaining = [t for t in candidates if t not in current]
        options = [(t, (*current, t)) for t in remaining]
        best = _best_candidate(rows, spec, options, fitted.aic, logger)
        if best is None:
            break
        term, fitted = best
        current = fitted.spec.predictors
        history.append(StepRecord(len(history), "add", term, fitted.aic, current))
        _log_step(logger, spec, history[-1])

    return StepwiseResult("forward", candidates, fitted, history)


def backward_select(
    data: pd.DataFrame,
    spec: ModelSpec,
    logger: logging.Logger | None = None,
) -> StepwiseResult:
    """
    Backward elimination from the model with every candidate term.

    Args:
        data: Analysis table.
        spec: Full model; its predictors are the starting terms.
        logger: Optional logger.

    Returns:
        StepwiseResult with the selected model.
    """
    candidates = tuple(spec.predictors)
    rows = complete_cases(data, [spec.response, *candidates])

    current = candidates
    fitted = fit_model(rows, spec.with_predictors(current))
    history = [StepRecord(0, "start", None, fitted.aic, current)]
    _log_step(logger, spec, history[-1])

    while current:
        options = [(t, tuple(p for p in current if p != t)) for t in current]
        best = _best_candidate(rows, spec, options, fitted.aic, logger)
        if best is None:
            break
        term, fitted = best
        current = fitted.spec.predictors
        history.append(StepRecord(len(history), "remove", term, fitted.aic, current))
        _log_step(logger, spec, history[-1])

    return StepwiseResult("backward", candidates, fitted, history)


def stepwise(
    data: pd.DataFrame,
    spec: ModelSpec,
    direction: str = "forward",
    logger: logging.Logger | None = None,
) -> StepwiseResult:
    """Run forward or backward selection."""
    if direction == "forward":
        return forward_select(data, spec, logger)
    if direction == "backward":
        return backward_select(data, spec, logger)
    raise ValueError(f"Unknown direction '{direction}'. Use one of {DIRECTIONS}")
