"""Accuracy metrics over predicted-vs-actual closes."""

from collections.abc import Sequence

import numpy as np

from forecast_api.domain.entities import ModelMetrics, PredictionRecord
from forecast_api.domain.exceptions import NoDataError


def _graded(records: Sequence[PredictionRecord]) -> list[PredictionRecord]:
    return [r for r in records if r.actual is not None]


def mean_squared_error(records: Sequence[PredictionRecord]) -> float:
    """Mean of (predicted - actual)^2 over records with a known actual.

    Raises:
        NoDataError: if no record has an actual
    """
    graded = _graded(records)
    if not graded:
        raise NoDataError("No predictions with an actual close to grade")
    predicted = np.array([r.predicted for r in graded], dtype=np.float64)
    actual = np.array([r.actual for r in graded], dtype=np.float64)
    return float(np.mean((predicted - actual) ** 2))


def directional_accuracy(records: Sequence[PredictionRecord]) -> float:
    """Fraction of consecutive graded pairs whose predicted move has the actual move's sign.

    Records without an actual are dropped before pairing, so a pair spans
    neighbouring graded records.

    Returns:
        Fraction in [0, 1] over (graded_count - 1) pairs

    Raises:
        NoDataError: if fewer than 2 records have an actual
    """
    graded = _graded(records)
    if len(graded) < 2:
        raise NoDataError(f"Need at least 2 graded predictions, got {len(graded)}")
    predicted = np.array([r.predicted for r in graded], dtype=np.float64)
    actual = np.array([r.actual for r in graded], dtype=np.float64)
    matches = np.sign(np.diff(predicted)) == np.sign(np.diff(actual))
    return float(np.mean(matches))


def summarize(records: Sequence[PredictionRecord]) -> ModelMetrics:
    """Compute all metrics, mapping undefined ones to None."""
    graded_count = len(_graded(records))
    try:
        mse = mean_squared_error(records)
    except NoDataError:
        mse = None
    try:
        direction = directional_accuracy(records)
    except NoDataError:
        direction = None
    return ModelMetrics(mse=mse, directional_accuracy=direction, graded_count=graded_count)
