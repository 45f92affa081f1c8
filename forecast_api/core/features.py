"""Feature engineering for walk-forward price prediction.

A price series is turned into one fixed-width feature vector per target day.
Each vector holds the relative price and volume changes of the `lookback`
trading days strictly before the target, interleaved and oldest first:

    [pc[t-L], vc[t-L], pc[t-L+1], vc[t-L+1], ..., pc[t-1], vc[t-1]]

The model predicts the relative close-to-close change of the target day,
which the predictor converts back into a price using close[t-1].
"""

from collections.abc import Sequence
from datetime import date
from enum import Enum

import numpy as np
import pandas as pd

from forecast_api.domain.entities import FeatureVector, PricePoint
from forecast_api.domain.exceptions import InsufficientDataError, InvalidInputError


class AlignmentPolicy(str, Enum):
    """Which target days a series produces vectors for.

    SAME_DAY: the window [t-L, t-1] predicts day t, for every t >= L. The
        first window includes the synthetic zero change of day 0.
    NEXT_DAY: the window ending at day i predicts day i+1, for every i >= L.
        Equivalent to SAME_DAY minus its first target, so no window ever
        contains the synthetic zero change.
    """

    SAME_DAY = "same_day"
    NEXT_DAY = "next_day"


class BuildMode(str, Enum):
    """Whether vectors are built for grading or for a live forecast."""

    BACKTEST = "backtest"
    FORECAST = "forecast"


def compute_relative_changes(values: Sequence[float], allow_zero_base: bool = False) -> np.ndarray:
    """Compute (x[i] - x[i-1]) / x[i-1] with 0 at index 0.

    Args:
        values: Ordered series
        allow_zero_base: If True, a zero previous value yields a change of 0.
            If False, it raises InvalidInputError.

    Returns:
        float64 array of the same length as values
    """
    arr = np.asarray(values, dtype=np.float64)
    changes = np.zeros(len(arr), dtype=np.float64)
    if len(arr) < 2:
        return changes

    prev = arr[:-1]
    zero_base = prev == 0
    if zero_base.any() and not allow_zero_base:
        index = int(np.flatnonzero(zero_base)[0])
        raise InvalidInputError(
            f"Relative change undefined: value at index {index} is zero",
            field="close",
            value=0.0,
        )

    safe_prev = np.where(zero_base, 1.0, prev)
    changes[1:] = np.where(zero_base, 0.0, (arr[1:] - prev) / safe_prev)
    return changes


def first_target_index(lookback: int, alignment: AlignmentPolicy) -> int:
    """Index of the first day a vector can target under the given policy."""
    if alignment == AlignmentPolicy.NEXT_DAY:
        return lookback + 1
    return lookback


def next_trading_day(day: date) -> date:
    """Next business day after day (weekends skipped, holidays not)."""
    return (pd.Timestamp(day) + pd.offsets.BDay(1)).date()


def _validate_series(series: Sequence[PricePoint], lookback: int) -> None:
    if lookback < 1:
        raise InvalidInputError(f"lookback must be >= 1, got {lookback}", field="lookback", value=lookback)
    for prev, cur in zip(series, series[1:]):
        if cur.date <= prev.date:
            raise InvalidInputError(
                f"Price series must have strictly increasing dates: {prev.date} then {cur.date}",
                field="date",
                value=cur.date,
            )


def _window(price_changes: np.ndarray, volume_changes: np.ndarray, target: int, lookback: int) -> tuple[float, ...]:
    start = target - lookback
    pairs = np.column_stack((price_changes[start:target], volume_changes[start:target]))
    return tuple(float(v) for v in pairs.reshape(-1))


def build_features(
    series: Sequence[PricePoint],
    lookback: int,
    *,
    mode: BuildMode = BuildMode.BACKTEST,
    alignment: AlignmentPolicy = AlignmentPolicy.SAME_DAY,
) -> list[FeatureVector]:
    """Build feature vectors from an ascending price series.

    Args:
        series: PricePoints with strictly increasing dates
        lookback: Number of prior trading days in each window
        mode: BACKTEST emits only targets with a realized close. FORECAST
            additionally emits one vector for the next business day.
        alignment: Target alignment policy (see AlignmentPolicy)

    Returns:
        List of FeatureVector, each of width 2 * lookback, ordered by target date

    Raises:
        InvalidInputError: bad lookback, unordered dates or a zero previous close
        InsufficientDataError: BACKTEST mode and no target can be graded
    """
    _validate_series(series, lookback)
    n = len(series)
    first = first_target_index(lookback, alignment)

    if n < lookback + 1:
        if mode == BuildMode.FORECAST:
            return []
        raise InsufficientDataError(
            f"Need at least {lookback + 1} price points, got {n}",
            required=lookback + 1,
            available=n,
        )

    closes = [p.close for p in series]
    price_changes = compute_relative_changes(closes)
    volume_changes = compute_relative_changes([p.volume for p in series], allow_zero_base=True)

    vectors = [
        FeatureVector(
            values=_window(price_changes, volume_changes, t, lookback),
            target_date=series[t].date,
            reference_close=float(closes[t - 1]),
            actual_close=float(closes[t]),
            target_change=float(price_changes[t]),
        )
        for t in range(first, n)
    ]

    if mode == BuildMode.FORECAST:
        vectors.append(
            FeatureVector(
                values=_window(price_changes, volume_changes, n, lookback),
                target_date=next_trading_day(series[-1].date),
                reference_close=float(closes[-1]),
            )
        )
    elif not vectors:
        raise InsufficientDataError(
            f"Need at least {first + 1} price points for {alignment.value} alignment, got {n}",
            required=first + 1,
            available=n,
        )

    return vectors
