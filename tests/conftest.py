"""Pytest configuration and fixtures for all tests.

This module ensures tests run in isolation from production environment variables.
"""

import os
from datetime import date, timedelta

import numpy as np
import pytest

from forecast_api.domain.entities import PricePoint

# Settings and credentials that should not affect tests
ISOLATED_ENV_VARS = [
    "FORECAST_MODEL_PATH",
    "FORECAST_LOOKBACK",
    "FORECAST_ALIGNMENT",
    "FORECAST_SUPPORTED_SYMBOLS",
    "PRICE_PROVIDERS",
    "PRICE_RETRY_ATTEMPTS",
    "PRICE_RETRY_BACKOFF_SECONDS",
    "FINNHUB_API_KEY",
    "SENTIMENT_FAILURE_POLICY",
    "SENTIMENT_REQUEST_DELAY_SECONDS",
    "LLM_PROVIDER",
    "OPENAI_API_KEY",
    "OPENAI_MODEL",
    "OLLAMA_BASE_URL",
    "OLLAMA_MODEL",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def isolate_from_env():
    """Clear forecast settings and API keys before each test.

    This fixture runs automatically for every test (autouse=True).
    It saves original values, clears them for the test, then restores after.
    """
    original_values = {}
    for var in ISOLATED_ENV_VARS:
        if var in os.environ:
            original_values[var] = os.environ.pop(var)

    yield

    for var in ISOLATED_ENV_VARS:
        os.environ.pop(var, None)
    for var, value in original_values.items():
        os.environ[var] = value


def make_series(closes, volumes=None, start=date(2024, 1, 1)) -> list[PricePoint]:
    """Build a daily PricePoint series starting at `start`, one calendar day apart."""
    volumes = volumes if volumes is not None else [1_000_000 + 1_000 * i for i in range(len(closes))]
    return [
        PricePoint(date=start + timedelta(days=i), close=float(c), volume=int(v))
        for i, (c, v) in enumerate(zip(closes, volumes))
    ]


@pytest.fixture
def rising_series() -> list[PricePoint]:
    """30 strictly rising closes."""
    return make_series([100.0 + i for i in range(30)])


@pytest.fixture
def series_factory():
    """Factory for PricePoint series (see make_series)."""
    return make_series


class ConstantModel:
    """Stub model returning the same relative change for every row."""

    def __init__(self, input_width: int, change: float = 0.0):
        self.input_width = input_width
        self.change = change
        self.calls = 0

    def predict(self, batch: np.ndarray) -> np.ndarray:
        self.calls += 1
        return np.full(len(batch), self.change)


@pytest.fixture
def constant_model():
    """The ConstantModel class, for building stub models of any width."""
    return ConstantModel
