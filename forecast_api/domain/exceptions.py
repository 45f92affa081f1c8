"""Custom exceptions for the forecast_api domain.

Every failure the prediction pipeline can surface maps onto one of these
classes, so routes can translate them into HTTP status codes in one place.
"""

from typing import Any


class ForecastAPIError(Exception):
    """Base exception for all forecast_api errors."""

    pass


# ============================================================================
# Input and data errors
# ============================================================================


class InvalidInputError(ForecastAPIError):
    """Raised when input is malformed and must be rejected, never coerced.

    Examples:
    - Missing or malformed request parameters
    - Previous close of exactly zero (relative change undefined)
    - Feature vector width not matching the model input width
    """

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        super().__init__(message)
        self.field = field
        self.value = value


class InsufficientDataError(ForecastAPIError):
    """Raised when a series is too short to grade any prediction.

    Examples:
    - Fewer than lookback + 1 price points for a backtest
    """

    def __init__(self, message: str, required: int | None = None, available: int | None = None):
        super().__init__(message)
        self.required = required
        self.available = available


class NoDataError(ForecastAPIError):
    """Raised when a metric is undefined because nothing can be graded."""

    pass


# ============================================================================
# External service errors
# ============================================================================


class ProviderError(ForecastAPIError):
    """Raised when an upstream price, news or LLM provider fails.

    Examples:
    - Network error reaching Stooq
    - Non-JSON response from Finnhub
    """

    def __init__(self, message: str, service: str | None = None, symbol: str | None = None):
        super().__init__(message)
        self.service = service
        self.symbol = symbol


class NoDataAvailableError(ProviderError):
    """Raised when a provider answered but has no rows for the request."""

    pass


# ============================================================================
# Model errors
# ============================================================================


class ModelUnavailableError(ForecastAPIError):
    """Raised when the trained model artifact is missing or corrupt.

    Loading is all-or-nothing: this is raised instead of returning a model
    with partially assigned weights.
    """

    def __init__(self, message: str, model_path: str | None = None):
        super().__init__(message)
        self.model_path = model_path


# ============================================================================
# Sentiment errors
# ============================================================================


class SentimentError(ForecastAPIError):
    """Raised when daily sentiment scoring fails under the abort policy."""

    def __init__(self, message: str, day: str | None = None):
        super().__init__(message)
        self.day = day


# ============================================================================
# Configuration errors
# ============================================================================


class ConfigurationError(ForecastAPIError):
    """Raised when a required setting such as an API key is missing."""

    def __init__(self, message: str, setting: str | None = None):
        super().__init__(message)
        self.setting = setting
