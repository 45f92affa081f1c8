"""Tests for environment-driven configuration."""

from pathlib import Path

import pytest

from forecast_api.core.config import (
    DEFAULT_MODEL_PATH,
    get_alignment,
    get_finnhub_api_key,
    get_llm_provider_name,
    get_log_level,
    get_lookback,
    get_model_path,
    get_price_providers,
    get_price_retry_attempts,
    get_price_retry_backoff,
    get_sentiment_failure_policy,
    get_sentiment_request_delay,
    get_supported_symbols,
)
from forecast_api.domain.exceptions import InvalidInputError


def test_defaults():
    assert get_model_path() == DEFAULT_MODEL_PATH == Path("data/models/aapl-model.json")
    assert get_lookback() == 5
    assert get_alignment() == "same_day"
    assert get_supported_symbols() == ["AAPL"]
    assert get_price_providers() == ["stooq", "yfinance"]
    assert get_price_retry_attempts() == 3
    assert get_price_retry_backoff() == 1.0
    assert get_finnhub_api_key() is None
    assert get_sentiment_failure_policy() == "neutral"
    assert get_sentiment_request_delay() == 1.0
    assert get_llm_provider_name() == "openai"
    assert get_log_level() == "INFO"


def test_overrides(monkeypatch):
    monkeypatch.setenv("FORECAST_MODEL_PATH", "/tmp/m.json")
    monkeypatch.setenv("FORECAST_LOOKBACK", "10")
    monkeypatch.setenv("FORECAST_ALIGNMENT", "NEXT_DAY")
    monkeypatch.setenv("FORECAST_SUPPORTED_SYMBOLS", "aapl, msft")
    monkeypatch.setenv("PRICE_PROVIDERS", "finnhub,stooq")
    monkeypatch.setenv("PRICE_RETRY_BACKOFF_SECONDS", "0.5")
    monkeypatch.setenv("SENTIMENT_FAILURE_POLICY", "abort")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    assert get_model_path() == Path("/tmp/m.json")
    assert get_lookback() == 10
    assert get_alignment() == "next_day"
    assert get_supported_symbols() == ["AAPL", "MSFT"]
    assert get_price_providers() == ["finnhub", "stooq"]
    assert get_price_retry_backoff() == 0.5
    assert get_sentiment_failure_policy() == "abort"
    assert get_log_level() == "DEBUG"


@pytest.mark.parametrize(
    ("var", "value", "getter"),
    [
        ("FORECAST_LOOKBACK", "abc", get_lookback),
        ("FORECAST_LOOKBACK", "0", get_lookback),
        ("FORECAST_ALIGNMENT", "tomorrow", get_alignment),
        ("PRICE_PROVIDERS", "stooq,bloomberg", get_price_providers),
        ("PRICE_RETRY_ATTEMPTS", "0", get_price_retry_attempts),
        ("PRICE_RETRY_BACKOFF_SECONDS", "-1", get_price_retry_backoff),
        ("SENTIMENT_FAILURE_POLICY", "ignore", get_sentiment_failure_policy),
    ],
)
def test_invalid_values_name_the_variable(monkeypatch, var, value, getter):
    monkeypatch.setenv(var, value)
    with pytest.raises(InvalidInputError) as exc_info:
        getter()
    assert exc_info.value.field == var
