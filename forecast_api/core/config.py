"""Configuration read from environment variables.

Every setting has an ENV_* name, a DEFAULT_* value and a getter that parses
it on call. Credentials are read here and passed to clients at
construction; no client keeps module-level credential state.
"""

import os
from pathlib import Path

from forecast_api.domain.exceptions import InvalidInputError
from forecast_api.storage.base import DEFAULT_DATA_PATH

# Environment variable names
ENV_MODEL_PATH = "FORECAST_MODEL_PATH"
ENV_LOOKBACK = "FORECAST_LOOKBACK"
ENV_ALIGNMENT = "FORECAST_ALIGNMENT"
ENV_SUPPORTED_SYMBOLS = "FORECAST_SUPPORTED_SYMBOLS"
ENV_PRICE_PROVIDERS = "PRICE_PROVIDERS"
ENV_PRICE_RETRY_ATTEMPTS = "PRICE_RETRY_ATTEMPTS"
ENV_PRICE_RETRY_BACKOFF = "PRICE_RETRY_BACKOFF_SECONDS"
ENV_FINNHUB_API_KEY = "FINNHUB_API_KEY"
ENV_SENTIMENT_FAILURE_POLICY = "SENTIMENT_FAILURE_POLICY"
ENV_SENTIMENT_REQUEST_DELAY = "SENTIMENT_REQUEST_DELAY_SECONDS"
ENV_LOG_LEVEL = "LOG_LEVEL"

# Defaults
DEFAULT_MODEL_PATH = DEFAULT_DATA_PATH / "models" / "aapl-model.json"
DEFAULT_LOOKBACK = 5
DEFAULT_ALIGNMENT = "same_day"
DEFAULT_SUPPORTED_SYMBOLS = ("AAPL",)
DEFAULT_PRICE_PROVIDERS = ("stooq", "yfinance")
DEFAULT_PRICE_RETRY_ATTEMPTS = 3
DEFAULT_PRICE_RETRY_BACKOFF = 1.0
DEFAULT_SENTIMENT_FAILURE_POLICY = "neutral"
DEFAULT_SENTIMENT_REQUEST_DELAY = 1.0
DEFAULT_LOG_LEVEL = "INFO"

KNOWN_PRICE_PROVIDERS = ("stooq", "yfinance", "finnhub")
KNOWN_ALIGNMENTS = ("same_day", "next_day")
KNOWN_SENTIMENT_POLICIES = ("neutral", "abort")


def _read_int(name: str, default: int, minimum: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise InvalidInputError(f"{name} must be an integer, got {raw!r}", field=name, value=raw) from e
    if value < minimum:
        raise InvalidInputError(f"{name} must be >= {minimum}, got {value}", field=name, value=value)
    return value


def _read_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise InvalidInputError(f"{name} must be a number, got {raw!r}", field=name, value=raw) from e
    if value < 0:
        raise InvalidInputError(f"{name} must be >= 0, got {value}", field=name, value=value)
    return value


def _read_choice(name: str, default: str, choices: tuple[str, ...]) -> str:
    value = os.environ.get(name, "").strip().lower() or default
    if value not in choices:
        raise InvalidInputError(f"{name} must be one of {list(choices)}, got {value!r}", field=name, value=value)
    return value


def _read_list(name: str) -> list[str] | None:
    raw = os.environ.get(name, "")
    items = [item.strip() for item in raw.split(",") if item.strip()]
    return items or None


def get_model_path() -> Path:
    """Path of the JSON model artifact."""
    raw = os.environ.get(ENV_MODEL_PATH, "").strip()
    return Path(raw) if raw else DEFAULT_MODEL_PATH


def get_lookback() -> int:
    """Number of trailing trading days per feature vector (default: 5)."""
    return _read_int(ENV_LOOKBACK, DEFAULT_LOOKBACK, minimum=1)


def get_alignment() -> str:
    """Feature alignment policy: 'same_day' (default) or 'next_day'."""
    return _read_choice(ENV_ALIGNMENT, DEFAULT_ALIGNMENT, KNOWN_ALIGNMENTS)


def get_supported_symbols() -> list[str]:
    """Symbols the loaded model was trained for (default: AAPL)."""
    symbols = _read_list(ENV_SUPPORTED_SYMBOLS) or list(DEFAULT_SUPPORTED_SYMBOLS)
    return [s.upper() for s in symbols]


def get_price_providers() -> list[str]:
    """Ordered price provider chain (default: stooq, yfinance)."""
    providers = [p.lower() for p in (_read_list(ENV_PRICE_PROVIDERS) or DEFAULT_PRICE_PROVIDERS)]
    unknown = [p for p in providers if p not in KNOWN_PRICE_PROVIDERS]
    if unknown:
        raise InvalidInputError(
            f"{ENV_PRICE_PROVIDERS} contains unknown providers {unknown}",
            field=ENV_PRICE_PROVIDERS,
            value=unknown,
        )
    return providers


def get_price_retry_attempts() -> int:
    """Attempts per price provider before falling back (default: 3)."""
    return _read_int(ENV_PRICE_RETRY_ATTEMPTS, DEFAULT_PRICE_RETRY_ATTEMPTS, minimum=1)


def get_price_retry_backoff() -> float:
    """Initial retry delay in seconds, doubled per attempt (default: 1.0)."""
    return _read_float(ENV_PRICE_RETRY_BACKOFF, DEFAULT_PRICE_RETRY_BACKOFF)


def get_finnhub_api_key() -> str | None:
    """Finnhub API token, if configured."""
    return os.environ.get(ENV_FINNHUB_API_KEY) or None


def get_sentiment_failure_policy() -> str:
    """What a failed day of sentiment scoring does: 'neutral' (default) or 'abort'."""
    return _read_choice(ENV_SENTIMENT_FAILURE_POLICY, DEFAULT_SENTIMENT_FAILURE_POLICY, KNOWN_SENTIMENT_POLICIES)


def get_sentiment_request_delay() -> float:
    """Minimum seconds between LLM calls (default: 1.0)."""
    return _read_float(ENV_SENTIMENT_REQUEST_DELAY, DEFAULT_SENTIMENT_REQUEST_DELAY)


def get_log_level() -> str:
    """Root log level name (default: INFO)."""
    return (os.environ.get(ENV_LOG_LEVEL, "").strip() or DEFAULT_LOG_LEVEL).upper()


# LLM settings (sentiment scoring)
ENV_LLM_PROVIDER = "LLM_PROVIDER"
ENV_OPENAI_API_KEY = "OPENAI_API_KEY"
ENV_OPENAI_MODEL = "OPENAI_MODEL"
ENV_OLLAMA_BASE_URL = "OLLAMA_BASE_URL"
ENV_OLLAMA_MODEL = "OLLAMA_MODEL"

DEFAULT_LLM_PROVIDER = "openai"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434"
DEFAULT_OLLAMA_MODEL = "llama3.2"

KNOWN_LLM_PROVIDERS = ("openai", "ollama")


def get_llm_provider_name() -> str:
    """LLM backend for sentiment scoring: 'openai' (default) or 'ollama'."""
    return _read_choice(ENV_LLM_PROVIDER, DEFAULT_LLM_PROVIDER, KNOWN_LLM_PROVIDERS)


def get_openai_api_key() -> str | None:
    """OpenAI API key, if configured."""
    return os.environ.get(ENV_OPENAI_API_KEY) or None


def get_openai_model() -> str:
    return os.environ.get(ENV_OPENAI_MODEL, "").strip() or DEFAULT_OPENAI_MODEL


def get_ollama_base_url() -> str:
    return os.environ.get(ENV_OLLAMA_BASE_URL, "").strip() or DEFAULT_OLLAMA_BASE_URL


def get_ollama_model() -> str:
    return os.environ.get(ENV_OLLAMA_MODEL, "").strip() or DEFAULT_OLLAMA_MODEL
