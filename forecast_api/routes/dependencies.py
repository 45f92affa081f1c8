"""Shared dependency injection for the HTTP endpoints.

Every collaborator a route needs comes from one of these functions so tests
can replace it through app.dependency_overrides.
"""

import logging

from fastapi import HTTPException

from forecast_api.core.config import (
    get_alignment,
    get_finnhub_api_key,
    get_lookback,
    get_sentiment_failure_policy,
    get_sentiment_request_delay,
    get_supported_symbols,
)
from forecast_api.core.features import AlignmentPolicy
from forecast_api.core.llm import get_llm_provider
from forecast_api.core.news_api.finnhub import FinnhubNewsClient
from forecast_api.core.prices import PriceLoader, build_price_loader
from forecast_api.core.sentiment import SentimentAnalyzer, SentimentFailurePolicy
from forecast_api.domain.exceptions import ConfigurationError, InvalidInputError
from forecast_api.storage.model_json import ModelStorage

logger = logging.getLogger(__name__)


def _config_error(e: InvalidInputError) -> HTTPException:
    logger.error(f"Invalid configuration: {e}")
    return HTTPException(status_code=500, detail=f"Invalid configuration: {e}")


# ============================================================================
# Prediction dependencies
# ============================================================================


def get_model_storage() -> ModelStorage:
    """Get the model artifact storage."""
    return ModelStorage()


def get_price_loader() -> PriceLoader:
    """Get the price loader built from the provider chain settings."""
    try:
        return build_price_loader()
    except InvalidInputError as e:
        raise _config_error(e) from e


def get_lookback_window() -> int:
    """Get the configured lookback window."""
    try:
        return get_lookback()
    except InvalidInputError as e:
        raise _config_error(e) from e


def get_alignment_policy() -> AlignmentPolicy:
    """Get the configured feature alignment policy."""
    try:
        return AlignmentPolicy(get_alignment())
    except InvalidInputError as e:
        raise _config_error(e) from e


def get_symbol_allowlist() -> list[str]:
    """Get the symbols the model was trained for."""
    return get_supported_symbols()


# ============================================================================
# Sentiment dependencies
# ============================================================================


def get_news_client() -> FinnhubNewsClient:
    """Get the Finnhub news client.

    Raises:
        HTTPException 503: FINNHUB_API_KEY is not configured
    """
    api_key = get_finnhub_api_key()
    if not api_key:
        logger.error("FINNHUB_API_KEY is not configured")
        raise HTTPException(status_code=503, detail="News service not configured. Set FINNHUB_API_KEY.")
    return FinnhubNewsClient(api_key)


def get_sentiment_analyzer() -> SentimentAnalyzer:
    """Get the LLM sentiment analyzer.

    Raises:
        HTTPException 503: the LLM provider is missing credentials
    """
    try:
        provider = get_llm_provider()
        policy = SentimentFailurePolicy(get_sentiment_failure_policy())
        delay = get_sentiment_request_delay()
    except ConfigurationError as e:
        logger.error(f"Sentiment analyzer not configured: {e}")
        raise HTTPException(status_code=503, detail=f"Sentiment service not configured: {e}") from e
    except InvalidInputError as e:
        raise _config_error(e) from e
    return SentimentAnalyzer(provider, failure_policy=policy, request_delay=delay)
