"""News API clients for fetching company news."""

from forecast_api.core.news_api.finnhub import MAX_ARTICLES, FinnhubNewsClient

__all__ = ["MAX_ARTICLES", "FinnhubNewsClient"]
