"""Finnhub company-news client.

Fetches company news for a symbol and date range. Finnhub returns the most
recent articles first; at most MAX_ARTICLES are kept per request.
"""

import logging
import time
from datetime import UTC, date, datetime

import requests

from forecast_api.domain.entities import NewsItem
from forecast_api.domain.exceptions import InvalidInputError, ProviderError

logger = logging.getLogger(__name__)

MAX_ARTICLES = 50


def parse_article(raw: dict) -> NewsItem | None:
    """Convert one Finnhub article payload, or None if it has no headline/timestamp."""
    headline = (raw.get("headline") or "").strip()
    stamp = raw.get("datetime")
    if not headline or not isinstance(stamp, int | float):
        return None
    return NewsItem(
        headline=headline,
        summary=raw.get("summary") or "",
        datetime=datetime.fromtimestamp(stamp, tz=UTC),
        source=raw.get("source") or "",
        url=raw.get("url") or "",
    )


class FinnhubNewsClient:
    """Client for Finnhub's /company-news endpoint.

    Free tier allows 60 calls/minute.
    """

    BASE_URL = "https://finnhub.io/api/v1/company-news"

    def __init__(self, api_key: str, rate_limit_delay: float = 1.0, timeout: float = 30.0):
        """Initialize the client.

        Args:
            api_key: Finnhub API token
            rate_limit_delay: Minimum seconds between requests
            timeout: Request timeout in seconds
        """
        if not api_key:
            raise ValueError("Finnhub API key is required")
        self.api_key = api_key
        self.rate_limit_delay = rate_limit_delay
        self.timeout = timeout
        self._last_request_time: float = 0

    def _rate_limit(self) -> None:
        """Enforce rate limiting between requests."""
        elapsed = time.time() - self._last_request_time
        if elapsed < self.rate_limit_delay:
            time.sleep(self.rate_limit_delay - elapsed)
        self._last_request_time = time.time()

    def fetch_news(self, symbol: str, from_date: date, to_date: date) -> list[NewsItem]:
        """Fetch up to MAX_ARTICLES news items for symbol in [from_date, to_date].

        Raises:
            InvalidInputError: from_date is after to_date
            ProviderError: request failed or response was not a list
        """
        if from_date > to_date:
            raise InvalidInputError(
                f"from date {from_date} is after to date {to_date}", field="from", value=from_date.isoformat()
            )

        self._rate_limit()
        params = {
            "symbol": symbol,
            "from": from_date.isoformat(),
            "to": to_date.isoformat(),
            "token": self.api_key,
        }
        try:
            response = requests.get(self.BASE_URL, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise ProviderError(f"Finnhub news request failed: {e}", service="finnhub", symbol=symbol) from e
        except ValueError as e:
            raise ProviderError(f"Finnhub news returned non-JSON: {e}", service="finnhub", symbol=symbol) from e

        if not isinstance(data, list):
            raise ProviderError("Finnhub news response is not a list", service="finnhub", symbol=symbol)

        items = [item for item in (parse_article(raw) for raw in data[:MAX_ARTICLES]) if item is not None]
        logger.info(f"[News] {symbol}: {len(items)} articles for {from_date}..{to_date}")
        return items
