"""Tests for the Finnhub company-news client."""

from datetime import UTC, date, datetime
from unittest.mock import MagicMock, patch

import pytest
import requests

from forecast_api.core.news_api.finnhub import MAX_ARTICLES, FinnhubNewsClient, parse_article
from forecast_api.domain.exceptions import InvalidInputError, ProviderError


def article(i: int, stamp: int = 1704196800) -> dict:
    return {
        "headline": f"Headline {i}",
        "summary": f"Summary {i}",
        "datetime": stamp,
        "source": "Reuters",
        "url": f"https://example.com/{i}",
    }


@pytest.fixture
def client():
    return FinnhubNewsClient("test-key", rate_limit_delay=0.0)


def test_parse_article():
    item = parse_article(article(1))
    assert item.headline == "Headline 1"
    assert item.datetime == datetime(2024, 1, 2, 12, 0, tzinfo=UTC)
    assert item.to_dict()["datetime"] == 1704196800


def test_parse_article_skips_incomplete():
    assert parse_article({"headline": "", "datetime": 1}) is None
    assert parse_article({"headline": "x"}) is None


def test_fetch_news_caps_articles(client):
    payload = [article(i) for i in range(80)]
    with patch("forecast_api.core.news_api.finnhub.requests.get") as mock_get:
        mock_get.return_value = MagicMock(json=lambda: payload, raise_for_status=lambda: None)
        items = client.fetch_news("AAPL", date(2024, 1, 1), date(2024, 1, 31))

    assert len(items) == MAX_ARTICLES
    params = mock_get.call_args.kwargs["params"]
    assert params == {"symbol": "AAPL", "from": "2024-01-01", "to": "2024-01-31", "token": "test-key"}


def test_fetch_news_request_error(client):
    with patch(
        "forecast_api.core.news_api.finnhub.requests.get",
        side_effect=requests.ConnectionError("down"),
    ):
        with pytest.raises(ProviderError) as exc_info:
            client.fetch_news("AAPL", date(2024, 1, 1), date(2024, 1, 31))
    assert exc_info.value.service == "finnhub"


def test_fetch_news_unexpected_payload(client):
    with patch("forecast_api.core.news_api.finnhub.requests.get") as mock_get:
        mock_get.return_value = MagicMock(json=lambda: {"error": "bad token"}, raise_for_status=lambda: None)
        with pytest.raises(ProviderError):
            client.fetch_news("AAPL", date(2024, 1, 1), date(2024, 1, 31))


def test_fetch_news_inverted_range(client):
    with pytest.raises(InvalidInputError):
        client.fetch_news("AAPL", date(2024, 2, 1), date(2024, 1, 1))


def test_client_requires_key():
    with pytest.raises(ValueError):
        FinnhubNewsClient("")
