"""API-level tests for GET /historical."""

from datetime import date

import pytest
from fastapi.testclient import TestClient

from forecast_api.core.prices import PriceLoader
from forecast_api.core.retry import RetryPolicy
from forecast_api.domain.entities import PricePoint
from forecast_api.domain.exceptions import NoDataAvailableError, ProviderError
from forecast_api.main import app
from forecast_api.routes.dependencies import get_price_loader


class FakeProvider:
    def __init__(self, name, points=None, error=None):
        self.name = name
        self.points = points or []
        self.error = error

    def fetch(self, symbol, from_date, to_date):
        if self.error:
            raise self.error
        return list(self.points)


def loader_with(*providers) -> PriceLoader:
    return PriceLoader(list(providers), RetryPolicy(max_attempts=1, initial_delay=0.0, sleep=lambda _: None))


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


PARAMS = {"symbol": "AAPL", "from": "2024-01-02", "to": "2024-01-04"}


def test_historical_filters_sorts_and_reports_source(client):
    raw = [
        PricePoint(date(2024, 1, 5), 181.18, 62303300),
        PricePoint(date(2024, 1, 3), 184.25, 58414500),
        PricePoint(date(2024, 1, 2), 185.64, 82488700),
        PricePoint(date(2024, 1, 1), 190.00, 1000),
    ]
    app.dependency_overrides[get_price_loader] = lambda: loader_with(
        FakeProvider("stooq", error=ProviderError("down", service="stooq")),
        FakeProvider("yfinance", points=raw),
    )

    response = client.get("/historical", params=PARAMS)

    assert response.status_code == 200
    assert response.json() == {
        "symbol": "AAPL",
        "from": "2024-01-02",
        "to": "2024-01-04",
        "source": "yfinance",
        "data": [
            {"date": "2024-01-02", "close": 185.64, "volume": 82488700},
            {"date": "2024-01-03", "close": 184.25, "volume": 58414500},
        ],
    }


@pytest.mark.parametrize("missing", ["symbol", "from", "to"])
def test_historical_missing_param_returns_422(client, missing):
    app.dependency_overrides[get_price_loader] = lambda: loader_with(FakeProvider("stooq"))
    params = {k: v for k, v in PARAMS.items() if k != missing}
    assert client.get("/historical", params=params).status_code == 422


def test_historical_inverted_range_returns_400(client):
    app.dependency_overrides[get_price_loader] = lambda: loader_with(FakeProvider("stooq"))
    response = client.get("/historical", params={**PARAMS, "from": "2024-02-01"})
    assert response.status_code == 400


def test_historical_no_data_returns_404(client):
    app.dependency_overrides[get_price_loader] = lambda: loader_with(
        FakeProvider("stooq", error=NoDataAvailableError("none", service="stooq"))
    )
    assert client.get("/historical", params=PARAMS).status_code == 404


def test_historical_all_providers_failed_returns_502(client):
    app.dependency_overrides[get_price_loader] = lambda: loader_with(
        FakeProvider("stooq", error=ProviderError("down", service="stooq")),
        FakeProvider("yfinance", error=ProviderError("down", service="yfinance")),
    )
    assert client.get("/historical", params=PARAMS).status_code == 502
