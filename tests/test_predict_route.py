"""API-level tests for POST /predict."""

import json
from datetime import date

import pytest
import torch
from fastapi.testclient import TestClient

from forecast_api.core.features import AlignmentPolicy
from forecast_api.core.model import DenseSpec, FeedForwardModel
from forecast_api.core.prices import LoadResult
from forecast_api.domain.exceptions import NoDataAvailableError, ProviderError
from forecast_api.main import app
from forecast_api.routes.dependencies import (
    get_alignment_policy,
    get_lookback_window,
    get_model_storage,
    get_price_loader,
    get_symbol_allowlist,
)
from forecast_api.storage.model_json import ModelStorage

# ============================================================================
# Test fixtures and mocks
# ============================================================================


def zero_change_model(input_width: int = 10) -> FeedForwardModel:
    """Model whose output is always 0, so predicted == previous close."""
    model = FeedForwardModel(input_width, [DenseSpec(4, "relu"), DenseSpec(1)])
    with torch.no_grad():
        for param in model.parameters():
            param.zero_()
    return model


def constant_change_model(change: float, input_width: int = 10) -> FeedForwardModel:
    model = FeedForwardModel(input_width, [DenseSpec(1)])
    with torch.no_grad():
        model.dense_layers()[0].weight.zero_()
        model.dense_layers()[0].bias.fill_(change)
    return model


class StubPriceLoader:
    """PriceLoader stand-in returning a fixed series or raising an error."""

    def __init__(self, points=None, error: Exception | None = None, source: str = "stooq"):
        self.points = points or []
        self.error = error
        self.source = source
        self.calls: list[tuple] = []

    def load(self, symbol, from_date, to_date):
        self.calls.append((symbol, from_date, to_date))
        if self.error:
            raise self.error
        return LoadResult(symbol=symbol, source=self.source, points=list(self.points))


@pytest.fixture
def model_storage(tmp_path):
    storage = ModelStorage(tmp_path / "models" / "aapl-model.json")
    storage.write(zero_change_model())
    return storage


@pytest.fixture
def client_with_mocks(model_storage, rising_series):
    """Test client with a zero-change model and a 30-day rising series."""
    loader = StubPriceLoader(rising_series)
    app.dependency_overrides[get_model_storage] = lambda: model_storage
    app.dependency_overrides[get_price_loader] = lambda: loader
    app.dependency_overrides[get_lookback_window] = lambda: 5
    app.dependency_overrides[get_alignment_policy] = lambda: AlignmentPolicy.SAME_DAY
    app.dependency_overrides[get_symbol_allowlist] = lambda: ["AAPL"]

    client = TestClient(app)
    client.loader = loader
    yield client

    app.dependency_overrides.clear()


BODY = {"symbol": "AAPL", "startDate": "2024-01-01", "endDate": "2024-01-30"}


# ============================================================================
# Happy path
# ============================================================================


def test_predict_returns_walk_forward_predictions(client_with_mocks, rising_series):
    response = client_with_mocks.post("/predict", json=BODY)

    assert response.status_code == 200
    data = response.json()
    assert data["symbol"] == "AAPL"
    assert data["dateRange"] == {"startDate": "2024-01-01", "endDate": "2024-01-30"}
    assert data["alignment"] == "same_day"
    assert data["lookback"] == 5

    predictions = data["predictions"]
    assert len(predictions) == len(rising_series) - 5
    first = predictions[0]
    assert set(first) == {"date", "predicted", "actual", "confidence"}
    assert first["date"] == rising_series[5].date.isoformat()
    # Zero-change model predicts the previous close
    assert first["predicted"] == pytest.approx(rising_series[4].close)
    assert first["actual"] == rising_series[5].close
    assert first["confidence"] == 0.75

    # Every prediction lags the rising series by exactly 1.0
    assert data["metrics"]["mse"] == pytest.approx(1.0)
    assert set(data["metrics"]) == {"mse", "directionalAccuracy"}


def test_predict_rising_model_has_full_directional_accuracy(client_with_mocks, model_storage):
    model_storage.write(constant_change_model(0.01))
    response = client_with_mocks.post("/predict", json=BODY)
    assert response.status_code == 200
    assert response.json()["metrics"]["directionalAccuracy"] == 1.0


def test_predict_normalizes_symbol_and_passes_window(client_with_mocks):
    response = client_with_mocks.post("/predict", json={**BODY, "symbol": " aapl "})
    assert response.status_code == 200
    assert client_with_mocks.loader.calls == [("AAPL", date(2024, 1, 1), date(2024, 1, 30))]


def test_predict_next_day_alignment(client_with_mocks, rising_series):
    app.dependency_overrides[get_alignment_policy] = lambda: AlignmentPolicy.NEXT_DAY
    response = client_with_mocks.post("/predict", json=BODY)
    assert response.status_code == 200
    data = response.json()
    assert data["alignment"] == "next_day"
    assert len(data["predictions"]) == len(rising_series) - 6


def test_predict_with_forecast_appends_ungraded_day(client_with_mocks, rising_series):
    response = client_with_mocks.post("/predict", json={**BODY, "includeForecast": True})
    assert response.status_code == 200
    predictions = response.json()["predictions"]
    assert len(predictions) == len(rising_series) - 5 + 1
    assert predictions[-1]["actual"] is None
    assert predictions[-1]["predicted"] == pytest.approx(rising_series[-1].close)


def test_predict_single_graded_day_has_null_direction(client_with_mocks, series_factory):
    client_with_mocks.loader.points = series_factory([100, 102, 101, 103, 104, 105])
    response = client_with_mocks.post("/predict", json=BODY)
    assert response.status_code == 200
    data = response.json()
    assert len(data["predictions"]) == 1
    assert data["predictions"][0]["predicted"] == pytest.approx(104.0)
    assert data["metrics"]["directionalAccuracy"] is None


# ============================================================================
# Errors
# ============================================================================


def test_missing_field_returns_422(client_with_mocks):
    response = client_with_mocks.post("/predict", json={"symbol": "AAPL", "startDate": "2024-01-01"})
    assert response.status_code == 422


def test_malformed_date_returns_422(client_with_mocks):
    response = client_with_mocks.post("/predict", json={**BODY, "startDate": "01/01/2024"})
    assert response.status_code == 422


def test_inverted_range_returns_400(client_with_mocks):
    response = client_with_mocks.post("/predict", json={**BODY, "startDate": "2024-02-01"})
    assert response.status_code == 400
    assert client_with_mocks.loader.calls == []


def test_unsupported_symbol_returns_400(client_with_mocks):
    response = client_with_mocks.post("/predict", json={**BODY, "symbol": "MSFT"})
    assert response.status_code == 400
    assert "AAPL" in response.json()["detail"]


def test_insufficient_data_returns_400(client_with_mocks, series_factory):
    client_with_mocks.loader.points = series_factory([100, 101, 102])
    response = client_with_mocks.post("/predict", json=BODY)
    assert response.status_code == 400
    assert "6" in response.json()["detail"]


def test_insufficient_data_with_forecast_still_400(client_with_mocks, series_factory):
    client_with_mocks.loader.points = series_factory([100, 101, 102])
    response = client_with_mocks.post("/predict", json={**BODY, "includeForecast": True})
    assert response.status_code == 400


def test_zero_close_returns_400(client_with_mocks, series_factory):
    client_with_mocks.loader.points = series_factory([100, 0, 102, 103, 104, 105, 106])
    response = client_with_mocks.post("/predict", json=BODY)
    assert response.status_code == 400


def test_provider_failure_returns_502(client_with_mocks):
    client_with_mocks.loader.error = ProviderError("All price providers failed", symbol="AAPL")
    response = client_with_mocks.post("/predict", json=BODY)
    assert response.status_code == 502


def test_no_data_returns_404(client_with_mocks):
    client_with_mocks.loader.error = NoDataAvailableError("nothing", symbol="AAPL")
    response = client_with_mocks.post("/predict", json=BODY)
    assert response.status_code == 404


def test_missing_model_returns_503(client_with_mocks, tmp_path):
    app.dependency_overrides[get_model_storage] = lambda: ModelStorage(tmp_path / "missing.json")
    response = client_with_mocks.post("/predict", json=BODY)
    assert response.status_code == 503
    assert "predictions" not in response.json()


def test_corrupt_model_returns_503(client_with_mocks, model_storage):
    model_storage.model_path.write_text('{"modelTopology": {}, "weightData": []}')
    response = client_with_mocks.post("/predict", json=BODY)
    assert response.status_code == 503


def test_null_weight_entry_returns_503(client_with_mocks, model_storage):
    """A structurally broken artifact is a 503, never a 500."""
    document = json.loads(model_storage.model_path.read_text())
    document["weightData"][0] = None
    model_storage.model_path.write_text(json.dumps(document))

    response = client_with_mocks.post("/predict", json=BODY)

    assert response.status_code == 503
    assert "predictions" not in response.json()
    assert client_with_mocks.loader.calls == []


def test_width_mismatch_returns_503(client_with_mocks, model_storage):
    """A model trained for another lookback is a server misconfiguration."""
    model_storage.write(zero_change_model(input_width=8))

    response = client_with_mocks.post("/predict", json=BODY)

    assert response.status_code == 503
    assert "lookback 5" in response.json()["detail"]
    assert client_with_mocks.loader.calls == []
