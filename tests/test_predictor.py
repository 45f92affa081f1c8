"""Tests for turning model outputs into price predictions."""

import numpy as np
import pytest
import torch

from forecast_api.core.features import BuildMode, build_features
from forecast_api.core.model import DenseSpec, DropoutSpec, FeedForwardModel
from forecast_api.core.predictor import predict, predict_changes
from forecast_api.domain.entities import UNMODELED_CONFIDENCE
from forecast_api.domain.exceptions import InvalidInputError


def test_zero_change_predicts_reference_close(rising_series, constant_model):
    vectors = build_features(rising_series, lookback=5)
    records = predict(constant_model(10, 0.0), vectors)

    assert len(records) == len(vectors)
    for record, vector in zip(records, vectors):
        assert record.predicted == vector.reference_close
        assert record.date == vector.target_date
        assert record.actual == vector.actual_close
        assert record.confidence == UNMODELED_CONFIDENCE


def test_predicted_applies_change_to_reference(rising_series, constant_model):
    vectors = build_features(rising_series, lookback=5)
    records = predict(constant_model(10, 0.05), vectors)
    for record, vector in zip(records, vectors):
        assert record.predicted == pytest.approx(vector.reference_close * 1.05)


def test_single_batch_inference(rising_series, constant_model):
    model = constant_model(10)
    predict(model, build_features(rising_series, lookback=5))
    assert model.calls == 1


def test_empty_input_returns_empty(constant_model):
    model = constant_model(10)
    assert predict(model, []) == []
    assert model.calls == 0


def test_width_mismatch_raises_before_inference(rising_series, constant_model):
    model = constant_model(8)
    with pytest.raises(InvalidInputError) as exc_info:
        predict(model, build_features(rising_series, lookback=5))
    assert exc_info.value.value == 10
    assert model.calls == 0


def test_output_count_mismatch_raises(rising_series, constant_model):
    class ShortModel(constant_model):
        def predict(self, batch):
            return np.zeros(len(batch) - 1)

    with pytest.raises(InvalidInputError):
        predict_changes(ShortModel(10), build_features(rising_series, lookback=5))


def test_forecast_vector_has_no_actual(rising_series, constant_model):
    vectors = build_features(rising_series, lookback=5, mode=BuildMode.FORECAST)
    records = predict(constant_model(10, 0.01), vectors)
    assert records[-1].actual is None
    assert records[-1].predicted == pytest.approx(rising_series[-1].close * 1.01)


def test_feed_forward_model_predict_shape():
    torch.manual_seed(0)
    model = FeedForwardModel(10, [DenseSpec(8, "relu"), DropoutSpec(0.2), DenseSpec(1)])
    out = model.predict(np.zeros((4, 10)))
    assert out.shape == (4,)
    assert out.dtype == np.float64


def test_feed_forward_model_rejects_bad_topology():
    with pytest.raises(ValueError):
        FeedForwardModel(10, [DenseSpec(4)])
    with pytest.raises(ValueError):
        FeedForwardModel(0, [DenseSpec(1)])
    with pytest.raises(ValueError):
        FeedForwardModel(10, [DenseSpec(1, "softmax")])
