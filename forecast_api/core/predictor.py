"""Inference over feature vectors.

The model outputs a relative change; the absolute prediction is
reference_close * (1 + change), where reference_close is the last close
inside the feature window.
"""

import logging
from collections.abc import Sequence

import numpy as np

from forecast_api.core.model import TrainedModel
from forecast_api.domain.entities import UNMODELED_CONFIDENCE, FeatureVector, PredictionRecord
from forecast_api.domain.exceptions import InvalidInputError

logger = logging.getLogger(__name__)


def _validate_widths(model: TrainedModel, vectors: Sequence[FeatureVector]) -> None:
    for vector in vectors:
        if vector.width != model.input_width:
            raise InvalidInputError(
                f"Feature vector for {vector.target_date} has width {vector.width}, "
                f"model expects {model.input_width}",
                field="values",
                value=vector.width,
            )


def predict_changes(model: TrainedModel, vectors: Sequence[FeatureVector]) -> np.ndarray:
    """Predict the relative change for every vector in one batch.

    Raises:
        InvalidInputError: if any vector width differs from the model input width
    """
    if not vectors:
        return np.zeros(0, dtype=np.float64)
    _validate_widths(model, vectors)

    batch = np.array([v.values for v in vectors], dtype=np.float64)
    changes = np.asarray(model.predict(batch), dtype=np.float64).reshape(-1)
    if len(changes) != len(vectors):
        raise InvalidInputError(
            f"Model returned {len(changes)} outputs for {len(vectors)} vectors",
            field="predictions",
            value=len(changes),
        )
    return changes


def predict(model: TrainedModel, vectors: Sequence[FeatureVector]) -> list[PredictionRecord]:
    """Convert feature vectors into price predictions.

    Args:
        model: Loaded model; width is validated before inference runs
        vectors: Feature vectors from build_features

    Returns:
        One PredictionRecord per vector, same order
    """
    changes = predict_changes(model, vectors)
    records = [
        PredictionRecord(
            date=vector.target_date,
            predicted=vector.reference_close * (1.0 + float(change)),
            actual=vector.actual_close,
            confidence=UNMODELED_CONFIDENCE,
        )
        for vector, change in zip(vectors, changes)
    ]
    logger.debug(f"[Predict] Produced {len(records)} predictions")
    return records
