"""Walk-forward prediction endpoint."""

import logging
import time

from fastapi import APIRouter, Depends, HTTPException

from forecast_api.core.features import AlignmentPolicy, BuildMode, build_features
from forecast_api.core.metrics import summarize
from forecast_api.core.predictor import predict
from forecast_api.core.prices import PriceLoader
from forecast_api.domain.exceptions import (
    InsufficientDataError,
    InvalidInputError,
    ModelUnavailableError,
    NoDataAvailableError,
    ProviderError,
)
from forecast_api.storage.model_json import ModelStorage

from .dependencies import (
    get_alignment_policy,
    get_lookback_window,
    get_model_storage,
    get_price_loader,
    get_symbol_allowlist,
)
from .models import DateRange, MetricsResponse, PredictionItem, PredictRequest, PredictResponse

router = APIRouter(tags=["predict"])
logger = logging.getLogger(__name__)


@router.post("/predict", response_model=PredictResponse)
def predict_prices(
    request: PredictRequest,
    storage: ModelStorage = Depends(get_model_storage),
    price_loader: PriceLoader = Depends(get_price_loader),
    lookback: int = Depends(get_lookback_window),
    alignment: AlignmentPolicy = Depends(get_alignment_policy),
    supported_symbols: list[str] = Depends(get_symbol_allowlist),
) -> PredictResponse:
    """Predict each day's close in the window from the days before it.

    For every target day the model sees the relative price and volume changes
    of the previous `lookback` trading days and predicts the target's relative
    change; that change is applied to the previous close. Predictions are
    graded against realized closes.

    Raises:
        HTTPException 400: start after end, unsupported symbol, too few days
        HTTPException 404: no prices for the window
        HTTPException 502: every price provider failed
        HTTPException 503: model artifact missing, corrupt or built for another lookback
    """
    t_start = time.time()
    symbol = request.symbol.strip().upper()
    logger.info(f"[Predict] {symbol} {request.start_date}..{request.end_date} (lookback={lookback}, {alignment.value})")

    if request.start_date > request.end_date:
        raise HTTPException(
            status_code=400,
            detail=f"startDate {request.start_date} is after endDate {request.end_date}",
        )
    if symbol not in supported_symbols:
        raise HTTPException(
            status_code=400,
            detail=f"This model currently supports {', '.join(supported_symbols)} only.",
        )

    # Load the model before touching providers so a broken artifact fails fast
    t0 = time.time()
    try:
        model = storage.load()
    except ModelUnavailableError as e:
        logger.error(f"[Predict] Model unavailable: {e}")
        raise HTTPException(status_code=503, detail=f"Model unavailable: {e}") from e
    logger.info(f"[Predict] Model loaded in {time.time() - t0:.2f}s")

    expected_width = 2 * lookback
    if model.input_width != expected_width:
        logger.error(
            f"[Predict] Model expects {model.input_width} features, lookback {lookback} produces {expected_width}"
        )
        raise HTTPException(
            status_code=503,
            detail=(
                f"Model unavailable: model input width {model.input_width} does not match "
                f"lookback {lookback} ({expected_width} features)"
            ),
        )

    t0 = time.time()
    try:
        loaded = price_loader.load(symbol, request.start_date, request.end_date)
    except NoDataAvailableError as e:
        raise HTTPException(status_code=404, detail=f"No price data: {e}") from e
    except ProviderError as e:
        logger.error(f"[Predict] Historical fetch failed: {e}")
        raise HTTPException(status_code=502, detail=f"Historical fetch failed: {e}") from e
    logger.info(f"[Predict] {len(loaded.points)} days from {loaded.source} in {time.time() - t0:.2f}s")

    mode = BuildMode.FORECAST if request.include_forecast else BuildMode.BACKTEST
    try:
        vectors = build_features(loaded.points, lookback, mode=mode, alignment=alignment)
        if not any(v.actual_close is not None for v in vectors):
            # A forecast alone cannot be graded
            raise InsufficientDataError(
                f"Not enough data. Need at least {lookback + 1} days.",
                required=lookback + 1,
                available=len(loaded.points),
            )
        records = predict(model, vectors)
    except InsufficientDataError as e:
        raise HTTPException(
            status_code=400,
            detail=f"Not enough data. Need at least {e.required} days, got {e.available}.",
        ) from e
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    metrics = summarize(records)
    logger.info(
        f"[Predict] {len(records)} predictions in {time.time() - t_start:.2f}s "
        f"(mse={metrics.mse}, directional={metrics.directional_accuracy})"
    )

    return PredictResponse(
        predictions=[
            PredictionItem(
                date=r.date.isoformat(),
                predicted=r.predicted,
                actual=r.actual,
                confidence=r.confidence,
            )
            for r in records
        ],
        metrics=MetricsResponse(mse=metrics.mse, directional_accuracy=metrics.directional_accuracy),
        symbol=symbol,
        date_range=DateRange(start_date=request.start_date.isoformat(), end_date=request.end_date.isoformat()),
        alignment=alignment.value,
        lookback=lookback,
    )
