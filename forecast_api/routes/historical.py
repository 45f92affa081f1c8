"""Historical daily price endpoint."""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query

from forecast_api.core.prices import PriceLoader
from forecast_api.domain.exceptions import NoDataAvailableError, ProviderError

from .dependencies import get_price_loader
from .models import HistoricalResponse, PricePointItem

router = APIRouter(tags=["historical"])
logger = logging.getLogger(__name__)


@router.get("/historical", response_model=HistoricalResponse, response_model_by_alias=True)
def get_historical(
    symbol: str = Query(..., min_length=1, description="Ticker symbol"),
    from_date: date = Query(..., alias="from", description="First day (YYYY-MM-DD)"),
    to_date: date = Query(..., alias="to", description="Last day (YYYY-MM-DD)"),
    price_loader: PriceLoader = Depends(get_price_loader),
) -> HistoricalResponse:
    """Daily close/volume for symbol within [from, to], ascending.

    Raises:
        HTTPException 400: from after to
        HTTPException 404: no rows for the window
        HTTPException 502: every price provider failed
    """
    if from_date > to_date:
        raise HTTPException(status_code=400, detail=f"from {from_date} is after to {to_date}")

    try:
        loaded = price_loader.load(symbol, from_date, to_date)
    except NoDataAvailableError as e:
        raise HTTPException(status_code=404, detail=f"No price data: {e}") from e
    except ProviderError as e:
        logger.error(f"[Prices] Historical fetch failed for {symbol}: {e}")
        raise HTTPException(status_code=502, detail=f"Failed to load historical data: {e}") from e

    return HistoricalResponse(
        symbol=symbol,
        from_date=from_date.isoformat(),
        to_date=to_date.isoformat(),
        source=loaded.source,
        data=[PricePointItem(**p.to_dict()) for p in loaded.points],
    )
