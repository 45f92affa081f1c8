"""Daily news sentiment endpoint."""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query

from forecast_api.core.news_api.finnhub import FinnhubNewsClient
from forecast_api.core.sentiment import SentimentAnalyzer, group_news_by_date
from forecast_api.domain.exceptions import ProviderError, SentimentError

from .dependencies import get_news_client, get_sentiment_analyzer
from .models import SentimentItem, SentimentResponse

router = APIRouter(tags=["sentiment"])
logger = logging.getLogger(__name__)


@router.get("/sentiment", response_model=SentimentResponse, response_model_by_alias=True)
def get_sentiment(
    symbol: str = Query(..., min_length=1, description="Ticker symbol"),
    from_date: date = Query(..., alias="from", description="First day (YYYY-MM-DD)"),
    to_date: date = Query(..., alias="to", description="Last day (YYYY-MM-DD)"),
    news_client: FinnhubNewsClient = Depends(get_news_client),
    analyzer: SentimentAnalyzer = Depends(get_sentiment_analyzer),
) -> SentimentResponse:
    """Score each day's company news in [from, to].

    Only days with at least one article appear in the result.

    Raises:
        HTTPException 400: from after to
        HTTPException 502: news fetch failed, or scoring failed under the abort policy
        HTTPException 503: news or LLM credentials missing
    """
    if from_date > to_date:
        raise HTTPException(status_code=400, detail=f"from {from_date} is after to {to_date}")

    try:
        news = news_client.fetch_news(symbol, from_date, to_date)
    except ProviderError as e:
        logger.error(f"[Sentiment] News fetch failed for {symbol}: {e}")
        raise HTTPException(status_code=502, detail=f"Failed to fetch news: {e}") from e

    try:
        daily = analyzer.analyze_batch(group_news_by_date(news))
    except SentimentError as e:
        logger.error(f"[Sentiment] Aborted for {symbol}: {e}")
        raise HTTPException(status_code=502, detail=str(e)) from e

    return SentimentResponse(
        symbol=symbol,
        from_date=from_date.isoformat(),
        to_date=to_date.isoformat(),
        article_count=len(news),
        data=[
            SentimentItem(
                date=d.date.isoformat(),
                sentiment=d.sentiment,
                confidence=d.confidence,
                key_events=list(d.key_events),
            )
            for d in daily
        ],
    )
