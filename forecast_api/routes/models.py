"""Request/response models for the HTTP endpoints.

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serializing fields as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# /predict
# ============================================================================


class PredictRequest(CamelModel):
    """Request model for the prediction endpoint."""

    symbol: str = Field(..., min_length=1, description="Ticker symbol, e.g. AAPL")
    start_date: date = Field(..., description="First day of the price window (YYYY-MM-DD)")
    end_date: date = Field(..., description="Last day of the price window (YYYY-MM-DD)")
    include_forecast: bool = Field(
        False,
        description="Append a prediction for the next business day after the last loaded date",
    )


class PredictionItem(CamelModel):
    """A predicted close and, when known, the realized close."""

    date: str  # YYYY-MM-DD
    predicted: float
    actual: float | None
    confidence: float


class MetricsResponse(CamelModel):
    """Accuracy over graded predictions; null when undefined."""

    mse: float | None
    directional_accuracy: float | None  # Fraction in [0, 1]


class DateRange(CamelModel):
    start_date: str
    end_date: str


class PredictResponse(CamelModel):
    """Response model for the prediction endpoint."""

    predictions: list[PredictionItem]
    metrics: MetricsResponse
    symbol: str
    date_range: DateRange
    alignment: str
    lookback: int


# ============================================================================
# /historical
# ============================================================================


class PricePointItem(BaseModel):
    date: str  # YYYY-MM-DD
    close: float
    volume: int


class HistoricalResponse(BaseModel):
    """Daily prices within [from, to], ascending."""

    model_config = ConfigDict(populate_by_name=True)

    symbol: str
    from_date: str = Field(..., alias="from")
    to_date: str = Field(..., alias="to")
    source: str
    data: list[PricePointItem]


# ============================================================================
# /sentiment
# ============================================================================


class SentimentItem(CamelModel):
    date: str  # YYYY-MM-DD
    sentiment: float = Field(..., ge=-1, le=1)
    confidence: float = Field(..., ge=0, le=1)
    key_events: list[str]


class SentimentResponse(BaseModel):
    """Daily news sentiment for a symbol."""

    model_config = ConfigDict(populate_by_name=True)

    symbol: str
    from_date: str = Field(..., alias="from")
    to_date: str = Field(..., alias="to")
    article_count: int = Field(..., alias="articleCount")
    data: list[SentimentItem]
