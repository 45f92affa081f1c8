"""Domain entities - frozen dataclasses with no external dependencies.

Each pipeline stage produces a fresh sequence of these objects and never
mutates what it was given.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

# The model does not estimate its own uncertainty; every prediction carries
# this fixed value so the field stays explicit until one is modeled.
UNMODELED_CONFIDENCE = 0.75


@dataclass(frozen=True)
class PricePoint:
    """One trading day of price history."""

    date: date
    close: float
    volume: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "date": self.date.isoformat(),
            "close": self.close,
            "volume": self.volume,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PricePoint":
        """Create from dictionary."""
        return cls(
            date=date.fromisoformat(str(data["date"])),
            close=float(data["close"]),
            volume=int(data["volume"]),
        )


@dataclass(frozen=True)
class FeatureVector:
    """Model input for a single target day.

    values holds 2 * lookback interleaved (price_change, volume_change) pairs,
    oldest first. actual_close and target_change are None when the target day
    lies in the future.
    """

    values: tuple[float, ...]
    target_date: date
    reference_close: float
    actual_close: float | None = None
    target_change: float | None = None

    @property
    def width(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class PredictionRecord:
    """A predicted close for one day, with the realized close when known."""

    date: date
    predicted: float
    actual: float | None
    confidence: float = UNMODELED_CONFIDENCE

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "date": self.date.isoformat(),
            "predicted": self.predicted,
            "actual": self.actual,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class ModelMetrics:
    """Summary statistics over graded predictions.

    Metrics that are undefined for the given records are None, never NaN.
    """

    mse: float | None
    directional_accuracy: float | None  # Fraction in [0, 1]
    graded_count: int


@dataclass(frozen=True)
class NewsItem:
    """A company news article."""

    headline: str
    summary: str
    datetime: datetime
    source: str
    url: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "headline": self.headline,
            "summary": self.summary,
            "datetime": int(self.datetime.timestamp()),
            "source": self.source,
            "url": self.url,
        }


@dataclass(frozen=True)
class DailySentiment:
    """Sentiment for one calendar day of news."""

    date: date
    sentiment: float  # -1 (very bearish) to 1 (very bullish)
    confidence: float  # 0 to 1
    key_events: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "date": self.date.isoformat(),
            "sentiment": self.sentiment,
            "confidence": self.confidence,
            "keyEvents": list(self.key_events),
        }
