"""Daily news sentiment scored by an LLM.

All headlines of one calendar day go to the LLM in a single call, which
returns a sentiment in [-1, 1], a confidence in [0, 1] and a few key events.
What happens when that call fails is decided by SentimentFailurePolicy.
"""

import logging
import time
from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, date
from enum import Enum

from forecast_api.core.llm import LLMProvider, parse_json_response
from forecast_api.domain.entities import DailySentiment, NewsItem
from forecast_api.domain.exceptions import SentimentError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a financial sentiment analyst. Analyze news headlines and return a JSON object with:
- sentiment: number between -1 (very bearish) and 1 (very bullish)
- confidence: number between 0 and 1 indicating confidence in the analysis
- keyEvents: array of strings describing the 2-3 most impactful events
Return only the JSON object."""

FAILED_EVENT = "Analysis failed"


class SentimentFailurePolicy(str, Enum):
    """What a failed LLM call does to a day's result.

    NEUTRAL: the day scores 0 with confidence 0 and a single failure event.
    ABORT: SentimentError is raised and the batch stops.
    """

    NEUTRAL = "neutral"
    ABORT = "abort"


def _clamp(value: object, low: float, high: float) -> float:
    number = float(value or 0)
    return max(low, min(high, number))


def group_news_by_date(items: Iterable[NewsItem]) -> dict[date, list[NewsItem]]:
    """Group articles by the UTC calendar day of their timestamp, days ascending."""
    grouped: dict[date, list[NewsItem]] = {}
    for item in items:
        day = item.datetime.astimezone(UTC).date()
        grouped.setdefault(day, []).append(item)
    return {day: grouped[day] for day in sorted(grouped)}


class SentimentAnalyzer:
    """Scores per-day news sentiment with an LLM provider."""

    def __init__(
        self,
        provider: LLMProvider,
        failure_policy: SentimentFailurePolicy = SentimentFailurePolicy.NEUTRAL,
        request_delay: float = 1.0,
    ):
        """Initialize the analyzer.

        Args:
            provider: LLM backend
            failure_policy: Behaviour when a day's LLM call fails
            request_delay: Minimum seconds between LLM calls
        """
        self.provider = provider
        self.failure_policy = SentimentFailurePolicy(failure_policy)
        self.request_delay = request_delay
        self._last_request_time: float = 0

    def _rate_limit(self) -> None:
        """Enforce spacing between LLM calls."""
        elapsed = time.time() - self._last_request_time
        if elapsed < self.request_delay:
            time.sleep(self.request_delay - elapsed)
        self._last_request_time = time.time()

    def _score(self, news: Sequence[NewsItem], day: date) -> DailySentiment:
        headlines = "\n".join(item.headline for item in news)
        prompt = f"Analyze the market sentiment for these news headlines from {day.isoformat()}:\n\n{headlines}"

        self._rate_limit()
        response = self.provider.generate(prompt, system=SYSTEM_PROMPT)
        result = parse_json_response(response.content)

        events = result.get("keyEvents") or []
        if not isinstance(events, list):
            raise ValueError(f"keyEvents must be a list, got {type(events).__name__}")
        return DailySentiment(
            date=day,
            sentiment=_clamp(result.get("sentiment"), -1.0, 1.0),
            confidence=_clamp(result.get("confidence"), 0.0, 1.0),
            key_events=tuple(str(e) for e in events),
        )

    def analyze_day(self, news: Sequence[NewsItem], day: date) -> DailySentiment:
        """Score one day's news.

        A day without news is neutral with confidence 0 and makes no LLM call.

        Raises:
            SentimentError: the LLM call failed under the ABORT policy
        """
        if not news:
            return DailySentiment(date=day, sentiment=0.0, confidence=0.0)

        try:
            return self._score(news, day)
        except Exception as e:
            if self.failure_policy is SentimentFailurePolicy.ABORT:
                raise SentimentError(f"Sentiment analysis failed for {day}: {e}", day=day.isoformat()) from e
            logger.warning(f"[Sentiment] {day}: analysis failed, scoring neutral ({type(e).__name__}: {e})")
            return DailySentiment(date=day, sentiment=0.0, confidence=0.0, key_events=(FAILED_EVENT,))

    def analyze_batch(self, news_by_date: Mapping[date, Sequence[NewsItem]]) -> list[DailySentiment]:
        """Score every day in date order."""
        t0 = time.time()
        results = [self.analyze_day(news_by_date[day], day) for day in sorted(news_by_date)]
        logger.info(
            f"[Sentiment] Scored {len(results)} days with {self.provider.name} in {time.time() - t0:.2f}s"
        )
        return results
