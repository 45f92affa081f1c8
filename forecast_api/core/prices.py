"""Historical daily price loading.

Prices come from an ordered chain of providers. Each provider call goes
through a RetryPolicy; when a provider keeps failing the loader falls back to
the next one. Whatever the source, the series handed on is filtered to the
requested window, de-duplicated by date and sorted ascending.
"""

import io
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, time as dt_time, timedelta
from typing import Protocol

import httpx
import pandas as pd
import yfinance as yf

from forecast_api.core.config import (
    get_finnhub_api_key,
    get_price_providers,
    get_price_retry_attempts,
    get_price_retry_backoff,
)
from forecast_api.core.retry import RetryPolicy
from forecast_api.domain.entities import PricePoint
from forecast_api.domain.exceptions import InvalidInputError, NoDataAvailableError, ProviderError

logger = logging.getLogger(__name__)

STOOQ_URL = "https://stooq.com/q/d/l/"
FINNHUB_BASE_URL = "https://finnhub.io/api/v1"
DEFAULT_TIMEOUT = 30.0


class PriceProvider(Protocol):
    """Source of daily close/volume history."""

    name: str

    def fetch(self, symbol: str, from_date: date, to_date: date) -> list[PricePoint]:
        """Fetch daily points for symbol; may return days outside the window.

        Raises:
            NoDataAvailableError: the provider has no rows for the request
            ProviderError: the provider could not be reached or parsed
        """
        ...


def _frame_to_points(df: pd.DataFrame) -> list[PricePoint]:
    """Convert a frame with a date index and close/volume columns to points."""
    df = df[["close", "volume"]].apply(pd.to_numeric, errors="coerce").dropna()
    return [
        PricePoint(date=pd.Timestamp(idx).date(), close=float(row.close), volume=int(row.volume))
        for idx, row in zip(df.index, df.itertuples(index=False))
    ]


# =============================================================================
# Stooq
# =============================================================================


def stooq_symbol(symbol: str) -> str:
    """Stooq wants lowercase tickers, with '.us' for plain US symbols."""
    symbol = symbol.lower()
    return symbol if "." in symbol else f"{symbol}.us"


def parse_stooq_csv(text: str) -> list[PricePoint]:
    """Parse a Stooq daily CSV (Date,Open,High,Low,Close,Volume).

    Rows with N/A close or volume are dropped.

    Raises:
        NoDataAvailableError: the body has no date header or no usable rows
    """
    text = text.strip()
    if not text or "date" not in text.splitlines()[0].lower():
        raise NoDataAvailableError("Stooq returned no data", service="stooq")

    df = pd.read_csv(io.StringIO(text), na_values=["N/A"])
    df.columns = [str(c).strip().lower() for c in df.columns]
    if "close" not in df.columns or "volume" not in df.columns:
        raise NoDataAvailableError("Stooq CSV has no close/volume columns", service="stooq")
    df["date"] = pd.to_datetime(df["date"], errors="coerce")
    df = df.dropna(subset=["date"]).set_index("date")

    points = _frame_to_points(df)
    if not points:
        raise NoDataAvailableError("Stooq CSV has no usable rows", service="stooq")
    return points


class StooqPriceProvider:
    """Daily history from Stooq's CSV download endpoint (no credentials)."""

    name = "stooq"

    def __init__(self, base_url: str = STOOQ_URL, timeout: float = DEFAULT_TIMEOUT):
        self.base_url = base_url
        self.timeout = timeout

    def fetch(self, symbol: str, from_date: date, to_date: date) -> list[PricePoint]:
        params = {
            "s": stooq_symbol(symbol),
            "i": "d",
            "d1": from_date.strftime("%Y%m%d"),
            "d2": to_date.strftime("%Y%m%d"),
        }
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.get(self.base_url, params=params)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise ProviderError(f"Stooq request failed: {e}", service=self.name, symbol=symbol) from e

        try:
            return parse_stooq_csv(response.text)
        except NoDataAvailableError as e:
            e.symbol = symbol
            raise
        except (ValueError, pd.errors.ParserError) as e:
            raise ProviderError(f"Could not parse Stooq CSV: {e}", service=self.name, symbol=symbol) from e


# =============================================================================
# yfinance
# =============================================================================


class YFinancePriceProvider:
    """Daily history from Yahoo Finance via yfinance."""

    name = "yfinance"

    def fetch(self, symbol: str, from_date: date, to_date: date) -> list[PricePoint]:
        # yfinance treats `end` as exclusive
        try:
            data = yf.download(
                symbol,
                start=from_date.isoformat(),
                end=(to_date + timedelta(days=1)).isoformat(),
                progress=False,
                auto_adjust=False,
            )
        except Exception as e:
            raise ProviderError(f"yfinance download failed: {e}", service=self.name, symbol=symbol) from e

        if data is None or data.empty:
            raise NoDataAvailableError(f"yfinance returned no rows for {symbol}", service=self.name, symbol=symbol)

        # Single-ticker downloads can still come back with (field, ticker) columns
        if isinstance(data.columns, pd.MultiIndex):
            data.columns = data.columns.get_level_values(0)

        try:
            df = data[["Close", "Volume"]].copy()
        except KeyError as e:
            raise ProviderError(f"yfinance frame missing columns: {e}", service=self.name, symbol=symbol) from e
        df.columns = ["close", "volume"]

        points = _frame_to_points(df)
        if not points:
            raise NoDataAvailableError(f"yfinance rows for {symbol} were all empty", service=self.name, symbol=symbol)
        return points


# =============================================================================
# Finnhub
# =============================================================================


class FinnhubPriceProvider:
    """Daily candles from Finnhub's /stock/candle endpoint."""

    name = "finnhub"

    def __init__(self, api_key: str, base_url: str = FINNHUB_BASE_URL, timeout: float = DEFAULT_TIMEOUT):
        if not api_key:
            raise ValueError("Finnhub API key is required")
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout

    def fetch(self, symbol: str, from_date: date, to_date: date) -> list[PricePoint]:
        start = datetime.combine(from_date, dt_time.min, tzinfo=UTC)
        end = datetime.combine(to_date, dt_time.max, tzinfo=UTC)
        params = {
            "symbol": symbol,
            "resolution": "D",
            "from": int(start.timestamp()),
            "to": int(end.timestamp()),
            "token": self.api_key,
        }
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.get(f"{self.base_url}/stock/candle", params=params)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise ProviderError(f"Finnhub request failed: {e}", service=self.name, symbol=symbol) from e
        except ValueError as e:
            raise ProviderError(f"Finnhub returned non-JSON: {e}", service=self.name, symbol=symbol) from e

        if not isinstance(data, dict):
            raise ProviderError(
                f"Finnhub candle payload must be an object, got {type(data).__name__}", service=self.name, symbol=symbol
            )
        status = data.get("s")
        if status == "no_data":
            raise NoDataAvailableError("No data available for the specified period", service=self.name, symbol=symbol)
        if status != "ok":
            raise ProviderError(f"Finnhub candle status {status!r}", service=self.name, symbol=symbol)

        closes, volumes, stamps = data.get("c") or [], data.get("v") or [], data.get("t") or []
        if not all(isinstance(a, list) for a in (closes, volumes, stamps)):
            raise ProviderError("Finnhub candle fields must be arrays", service=self.name, symbol=symbol)
        if not (len(closes) == len(volumes) == len(stamps)):
            raise ProviderError("Finnhub candle arrays differ in length", service=self.name, symbol=symbol)
        try:
            return [
                PricePoint(
                    date=datetime.fromtimestamp(ts, tz=UTC).date(),
                    close=float(close),
                    volume=int(volume),
                )
                for close, volume, ts in zip(closes, volumes, stamps)
            ]
        except (TypeError, ValueError, OverflowError, OSError) as e:
            raise ProviderError(f"Malformed Finnhub candle values: {e}", service=self.name, symbol=symbol) from e


# =============================================================================
# Loader
# =============================================================================


def normalize_series(points: Sequence[PricePoint], from_date: date, to_date: date) -> list[PricePoint]:
    """Filter to [from_date, to_date], keep the last point per date, sort ascending."""
    by_date: dict[date, PricePoint] = {}
    for point in points:
        if from_date <= point.date <= to_date:
            by_date[point.date] = point
    return [by_date[d] for d in sorted(by_date)]


@dataclass(frozen=True)
class LoadResult:
    """A normalized price series and the provider that produced it."""

    symbol: str
    source: str
    points: list[PricePoint]


class PriceLoader:
    """Loads a symbol's history from the first provider that can serve it."""

    def __init__(self, providers: Sequence[PriceProvider], retry_policy: RetryPolicy | None = None):
        if not providers:
            raise ValueError("PriceLoader needs at least one provider")
        self.providers = list(providers)
        self.retry_policy = retry_policy or RetryPolicy()

    def load(self, symbol: str, from_date: date, to_date: date) -> LoadResult:
        """Load and normalize daily prices for [from_date, to_date].

        Raises:
            InvalidInputError: from_date is after to_date
            NoDataAvailableError: every provider answered with no data
            ProviderError: at least one provider failed and none succeeded
        """
        if from_date > to_date:
            raise InvalidInputError(
                f"from date {from_date} is after to date {to_date}", field="from", value=from_date.isoformat()
            )

        errors: list[ProviderError] = []
        for provider in self.providers:
            t0 = time.time()
            try:
                raw = self.retry_policy.call(
                    lambda p=provider: p.fetch(symbol, from_date, to_date),
                    retry_on=(ProviderError,),
                    give_up_on=(NoDataAvailableError,),
                    label=f"[Prices] {provider.name} {symbol}",
                )
            except ProviderError as e:
                logger.warning(f"[Prices] {provider.name} failed for {symbol}: {e}")
                errors.append(e)
                continue

            points = normalize_series(raw, from_date, to_date)
            if not points:
                logger.info(f"[Prices] {provider.name} has no rows for {symbol} in {from_date}..{to_date}")
                errors.append(
                    NoDataAvailableError(
                        f"No rows between {from_date} and {to_date}", service=provider.name, symbol=symbol
                    )
                )
                continue

            logger.info(
                f"[Prices] Loaded {len(points)} days for {symbol} from {provider.name} in {time.time() - t0:.2f}s"
            )
            return LoadResult(symbol=symbol, source=provider.name, points=points)

        names = [p.name for p in self.providers]
        if all(isinstance(e, NoDataAvailableError) for e in errors):
            raise NoDataAvailableError(
                f"No price data for {symbol} between {from_date} and {to_date} from {names}", symbol=symbol
            )
        details = "; ".join(f"{e.service}: {e}" for e in errors)
        raise ProviderError(f"All price providers failed for {symbol} ({details})", symbol=symbol)

    def get_historical_prices(self, symbol: str, from_date: date, to_date: date) -> list[PricePoint]:
        """Normalized series only, without the source name."""
        return self.load(symbol, from_date, to_date).points


def build_price_loader() -> PriceLoader:
    """Build the loader from PRICE_PROVIDERS and the retry settings.

    A configured finnhub provider without FINNHUB_API_KEY is skipped.

    Raises:
        InvalidInputError: no usable provider remains
    """
    providers: list[PriceProvider] = []
    for name in get_price_providers():
        if name == "stooq":
            providers.append(StooqPriceProvider())
        elif name == "yfinance":
            providers.append(YFinancePriceProvider())
        elif name == "finnhub":
            api_key = get_finnhub_api_key()
            if not api_key:
                logger.warning("[Prices] finnhub configured but FINNHUB_API_KEY is not set, skipping")
                continue
            providers.append(FinnhubPriceProvider(api_key))

    if not providers:
        raise InvalidInputError("No usable price provider configured", field="PRICE_PROVIDERS")

    policy = RetryPolicy(max_attempts=get_price_retry_attempts(), initial_delay=get_price_retry_backoff())
    return PriceLoader(providers, policy)
