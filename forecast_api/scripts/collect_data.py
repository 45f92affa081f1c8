"""Collect prices and daily news sentiment into JSON files for training.

Run as:
    python -m forecast_api.scripts.collect_data --symbol AAPL \
        --period 2024-01-01:2024-06-30 --period 2024-07-01:2024-09-01

Each period is written to <output-dir>/<symbol>-<from>-<to>.json with the
shape {"prices": [...], "sentiments": [...], "startDate": ..., "endDate": ...}.
A failed price fetch leaves the period with an empty price list; news and
sentiment failures stop the run.
"""

import argparse
import json
import logging
import sys
import time
from collections.abc import Callable, Sequence
from datetime import date
from pathlib import Path
from typing import Any

from dateutil.relativedelta import relativedelta
from rich.console import Console
from rich.table import Table

from forecast_api.core.config import get_finnhub_api_key, get_sentiment_failure_policy, get_sentiment_request_delay
from forecast_api.core.llm import get_llm_provider
from forecast_api.core.news_api.finnhub import FinnhubNewsClient
from forecast_api.core.prices import PriceLoader, build_price_loader
from forecast_api.core.sentiment import SentimentAnalyzer, SentimentFailurePolicy, group_news_by_date
from forecast_api.domain.exceptions import ForecastAPIError, ProviderError
from forecast_api.storage.base import DEFAULT_DATA_PATH

console = Console()
logger = logging.getLogger(__name__)

DEFAULT_PERIODS = (
    (date(2023, 1, 1), date(2023, 6, 30)),
    (date(2023, 7, 1), date(2023, 12, 31)),
    (date(2024, 1, 1), date(2024, 6, 30)),
    (date(2024, 7, 1), date(2024, 9, 1)),
)
DEFAULT_PERIOD_DELAY = 15.0


def parse_period(value: str) -> tuple[date, date]:
    """Parse 'YYYY-MM-DD:YYYY-MM-DD' into an ordered date pair."""
    try:
        start_raw, end_raw = value.split(":")
        start, end = date.fromisoformat(start_raw.strip()), date.fromisoformat(end_raw.strip())
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Period must be FROM:TO in YYYY-MM-DD, got {value!r}") from e
    if start > end:
        raise argparse.ArgumentTypeError(f"Period start {start} is after end {end}")
    return start, end


def split_periods(start: date, end: date, months: int) -> list[tuple[date, date]]:
    """Split [start, end] into consecutive windows of `months` calendar months."""
    if months < 1:
        raise ValueError(f"months must be >= 1, got {months}")
    periods = []
    cursor = start
    while cursor <= end:
        window_end = min(cursor + relativedelta(months=months) - relativedelta(days=1), end)
        periods.append((cursor, window_end))
        cursor = window_end + relativedelta(days=1)
    return periods


def output_filename(symbol: str, start: date, end: date) -> str:
    return f"{symbol.lower()}-{start.isoformat()}-{end.isoformat()}.json"


def collect_period(
    symbol: str,
    start: date,
    end: date,
    price_loader: PriceLoader,
    news_client: FinnhubNewsClient,
    analyzer: SentimentAnalyzer,
) -> dict[str, Any]:
    """Collect prices, news and daily sentiment for one period.

    Raises:
        ProviderError: the news fetch failed
        SentimentError: scoring failed under the abort policy
    """
    console.print("  Fetching price data...")
    try:
        prices = price_loader.get_historical_prices(symbol, start, end)
        console.print(f"  Got [green]{len(prices)}[/] price points")
    except ProviderError as e:
        logger.warning(f"Price fetch failed for {symbol} {start}..{end}: {e}")
        console.print(f"  [yellow]Price fetch failed, continuing with empty prices:[/] {e}")
        prices = []

    console.print("  Fetching news data...")
    news = news_client.fetch_news(symbol, start, end)
    console.print(f"  Got [green]{len(news)}[/] news articles")

    console.print("  Analyzing sentiment...")
    sentiments = analyzer.analyze_batch(group_news_by_date(news))
    console.print(f"  Processed [green]{len(sentiments)}[/] sentiment points")

    return {
        "prices": [p.to_dict() for p in prices],
        "sentiments": [s.to_dict() for s in sentiments],
        "startDate": start.isoformat(),
        "endDate": end.isoformat(),
    }


def save_collection(data: dict[str, Any], output_dir: Path, filename: str) -> Path:
    """Write one period's data as indented JSON."""
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / filename
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    return path


def run_collection(
    symbol: str,
    periods: Sequence[tuple[date, date]],
    output_dir: Path,
    price_loader: PriceLoader,
    news_client: FinnhubNewsClient,
    analyzer: SentimentAnalyzer,
    period_delay: float = DEFAULT_PERIOD_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> list[Path]:
    """Collect every period in order, pausing between periods."""
    written = []
    for index, (start, end) in enumerate(periods):
        console.print(f"\n[bold blue]--- Collecting {symbol} {start} to {end} ---[/]")
        data = collect_period(symbol, start, end, price_loader, news_client, analyzer)
        path = save_collection(data, output_dir, output_filename(symbol, start, end))
        console.print(f"  Data saved to [green]{path}[/]")
        written.append(path)

        if index < len(periods) - 1 and period_delay > 0:
            console.print(f"  Waiting {period_delay:.0f}s before next period...")
            sleep(period_delay)
    return written


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Collect prices and daily news sentiment for model training")
    parser.add_argument("--symbol", type=str, default="AAPL", help="Ticker symbol (default: AAPL)")
    parser.add_argument(
        "--period",
        type=parse_period,
        action="append",
        dest="periods",
        help="Period FROM:TO (YYYY-MM-DD:YYYY-MM-DD); repeatable",
    )
    parser.add_argument("--from", type=date.fromisoformat, dest="range_from", help="Range start, split into periods")
    parser.add_argument("--to", type=date.fromisoformat, dest="range_to", help="Range end, split into periods")
    parser.add_argument(
        "--months-per-period", type=int, default=6, help="Months per period when using --from/--to (default: 6)"
    )
    parser.add_argument(
        "--output-dir", type=Path, default=DEFAULT_DATA_PATH, help=f"Output directory (default: {DEFAULT_DATA_PATH})"
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=DEFAULT_PERIOD_DELAY,
        help=f"Seconds to wait between periods (default: {DEFAULT_PERIOD_DELAY:.0f})",
    )
    return parser


def resolve_periods(args: argparse.Namespace) -> list[tuple[date, date]]:
    """Periods from --period, else --from/--to, else the default periods."""
    if args.periods:
        return list(args.periods)
    if args.range_from or args.range_to:
        if not (args.range_from and args.range_to):
            raise ValueError("--from and --to must be given together")
        if args.range_from > args.range_to:
            raise ValueError(f"--from {args.range_from} is after --to {args.range_to}")
        return split_periods(args.range_from, args.range_to, args.months_per_period)
    return list(DEFAULT_PERIODS)


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entrypoint."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.WARNING)

    try:
        periods = resolve_periods(args)
    except ValueError as e:
        console.print(f"[bold red]Error:[/] {e}")
        return 2

    api_key = get_finnhub_api_key()
    if not api_key:
        console.print("[bold red]Error:[/] FINNHUB_API_KEY is not set")
        return 1

    try:
        analyzer = SentimentAnalyzer(
            get_llm_provider(),
            failure_policy=SentimentFailurePolicy(get_sentiment_failure_policy()),
            request_delay=get_sentiment_request_delay(),
        )
        price_loader = build_price_loader()
    except ForecastAPIError as e:
        console.print(f"[bold red]Error:[/] {e}")
        return 1

    symbol = args.symbol.upper()
    console.print(f"[bold cyan]Collecting {symbol} for {len(periods)} period(s) into {args.output_dir}[/]")

    t0 = time.time()
    try:
        written = run_collection(
            symbol,
            periods,
            args.output_dir,
            price_loader,
            FinnhubNewsClient(api_key),
            analyzer,
            period_delay=args.delay,
        )
    except ForecastAPIError as e:
        console.print(f"\n[bold red]Error:[/] {e}")
        return 1

    table = Table(title="Collection Summary", show_header=True, header_style="bold cyan")
    table.add_column("File", style="dim")
    for path in written:
        table.add_row(str(path))
    console.print()
    console.print(table)
    console.print(f"[bold green]All data collected in {time.time() - t0:.1f}s[/]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
