"""Historical data providers — the engine's only source of bars.

Every provider returns time-ordered ``PricePoint`` lists for an inclusive
``[start_date, end_date]`` window.  Timestamps are naive UTC datetimes.
Providers are read-only once constructed, so one instance can be shared
by concurrent backtests.
"""

from __future__ import annotations

import logging
import zlib
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Iterable, Protocol, Union, runtime_checkable

import numpy as np
import pandas as pd

from backtester.strategy.models import PricePoint

logger = logging.getLogger("backtester.data")

DateLike = Union[date, datetime, str]

CSV_COLUMNS = ["timestamp", "open", "high", "low", "close", "volume"]


class NoDataError(ValueError):
    """Raised when no usable bars exist for the requested window."""


def as_datetime(value: DateLike) -> datetime:
    """Normalise a date, datetime or ISO string to a naive UTC datetime."""
    if isinstance(value, datetime):
        ts = pd.Timestamp(value)
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    else:
        ts = pd.Timestamp(value)
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts.to_pydatetime()


@runtime_checkable
class HistoricalDataProvider(Protocol):
    """Source of historical bars."""

    def load_historical_data(
        self,
        symbol: str,
        start_date: DateLike,
        end_date: DateLike,
        interval: str = "1d",
    ) -> list[PricePoint]:
        """Return time-ordered bars for *symbol* within the inclusive window."""
        ...


# ── In-memory ────────────────────────────────────────────────────────────


class InMemoryDataProvider:
    """Serves bars from a fixed, pre-loaded collection.

    Args:
        bars: Bars for any number of symbols, in any order.
    """

    def __init__(self, bars: Iterable[PricePoint]) -> None:
        self._bars: tuple[PricePoint, ...] = tuple(
            sorted(bars, key=lambda b: b.timestamp)
        )

    def load_historical_data(
        self,
        symbol: str,
        start_date: DateLike,
        end_date: DateLike,
        interval: str = "1d",
    ) -> list[PricePoint]:
        start = as_datetime(start_date)
        end = as_datetime(end_date)
        return [
            b for b in self._bars
            if b.symbol == symbol and start <= b.timestamp <= end
        ]


# ── CSV ──────────────────────────────────────────────────────────────────


class CsvDataProvider:
    """Reads bars from ``<data_dir>/<SYMBOL>_<interval>.csv`` or
    ``<data_dir>/<SYMBOL>.csv``.

    Expected columns: ``timestamp, open, high, low, close, volume``.
    Unparseable prices/volumes become NaN and are dropped later by
    ``clean_data``; rows with an unparseable timestamp are discarded here.
    """

    def __init__(self, data_dir: Union[str, Path]) -> None:
        self._data_dir = Path(data_dir)

    def _resolve_path(self, symbol: str, interval: str) -> Path:
        for name in (f"{symbol}_{interval}.csv", f"{symbol}.csv"):
            path = self._data_dir / name
            if path.is_file():
                return path
        raise NoDataError(
            f"No CSV data for {symbol} ({interval}) in {self._data_dir}"
        )

    def load_historical_data(
        self,
        symbol: str,
        start_date: DateLike,
        end_date: DateLike,
        interval: str = "1d",
    ) -> list[PricePoint]:
        path = self._resolve_path(symbol, interval)
        df = pd.read_csv(path)

        missing = [c for c in CSV_COLUMNS if c not in df.columns]
        if missing:
            raise ValueError(f"{path} is missing column(s): {', '.join(missing)}")

        df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True, errors="coerce")
        df = df.dropna(subset=["timestamp"])
        df["timestamp"] = df["timestamp"].dt.tz_localize(None)
        for col in CSV_COLUMNS[1:]:
            df[col] = pd.to_numeric(df[col], errors="coerce")

        start = pd.Timestamp(as_datetime(start_date))
        end = pd.Timestamp(as_datetime(end_date))
        df = df[(df["timestamp"] >= start) & (df["timestamp"] <= end)]
        df = df.sort_values("timestamp", kind="stable")

        logger.debug("Loaded %d row(s) for %s from %s", len(df), symbol, path)
        return _frame_to_bars(df, symbol)


def _frame_to_bars(df: pd.DataFrame, symbol: str) -> list[PricePoint]:
    return [
        PricePoint(
            timestamp=row.timestamp.to_pydatetime(),
            symbol=symbol,
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume),
        )
        for row in df.itertuples(index=False)
    ]


# ── Synthetic ────────────────────────────────────────────────────────────


class SyntheticDataProvider:
    """Deterministic daily random-walk bars for demos and tests.

    The walk is generated from *origin* onward with a generator seeded by
    ``seed`` and the symbol, so overlapping windows see identical bars.

    Args:
        seed: Base seed mixed with the symbol name.
        start_price: Price on the origin day.
        origin: First day of the walk.
        daily_range: Maximum absolute daily close-to-close move, as a fraction.
    """

    def __init__(
        self,
        seed: int = 42,
        start_price: float = 100.0,
        origin: date = date(2000, 1, 1),
        daily_range: float = 0.04,
    ) -> None:
        if start_price <= 0:
            raise ValueError(f"start_price must be positive, got {start_price}")
        self._seed = seed
        self._start_price = start_price
        self._origin = as_datetime(origin)
        self._daily_range = daily_range

    def load_historical_data(
        self,
        symbol: str,
        start_date: DateLike,
        end_date: DateLike,
        interval: str = "1d",
    ) -> list[PricePoint]:
        if interval != "1d":
            raise ValueError(
                f"SyntheticDataProvider only supports '1d', got '{interval}'"
            )
        start = as_datetime(start_date)
        end = as_datetime(end_date)
        if end < start:
            return []

        origin = min(self._origin, datetime(start.year, start.month, start.day))
        n_days = (end - origin).days + 1

        rng = np.random.default_rng(
            [self._seed, zlib.crc32(symbol.encode("utf-8"))]
        )
        draws = rng.random((n_days, 4))

        moves = (draws[:, 0] - 0.5) * self._daily_range
        closes = self._start_price * np.cumprod(1.0 + moves)
        opens = np.concatenate(([self._start_price], closes[:-1]))
        highs = np.maximum(opens, closes) * (1.0 + draws[:, 1] * 0.01)
        lows = np.minimum(opens, closes) * (1.0 - draws[:, 2] * 0.01)
        volumes = np.floor(draws[:, 3] * 1_000_000) + 100_000

        bars: list[PricePoint] = []
        for i in range(n_days):
            ts = origin + timedelta(days=i)
            if ts < start:
                continue
            bars.append(
                PricePoint(
                    timestamp=ts,
                    symbol=symbol,
                    open=float(opens[i]),
                    high=float(highs[i]),
                    low=float(lows[i]),
                    close=float(closes[i]),
                    volume=float(volumes[i]),
                )
            )
        return bars
