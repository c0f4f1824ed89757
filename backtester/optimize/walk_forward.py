"""Walk-forward windows and summary statistics.

Each period is a training window immediately followed by a disjoint test
window; only the test window is backtested.  Periods never overlap and a
test window that would run past the end of the range is not evaluated.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Sequence

from backtester.backtest.models import BacktestResult


@dataclass(frozen=True)
class WalkForwardWindow:
    train_start: datetime
    train_end: datetime  # exclusive
    test_start: datetime
    test_end: datetime  # inclusive


@dataclass(frozen=True)
class WalkForwardPeriod:
    """One evaluated test window and its backtest result."""

    window: WalkForwardWindow
    result: BacktestResult


@dataclass(frozen=True)
class WalkForwardSummary:
    total_periods: int
    avg_return: float
    avg_sharpe: float
    consistency: float  # fraction of profitable periods


def make_windows(
    start: datetime,
    end: datetime,
    train_period_days: int = 252,
    test_period_days: int = 63,
) -> list[WalkForwardWindow]:
    """Split ``[start, end]`` into consecutive train/test periods.

    Train covers ``[cursor, cursor + train)``; test covers
    ``[cursor + train, cursor + train + test]``.  The cursor then moves
    past the test window.  Stops before any test window ending after *end*.
    """
    if train_period_days <= 0 or test_period_days <= 0:
        raise ValueError(
            "train_period_days and test_period_days must be positive, "
            f"got {train_period_days} and {test_period_days}"
        )

    train = timedelta(days=train_period_days)
    test = timedelta(days=test_period_days)

    windows: list[WalkForwardWindow] = []
    cursor = start
    while cursor < end:
        test_start = cursor + train
        test_end = test_start + test
        if test_end > end:
            break
        windows.append(
            WalkForwardWindow(
                train_start=cursor,
                train_end=test_start,
                test_start=test_start,
                test_end=test_end,
            )
        )
        cursor = test_end
    return windows


def summarize_walk_forward(
    results: Sequence[BacktestResult],
) -> WalkForwardSummary:
    """Average return, average Sharpe and share of profitable periods."""
    n = len(results)
    if n == 0:
        return WalkForwardSummary(0, 0.0, 0.0, 0.0)
    return WalkForwardSummary(
        total_periods=n,
        avg_return=sum(r.total_return for r in results) / n,
        avg_sharpe=sum(r.sharpe_ratio for r in results) / n,
        consistency=sum(1 for r in results if r.total_return > 0) / n,
    )
