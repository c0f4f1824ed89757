"""Backtest data models — trade ledger entries, equity snapshots, results."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Optional


@dataclass
class Trade:
    """One long round-trip.

    Created open on a BUY fill; the exit fields are filled in when a SELL
    fill or a stop/target exit closes it.
    """

    id: str
    symbol: str
    side: str  # always "BUY" (long only)
    quantity: float
    entry_price: float
    entry_time: datetime
    commission: float
    exit_price: Optional[float] = None
    exit_time: Optional[datetime] = None
    pnl: Optional[float] = None
    exit_reason: Optional[str] = None  # "signal", "stop_loss", "take_profit"

    @property
    def is_open(self) -> bool:
        return self.exit_time is None


@dataclass(frozen=True)
class EquityPoint:
    """Total portfolio value at the close of one bar."""

    timestamp: datetime
    value: float


@dataclass(frozen=True)
class BacktestResult:
    """Terminal artifact of a backtest run.  Never mutated after creation."""

    strategy_name: str
    initial_capital: float
    final_value: float
    total_return: float
    annualized_return: float
    sharpe_ratio: float
    sortino_ratio: float
    max_drawdown: float
    win_rate: float
    total_trades: int
    profit_factor: float
    calmar_ratio: float
    trades: tuple[Trade, ...]
    equity_curve: tuple[EquityPoint, ...]

    @property
    def completed_trades(self) -> list[Trade]:
        return [t for t in self.trades if t.pnl is not None]

    def to_dict(self) -> dict:
        """Plain-dict view (trades and equity points expanded)."""
        return asdict(self)


# Numeric fields that can rank optimisation trials.
METRIC_FIELDS: tuple[str, ...] = (
    "total_return",
    "annualized_return",
    "sharpe_ratio",
    "sortino_ratio",
    "max_drawdown",
    "win_rate",
    "total_trades",
    "profit_factor",
    "calmar_ratio",
    "final_value",
)
