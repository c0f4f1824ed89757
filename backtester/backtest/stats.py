"""Backtest statistics — pure functions over the equity curve and trade ledger.

Every ratio has a defined fallback instead of dividing by zero:

- annualised return over a span under one day → the un-annualised total
  return; beyond the float range → inf
- Sharpe / Sortino with < 2 returns or zero deviation → 0.0
- profit factor without losing trades → 0.0
- Calmar without drawdown → 0.0
- win rate without completed trades → 0.0
"""

import math
from typing import Optional, Sequence

from backtester.backtest.models import BacktestResult, EquityPoint, Trade
from backtester.backtest.portfolio import Portfolio
from backtester.config import Settings

SECONDS_PER_DAY = 86_400.0
DAYS_PER_YEAR = 365.0
# Spans shorter than this are reported un-annualised
MIN_ANNUALIZE_DAYS = 1.0


def calculate_performance(
    portfolio: Portfolio,
    equity_curve: Sequence[EquityPoint],
    initial_capital: float,
    strategy_name: str,
    settings: Optional[Settings] = None,
) -> BacktestResult:
    """Derive a ``BacktestResult`` from a finished run.

    Trades are snapshotted so later changes to *portfolio* cannot leak
    into the result.
    """
    if not equity_curve:
        raise ValueError("equity_curve must contain at least one point")
    settings = settings or Settings()

    values = [p.value for p in equity_curve]
    final_value = portfolio.total_value

    total = total_return(final_value, initial_capital)
    days = days_spanned(equity_curve)
    annualized = annualized_return(total, days)

    returns = period_returns(values)
    periods = settings.trading_days_per_year
    rf = settings.risk_free_rate

    dd = max_drawdown(values, initial_peak=initial_capital)
    pnls = [t.pnl for t in portfolio.trades if t.pnl is not None]

    return BacktestResult(
        strategy_name=strategy_name,
        initial_capital=initial_capital,
        final_value=final_value,
        total_return=total,
        annualized_return=annualized,
        sharpe_ratio=sharpe_ratio(returns, rf, periods),
        sortino_ratio=sortino_ratio(returns, rf, periods),
        max_drawdown=dd,
        win_rate=win_rate(pnls),
        total_trades=len(pnls),
        profit_factor=profit_factor(pnls),
        calmar_ratio=calmar_ratio(annualized, dd),
        trades=tuple(_snapshot(t) for t in portfolio.trades),
        equity_curve=tuple(equity_curve),
    )


# ── Returns ──────────────────────────────────────────────────────────────


def total_return(final_value: float, initial_capital: float) -> float:
    """Fractional gain over the initial capital."""
    return (final_value - initial_capital) / initial_capital


def days_spanned(equity_curve: Sequence[EquityPoint]) -> float:
    """Elapsed days between the first and last equity snapshots."""
    if len(equity_curve) < 2:
        return 0.0
    delta = equity_curve[-1].timestamp - equity_curve[0].timestamp
    return delta.total_seconds() / SECONDS_PER_DAY


def annualized_return(total: float, days: float) -> float:
    """Compound *total* over *days* to a 365-day rate.

    Falls back to *total* for spans under one day, to -1.0 when the
    portfolio lost everything (a negative base has no real power), and to
    ``math.inf`` when the compounded growth exceeds the float range.
    """
    if days < MIN_ANNUALIZE_DAYS:
        return total
    growth = 1.0 + total
    if growth <= 0:
        return -1.0
    try:
        return growth ** (DAYS_PER_YEAR / days) - 1.0
    except OverflowError:
        return math.inf


def period_returns(values: Sequence[float]) -> list[float]:
    """Bar-over-bar fractional changes of an equity series."""
    return [
        (values[i] - values[i - 1]) / values[i - 1]
        for i in range(1, len(values))
        if values[i - 1] != 0
    ]


# ── Risk-adjusted ratios ─────────────────────────────────────────────────


def sharpe_ratio(
    returns: Sequence[float],
    risk_free_rate: float = 0.03,
    periods_per_year: int = 252,
) -> float:
    """Annualised Sharpe ratio from per-bar returns.

    ``(mean × N − rf) / (σ × √N)`` with the population standard deviation.
    Returns 0.0 with fewer than 2 observations or zero variance.
    """
    n = len(returns)
    if n < 2:
        return 0.0
    mean = sum(returns) / n
    variance = sum((r - mean) ** 2 for r in returns) / n
    std = math.sqrt(variance)
    if std == 0:
        return 0.0
    return (mean * periods_per_year - risk_free_rate) / (std * math.sqrt(periods_per_year))


def sortino_ratio(
    returns: Sequence[float],
    risk_free_rate: float = 0.03,
    periods_per_year: int = 252,
) -> float:
    """Annualised Sortino ratio — Sharpe with downside deviation only.

    Returns 0.0 with fewer than 2 observations or no negative returns.
    """
    n = len(returns)
    if n < 2:
        return 0.0
    mean = sum(returns) / n
    downside = math.sqrt(sum(min(r, 0.0) ** 2 for r in returns) / n)
    if downside == 0:
        return 0.0
    return (mean * periods_per_year - risk_free_rate) / (downside * math.sqrt(periods_per_year))


def max_drawdown(
    values: Sequence[float], initial_peak: Optional[float] = None,
) -> float:
    """Largest peak-to-trough decline as a fraction of the peak.

    The running peak starts at *initial_peak* (default: the first value).
    """
    if not values:
        return 0.0
    peak = values[0] if initial_peak is None else initial_peak
    max_dd = 0.0
    for v in values:
        if v > peak:
            peak = v
        if peak > 0:
            dd = (peak - v) / peak
            if dd > max_dd:
                max_dd = dd
    return max_dd


def calmar_ratio(annualized: float, drawdown: float) -> float:
    """Annualised return per unit of max drawdown (0.0 without drawdown)."""
    if drawdown == 0:
        return 0.0
    return annualized / drawdown


# ── Trade statistics ─────────────────────────────────────────────────────


def win_rate(pnls: Sequence[float]) -> float:
    """Fraction of completed trades with positive P&L."""
    if not pnls:
        return 0.0
    return sum(1 for p in pnls if p > 0) / len(pnls)


def profit_factor(pnls: Sequence[float]) -> float:
    """Gross profit ÷ gross loss (0.0 when there are no losing trades)."""
    gross_profit = sum(p for p in pnls if p > 0)
    gross_loss = abs(sum(p for p in pnls if p < 0))
    if gross_loss == 0:
        return 0.0
    return gross_profit / gross_loss


def _snapshot(trade: Trade) -> Trade:
    return Trade(**vars(trade))
