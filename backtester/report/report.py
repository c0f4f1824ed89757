"""Backtest reporting — markdown summaries and CSV trade exports."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence, Union

import pandas as pd

from backtester.backtest.models import BacktestResult, EquityPoint, Trade

TRADE_CSV_COLUMNS = [
    "ID", "Symbol", "Side", "Quantity", "Entry Price", "Exit Price",
    "Entry Time", "Exit Time", "PnL", "Commission",
]


def generate_report(result: BacktestResult) -> str:
    """Render *result* as a markdown report."""
    trades = list(result.trades)
    pnls = [t.pnl for t in result.completed_trades]
    best = max(pnls) if pnls else 0.0
    worst = min(pnls) if pnls else 0.0
    average = sum(pnls) / len(pnls) if pnls else 0.0

    sections = [
        f"# Backtesting Report: {result.strategy_name}",
        "## Performance Summary\n" + "\n".join([
            f"- **Total Return**: {result.total_return * 100:.2f}%",
            f"- **Annualized Return**: {result.annualized_return * 100:.2f}%",
            f"- **Sharpe Ratio**: {result.sharpe_ratio:.2f}",
            f"- **Sortino Ratio**: {result.sortino_ratio:.2f}",
            f"- **Maximum Drawdown**: {result.max_drawdown * 100:.2f}%",
            f"- **Win Rate**: {result.win_rate * 100:.2f}%",
            f"- **Total Trades**: {result.total_trades}",
            f"- **Profit Factor**: {result.profit_factor:.2f}",
            f"- **Calmar Ratio**: {result.calmar_ratio:.2f}",
        ]),
        "## Trade Analysis\n" + trade_analysis(trades),
        "## Risk Metrics\n" + "\n".join([
            f"- **Best Trade**: ${best:,.2f}",
            f"- **Worst Trade**: ${worst:,.2f}",
            f"- **Average Trade**: ${average:,.2f}",
        ]),
        "## Monthly Returns\n" + monthly_returns_table(result.equity_curve),
    ]
    return "\n\n".join(sections).strip()


def trade_analysis(trades: Sequence[Trade]) -> str:
    """Winning/losing breakdown over completed trades."""
    completed = [t for t in trades if t.pnl is not None]
    if not completed:
        return "No completed trades"

    winning = [t.pnl for t in completed if t.pnl > 0]
    losing = [t.pnl for t in completed if t.pnl < 0]
    n = len(completed)
    avg_win = sum(winning) / len(winning) if winning else 0.0
    avg_loss = sum(losing) / len(losing) if losing else 0.0

    return "\n".join([
        f"- **Winning Trades**: {len(winning)} ({len(winning) / n * 100:.1f}%)",
        f"- **Losing Trades**: {len(losing)} ({len(losing) / n * 100:.1f}%)",
        f"- **Average Winning Trade**: ${avg_win:,.2f}",
        f"- **Average Losing Trade**: ${avg_loss:,.2f}",
    ])


def monthly_returns(equity_curve: Sequence[EquityPoint]) -> pd.Series:
    """Per-month return from the first to the last equity value of the month.

    Indexed by ``YYYY-MM`` strings in chronological order.
    """
    if not equity_curve:
        return pd.Series(dtype=float)
    df = pd.DataFrame(
        {
            "timestamp": [p.timestamp for p in equity_curve],
            "value": [p.value for p in equity_curve],
        }
    )
    month = pd.to_datetime(df["timestamp"]).dt.strftime("%Y-%m")
    grouped = df.groupby(month, sort=True)["value"]
    first = grouped.first()
    last = grouped.last()
    return (last - first) / first


def monthly_returns_table(equity_curve: Sequence[EquityPoint]) -> str:
    rows = ["| Month | Return |", "|-------|--------|"]
    for month, ret in monthly_returns(equity_curve).items():
        rows.append(f"| {month} | {ret * 100:.2f}% |")
    return "\n".join(rows)


def trades_frame(trades: Sequence[Trade]) -> pd.DataFrame:
    """Trade ledger as a DataFrame with the export column names."""
    records = [
        {
            "ID": t.id,
            "Symbol": t.symbol,
            "Side": t.side,
            "Quantity": t.quantity,
            "Entry Price": t.entry_price,
            "Exit Price": t.exit_price,
            "Entry Time": t.entry_time.isoformat(),
            "Exit Time": t.exit_time.isoformat() if t.exit_time else None,
            "PnL": t.pnl,
            "Commission": t.commission,
        }
        for t in trades
    ]
    return pd.DataFrame.from_records(records, columns=TRADE_CSV_COLUMNS)


def export_trades_csv(
    trades: Sequence[Trade],
    path: Optional[Union[str, Path]] = None,
) -> str:
    """Serialise *trades* to CSV; also writes to *path* when given.

    Open trades leave the exit and P&L columns empty.
    """
    csv_text = trades_frame(trades).to_csv(index=False, lineterminator="\n")
    if path is not None:
        Path(path).write_text(csv_text, encoding="utf-8")
    return csv_text
