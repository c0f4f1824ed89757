"""Console summaries for backtest, optimization and walk-forward results."""

from typing import Sequence

from backtester.backtest.models import BacktestResult
from backtester.optimize.optimizer import OptimizationResult
from backtester.optimize.walk_forward import WalkForwardPeriod, WalkForwardSummary

_RULE = "──────────────────────────────────────────────────"


def print_summary(result: BacktestResult) -> str:
    """Format and print the headline numbers of a backtest.

    Returns:
        The formatted string (also printed to stdout).
    """
    lines = [
        f"──────────────── {result.strategy_name} ────────────────",
        f"  Initial Capital: ${result.initial_capital:,.2f}",
        f"  Final Value:     ${result.final_value:,.2f}",
        f"  Total Return:    {result.total_return * 100:.2f}%",
        f"  Annualized:      {result.annualized_return * 100:.2f}%",
        f"  Sharpe:          {result.sharpe_ratio:.2f}",
        f"  Sortino:         {result.sortino_ratio:.2f}",
        f"  Max Drawdown:    {result.max_drawdown * 100:.2f}%",
        f"  Win Rate:        {result.win_rate * 100:.1f}%",
        f"  Trades:          {result.total_trades}",
        f"  Profit Factor:   {result.profit_factor:.2f}",
        f"  Calmar:          {result.calmar_ratio:.2f}",
        _RULE,
    ]
    output = "\n".join(lines)
    print(output)
    return output


def print_optimization(results: Sequence[OptimizationResult], metric: str) -> str:
    """Print a ranked table of optimization trials."""
    lines = [f"  Rank  Score ({metric})  Parameters"]
    for rank, r in enumerate(results, start=1):
        params = ", ".join(f"{k}={v}" for k, v in r.parameters.items())
        lines.append(f"  {rank:>4}  {r.score:>14.4f}  {params}")
    lines.append(_RULE)
    output = "\n".join(lines)
    print(output)
    return output


def print_walk_forward(
    periods: Sequence[WalkForwardPeriod], summary: WalkForwardSummary,
) -> str:
    """Print one line per walk-forward period plus the aggregate."""
    lines = []
    for p in periods:
        w = p.window
        lines.append(
            f"  {w.test_start:%Y-%m-%d} → {w.test_end:%Y-%m-%d}  "
            f"return {p.result.total_return * 100:7.2f}%  "
            f"sharpe {p.result.sharpe_ratio:6.2f}"
        )
    lines += [
        _RULE,
        f"  Periods:     {summary.total_periods}",
        f"  Avg Return:  {summary.avg_return * 100:.2f}%",
        f"  Avg Sharpe:  {summary.avg_sharpe:.2f}",
        f"  Consistency: {summary.consistency * 100:.1f}%",
    ]
    output = "\n".join(lines)
    print(output)
    return output
