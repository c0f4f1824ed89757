"""Backtester — command-line entry point.

Sub-commands::

    backtester run          --strategy ma_crossover --symbol AAPL --start 2023-01-01 --end 2024-01-01 -p short_period=10 -p long_period=30
    backtester optimize     ... -r short_period=5:20:5 -r long_period=20:60:10 --metric sharpe_ratio
    backtester walk-forward ... --train-days 252 --test-days 63

Bars come from ``--data-dir`` CSV files, or from the synthetic random
walk with ``--synthetic``.
"""

import argparse
import logging
import sys
from typing import Any, Optional, Sequence

from backtester.backtest.engine import BacktestEngine
from backtester.cli.summary import print_optimization, print_summary, print_walk_forward
from backtester.config import Settings, default_strategy_config, load_settings
from backtester.data.providers import (
    CsvDataProvider,
    HistoricalDataProvider,
    NoDataError,
    SyntheticDataProvider,
)
from backtester.optimize.grid import ParameterRange
from backtester.optimize.optimizer import Optimizer
from backtester.optimize.walk_forward import summarize_walk_forward
from backtester.report.report import export_trades_csv, generate_report
from backtester.strategy.registry import STRATEGY_REGISTRY, get_strategy

logger = logging.getLogger("backtester")

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


# ── Argument parsing ─────────────────────────────────────────────────────


def _parse_scalar(raw: str) -> Any:
    for cast in (int, float):
        try:
            return cast(raw)
        except ValueError:
            continue
    return raw


def parse_parameters(items: Optional[Sequence[str]]) -> dict[str, Any]:
    """Parse ``key=value`` pairs; numeric values become int/float."""
    params: dict[str, Any] = {}
    for item in items or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected key=value, got '{item}'")
        params[key.strip()] = _parse_scalar(value.strip())
    return params


def parse_ranges(items: Optional[Sequence[str]]) -> dict[str, ParameterRange]:
    """Parse ``key=min:max:step`` pairs into parameter ranges."""
    ranges: dict[str, ParameterRange] = {}
    for item in items or []:
        key, sep, bounds = item.partition("=")
        parts = bounds.split(":")
        if not sep or not key or len(parts) != 3:
            raise ValueError(f"Expected key=min:max:step, got '{item}'")
        lo, hi, step = (_parse_scalar(p.strip()) for p in parts)
        ranges[key.strip()] = ParameterRange(min=lo, max=hi, step=step)
    return ranges


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Strategy backtesting engine")
    parser.add_argument("--env-file", help="Path to a .env file")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--strategy",
        choices=sorted(STRATEGY_REGISTRY),
        default="ma_crossover",
        help="Strategy name (default: ma_crossover)",
    )
    common.add_argument("--symbol", required=True, help="Instrument symbol")
    common.add_argument("--start", required=True, help="Start date (YYYY-MM-DD)")
    common.add_argument("--end", required=True, help="End date (YYYY-MM-DD)")
    common.add_argument(
        "-p", "--param", action="append", default=[],
        help="Strategy parameter as key=value (repeatable)",
    )
    common.add_argument("--capital", type=float, help="Initial capital")
    common.add_argument("--stop-loss", type=float, help="Stop-loss fraction, e.g. 0.05")
    common.add_argument("--take-profit", type=float, help="Take-profit fraction, e.g. 0.1")
    source = common.add_mutually_exclusive_group()
    source.add_argument("--data-dir", help="Directory of <SYMBOL>.csv files")
    source.add_argument(
        "--synthetic", action="store_true",
        help="Use the deterministic synthetic random walk",
    )
    common.add_argument("--seed", type=int, default=42, help="Synthetic data seed")

    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", parents=[common], help="Run a single backtest")
    run.add_argument("--report", action="store_true", help="Print the markdown report")
    run.add_argument("--export-csv", help="Write the trade ledger to this CSV path")

    opt = sub.add_parser("optimize", parents=[common], help="Grid-search parameters")
    opt.add_argument(
        "-r", "--range", dest="ranges", action="append", required=True,
        help="Parameter range as key=min:max:step (repeatable)",
    )
    opt.add_argument("--metric", default="sharpe_ratio", help="Ranking metric")
    opt.add_argument("--top", type=int, default=10, help="Results to show")
    opt.add_argument("--workers", type=int, help="Worker threads (0 = one per CPU)")

    wf = sub.add_parser("walk-forward", parents=[common], help="Walk-forward analysis")
    wf.add_argument("--train-days", type=int, default=252)
    wf.add_argument("--test-days", type=int, default=63)
    wf.add_argument("--workers", type=int, help="Worker threads (0 = one per CPU)")

    return parser


# ── Commands ─────────────────────────────────────────────────────────────


def _build_provider(args: argparse.Namespace, settings: Settings) -> HistoricalDataProvider:
    if args.synthetic:
        return SyntheticDataProvider(seed=args.seed)
    return CsvDataProvider(args.data_dir or settings.data_dir)


def _cmd_run(args, engine: BacktestEngine, config) -> None:
    strategy = get_strategy(args.strategy, config)
    result = engine.run_backtest(
        strategy, args.symbol, args.start, args.end, args.capital,
    )
    print_summary(result)
    if args.report:
        print(generate_report(result))
    if args.export_csv:
        export_trades_csv(result.trades, args.export_csv)
        logger.info("Trades written to %s", args.export_csv)


def _cmd_optimize(args, engine: BacktestEngine, config) -> None:
    optimizer = Optimizer(engine, max_workers=args.workers)
    results = optimizer.optimize_strategy(
        args.strategy, config, parse_ranges(args.ranges),
        args.symbol, args.start, args.end,
        metric=args.metric, initial_capital=args.capital,
    )
    print_optimization(Optimizer.top_results(results, args.top), args.metric)


def _cmd_walk_forward(args, engine: BacktestEngine, config) -> None:
    optimizer = Optimizer(engine, max_workers=args.workers)
    periods = optimizer.walk_forward_analysis(
        args.strategy, config, args.symbol, args.start, args.end,
        train_period_days=args.train_days,
        test_period_days=args.test_days,
        initial_capital=args.capital,
    )
    summary = summarize_walk_forward([p.result for p in periods])
    print_walk_forward(periods, summary)


_COMMANDS = {
    "run": _cmd_run,
    "optimize": _cmd_optimize,
    "walk-forward": _cmd_walk_forward,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Parse CLI arguments and dispatch to the requested command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.env_file)
    except ValueError as exc:
        logging.basicConfig(format=_LOG_FORMAT)
        logger.error("Invalid configuration: %s", exc)
        return 1
    logging.basicConfig(level=settings.log_level, format=_LOG_FORMAT)

    try:
        config = default_strategy_config(
            args.strategy,
            parse_parameters(args.param),
            settings,
            stop_loss=args.stop_loss,
            take_profit=args.take_profit,
        )
        engine = BacktestEngine(_build_provider(args, settings), settings)
        _COMMANDS[args.command](args, engine, config)
    except NoDataError as exc:
        logger.error("No data: %s", exc)
        return 2
    except (KeyError, ValueError) as exc:
        logger.error("Invalid request: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
