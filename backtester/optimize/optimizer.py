"""Strategy optimizer — grid search and walk-forward analysis.

Both searches build a fresh strategy per trial and delegate to the
backtest engine.  Everything that can be validated (metric name,
strategy type, parameters) is checked before the first backtest runs,
and any trial failure aborts the whole search: a partial ranking table
would be misleading.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from backtester.backtest.engine import BacktestEngine
from backtester.backtest.models import METRIC_FIELDS, BacktestResult
from backtester.data.providers import DateLike, as_datetime
from backtester.optimize.executor import run_trials
from backtester.optimize.grid import (
    ParameterRange,
    count_combinations,
    generate_parameter_combinations,
)
from backtester.optimize.walk_forward import WalkForwardPeriod, make_windows
from backtester.strategy.models import StrategyConfig
from backtester.strategy.registry import resolve_strategy_class

logger = logging.getLogger("backtester.optimize")

StrategyType = Union[str, type]


@dataclass(frozen=True)
class OptimizationResult:
    """One grid-search trial."""

    parameters: dict[str, Any]
    performance: BacktestResult
    score: float


def _resolve(strategy_type: StrategyType) -> type:
    if isinstance(strategy_type, str):
        return resolve_strategy_class(strategy_type)
    return strategy_type


class Optimizer:
    """Runs many independent backtests against one engine.

    Args:
        engine: Backtest engine (shared; it holds no per-run state).
        max_workers: Worker threads for trials.  ``None`` uses the engine
            settings' ``optimizer_max_workers``.
    """

    def __init__(
        self,
        engine: BacktestEngine,
        max_workers: Optional[int] = None,
    ) -> None:
        self._engine = engine
        self._max_workers = (
            engine.settings.optimizer_max_workers if max_workers is None
            else max_workers
        )

    # ── Grid search ──────────────────────────────────────────────────────

    def optimize_strategy(
        self,
        strategy_type: StrategyType,
        base_config: StrategyConfig,
        parameter_ranges: Mapping[str, Union[ParameterRange, Mapping[str, float]]],
        symbol: str,
        start_date: DateLike,
        end_date: DateLike,
        metric: str = "sharpe_ratio",
        initial_capital: Optional[float] = None,
    ) -> list[OptimizationResult]:
        """Backtest every parameter combination and rank by *metric*.

        Returns results sorted by score, highest first; ties keep the
        enumeration order.

        Raises:
            ValueError: Unknown metric, bad range, or invalid parameters.
            KeyError: Unknown strategy name.
        """
        if metric not in METRIC_FIELDS:
            raise ValueError(
                f"Unknown metric '{metric}'. Available: {', '.join(METRIC_FIELDS)}"
            )
        strategy_cls = _resolve(strategy_type)

        combos = list(generate_parameter_combinations(parameter_ranges))
        # Construct every strategy up front so config errors surface first
        strategies = [
            strategy_cls(base_config.with_parameters(params)) for params in combos
        ]
        logger.info(
            "Optimizing %s over %d combination(s) by %s",
            base_config.name, count_combinations(parameter_ranges), metric,
        )

        def _trial(strategy):
            return lambda: self._engine.run_backtest(
                strategy, symbol, start_date, end_date, initial_capital,
            )

        performances = run_trials(
            [_trial(s) for s in strategies], self._max_workers,
        )

        results = [
            OptimizationResult(
                parameters=params,
                performance=perf,
                score=float(getattr(perf, metric)),
            )
            for params, perf in zip(combos, performances)
        ]
        # sorted() is stable, so equal scores keep enumeration order
        return sorted(results, key=lambda r: r.score, reverse=True)

    @staticmethod
    def top_results(
        results: list[OptimizationResult], k: int = 10,
    ) -> list[OptimizationResult]:
        """First *k* entries of an already-ranked result list."""
        if k < 0:
            raise ValueError(f"k must be non-negative, got {k}")
        return results[:k]

    # ── Walk-forward ─────────────────────────────────────────────────────

    def walk_forward_analysis(
        self,
        strategy_type: StrategyType,
        config: StrategyConfig,
        symbol: str,
        start_date: DateLike,
        end_date: DateLike,
        train_period_days: int = 252,
        test_period_days: int = 63,
        initial_capital: Optional[float] = None,
    ) -> list[WalkForwardPeriod]:
        """Backtest consecutive out-of-sample test windows.

        See ``make_windows`` for how the range is split.  Returns one
        ``WalkForwardPeriod`` per evaluated test window, in time order.
        """
        strategy_cls = _resolve(strategy_type)
        windows = make_windows(
            as_datetime(start_date), as_datetime(end_date),
            train_period_days, test_period_days,
        )
        strategies = [strategy_cls(config) for _ in windows]
        logger.info(
            "Walk-forward %s: %d period(s) (train %dd / test %dd)",
            config.name, len(windows), train_period_days, test_period_days,
        )

        def _trial(strategy, window):
            return lambda: self._engine.run_backtest(
                strategy, symbol, window.test_start, window.test_end,
                initial_capital,
            )

        results = run_trials(
            [_trial(s, w) for s, w in zip(strategies, windows)],
            self._max_workers,
        )
        return [
            WalkForwardPeriod(window=w, result=r)
            for w, r in zip(windows, results)
        ]
