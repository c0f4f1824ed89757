"""Tests for the optimizer: parameter grids, grid search, trial execution
and walk-forward analysis.
"""

import threading
from datetime import datetime, timedelta

import pytest

from backtester.backtest.engine import BacktestEngine
from backtester.config import Settings
from backtester.data.providers import InMemoryDataProvider
from backtester.optimize.executor import resolve_workers, run_trials
from backtester.optimize.grid import (
    ParameterRange,
    count_combinations,
    generate_parameter_combinations,
)
from backtester.optimize.optimizer import Optimizer
from backtester.optimize.walk_forward import (
    make_windows,
    summarize_walk_forward,
)
from backtester.strategy.models import (
    PricePoint,
    RiskManagement,
    Signal,
    SignalType,
    StrategyConfig,
    hold_signal,
)


# ── Helpers ──────────────────────────────────────────────────────────────

_T0 = datetime(2024, 1, 1)
_SYMBOL = "TEST"


def _ts(day):
    return _T0 + timedelta(days=day)


def _make_bars(closes):
    return [
        PricePoint(
            timestamp=_ts(i), symbol=_SYMBOL,
            open=c, high=c + 1.0, low=c - 1.0, close=c, volume=1000.0,
        )
        for i, c in enumerate(closes)
    ]


def _make_config(**params):
    return StrategyConfig(
        name="test_strategy",
        parameters=params,
        risk_management=RiskManagement(max_position_size=10.0),
    )


class _CountingProvider(InMemoryDataProvider):

    def __init__(self, bars):
        super().__init__(bars)
        self.calls = 0
        self._lock = threading.Lock()

    def load_historical_data(self, *args, **kwargs):
        with self._lock:
            self.calls += 1
        return super().load_historical_data(*args, **kwargs)


class _HoldStrategy:
    def __init__(self, config):
        self.config = config

    def generate_signal(self, history, index):
        return hold_signal(history[index])


class _BuyAndHoldStrategy:
    """Buys ``size`` units on the first bar and never sells."""

    def __init__(self, config):
        self.config = config
        self.size = config.parameters["size"]

    def generate_signal(self, history, index):
        bar = history[index]
        if index != 0:
            return hold_signal(bar)
        return Signal(
            type=SignalType.BUY, timestamp=bar.timestamp, price=bar.close,
            quantity=self.size, confidence=1.0,
        )


class _ExplodingStrategy:
    """Raises for ``size == 2``; otherwise holds."""

    def __init__(self, config):
        self.config = config
        self.size = config.parameters["size"]

    def generate_signal(self, history, index):
        if self.size == 2:
            raise RuntimeError("boom")
        return hold_signal(history[index])


_RISING = [10, 11, 12, 13, 14, 15]


def _optimizer(bars=None, max_workers=None):
    provider = _CountingProvider(_make_bars(bars or _RISING))
    engine = BacktestEngine(provider, Settings())
    return Optimizer(engine, max_workers=max_workers), provider


def _optimize(optimizer, strategy_type, ranges, metric="total_return"):
    return optimizer.optimize_strategy(
        strategy_type, _make_config(), ranges,
        _SYMBOL, _ts(0), _ts(60), metric=metric, initial_capital=1_000.0,
    )


# ── Parameter grids ──────────────────────────────────────────────────────


class TestParameterGrid:

    def test_combinations_last_key_fastest(self):
        """short {5, 10} × long {20, 30} → 4 combos in enumeration order."""
        combos = list(generate_parameter_combinations({
            "short": {"min": 5, "max": 10, "step": 5},
            "long": {"min": 20, "max": 30, "step": 10},
        }))
        assert combos == [
            {"short": 5, "long": 20},
            {"short": 5, "long": 30},
            {"short": 10, "long": 20},
            {"short": 10, "long": 30},
        ]

    def test_inclusive_max(self):
        assert ParameterRange(1, 3, 1).values() == [1, 2, 3]

    def test_max_not_on_step(self):
        assert ParameterRange(1, 4, 2).values() == [1, 3]

    def test_float_range_without_drift(self):
        assert ParameterRange(0.1, 0.3, 0.1).values() == [0.1, 0.2, 0.3]

    def test_single_value_range(self):
        assert ParameterRange(7, 7, 1).values() == [7]

    def test_count_matches_product(self):
        ranges = {
            "a": ParameterRange(1, 5, 1),
            "b": ParameterRange(0.5, 1.5, 0.5),
            "c": ParameterRange(10, 10, 3),
        }
        assert count_combinations(ranges) == 15
        assert len(list(generate_parameter_combinations(ranges))) == 15

    def test_empty_ranges_yield_one_combination(self):
        assert list(generate_parameter_combinations({})) == [{}]

    def test_rejects_non_positive_step(self):
        with pytest.raises(ValueError, match="step"):
            ParameterRange(1, 5, 0)

    def test_rejects_inverted_range(self):
        with pytest.raises(ValueError, match="max"):
            ParameterRange(5, 1, 1)

    def test_rejects_incomplete_mapping(self):
        with pytest.raises(ValueError, match="min"):
            ParameterRange.coerce({"min": 1, "max": 2})


# ── Trial executor ───────────────────────────────────────────────────────


class TestExecutor:

    def test_resolve_workers(self):
        assert resolve_workers(10, None) == 1
        assert resolve_workers(10, 4) == 4
        assert resolve_workers(2, 8) == 2
        assert resolve_workers(5, 0) >= 1

    def test_results_in_submission_order(self):
        trials = [lambda i=i: i * i for i in range(20)]
        assert run_trials(trials) == [i * i for i in range(20)]
        assert run_trials(trials, max_workers=4) == [i * i for i in range(20)]

    def test_empty(self):
        assert run_trials([], max_workers=4) == []

    def test_failure_propagates(self):
        def fail():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            run_trials([lambda: 1, fail, lambda: 3], max_workers=2)


# ── Grid search ──────────────────────────────────────────────────────────


class TestOptimizeStrategy:

    def test_sorted_descending_by_metric(self):
        optimizer, _ = _optimizer()
        results = _optimize(
            optimizer, _BuyAndHoldStrategy, {"size": {"min": 1, "max": 3, "step": 1}},
        )
        assert [r.parameters["size"] for r in results] == [3, 2, 1]
        scores = [r.score for r in results]
        assert scores == sorted(scores, reverse=True)
        # 3 units from 10 to 15 on 1000 capital
        assert results[0].score == pytest.approx(0.015)
        assert results[0].score == results[0].performance.total_return

    def test_ties_keep_enumeration_order(self):
        optimizer, _ = _optimizer()
        results = _optimize(optimizer, _HoldStrategy, {
            "a": {"min": 1, "max": 2, "step": 1},
            "b": {"min": 1, "max": 2, "step": 1},
        })
        assert [r.parameters for r in results] == [
            {"a": 1, "b": 1}, {"a": 1, "b": 2}, {"a": 2, "b": 1}, {"a": 2, "b": 2},
        ]

    def test_parallel_matches_sequential(self):
        ranges = {"size": {"min": 1, "max": 6, "step": 1}}
        sequential = _optimize(_optimizer()[0], _BuyAndHoldStrategy, ranges)
        parallel = _optimize(_optimizer(max_workers=3)[0], _BuyAndHoldStrategy, ranges)
        assert sequential == parallel

    def test_parameters_merged_into_base_config(self):
        optimizer, _ = _optimizer()
        results = optimizer.optimize_strategy(
            "ma_crossover", _make_config(long_period=3),
            {"short_period": {"min": 1, "max": 2, "step": 1}},
            _SYMBOL, _ts(0), _ts(60),
        )
        assert len(results) == 2
        assert {r.parameters["short_period"] for r in results} == {1, 2}

    @pytest.mark.parametrize("max_workers", [None, 2])
    def test_trial_failure_aborts(self, max_workers):
        optimizer, _ = _optimizer(max_workers=max_workers)
        with pytest.raises(RuntimeError, match="boom"):
            _optimize(
                optimizer, _ExplodingStrategy, {"size": {"min": 1, "max": 4, "step": 1}},
            )

    def test_unknown_metric(self):
        optimizer, provider = _optimizer()
        with pytest.raises(ValueError, match="Unknown metric"):
            _optimize(optimizer, _HoldStrategy, {}, metric="alpha")
        assert provider.calls == 0

    def test_unknown_strategy(self):
        optimizer, provider = _optimizer()
        with pytest.raises(KeyError, match="Unknown strategy"):
            _optimize(optimizer, "nope", {})
        assert provider.calls == 0

    def test_invalid_parameters_fail_before_any_backtest(self):
        optimizer, provider = _optimizer()
        with pytest.raises(ValueError, match="short_period"):
            optimizer.optimize_strategy(
                "ma_crossover", _make_config(long_period=5),
                {"short_period": {"min": 1.0, "max": 2.0, "step": 0.5}},
                _SYMBOL, _ts(0), _ts(60),
            )
        assert provider.calls == 0

    def test_top_results(self):
        optimizer, _ = _optimizer()
        results = _optimize(
            optimizer, _BuyAndHoldStrategy, {"size": {"min": 1, "max": 5, "step": 1}},
        )
        top = Optimizer.top_results(results, 2)
        assert [r.parameters["size"] for r in top] == [5, 4]
        assert Optimizer.top_results(results, 50) == results

    def test_default_workers_from_settings(self):
        engine = BacktestEngine(
            InMemoryDataProvider([]), Settings(optimizer_max_workers=3),
        )
        assert Optimizer(engine)._max_workers == 3


# ── Walk-forward ─────────────────────────────────────────────────────────


class TestWalkForward:

    def test_windows_are_disjoint(self):
        """30 days, train 10, test 5 → tests [10, 15] and [25, 30]."""
        windows = make_windows(_ts(0), _ts(30), 10, 5)
        assert [(w.test_start, w.test_end) for w in windows] == [
            (_ts(10), _ts(15)),
            (_ts(25), _ts(30)),
        ]
        assert windows[0].train_start == _ts(0)
        assert windows[1].train_start == _ts(15)

    def test_range_shorter_than_one_period(self):
        assert make_windows(_ts(0), _ts(10), 10, 5) == []

    def test_rejects_non_positive_days(self):
        with pytest.raises(ValueError, match="positive"):
            make_windows(_ts(0), _ts(30), 0, 5)

    def test_analysis_backtests_each_test_window(self):
        optimizer, _ = _optimizer(bars=[10 + i for i in range(31)])
        periods = optimizer.walk_forward_analysis(
            _BuyAndHoldStrategy, _make_config(size=1), _SYMBOL,
            _ts(0), _ts(30), train_period_days=10, test_period_days=5,
            initial_capital=1_000.0,
        )
        assert len(periods) == 2
        first, second = periods
        assert first.result.equity_curve[0].timestamp == _ts(10)
        assert first.result.equity_curve[-1].timestamp == _ts(15)
        assert second.result.equity_curve[0].timestamp == _ts(25)
        # Each test window starts a fresh portfolio: buy 1 at 20, mark at 25
        assert first.result.final_value == pytest.approx(1_005.0)

    def test_summary(self):
        optimizer, _ = _optimizer(bars=[10 + i for i in range(31)])
        periods = optimizer.walk_forward_analysis(
            _BuyAndHoldStrategy, _make_config(size=1), _SYMBOL,
            _ts(0), _ts(30), 10, 5, 1_000.0,
        )
        summary = summarize_walk_forward([p.result for p in periods])
        assert summary.total_periods == 2
        assert summary.consistency == 1.0
        assert summary.avg_return == pytest.approx(0.005)

    def test_empty_summary(self):
        summary = summarize_walk_forward([])
        assert summary.total_periods == 0
        assert summary.avg_return == 0.0
        assert summary.consistency == 0.0
