"""Moving-average crossover strategies.

Emit BUY when the short average crosses above the long average and SELL
when it crosses below.  Two flavours share the same rules:

- ``MovingAverageCrossoverStrategy``: simple moving averages.
- ``EMACrossoverStrategy``: exponential moving averages.
"""

from typing import Sequence

from backtester.strategy.base import int_parameter
from backtester.strategy.indicators import calculate_ema, calculate_sma
from backtester.strategy.models import (
    PricePoint,
    Signal,
    SignalType,
    StrategyConfig,
    hold_signal,
)

CROSSOVER_CONFIDENCE = 0.8


class MovingAverageCrossoverStrategy:
    """Dual-SMA crossover.

    Parameters (``config.parameters``):
        short_period: Fast average window.
        long_period: Slow average window; no signal before this many bars.
    """

    _average = staticmethod(calculate_sma)

    def __init__(self, config: StrategyConfig) -> None:
        self.config = config
        self.short_period = int_parameter(config, "short_period")
        self.long_period = int_parameter(config, "long_period")

    def generate_signal(
        self, history: Sequence[PricePoint], index: int,
    ) -> Signal:
        bar = history[index]
        if index < self.long_period:
            return hold_signal(bar)

        closes = [p.close for p in history[: index + 1]]
        short_ma = self._average(closes, self.short_period)
        long_ma = self._average(closes, self.long_period)

        curr_short, curr_long = short_ma[index], long_ma[index]
        prev_short, prev_long = short_ma[index - 1], long_ma[index - 1]

        # NaN comparisons are always False, so warm-up bars fall through to HOLD
        if prev_short <= prev_long and curr_short > curr_long:
            return self._signal(SignalType.BUY, bar)
        if prev_short >= prev_long and curr_short < curr_long:
            return self._signal(SignalType.SELL, bar)
        return hold_signal(bar)

    def _signal(self, signal_type: SignalType, bar: PricePoint) -> Signal:
        return Signal(
            type=signal_type,
            timestamp=bar.timestamp,
            price=bar.close,
            quantity=self.config.risk_management.max_position_size,
            confidence=CROSSOVER_CONFIDENCE,
        )


class EMACrossoverStrategy(MovingAverageCrossoverStrategy):
    """Dual-EMA crossover with the same parameters as the SMA variant."""

    _average = staticmethod(calculate_ema)
