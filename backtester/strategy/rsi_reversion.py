"""RSI mean-reversion strategy.

Buys when momentum turns oversold and sells when it turns overbought,
betting on a return toward neutral RSI.
"""

from typing import Sequence

from backtester.strategy.base import float_parameter, int_parameter
from backtester.strategy.indicators import calculate_rsi
from backtester.strategy.models import (
    PricePoint,
    Signal,
    SignalType,
    StrategyConfig,
    hold_signal,
)


class RSIReversionStrategy:
    """Threshold-crossing RSI strategy.

    Parameters (``config.parameters``):
        period: RSI look-back (default 14).
        oversold: BUY when RSI drops below this level (default 30).
        overbought: SELL when RSI rises above this level (default 70).
    """

    def __init__(self, config: StrategyConfig) -> None:
        self.config = config
        self.period = int_parameter(config, "period", default=14)
        self.oversold = float_parameter(config, "oversold", 30.0)
        self.overbought = float_parameter(config, "overbought", 70.0)
        if not 0 <= self.oversold < self.overbought <= 100:
            raise ValueError(
                "RSI thresholds must satisfy 0 <= oversold < overbought <= 100, "
                f"got oversold={self.oversold}, overbought={self.overbought}"
            )

    def generate_signal(
        self, history: Sequence[PricePoint], index: int,
    ) -> Signal:
        bar = history[index]
        if index < self.period:
            return hold_signal(bar)

        closes = [p.close for p in history[: index + 1]]
        rsi = calculate_rsi(closes, self.period)
        prev, curr = rsi[index - 1], rsi[index]

        if prev >= self.oversold > curr:
            depth = (self.oversold - curr) / self.oversold if self.oversold else 1.0
            return self._signal(SignalType.BUY, bar, depth)
        if prev <= self.overbought < curr:
            headroom = 100.0 - self.overbought
            depth = (curr - self.overbought) / headroom if headroom else 1.0
            return self._signal(SignalType.SELL, bar, depth)
        return hold_signal(bar)

    def _signal(
        self, signal_type: SignalType, bar: PricePoint, depth: float,
    ) -> Signal:
        return Signal(
            type=signal_type,
            timestamp=bar.timestamp,
            price=bar.close,
            quantity=self.config.risk_management.max_position_size,
            confidence=min(1.0, max(0.0, 0.5 + depth)),
        )
