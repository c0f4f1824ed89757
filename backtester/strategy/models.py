"""Bars, signals, and strategy configuration."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class PricePoint:
    """A single OHLCV bar for strategy consumption."""

    timestamp: datetime
    symbol: str
    open: float
    high: float
    low: float
    close: float
    volume: float

    @property
    def is_valid(self) -> bool:
        """``True`` when the bar passes OHLCV sanity checks."""
        return (
            self.high >= max(self.open, self.close)
            and self.low <= min(self.open, self.close)
            and self.volume > 0
        )


class SignalType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


@dataclass(frozen=True)
class Signal:
    """A trading decision produced by a strategy for one bar."""

    type: SignalType
    timestamp: datetime
    price: float
    quantity: float
    confidence: float

    @property
    def is_actionable(self) -> bool:
        """HOLD and zero-quantity signals leave the portfolio untouched."""
        return self.type != SignalType.HOLD and self.quantity > 0


def hold_signal(bar: PricePoint) -> Signal:
    """Build the neutral signal for *bar*."""
    return Signal(
        type=SignalType.HOLD,
        timestamp=bar.timestamp,
        price=bar.close,
        quantity=0.0,
        confidence=0.0,
    )


@dataclass(frozen=True)
class RiskManagement:
    """Per-run risk limits.

    ``stop_loss`` and ``take_profit`` are fractions of the entry price
    (e.g. ``0.05`` for 5 %).  ``max_drawdown`` is a fraction of peak equity.
    """

    max_position_size: float
    max_drawdown: float = 0.2
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None

    def __post_init__(self) -> None:
        if self.max_position_size <= 0:
            raise ValueError(
                f"max_position_size must be positive, got {self.max_position_size}"
            )
        if not 0 < self.max_drawdown <= 1:
            raise ValueError(
                f"max_drawdown must be in (0, 1], got {self.max_drawdown}"
            )
        if self.stop_loss is not None and self.stop_loss <= 0:
            raise ValueError(f"stop_loss must be positive, got {self.stop_loss}")
        if self.take_profit is not None and self.take_profit <= 0:
            raise ValueError(
                f"take_profit must be positive, got {self.take_profit}"
            )


@dataclass(frozen=True)
class StrategyConfig:
    """Immutable configuration shared by every strategy variant."""

    name: str
    risk_management: RiskManagement
    parameters: Mapping[str, Any] = field(default_factory=dict)
    commission: float = 0.0

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("strategy name must not be empty")
        if self.commission < 0:
            raise ValueError(
                f"commission must be non-negative, got {self.commission}"
            )
        # Detach from the caller's mapping so later edits can't leak in
        object.__setattr__(self, "parameters", dict(self.parameters))

    def with_parameters(self, overrides: Mapping[str, Any]) -> "StrategyConfig":
        """Return a copy whose parameters are updated with *overrides*."""
        merged = {**self.parameters, **overrides}
        return StrategyConfig(
            name=self.name,
            risk_management=self.risk_management,
            parameters=merged,
            commission=self.commission,
        )
