"""Strategy protocol.

Defines the interface that all strategies must implement.
"""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

from backtester.strategy.models import PricePoint, Signal, StrategyConfig


@runtime_checkable
class StrategyProtocol(Protocol):
    """Interface that all trading strategies must satisfy.

    A strategy is constructed from a ``StrategyConfig`` and emits exactly
    one ``Signal`` per bar.  It must only read ``history[: index + 1]``.
    """

    config: StrategyConfig

    def generate_signal(
        self, history: Sequence[PricePoint], index: int,
    ) -> Signal:
        """Return the trading decision for bar *index*."""
        ...


def int_parameter(config: StrategyConfig, key: str, default: int | None = None) -> int:
    """Read a positive integer parameter from *config*.

    Accepts integral floats (grid search may produce ``5.0``).  Raises
    ``ValueError`` when the parameter is missing or not a positive integer.
    """
    raw = config.parameters.get(key, default)
    if raw is None:
        raise ValueError(f"Strategy '{config.name}' requires parameter '{key}'")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValueError(
            f"Parameter '{key}' must be numeric, got {raw!r}"
        ) from None
    if not value.is_integer() or value < 1:
        raise ValueError(f"Parameter '{key}' must be a positive integer, got {raw!r}")
    return int(value)


def float_parameter(config: StrategyConfig, key: str, default: float) -> float:
    """Read a numeric parameter from *config*, falling back to *default*."""
    raw = config.parameters.get(key, default)
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise ValueError(
            f"Parameter '{key}' must be numeric, got {raw!r}"
        ) from None
