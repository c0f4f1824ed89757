"""Name → class lookup for the built-in strategies.

The optimizer and the CLI accept strategy names and resolve them here.
"""

from backtester.strategy.base import StrategyProtocol
from backtester.strategy.crossover import (
    EMACrossoverStrategy,
    MovingAverageCrossoverStrategy,
)
from backtester.strategy.models import StrategyConfig
from backtester.strategy.rsi_reversion import RSIReversionStrategy


STRATEGY_REGISTRY: dict[str, type] = {
    "ma_crossover": MovingAverageCrossoverStrategy,
    "ema_crossover": EMACrossoverStrategy,
    "rsi_reversion": RSIReversionStrategy,
}


def resolve_strategy_class(name: str) -> type:
    """Return the class registered under *name* (``KeyError`` if unknown)."""
    try:
        return STRATEGY_REGISTRY[name]
    except KeyError:
        available = ", ".join(sorted(STRATEGY_REGISTRY))
        raise KeyError(
            f"Unknown strategy '{name}'. Available: {available}"
        ) from None


def get_strategy(name: str, config: StrategyConfig) -> StrategyProtocol:
    """Look up and instantiate a strategy by registry key."""
    return resolve_strategy_class(name)(config)
