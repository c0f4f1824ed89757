"""Stop-loss and take-profit exits for long trades — pure math, no I/O.

Levels are fractions of the entry price:
    SL = entry × (1 − stop_loss)
    TP = entry × (1 + take_profit)
"""

from dataclasses import dataclass
from typing import Optional

from backtester.backtest.models import Trade
from backtester.strategy.models import PricePoint, RiskManagement


@dataclass(frozen=True)
class RiskLevels:
    """Computed exit levels for one trade (``None`` = not configured)."""

    sl: Optional[float]
    tp: Optional[float]


def calculate_levels(entry_price: float, risk: RiskManagement) -> RiskLevels:
    """Derive SL/TP prices for a long entry at *entry_price*."""
    sl = entry_price * (1.0 - risk.stop_loss) if risk.stop_loss is not None else None
    tp = entry_price * (1.0 + risk.take_profit) if risk.take_profit is not None else None
    return RiskLevels(sl=sl, tp=tp)


def check_exit(
    trade: Trade, bar: PricePoint, risk: RiskManagement,
) -> Optional[tuple[float, str]]:
    """Check if *bar* triggers an SL or TP exit for an open long *trade*.

    Returns ``(exit_price, reason)`` or ``None``.  When both levels are
    touched within the same bar, SL is assumed first (conservative).
    """
    levels = calculate_levels(trade.entry_price, risk)

    sl_hit = levels.sl is not None and bar.low <= levels.sl
    tp_hit = levels.tp is not None and bar.high >= levels.tp

    if sl_hit:
        # Gap below the stop fills at the open, not at the stop price
        return min(levels.sl, bar.open), "stop_loss"
    if tp_hit:
        return max(levels.tp, bar.open), "take_profit"
    return None
