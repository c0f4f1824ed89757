"""Historical bar cleaning and validation — pure functions, no I/O.

Cleaning drops unusable rows silently (they are counted and logged, not
raised).  Validation reports whether every bar passes the full OHLCV
sanity check without modifying anything.
"""

import logging
import math
from numbers import Real
from typing import Sequence

from backtester.strategy.models import PricePoint

logger = logging.getLogger("backtester.data")


def _is_number(value: object) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def is_usable(bar: PricePoint) -> bool:
    """``True`` when *bar* has numeric OHLC values and positive volume."""
    prices = (bar.open, bar.high, bar.low, bar.close)
    if not all(_is_number(p) for p in prices):
        return False
    return _is_number(bar.volume) and bar.volume > 0


def clean_data(bars: Sequence[PricePoint]) -> list[PricePoint]:
    """Drop bars with non-numeric OHLC values or non-positive volume.

    Order is preserved.  Bars that are usable but fail the high/low
    consistency check are kept and only reported at WARNING level.
    """
    cleaned = [b for b in bars if is_usable(b)]

    dropped = len(bars) - len(cleaned)
    if dropped:
        logger.warning("Dropped %d unusable bar(s) of %d.", dropped, len(bars))

    inconsistent = sum(1 for b in cleaned if not b.is_valid)
    if inconsistent:
        logger.warning(
            "%d bar(s) have high/low outside the open/close range.", inconsistent,
        )
    return cleaned


def validate_data(bars: Sequence[PricePoint]) -> bool:
    """Return ``True`` if every bar passes the OHLCV sanity check.

    A bar is valid when ``high >= max(open, close)``,
    ``low <= min(open, close)`` and ``volume > 0``.
    """
    return all(is_usable(b) and b.is_valid for b in bars)
