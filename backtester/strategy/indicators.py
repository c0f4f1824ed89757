"""Technical indicators — SMA, EMA, RSI. Pure functions, no I/O."""

import math
from typing import Sequence


def _check_period(name: str, period: int) -> None:
    if period < 1:
        raise ValueError(f"{name} period must be >= 1, got {period}")


def calculate_sma(values: Sequence[float], period: int) -> list[float]:
    """Calculate a Simple Moving Average series.

    Entry *i* is the arithmetic mean of the trailing *period* values
    ending at *i*.  Entries before a full window is available are
    ``float('nan')``.

    Returns a list the same length as *values*.
    """
    _check_period("SMA", period)

    sma: list[float] = [float("nan")] * len(values)
    for i in range(period - 1, len(values)):
        window = values[i - period + 1 : i + 1]
        sma[i] = sum(window) / period
    return sma


def calculate_ema(values: Sequence[float], period: int) -> list[float]:
    """Calculate an Exponential Moving Average series.

    Seeded with the first value, then::

        EMA[i] = (value[i] - EMA[i-1]) × k + EMA[i-1],   k = 2 / (period + 1)

    Returns a list the same length as *values* with no undefined prefix.
    """
    _check_period("EMA", period)
    if not values:
        return []

    k = 2.0 / (period + 1)
    ema: list[float] = [values[0]]
    for i in range(1, len(values)):
        ema.append((values[i] - ema[i - 1]) * k + ema[i - 1])
    return ema


# ── RSI ──────────────────────────────────────────────────────────────────


def calculate_rsi(values: Sequence[float], period: int = 14) -> list[float]:
    """Calculate the Relative Strength Index (SMA-smoothed).

    Algorithm:
        1. delta = value[i] - value[i-1]
        2. Separate gains (positive) and losses (|negative|).
        3. Smooth each with ``calculate_sma(·, period)``.
        4. RSI = 100 - 100 / (1 + avg_gain / avg_loss)

    RSI is 50 (neutral) wherever either average is undefined or the
    average loss is zero.

    Returns a list the same length as *values*; entry *i* describes the
    move into value *i*, so entry 0 is always 50.
    """
    _check_period("RSI", period)
    if not values:
        return []

    gains: list[float] = []
    losses: list[float] = []
    for i in range(1, len(values)):
        delta = values[i] - values[i - 1]
        gains.append(delta if delta > 0 else 0.0)
        losses.append(-delta if delta < 0 else 0.0)

    avg_gains = calculate_sma(gains, period)
    avg_losses = calculate_sma(losses, period)

    rsi: list[float] = [50.0]
    for gain, loss in zip(avg_gains, avg_losses):
        if math.isnan(gain) or math.isnan(loss) or loss == 0:
            rsi.append(50.0)
            continue
        rs = gain / loss
        rsi.append(100.0 - 100.0 / (1.0 + rs))
    return rsi
