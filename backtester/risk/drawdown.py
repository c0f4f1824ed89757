"""Drawdown guard for a running backtest.

Follows the marked-to-market portfolio value bar by bar.  Once the
decline from the running peak reaches ``threshold`` (a fraction of the
peak) the guard is tripped; it clears again when equity recovers.
"""

from backtester.strategy.models import RiskManagement


class DrawdownGuard:
    """Running peak, current and worst drawdown of an equity series.

    Args:
        initial_equity: Portfolio value before the first bar; seeds the peak.
        threshold: Drawdown fraction at which ``tripped`` becomes ``True``.
    """

    def __init__(self, initial_equity: float, threshold: float = 0.2) -> None:
        if initial_equity <= 0:
            raise ValueError(
                f"initial_equity must be positive, got {initial_equity}"
            )
        self.threshold = threshold
        self.peak = initial_equity
        self.equity = initial_equity
        self.worst = 0.0

    @classmethod
    def for_run(cls, initial_equity: float, risk: RiskManagement) -> "DrawdownGuard":
        return cls(initial_equity, risk.max_drawdown)

    def observe(self, equity: float) -> float:
        """Record the latest portfolio value and return the current drawdown."""
        self.equity = equity
        self.peak = max(self.peak, equity)
        current = self.drawdown
        self.worst = max(self.worst, current)
        return current

    @property
    def drawdown(self) -> float:
        return (self.peak - self.equity) / self.peak

    @property
    def tripped(self) -> bool:
        return self.drawdown >= self.threshold
