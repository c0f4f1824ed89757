"""Simulated portfolio — cash, long positions, and the trade ledger.

All fills are applied synchronously in the order they are requested.
SELL fills close open trades oldest-first (FIFO) per symbol.
"""

import logging
from datetime import datetime
from typing import Optional

from backtester.backtest.models import Trade

logger = logging.getLogger("backtester.backtest")


class Portfolio:
    """Cash balance, positions, and trades of a single backtest run.

    Args:
        initial_capital: Starting cash.  Must be positive.
    """

    def __init__(self, initial_capital: float) -> None:
        if initial_capital <= 0:
            raise ValueError(
                f"initial_capital must be positive, got {initial_capital}"
            )
        self.cash: float = initial_capital
        self.positions: dict[str, float] = {}
        self.total_value: float = initial_capital
        self.trades: list[Trade] = []
        self._next_trade_id = 0

    # ── Queries ──────────────────────────────────────────────────────────

    def position(self, symbol: str) -> float:
        """Quantity currently held in *symbol* (0 when flat)."""
        return self.positions.get(symbol, 0.0)

    def open_trades(self, symbol: str) -> list[Trade]:
        """Open trades for *symbol*, oldest first."""
        return [t for t in self.trades if t.symbol == symbol and t.is_open]

    # ── Fills ────────────────────────────────────────────────────────────

    def buy(
        self,
        symbol: str,
        price: float,
        quantity: float,
        commission: float,
        timestamp: datetime,
    ) -> Optional[Trade]:
        """Open a long trade if cash covers ``price × quantity + commission``.

        Returns the new trade, or ``None`` when cash is insufficient (the
        order is skipped entirely; no partial fills).
        """
        required = price * quantity + commission
        if self.cash < required:
            logger.debug(
                "Skipping BUY %s x%s @ %.4f: need %.2f, have %.2f",
                symbol, quantity, price, required, self.cash,
            )
            return None

        self.cash -= required
        self.positions[symbol] = self.position(symbol) + quantity

        trade = Trade(
            id=f"trade_{self._next_trade_id}",
            symbol=symbol,
            side="BUY",
            quantity=quantity,
            entry_price=price,
            entry_time=timestamp,
            commission=commission,
        )
        self._next_trade_id += 1
        self.trades.append(trade)
        return trade

    def sell(
        self,
        symbol: str,
        price: float,
        quantity: float,
        commission: float,
        timestamp: datetime,
    ) -> Optional[Trade]:
        """Sell up to *quantity* of *symbol* and close the oldest open trade.

        The filled quantity is capped at the current position.  Realised
        P&L on the closed trade is::

            (exit − entry) × sold_qty − (entry_commission + exit_commission)

        Returns the closed trade, or ``None`` when nothing was sold or no
        open trade matched (orphan sell: cash and position still move).
        """
        sell_qty = min(quantity, self.position(symbol))
        if sell_qty <= 0:
            return None

        self.cash += price * sell_qty - commission
        self.positions[symbol] = self.position(symbol) - sell_qty

        open_trades = self.open_trades(symbol)
        if not open_trades:
            logger.warning(
                "Orphan SELL %s x%s @ %.4f at %s: no open trade to close.",
                symbol, sell_qty, price, timestamp,
            )
            return None

        trade = open_trades[0]
        self._close(trade, price, sell_qty, commission, timestamp, "signal")
        return trade

    def close_trade(
        self,
        trade: Trade,
        price: float,
        commission: float,
        timestamp: datetime,
        reason: str,
    ) -> None:
        """Close a specific open *trade* in full (stop-loss / take-profit).

        When an earlier SELL already drained the position, the trade is
        closed without a fill: no cash moves and no exit commission is
        charged.
        """
        if not trade.is_open:
            raise ValueError(f"Trade {trade.id} is already closed")
        qty = min(trade.quantity, self.position(trade.symbol))
        if qty <= 0:
            logger.warning(
                "%s exit for %s at %s: no position left, closing without a fill.",
                reason, trade.id, timestamp,
            )
            self._close(trade, price, 0.0, 0.0, timestamp, reason)
            return
        self.cash += price * qty - commission
        self.positions[trade.symbol] = self.position(trade.symbol) - qty
        self._close(trade, price, qty, commission, timestamp, reason)

    # ── Valuation ────────────────────────────────────────────────────────

    def mark_to_market(self, prices: dict[str, float]) -> float:
        """Recompute ``total_value`` as cash plus positions at *prices*."""
        position_value = sum(
            qty * prices[symbol]
            for symbol, qty in self.positions.items()
            if qty
        )
        self.total_value = self.cash + position_value
        return self.total_value

    # ── Helpers ──────────────────────────────────────────────────────────

    @staticmethod
    def _close(
        trade: Trade,
        price: float,
        quantity: float,
        commission: float,
        timestamp: datetime,
        reason: str,
    ) -> None:
        trade.exit_price = price
        trade.exit_time = timestamp
        trade.exit_reason = reason
        trade.pnl = (
            (price - trade.entry_price) * quantity
            - (trade.commission + commission)
        )
