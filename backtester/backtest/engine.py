"""Backtest engine — replays historical bars through a strategy.

Iterates bars chronologically, asking the strategy for exactly one
decision per bar and simulating fills against a virtual portfolio.
No real orders are placed.
"""

import logging
from typing import Optional

from backtester.backtest.models import BacktestResult, EquityPoint
from backtester.backtest.portfolio import Portfolio
from backtester.backtest.stats import calculate_performance
from backtester.config import Settings
from backtester.data.cleaning import clean_data
from backtester.data.providers import DateLike, HistoricalDataProvider, NoDataError
from backtester.risk.drawdown import DrawdownGuard
from backtester.risk.sl_tp import check_exit
from backtester.strategy.base import StrategyProtocol
from backtester.strategy.models import PricePoint, SignalType

logger = logging.getLogger("backtester.backtest")


class BacktestEngine:
    """Simulates trading on historical bars.

    Args:
        data_provider: Source of historical bars (read-only).
        settings: Risk-free rate, annualisation and drawdown-guard settings.
    """

    def __init__(
        self,
        data_provider: HistoricalDataProvider,
        settings: Optional[Settings] = None,
    ) -> None:
        self._provider = data_provider
        self._settings = settings or Settings()

    @property
    def settings(self) -> Settings:
        return self._settings

    # ── Public API ───────────────────────────────────────────────────────

    def run_backtest(
        self,
        strategy: StrategyProtocol,
        symbol: str,
        start_date: DateLike,
        end_date: DateLike,
        initial_capital: Optional[float] = None,
        interval: str = "1d",
    ) -> BacktestResult:
        """Execute a full backtest over ``[start_date, end_date]``.

        Args:
            strategy: Strategy instance; its config supplies commission and
                risk limits.
            symbol: Instrument to trade.
            start_date: First bar included.
            end_date: Last bar included.
            initial_capital: Starting cash (default from settings).
            interval: Bar interval passed to the data provider.

        Raises:
            ValueError: *initial_capital* is not positive.
            NoDataError: No usable bars remain after cleaning.
        """
        capital = (
            self._settings.initial_capital if initial_capital is None
            else initial_capital
        )
        if capital <= 0:
            raise ValueError(f"initial_capital must be positive, got {capital}")

        raw = self._provider.load_historical_data(symbol, start_date, end_date, interval)
        bars = clean_data(raw)
        if not bars:
            raise NoDataError(
                f"No usable data for {symbol} between {start_date} and {end_date}"
            )

        logger.info(
            "Backtest %s on %s: %d bar(s) from %s to %s",
            strategy.config.name, symbol, len(bars),
            bars[0].timestamp, bars[-1].timestamp,
        )
        result = self.simulate(strategy, symbol, bars, capital)
        logger.info(
            "Backtest %s complete: %d trade(s), return %.2f%%, max DD %.2f%%",
            result.strategy_name,
            result.total_trades,
            result.total_return * 100,
            result.max_drawdown * 100,
        )
        return result

    def simulate(
        self,
        strategy: StrategyProtocol,
        symbol: str,
        bars: list[PricePoint],
        initial_capital: float,
    ) -> BacktestResult:
        """Run the bar loop over already-cleaned *bars*."""
        if not bars:
            raise NoDataError(f"No bars to simulate for {symbol}")

        config = strategy.config
        risk = config.risk_management
        commission = config.commission

        portfolio = Portfolio(initial_capital)
        guard = DrawdownGuard.for_run(initial_capital, risk)
        equity_curve: list[EquityPoint] = []

        for i, bar in enumerate(bars):
            # 1 — Stop-loss / take-profit exits on open trades
            if risk.stop_loss is not None or risk.take_profit is not None:
                for trade in portfolio.open_trades(symbol):
                    hit = check_exit(trade, bar, risk)
                    if hit is not None:
                        exit_price, reason = hit
                        portfolio.close_trade(
                            trade, exit_price, commission, bar.timestamp, reason,
                        )

            # 2 — One decision per bar, seeing only bars[: i + 1]
            signal = strategy.generate_signal(bars[: i + 1], i)

            if signal.is_actionable and signal.type == SignalType.BUY:
                if self._settings.halt_on_max_drawdown and guard.tripped:
                    logger.debug(
                        "Circuit breaker active (DD %.2f%%) — skipping BUY at %s",
                        guard.drawdown * 100, bar.timestamp,
                    )
                else:
                    portfolio.buy(
                        symbol, signal.price, signal.quantity,
                        commission, signal.timestamp,
                    )
            elif signal.is_actionable and signal.type == SignalType.SELL:
                portfolio.sell(
                    symbol, signal.price, signal.quantity,
                    commission, signal.timestamp,
                )

            # 3 — Mark to market at the bar close
            value = portfolio.mark_to_market({symbol: bar.close})
            guard.observe(value)
            equity_curve.append(EquityPoint(timestamp=bar.timestamp, value=value))

        return calculate_performance(
            portfolio, equity_curve, initial_capital, config.name, self._settings,
        )
