"""Backtester — application configuration.

Loads .env variables into a typed settings object.  Every variable is
optional; values that fail to parse or fall out of range raise on startup.
"""

import os
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from dotenv import load_dotenv

from backtester.strategy.models import RiskManagement, StrategyConfig


_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    """Typed configuration loaded from environment variables."""

    initial_capital: float = 100_000.0
    commission: float = 5.0
    max_position_size: float = 100.0
    max_drawdown: float = 0.2
    risk_free_rate: float = 0.03
    trading_days_per_year: int = 252
    data_dir: str = "data/historical"
    optimizer_max_workers: int = 1
    halt_on_max_drawdown: bool = False
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.initial_capital <= 0:
            raise ValueError(
                f"initial_capital must be positive, got {self.initial_capital}"
            )
        if self.trading_days_per_year <= 0:
            raise ValueError(
                "trading_days_per_year must be positive, "
                f"got {self.trading_days_per_year}"
            )
        if self.optimizer_max_workers < 1:
            raise ValueError(
                "optimizer_max_workers must be >= 1, "
                f"got {self.optimizer_max_workers}"
            )


def _parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ValueError(f"not a boolean: {raw!r}")


def _read(name: str, default: Any, cast: Callable[[str], Any]) -> Any:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid value for {name}: {exc}") from None


def load_settings(env_path: Optional[str] = None) -> Settings:
    """Load settings from environment variables (and an optional .env file).

    Raises ``ValueError`` naming the offending variable when a value cannot
    be parsed or is out of range.
    """
    load_dotenv(dotenv_path=env_path)

    return Settings(
        initial_capital=_read("BACKTEST_INITIAL_CAPITAL", 100_000.0, float),
        commission=_read("BACKTEST_COMMISSION", 5.0, float),
        max_position_size=_read("BACKTEST_MAX_POSITION_SIZE", 100.0, float),
        max_drawdown=_read("BACKTEST_MAX_DRAWDOWN", 0.2, float),
        risk_free_rate=_read("RISK_FREE_RATE", 0.03, float),
        trading_days_per_year=_read("TRADING_DAYS_PER_YEAR", 252, int),
        data_dir=_read("DATA_DIR", "data/historical", str),
        optimizer_max_workers=_read("OPTIMIZER_MAX_WORKERS", 1, int),
        halt_on_max_drawdown=_read("HALT_ON_MAX_DRAWDOWN", False, _parse_bool),
        log_level=_read("LOG_LEVEL", "INFO", str).upper(),
    )


def default_strategy_config(
    name: str,
    parameters: Optional[Mapping[str, Any]] = None,
    settings: Optional[Settings] = None,
    stop_loss: Optional[float] = None,
    take_profit: Optional[float] = None,
) -> StrategyConfig:
    """Build a ``StrategyConfig`` using the risk defaults from *settings*."""
    settings = settings or Settings()
    return StrategyConfig(
        name=name,
        parameters=dict(parameters or {}),
        risk_management=RiskManagement(
            max_position_size=settings.max_position_size,
            max_drawdown=settings.max_drawdown,
            stop_loss=stop_loss,
            take_profit=take_profit,
        ),
        commission=settings.commission,
    )
