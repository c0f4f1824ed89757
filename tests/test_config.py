"""Tests for backtester.config — environment variable loading and validation."""

import pytest

from backtester.config import Settings, default_strategy_config, load_settings

_VARS = [
    "BACKTEST_INITIAL_CAPITAL",
    "BACKTEST_COMMISSION",
    "BACKTEST_MAX_POSITION_SIZE",
    "BACKTEST_MAX_DRAWDOWN",
    "RISK_FREE_RATE",
    "TRADING_DAYS_PER_YEAR",
    "DATA_DIR",
    "OPTIMIZER_MAX_WORKERS",
    "HALT_ON_MAX_DRAWDOWN",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Ensure backtester env vars are cleared between tests.

    Setting before deleting makes monkeypatch remove anything a .env file
    loads during the test.
    """
    for var in _VARS:
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)


@pytest.fixture
def no_env_file(tmp_path):
    # A non-existent path keeps load_dotenv away from any real .env file
    return str(tmp_path / "missing.env")


class TestLoadSettings:

    def test_defaults(self, no_env_file):
        settings = load_settings(no_env_file)
        assert settings == Settings()
        assert settings.initial_capital == 100_000.0
        assert settings.commission == 5.0
        assert settings.max_position_size == 100.0
        assert settings.max_drawdown == 0.2
        assert settings.risk_free_rate == 0.03
        assert settings.trading_days_per_year == 252
        assert settings.data_dir == "data/historical"
        assert settings.optimizer_max_workers == 1
        assert settings.halt_on_max_drawdown is False
        assert settings.log_level == "INFO"

    def test_overrides(self, monkeypatch, no_env_file):
        monkeypatch.setenv("BACKTEST_INITIAL_CAPITAL", "25000")
        monkeypatch.setenv("BACKTEST_COMMISSION", "1.5")
        monkeypatch.setenv("TRADING_DAYS_PER_YEAR", "365")
        monkeypatch.setenv("OPTIMIZER_MAX_WORKERS", "4")
        monkeypatch.setenv("DATA_DIR", "/srv/bars")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        settings = load_settings(no_env_file)
        assert settings.initial_capital == 25_000.0
        assert settings.commission == 1.5
        assert settings.trading_days_per_year == 365
        assert settings.optimizer_max_workers == 4
        assert settings.data_dir == "/srv/bars"
        assert settings.log_level == "DEBUG"

    def test_empty_value_uses_default(self, monkeypatch, no_env_file):
        monkeypatch.setenv("BACKTEST_COMMISSION", "")
        assert load_settings(no_env_file).commission == 5.0

    @pytest.mark.parametrize("raw,expected", [
        ("true", True), ("1", True), ("YES", True),
        ("false", False), ("0", False), ("off", False),
    ])
    def test_bool_parsing(self, monkeypatch, no_env_file, raw, expected):
        monkeypatch.setenv("HALT_ON_MAX_DRAWDOWN", raw)
        assert load_settings(no_env_file).halt_on_max_drawdown is expected

    def test_invalid_number_names_variable(self, monkeypatch, no_env_file):
        monkeypatch.setenv("RISK_FREE_RATE", "three percent")
        with pytest.raises(ValueError, match="RISK_FREE_RATE"):
            load_settings(no_env_file)

    def test_invalid_bool_names_variable(self, monkeypatch, no_env_file):
        monkeypatch.setenv("HALT_ON_MAX_DRAWDOWN", "maybe")
        with pytest.raises(ValueError, match="HALT_ON_MAX_DRAWDOWN"):
            load_settings(no_env_file)

    def test_out_of_range_capital(self, monkeypatch, no_env_file):
        monkeypatch.setenv("BACKTEST_INITIAL_CAPITAL", "-10")
        with pytest.raises(ValueError, match="initial_capital"):
            load_settings(no_env_file)

    def test_reads_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("BACKTEST_COMMISSION=2.5\n")
        assert load_settings(str(env_file)).commission == 2.5


class TestDefaultStrategyConfig:

    def test_risk_defaults_from_settings(self):
        settings = Settings(commission=2.0, max_position_size=50.0, max_drawdown=0.3)
        config = default_strategy_config(
            "ma_crossover", {"short_period": 5}, settings, stop_loss=0.05,
        )
        assert config.name == "ma_crossover"
        assert config.parameters == {"short_period": 5}
        assert config.commission == 2.0
        assert config.risk_management.max_position_size == 50.0
        assert config.risk_management.max_drawdown == 0.3
        assert config.risk_management.stop_loss == 0.05
        assert config.risk_management.take_profit is None

    def test_builtin_defaults(self):
        config = default_strategy_config("ma_crossover")
        assert config.commission == 5.0
        assert config.risk_management.max_position_size == 100.0
        assert config.risk_management.max_drawdown == 0.2
