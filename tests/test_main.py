"""Tests for the command-line entry point."""

import pytest

from backtester.main import main, parse_parameters, parse_ranges
from backtester.optimize.grid import ParameterRange


@pytest.fixture
def env_args(tmp_path):
    return ["--env-file", str(tmp_path / "missing.env")]


_WINDOW = ["--symbol", "AAA", "--start", "2023-01-01", "--end", "2023-06-30"]
_MA_PARAMS = ["-p", "short_period=5", "-p", "long_period=20"]


class TestParsing:

    def test_parse_parameters(self):
        assert parse_parameters(["a=5", "b=0.5", "c=fast"]) == {
            "a": 5, "b": 0.5, "c": "fast",
        }

    def test_parse_parameters_rejects_missing_equals(self):
        with pytest.raises(ValueError, match="key=value"):
            parse_parameters(["short_period"])

    def test_parse_ranges(self):
        assert parse_ranges(["short_period=5:20:5"]) == {
            "short_period": ParameterRange(5, 20, 5),
        }

    def test_parse_ranges_rejects_bad_format(self):
        with pytest.raises(ValueError, match="min:max:step"):
            parse_ranges(["short_period=5:20"])


class TestMain:

    def test_run_synthetic(self, env_args, tmp_path, capsys):
        csv_path = tmp_path / "trades.csv"
        code = main(env_args + [
            "run", "--synthetic", *_WINDOW, *_MA_PARAMS,
            "--report", "--export-csv", str(csv_path),
        ])
        assert code == 0
        out = capsys.readouterr().out
        assert "Total Return" in out
        assert "# Backtesting Report: ma_crossover" in out
        assert csv_path.read_text().startswith("ID,Symbol,Side")

    def test_optimize_synthetic(self, env_args, capsys):
        code = main(env_args + [
            "optimize", "--synthetic", *_WINDOW,
            "-r", "short_period=5:10:5", "-r", "long_period=20:30:10",
            "--workers", "2", "--top", "3",
        ])
        assert code == 0
        out = capsys.readouterr().out
        assert "Score (sharpe_ratio)" in out
        assert out.count("short_period=") == 3

    def test_walk_forward_synthetic(self, env_args, capsys):
        code = main(env_args + [
            "walk-forward", "--synthetic", "--strategy", "rsi_reversion",
            "--symbol", "AAA", "--start", "2022-01-01", "--end", "2023-12-31",
            "--train-days", "120", "--test-days", "60",
        ])
        assert code == 0
        assert "Consistency" in capsys.readouterr().out

    def test_missing_csv_returns_2(self, env_args, tmp_path):
        code = main(env_args + [
            "run", "--data-dir", str(tmp_path), *_WINDOW, *_MA_PARAMS,
        ])
        assert code == 2

    def test_invalid_parameter_returns_1(self, env_args):
        code = main(env_args + [
            "run", "--synthetic", *_WINDOW,
            "-p", "short_period=fast", "-p", "long_period=20",
        ])
        assert code == 1

    def test_malformed_setting_returns_1(self, env_args, monkeypatch):
        monkeypatch.setenv("OPTIMIZER_MAX_WORKERS", "abc")
        code = main(env_args + ["run", "--synthetic", *_WINDOW, *_MA_PARAMS])
        assert code == 1

    def test_unknown_metric_returns_1(self, env_args):
        code = main(env_args + [
            "optimize", "--synthetic", *_WINDOW,
            "-r", "short_period=5:10:5", "-p", "long_period=20",
            "--metric", "alpha",
        ])
        assert code == 1
