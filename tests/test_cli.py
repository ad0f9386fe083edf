"""Tests for the command line front end."""
from __future__ import annotations

import json
import logging
import math

import pytest
import yaml

from beacon_range import cli


@pytest.fixture(autouse=True)
def _clean_logger():
    yield
    logger = logging.getLogger("beacon_range")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


def _write_config(tmp_path, **overrides):
    cfg = {
        "coefficient1": 0.89976,
        "coefficient2": 7.7095,
        "coefficient3": 0.111,
        "tx_power": -59,
        "log_level": "WARNING",
    }
    cfg.update(overrides)
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(cfg))
    return path


def _expected(tx_power, rssi, c1=0.89976, c2=7.7095, c3=0.111):
    converted = tx_power * math.pow((1 - c3) / c1, 1 / c2)
    if rssi / converted < 1.0:
        return math.pow(rssi / converted, 8)
    return c1 * math.pow(rssi / tx_power, c2) + c3


class TestEstimate:
    def test_config_coefficients(self, tmp_path, capsys):
        cfg = _write_config(tmp_path)
        assert cli.main(["--config", str(cfg), "--rssi", "-65"]) == 0
        out = capsys.readouterr().out
        assert f"-65.00 dBm -> {_expected(-59, -65.0):.2f} m" in out

    def test_multiple_samples_and_zero(self, tmp_path, capsys):
        cfg = _write_config(tmp_path)
        assert cli.main(["--config", str(cfg), "--rssi", "-70", "--rssi", "0"]) == 0
        lines = capsys.readouterr().out.strip().splitlines()
        assert len(lines) == 2
        assert lines[1] == "0.00 dBm -> unknown"

    def test_tx_power_override(self, tmp_path, capsys):
        cfg = _write_config(tmp_path)
        cli.main(["--config", str(cfg), "--rssi", "-80", "--tx-power", "-70"])
        out = capsys.readouterr().out
        assert f"{_expected(-70, -80.0):.2f} m" in out

    def test_explicit_coefficients(self, tmp_path, capsys):
        cfg = _write_config(tmp_path)
        cli.main([
            "--config", str(cfg),
            "--coefficients", "0.42093", "6.9476", "0.54992",
            "--rssi", "-75",
        ])
        out = capsys.readouterr().out
        expected = _expected(-59, -75.0, 0.42093, 6.9476, 0.54992)
        assert f"{expected:.2f} m" in out

    def test_model_lookup(self, tmp_path, capsys):
        cfg = _write_config(tmp_path)
        models = tmp_path / "models.json"
        models.write_text(json.dumps({"models": [
            {"coefficient1": 1.0, "coefficient2": 2.0, "coefficient3": 0.0,
             "model": "Phone X", "manufacturer": "Acme", "default": True},
        ]}))
        cli.main([
            "--config", str(cfg), "--models", str(models),
            "--manufacturer", "Acme", "--model", "Phone X", "--rssi", "-118",
        ])
        out = capsys.readouterr().out
        # ratio 2, so 1.0 * 2 ** 2 + 0.0
        assert "-> 4.00 m" in out

    def test_explain(self, tmp_path, capsys):
        cfg = _write_config(tmp_path)
        cli.main(["--config", str(cfg), "--rssi", "-50", "--explain"])
        out = capsys.readouterr().out
        assert "converted ratio" in out
        assert "(near-field)" in out

    def test_verbose_logs_diagnostics(self, tmp_path, capsys):
        cfg = _write_config(tmp_path)
        cli.main(["--config", str(cfg), "--rssi", "-65", "--verbose"])
        out = capsys.readouterr().out
        assert "calculating distance" in out
        assert "convTxPower" in out

    def test_log_file(self, tmp_path):
        cfg = _write_config(tmp_path, log_level="INFO")
        log_file = tmp_path / "logs" / "range.log"
        cli.main(["--config", str(cfg), "--rssi", "-65", "--log-file", str(log_file)])
        for h in logging.getLogger("beacon_range").handlers:
            h.flush()
        assert "avgRssi: -65.00" in log_file.read_text()


class TestFailures:
    def test_no_rssi(self, tmp_path, capsys):
        cfg = _write_config(tmp_path)
        assert cli.main(["--config", str(cfg)]) == 1
        assert "--rssi" in capsys.readouterr().err

    def test_missing_config(self, tmp_path, capsys):
        assert cli.main(["--config", str(tmp_path / "nope.yaml"), "--rssi", "-60"]) == 1
        assert "Could not read config" in capsys.readouterr().err

    def test_degenerate_config_refused(self, tmp_path):
        cfg = _write_config(tmp_path, coefficient1=0.0)
        assert cli.main(["--config", str(cfg), "--rssi", "-60"]) == 1

    def test_bad_model_table(self, tmp_path, capsys):
        cfg = _write_config(tmp_path)
        models = tmp_path / "models.json"
        models.write_text("[]")
        code = cli.main([
            "--config", str(cfg), "--models", str(models),
            "--manufacturer", "Acme", "--rssi", "-60",
        ])
        assert code == 1
        assert "Could not select coefficients" in capsys.readouterr().err


class TestInvalidConfigValues:
    def test_non_string_log_file(self, tmp_path, capsys):
        cfg = _write_config(tmp_path, log_file=5)
        assert cli.main(["--config", str(cfg), "--rssi", "-65"]) == 1
        assert "log_file" in capsys.readouterr().err

    def test_log_file_flag_overrides_bad_config(self, tmp_path, capsys):
        cfg = _write_config(tmp_path, log_file=5)
        log_file = tmp_path / "range.log"
        assert cli.main(["--config", str(cfg), "--rssi", "-65", "--log-file", str(log_file)]) == 0
        assert "dBm ->" in capsys.readouterr().out

    def test_bad_tx_power_with_explicit_coefficients(self, tmp_path, capsys):
        cfg = _write_config(tmp_path, tx_power="loud")
        code = cli.main(["--config", str(cfg), "--coefficients", "1", "2", "0", "--rssi", "-65"])
        assert code == 1
        assert "tx_power" in capsys.readouterr().err

    def test_fractional_tx_power_refused(self, tmp_path, capsys):
        cfg = _write_config(tmp_path, tx_power=5.5)
        code = cli.main(["--config", str(cfg), "--coefficients", "1", "2", "0", "--rssi", "-65"])
        assert code == 1
        assert "tx_power" in capsys.readouterr().err

    def test_tx_power_flag_overrides_bad_config(self, tmp_path, capsys):
        cfg = _write_config(tmp_path, tx_power="loud")
        code = cli.main([
            "--config", str(cfg), "--coefficients", "1", "2", "0",
            "--rssi", "-118", "--tx-power", "-59",
        ])
        assert code == 0
        assert "-> 4.00 m" in capsys.readouterr().out

    def test_non_finite_coefficient_refused(self, tmp_path, capsys):
        cfg = _write_config(tmp_path, coefficient1=float("nan"))
        assert cli.main(["--config", str(cfg), "--rssi", "-65"]) == 1
        captured = capsys.readouterr()
        assert "nan m" not in captured.out
        assert "finite" in captured.err

    def test_explicit_coefficients_bypass_degenerate_config(self, tmp_path, capsys):
        cfg = _write_config(tmp_path, coefficient1=0.0)
        code = cli.main(["--config", str(cfg), "--coefficients", "1", "2", "0", "--rssi", "-118"])
        assert code == 0
        assert "-> 4.00 m" in capsys.readouterr().out


class TestModes:
    def test_validate_ok(self, tmp_path, capsys):
        cfg = _write_config(tmp_path)
        assert cli.main(["--validate", "--config", str(cfg)]) == 0
        assert "Configuration: VALID" in capsys.readouterr().out

    def test_validate_bad(self, tmp_path, capsys):
        cfg = _write_config(tmp_path, coefficient2=0.0)
        assert cli.main(["--validate", "--config", str(cfg)]) == 1
        assert "INVALID" in capsys.readouterr().out

    def test_list_models(self, tmp_path, capsys):
        cfg = _write_config(tmp_path)
        assert cli.main(["--config", str(cfg), "--list-models"]) == 0
        out = capsys.readouterr().out
        assert "Nexus 5" in out
        assert "(default)" in out

    def test_validate_and_list_exclusive(self):
        with pytest.raises(SystemExit):
            cli.main(["--validate", "--list-models"])
