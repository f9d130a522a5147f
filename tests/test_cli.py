"""
Tests for crypto_detector/cli.py via typer's CliRunner.

What we test
------------
  - init-db creates the database file and applies migrations.
  - validate-config passes on defaults and exits 1 on an invariant violation.
  - score prints a ranked table; score --json stays parseable with INFO logs.
  - temporal-profile prints Φ per horizon; unknown modes exit 1 cleanly.
  - A full cycle flow: create-cycle → list-cycles → complete-cycle →
    scenarios → exclude → calibrate → stats.
  - complete-cycle on an unknown id exits 1.
"""

from __future__ import annotations

import json
import re

import pytest
from typer.testing import CliRunner

from crypto_detector.cli import app

runner = CliRunner()

_ASSETS = [
    {
        "id": "alpha",
        "symbol": "alp",
        "current_price": 2.0,
        "market_cap": 80_000_000.0,
        "total_volume": 30_000_000.0,
        "price_change_percentage_24h": 4.0,
        "price_change_percentage_7d": -18.0,
        "ath": 40.0,
        "atl": 1.8,
    },
    {
        "id": "beta",
        "symbol": "bet",
        "current_price": 60_000.0,
        "market_cap": 1_200_000_000_000.0,
        "total_volume": 20_000_000_000.0,
        "price_change_percentage_24h": 0.5,
        "price_change_percentage_7d": 1.0,
        "ath": 70_000.0,
        "atl": 60.0,
    },
]


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Config file, asset snapshot and price file under tmp_path."""
    for var in ("CRYPTO_DETECTOR_DB_PATH", "CRYPTO_DETECTOR_LOG_LEVEL", "CRYPTO_DETECTOR_MODE"):
        monkeypatch.delenv(var, raising=False)

    db_path = (tmp_path / "db" / "cd.db").as_posix()
    config = tmp_path / "config.toml"
    config.write_text(
        f'[database]\ndb_path = "{db_path}"\n\n'
        '[logging]\nlevel = "WARNING"\nlog_file = ""\n\n'
        "[cycles]\ndefault_duration_hours = 1.0\n",
        encoding="utf-8",
    )
    assets = tmp_path / "assets.json"
    assets.write_text(json.dumps(_ASSETS), encoding="utf-8")
    prices = tmp_path / "prices.json"
    prices.write_text(json.dumps({"alpha": 2.3, "beta": 59_000.0}), encoding="utf-8")

    return {"config": str(config), "assets": str(assets), "prices": str(prices), "tmp": tmp_path}


def _invoke(*args: str):
    return runner.invoke(app, list(args))


def _create_cycle(ws) -> str:
    result = _invoke("create-cycle", "--assets", ws["assets"], "--config", ws["config"])
    assert result.exit_code == 0, result.output
    match = re.search(r"Cycle (\S+) created", result.output)
    assert match is not None
    return match.group(1)


class TestSetupCommands:
    def test_init_db(self, workspace):
        result = _invoke("init-db", "--config", workspace["config"])
        assert result.exit_code == 0, result.output
        assert "[OK] Database ready." in result.output
        assert (workspace["tmp"] / "db" / "cd.db").exists()

    def test_validate_config_ok(self, workspace):
        result = _invoke("validate-config", "--config", workspace["config"])
        assert result.exit_code == 0, result.output
        assert "[OK] normal algorithm config valid (version v2)." in result.output
        assert "[OK] speculative algorithm config valid" in result.output

    def test_validate_config_violation(self, workspace, tmp_path):
        bad = tmp_path / "bad.toml"
        bad.write_text(
            "[algorithm.normal.meta_weights]\npotential = 0.9\n", encoding="utf-8"
        )
        result = _invoke("validate-config", "--config", str(bad), "--mode", "normal")
        assert result.exit_code == 1

    def test_missing_config(self, tmp_path):
        result = _invoke("stats", "--config", str(tmp_path / "absent.toml"))
        assert result.exit_code == 1

    def test_temporal_profile(self):
        result = _invoke("temporal-profile", "--base", "10")
        assert result.exit_code == 0, result.output
        assert "HOURS" in result.output
        assert "LINEAR%" in result.output

    def test_temporal_profile_bad_mode(self):
        assert _invoke("temporal-profile", "--base", "10", "--mode", "wild").exit_code == 1

    def test_validate_config_bad_mode(self, workspace):
        result = _invoke("validate-config", "--config", workspace["config"], "--mode", "bogus")
        assert result.exit_code == 1
        assert "Unknown mode 'bogus'" in result.output
        assert not isinstance(result.exception, ValueError)


class TestScore:
    def test_table(self, workspace):
        result = _invoke("score", "--assets", workspace["assets"], "--config", workspace["config"])
        assert result.exit_code == 0, result.output
        assert "ALP" in result.output
        assert "BET" in result.output

    def test_json(self, workspace):
        result = _invoke(
            "score", "--assets", workspace["assets"], "--config", workspace["config"], "--json"
        )
        assert result.exit_code == 0, result.output
        assert '"boost_power"' in result.output

    def test_json_parses_with_info_logging(self, workspace, tmp_path):
        db_path = (tmp_path / "db" / "info.db").as_posix()
        verbose = tmp_path / "info.toml"
        verbose.write_text(
            f'[database]\ndb_path = "{db_path}"\n\n[logging]\nlevel = "INFO"\nlog_file = ""\n',
            encoding="utf-8",
        )
        result = _invoke("score", "--assets", workspace["assets"], "--config", str(verbose), "--json")
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert len(payload) == 2
        assert all("boost_power" in item["score"] for item in payload)

    def test_bad_mode(self, workspace):
        result = _invoke(
            "score", "--assets", workspace["assets"], "--config", workspace["config"], "--mode", "wild"
        )
        assert result.exit_code == 1
        assert "Unknown mode 'wild'" in result.output

    def test_missing_assets_file(self, workspace):
        result = _invoke("score", "--assets", "nope.json", "--config", workspace["config"])
        assert result.exit_code == 1


class TestCycleFlow:
    def test_list_empty(self, workspace):
        result = _invoke("list-cycles", "--config", workspace["config"])
        assert result.exit_code == 0
        assert "No cycles." in result.output

    def test_full_flow(self, workspace):
        ws = workspace
        cycle_id = _create_cycle(ws)

        listed = _invoke("list-cycles", "--config", ws["config"])
        assert cycle_id in listed.output

        done = _invoke("complete-cycle", cycle_id, "--prices", ws["prices"], "--config", ws["config"])
        assert done.exit_code == 0, done.output
        assert f"[OK] Cycle {cycle_id} completed" in done.output

        completed = _invoke("list-cycles", "--completed", "--config", ws["config"])
        assert cycle_id in completed.output

        scen = _invoke("scenarios", cycle_id, "--config", ws["config"])
        assert scen.exit_code == 0, scen.output
        assert "Durations:" in scen.output
        assert "[OK] Recommended:" in scen.output

        excluded = _invoke("exclude", cycle_id, "beta", "--config", ws["config"])
        assert excluded.exit_code == 0, excluded.output
        assert "[OK] 1 excluded" in excluded.output

        calib = _invoke("calibrate", "--config", ws["config"])
        assert calib.exit_code == 0, calib.output
        assert "[OK] Calibration saved." in calib.output

        stats = _invoke("stats", "--config", ws["config"])
        assert stats.exit_code == 0, stats.output
        assert "Cycles:          1" in stats.output

    def test_complete_unknown_cycle(self, workspace):
        result = _invoke(
            "complete-cycle", "cycle_missing", "--prices", workspace["prices"],
            "--config", workspace["config"],
        )
        assert result.exit_code == 1

    def test_scenarios_on_active_cycle(self, workspace):
        cycle_id = _create_cycle(workspace)
        result = _invoke("scenarios", cycle_id, "--config", workspace["config"])
        assert result.exit_code == 1

    def test_complete_due_leaves_open_cycles(self, workspace):
        _create_cycle(workspace)
        result = _invoke("complete-due", "--prices", workspace["prices"], "--config", workspace["config"])
        assert result.exit_code == 0, result.output
        assert "Completed:  0" in result.output
