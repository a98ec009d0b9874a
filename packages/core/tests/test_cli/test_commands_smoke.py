"""Smoke tests for the query-radar CLI.

Runs each command end to end against small input files written to a
temporary directory.
"""

import json

import click
import pytest
from click.testing import CliRunner

from query_radar.cli.main import main
from query_radar.config import reset_settings
from query_radar.fingerprint import fingerprint

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def runner(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ("QUERY_RADAR_TOP_N", "QUERY_RADAR_MIN_IMPACT_PCT", "QUERY_RADAR_THRESHOLDS_FILE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("QUERY_RADAR_SERVERLESS_UNIT_PRICE", raising=False)
    reset_settings()
    yield CliRunner()
    reset_settings()


def _write(tmp_path, name: str, rows) -> str:
    path = tmp_path / name
    path.write_text(json.dumps(rows))
    return str(path)


def invoke_help(runner: CliRunner, *args) -> click.testing.Result:
    return runner.invoke(main, list(args) + ["--help"])


@pytest.fixture()
def executions(tmp_path):
    return _write(
        tmp_path,
        "runs.json",
        [
            {
                "statement_id": "s1",
                "warehouse_id": "wh-1",
                "warehouse_name": "BI",
                "query_text": "SELECT * FROM t WHERE id=1",
                "duration_ms": 30000,
            },
            {
                "statement_id": "s2",
                "warehouse_id": "wh-1",
                "warehouse_name": "BI",
                "query_text": "SELECT * FROM t WHERE id=2",
                "duration_ms": 90000,
            },
        ],
    )


@pytest.fixture()
def daily(tmp_path):
    return _write(
        tmp_path,
        "daily.json",
        [
            {
                "warehouse_id": "wh-1",
                "query_date": f"2026-03-0{day}",
                "queries": 100,
                "spill_gib": 4 / 7,
                "avg_runtime_sec": 5,
            }
            for day in range(1, 8)
        ],
    )


# ---------------------------------------------------------------------------
# Top-level group
# ---------------------------------------------------------------------------


class TestMainGroup:
    def test_main_help(self, runner):
        result = invoke_help(runner)
        assert result.exit_code == 0
        assert "query-radar" in result.output

    def test_main_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0

    def test_all_expected_commands_registered(self):
        assert {"fingerprint", "candidates", "warehouses"} <= set(main.commands)

    @pytest.mark.parametrize("cmd", ["fingerprint", "candidates", "warehouses"])
    def test_command_help(self, runner, cmd):
        result = invoke_help(runner, cmd)
        assert result.exit_code == 0, f"'{cmd} --help' failed: {result.output}"


# ---------------------------------------------------------------------------
# fingerprint
# ---------------------------------------------------------------------------


class TestFingerprintCommand:
    def test_prints_fingerprint_and_normalized(self, runner):
        result = runner.invoke(main, ["fingerprint", "SELECT * FROM t WHERE id IN (1, 2)"])
        assert result.exit_code == 0
        assert fingerprint("SELECT * FROM t WHERE id IN (1, 2)") in result.output
        assert "select * from t where id in (?)" in result.output


# ---------------------------------------------------------------------------
# candidates
# ---------------------------------------------------------------------------


class TestCandidatesCommand:
    def test_table(self, runner, executions):
        result = runner.invoke(main, ["candidates", executions])
        assert result.exit_code == 0, result.output
        assert "Top 1 of 1 query patterns" in result.output

    def test_json(self, runner, executions, tmp_path):
        costs = _write(tmp_path, "costs.json", [{"warehouse_id": "wh-1", "total_dollars": 12}])
        result = runner.invoke(main, ["candidates", executions, "--costs", costs, "--json"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert len(payload) == 1
        assert payload[0]["window_stats"]["count"] == 2
        assert payload[0]["window_stats"]["p50_ms"] == 90000
        assert payload[0]["allocated_cost_dollars"] == pytest.approx(12)
        assert payload[0]["warehouse_name"] == "BI"

    def test_limit(self, runner, executions):
        result = runner.invoke(main, ["candidates", executions, "--limit", "0", "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout) == []

    def test_negative_limit(self, runner, executions):
        result = runner.invoke(main, ["candidates", executions, "--limit", "-1"])
        assert result.exit_code == 1
        assert "limit" in result.output

    def test_negative_min_impact(self, runner, executions):
        result = runner.invoke(main, ["candidates", executions, "--min-impact", "-5"])
        assert result.exit_code == 1
        assert "min_impact_pct" in result.output

    def test_empty_input(self, runner, tmp_path):
        result = runner.invoke(main, ["candidates", _write(tmp_path, "empty.json", [])])
        assert result.exit_code == 0
        assert "No query patterns found." in result.output

    def test_invalid_record(self, runner, tmp_path):
        bad = _write(tmp_path, "bad.json", [{"warehouse_id": "wh-1"}])
        result = runner.invoke(main, ["candidates", bad])
        assert result.exit_code == 1
        assert "record 0" in result.output

    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(main, ["candidates", str(tmp_path / "nope.json")])
        assert result.exit_code == 2

    def test_thresholds_file(self, runner, executions, tmp_path):
        thresholds = tmp_path / "thresholds.yaml"
        thresholds.write_text("flags:\n  long_running_ms: 1000000\n")
        result = runner.invoke(
            main, ["candidates", executions, "--thresholds", str(thresholds), "--json"]
        )
        assert result.exit_code == 0, result.output
        flags = [f["flag"] for f in json.loads(result.stdout)[0]["performance_flags"]]
        assert "LongRunning" not in flags

    def test_bad_thresholds_file(self, runner, executions, tmp_path):
        thresholds = tmp_path / "thresholds.yaml"
        thresholds.write_text("flags:\n  not_a_threshold: 1\n")
        result = runner.invoke(main, ["candidates", executions, "--thresholds", str(thresholds)])
        assert result.exit_code == 1


# ---------------------------------------------------------------------------
# warehouses
# ---------------------------------------------------------------------------


class TestWarehousesCommand:
    def _configs(self, tmp_path):
        return _write(
            tmp_path,
            "configs.json",
            [{"warehouse_id": "wh-1", "name": "BI", "size": "Small", "max_clusters": 2}],
        )

    def test_json(self, runner, daily, tmp_path):
        result = runner.invoke(
            main, ["warehouses", daily, "--configs", self._configs(tmp_path), "--json"]
        )
        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert len(payload) == 1
        assert payload[0]["action"] == "upsize"
        assert payload[0]["target_size"] == "Medium"
        assert payload[0]["confidence"] == "high"

    def test_table(self, runner, daily, tmp_path):
        result = runner.invoke(main, ["warehouses", daily, "--configs", self._configs(tmp_path)])
        assert result.exit_code == 0, result.output
        assert "Recommendations for 1 warehouses" in result.output

    def test_serverless_price_from_env(self, runner, tmp_path, monkeypatch):
        daily = _write(
            tmp_path,
            "cold.json",
            [
                {"warehouse_id": "wh-1", "query_date": f"2026-03-0{d}", "cold_start_min": 2}
                for d in range(1, 8)
            ],
        )
        costs = _write(
            tmp_path, "costs.json", [{"warehouse_id": "wh-1", "total_dbus": 10, "total_dollars": 9}]
        )
        monkeypatch.setenv("QUERY_RADAR_SERVERLESS_UNIT_PRICE", "0.5")
        reset_settings()
        result = runner.invoke(main, ["warehouses", daily, "--costs", costs, "--json"])
        assert result.exit_code == 0, result.output
        rec = json.loads(result.stdout)[0]
        assert rec["action"] == "serverless"
        assert rec["serverless_cost_estimate"] == pytest.approx(5)

    def test_negative_price(self, runner, daily):
        result = runner.invoke(main, ["warehouses", daily, "--serverless-price", "-1"])
        assert result.exit_code == 1
        assert "serverless_unit_price" in result.output

    def test_empty_input(self, runner, tmp_path):
        result = runner.invoke(main, ["warehouses", _write(tmp_path, "empty.json", [])])
        assert result.exit_code == 0
        assert "No warehouse activity found." in result.output
