"""Tests for the CLI run/events flow."""

from __future__ import annotations

import json

from cli.main import run_cli
from data.logger import TrainingLogger


def test_cli_run_and_events(tmp_path, capsys) -> None:
    db_path = tmp_path / "runs.db"
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"seed": 7, "tick_interval": 0.001}), encoding="utf-8")

    assert run_cli(["run", "--config", str(config_path), "--db", str(db_path), "--ticks", "20"]) == 0

    summary = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert summary["ticks"] == 20
    assert summary["levels"]["MAZE"]["status"] == "TRAINING"

    logger = TrainingLogger(db_path)
    run_id = logger.latest_run_id()
    logger.close()
    assert run_id == summary["run_id"]

    assert run_cli(["events", "--db", str(db_path)]) == 0
