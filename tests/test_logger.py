"""Tests for the SQLite-backed training logger."""

from __future__ import annotations

import sqlite3

from data.logger import LevelEvent, TrainingLogger


def test_logger_persists_run_and_level_events(tmp_path) -> None:
    db_path = tmp_path / "runs.db"
    logger = TrainingLogger(db_path)

    run_id = logger.start_run(config={"seed": 3, "max_level": 4}, seed=3)
    logger.log_level_event(run_id, LevelEvent(tick=10, genre="MAZE", level=1, transition="LEVEL_COMPLETE"))
    logger.log_level_event(run_id, LevelEvent(tick=12, genre="FLAPPY", level=1, transition="LEVEL_COMPLETE"))
    logger.log_level_event(
        run_id,
        LevelEvent(tick=15, genre="MAZE", level=1, transition="PROPOSAL_READY", detail="Lava Lake"),
    )

    maze_rows = logger.fetch_level_events(run_id, genre="MAZE")
    assert [row["transition"] for row in maze_rows] == ["LEVEL_COMPLETE", "PROPOSAL_READY"]
    assert maze_rows[1]["detail"] == "Lava Lake"
    assert len(logger.fetch_level_events(run_id)) == 3
    assert logger.latest_run_id() == run_id
    logger.close()

    conn = sqlite3.connect(db_path)
    run_count = conn.execute("SELECT COUNT(*) FROM training_runs").fetchone()[0]
    event_count = conn.execute("SELECT COUNT(*) FROM level_events").fetchone()[0]
    conn.close()

    assert run_count == 1
    assert event_count == 3


def test_latest_run_id_on_empty_db(tmp_path) -> None:
    logger = TrainingLogger(tmp_path / "empty.db")
    try:
        assert logger.latest_run_id() is None
    finally:
        logger.close()


def test_second_run_becomes_latest(tmp_path) -> None:
    logger = TrainingLogger(tmp_path / "runs.db")
    try:
        first = logger.start_run(config={"seed": 1}, seed=1)
        second = logger.start_run(config={"seed": 1}, seed=1)
        assert first != second
        assert logger.latest_run_id() == second
    finally:
        logger.close()
