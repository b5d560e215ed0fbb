"""SQLite-backed training run metadata and level transition history."""

from __future__ import annotations

import hashlib
import json
import platform
import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Any, Mapping


@dataclass(frozen=True)
class LevelEvent:
    """Structured level transition row."""

    tick: int
    genre: str
    level: int
    transition: str
    detail: str = ""


class TrainingLogger:
    """Persist training run metadata and level transitions in SQLite."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.connection = sqlite3.connect(self.db_path, check_same_thread=False)
        self.connection.row_factory = sqlite3.Row
        self._lock = Lock()
        self._ensure_schema()

    def close(self) -> None:
        self.connection.close()

    def _ensure_schema(self) -> None:
        self.connection.executescript(
            """
            CREATE TABLE IF NOT EXISTS training_runs (
                run_id TEXT PRIMARY KEY,
                config_hash TEXT NOT NULL,
                seed INTEGER NOT NULL,
                config_json TEXT NOT NULL,
                runtime_metadata TEXT NOT NULL,
                created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS level_events (
                run_id TEXT NOT NULL,
                tick INTEGER NOT NULL,
                genre TEXT NOT NULL,
                level INTEGER NOT NULL,
                transition TEXT NOT NULL,
                detail TEXT NOT NULL,
                FOREIGN KEY (run_id)
                    REFERENCES training_runs (run_id)
                    ON DELETE CASCADE
            );
            """
        )
        self.connection.commit()

    def start_run(self, config: Mapping[str, Any], seed: int, metadata: Mapping[str, Any] | None = None) -> str:
        config_json = json.dumps(dict(config), sort_keys=True, default=str)
        runtime_metadata = {"python_version": platform.python_version(), "platform": platform.platform()}
        if metadata:
            runtime_metadata.update(dict(metadata))
        config_hash = hashlib.sha256(config_json.encode("utf-8")).hexdigest()
        run_nonce = str(time.time_ns())
        run_id = hashlib.sha256(f"{config_hash}:{seed}:{run_nonce}".encode("utf-8")).hexdigest()[:16]
        metadata_json = json.dumps(runtime_metadata, sort_keys=True, default=str)

        with self._lock:
            self.connection.execute(
                """
                INSERT OR IGNORE INTO training_runs (
                    run_id, config_hash, seed, config_json, runtime_metadata
                ) VALUES (?, ?, ?, ?, ?)
                """,
                (run_id, config_hash, int(seed), config_json, metadata_json),
            )
            self.connection.commit()
        return run_id

    def log_level_event(self, run_id: str, event: LevelEvent) -> None:
        with self._lock:
            self.connection.execute(
                """
                INSERT INTO level_events (run_id, tick, genre, level, transition, detail)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (run_id, event.tick, event.genre, event.level, event.transition, event.detail),
            )
            self.connection.commit()

    def fetch_level_events(self, run_id: str, genre: str | None = None) -> list[dict[str, Any]]:
        """Return level transitions in insertion order."""
        query = """
            SELECT tick, genre, level, transition, detail
            FROM level_events
            WHERE run_id = ?
        """
        params: tuple[Any, ...] = (run_id,)
        if genre is not None:
            query += " AND genre = ?"
            params = (run_id, genre)
        query += " ORDER BY rowid ASC"
        with self._lock:
            rows = self.connection.execute(query, params).fetchall()
        return [dict(row) for row in rows]

    def latest_run_id(self) -> str | None:
        """Return most recently created run id, if any."""
        with self._lock:
            row = self.connection.execute(
                """
                SELECT run_id
                FROM training_runs
                ORDER BY created_at DESC, rowid DESC
                LIMIT 1
                """
            ).fetchone()
        return str(row[0]) if row is not None else None
