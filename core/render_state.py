"""Immutable read-only snapshots handed to rendering consumers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class GenreView:
    """One genre's live world document, level record and agent summary."""

    genre: str
    state: dict[str, Any]
    level: dict[str, Any]
    table_size: int = 0
    proposal: dict[str, Any] | None = None


@dataclass(frozen=True)
class TrainingSnapshot:
    """Top-level frame emitted once per tick."""

    tick: int
    genres: dict[str, GenreView]
    logs: list[dict[str, Any]] = field(default_factory=list)
    master_active: bool = False
    timestamp: float = 0.0

    def view(self, genre: str) -> GenreView:
        return self.genres[str(genre)]
