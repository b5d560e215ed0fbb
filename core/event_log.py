"""Rolling operator-facing log of recent training events."""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Callable

from core.level_scheduler import Genre

LOGGER = logging.getLogger(__name__)

DEFAULT_CAPACITY = 20


class LogSource(str, Enum):
    SYSTEM = "SYSTEM"
    AGENT = "AGENT"
    GEMINI = "GEMINI"
    USER = "USER"


@dataclass(frozen=True)
class LogEntry:
    timestamp: float
    genre: Genre
    source: LogSource
    message: str

    def to_dict(self) -> dict[str, object]:
        return {
            "timestamp": self.timestamp,
            "time": time.strftime("%H:%M:%S", time.localtime(self.timestamp)),
            "genre": self.genre.value,
            "source": self.source.value,
            "message": self.message,
        }


class EventLog:
    """Keeps the most recent ``capacity`` entries, newest first."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY, clock: Callable[[], float] = time.time) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self.capacity = int(capacity)
        self._clock = clock
        self._entries: deque[LogEntry] = deque(maxlen=self.capacity)
        self._lock = Lock()

    def add(self, genre: Genre, source: LogSource, message: str) -> LogEntry:
        entry = LogEntry(timestamp=float(self._clock()), genre=Genre(genre), source=LogSource(source), message=message)
        with self._lock:
            self._entries.appendleft(entry)
        LOGGER.info("[%s] %s: %s", entry.genre.value, entry.source.value, message)
        return entry

    def entries(self) -> list[LogEntry]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
