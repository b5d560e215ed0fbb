"""Shared fakes for deterministic randomness and proposal clients used across the tests."""

from __future__ import annotations

import random
import threading
from typing import Iterable

from core.level_scheduler import Genre
from core.proposals import PatchOperation, Proposal, ProposalClient


class FixedRandom(random.Random):
    """Random stream that replays ``values`` in a loop."""

    def __init__(self, values: Iterable[float]) -> None:
        super().__init__(0)
        self._values = list(values)
        self._index = 0

    def random(self) -> float:
        value = self._values[self._index % len(self._values)]
        self._index += 1
        return value


class RecordingProposer(ProposalClient):
    """Proposal client returning canned proposals and recording every call."""

    def __init__(self, proposal: Proposal | None = None) -> None:
        self.proposal = proposal or Proposal(
            title="Spiky Corridor",
            description="Added hazards",
            patch=(PatchOperation("replace", "/grid/2/2", "hazard", has_value=True),),
        )
        self.calls: list[tuple[Genre, int, str, str | None]] = []
        self._lock = threading.Lock()

    def request(self, genre, level, snapshot, instruction=None) -> Proposal:
        with self._lock:
            self.calls.append((Genre(genre), level, snapshot, instruction))
        return self.proposal


class BlockingProposer(ProposalClient):
    """Proposal client that waits until ``release`` is set."""

    def __init__(self) -> None:
        self.release = threading.Event()

    def request(self, genre, level, snapshot, instruction=None) -> Proposal:
        self.release.wait(timeout=5)
        return Proposal(title="Late Level", description="Arrived too late")


class ExplodingProposer(ProposalClient):
    def request(self, genre, level, snapshot, instruction=None) -> Proposal:
        raise RuntimeError("designer exploded")
