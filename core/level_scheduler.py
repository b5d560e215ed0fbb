"""Per-genre level progression and its explicit transition functions."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Mapping, NamedTuple


class Genre(str, Enum):
    MAZE = "MAZE"
    FLAPPY = "FLAPPY"
    RUNNER = "RUNNER"
    MASTER = "MASTER"


BASE_GENRES: tuple[Genre, ...] = (Genre.MAZE, Genre.FLAPPY, Genre.RUNNER)


class LevelStatus(str, Enum):
    TRAINING = "TRAINING"
    PROPOSING = "PROPOSING"
    WAITING_FOR_APPROVAL = "WAITING_FOR_APPROVAL"
    FINISHED = "FINISHED"


class CompletionEvent(str, Enum):
    WIN = "WIN"
    SCORE_CHUNK = "SCORE_CHUNK"


class Transition(str, Enum):
    """Which transition a scheduler call fired."""

    NONE = "NONE"
    WIN_RECORDED = "WIN_RECORDED"
    LEVEL_COMPLETE = "LEVEL_COMPLETE"
    PROPOSAL_READY = "PROPOSAL_READY"
    REGENERATING = "REGENERATING"
    LEVEL_ADVANCED = "LEVEL_ADVANCED"
    FINISHED = "FINISHED"


class SchedulerTransitionError(RuntimeError):
    """Raised when a transition is requested from an incompatible status."""


@dataclass(frozen=True)
class LevelProgress:
    """Immutable progress record for one genre.

    ``pending`` marks an outstanding regenerate/customize request while the
    genre stays in ``WAITING_FOR_APPROVAL``.
    """

    current: int
    max_level: int
    status: LevelStatus = LevelStatus.TRAINING
    wins_required: int = 3
    wins_current: int = 0
    pending: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "current": self.current,
            "max": self.max_level,
            "status": self.status.value,
            "winsRequired": self.wins_required,
            "winsCurrent": self.wins_current,
            "pending": self.pending,
        }


class SchedulerResult(NamedTuple):
    progress: LevelProgress
    transition: Transition

    @property
    def completed(self) -> bool:
        return self.transition is Transition.LEVEL_COMPLETE


# Starting requirements per genre: (current, max_level, wins_required).
_INITIAL_PROGRESS: dict[Genre, tuple[int, int, int]] = {
    Genre.MAZE: (1, 4, 3),
    Genre.FLAPPY: (1, 4, 5),
    Genre.RUNNER: (1, 4, 5),
    Genre.MASTER: (0, 1, 999),
}

_COUNTED_EVENTS: dict[Genre, frozenset[CompletionEvent]] = {
    Genre.MAZE: frozenset({CompletionEvent.WIN}),
    Genre.FLAPPY: frozenset({CompletionEvent.SCORE_CHUNK}),
    Genre.RUNNER: frozenset({CompletionEvent.SCORE_CHUNK}),
    Genre.MASTER: frozenset(CompletionEvent),
}


def initial_progress(genre: Genre, max_level: int | None = None) -> LevelProgress:
    """Return the starting progress record for ``genre``."""
    current, default_max, wins_required = _INITIAL_PROGRESS[Genre(genre)]
    return LevelProgress(
        current=current,
        max_level=default_max if max_level is None else int(max_level),
        wins_required=wins_required,
    )


class LevelScheduler:
    """Stateless rules deciding when a level is complete and what comes next."""

    def check_completion(
        self,
        genre: Genre,
        progress: LevelProgress,
        event: CompletionEvent,
    ) -> SchedulerResult:
        """Count a completion event and report whether the level is beaten.

        Events are ignored unless the genre is ``TRAINING``. A completed level
        moves to ``PROPOSING``.
        """
        if progress.status is not LevelStatus.TRAINING:
            return SchedulerResult(progress, Transition.NONE)

        wins = progress.wins_current
        if CompletionEvent(event) in _COUNTED_EVENTS[Genre(genre)]:
            wins += 1

        if wins >= progress.wins_required:
            updated = replace(progress, wins_current=wins, status=LevelStatus.PROPOSING)
            return SchedulerResult(updated, Transition.LEVEL_COMPLETE)
        if wins != progress.wins_current:
            return SchedulerResult(replace(progress, wins_current=wins), Transition.WIN_RECORDED)
        return SchedulerResult(progress, Transition.NONE)

    def proposal_received(self, progress: LevelProgress) -> SchedulerResult:
        """Surface a resolved proposal (successful or failure-shaped)."""
        if progress.status is LevelStatus.PROPOSING or (
            progress.status is LevelStatus.WAITING_FOR_APPROVAL and progress.pending
        ):
            updated = replace(progress, status=LevelStatus.WAITING_FOR_APPROVAL, pending=False)
            return SchedulerResult(updated, Transition.PROPOSAL_READY)
        raise SchedulerTransitionError(
            f"Cannot receive a proposal while {progress.status.value} (pending={progress.pending})."
        )

    def request_regeneration(self, progress: LevelProgress) -> SchedulerResult:
        """Mark a regenerate/customize request as outstanding."""
        self._require_awaiting_decision(progress, "regenerate")
        return SchedulerResult(replace(progress, pending=True), Transition.REGENERATING)

    def accept(self, progress: LevelProgress) -> SchedulerResult:
        """Advance to the next level, or finish when past ``max_level``."""
        self._require_awaiting_decision(progress, "accept")
        next_level = progress.current + 1
        if next_level > progress.max_level:
            updated = replace(
                progress,
                current=next_level,
                status=LevelStatus.FINISHED,
                wins_current=0,
                wins_required=self.get_next_level_reqs(next_level),
            )
            return SchedulerResult(updated, Transition.FINISHED)
        updated = replace(
            progress,
            current=next_level,
            status=LevelStatus.TRAINING,
            wins_current=0,
            wins_required=self.get_next_level_reqs(next_level),
        )
        return SchedulerResult(updated, Transition.LEVEL_ADVANCED)

    @staticmethod
    def get_next_level_reqs(level: int) -> int:
        """Wins needed to clear ``level``; grows with every level."""
        return 3 + int(level)

    @staticmethod
    def is_master_eligible(levels: Mapping[Genre, LevelProgress]) -> bool:
        return all(levels[genre].status is LevelStatus.FINISHED for genre in BASE_GENRES)

    @staticmethod
    def _require_awaiting_decision(progress: LevelProgress, action: str) -> None:
        if progress.status is not LevelStatus.WAITING_FOR_APPROVAL or progress.pending:
            raise SchedulerTransitionError(
                f"Cannot {action} while {progress.status.value} (pending={progress.pending})."
            )
