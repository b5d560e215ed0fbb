"""Tests for the per-genre level state machine."""

from __future__ import annotations

from dataclasses import replace

import pytest

from core.level_scheduler import (
    CompletionEvent,
    Genre,
    LevelScheduler,
    LevelStatus,
    SchedulerTransitionError,
    Transition,
    initial_progress,
)


@pytest.fixture
def scheduler() -> LevelScheduler:
    return LevelScheduler()


def test_initial_requirements_per_genre() -> None:
    assert initial_progress(Genre.MAZE).wins_required == 3
    assert initial_progress(Genre.FLAPPY).wins_required == 5
    assert initial_progress(Genre.RUNNER).wins_required == 5
    master = initial_progress(Genre.MASTER)
    assert (master.current, master.max_level, master.wins_required) == (0, 1, 999)
    assert initial_progress(Genre.MAZE, max_level=2).max_level == 2


def test_wins_count_until_level_completes(scheduler: LevelScheduler) -> None:
    progress = initial_progress(Genre.MAZE)

    for expected in (1, 2):
        result = scheduler.check_completion(Genre.MAZE, progress, CompletionEvent.WIN)
        assert result.transition is Transition.WIN_RECORDED
        progress = result.progress
        assert progress.wins_current == expected

    result = scheduler.check_completion(Genre.MAZE, progress, CompletionEvent.WIN)
    assert result.completed
    assert result.progress.status is LevelStatus.PROPOSING
    assert result.progress.wins_current == 3


def test_events_are_ignored_outside_training(scheduler: LevelScheduler) -> None:
    progress = replace(initial_progress(Genre.FLAPPY), status=LevelStatus.PROPOSING)

    result = scheduler.check_completion(Genre.FLAPPY, progress, CompletionEvent.SCORE_CHUNK)

    assert result.transition is Transition.NONE
    assert result.progress == progress


def test_event_kind_must_match_genre(scheduler: LevelScheduler) -> None:
    progress = initial_progress(Genre.RUNNER)
    result = scheduler.check_completion(Genre.RUNNER, progress, CompletionEvent.WIN)
    assert result.transition is Transition.NONE


def test_proposal_then_accept_advances_level(scheduler: LevelScheduler) -> None:
    progress = replace(initial_progress(Genre.MAZE), status=LevelStatus.PROPOSING, wins_current=3)

    waiting = scheduler.proposal_received(progress).progress
    assert waiting.status is LevelStatus.WAITING_FOR_APPROVAL

    result = scheduler.accept(waiting)
    assert result.transition is Transition.LEVEL_ADVANCED
    assert result.progress.current == 2
    assert result.progress.status is LevelStatus.TRAINING
    assert result.progress.wins_current == 0
    assert result.progress.wins_required == 5


def test_accept_at_max_level_finishes(scheduler: LevelScheduler) -> None:
    progress = replace(
        initial_progress(Genre.MAZE),
        current=4,
        status=LevelStatus.WAITING_FOR_APPROVAL,
    )

    result = scheduler.accept(progress)

    assert result.transition is Transition.FINISHED
    assert result.progress.status is LevelStatus.FINISHED


def test_regeneration_is_a_pending_sub_state(scheduler: LevelScheduler) -> None:
    waiting = replace(initial_progress(Genre.MAZE), status=LevelStatus.WAITING_FOR_APPROVAL)

    pending = scheduler.request_regeneration(waiting).progress
    assert pending.status is LevelStatus.WAITING_FOR_APPROVAL
    assert pending.pending

    with pytest.raises(SchedulerTransitionError):
        scheduler.accept(pending)
    with pytest.raises(SchedulerTransitionError):
        scheduler.request_regeneration(pending)

    resolved = scheduler.proposal_received(pending).progress
    assert not resolved.pending


def test_illegal_transitions_raise(scheduler: LevelScheduler) -> None:
    training = initial_progress(Genre.MAZE)
    with pytest.raises(SchedulerTransitionError):
        scheduler.proposal_received(training)
    with pytest.raises(SchedulerTransitionError):
        scheduler.accept(training)


@pytest.mark.parametrize("level", [0, 1, 2, 5, 10])
def test_next_level_requirement_grows_with_level(level: int) -> None:
    assert LevelScheduler.get_next_level_reqs(level) == 3 + level


def test_master_eligibility_requires_all_base_genres_finished() -> None:
    levels = {genre: initial_progress(genre) for genre in Genre}
    assert not LevelScheduler.is_master_eligible(levels)

    for genre in (Genre.MAZE, Genre.FLAPPY, Genre.RUNNER):
        levels[genre] = replace(levels[genre], status=LevelStatus.FINISHED)
    assert LevelScheduler.is_master_eligible(levels)
