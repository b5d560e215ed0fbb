"""Tick loop driving every genre's train, propose and advance cycle."""

from __future__ import annotations

import logging
import math
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, cast

from agents.base import Agent
from agents.encoders import encode_flappy, encode_master, encode_maze, encode_runner
from agents.master_agent import MasterAgent
from agents.q_learning import QLearningAgent
from configs.loader import TrainingConfig
from core import event_bus as topics
from core.deterministic_rng import RandomStreams
from core.event_bus import EventBus
from core.event_log import EventLog, LogSource
from core.level_scheduler import (
    BASE_GENRES,
    CompletionEvent,
    Genre,
    LevelProgress,
    LevelScheduler,
    LevelStatus,
    Transition,
    initial_progress,
)
from core.patching import apply_patch_to_state
from core.proposals import REJECT_INSTRUCTION, Proposal, ProposalClient, failure_proposal
from core.render_state import GenreView, TrainingSnapshot
from data.logger import LevelEvent, TrainingLogger
from engines.flappy import FLAPPY_ACTIONS, init_flappy, step_flappy
from engines.master import (
    MODE_FLAPPY,
    MODE_MAZE,
    MODE_RUNNER,
    init_master,
    step_master,
)
from engines.maze import EVENT_GOAL, MAZE_ACTIONS, MazeState, init_maze, reset_agent, step_maze
from engines.runner import RUNNER_ACTIONS, init_runner, step_runner
from streaming.state_serializer import state_text

LOGGER = logging.getLogger(__name__)

SNAPSHOT_LIMIT = 2000
SCORE_CHUNKS: dict[str, float] = {
    MODE_FLAPPY: 50.0,
    MODE_RUNNER: 100.0,
}

Stepper = Callable[[Any, int], Any]


class OperatorActionError(RuntimeError):
    """Raised when an operator action is not legal for a genre's status."""


@dataclass
class GenreRuntime:
    """Live state, learner and progress for one genre."""

    genre: Genre
    state: Any
    agent: Agent
    encode: Callable[[Any], str]
    step: Stepper
    progress: LevelProgress
    force_exploit: bool = False
    proposal: Proposal | None = None
    request: Future | None = None
    requested_at: float = 0.0


def detect_event(genre: Genre, before: Any, after: Any) -> CompletionEvent | None:
    """Return the completion event a single step produced, if any.

    Maze steps win on a goal visit. Flappy and Runner steps count a chunk when
    the score crosses the next multiple of the genre's chunk size.
    """
    if genre is Genre.MASTER:
        if before.mode != after.mode:
            return None
        return detect_event(Genre(after.mode), before.active_state(), after.active_state())
    if genre is Genre.MAZE:
        return CompletionEvent.WIN if after.last_event == EVENT_GOAL else None
    chunk = SCORE_CHUNKS[genre.value]
    if before.agent.dead or after.agent.dead:
        return None
    if math.floor(after.agent.score / chunk) > math.floor(before.agent.score / chunk):
        return CompletionEvent.SCORE_CHUNK
    return None


def step_reward(genre: Genre, before: Any, after: Any) -> float:
    """Score delta of one step; a reset step earns nothing."""
    if genre is Genre.MASTER:
        return float(after.score - before.score)
    if before.agent.dead:
        return 0.0
    return float(after.agent.score - before.agent.score)


class CurriculumOrchestrator:
    """Owns every live engine state, agent and level record.

    All mutation happens through ``tick`` and the operator actions, which must
    be called from one thread. Proposal requests are the only work handed to
    ``executor``; their results are collected at the start of each tick.
    """

    def __init__(
        self,
        config: TrainingConfig,
        proposer: ProposalClient,
        streams: RandomStreams | None = None,
        event_log: EventLog | None = None,
        logger: TrainingLogger | None = None,
        event_bus: EventBus | None = None,
        executor: Executor | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.proposer = proposer
        self.streams = streams or RandomStreams(config.seed)
        self.event_log = event_log if event_log is not None else EventLog()
        self.logger = logger
        self.event_bus = event_bus
        self.scheduler = LevelScheduler()
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(
            max_workers=config.proposal_workers,
            thread_name_prefix="proposal",
        )
        self._clock = clock
        self.tick_count = 0
        self.master_active = False
        self.run_id: str | None = None
        if self.logger is not None:
            self.run_id = self.logger.start_run(config.to_dict(), config.seed)

        self.runtimes: dict[Genre, GenreRuntime] = {
            Genre.MAZE: GenreRuntime(
                genre=Genre.MAZE,
                state=init_maze(config.maze_width, config.maze_height),
                agent=self._new_agent(Genre.MAZE, MAZE_ACTIONS),
                encode=encode_maze,
                step=step_maze,
                progress=initial_progress(Genre.MAZE, config.max_level),
            ),
            Genre.FLAPPY: GenreRuntime(
                genre=Genre.FLAPPY,
                state=init_flappy(),
                agent=self._new_agent(Genre.FLAPPY, FLAPPY_ACTIONS),
                encode=encode_flappy,
                step=self._with_rng(step_flappy, "engine.flappy"),
                progress=initial_progress(Genre.FLAPPY, config.max_level),
            ),
            Genre.RUNNER: GenreRuntime(
                genre=Genre.RUNNER,
                state=init_runner(),
                agent=self._new_agent(Genre.RUNNER, RUNNER_ACTIONS),
                encode=encode_runner,
                step=self._with_rng(step_runner, "engine.runner"),
                progress=initial_progress(Genre.RUNNER, config.max_level),
            ),
        }
        self.runtimes[Genre.MASTER] = GenreRuntime(
            genre=Genre.MASTER,
            state=init_master(),
            agent=self._new_master_agent(),
            encode=encode_master,
            step=self._master_stepper(),
            progress=initial_progress(Genre.MASTER),
            force_exploit=config.master_exploit,
        )

    # ------------------------------------------------------------------ wiring

    def _new_agent(self, genre: Genre, actions: tuple[str, ...]) -> QLearningAgent:
        return QLearningAgent(
            actions=actions,
            rng=self.streams.stream(f"agent.{genre.value.lower()}"),
            epsilon=self.config.epsilon,
            learning_rate=self.config.learning_rate,
            discount=self.config.discount,
        )

    def _new_master_agent(self) -> MasterAgent:
        return MasterAgent(
            mode_actions={
                MODE_MAZE: MAZE_ACTIONS,
                MODE_FLAPPY: FLAPPY_ACTIONS,
                MODE_RUNNER: RUNNER_ACTIONS,
            },
            rng=self.streams.stream("agent.master"),
            epsilon=self.config.epsilon,
            learning_rate=self.config.learning_rate,
            discount=self.config.discount,
        )

    def _with_rng(self, stepper: Callable[[Any, int, Any], Any], stream: str) -> Stepper:
        rng = self.streams.stream(stream)
        return lambda state, action: stepper(state, action, rng)

    def _master_stepper(self) -> Stepper:
        rng = self.streams.stream("engine.master")
        mode_ticks = self.config.master_mode_ticks
        return lambda state, action: step_master(state, action, rng, mode_ticks)

    # -------------------------------------------------------------------- tick

    def tick(self) -> None:
        """Advance every training genre by one step."""
        self._collect_proposals()
        for genre in BASE_GENRES:
            self._tick_genre(self.runtimes[genre])
        if not self.master_active and self.scheduler.is_master_eligible(self.levels()):
            self._activate_master()
        if self.master_active:
            self._tick_genre(self.runtimes[Genre.MASTER])
        self.tick_count += 1

    def _tick_genre(self, runtime: GenreRuntime) -> None:
        if runtime.progress.status is not LevelStatus.TRAINING:
            return
        before = runtime.state
        old_key = runtime.encode(before)
        action = runtime.agent.choose_action(old_key, force_exploit=runtime.force_exploit)
        after = runtime.step(before, action)
        new_key = runtime.encode(after)
        runtime.agent.learn(old_key, action, step_reward(runtime.genre, before, after), new_key)
        runtime.state = after

        event = detect_event(runtime.genre, before, after)
        if event is None:
            return
        result = self.scheduler.check_completion(runtime.genre, runtime.progress, event)
        runtime.progress = result.progress
        if result.transition is Transition.LEVEL_COMPLETE:
            self._on_level_complete(runtime)

    def _on_level_complete(self, runtime: GenreRuntime) -> None:
        level = runtime.progress.current
        self.event_log.add(runtime.genre, LogSource.SYSTEM, f"Level {level} Completed!")
        self._record(runtime, Transition.LEVEL_COMPLETE)
        self._publish(topics.LEVEL_COMPLETE, runtime)
        self._submit_request(runtime, instruction=None)

    def _activate_master(self) -> None:
        master = self.runtimes[Genre.MASTER]
        agent = master.agent
        if isinstance(agent, MasterAgent):
            agent.absorb(MODE_MAZE, self.runtimes[Genre.MAZE].agent.export_table())
            agent.absorb(MODE_FLAPPY, self.runtimes[Genre.FLAPPY].agent.export_table())
            agent.absorb(MODE_RUNNER, self.runtimes[Genre.RUNNER].agent.export_table())
        maze_state: MazeState = self.runtimes[Genre.MAZE].state
        master.state = init_master(
            maze=reset_agent(maze_state),
            flappy=self.runtimes[Genre.FLAPPY].state,
            runner=self.runtimes[Genre.RUNNER].state,
        )
        self.master_active = True
        self.event_log.add(Genre.MASTER, LogSource.SYSTEM, "All genres finished. Master level unlocked!")
        self._record(master, Transition.NONE, detail="master_activated")
        self._publish(topics.MASTER_ACTIVATED, master)

    # --------------------------------------------------------------- proposals

    def _submit_request(self, runtime: GenreRuntime, instruction: str | None) -> None:
        snapshot = state_text(runtime.state, SNAPSHOT_LIMIT)
        runtime.request = self.executor.submit(
            self.proposer.request,
            runtime.genre,
            runtime.progress.current,
            snapshot,
            instruction,
        )
        runtime.requested_at = self._clock()
        LOGGER.debug("Requested proposal for %s level %d", runtime.genre.value, runtime.progress.current)

    def _collect_proposals(self) -> None:
        for runtime in self.runtimes.values():
            future = runtime.request
            if future is None:
                continue
            if future.done():
                proposal = self._proposal_result(runtime, future)
            elif self._clock() - runtime.requested_at >= self.config.proposal_timeout:
                future.cancel()
                LOGGER.warning("Proposal for %s timed out", runtime.genre.value)
                proposal = failure_proposal("The level designer timed out. Try again.")
            else:
                continue
            self._deliver_proposal(runtime, proposal)

    @staticmethod
    def _proposal_result(runtime: GenreRuntime, future: Future) -> Proposal:
        try:
            return future.result()
        except Exception as exc:
            LOGGER.exception("Proposal request for %s raised", runtime.genre.value)
            return failure_proposal(f"The level designer failed to respond ({exc}). Try again.")

    def _deliver_proposal(self, runtime: GenreRuntime, proposal: Proposal) -> None:
        runtime.request = None
        result = self.scheduler.proposal_received(runtime.progress)
        runtime.progress = result.progress
        runtime.proposal = proposal
        self.event_log.add(runtime.genre, LogSource.GEMINI, f"Proposed: {proposal.title}")
        self._record(runtime, Transition.PROPOSAL_READY, detail=proposal.title)
        self._publish(topics.PROPOSAL_READY, runtime)

    def wait_for_proposals(self, timeout: float | None = None) -> bool:
        """Block until outstanding requests resolve, then collect them.

        Returns ``True`` when nothing is left outstanding.
        """
        outstanding = [runtime.request for runtime in self.runtimes.values() if runtime.request is not None]
        if outstanding:
            wait(outstanding, timeout=timeout)
        self._collect_proposals()
        return all(runtime.request is None for runtime in self.runtimes.values())

    # -------------------------------------------------------- operator actions

    def _awaiting_decision(self, genre: Genre, action: str) -> GenreRuntime:
        runtime = self.runtimes[Genre(genre)]
        progress = runtime.progress
        if (
            progress.status is not LevelStatus.WAITING_FOR_APPROVAL
            or progress.pending
            or runtime.proposal is None
        ):
            raise OperatorActionError(
                f"Cannot {action} {runtime.genre.value} while {progress.status.value}"
                f"{' (request pending)' if progress.pending else ''}."
            )
        return runtime

    def accept_proposal(self, genre: Genre) -> LevelProgress:
        """Apply the waiting proposal and advance the genre's level."""
        runtime = self._awaiting_decision(genre, "accept")
        proposal = cast(Proposal, runtime.proposal)
        state, applied = apply_patch_to_state(runtime.genre, runtime.state, proposal.patch)
        if isinstance(state, MazeState):
            state = reset_agent(state)
        runtime.state = state
        runtime.proposal = None

        result = self.scheduler.accept(runtime.progress)
        runtime.progress = result.progress
        self.event_log.add(runtime.genre, LogSource.GEMINI, f"Applied: {proposal.title}")
        LOGGER.info(
            "Applied %d/%d patch operation(s) to %s",
            applied,
            len(proposal.patch),
            runtime.genre.value,
        )
        self._record(runtime, result.transition, detail=proposal.title)
        if result.transition is Transition.FINISHED:
            self.event_log.add(runtime.genre, LogSource.SYSTEM, f"{runtime.genre.value} mastered!")
            self._publish(topics.GENRE_FINISHED, runtime)
        else:
            self._publish(topics.LEVEL_ADVANCED, runtime)
        return runtime.progress

    def reject_proposal(self, genre: Genre) -> LevelProgress:
        """Discard the waiting proposal and ask for a different one."""
        return self._regenerate(genre, REJECT_INSTRUCTION, "reject")

    def customize_proposal(self, genre: Genre, instruction: str) -> LevelProgress:
        """Ask for a new proposal following the operator's ``instruction``."""
        if not instruction or not instruction.strip():
            raise OperatorActionError("Custom instruction must be non-empty.")
        runtime = self.runtimes[Genre(genre)]
        self.event_log.add(runtime.genre, LogSource.USER, f"Custom: {instruction.strip()}")
        return self._regenerate(genre, instruction.strip(), "customize")

    def _regenerate(self, genre: Genre, instruction: str, action: str) -> LevelProgress:
        runtime = self._awaiting_decision(genre, action)
        result = self.scheduler.request_regeneration(runtime.progress)
        runtime.progress = result.progress
        runtime.proposal = None
        self._record(runtime, result.transition, detail=instruction)
        self._submit_request(runtime, instruction)
        return runtime.progress

    # ---------------------------------------------------------------- queries

    def levels(self) -> dict[Genre, LevelProgress]:
        return {genre: runtime.progress for genre, runtime in self.runtimes.items()}

    def active_proposal(self, genre: Genre) -> Proposal | None:
        return self.runtimes[Genre(genre)].proposal

    def state_of(self, genre: Genre) -> Any:
        return self.runtimes[Genre(genre)].state

    def snapshot(self) -> TrainingSnapshot:
        """Read-only view of every genre for rendering consumers."""
        views: dict[str, GenreView] = {}
        for genre, runtime in self.runtimes.items():
            if genre is Genre.MASTER and not self.master_active:
                continue
            proposal = runtime.proposal
            views[genre.value] = GenreView(
                genre=genre.value,
                state=runtime.state.to_document(),
                level=runtime.progress.to_dict(),
                table_size=runtime.agent.table_size,
                proposal=proposal.to_dict() if proposal is not None else None,
            )
        return TrainingSnapshot(
            tick=self.tick_count,
            genres=views,
            logs=[entry.to_dict() for entry in self.event_log.entries()],
            master_active=self.master_active,
            timestamp=time.time(),
        )

    def close(self) -> None:
        for runtime in self.runtimes.values():
            if runtime.request is not None:
                runtime.request.cancel()
        if self._owns_executor:
            self.executor.shutdown(wait=False, cancel_futures=True)

    # ---------------------------------------------------------------- helpers

    def _record(self, runtime: GenreRuntime, transition: Transition, detail: str = "") -> None:
        if self.logger is None or self.run_id is None:
            return
        self.logger.log_level_event(
            self.run_id,
            LevelEvent(
                tick=self.tick_count,
                genre=runtime.genre.value,
                level=runtime.progress.current,
                transition=transition.value,
                detail=detail,
            ),
        )

    def _publish(self, topic: str, runtime: GenreRuntime) -> None:
        if self.event_bus is None:
            return
        self.event_bus.publish(
            topic,
            {
                "genre": runtime.genre.value,
                "tick": self.tick_count,
                "level": runtime.progress.to_dict(),
            },
        )
