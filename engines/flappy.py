"""Side-scrolling flappy engine with hard reset on death."""

from __future__ import annotations

import random
from dataclasses import dataclass, field, replace
from typing import Any, Mapping

ACTION_IDLE = 0
ACTION_JUMP = 1
FLAPPY_ACTIONS: tuple[str, ...] = ("IDLE", "JUMP")

# Collision thresholds are tuning constants, not derived from rendered sizes.
AGENT_LEFT = 10.0
AGENT_RIGHT = 30.0
AGENT_CENTER_X = 20.0
PIPE_WIDTH = 40.0
PIPE_DESPAWN_X = -50.0
PIPE_SPACING = 150.0
GAP_SIZE = 80.0
GAP_MARGIN = 50.0
SPAWN_SCALE = 1000.0

SURVIVAL_REWARD = 0.1
PASS_REWARD = 10.0
DEATH_PENALTY = 10.0


@dataclass(frozen=True)
class FlappyAgent:
    y: float = 150.0
    velocity: float = 0.0
    score: float = 0.0
    dead: bool = False


@dataclass(frozen=True)
class Pipe:
    x: float
    gap_y: float
    gap_size: float = GAP_SIZE
    passed: bool = False


@dataclass(frozen=True)
class FlappyConfig:
    gravity: float = 0.8
    jump_strength: float = -8.0
    speed: float = 3.0
    spawn_rate: float = 100.0


@dataclass(frozen=True)
class FlappyState:
    """Immutable flappy world.

    ``pipes`` is ordered oldest first, so x values ascend towards the tail and
    the newest pipe sits nearest the spawn edge.
    """

    width: float = 400.0
    height: float = 300.0
    agent: FlappyAgent = field(default_factory=FlappyAgent)
    pipes: tuple[Pipe, ...] = ()
    config: FlappyConfig = field(default_factory=FlappyConfig)

    def to_document(self) -> dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "agent": {
                "y": self.agent.y,
                "velocity": self.agent.velocity,
                "score": self.agent.score,
                "dead": self.agent.dead,
            },
            "pipes": [
                {"x": pipe.x, "gapY": pipe.gap_y, "gapSize": pipe.gap_size, "passed": pipe.passed}
                for pipe in self.pipes
            ],
            "config": {
                "gravity": self.config.gravity,
                "jumpStrength": self.config.jump_strength,
                "speed": self.config.speed,
                "spawnRate": self.config.spawn_rate,
            },
        }


def init_flappy(
    width: float = 400.0,
    height: float = 300.0,
    config: FlappyConfig | None = None,
) -> FlappyState:
    return FlappyState(
        width=float(width),
        height=float(height),
        agent=FlappyAgent(y=float(height) / 2.0),
        pipes=(),
        config=config if config is not None else FlappyConfig(),
    )


def step_flappy(state: FlappyState, action: int, rng: random.Random) -> FlappyState:
    """Advance physics, pipes and scoring by one tick.

    Death is resolved on the following call, which returns a fresh world that
    keeps only the dimensions and config.
    """
    if state.agent.dead:
        return init_flappy(state.width, state.height, state.config)

    cfg = state.config
    velocity = cfg.jump_strength if int(action) == ACTION_JUMP else state.agent.velocity
    velocity += cfg.gravity
    y = state.agent.y + velocity

    pipes = [replace(pipe, x=pipe.x - cfg.speed) for pipe in state.pipes]
    pipes = [pipe for pipe in pipes if pipe.x > PIPE_DESPAWN_X]
    if rng.random() * SPAWN_SCALE < cfg.spawn_rate and (
        not pipes or pipes[-1].x < state.width - PIPE_SPACING
    ):
        gap_y = rng.random() * (state.height - 2 * GAP_MARGIN) + GAP_MARGIN
        pipes.append(Pipe(x=state.width, gap_y=gap_y, gap_size=GAP_SIZE))

    dead = y < 0 or y > state.height
    score = state.agent.score
    for index, pipe in enumerate(pipes):
        if pipe.x < AGENT_RIGHT and pipe.x + PIPE_WIDTH > AGENT_LEFT:
            half_gap = pipe.gap_size / 2.0
            if y < pipe.gap_y - half_gap or y > pipe.gap_y + half_gap:
                dead = True
        if pipe.x + PIPE_WIDTH < AGENT_LEFT and not pipe.passed:
            score += PASS_REWARD
            pipes[index] = replace(pipe, passed=True)

    score += -DEATH_PENALTY if dead else SURVIVAL_REWARD
    return replace(
        state,
        agent=FlappyAgent(y=y, velocity=velocity, score=score, dead=dead),
        pipes=tuple(pipes),
    )


def flappy_from_document(document: Mapping[str, Any]) -> FlappyState:
    raw_agent = document.get("agent", {})
    raw_config = document.get("config", {})
    raw_pipes = document.get("pipes", [])
    if not isinstance(raw_agent, Mapping) or not isinstance(raw_config, Mapping):
        raise TypeError("Flappy agent and config must be mappings.")
    if not isinstance(raw_pipes, list):
        raise TypeError("Flappy pipes must be a list.")

    height = float(document.get("height", 300.0))
    width = float(document.get("width", 400.0))
    if width <= 0 or height <= 0:
        raise ValueError("Flappy world dimensions must be positive.")

    pipes = []
    for raw_pipe in raw_pipes:
        if not isinstance(raw_pipe, Mapping):
            raise TypeError("Each pipe must be a mapping.")
        pipes.append(
            Pipe(
                x=float(raw_pipe["x"]),
                gap_y=float(raw_pipe["gapY"]),
                gap_size=float(raw_pipe.get("gapSize", GAP_SIZE)),
                passed=_read_flag(raw_pipe, "passed"),
            )
        )

    defaults = FlappyConfig()
    return FlappyState(
        width=width,
        height=height,
        agent=FlappyAgent(
            y=float(raw_agent.get("y", height / 2.0)),
            velocity=float(raw_agent.get("velocity", 0.0)),
            score=float(raw_agent.get("score", 0.0)),
            dead=_read_flag(raw_agent, "dead"),
        ),
        pipes=tuple(pipes),
        config=FlappyConfig(
            gravity=float(raw_config.get("gravity", defaults.gravity)),
            jump_strength=float(raw_config.get("jumpStrength", defaults.jump_strength)),
            speed=float(raw_config.get("speed", defaults.speed)),
            spawn_rate=float(raw_config.get("spawnRate", defaults.spawn_rate)),
        ),
    )


def _read_flag(raw: Mapping[str, Any], key: str) -> bool:
    value = raw.get(key, False)
    if not isinstance(value, bool):
        raise TypeError(f"{key!r} must be a boolean, got {value!r}.")
    return value
