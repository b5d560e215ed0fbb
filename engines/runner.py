"""Lane-runner engine with hard reset on death."""

from __future__ import annotations

import random
from dataclasses import dataclass, field, replace
from typing import Any, Mapping

ACTION_STAY = 0
ACTION_LEFT = 1
ACTION_RIGHT = 2
RUNNER_ACTIONS: tuple[str, ...] = ("STAY", "LEFT", "RIGHT")

OBSTACLE_ROCK = "rock"
OBSTACLE_COIN = "coin"

AGENT_DEPTH_OFFSET = 40.0
HIT_DISTANCE = 20.0
SPAWN_Y = -20.0
CONSUMED_OFFSET = 100.0
COIN_PROBABILITY = 0.2

SURVIVAL_REWARD = 0.5
COIN_REWARD = 50.0
ROCK_PENALTY = 20.0


@dataclass(frozen=True)
class RunnerAgent:
    lane: int = 2
    score: float = 0.0
    dead: bool = False


@dataclass(frozen=True)
class Obstacle:
    lane: int
    y: float
    kind: str = OBSTACLE_ROCK


@dataclass(frozen=True)
class RunnerConfig:
    speed: float = 4.0
    spawn_rate: float = 0.05


@dataclass(frozen=True)
class RunnerState:
    lanes: int = 5
    length: float = 400.0
    agent: RunnerAgent = field(default_factory=RunnerAgent)
    obstacles: tuple[Obstacle, ...] = ()
    config: RunnerConfig = field(default_factory=RunnerConfig)

    @property
    def agent_depth(self) -> float:
        """Fixed track depth the agent occupies."""
        return self.length - AGENT_DEPTH_OFFSET

    def to_document(self) -> dict[str, Any]:
        return {
            "lanes": self.lanes,
            "length": self.length,
            "agent": {"lane": self.agent.lane, "score": self.agent.score, "dead": self.agent.dead},
            "obstacles": [
                {"lane": obstacle.lane, "y": obstacle.y, "type": obstacle.kind}
                for obstacle in self.obstacles
            ],
            "config": {"speed": self.config.speed, "spawnRate": self.config.spawn_rate},
        }


def init_runner(lanes: int = 5, length: float = 400.0, config: RunnerConfig | None = None) -> RunnerState:
    if lanes < 1:
        raise ValueError("Runner needs at least one lane.")
    return RunnerState(
        lanes=int(lanes),
        length=float(length),
        agent=RunnerAgent(lane=int(lanes) // 2),
        obstacles=(),
        config=config if config is not None else RunnerConfig(),
    )


def step_runner(state: RunnerState, action: int, rng: random.Random) -> RunnerState:
    """Advance the track by one tick.

    Coins are pushed past the track end instead of being dropped so a spawn in
    the same tick never reorders the obstacle list.
    """
    if state.agent.dead:
        return init_runner(state.lanes, state.length, state.config)

    lane = state.agent.lane
    if int(action) == ACTION_LEFT and lane > 0:
        lane -= 1
    elif int(action) == ACTION_RIGHT and lane < state.lanes - 1:
        lane += 1

    cfg = state.config
    obstacles = [replace(obstacle, y=obstacle.y + cfg.speed) for obstacle in state.obstacles]
    obstacles = [obstacle for obstacle in obstacles if obstacle.y < state.length]
    if rng.random() < cfg.spawn_rate:
        obstacles.append(
            Obstacle(
                lane=int(rng.random() * state.lanes),
                y=SPAWN_Y,
                kind=OBSTACLE_COIN if rng.random() > 1.0 - COIN_PROBABILITY else OBSTACLE_ROCK,
            )
        )

    depth = state.agent_depth
    score = state.agent.score
    dead = False
    for index, obstacle in enumerate(obstacles):
        if obstacle.lane != lane or abs(obstacle.y - depth) >= HIT_DISTANCE:
            continue
        if obstacle.kind == OBSTACLE_ROCK:
            dead = True
            score -= ROCK_PENALTY
        else:
            score += COIN_REWARD
            obstacles[index] = replace(obstacle, y=state.length + CONSUMED_OFFSET)

    if not dead:
        score += SURVIVAL_REWARD
    return replace(
        state,
        agent=RunnerAgent(lane=lane, score=score, dead=dead),
        obstacles=tuple(obstacles),
    )


def runner_from_document(document: Mapping[str, Any]) -> RunnerState:
    raw_agent = document.get("agent", {})
    raw_config = document.get("config", {})
    raw_obstacles = document.get("obstacles", [])
    if not isinstance(raw_agent, Mapping) or not isinstance(raw_config, Mapping):
        raise TypeError("Runner agent and config must be mappings.")
    if not isinstance(raw_obstacles, list):
        raise TypeError("Runner obstacles must be a list.")

    lanes = int(document.get("lanes", 5))
    if lanes < 1:
        raise ValueError("Runner needs at least one lane.")
    length = float(document.get("length", 400.0))

    obstacles = []
    for raw in raw_obstacles:
        if not isinstance(raw, Mapping):
            raise TypeError("Each obstacle must be a mapping.")
        kind = str(raw.get("type", OBSTACLE_ROCK))
        if kind not in (OBSTACLE_ROCK, OBSTACLE_COIN):
            raise ValueError(f"Unknown obstacle type: {kind}")
        obstacles.append(Obstacle(lane=int(raw["lane"]), y=float(raw["y"]), kind=kind))

    defaults = RunnerConfig()
    lane = min(max(int(raw_agent.get("lane", lanes // 2)), 0), lanes - 1)
    return RunnerState(
        lanes=lanes,
        length=length,
        agent=RunnerAgent(
            lane=lane,
            score=float(raw_agent.get("score", 0.0)),
            dead=_read_flag(raw_agent, "dead"),
        ),
        obstacles=tuple(obstacles),
        config=RunnerConfig(
            speed=float(raw_config.get("speed", defaults.speed)),
            spawn_rate=float(raw_config.get("spawnRate", defaults.spawn_rate)),
        ),
    )


def _read_flag(raw: Mapping[str, Any], key: str) -> bool:
    value = raw.get(key, False)
    if not isinstance(value, bool):
        raise TypeError(f"{key!r} must be a boolean, got {value!r}.")
    return value
