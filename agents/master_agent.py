"""Composite agent for the master world."""

from __future__ import annotations

import random
from typing import Mapping, Sequence

from agents.base import Agent
from agents.encoders import MASTER_KEY_SEPARATOR, split_master_key
from agents.q_learning import QLearningAgent


class MasterAgent(Agent):
    """One Q-learner per master mode, addressed through ``MODE|key`` keys.

    Each sub-learner keeps the action vocabulary of its base game so tables
    exported by the base agents can be absorbed unchanged.
    """

    def __init__(
        self,
        mode_actions: Mapping[str, Sequence[str]],
        rng: random.Random,
        epsilon: float = 0.1,
        learning_rate: float = 0.1,
        discount: float = 0.9,
    ) -> None:
        self.brains: dict[str, QLearningAgent] = {
            mode: QLearningAgent(
                actions=tuple(actions),
                rng=rng,
                epsilon=epsilon,
                learning_rate=learning_rate,
                discount=discount,
            )
            for mode, actions in mode_actions.items()
        }

    @property
    def table_size(self) -> int:
        return sum(brain.table_size for brain in self.brains.values())

    def brain_for(self, mode: str) -> QLearningAgent:
        try:
            return self.brains[mode]
        except KeyError as exc:
            raise KeyError(f"Unknown master mode: {mode}") from exc

    def absorb(self, mode: str, table: Mapping[str, Sequence[float]]) -> None:
        """Import a base agent's table into the brain for ``mode``."""
        self.brain_for(mode).import_table(table)

    def choose_action(self, key: str, force_exploit: bool = False) -> int:
        mode, inner = split_master_key(key)
        return self.brain_for(mode).choose_action(inner, force_exploit=force_exploit)

    def learn(self, old_key: str, action: int, reward: float, new_key: str) -> float:
        old_mode, old_inner = split_master_key(old_key)
        new_mode, new_inner = split_master_key(new_key)
        brain = self.brain_for(old_mode)
        if new_mode != old_mode:
            # Mode switched this tick; bootstrap from the old brain's view only.
            return brain.learn(old_inner, action, reward, old_inner)
        return brain.learn(old_inner, action, reward, new_inner)

    def export_table(self) -> dict[str, list[float]]:
        table: dict[str, list[float]] = {}
        for mode, brain in self.brains.items():
            for key, values in brain.export_table().items():
                table[f"{mode}{MASTER_KEY_SEPARATOR}{key}"] = values
        return table

    def import_table(self, table: Mapping[str, Sequence[float]]) -> None:
        grouped: dict[str, dict[str, Sequence[float]]] = {}
        for key, values in table.items():
            mode, inner = split_master_key(key)
            grouped.setdefault(mode, {})[inner] = values
        for mode, rows in grouped.items():
            self.absorb(mode, rows)
