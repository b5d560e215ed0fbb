"""Tabular epsilon-greedy Q-learning agent."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Mapping, Sequence

import numpy as np

from agents.base import Agent


@dataclass
class QLearningAgent(Agent):
    """Q-learning over string state keys with lazily created zero rows.

    Greedy selection breaks ties on the lowest action index (``numpy.argmax``
    semantics) so runs are reproducible for a fixed RNG.
    """

    actions: tuple[str, ...]
    rng: random.Random = field(default_factory=random.Random)
    epsilon: float = 0.1
    learning_rate: float = 0.1
    discount: float = 0.9
    updates: int = 0
    _table: dict[str, np.ndarray] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.actions:
            raise ValueError("Action set must be non-empty.")
        if not 0.0 <= self.epsilon <= 1.0:
            raise ValueError("epsilon must be in [0.0, 1.0]")
        self.actions = tuple(self.actions)

    @property
    def action_count(self) -> int:
        return len(self.actions)

    @property
    def table_size(self) -> int:
        return len(self._table)

    def q_values(self, key: str) -> np.ndarray:
        """Return the row for ``key``, creating a zero row on first lookup."""
        row = self._table.get(key)
        if row is None:
            row = np.zeros(self.action_count, dtype=np.float64)
            self._table[key] = row
        return row

    def choose_action(self, key: str, force_exploit: bool = False) -> int:
        if not force_exploit and self.rng.random() < self.epsilon:
            return self.rng.randrange(self.action_count)
        return int(np.argmax(self.q_values(key)))

    def learn(self, old_key: str, action: int, reward: float, new_key: str) -> float:
        old_row = self.q_values(old_key)
        new_row = self.q_values(new_key)
        old_value = float(old_row[action])
        target = float(reward) + self.discount * float(np.max(new_row))
        old_row[action] = old_value + self.learning_rate * (target - old_value)
        self.updates += 1
        return float(old_row[action])

    def export_table(self) -> dict[str, list[float]]:
        return {key: [float(value) for value in row] for key, row in self._table.items()}

    def import_table(self, table: Mapping[str, Sequence[float]]) -> None:
        for key, values in table.items():
            row = np.asarray(values, dtype=np.float64)
            if row.shape != (self.action_count,):
                raise ValueError(
                    f"Row for '{key}' has {row.size} values; expected {self.action_count}."
                )
            self._table[str(key)] = row.copy()
