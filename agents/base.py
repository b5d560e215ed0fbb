"""Agent interface definitions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Mapping, Sequence


class Agent(ABC):
    """Abstract learner that acts on encoded state keys.

    Agents own their value estimates privately. Callers only ever hand them
    string keys, action indices and scalar rewards.
    """

    @abstractmethod
    def choose_action(self, key: str, force_exploit: bool = False) -> int:
        """Select an action index for the encoded state ``key``.

        Args:
            key (str): Encoded state key.
            force_exploit (bool): Skip exploration and act greedily.

        Returns:
            int: Index into the agent's action vocabulary.

        Invariants:
            - Greedy choice is deterministic for an unchanged table.
        """

    @abstractmethod
    def learn(self, old_key: str, action: int, reward: float, new_key: str) -> float:
        """Apply a one-step update for the observed transition.

        Returns:
            float: Updated value estimate for ``(old_key, action)``.

        Invariants:
            - The set of known keys never shrinks.
        """

    @abstractmethod
    def export_table(self) -> dict[str, list[float]]:
        """Return a detached snapshot of the learned table."""

    @abstractmethod
    def import_table(self, table: Mapping[str, Sequence[float]]) -> None:
        """Merge ``table`` into the agent; imported rows win on collision."""

    @property
    @abstractmethod
    def table_size(self) -> int:
        """Number of distinct state keys seen so far."""
