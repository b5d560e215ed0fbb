"""Named deterministic random streams, one per engine or agent."""

from __future__ import annotations

import hashlib
import random
from dataclasses import dataclass, field


@dataclass
class RandomStreams:
    """Hands out independent ``random.Random`` streams derived from one seed.

    Each engine and agent draws from its own stream so adding a consumer never
    shifts the sequence another consumer sees.
    """

    seed: int
    _streams: dict[str, random.Random] = field(default_factory=dict, init=False, repr=False)

    def stream(self, name: str) -> random.Random:
        """Return the stream for ``name``, creating it on first use."""
        if name not in self._streams:
            # Stable across processes, unlike the built-in hash().
            digest = hashlib.sha256(f"{self.seed}:{name}".encode("utf-8")).digest()
            derived_seed = int.from_bytes(digest[:8], byteorder="big", signed=False) & 0xFFFFFFFF
            self._streams[name] = random.Random(derived_seed)
        return self._streams[name]

    def names(self) -> list[str]:
        return sorted(self._streams)
