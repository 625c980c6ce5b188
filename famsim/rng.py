"""
famsim/rng.py
~~~~~~~~~~~~~
The single random source threaded through every engine function.

Nothing in the engine touches the module-level ``random`` functions; each
call site receives a :class:`RandomSource` so that a run is fully replayable
from its seed.
"""

from __future__ import annotations

import random
import uuid
from typing import Sequence, TypeVar

T = TypeVar("T")


class RandomSource:
    """Seedable wrapper around :class:`random.Random`."""

    def __init__(self, seed: int | str | None = None) -> None:
        self.seed = seed
        self._random = random.Random(seed)

    def random(self) -> float:
        return self._random.random()

    def roll(self, chance: float) -> bool:
        """True with probability ``chance`` (0.0 never, 1.0 always)."""
        return self._random.random() < chance

    def randint(self, a: int, b: int) -> int:
        return self._random.randint(a, b)

    def uniform(self, a: float, b: float) -> float:
        return self._random.uniform(a, b)

    def choice(self, seq: Sequence[T]) -> T:
        return self._random.choice(seq)

    def shuffled(self, seq: Sequence[T]) -> list[T]:
        items = list(seq)
        self._random.shuffle(items)
        return items

    def uuid(self) -> str:
        """Deterministic UUID4-shaped id derived from the stream."""
        return str(uuid.UUID(int=self._random.getrandbits(128), version=4))
