# ABOUTME: Provides the seedable random source threaded through every generator.
# ABOUTME: Keeps generation, distractors, and shuffles reproducible under a fixed seed.

from __future__ import annotations

import random
from typing import List, Optional, Sequence, TypeVar

T = TypeVar("T")


class RandomSource:
    """
    Thin wrapper over ``random.Random`` exposing only the draws generators need.

    Two sources built from the same seed produce the same sequence of draws,
    which is what makes ``generate`` followed by ``solve`` reproducible.
    """

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self._rng = random.Random(seed)

    def randint(self, low: int, high: int) -> int:
        """Inclusive integer draw in [low, high]."""
        return self._rng.randint(low, high)

    def random(self) -> float:
        return self._rng.random()

    def coin(self, p: float = 0.5) -> bool:
        return self._rng.random() < p

    def choice(self, items: Sequence[T]) -> T:
        if not items:
            raise ValueError("choice() requires a non-empty sequence.")
        return items[self._rng.randrange(len(items))]

    def sample(self, items: Sequence[T], k: int) -> List[T]:
        return self._rng.sample(list(items), k)

    def shuffled(self, items: Sequence[T]) -> List[T]:
        out = list(items)
        self._rng.shuffle(out)
        return out

    def token(self) -> str:
        """Hex identifier derived from the stream (stable under a seed)."""
        return f"{self._rng.getrandbits(64):016x}"

    def spawn(self) -> "RandomSource":
        """Independent child source seeded from this stream."""
        return RandomSource(self._rng.getrandbits(32))
