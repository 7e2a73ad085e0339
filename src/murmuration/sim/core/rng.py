from __future__ import annotations

import random

from pygame.math import Vector2


class DeterministicRng:
    def __init__(self, seed: int):
        self._seed = seed
        self._random = random.Random(seed)

    @property
    def seed(self) -> int:
        return self._seed

    def reset(self) -> None:
        self._random.seed(self._seed)

    def next_bool(self) -> bool:
        return self._random.random() < 0.5

    def next_centered(self, half_extent: float) -> float:
        # Uniform in [-half_extent, half_extent].
        return half_extent - self._random.random() * 2.0 * half_extent

    def next_forward(self) -> Vector2:
        x = self.next_centered(1.0)
        y = self.next_centered(1.0)
        return Vector2(x, y)
