from __future__ import annotations

from dataclasses import dataclass, field

from pygame.math import Vector2

from ..utils.quat import Quat


@dataclass(slots=True)
class Agent:
    id: int
    position: Vector2 = field(default_factory=Vector2)
    orientation: Quat = Quat.IDENTITY
