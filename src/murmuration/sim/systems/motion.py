from __future__ import annotations

from typing import TYPE_CHECKING

from ..utils.math2d import _forward_xy
from ..utils.quat import HALF_TURN_Z

if TYPE_CHECKING:
    from ..core.world import World


def integrate(world: World, dt: float) -> int:
    """Advance every agent along its forward vector; returns the number of boundary hits."""
    config = world._config
    speed = config.motion.speed
    damping = config.motion.boundary_damping
    half_width = config.arena.half_width
    half_height = config.arena.half_height
    hits = 0
    for agent in world.agents:
        fx, fy = _forward_xy(agent.orientation)
        pos_x = agent.position.x + fx * speed * dt
        pos_y = agent.position.y + fy * speed * dt
        out_x = abs(pos_x) > half_width
        out_y = abs(pos_y) > half_height
        if out_x or out_y:
            hits += 1
            # Flip precedes damping.
            agent.orientation = agent.orientation * HALF_TURN_Z
        if out_y:
            pos_y *= damping
        if out_x:
            pos_x *= damping
        agent.position.update(pos_x, pos_y)
    return hits
