from __future__ import annotations

from typing import List, Optional

from pygame.math import Vector3

from ..core.agent import Agent
from ..core.config import NeighborhoodConfig
from ..utils.math2d import _forward
from ..utils.quat import angle_between


def is_neighbor(
    me: Agent,
    other: Agent,
    neighborhood: NeighborhoodConfig,
    forward: Optional[Vector3] = None,
) -> bool:
    """True if ``other`` is within distance and inside the forward cone of ``me``.

    The test is asymmetric: the cone is measured from ``me``'s own forward.
    ``forward`` may be passed in when the caller already computed it.
    """
    if other is me:
        return False
    dx = other.position.x - me.position.x
    dy = other.position.y - me.position.y
    dist_sq = dx * dx + dy * dy
    if dist_sq >= neighborhood.distance_sq:
        return False
    # Coincident agents have no direction to measure an angle against.
    if dist_sq == 0.0:
        return False
    if forward is None:
        forward = _forward(me.orientation)
    return angle_between(forward, Vector3(dx, dy, 0.0)) < neighborhood.max_angle


def collect_neighbors(
    agent: Agent,
    agents: List[Agent],
    neighborhood: NeighborhoodConfig,
    forward: Vector3,
    out: List[Agent],
) -> int:
    """Fill ``out`` with the neighbors of ``agent``; returns the number of pairs tested."""
    out.clear()
    checks = 0
    radius_sq = neighborhood.distance_sq
    pos_x = agent.position.x
    pos_y = agent.position.y
    for other in agents:
        if other is agent:
            continue
        checks += 1
        dx = other.position.x - pos_x
        dy = other.position.y - pos_y
        if dx * dx + dy * dy >= radius_sq:
            continue
        if is_neighbor(agent, other, neighborhood, forward):
            out.append(other)
    return checks
