from __future__ import annotations

import math
from typing import Iterable, Tuple

from ..core.agent import Agent
from ..types.metrics import TickMetrics
from ..utils.math2d import _forward_xy
from .steering import SteeringStats


def create_metrics(
    tick: int,
    population: int,
    stats: SteeringStats,
    boundary_hits: int,
    dt: float,
    duration_ms: float,
) -> TickMetrics:
    return TickMetrics(
        tick=tick,
        population=population,
        neighbor_checks=stats.neighbor_checks,
        neighbors_found=stats.neighbors_found,
        isolated=stats.isolated,
        boundary_hits=boundary_hits,
        dt=dt,
        tick_duration_ms=duration_ms,
    )


def flock_statistics(agents: Iterable[Agent]) -> Tuple[float, float, float, float]:
    """Polarization, centroid x, centroid y and RMS spread around the centroid."""
    count = 0
    sum_fx = sum_fy = 0.0
    sum_x = sum_y = 0.0
    positions = []
    for agent in agents:
        fx, fy = _forward_xy(agent.orientation)
        sum_fx += fx
        sum_fy += fy
        sum_x += agent.position.x
        sum_y += agent.position.y
        positions.append((agent.position.x, agent.position.y))
        count += 1
    if count == 0:
        return 0.0, 0.0, 0.0, 0.0
    polarization = math.hypot(sum_fx, sum_fy) / count
    cx = sum_x / count
    cy = sum_y / count
    spread_sq = sum((x - cx) ** 2 + (y - cy) ** 2 for x, y in positions) / count
    return polarization, cx, cy, math.sqrt(spread_sq)
