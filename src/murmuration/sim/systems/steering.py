from __future__ import annotations

from dataclasses import dataclass
from typing import List, TYPE_CHECKING

from pygame.math import Vector3

from ..core.agent import Agent
from ..utils.math2d import _forward, _mean_position, _mean_quat, _offset3
from ..utils.quat import Quat, rotation_from_to
from .neighbors import collect_neighbors

if TYPE_CHECKING:
    from ..core.world import World


@dataclass(frozen=True, slots=True)
class SteeringUpdate:
    target: Quat
    alignment: Quat


@dataclass(slots=True)
class SteeringStats:
    neighbor_checks: int = 0
    neighbors_found: int = 0
    isolated: int = 0


def _avoidance_vector(agent: Agent, neighbors: List[Agent], avoid_distance_sq: float) -> Vector3:
    sum_x = 0.0
    sum_y = 0.0
    pos = agent.position
    for other in neighbors:
        dx = pos.x - other.position.x
        dy = pos.y - other.position.y
        dist_sq = dx * dx + dy * dy
        if dist_sq < avoid_distance_sq:
            inv = 1.0 / max(dist_sq, 1.0)
            sum_x += dx * inv
            sum_y += dy * inv
    return Vector3(sum_x, sum_y, 0.0)


def compute_update(world: World, agent: Agent, neighbors: List[Agent]) -> SteeringUpdate:
    if not neighbors:
        return SteeringUpdate(Quat.IDENTITY, agent.orientation)

    steering = world._config.steering
    rng = world._rng
    forward = _forward(agent.orientation)

    centroid = _mean_position([other.position for other in neighbors])
    convergence = rotation_from_to(forward, _offset3(agent.position, centroid), rng)

    avoid = _avoidance_vector(agent, neighbors, world._config.neighborhood.avoid_distance_sq)
    avoidance = rotation_from_to(forward, avoid, rng)

    alignment = _mean_quat([other.orientation for other in neighbors]).normalize_or(agent.orientation)

    blend = convergence * steering.convergence_weight + avoidance * steering.avoidance_weight
    if steering.center_weight > 0.0:
        to_center = Vector3(-agent.position.x, -agent.position.y, 0.0)
        blend = blend + rotation_from_to(forward, to_center, rng) * steering.center_weight
    return SteeringUpdate(blend.normalize_or(Quat.IDENTITY), alignment)


def compute_updates(world: World, stats: SteeringStats | None = None) -> List[SteeringUpdate]:
    """Steering updates for every agent, read from the current (pre-step) state only."""
    agents = world.agents
    neighborhood = world._config.neighborhood
    scratch = world._neighbor_scratch
    updates: List[SteeringUpdate] = []
    for agent in agents:
        forward = _forward(agent.orientation)
        checks = collect_neighbors(agent, agents, neighborhood, forward, scratch)
        if stats is not None:
            stats.neighbor_checks += checks
            stats.neighbors_found += len(scratch)
            if not scratch:
                stats.isolated += 1
        updates.append(compute_update(world, agent, scratch))
    return updates


def apply_updates(world: World, updates: List[SteeringUpdate]) -> None:
    steering = world._config.steering
    keep = 1.0 - steering.alignment_blend
    for agent, update in zip(world.agents, updates):
        nudged = agent.orientation * (update.target / steering.turn_divisor)
        agent.orientation = (nudged * keep + update.alignment * steering.alignment_blend).normalize_or(
            agent.orientation
        )
