from __future__ import annotations

import math
from time import perf_counter
from typing import Iterable, List, Sequence, Tuple

from loguru import logger
from pygame.math import Vector2, Vector3

from .agent import Agent
from .config import SimulationConfig
from .rng import DeterministicRng
from ..systems import metrics as metrics_system, motion, steering
from ..types.metrics import TickMetrics
from ..types.snapshot import AgentView, Snapshot, SnapshotMetadata
from ..utils.math2d import BASE_FORWARD
from ..utils.quat import orientation_from_forward, rotation_from_to

Placement = Tuple[Sequence[float], Sequence[float]]


class World:
    """Owns the agent store and advances it one update tick at a time.

    Each ``step`` computes every steering update from the pre-step state,
    commits all of them, then integrates motion. ``snapshot`` may be called
    at any time from the same thread.
    """

    def __init__(self, config: SimulationConfig, rng: DeterministicRng | None = None):
        self._config = config.validate()
        self._rng = rng if rng is not None else DeterministicRng(config.seed)
        self._agents: List[Agent] = []
        self._neighbor_scratch: List[Agent] = []
        self._tick = 0
        self._metrics: TickMetrics | None = None
        self._bootstrap_population(config.count)

    @property
    def agents(self) -> List[Agent]:
        return self._agents

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def tick(self) -> int:
        return self._tick

    @property
    def metrics(self) -> TickMetrics | None:
        return self._metrics

    def initialize(self, count: int | None = None) -> None:
        if count is None:
            count = self._config.count
        if count < 0:
            raise ValueError(f"agent count must be >= 0, got {count}")
        self._rng.reset()
        self._tick = 0
        self._metrics = None
        self._bootstrap_population(count)

    def reset(self) -> None:
        self.initialize(self._config.count)

    def place(self, placements: Iterable[Placement]) -> None:
        """Replace the store with agents at explicit positions and forward vectors."""
        agents = []
        for index, (position, forward) in enumerate(placements):
            agents.append(
                Agent(
                    id=index,
                    position=Vector2(float(position[0]), float(position[1])),
                    orientation=orientation_from_forward(float(forward[0]), float(forward[1])),
                )
            )
        self._agents = agents
        self._tick = 0
        self._metrics = None
        logger.debug("Placed {} agents", len(agents))

    def step(self, dt: float) -> TickMetrics:
        if not math.isfinite(dt) or dt < 0:
            raise ValueError(f"dt must be a finite, non-negative number of seconds, got {dt}")
        start = perf_counter()
        stats = steering.SteeringStats()
        updates = steering.compute_updates(self, stats)
        steering.apply_updates(self, updates)
        boundary_hits = motion.integrate(self, dt)
        self._tick += 1
        elapsed_ms = (perf_counter() - start) * 1000.0
        metrics = metrics_system.create_metrics(
            self._tick, len(self._agents), stats, boundary_hits, dt, elapsed_ms
        )
        self._metrics = metrics
        return metrics

    def snapshot(self) -> Snapshot:
        config = self._config
        views = [
            AgentView(id=agent.id, position=(agent.position.x, agent.position.y), orientation=agent.orientation)
            for agent in self._agents
        ]
        metadata = SnapshotMetadata(
            half_width=config.arena.half_width,
            half_height=config.arena.half_height,
            count=len(self._agents),
            seed=self._rng.seed,
            speed=config.motion.speed,
            sim_dt=config.time_step,
            boid_radius=config.render.boid_radius,
            boid_color=config.render.boid_color,
            config_version=config.config_version,
        )
        return Snapshot(tick=self._tick, metrics=self._metrics, agents=views, metadata=metadata)

    def _bootstrap_population(self, count: int) -> None:
        arena = self._config.arena
        agents = []
        for index in range(count):
            pos = Vector2(
                self._rng.next_centered(arena.half_width),
                self._rng.next_centered(arena.half_height),
            )
            forward = self._rng.next_forward()
            orientation = rotation_from_to(BASE_FORWARD, Vector3(forward.x, forward.y, 0.0), self._rng)
            agents.append(Agent(id=index, position=pos, orientation=orientation))
        self._agents = agents
        logger.info(
            "Initialized {} agents in {}x{} arena (seed={})",
            count,
            arena.half_width * 2,
            arena.half_height * 2,
            self._rng.seed,
        )
