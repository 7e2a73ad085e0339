from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Type, TypeVar

import yaml

T = TypeVar("T")


@dataclass
class ArenaConfig:
    half_width: float = 500.0
    half_height: float = 250.0


@dataclass
class NeighborhoodConfig:
    distance: float = 50.0
    # ~160 degrees, half-angle of the forward cone.
    max_angle: float = 2.79

    @property
    def distance_sq(self) -> float:
        return self.distance * self.distance

    @property
    def avoid_distance_sq(self) -> float:
        return self.distance_sq / 4.0


@dataclass
class SteeringConfig:
    convergence_weight: float = 10.0
    avoidance_weight: float = 11.0
    # Pull toward the arena origin; 0 disables the term entirely.
    center_weight: float = 0.0
    turn_divisor: float = 100.0
    alignment_blend: float = 0.05


@dataclass
class MotionConfig:
    speed: float = 100.0
    boundary_damping: float = 0.9


@dataclass
class RenderConfig:
    boid_radius: float = 5.0
    boid_color: str = "#40e0d0"


@dataclass
class SimulationConfig:
    count: int = 300
    seed: int = 0
    time_step: float = 1.0 / 60.0
    max_step: float = 1.0 / 30.0
    config_version: str = "v1"
    arena: ArenaConfig = field(default_factory=ArenaConfig)
    neighborhood: NeighborhoodConfig = field(default_factory=NeighborhoodConfig)
    steering: SteeringConfig = field(default_factory=SteeringConfig)
    motion: MotionConfig = field(default_factory=MotionConfig)
    render: RenderConfig = field(default_factory=RenderConfig)

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return load_config(data)

    def validate(self) -> "SimulationConfig":
        if self.count < 0:
            raise ValueError(f"count must be >= 0, got {self.count}")
        if self.arena.half_width <= 0 or self.arena.half_height <= 0:
            raise ValueError(
                f"arena extents must be positive, got {self.arena.half_width} x {self.arena.half_height}"
            )
        if self.neighborhood.distance <= 0:
            raise ValueError(f"neighborhood distance must be positive, got {self.neighborhood.distance}")
        if not 0.0 < self.neighborhood.max_angle <= math.pi:
            raise ValueError(f"neighborhood max_angle must be in (0, pi], got {self.neighborhood.max_angle}")
        if self.motion.speed < 0:
            raise ValueError(f"speed must be >= 0, got {self.motion.speed}")
        if not 0.0 < self.motion.boundary_damping <= 1.0:
            raise ValueError(f"boundary_damping must be in (0, 1], got {self.motion.boundary_damping}")
        if self.time_step < 0 or self.max_step <= 0:
            raise ValueError(f"invalid time step {self.time_step} / max step {self.max_step}")
        if not 0.0 <= self.steering.alignment_blend <= 1.0:
            raise ValueError(f"alignment_blend must be in [0, 1], got {self.steering.alignment_blend}")
        if self.steering.turn_divisor <= 0:
            raise ValueError(f"turn_divisor must be positive, got {self.steering.turn_divisor}")
        return self


@dataclass
class AppConfig:
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    # Seconds between display ticks, independent of the update cadence.
    display_interval: float = 1.0 / 30.0
    max_queued_snapshots: int = 120
    host: str = "127.0.0.1"
    port: int = 8000


_SECTIONS = {
    "arena": ArenaConfig,
    "neighborhood": NeighborhoodConfig,
    "steering": SteeringConfig,
    "motion": MotionConfig,
    "render": RenderConfig,
}


def _build(cls: Type[T], values: Any, name: str) -> T:
    if values is None:
        values = {}
    if not isinstance(values, dict):
        raise ValueError(f"config section '{name}' must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(f"unknown keys in config section '{name}': {', '.join(unknown)}")
    return cls(**values)


def load_config(raw: dict) -> SimulationConfig:
    sections = {key: _build(cls, raw.get(key), key) for key, cls in _SECTIONS.items()}
    sim_values = {k: v for k, v in raw.items() if k not in _SECTIONS}
    top_level = {f.name for f in fields(SimulationConfig)} - set(_SECTIONS)
    unknown = sorted(set(sim_values) - top_level)
    if unknown:
        raise ValueError(f"unknown config keys: {', '.join(unknown)}")
    return SimulationConfig(**sections, **sim_values).validate()
