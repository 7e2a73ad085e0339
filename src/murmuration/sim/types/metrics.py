from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class TickMetrics:
    tick: int
    population: int
    neighbor_checks: int
    neighbors_found: int
    isolated: int
    boundary_hits: int
    dt: float
    tick_duration_ms: float = 0.0
