from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Tuple

from ..utils.math2d import _heading_from_orientation
from ..utils.quat import Quat
from .metrics import TickMetrics


@dataclass(frozen=True, slots=True)
class AgentView:
    id: int
    position: Tuple[float, float]
    orientation: Quat

    def to_payload(self) -> Dict[str, Any]:
        x, y = self.position
        qx, qy, qz, qw = self.orientation.as_tuple()
        return {
            "id": self.id,
            "x": x,
            "y": y,
            "qx": qx,
            "qy": qy,
            "qz": qz,
            "qw": qw,
            "heading": _heading_from_orientation(self.orientation),
        }


@dataclass(slots=True)
class SnapshotMetadata:
    half_width: float
    half_height: float
    count: int
    seed: int
    speed: float
    sim_dt: float
    boid_radius: float
    boid_color: str
    config_version: str


@dataclass(slots=True)
class Snapshot:
    tick: int
    metrics: Optional[TickMetrics]
    agents: List[AgentView]
    metadata: SnapshotMetadata

    def __iter__(self):
        for view in self.agents:
            yield view.position, view.orientation

    def __len__(self) -> int:
        return len(self.agents)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "tick": self.tick,
            "metrics": None if self.metrics is None else asdict(self.metrics),
            "agents": [view.to_payload() for view in self.agents],
            "metadata": asdict(self.metadata),
        }
