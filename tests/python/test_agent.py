from __future__ import annotations

from murmuration.sim.core.agent import Agent
from murmuration.sim.core.config import SimulationConfig
from murmuration.sim.core.world import World
from murmuration.sim.utils.quat import Quat


def test_agent_uses_slots_and_isolates_defaults():
    agent_a = Agent(id=1)
    agent_b = Agent(id=2)

    assert not hasattr(agent_a, "__dict__")
    assert hasattr(Agent, "__slots__")

    assert agent_a.position is not agent_b.position
    agent_a.position.x = 1.5
    assert agent_b.position.x == 0.0
    assert agent_a.orientation == Quat.IDENTITY


def test_slots_support_snapshot_serialization():
    world = World(SimulationConfig(count=2, seed=404))

    assert all(not hasattr(agent, "__dict__") for agent in world.agents)
    snapshot = world.snapshot()

    assert snapshot.metrics is None
    assert len(snapshot.agents) == len(world.agents)
    assert snapshot.to_payload()["agents"][0]["id"] == world.agents[0].id
