import asyncio
import json

from murmuration.app.server import SimulationController
from murmuration.sim.core.config import AppConfig, SimulationConfig


def _controller(max_queued: int = 120) -> SimulationController:
    return SimulationController(AppConfig(simulation=SimulationConfig(count=5, seed=1), max_queued_snapshots=max_queued))


def test_snapshot_queue_ack_cleanup() -> None:
    controller = _controller()

    async def exercise() -> None:
        controller.world.step(1.0 / 60.0)
        await controller._broadcast_snapshot()
        controller.world.step(1.0 / 60.0)
        await controller._broadcast_snapshot()
        async with controller._queue_lock:
            queued_ticks = [item.tick for item in controller._snapshot_queue]
        assert queued_ticks == [1, 2]
        await controller.acknowledge(1)
        async with controller._queue_lock:
            remaining_ticks = [item.tick for item in controller._snapshot_queue]
        assert remaining_ticks == [2]

    asyncio.run(exercise())


def test_snapshot_queue_is_bounded() -> None:
    controller = _controller(max_queued=3)

    async def exercise() -> None:
        for _ in range(5):
            controller.world.step(1.0 / 60.0)
            await controller._broadcast_snapshot()
        assert [item.tick for item in controller._snapshot_queue] == [3, 4, 5]

    asyncio.run(exercise())


def test_queued_payload_carries_agent_state() -> None:
    controller = _controller()

    async def exercise() -> None:
        await controller._broadcast_snapshot()

    asyncio.run(exercise())
    message = json.loads(controller._snapshot_queue[0].payload)
    assert message["type"] == "snapshot"
    assert message["tick"] == 0
    assert len(message["payload"]["agents"]) == 5


def test_loops_advance_world_and_stop_on_shutdown() -> None:
    app_config = AppConfig(
        simulation=SimulationConfig(count=4, seed=2, time_step=0.005),
        display_interval=0.01,
    )
    controller = SimulationController(app_config)

    async def exercise() -> None:
        await controller.start()
        await asyncio.sleep(0.2)
        await controller.shutdown()

    asyncio.run(exercise())
    assert controller.tick > 0
    assert controller.running is False
    assert len(controller._snapshot_queue) > 0


def test_reset_rewinds_world_and_queue() -> None:
    controller = _controller()

    async def exercise() -> None:
        controller.world.step(1.0 / 60.0)
        await controller._broadcast_snapshot()
        await controller.reset()

    asyncio.run(exercise())
    assert controller.tick == 0
    assert [item.tick for item in controller._snapshot_queue] == [0]


class _RecordingClient:
    def __init__(self, controller: SimulationController, drop=None) -> None:
        self.controller = controller
        self.drop = drop
        self.sent = []

    async def send_text(self, payload: str) -> None:
        if self.drop is not None:
            self.controller.clients.discard(self.drop)
            self.controller._client_last_sent.pop(self.drop, None)
        self.sent.append(json.loads(payload)["tick"])


class _BrokenClient:
    async def send_text(self, payload: str) -> None:
        raise RuntimeError("socket closed")


def test_client_leaving_mid_broadcast_keeps_display_loop_alive() -> None:
    app_config = AppConfig(
        simulation=SimulationConfig(count=4, seed=2, time_step=0.005),
        display_interval=0.01,
    )
    controller = SimulationController(app_config)
    survivor = _RecordingClient(controller)
    leaver = _RecordingClient(controller)
    survivor.drop = leaver
    for client in (survivor, leaver):
        controller.clients.add(client)
        controller._client_last_sent[client] = -1

    async def exercise() -> None:
        await controller.start()
        await asyncio.sleep(0.2)
        assert not controller._display_task.done()
        await controller.shutdown()

    asyncio.run(exercise())
    assert leaver not in controller.clients
    assert leaver not in controller._client_last_sent
    assert len(survivor.sent) > 1


def test_failed_send_drops_only_that_client() -> None:
    controller = _controller()
    healthy = _RecordingClient(controller)
    broken = _BrokenClient()
    for client in (healthy, broken):
        controller.clients.add(client)
        controller._client_last_sent[client] = -1

    async def exercise() -> None:
        controller.world.step(1.0 / 60.0)
        await controller._broadcast_snapshot()
        controller.world.step(1.0 / 60.0)
        await controller._broadcast_snapshot()

    asyncio.run(exercise())
    assert controller.clients == {healthy}
    assert broken not in controller._client_last_sent
    assert healthy.sent == [1, 2]


def test_shutdown_tolerates_a_failed_loop() -> None:
    controller = _controller()

    async def explode() -> None:
        raise RuntimeError("loop failed")

    async def exercise() -> None:
        controller._display_task = asyncio.create_task(explode())
        await asyncio.sleep(0)
        await controller.shutdown()

    asyncio.run(exercise())
    assert controller._display_task is None
