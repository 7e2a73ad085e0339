from __future__ import annotations

import argparse
import asyncio
import json
import math
from collections import deque
from dataclasses import asdict, dataclass
from pathlib import Path
from time import perf_counter
from typing import Dict, Set

import uvicorn
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from loguru import logger

from ..sim.core.config import AppConfig, SimulationConfig
from ..sim.core.world import World


@dataclass(frozen=True)
class QueuedSnapshot:
    tick: int
    payload: str


class SimulationController:
    """Drives one ``World`` with an update loop and an independent display loop.

    Both loops are tasks on the same event loop and a tick never awaits, so
    the world has a single writer and needs no locking against readers.
    """

    def __init__(self, config: AppConfig | None = None):
        self.config = config if config is not None else AppConfig()
        self.world = World(self.config.simulation)
        self.running = False
        self.speed_multiplier = 1.0
        self.clients: Set[WebSocket] = set()
        self._client_last_sent: Dict[WebSocket, int] = {}
        self._snapshot_queue: deque[QueuedSnapshot] = deque(maxlen=max(1, self.config.max_queued_snapshots))
        self._queue_lock = asyncio.Lock()
        self._update_task: asyncio.Task | None = None
        self._display_task: asyncio.Task | None = None

    @property
    def tick(self) -> int:
        return self.world.tick

    async def start(self) -> None:
        if self._update_task is None:
            self._update_task = asyncio.create_task(self._update_loop())
        if self._display_task is None:
            self._display_task = asyncio.create_task(self._display_loop())
        self.running = True
        logger.info("Simulation started with {} agents", len(self.world.agents))

    async def stop(self) -> None:
        self.running = False
        logger.info("Simulation paused at tick {}", self.tick)

    async def shutdown(self) -> None:
        self.running = False
        for task in (self._update_task, self._display_task):
            if task is not None:
                task.cancel()
        for task in (self._update_task, self._display_task):
            if task is None:
                continue
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Simulation loop had already failed")
        self._update_task = None
        self._display_task = None
        logger.info("Simulation loops stopped")

    async def reset(self) -> None:
        self.world.reset()
        async with self._queue_lock:
            self._snapshot_queue.clear()
        for client in self._client_last_sent:
            self._client_last_sent[client] = -1
        logger.info("Simulation reset")
        await self._broadcast_snapshot()

    async def _update_loop(self) -> None:
        sim = self.config.simulation
        last = perf_counter()
        while True:
            await asyncio.sleep(sim.time_step / self.speed_multiplier)
            now = perf_counter()
            elapsed = (now - last) * self.speed_multiplier
            last = now
            if not self.running:
                continue
            dt = elapsed
            if dt > sim.max_step:
                logger.debug("Clamping dt {:.4f}s to {:.4f}s", dt, sim.max_step)
                dt = sim.max_step
            try:
                self.world.step(dt)
            except ValueError:
                logger.exception("Update tick failed; pausing simulation")
                self.running = False

    async def _display_loop(self) -> None:
        last_tick = -1
        while True:
            await asyncio.sleep(self.config.display_interval)
            if self.tick == last_tick:
                continue
            last_tick = self.tick
            try:
                await self._broadcast_snapshot()
            except Exception:
                logger.exception("Snapshot broadcast failed at tick {}", last_tick)

    async def acknowledge(self, tick: int) -> None:
        async with self._queue_lock:
            while self._snapshot_queue and self._snapshot_queue[0].tick <= tick:
                self._snapshot_queue.popleft()

    def _serialize_snapshot(self) -> QueuedSnapshot:
        snapshot = self.world.snapshot()
        payload = {
            "type": "snapshot",
            "tick": snapshot.tick,
            "payload": snapshot.to_payload(),
        }
        return QueuedSnapshot(tick=snapshot.tick, payload=json.dumps(payload))

    async def _send_pending_snapshots(self, client: WebSocket) -> None:
        last_sent = self._client_last_sent.get(client, -1)
        async with self._queue_lock:
            pending = [item for item in self._snapshot_queue if item.tick > last_sent]
        for item in pending:
            await client.send_text(item.payload)
            last_sent = item.tick
        if client in self.clients:
            self._client_last_sent[client] = last_sent

    async def _broadcast_snapshot(self) -> None:
        queued = self._serialize_snapshot()
        async with self._queue_lock:
            self._snapshot_queue.append(queued)
        stale: Set[WebSocket] = set()
        for client in list(self.clients):
            if client not in self.clients:
                continue
            try:
                await self._send_pending_snapshots(client)
            except (WebSocketDisconnect, RuntimeError, OSError) as exc:
                logger.warning("Dropping client after failed send: {!r}", exc)
                stale.add(client)
        for client in stale:
            self.clients.discard(client)
            self._client_last_sent.pop(client, None)


app = FastAPI(title="Murmuration Flocking Simulation")
controller = SimulationController()


@app.on_event("startup")
async def _startup() -> None:
    await controller.start()


@app.on_event("shutdown")
async def _shutdown() -> None:
    await controller.shutdown()


@app.get("/api/status")
async def status() -> JSONResponse:
    metrics = controller.world.metrics
    return JSONResponse(
        {
            "running": controller.running,
            "tick": controller.tick,
            "population": len(controller.world.agents),
            "speed_multiplier": controller.speed_multiplier,
            "metrics": None if metrics is None else asdict(metrics),
        }
    )


@app.get("/api/snapshot")
async def snapshot() -> JSONResponse:
    return JSONResponse(controller.world.snapshot().to_payload())


@app.post("/api/control/start")
async def start_simulation() -> JSONResponse:
    controller.running = True
    return JSONResponse({"running": True})


@app.post("/api/control/stop")
async def stop_simulation() -> JSONResponse:
    controller.running = False
    return JSONResponse({"running": False})


@app.post("/api/control/reset")
async def reset_simulation() -> JSONResponse:
    await controller.reset()
    return JSONResponse({"running": controller.running, "tick": controller.tick})


@app.post("/api/control/speed")
async def set_speed(payload: dict) -> JSONResponse:
    try:
        speed = float(payload.get("multiplier", 1.0))
    except (TypeError, ValueError):
        raise HTTPException(status_code=422, detail="multiplier must be a number")
    if not math.isfinite(speed):
        raise HTTPException(status_code=422, detail="multiplier must be a number")
    controller.speed_multiplier = max(0.1, min(5.0, speed))
    return JSONResponse({"multiplier": controller.speed_multiplier})


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    await websocket.accept()
    controller.clients.add(websocket)
    controller._client_last_sent[websocket] = -1
    await controller._send_pending_snapshots(websocket)
    try:
        while True:
            message = await websocket.receive_text()
            try:
                payload = json.loads(message)
            except json.JSONDecodeError:
                continue
            if payload.get("type") == "ack":
                tick = payload.get("tick")
                if isinstance(tick, int):
                    await controller.acknowledge(tick)
    except WebSocketDisconnect:
        controller.clients.discard(websocket)
        controller._client_last_sent.pop(websocket, None)


def main() -> None:
    global controller
    parser = argparse.ArgumentParser(description="Serve flocking snapshots over HTTP/WebSocket")
    parser.add_argument("--config", type=Path, default=None, help="YAML simulation config")
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    args = parser.parse_args()
    app_config = AppConfig()
    if args.config:
        try:
            app_config.simulation = SimulationConfig.from_yaml(args.config)
        except ValueError as exc:
            parser.error(str(exc))
    if args.host:
        app_config.host = args.host
    if args.port:
        app_config.port = args.port
    controller = SimulationController(app_config)
    logger.info("Serving on {}:{}", app_config.host, app_config.port)
    uvicorn.run(app, host=app_config.host, port=app_config.port)


__all__ = ["app", "controller"]
