from __future__ import annotations

import argparse
import asyncio
import json
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import AsyncIterator, Dict, List, Optional, Set

import structlog
import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from ..sim.core.config import SimulationConfig
from ..sim.core.world import World
from ..sim.types.events import SimulationEvent
from .log_setup import LOG_LEVELS, configure_logging

logger = structlog.get_logger()

_MIN_SPEED = 0.1
_MAX_SPEED = 5.0


@dataclass(frozen=True)
class QueuedSnapshot:
    tick: int
    payload: str


def _event_payload(event: SimulationEvent) -> Dict[str, object]:
    return {
        "kind": event.kind.value,
        "tick": event.tick,
        "species": event.species,
        "agent_id": event.agent_id,
        **event.data,
    }


class SimulationController:
    """Runs one world on the event loop and streams snapshots to spectators.

    Every touch of the world goes through ``_lock``; snapshots stay queued
    until a client acknowledges their tick.
    """

    def __init__(self, config: SimulationConfig, broadcast_interval: int = 1):
        self.config = config
        self.world = World(config)
        self.broadcast_interval = max(1, broadcast_interval)
        self.running = False
        self.speed_multiplier = 1.0
        self.clients: Set[WebSocket] = set()
        self._client_last_sent: Dict[WebSocket, int] = {}
        self._snapshot_queue: deque[QueuedSnapshot] = deque()
        self._pending_events: List[SimulationEvent] = []
        self._lock = asyncio.Lock()
        self._queue_lock = asyncio.Lock()
        self._loop_task: asyncio.Task | None = None

    @property
    def tick(self) -> int:
        return self.world.tick

    async def start(self) -> None:
        if self._loop_task is None:
            self._loop_task = asyncio.create_task(self._loop())
        self.running = True
        logger.info("simulation_started", tick=self.tick)

    async def stop(self) -> None:
        self.running = False
        logger.info("simulation_stopped", tick=self.tick)

    async def shutdown(self) -> None:
        self.running = False
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

    async def reset(self) -> None:
        async with self._lock:
            self.world.reset()
            self._pending_events.clear()
        async with self._queue_lock:
            self._snapshot_queue.clear()
        for client in self._client_last_sent:
            self._client_last_sent[client] = -1
        logger.info("simulation_reset", seed=self.config.seed)
        await self._broadcast_snapshot()

    def set_speed(self, multiplier: float) -> float:
        self.speed_multiplier = max(_MIN_SPEED, min(_MAX_SPEED, multiplier))
        return self.speed_multiplier

    async def pulse(self) -> None:
        async with self._lock:
            self.world.trigger_pulse()

    async def step_once(self) -> None:
        async with self._lock:
            self.world.step()
            self._pending_events.extend(self.world.drain_events())
        if self.tick % self.broadcast_interval == 0:
            await self._broadcast_snapshot()

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.time_step / self.speed_multiplier)
            if not self.running:
                continue
            await self.step_once()

    async def acknowledge(self, tick: int) -> None:
        async with self._queue_lock:
            while self._snapshot_queue and self._snapshot_queue[0].tick <= tick:
                self._snapshot_queue.popleft()

    async def _serialize_snapshot(self) -> QueuedSnapshot:
        async with self._lock:
            snapshot = self.world.snapshot()
            events = [_event_payload(event) for event in self._pending_events]
            self._pending_events.clear()
        payload = {
            "type": "snapshot",
            "tick": snapshot.tick,
            "payload": {
                "tick": snapshot.tick,
                "metrics": asdict(snapshot.metrics),
                "agents": snapshot.agents,
                "food": snapshot.food,
                "hazards": snapshot.hazards,
                "world": asdict(snapshot.world),
                "metadata": asdict(snapshot.metadata),
                "events": events,
            },
        }
        return QueuedSnapshot(tick=snapshot.tick, payload=json.dumps(payload))

    async def _send_pending_snapshots(self, client: WebSocket) -> None:
        last_sent = self._client_last_sent.get(client, -1)
        async with self._queue_lock:
            pending = [item for item in self._snapshot_queue if item.tick > last_sent]
        for item in pending:
            await client.send_text(item.payload)
            last_sent = item.tick
        self._client_last_sent[client] = last_sent

    async def _broadcast_snapshot(self) -> None:
        queued = await self._serialize_snapshot()
        async with self._queue_lock:
            self._snapshot_queue.append(queued)
        stale: Set[WebSocket] = set()
        for client in list(self.clients):
            try:
                await self._send_pending_snapshots(client)
            except (WebSocketDisconnect, RuntimeError):
                stale.add(client)
        for client in stale:
            self.drop_client(client)

    def add_client(self, client: WebSocket) -> None:
        self.clients.add(client)
        self._client_last_sent[client] = -1
        logger.info("spectator_connected", clients=len(self.clients))

    def drop_client(self, client: WebSocket) -> None:
        self.clients.discard(client)
        self._client_last_sent.pop(client, None)
        logger.info("spectator_disconnected", clients=len(self.clients))


def create_app(config: Optional[SimulationConfig] = None, autostart: bool = True) -> FastAPI:
    controller = SimulationController(config or SimulationConfig())

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if autostart:
            await controller.start()
        yield
        await controller.shutdown()

    app = FastAPI(title="Biotope Spectator", lifespan=lifespan)
    app.state.controller = controller

    @app.get("/api/status")
    async def status() -> JSONResponse:
        async with controller._lock:
            snapshot = controller.world.snapshot()
        return JSONResponse(
            {
                "running": controller.running,
                "tick": snapshot.tick,
                "speed": controller.speed_multiplier,
                "population": len(snapshot.agents),
                "metrics": asdict(snapshot.metrics),
            }
        )

    @app.post("/api/control/start")
    async def start_simulation() -> JSONResponse:
        await controller.start()
        return JSONResponse({"running": True})

    @app.post("/api/control/stop")
    async def stop_simulation() -> JSONResponse:
        await controller.stop()
        return JSONResponse({"running": False})

    @app.post("/api/control/reset")
    async def reset_simulation() -> JSONResponse:
        await controller.reset()
        return JSONResponse({"running": controller.running, "tick": controller.tick})

    @app.post("/api/control/speed")
    async def set_speed(payload: dict) -> JSONResponse:
        multiplier = controller.set_speed(float(payload.get("multiplier", 1.0)))
        return JSONResponse({"multiplier": multiplier})

    @app.post("/api/control/pulse")
    async def manual_pulse() -> JSONResponse:
        await controller.pulse()
        return JSONResponse({"pulse": True, "tick": controller.tick})

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        await websocket.accept()
        controller.add_client(websocket)
        try:
            await controller._send_pending_snapshots(websocket)
            while True:
                message = await websocket.receive_text()
                try:
                    payload = json.loads(message)
                except json.JSONDecodeError:
                    continue
                if not isinstance(payload, dict):
                    continue
                if payload.get("type") == "ack":
                    tick = payload.get("tick")
                    if isinstance(tick, int):
                        await controller.acknowledge(tick)
                elif payload.get("type") == "pulse":
                    await controller.pulse()
        except WebSocketDisconnect:
            controller.drop_client(websocket)

    return app


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Biotope spectator server")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--config", type=Path, default=None, help="YAML file overriding the default configuration")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--log-level", choices=LOG_LEVELS, default="info")
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    config = SimulationConfig.from_yaml(args.config) if args.config else SimulationConfig()
    if args.seed is not None:
        config.seed = args.seed
    logger.info("server_configured", host=args.host, port=args.port, seed=config.seed)
    uvicorn.run(create_app(config), host=args.host, port=args.port, log_level=args.log_level)


if __name__ == "__main__":
    main()
