"""FastAPI application factory."""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket
from fastapi.responses import PlainTextResponse

from communication.broadcast import BroadcastScheduler
from communication.hub import ConnectionHub
from config import load_config
from core.health import (
    HealthChecker,
    check_event_loop,
    create_clock_check,
    create_hub_check,
    create_logger_check,
)
from internal.crash import create_async_handler
from internal.logging import AsyncFileLogger, LogLevel, StructuredLogger
from simulation.clock import SimulationClock
from simulation.field import ParticleField
from simulation.players import PlayerRegistry
from web.routes import api, control, health

BANNER = "Gravitational Lensing WebSocket Server"
TRY_AGAIN_LATER = 1013


def create_app(config=None):
    """Create and wire the simulation server."""
    config = config or load_config()

    log_level = LogLevel[config.logging.level.upper()]
    logger = StructuredLogger.configure(min_level=log_level)

    registry = PlayerRegistry(config.simulation, config.players)
    field = ParticleField(config.simulation)
    clock = SimulationClock(field, registry, config.simulation)
    journal = AsyncFileLogger(file_path=config.logging.file)
    hub = ConnectionHub(registry, clock, outbox_size=config.broadcast.outbox_size, journal=journal)
    broadcaster = BroadcastScheduler(hub, clock, interval=config.broadcast.interval,
                                     full_update_interval=config.broadcast.full_update_interval)
    health_checker = HealthChecker()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("server starting", particles=field.count, rate=config.simulation.update_rate)
        asyncio.get_running_loop().set_exception_handler(create_async_handler(logger))

        await journal.start()
        health_checker.register("event_loop", check_event_loop, critical=True)
        health_checker.register("clock", create_clock_check(clock), critical=True)
        health_checker.register("hub", create_hub_check(hub), critical=False)
        health_checker.register("journal", create_logger_check(journal), critical=False)

        await clock.start()
        await broadcaster.start()
        logger.info("server started")

        yield

        logger.info("server shutting down")
        await broadcaster.stop()
        await clock.stop()
        await journal.stop()
        logger.info("server shutdown complete")

    app = FastAPI(
        title="Gravitational Lensing",
        version="1.0.0",
        description="server-authoritative multiplayer particle simulation",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.registry = registry
    app.state.field = field
    app.state.clock = clock
    app.state.hub = hub
    app.state.broadcaster = broadcaster
    app.state.journal = journal

    health.init(clock, health_checker)
    api.init(clock, hub, journal)
    control.init(hub)

    app.include_router(health.router)
    app.include_router(api.router)
    app.include_router(control.router)

    @app.get("/", response_class=PlainTextResponse)
    async def index():
        """Liveness text; the same path upgrades to the simulation channel."""
        return BANNER

    @app.websocket("/")
    async def channel(websocket: WebSocket):
        """One player: register, pump outbound frames, apply inbound frames until close."""
        await websocket.accept()
        if len(hub) >= config.server.max_players:
            logger.warn("server full, refusing connection", players=len(hub))
            await websocket.close(code=TRY_AGAIN_LATER)
            return

        connection = hub.connect(websocket)
        pump = asyncio.create_task(hub.pump(connection))
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes")
                await hub.handle(connection, raw)
        finally:
            hub.disconnect(connection)
            pump.cancel()
            try:
                await pump
            except asyncio.CancelledError:
                pass

    return app
