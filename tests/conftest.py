"""Pytest fixtures for all tests."""

import json

import pytest
from httpx import AsyncClient, ASGITransport

from communication.hub import ConnectionHub
from config import BroadcastConfig, Config, LoggingConfig, PlayerConfig, SimulationConfig
from simulation.clock import SimulationClock
from simulation.field import ParticleField
from simulation.players import PlayerRegistry
from web.app import create_app


class FakeSocket:
    """Stands in for a WebSocket: records text frames, optionally fails on send."""

    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    async def send_text(self, text):
        if self.fail:
            raise ConnectionResetError("peer went away")
        self.sent.append(text)


def drain(connection):
    """Pop every queued frame from a connection's outbox, decoded."""
    frames = []
    while not connection.outbox.empty():
        frames.append(json.loads(connection.outbox.get_nowait()))
    return frames


@pytest.fixture
def sim_config():
    """Small, seeded simulation config."""
    return SimulationConfig(particle_count=500, particle_spread=200.0, update_rate=60, seed=7)


@pytest.fixture
def player_config():
    return PlayerConfig()


@pytest.fixture
def registry(sim_config, player_config):
    return PlayerRegistry(sim_config, player_config)


@pytest.fixture
def field(sim_config):
    return ParticleField(sim_config)


@pytest.fixture
def clock(field, registry, sim_config):
    """Clock that has not been started; tests that start it also stop it."""
    return SimulationClock(field, registry, sim_config)


@pytest.fixture
def hub(registry, clock):
    return ConnectionHub(registry, clock, outbox_size=16)


@pytest.fixture
def app_config(tmp_path, sim_config):
    """Full app config writing its logs under tmp_path."""
    return Config(
        simulation=sim_config,
        broadcast=BroadcastConfig(interval=0.02, full_update_interval=0.5),
        logging=LoggingConfig(level="WARN", file=str(tmp_path / "lensing.log"),
                              crash_file=str(tmp_path / "crash.log")),
    )


@pytest.fixture
def app(app_config):
    return create_app(app_config)


@pytest.fixture
async def client(app):
    """Async HTTP test client (no lifespan)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
