"""Unit tests for BroadcastScheduler."""

import asyncio

import pytest

from communication.broadcast import BroadcastScheduler
from conftest import FakeSocket, drain


@pytest.fixture
def scheduler(hub, clock):
    return BroadcastScheduler(hub, clock, interval=0.01, full_update_interval=1.0)


class TestFire:
    def test_nothing_sent_without_connections(self, scheduler):
        assert scheduler.fire(now=0.0) is None
        assert scheduler.full_sent == scheduler.partial_sent == 0

    def test_full_then_partial_then_full(self, hub, scheduler):
        hub.connect(FakeSocket())
        assert scheduler.fire(now=0.0) == "fullState"
        assert scheduler.fire(now=0.5) == "particleUpdate"
        assert scheduler.fire(now=0.99) == "particleUpdate"
        assert scheduler.fire(now=1.0) == "fullState"
        assert (scheduler.full_sent, scheduler.partial_sent) == (2, 2)

    @pytest.mark.asyncio
    async def test_full_frame_follows_reset(self, hub, scheduler):
        hub.connect(FakeSocket())
        scheduler.fire(now=0.0)
        await hub.set_particle_count(800)
        assert scheduler.fire(now=0.1) == "fullState"
        assert scheduler.fire(now=0.2) == "particleUpdate"

    def test_partial_frame_shape(self, hub, clock, scheduler):
        connection = hub.connect(FakeSocket())
        scheduler.fire(now=0.0)
        clock.advance(16.0)
        drain(connection)

        scheduler.fire(now=0.1)

        [frame] = drain(connection)
        assert frame["type"] == "particleUpdate"
        assert frame["time"] == pytest.approx(16.0)
        assert len(frame["particles"]) == clock.field.count
        assert set(frame["particles"][0]) == {"x", "y"}
        assert frame["metrics"]["playerCount"] == 1
        assert "players" not in frame

    def test_every_connection_gets_the_same_frame(self, hub, scheduler):
        a, b = hub.connect(FakeSocket()), hub.connect(FakeSocket())
        drain(a), drain(b)
        scheduler.fire(now=0.0)
        assert drain(a) == drain(b)


class TestLoop:
    @pytest.mark.asyncio
    async def test_start_stop(self, hub, scheduler):
        connection = hub.connect(FakeSocket())
        drain(connection)
        await scheduler.start()
        await asyncio.sleep(0.08)
        await scheduler.stop()

        sent = scheduler.full_sent + scheduler.partial_sent
        assert sent >= 2
        assert scheduler.full_sent >= 1
        queued = connection.outbox.qsize()
        await asyncio.sleep(0.03)
        assert connection.outbox.qsize() == queued

    @pytest.mark.asyncio
    async def test_stop_without_start(self, scheduler):
        await scheduler.stop()
        assert scheduler._task is None
