import asyncio
import time

from communication import protocol
from internal.logging import get_logger


class BroadcastScheduler:
    """Fans simulation state out to every channel on its own cadence.

    Most firings send a positions-only particleUpdate. A fullState (particles,
    players, metrics) goes out when full_update_interval has elapsed since the
    last one, and on the first firing after the clock was reset.
    """

    def __init__(self, hub, clock, interval=0.05, full_update_interval=1.0, timer=time.monotonic):
        self.hub = hub
        self.clock = clock
        self.interval = interval
        self.full_update_interval = full_update_interval
        self._timer = timer
        self._log = get_logger()
        self._task = None
        self._stop = asyncio.Event()
        self._last_full = None
        self._generation = clock.generation
        self.full_sent = 0
        self.partial_sent = 0

    def _full_due(self, now):
        return (self._last_full is None
                or now - self._last_full >= self.full_update_interval
                or self.clock.generation != self._generation)

    def fire(self, now=None):
        """Broadcast one frame. Returns its type, or None when nobody is connected."""
        if not len(self.hub):
            return None
        now = self._timer() if now is None else now

        if self._full_due(now):
            frame = self.hub.full_state()
            self._last_full = now
            self._generation = self.clock.generation
            self.full_sent += 1
        else:
            frame = protocol.particle_update_frame(
                self.clock.field.get_snapshot(),
                self.clock.simulation_time,
                protocol.build_metrics(self.clock, len(self.hub.registry)),
            )
            self.partial_sent += 1

        self.hub.broadcast(frame)
        return frame["type"]

    async def start(self):
        if self._task:
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._loop())

    async def stop(self):
        self._stop.set()
        if self._task:
            await self._task
            self._task = None

    async def _loop(self):
        next_fire = self._timer()
        self._log.info("broadcast start", interval=self.interval, full_every=self.full_update_interval)

        while not self._stop.is_set():
            wait_time = next_fire - self._timer()
            if wait_time > 0:
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=wait_time)
                    break
                except asyncio.TimeoutError:
                    pass
            next_fire = self._timer() + self.interval

            try:
                self.fire()
            except Exception as exc:
                self._log.error("broadcast failed", error=exc)

        self._log.info("broadcast stop", full=self.full_sent, partial=self.partial_sent)
