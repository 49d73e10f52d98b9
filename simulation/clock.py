import asyncio
import time
from collections import deque

from internal.logging import get_logger
from simulation.state import ClockMetrics

METRICS_WINDOW = 50


class ClockState:
    STOPPED = "stopped"
    RUNNING = "running"


class SimulationClock:
    """Drives field.step at update_rate Hz regardless of how many players are connected.

    A late tick is not an error: the next one is scheduled one period after the
    previous start, and if that instant already passed it runs once right away.
    Missed ticks are never replayed.
    """

    def __init__(self, field, registry, config=None, timer=time.perf_counter):
        self.field = field
        self.registry = registry
        self.config = config or field.config
        self._timer = timer
        self._log = get_logger()
        self._state = ClockState.STOPPED
        self._task = None
        self._stop = asyncio.Event()
        self._reset_lock = asyncio.Lock()
        self._samples = deque(maxlen=METRICS_WINDOW)
        self.tick = 0
        self.simulation_time = 0.0
        self.last_tick_ms = 0.0
        self.last_tick_at = None
        self.generation = 0

    @property
    def state(self):
        return self._state

    @property
    def running(self):
        return self._state == ClockState.RUNNING

    @property
    def avg_tick_ms(self):
        return sum(self._samples) / len(self._samples) if self._samples else 0.0

    def metrics(self):
        return ClockMetrics(self.tick, self.simulation_time, self.last_tick_ms, self.avg_tick_ms)

    def advance(self, delta_ms):
        """Run one physics step of delta_ms against this instant's player snapshot."""
        started = self._timer()
        self.field.step(delta_ms, self.registry.snapshot(), self.config.gravity_strength)
        self.last_tick_ms = (self._timer() - started) * 1000.0
        self._samples.append(self.last_tick_ms)
        self.simulation_time += delta_ms
        self.tick += 1

    async def start(self):
        if self._task:
            return
        self._stop.clear()
        self._state = ClockState.RUNNING
        self._task = asyncio.create_task(self._loop())

    async def stop(self):
        """Cancel the timer. Safe from any state; no step runs after this returns."""
        self._stop.set()
        task, self._task = self._task, None
        if task:
            await task
        self._state = ClockState.STOPPED

    async def reset(self, config):
        """Reinitialise the pool from config and restart the timer.

        Overlapping resets run one after another so only one timer task exists.
        """
        async with self._reset_lock:
            was_running = self._task is not None
            await self.stop()
            self.config = config
            self.field.init(config)
            self.simulation_time = 0.0
            self.tick = 0
            self._samples.clear()
            self.generation += 1
            self._log.info("simulation reset", particles=self.field.count)
            if was_running:
                await self.start()

    async def _loop(self):
        period = self.config.tick_interval
        self.last_tick_at = self._timer()
        next_tick = self.last_tick_at + period
        self._log.info("clock start", rate=self.config.update_rate, particles=self.field.count)

        while not self._stop.is_set():
            wait_time = next_tick - self._timer()
            if wait_time > 0:
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=wait_time)
                    break
                except asyncio.TimeoutError:
                    pass

            now = self._timer()
            delta_ms = (now - self.last_tick_at) * 1000.0
            self.last_tick_at = now
            next_tick = now + period

            try:
                self.advance(delta_ms)
            except Exception as exc:
                self._log.error("tick failed", error=exc, tick=self.tick)
                continue

            if self.last_tick_ms > period * 1000.0:
                self._log.debug("tick overrun", tick=self.tick, took_ms=round(self.last_tick_ms, 2))

        self._log.info("clock stop", tick=self.tick)
