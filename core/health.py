import asyncio
import time
from enum import Enum

from internal.logging import format_timestamp


class Status(Enum):
    OK = "healthy"
    DEGRADED = "degraded"
    FAIL = "unhealthy"


class CheckResult:
    __slots__ = ("name", "status", "msg", "critical")

    def __init__(self, name, status, msg="", critical=True):
        self.name = name
        self.status = status
        self.msg = msg
        self.critical = critical

    def to_dict(self):
        return {"status": self.status.value, "msg": self.msg, "critical": self.critical}


class HealthReport:
    """Aggregate of one round of checks, served by /api/v1/health."""
    __slots__ = ("status", "checks", "uptime", "timestamp")

    def __init__(self, status, checks, uptime=0):
        self.status = status
        self.checks = checks
        self.uptime = uptime
        self.timestamp = format_timestamp()

    def to_dict(self):
        return {
            "status": self.status.value,
            "timestamp": self.timestamp,
            "uptime_s": round(self.uptime, 1),
            "checks": {check.name: check.to_dict() for check in self.checks},
        }


def overall_status(results):
    """FAIL if a critical check failed, DEGRADED if anything else is off, else OK."""
    if any(result.critical and result.status == Status.FAIL for result in results):
        return Status.FAIL
    if any(result.status != Status.OK for result in results):
        return Status.DEGRADED
    return Status.OK


class HealthChecker:
    """Runs registered async checks concurrently; reports are cached for ttl seconds."""

    def __init__(self, ttl=1.0, timeout=5.0):
        self._checks = {}
        self._cache = None
        self._cache_time = 0
        self._ttl = ttl
        self._timeout = timeout
        self._start_time = time.time()

    def register(self, name, check_fn, critical=True):
        self._checks[name] = (check_fn, critical)

    async def _run(self, name, check_fn, critical):
        try:
            result = await asyncio.wait_for(check_fn(), timeout=self._timeout)
        except asyncio.TimeoutError:
            result = CheckResult(name, Status.FAIL, "timeout")
        except Exception as exc:
            result = CheckResult(name, Status.FAIL, str(exc))
        result.name = name
        result.critical = critical
        return result

    async def check(self):
        now = time.time()
        if self._cache and now - self._cache_time < self._ttl:
            return self._cache

        results = await asyncio.gather(*(
            self._run(name, check_fn, critical) for name, (check_fn, critical) in self._checks.items()
        ))
        self._cache = HealthReport(overall_status(results), list(results), now - self._start_time)
        self._cache_time = now
        return self._cache


async def check_event_loop():
    await asyncio.sleep(0)
    return CheckResult("loop", Status.OK)


def create_clock_check(clock, threshold=5.0, timer=time.time):
    """Fails when the clock is running but its tick count has not moved for threshold seconds."""
    last = {"tick": None, "at": timer(), "generation": clock.generation}

    async def check():
        now = timer()
        if not clock.running:
            return CheckResult("clock", Status.DEGRADED, "stopped")

        if clock.generation != last["generation"]:
            last.update(tick=None, generation=clock.generation)
        if last["tick"] is not None and clock.tick == last["tick"] and now - last["at"] > threshold:
            return CheckResult("clock", Status.FAIL, f"stuck@{clock.tick}")
        if clock.tick != last["tick"]:
            last.update(tick=clock.tick, at=now)
        return CheckResult("clock", Status.OK, f"t{clock.tick}")
    return check


def create_hub_check(hub, max_failure_ratio=0.1):
    async def check():
        stats = hub.get_stats()
        attempts = stats["total_delivered"] + stats["total_failed"]
        if attempts and stats["total_failed"] / attempts > max_failure_ratio:
            return CheckResult("hub", Status.DEGRADED, "send failures")
        return CheckResult("hub", Status.OK, f"{stats['connection_count']}conn")
    return check


def create_logger_check(logger):
    async def check():
        queue_size, max_size = logger.queue.qsize(), logger.queue.maxsize
        if max_size and queue_size / max_size > 0.9:
            return CheckResult("log", Status.DEGRADED, f"{queue_size}/{max_size}")
        return CheckResult("log", Status.OK)
    return check
