"""Health and liveness routes."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from core.health import Status
from internal.logging import format_timestamp

router = APIRouter(prefix="/api/v1", tags=["health"])

# These will be set by app.py
_clock = None
_health_checker = None


def init(clock, health_checker):
    global _clock, _health_checker
    _clock = clock
    _health_checker = health_checker


@router.get("/health")
async def health():
    """Health check with component status."""
    report = await _health_checker.check()
    status_code = 200 if report.status != Status.FAIL else 503
    return JSONResponse(content=report.to_dict(), status_code=status_code)


@router.get("/heartbeat")
async def heartbeat():
    """Lightweight heartbeat for frequent polling."""
    return {
        "status": "ok",
        "timestamp": format_timestamp(),
        "tick": _clock.tick,
        "simulation_time_ms": _clock.simulation_time,
        "clock_state": _clock.state,
    }
