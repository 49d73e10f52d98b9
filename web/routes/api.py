"""Read-only diagnostics."""

from fastapi import APIRouter

from internal.logging import format_timestamp

router = APIRouter(prefix="/api/v1", tags=["api"])

# These will be set by app.py
_clock = None
_hub = None
_journal = None


def init(clock, hub, journal):
    global _clock, _hub, _journal
    _clock = clock
    _hub = hub
    _journal = journal


@router.get("/stats")
async def stats():
    """Clock metrics, player count, delivery and journal counters."""
    return {
        "timestamp": format_timestamp(),
        "simulation": {
            **_clock.metrics().to_dict(),
            "particle_count": _clock.field.count,
            "player_count": len(_hub.registry),
            "state": _clock.state,
        },
        "hub": _hub.get_stats(),
        "journal": _journal.get_stats(),
    }


@router.get("/players")
async def players():
    return _hub.registry.to_dict()


@router.get("/connections")
async def connections():
    return _hub.get_connection_info()
