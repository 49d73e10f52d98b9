"""Simulation control routes."""

from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel

router = APIRouter(prefix="/api/v1/control", tags=["control"])

# Set by app.py
_hub = None


class ResetRequest(BaseModel):
    particle_count: Optional[int] = None


def init(hub):
    global _hub
    _hub = hub


@router.post("/reset")
async def reset(request: Optional[ResetRequest] = None):
    """Reinitialise the particle pool, optionally with a new (clamped) size."""
    count = _hub.clock.config.particle_count
    if request is not None and request.particle_count is not None:
        count = request.particle_count
    applied = await _hub.set_particle_count(count)
    return {"ok": True, "particle_count": applied}
