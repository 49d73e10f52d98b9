"""Wire frames exchanged with browser clients (JSON text frames)."""

import json
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from core.errors import ProtocolError

# Inbound
UPDATE_POSITION = "updatePosition"
UPDATE_PARAMS = "updateParams"
SET_PARTICLE_COUNT = "setParticleCount"

# Outbound
ID = "id"
FULL_STATE = "fullState"
PARTICLE_UPDATE = "particleUpdate"
PLAYER_UPDATE = "playerUpdate"
PLAYERS = "players"
SYSTEM_MESSAGE = "systemMessage"


class Vec2(BaseModel):
    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    x: float
    y: float


class UpdatePosition(BaseModel):
    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    position: Vec2


class WellParams(BaseModel):
    """Partial gravity-well parameters; absent fields stay unchanged."""
    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    position: Optional[Vec2] = None
    gravityStrength: Optional[float] = None
    lensingStrength: Optional[float] = None
    prismRadius: Optional[float] = None
    prismStrength: Optional[float] = None
    prismDispersion: Optional[float] = None


class UpdateParams(BaseModel):
    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    params: WellParams


class SetParticleCount(BaseModel):
    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    count: float


INBOUND = {
    UPDATE_POSITION: UpdatePosition,
    UPDATE_PARAMS: UpdateParams,
    SET_PARTICLE_COUNT: SetParticleCount,
}


def parse_message(raw, player_id=None):
    """Decode one inbound frame.

    Returns (type, model); model is None for unknown types, which callers
    ignore. Raises ProtocolError for anything that is not a well-formed frame.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise ProtocolError("invalid json", player_id=player_id, cause=exc)
    if not isinstance(data, dict):
        raise ProtocolError("frame is not an object", player_id=player_id)

    msg_type = data.get("type")
    if msg_type is not None and not isinstance(msg_type, str):
        raise ProtocolError("type is not a string", player_id=player_id)
    model = INBOUND.get(msg_type)
    if model is None:
        return msg_type, None
    try:
        return msg_type, model.model_validate(data)
    except ValidationError as exc:
        raise ProtocolError(f"invalid {msg_type}", player_id=player_id, msg_type=msg_type, cause=exc)


def encode(frame):
    return json.dumps(frame, separators=(",", ":"))


def build_metrics(clock, player_count) -> Dict[str, Any]:
    return {
        "physicsTime": clock.last_tick_ms,
        "avgPhysicsTime": clock.avg_tick_ms,
        "particleCount": clock.field.count,
        "playerCount": player_count,
    }


def id_frame(player_id):
    return {"type": ID, "id": player_id}


def full_state_frame(snapshot, players, simulation_time, metrics=None):
    frame = {
        "type": FULL_STATE,
        "state": {
            "particles": snapshot.particles_to_list(),
            "players": players,
            "simulationTime": simulation_time,
        },
    }
    if metrics is not None:
        frame["metrics"] = metrics
    return frame


def particle_update_frame(snapshot, simulation_time, metrics=None):
    frame = {"type": PARTICLE_UPDATE, "particles": snapshot.positions_to_list(), "time": simulation_time}
    if metrics is not None:
        frame["metrics"] = metrics
    return frame


def player_update_frame(player_id, data):
    return {"type": PLAYER_UPDATE, "playerId": player_id, "data": data}


def players_frame(ids):
    return {"type": PLAYERS, "players": list(ids)}


def system_frame(text):
    return {"type": SYSTEM_MESSAGE, "text": text}
