"""Unit tests for wire framing."""

import json

import pytest

from communication import protocol
from core.errors import ProtocolError


class TestParse:
    def test_update_position(self):
        msg_type, message = protocol.parse_message('{"type":"updatePosition","position":{"x":1,"y":-2.5}}')
        assert msg_type == protocol.UPDATE_POSITION
        assert message.position.model_dump() == {"x": 1.0, "y": -2.5}

    def test_update_params_partial(self):
        raw = json.dumps({"type": "updateParams", "params": {"prismRadius": 80, "unknownKnob": 1}})
        _, message = protocol.parse_message(raw)
        assert message.params.model_dump(exclude_none=True) == {"prismRadius": 80.0}

    def test_set_particle_count(self):
        _, message = protocol.parse_message('{"type":"setParticleCount","count":4000}')
        assert message.count == 4000

    def test_unknown_type_is_not_an_error(self):
        msg_type, message = protocol.parse_message('{"type":"dance"}')
        assert msg_type == "dance"
        assert message is None

    def test_missing_type_is_not_an_error(self):
        assert protocol.parse_message('{"hello":1}') == (None, None)

    @pytest.mark.parametrize("raw", ["not json", "", "{", b"\xff\xfe"])
    def test_invalid_json(self, raw):
        with pytest.raises(ProtocolError) as info:
            protocol.parse_message(raw, player_id=3)
        assert info.value.context["player_id"] == 3
        assert info.value.error_id

    @pytest.mark.parametrize("raw", ["[1,2]", "42", '"text"', "null", '{"type":[1]}'])
    def test_non_object_frame(self, raw):
        with pytest.raises(ProtocolError):
            protocol.parse_message(raw)

    @pytest.mark.parametrize("raw", [
        '{"type":"updatePosition"}',
        '{"type":"updatePosition","position":{"x":1}}',
        '{"type":"updatePosition","position":{"x":"left","y":0}}',
        '{"type":"updateParams","params":{"gravityStrength":"strong"}}',
        '{"type":"setParticleCount"}',
    ])
    def test_wrong_shape(self, raw):
        with pytest.raises(ProtocolError) as info:
            protocol.parse_message(raw)
        assert "msg_type" in info.value.context

    def test_non_finite_numbers_rejected(self):
        with pytest.raises(ProtocolError):
            protocol.parse_message('{"type":"updatePosition","position":{"x":NaN,"y":0}}')
        with pytest.raises(ProtocolError):
            protocol.parse_message('{"type":"setParticleCount","count":Infinity}')


class TestFrames:
    def test_id_frame(self):
        assert protocol.id_frame(5) == {"type": "id", "id": 5}

    def test_players_frame(self):
        assert protocol.players_frame([1, 2]) == {"type": "players", "players": [1, 2]}

    def test_system_frame(self):
        assert protocol.system_frame("hi") == {"type": "systemMessage", "text": "hi"}

    def test_player_update_frame(self):
        frame = protocol.player_update_frame(2, {"position": {"x": 0.0, "y": 1.0}})
        assert frame == {"type": "playerUpdate", "playerId": 2, "data": {"position": {"x": 0.0, "y": 1.0}}}

    def test_particle_update_omits_players(self, field):
        frame = protocol.particle_update_frame(field.get_snapshot(), 120.0, {"playerCount": 0})
        assert frame["type"] == "particleUpdate"
        assert frame["time"] == 120.0
        assert len(frame["particles"]) == field.count
        assert "players" not in frame
        assert "state" not in frame

    def test_metrics_optional(self, field):
        frame = protocol.particle_update_frame(field.get_snapshot(), 0.0)
        assert "metrics" not in frame

    def test_build_metrics(self, clock):
        clock.advance(16.0)
        metrics = protocol.build_metrics(clock, player_count=3)
        assert set(metrics) == {"physicsTime", "avgPhysicsTime", "particleCount", "playerCount"}
        assert metrics["particleCount"] == clock.field.count
        assert metrics["playerCount"] == 3

    def test_full_state_survives_client_parse(self, field, registry):
        """What a browser decodes from fullState matches what the server holds."""
        registry.add(1)
        registry.add(4, {"position": {"x": 10.0, "y": 20.0}})
        frame = protocol.full_state_frame(field.get_snapshot(), registry.to_dict(), 250.0)

        decoded = json.loads(protocol.encode(frame))

        assert decoded["type"] == "fullState"
        assert len(decoded["state"]["particles"]) == field.count
        assert {int(player_id) for player_id in decoded["state"]["players"]} == {1, 4}
        assert decoded["state"]["players"]["4"]["position"] == {"x": 10.0, "y": 20.0}
        assert decoded["state"]["simulationTime"] == 250.0
        first = decoded["state"]["particles"][0]
        assert first["x"] == pytest.approx(float(field.positions[0, 0]))

    def test_encode_is_compact(self):
        assert protocol.encode({"type": "id", "id": 1}) == '{"type":"id","id":1}'
