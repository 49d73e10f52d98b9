"""Integration tests for HTTP routes."""

import pytest

from web.app import BANNER


class TestIndex:
    @pytest.mark.asyncio
    async def test_banner(self, client):
        response = await client.get("/")
        assert response.status_code == 200
        assert response.text == BANNER


class TestHealthRoutes:
    @pytest.mark.asyncio
    async def test_health_endpoint(self, client):
        response = await client.get("/api/v1/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data

    @pytest.mark.asyncio
    async def test_heartbeat_endpoint(self, client):
        response = await client.get("/api/v1/heartbeat")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["tick"] == 0
        assert data["clock_state"] == "stopped"
        assert "timestamp" in data


class TestApiRoutes:
    @pytest.mark.asyncio
    async def test_stats(self, client, app):
        response = await client.get("/api/v1/stats")
        assert response.status_code == 200
        data = response.json()
        assert data["simulation"]["particle_count"] == app.state.field.count
        assert data["simulation"]["player_count"] == 0
        assert data["hub"]["connection_count"] == 0
        assert set(data["journal"]) == {"queued", "written", "dropped"}

    @pytest.mark.asyncio
    async def test_players_empty(self, client):
        response = await client.get("/api/v1/players")
        assert response.json() == {}

    @pytest.mark.asyncio
    async def test_players_lists_wells(self, client, app):
        app.state.registry.add(3, {"position": {"x": 1.0, "y": 2.0}})
        data = (await client.get("/api/v1/players")).json()
        assert data["3"]["position"] == {"x": 1.0, "y": 2.0}

    @pytest.mark.asyncio
    async def test_connections_empty(self, client):
        response = await client.get("/api/v1/connections")
        assert response.json() == []


class TestControlRoutes:
    @pytest.mark.asyncio
    async def test_reset_with_count_is_clamped(self, client, app):
        response = await client.post("/api/v1/control/reset", json={"particle_count": 10})
        assert response.status_code == 200
        assert response.json() == {"ok": True, "particle_count": 500}
        assert app.state.field.count == 500

    @pytest.mark.asyncio
    async def test_reset_without_body_keeps_count(self, client, app):
        app.state.clock.advance(30.0)
        response = await client.post("/api/v1/control/reset")
        assert response.json()["particle_count"] == app.state.config.simulation.particle_count
        assert app.state.clock.simulation_time == 0.0
        assert app.state.clock.generation == 1

    @pytest.mark.asyncio
    async def test_reset_rejects_bad_body(self, client):
        response = await client.post("/api/v1/control/reset", json={"particle_count": "lots"})
        assert response.status_code == 422
