"""Integration tests for discovery API routes."""

import asyncio

from httpx import ASGITransport, AsyncClient

from resonance.api.app import create_app
from resonance.config import Settings
from resonance.discovery.engine import DiscoveryEngine

P1 = {
    "photo_id": "P1",
    "collection": "my_work",
    "embedding": [1.0, 0.0],
    "dominant_colors": ["red"],
}
P2 = {
    "photo_id": "P2",
    "collection": "inspiration",
    "embedding": [1.0, 0.0],
    "dominant_colors": ["red"],
}


async def _settle(engine: DiscoveryEngine) -> None:
    await asyncio.wait_for(engine.wait_idle(), timeout=5.0)


class TestPhotoEvents:
    """Tests for inbound photo events."""

    async def test_analyzed_accepted(self, client: AsyncClient) -> None:
        """New analyses are accepted and scheduled."""
        response = await client.post("/api/v1/photos/analyzed", json=P1)

        assert response.status_code == 202
        data = response.json()
        assert data["photo_id"] == "P1"
        assert data["accepted"] is True
        assert data["state"] in ("pending", "in_flight", "idle")

    async def test_repeated_analysis_not_accepted(
        self, client: AsyncClient, engine: DiscoveryEngine
    ) -> None:
        """Identical re-sends do not change state."""
        await client.post("/api/v1/photos/analyzed", json=P1)
        await _settle(engine)

        response = await client.post("/api/v1/photos/analyzed", json=P1)

        assert response.json()["accepted"] is False

    async def test_invalid_event_rejected(self, client: AsyncClient) -> None:
        """Malformed events fail request validation."""
        response = await client.post(
            "/api/v1/photos/analyzed",
            json={**P1, "embedding": []},
        )
        assert response.status_code == 422

    async def test_composition_range_validated(self, client: AsyncClient) -> None:
        """Composition components must lie in [0, 1]."""
        response = await client.post(
            "/api/v1/photos/analyzed",
            json={**P1, "composition": [0.5, 1.5]},
        )
        assert response.status_code == 422

    async def test_dimension_mismatch_returns_400(self, client: AsyncClient) -> None:
        """Embeddings of the wrong size map to a structured 400."""
        await client.post("/api/v1/photos/analyzed", json=P1)

        response = await client.post(
            "/api/v1/photos/analyzed",
            json={**P2, "embedding": [1.0, 0.0, 0.0]},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "RES-2001"

    async def test_remove_known_photo(self, client: AsyncClient) -> None:
        """Removing a known photo is accepted."""
        await client.post("/api/v1/photos/analyzed", json=P1)

        response = await client.delete("/api/v1/photos/P1")

        assert response.status_code == 202
        assert response.json()["accepted"] is True

    async def test_remove_unknown_photo(self, client: AsyncClient) -> None:
        """Removing an unknown photo is a no-op."""
        response = await client.delete("/api/v1/photos/nope")

        assert response.status_code == 202
        assert response.json() == {"photo_id": "nope", "accepted": False, "state": "idle"}


class TestLinkQueries:
    """Tests for link query endpoints."""

    async def test_links_discovered(self, client: AsyncClient, engine: DiscoveryEngine) -> None:
        """A matching pair appears in every link view."""
        await client.post("/api/v1/photos/analyzed", json=P1)
        await client.post("/api/v1/photos/analyzed", json=P2)
        await _settle(engine)

        links = (await client.get("/api/v1/links")).json()
        assert len(links) == 1
        link = links[0]
        assert link["photo_a_id"] == "P1"
        assert link["photo_b_id"] == "P2"
        assert link["overall_score"] > 0.99

        by_id = await client.get(f"/api/v1/links/{link['id']}")
        assert by_id.status_code == 200
        assert by_id.json()["id"] == link["id"]

        for_photo = (await client.get("/api/v1/photos/P2/links")).json()
        assert [item["id"] for item in for_photo] == [link["id"]]

        discoveries = (await client.get("/api/v1/discoveries")).json()
        assert [item["link_id"] for item in discoveries] == [link["id"]]

    async def test_min_score_filter(self, client: AsyncClient, engine: DiscoveryEngine) -> None:
        """min_score hides weaker links."""
        await client.post("/api/v1/photos/analyzed", json=P1)
        await client.post("/api/v1/photos/analyzed", json=P2)
        await _settle(engine)

        response = await client.get("/api/v1/links", params={"min_score": 1.0})

        assert response.status_code == 200
        assert all(link["overall_score"] >= 1.0 for link in response.json())

    async def test_link_not_found(self, client: AsyncClient) -> None:
        """Unknown link ids return a structured 404."""
        response = await client.get("/api/v1/links/missing")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "RES-4001"

    async def test_invalid_limit(self, client: AsyncClient) -> None:
        """Out-of-range limits are rejected."""
        response = await client.get("/api/v1/links", params={"limit": 0})
        assert response.status_code == 422

    async def test_stats(self, client: AsyncClient, engine: DiscoveryEngine) -> None:
        """Stats report corpus and link counts."""
        await client.post("/api/v1/photos/analyzed", json=P1)
        await client.post("/api/v1/photos/analyzed", json=P2)
        await _settle(engine)

        data = (await client.get("/api/v1/stats")).json()

        assert data["my_work_photos"] == 1
        assert data["inspiration_photos"] == 1
        assert data["links"] == 1
        assert data["scheduler"]["running"] is True


class TestEngineStartup:
    """Tests for lazy engine startup."""

    async def test_engine_started_on_first_request(self, settings: Settings) -> None:
        """Routes start a stopped engine."""
        engine = DiscoveryEngine(settings)
        app = create_app(engine=engine, settings=settings)
        transport = ASGITransport(app=app)
        try:
            async with AsyncClient(transport=transport, base_url="http://test") as ac:
                response = await ac.get("/api/v1/stats")

            assert response.status_code == 200
            assert engine.scheduler.running
        finally:
            await engine.stop()
