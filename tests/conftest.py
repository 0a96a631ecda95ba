"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from resonance.api.app import create_app
from resonance.config import DiscoverySettings, QdrantSettings, ScoringSettings, Settings
from resonance.discovery.engine import DiscoveryEngine


@pytest.fixture
def discovery_settings() -> DiscoverySettings:
    """Discovery settings with debouncing disabled."""
    return DiscoverySettings(debounce_seconds=0.0, max_workers=2)


@pytest.fixture
def settings(discovery_settings: DiscoverySettings) -> Settings:
    """Application settings isolated from the environment's Qdrant config."""
    return Settings(
        discovery=discovery_settings,
        scoring=ScoringSettings(),
        qdrant=QdrantSettings(enabled=False),
    )


@pytest.fixture
async def engine(settings: Settings) -> AsyncGenerator[DiscoveryEngine, None]:
    """Started discovery engine, stopped after the test.

    Yields:
        Running DiscoveryEngine.
    """
    engine = DiscoveryEngine(settings)
    await engine.start()
    yield engine
    await engine.stop()


@pytest.fixture
async def client(engine: DiscoveryEngine, settings: Settings) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client for a FastAPI app serving ``engine``.

    Yields:
        AsyncClient configured for testing.
    """
    app = create_app(engine=engine, settings=settings)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
