"""API routes for photo events and link queries."""

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel, Field

from resonance.discovery.engine import DiscoveryEngine
from resonance.discovery.models import (
    EngineStats,
    PhotoAnalyzed,
    PhotoRemoved,
    PhotoState,
)
from resonance.exceptions import ErrorCode, LinkError
from resonance.links.models import ResonanceDiscovered, SimilarityLink
from resonance.logging_config import get_logger

logger = get_logger(__name__)


router = APIRouter(prefix="/api/v1", tags=["Discovery"])


class EventAccepted(BaseModel):
    """Acknowledgement for an inbound photo event."""

    photo_id: str = Field(description="Photo identifier")
    accepted: bool = Field(description="Whether the event changed engine state")
    state: PhotoState = Field(description="Scheduling state after the event")


async def get_engine(request: Request) -> DiscoveryEngine:
    """Return the application's engine, starting it on first use."""
    engine: DiscoveryEngine = request.app.state.engine
    if not engine.scheduler.running:
        await engine.start()
    return engine


@router.post(
    "/photos/analyzed",
    response_model=EventAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
async def photo_analyzed_endpoint(
    event: PhotoAnalyzed,
    engine: DiscoveryEngine = Depends(get_engine),
) -> EventAccepted:
    """Ingest an analysis result. Discovery runs in the background."""
    previous = engine.store.get(event.photo_id)
    record = engine.on_photo_analyzed(event)
    changed = previous is None or not previous.same_features(record)

    return EventAccepted(
        photo_id=event.photo_id,
        accepted=changed,
        state=engine.scheduler.state_of(event.photo_id),
    )


@router.delete(
    "/photos/{photo_id}",
    response_model=EventAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
async def photo_removed_endpoint(
    photo_id: str,
    engine: DiscoveryEngine = Depends(get_engine),
) -> EventAccepted:
    """Remove a photo. Its links are retired in the background."""
    known = engine.store.contains(photo_id)
    engine.on_photo_removed(PhotoRemoved(photo_id=photo_id))

    return EventAccepted(
        photo_id=photo_id,
        accepted=known,
        state=engine.scheduler.state_of(photo_id),
    )


@router.get("/photos/{photo_id}/links", response_model=list[SimilarityLink])
async def photo_links_endpoint(
    photo_id: str,
    min_score: float = Query(default=0.0, ge=0.0, le=1.0),
    limit: int | None = Query(default=None, ge=1, le=1000),
    engine: DiscoveryEngine = Depends(get_engine),
) -> list[SimilarityLink]:
    """Links touching one photo, best first."""
    return engine.list_links(min_score=min_score, limit=limit, photo_id=photo_id)


@router.get("/links", response_model=list[SimilarityLink])
async def list_links_endpoint(
    min_score: float = Query(default=0.0, ge=0.0, le=1.0),
    limit: int | None = Query(default=None, ge=1, le=1000),
    engine: DiscoveryEngine = Depends(get_engine),
) -> list[SimilarityLink]:
    """All current links, best first."""
    return engine.list_links(min_score=min_score, limit=limit)


@router.get("/links/{link_id}", response_model=SimilarityLink)
async def get_link_endpoint(
    link_id: str,
    engine: DiscoveryEngine = Depends(get_engine),
) -> SimilarityLink:
    """A single link by id."""
    link = engine.get_link(link_id)
    if link is None:
        raise LinkError(
            f"Link not found: {link_id}",
            code=ErrorCode.LINK_NOT_FOUND,
            details={"link_id": link_id},
        )
    return link


@router.get("/discoveries", response_model=list[ResonanceDiscovered])
async def discoveries_endpoint(
    limit: int = Query(default=20, ge=1, le=1000),
    engine: DiscoveryEngine = Depends(get_engine),
) -> list[ResonanceDiscovered]:
    """Most recent resonance notifications, newest first."""
    return engine.recent_discoveries(limit=limit)


@router.get("/stats", response_model=EngineStats)
async def stats_endpoint(
    engine: DiscoveryEngine = Depends(get_engine),
) -> EngineStats:
    """Corpus, link and scheduler counts."""
    return engine.stats()
