"""Discovery event and status models."""

from enum import Enum

from pydantic import BaseModel, Field, field_validator

from resonance.features.models import Collection


class PhotoAnalyzed(BaseModel):
    """Emitted by the analysis collaborator after a successful analysis.

    Repeated events for the same photo are re-analyses, not errors.

    Attributes:
        photo_id: Analyzed photo.
        collection: Collection the photo belongs to.
        embedding: Image embedding.
        dominant_colors: Coarse color buckets.
        composition: Optional layout descriptor, components in [0, 1].
    """

    photo_id: str = Field(min_length=1, description="Photo identifier")
    collection: Collection = Field(description="Owning collection")
    embedding: list[float] = Field(min_length=1, description="Embedding vector")
    dominant_colors: list[str] = Field(
        default_factory=list,
        description="Dominant color buckets",
    )
    composition: list[float] | None = Field(
        default=None,
        description="Composition descriptor",
    )

    @field_validator("composition")
    @classmethod
    def _check_composition(cls, value: list[float] | None) -> list[float] | None:
        if value is not None and any(not 0.0 <= v <= 1.0 for v in value):
            raise ValueError("composition components must lie in [0, 1]")
        return value


class PhotoRemoved(BaseModel):
    """Emitted when a photo is deleted from either collection."""

    photo_id: str = Field(min_length=1, description="Photo identifier")


class PhotoState(str, Enum):
    """Per-photo scheduling state."""

    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    IDLE = "idle"


class JobKind(str, Enum):
    """Work scheduled for a photo."""

    ANALYZE = "analyze"
    REMOVE = "remove"


class SchedulerStatus(BaseModel):
    """Point-in-time view of the scheduler.

    Attributes:
        running: Whether workers are active.
        workers: Configured worker count.
        pending: Photos waiting for a run.
        in_flight: Photos currently being processed.
    """

    running: bool = Field(description="Workers active")
    workers: int = Field(description="Worker count")
    pending: int = Field(default=0, description="Photos pending")
    in_flight: int = Field(default=0, description="Photos in flight")


class EngineStats(BaseModel):
    """Corpus, link and scheduler counts."""

    my_work_photos: int = Field(description="Analyzed MyWork photos")
    inspiration_photos: int = Field(description="Analyzed Inspiration photos")
    links: int = Field(description="Active similarity links")
    scheduler: SchedulerStatus = Field(description="Scheduler status")
