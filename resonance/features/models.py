"""Feature record data models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Collection(str, Enum):
    """Photo collection. Links only ever cross collections."""

    MY_WORK = "my_work"
    INSPIRATION = "inspiration"

    @property
    def opposite(self) -> "Collection":
        """The collection a photo in this one is compared against."""
        if self is Collection.MY_WORK:
            return Collection.INSPIRATION
        return Collection.MY_WORK


class FeatureRecord(BaseModel):
    """Latest known features for one photo.

    Records are immutable; the store replaces them on every upsert so
    readers always hold a consistent snapshot.

    Attributes:
        photo_id: Opaque stable photo identifier.
        collection: Collection the photo belongs to.
        embedding: Image embedding, absent until analysis completes.
        dominant_colors: Coarse color-bucket labels, de-duplicated, in order.
        composition: Optional geometric layout descriptor, components in [0, 1].
        analyzed_at: Time of the last successful analysis.
    """

    model_config = ConfigDict(frozen=True)

    photo_id: str = Field(min_length=1, description="Photo identifier")
    collection: Collection = Field(description="Owning collection")
    embedding: tuple[float, ...] | None = Field(
        default=None,
        description="Embedding vector",
    )
    dominant_colors: tuple[str, ...] = Field(
        default=(),
        description="Dominant color buckets",
    )
    composition: tuple[float, ...] | None = Field(
        default=None,
        description="Composition descriptor",
    )
    analyzed_at: datetime | None = Field(
        default=None,
        description="Last successful analysis time",
    )

    @property
    def is_analyzed(self) -> bool:
        """Whether the record is eligible for discovery."""
        return bool(self.embedding)

    def same_features(self, other: "FeatureRecord") -> bool:
        """Whether both records would score identically against any peer."""
        return (
            self.collection == other.collection
            and self.embedding == other.embedding
            and self.dominant_colors == other.dominant_colors
            and self.composition == other.composition
        )
