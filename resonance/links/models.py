"""Similarity link data models."""

from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from resonance.features.models import Collection, FeatureRecord

PairKey = tuple[str, str]


def pair_key(a: FeatureRecord, b: FeatureRecord) -> PairKey:
    """Normalized (MyWork id, Inspiration id) key for a cross-collection pair.

    Raises:
        ValueError: If both records belong to the same collection.
    """
    if a.collection == b.collection:
        raise ValueError(
            f"Photos {a.photo_id} and {b.photo_id} share collection {a.collection.value}"
        )
    if a.collection is Collection.MY_WORK:
        return (a.photo_id, b.photo_id)
    return (b.photo_id, a.photo_id)


class SimilarityLink(BaseModel):
    """A published resonance between a MyWork and an Inspiration photo.

    Links are immutable values. Updates replace the whole link, keeping
    ``id`` and ``created_at``, so readers never see a partial update.

    Attributes:
        id: Stable link identifier.
        photo_a_id: MyWork-side photo.
        photo_b_id: Inspiration-side photo.
        overall_score: Combined score in [0, 1].
        composition_score: Layout similarity, when computable.
        color_score: Color overlap, when computable.
        subject_score: Embedding similarity, when computable.
        created_at: First publication time.
        updated_at: Last in-place update time.
        description: Short natural-language rationale.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()), description="Link identifier")
    photo_a_id: str = Field(description="MyWork photo identifier")
    photo_b_id: str = Field(description="Inspiration photo identifier")
    overall_score: float = Field(ge=0.0, le=1.0, description="Overall score")
    composition_score: float | None = Field(default=None, ge=0.0, le=1.0)
    color_score: float | None = Field(default=None, ge=0.0, le=1.0)
    subject_score: float | None = Field(default=None, ge=0.0, le=1.0)
    created_at: datetime = Field(description="Creation time")
    updated_at: datetime = Field(description="Last update time")
    description: str | None = Field(default=None, description="Rationale")

    @property
    def pair_key(self) -> PairKey:
        """Normalized pair key."""
        return (self.photo_a_id, self.photo_b_id)

    def opponent_of(self, photo_id: str) -> str:
        """The other photo of the pair."""
        return self.photo_b_id if photo_id == self.photo_a_id else self.photo_a_id

    def touches(self, photo_id: str) -> bool:
        """Whether the photo is either side of the link."""
        return photo_id in (self.photo_a_id, self.photo_b_id)


class ResonanceDiscovered(BaseModel):
    """Notification emitted once when a link is first created."""

    model_config = ConfigDict(frozen=True)

    link_id: str = Field(description="Created link identifier")
    photo_a_id: str = Field(description="MyWork photo identifier")
    photo_b_id: str = Field(description="Inspiration photo identifier")
    overall_score: float = Field(description="Score at creation")
    discovered_at: datetime = Field(description="Creation time")

    @classmethod
    def from_link(cls, link: SimilarityLink) -> "ResonanceDiscovered":
        """Build the notification for a freshly created link."""
        return cls(
            link_id=link.id,
            photo_a_id=link.photo_a_id,
            photo_b_id=link.photo_b_id,
            overall_score=link.overall_score,
            discovered_at=link.created_at,
        )


class ReconcileResult(BaseModel):
    """Outcome of reconciling one photo's scored candidates.

    Attributes:
        created: Links published for the first time.
        updated: Existing links whose fields changed.
        retired: Links deleted.
    """

    created: list[SimilarityLink] = Field(default_factory=list)
    updated: list[SimilarityLink] = Field(default_factory=list)
    retired: list[SimilarityLink] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        """Whether reconciliation altered the link set."""
        return bool(self.created or self.updated or self.retired)
