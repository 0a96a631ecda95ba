"""In-memory feature record store."""

import math
import threading
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Protocol

from resonance.exceptions import ErrorCode, FeatureError, ValidationError
from resonance.features.models import Collection, FeatureRecord
from resonance.logging_config import get_logger

logger = get_logger(__name__)


class FeatureChangeListener(Protocol):
    """Receives notifications when a photo's features change."""

    def on_features_changed(self, photo_id: str) -> None:
        """Called after an upsert that changed scoring-relevant features."""
        ...

    def on_features_removed(self, photo_id: str) -> None:
        """Called after a known photo was removed."""
        ...


class FeatureStore:
    """Latest feature record per photo, keyed by photo id.

    Writes are serialized by a lock. Records are immutable, so ``get`` and
    ``list_by_collection`` hand out snapshots without copying. Listeners are
    notified synchronously, outside the lock, once the write is visible.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._records: dict[str, FeatureRecord] = {}
        self._analyzed: dict[Collection, dict[str, FeatureRecord]] = {
            collection: {} for collection in Collection
        }
        self._dimensions: int | None = None
        self._listeners: list[FeatureChangeListener] = []

    def subscribe(self, listener: FeatureChangeListener) -> None:
        """Register a change listener."""
        self._listeners.append(listener)

    @property
    def dimensions(self) -> int | None:
        """Embedding dimension shared by the analyzed corpus, if any."""
        return self._dimensions

    def upsert(
        self,
        photo_id: str,
        collection: Collection,
        embedding: Sequence[float] | None,
        dominant_colors: Sequence[str] = (),
        composition: Sequence[float] | None = None,
    ) -> FeatureRecord:
        """Insert or replace the features for a photo.

        Args:
            photo_id: Photo identifier.
            collection: Collection the photo belongs to.
            embedding: Embedding vector, or None if not yet analyzed.
            dominant_colors: Dominant color buckets.
            composition: Optional composition descriptor.

        Returns:
            The stored record.

        Raises:
            ValidationError: If the id is empty or a vector holds non-finite values.
            FeatureError: If the embedding dimension differs from the corpus.
        """
        if not photo_id:
            raise ValidationError("photo_id must not be empty")

        vector = _clean_vector(photo_id, "embedding", embedding)
        layout = _clean_vector(photo_id, "composition", composition)
        colors = tuple(dict.fromkeys(c for c in dominant_colors if c))

        with self._lock:
            previous = self._records.get(photo_id)
            peers = self.count() - (1 if previous is not None and previous.is_analyzed else 0)
            if (
                vector
                and peers > 0
                and self._dimensions is not None
                and len(vector) != self._dimensions
            ):
                raise FeatureError(
                    f"Embedding dimension {len(vector)} does not match corpus "
                    f"dimension {self._dimensions}",
                    code=ErrorCode.EMBEDDING_DIMENSION_MISMATCH,
                    details={"photo_id": photo_id, "expected": self._dimensions},
                )

            record = FeatureRecord(
                photo_id=photo_id,
                collection=collection,
                embedding=vector,
                dominant_colors=colors,
                composition=layout,
                analyzed_at=datetime.now(UTC) if vector else None,
            )

            if previous is not None:
                self._analyzed[previous.collection].pop(photo_id, None)

            self._records[photo_id] = record
            if record.is_analyzed:
                self._analyzed[collection][photo_id] = record
                if peers == 0:
                    self._dimensions = len(record.embedding)
            self._reset_dimensions_if_empty()

        changed = previous is None or not previous.same_features(record)
        if changed and (record.is_analyzed or (previous is not None and previous.is_analyzed)):
            logger.debug(
                "Features changed",
                extra={"photo_id": photo_id, "collection": collection.value},
            )
            for listener in self._listeners:
                listener.on_features_changed(photo_id)

        return record

    def remove(self, photo_id: str) -> None:
        """Remove a photo's record. Unknown ids are ignored."""
        with self._lock:
            previous = self._records.pop(photo_id, None)
            if previous is None:
                return
            self._analyzed[previous.collection].pop(photo_id, None)
            self._reset_dimensions_if_empty()

        logger.debug("Features removed", extra={"photo_id": photo_id})
        for listener in self._listeners:
            listener.on_features_removed(photo_id)

    def get(self, photo_id: str) -> FeatureRecord | None:
        """Return the current record for a photo, if any."""
        return self._records.get(photo_id)

    def contains(self, photo_id: str) -> bool:
        """Whether the photo is currently known to the store."""
        return photo_id in self._records

    def list_by_collection(self, collection: Collection) -> list[FeatureRecord]:
        """Return every analyzed record in a collection."""
        with self._lock:
            return list(self._analyzed[collection].values())

    def count(self, collection: Collection | None = None) -> int:
        """Number of analyzed records, optionally within one collection."""
        if collection is not None:
            return len(self._analyzed[collection])
        return sum(len(records) for records in self._analyzed.values())

    def __len__(self) -> int:
        return len(self._records)

    def _reset_dimensions_if_empty(self) -> None:
        if not any(self._analyzed.values()):
            self._dimensions = None


def _clean_vector(
    photo_id: str,
    field: str,
    values: Sequence[float] | None,
) -> tuple[float, ...] | None:
    """Normalize a vector to a float tuple, rejecting NaN and infinity."""
    if values is None:
        return None
    vector = tuple(float(v) for v in values)
    if not vector:
        return None
    if not all(math.isfinite(v) for v in vector):
        raise ValidationError(
            f"{field} contains non-finite values",
            details={"photo_id": photo_id, "field": field},
        )
    return vector
