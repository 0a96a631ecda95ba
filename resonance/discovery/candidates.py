"""Candidate generation for discovery runs."""

from resonance.config import DiscoverySettings, get_settings
from resonance.exceptions import VectorIndexError
from resonance.features.store import FeatureStore
from resonance.index.service import VectorIndex
from resonance.logging_config import get_logger

logger = get_logger(__name__)


class CandidateGenerator:
    """Chooses which opposite-collection photos to score for a photo.

    Small corpora are scored exhaustively. Above ``prefilter_min_corpus``
    only photos sharing a dominant color bucket are kept, which bounds the
    number of full-cost scorer calls per event. Photos without color tags
    cannot be judged by color and always stay in. When a vector index is
    configured its nearest neighbours are added back, so strong subject
    matches with different palettes are not lost.
    """

    def __init__(
        self,
        store: FeatureStore,
        settings: DiscoverySettings | None = None,
        index: VectorIndex | None = None,
    ) -> None:
        """Initialize the generator.

        Args:
            store: Feature store to draw candidates from.
            settings: Pre-filter configuration.
            index: Optional nearest-neighbour index.
        """
        self._store = store
        self._settings = settings or get_settings().discovery
        self._index = index

    async def candidates_for(self, photo_id: str) -> list[str]:
        """Return opposite-collection photo ids worth scoring against a photo.

        Args:
            photo_id: Just-analyzed photo.

        Returns:
            Sorted photo ids; empty when the photo is unknown or unanalyzed,
            or the opposite collection is empty.
        """
        record = self._store.get(photo_id)
        if record is None or not record.is_analyzed:
            return []

        opposite = record.collection.opposite
        pool = self._store.list_by_collection(opposite)
        if not pool:
            return []

        if len(pool) <= self._settings.prefilter_min_corpus or not record.dominant_colors:
            return sorted(peer.photo_id for peer in pool)

        colors = set(record.dominant_colors)
        selected = {
            peer.photo_id
            for peer in pool
            if not peer.dominant_colors or not colors.isdisjoint(peer.dominant_colors)
        }
        filtered = len(selected)

        if self._index is not None:
            known = {peer.photo_id for peer in pool}
            try:
                neighbours = await self._index.nearest(
                    record,
                    opposite,
                    limit=self._settings.index_top_k,
                )
            except VectorIndexError as e:
                logger.warning(
                    "Vector index unavailable, using color pre-filter only",
                    extra={"photo_id": photo_id, "error": e.message},
                )
            else:
                selected.update(n.photo_id for n in neighbours if n.photo_id in known)

        logger.debug(
            "Pre-filtered candidates",
            extra={
                "photo_id": photo_id,
                "pool": len(pool),
                "color_matches": filtered,
                "selected": len(selected),
            },
        )
        return sorted(selected)
