"""Discovery engine facade.

Wires the feature store, scorer, candidate generator, reconciler and
scheduler together and exposes the inbound event handlers and the
read-only link queries used by the presentation layer.
"""

from collections import deque
from collections.abc import Callable
from types import TracebackType

from resonance.config import Settings, get_settings
from resonance.discovery.candidates import CandidateGenerator
from resonance.discovery.models import EngineStats, PhotoAnalyzed, PhotoRemoved
from resonance.discovery.pipeline import DiscoveryPipeline
from resonance.discovery.scheduler import DiscoveryScheduler
from resonance.features.models import Collection, FeatureRecord
from resonance.features.store import FeatureStore
from resonance.index.service import QdrantVectorIndex, VectorIndex
from resonance.links.models import ResonanceDiscovered, SimilarityLink
from resonance.links.reconciler import LinkReconciler
from resonance.links.repository import LinkRepository
from resonance.logging_config import get_logger
from resonance.scoring.scorer import PairwiseScorer

logger = get_logger(__name__)

DiscoverySubscriber = Callable[[ResonanceDiscovered], None]


class DiscoveryEngine:
    """Maintains cross-collection similarity links for a photo library.

    Usage:
        async with DiscoveryEngine() as engine:
            engine.on_photo_analyzed(event)
            await engine.wait_idle()
            links = engine.list_links()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        index: VectorIndex | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            settings: Application settings (cached settings if omitted).
            index: Vector index; a Qdrant index is created when
                ``settings.qdrant.enabled`` and none is given.
        """
        self._settings = settings or get_settings()
        if index is None and self._settings.qdrant.enabled:
            index = QdrantVectorIndex(self._settings.qdrant)
        self._index = index

        self.store = FeatureStore()
        self.links = LinkRepository()
        self._recent: deque[ResonanceDiscovered] = deque(
            maxlen=self._settings.discovery.recent_discoveries_limit
        )
        self._subscribers: list[DiscoverySubscriber] = []

        self._reconciler = LinkReconciler(
            self.store,
            self.links,
            settings=self._settings.discovery,
            on_discovered=self._publish,
        )
        self._pipeline = DiscoveryPipeline(
            self.store,
            CandidateGenerator(self.store, self._settings.discovery, index=index),
            PairwiseScorer(self._settings.scoring),
            self._reconciler,
            index=index,
        )
        self.scheduler = DiscoveryScheduler(self._pipeline, self._settings.discovery)
        self.store.subscribe(self.scheduler)

    async def start(self) -> None:
        """Start background discovery."""
        await self.scheduler.start()

    async def stop(self) -> None:
        """Stop background discovery and release the index client."""
        await self.scheduler.stop()
        if self._index is not None:
            await self._index.close()

    async def __aenter__(self) -> "DiscoveryEngine":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()

    async def wait_idle(self) -> None:
        """Wait until every scheduled discovery run has finished."""
        await self.scheduler.wait_idle()

    def on_photo_analyzed(self, event: PhotoAnalyzed) -> FeatureRecord:
        """Record a photo's analysis; discovery runs in the background.

        Args:
            event: Analysis result for one photo.

        Returns:
            The stored feature record.
        """
        return self.store.upsert(
            event.photo_id,
            event.collection,
            event.embedding,
            event.dominant_colors,
            composition=event.composition,
        )

    def on_photo_removed(self, event: PhotoRemoved) -> None:
        """Forget a deleted photo; its links are retired in the background."""
        self.store.remove(event.photo_id)

    def list_links(
        self,
        min_score: float = 0.0,
        limit: int | None = None,
        photo_id: str | None = None,
    ) -> list[SimilarityLink]:
        """Current links, best first.

        Args:
            min_score: Minimum overall score.
            limit: Maximum links to return.
            photo_id: Only links touching this photo.

        Returns:
            Ranked links.
        """
        if photo_id is not None:
            links = [
                link
                for link in self.links.links_for_photo(photo_id)
                if link.overall_score >= min_score
            ]
            return links[:limit] if limit is not None else links
        return self.links.list_links(min_score=min_score, limit=limit)

    def get_link(self, link_id: str) -> SimilarityLink | None:
        """Return a link by id."""
        return self.links.get(link_id)

    def links_for_photo(self, photo_id: str) -> list[SimilarityLink]:
        """Links touching a photo, best first."""
        return self.links.links_for_photo(photo_id)

    def subscribe(self, callback: DiscoverySubscriber) -> Callable[[], None]:
        """Register a callback for new resonance notifications.

        Returns:
            A function that removes the subscription.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def recent_discoveries(self, limit: int | None = None) -> list[ResonanceDiscovered]:
        """Most recent notifications, newest first."""
        events = list(reversed(self._recent))
        return events[:limit] if limit is not None else events

    def stats(self) -> EngineStats:
        """Corpus, link and scheduler counts."""
        return EngineStats(
            my_work_photos=self.store.count(Collection.MY_WORK),
            inspiration_photos=self.store.count(Collection.INSPIRATION),
            links=len(self.links),
            scheduler=self.scheduler.status(),
        )

    def _publish(self, event: ResonanceDiscovered) -> None:
        self._recent.append(event)
        logger.info(
            "Resonance discovered",
            extra={
                "link_id": event.link_id,
                "photo_a_id": event.photo_a_id,
                "photo_b_id": event.photo_b_id,
                "overall_score": round(event.overall_score, 4),
            },
        )
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Resonance subscriber failed", extra={"link_id": event.link_id})
