"""Discovery pipeline: candidates, scoring, reconciliation."""

import asyncio
import time
from concurrent.futures import Executor

from resonance.discovery.candidates import CandidateGenerator
from resonance.exceptions import VectorIndexError
from resonance.features.models import FeatureRecord
from resonance.features.store import FeatureStore
from resonance.index.service import VectorIndex
from resonance.links.models import ReconcileResult, SimilarityLink
from resonance.links.reconciler import LinkReconciler
from resonance.logging_config import get_logger
from resonance.observability.metrics import track_discovery_run, track_link_changes
from resonance.scoring.models import ScoreResult
from resonance.scoring.scorer import PairwiseScorer

logger = get_logger(__name__)


class DiscoveryPipeline:
    """Runs discovery for one photo.

    Candidate generation and reconciliation run on the event loop; the
    CPU-bound scoring of all candidates runs in an executor.
    """

    def __init__(
        self,
        store: FeatureStore,
        generator: CandidateGenerator,
        scorer: PairwiseScorer,
        reconciler: LinkReconciler,
        index: VectorIndex | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            store: Feature store.
            generator: Candidate generator.
            scorer: Pairwise scorer.
            reconciler: Link reconciler.
            index: Optional vector index kept in sync with the store.
        """
        self._store = store
        self._generator = generator
        self._scorer = scorer
        self._reconciler = reconciler
        self._index = index

    async def run(
        self,
        photo_id: str,
        executor: Executor | None = None,
    ) -> ReconcileResult:
        """Discover links for a newly analyzed photo.

        Args:
            photo_id: Photo to process.
            executor: Executor for scoring (loop default if omitted).

        Returns:
            ReconcileResult for the photo.
        """
        start_time = time.perf_counter()
        success = False
        candidates = 0

        try:
            record = self._store.get(photo_id)
            if record is None:
                logger.debug("Photo gone before run", extra={"photo_id": photo_id})
                success = True
                return ReconcileResult()

            if self._index is not None:
                await self._sync_index(record)

            peers: list[FeatureRecord] = []
            if record.is_analyzed:
                # Linked opponents are always re-scored so hysteresis applies to them.
                candidate_ids = dict.fromkeys(
                    [
                        *await self._generator.candidates_for(photo_id),
                        *self._reconciler.linked_opponents(photo_id),
                    ]
                )
                peers = [
                    peer
                    for peer in (self._store.get(cid) for cid in candidate_ids)
                    if peer is not None
                    and peer.is_analyzed
                    and peer.collection != record.collection
                ]
            candidates = len(peers)

            loop = asyncio.get_running_loop()
            scored = await loop.run_in_executor(executor, self._score_all, record, peers)

            result = await self._reconciler.reconcile(record, scored)
            track_link_changes(
                created=len(result.created),
                updated=len(result.updated),
                retired=len(result.retired),
                active=self._reconciler.active_links,
            )

            logger.info(
                "Discovery run completed",
                extra={
                    "photo_id": photo_id,
                    "candidates": candidates,
                    "links_created": len(result.created),
                    "links_updated": len(result.updated),
                    "links_retired": len(result.retired),
                },
            )
            success = True
            return result

        finally:
            track_discovery_run(
                "analyze",
                time.perf_counter() - start_time,
                candidates=candidates,
                success=success,
            )

    async def retire(self, photo_id: str) -> list[SimilarityLink]:
        """Retire every link of a removed photo.

        Args:
            photo_id: Removed photo.

        Returns:
            Retired links.
        """
        start_time = time.perf_counter()
        success = False

        try:
            if self._index is not None:
                try:
                    await self._index.delete(photo_id)
                except VectorIndexError as e:
                    logger.warning(
                        "Failed to drop photo from vector index",
                        extra={"photo_id": photo_id, "error": e.message},
                    )

            retired = await self._reconciler.retire_photo(photo_id)
            track_link_changes(retired=len(retired), active=self._reconciler.active_links)
            success = True
            return retired

        finally:
            track_discovery_run("remove", time.perf_counter() - start_time, success=success)

    def _score_all(
        self,
        record: FeatureRecord,
        peers: list[FeatureRecord],
    ) -> list[tuple[FeatureRecord, ScoreResult]]:
        return [(peer, self._scorer.score(record, peer)) for peer in peers]

    async def _sync_index(self, record: FeatureRecord) -> None:
        """Mirror the record into the vector index; unanalyzed photos are dropped."""
        assert self._index is not None
        try:
            if record.is_analyzed:
                await self._index.upsert(record)
            else:
                await self._index.delete(record.photo_id)
        except VectorIndexError as e:
            logger.warning(
                "Failed to index photo",
                extra={"photo_id": record.photo_id, "error": e.message},
            )
