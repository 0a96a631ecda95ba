"""Merge scored candidate pairs into the link set."""

import asyncio
from collections.abc import AsyncIterator, Callable, Hashable, Sequence
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from resonance.config import DiscoverySettings, get_settings
from resonance.features.models import FeatureRecord
from resonance.features.store import FeatureStore
from resonance.links.models import (
    PairKey,
    ReconcileResult,
    ResonanceDiscovered,
    SimilarityLink,
    pair_key,
)
from resonance.links.repository import LinkRepository
from resonance.logging_config import get_logger
from resonance.scoring.models import ScoreResult

logger = get_logger(__name__)

DiscoveryCallback = Callable[[ResonanceDiscovered], None]


class KeyedLocks:
    """Lazily created asyncio locks, one per key, dropped when unused."""

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        """Hold the lock for ``key``."""
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class LinkReconciler:
    """Creates, updates and retires links for one photo at a time.

    Thresholds form a hysteresis band: a pair is published at or above
    ``publish_threshold`` but an existing link survives until its score
    drops below ``retire_threshold``. Pairs scoring inside the band are
    left exactly as they are.
    """

    def __init__(
        self,
        store: FeatureStore,
        repository: LinkRepository,
        settings: DiscoverySettings | None = None,
        on_discovered: DiscoveryCallback | None = None,
    ) -> None:
        """Initialize the reconciler.

        Args:
            store: Feature store, consulted before every publish.
            repository: Link collection to mutate.
            settings: Thresholds and description policy.
            on_discovered: Called once for every newly created link.
        """
        self._store = store
        self._repository = repository
        self._settings = settings or get_settings().discovery
        self._on_discovered = on_discovered
        self._locks = KeyedLocks()

    @property
    def active_links(self) -> int:
        """Current number of links."""
        return len(self._repository)

    async def reconcile(
        self,
        record: FeatureRecord,
        scored: Sequence[tuple[FeatureRecord, ScoreResult]],
    ) -> ReconcileResult:
        """Merge a photo's freshly scored candidates into the link set.

        Scores are only applied while both records they were computed
        from are still current. If the photo itself changed or was removed
        the whole result is discarded, since the store change already
        scheduled another run for it. A pair whose opponent changed is
        left untouched for the opponent's own run.

        Args:
            record: Snapshot of the photo the candidates were scored against.
            scored: (opponent snapshot, score) pairs from the latest run.

        Returns:
            ReconcileResult listing created, updated and retired links.
        """
        result = ReconcileResult()
        photo_id = record.photo_id
        if not self._is_current(record):
            logger.info("Discarding results for stale photo", extra={"photo_id": photo_id})
            return result

        seen: set[PairKey] = set()
        aborted = False
        for opponent, score in scored:
            if opponent.collection == record.collection:
                logger.warning(
                    "Ignoring same-collection pair",
                    extra={"photo_id": photo_id, "opponent_id": opponent.photo_id},
                )
                continue

            key = pair_key(record, opponent)
            seen.add(key)
            async with self._locks.hold(key):
                # Either side may have changed while we waited.
                if not self._is_current(record):
                    logger.info(
                        "Photo changed mid-reconcile, discarding remaining results",
                        extra={"photo_id": photo_id},
                    )
                    aborted = True
                    break
                if not self._is_current(opponent):
                    logger.debug(
                        "Skipping pair with stale opponent",
                        extra={"photo_id": photo_id, "opponent_id": opponent.photo_id},
                    )
                    continue
                self._apply(key, score, result)

        if not aborted:
            for link in self._repository.links_for_photo(photo_id):
                if link.pair_key in seen:
                    continue
                async with self._locks.hold(link.pair_key):
                    if not self._is_current(record):
                        break
                    retired = self._repository.delete(link.pair_key)
                if retired is not None:
                    result.retired.append(retired)

        if self._store.contains(photo_id):
            for link in result.created:
                current = self._repository.get_by_pair(link.pair_key)
                if current is not None and current.id == link.id:
                    self._notify(link)

        if result.changed:
            logger.info(
                "Reconciled links",
                extra={
                    "photo_id": photo_id,
                    "links_created": len(result.created),
                    "links_updated": len(result.updated),
                    "links_retired": len(result.retired),
                },
            )
        return result

    def linked_opponents(self, photo_id: str) -> list[str]:
        """Photos currently linked to ``photo_id``."""
        return [link.opponent_of(photo_id) for link in self._repository.links_for_photo(photo_id)]

    async def retire_photo(self, photo_id: str) -> list[SimilarityLink]:
        """Delete every link touching a photo.

        Args:
            photo_id: Removed photo.

        Returns:
            The retired links.
        """
        retired = []
        for link in self._repository.links_for_photo(photo_id):
            async with self._locks.hold(link.pair_key):
                removed = self._repository.delete(link.pair_key)
            if removed is not None:
                retired.append(removed)

        if retired:
            logger.info(
                "Retired links for removed photo",
                extra={"photo_id": photo_id, "links_retired": len(retired)},
            )
        return retired

    def _is_current(self, snapshot: FeatureRecord) -> bool:
        """Whether the store still holds these features for the photo."""
        current = self._store.get(snapshot.photo_id)
        return current is not None and current.same_features(snapshot)

    def _apply(self, key: PairKey, score: ScoreResult, result: ReconcileResult) -> None:
        existing = self._repository.get_by_pair(key)

        if existing is None:
            if score.overall >= self._settings.publish_threshold:
                link = _new_link(key, score)
                self._repository.put(link)
                result.created.append(link)
                logger.debug(
                    "Created link",
                    extra={"link_id": link.id, "overall_score": link.overall_score},
                )
            return

        if score.overall < self._settings.retire_threshold:
            retired = self._repository.delete(key)
            if retired is not None:
                result.retired.append(retired)
            return

        refreshed = self._refresh(existing, score)
        if refreshed is not existing:
            self._repository.put(refreshed)
            result.updated.append(refreshed)

    def _refresh(self, link: SimilarityLink, score: ScoreResult) -> SimilarityLink:
        """Return the link with updated scores, or the same object if nothing changed."""
        description = link.description
        signals_changed = score.signals() != _link_signals(link)
        delta = abs(score.overall - link.overall_score)
        if description is None or signals_changed or delta >= self._settings.material_change_delta:
            description = score.description

        changes = {
            "overall_score": score.overall,
            "composition_score": score.composition,
            "color_score": score.color,
            "subject_score": score.subject,
            "description": description,
        }
        if all(getattr(link, name) == value for name, value in changes.items()):
            return link
        return link.model_copy(update={**changes, "updated_at": datetime.now(UTC)})

    def _notify(self, link: SimilarityLink) -> None:
        if self._on_discovered is None:
            return
        try:
            self._on_discovered(ResonanceDiscovered.from_link(link))
        except Exception:
            logger.exception("Discovery callback failed", extra={"link_id": link.id})


def _new_link(key: PairKey, score: ScoreResult) -> SimilarityLink:
    now = datetime.now(UTC)
    return SimilarityLink(
        photo_a_id=key[0],
        photo_b_id=key[1],
        overall_score=score.overall,
        composition_score=score.composition,
        color_score=score.color,
        subject_score=score.subject,
        created_at=now,
        updated_at=now,
        description=score.description,
    )


def _link_signals(link: SimilarityLink) -> tuple[str, ...]:
    return tuple(
        name
        for name, value in (
            ("composition", link.composition_score),
            ("color", link.color_score),
            ("subject", link.subject_score),
        )
        if value is not None
    )
