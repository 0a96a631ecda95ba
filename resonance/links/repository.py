"""Pair-keyed similarity link repository."""

import threading

from resonance.exceptions import ErrorCode, LinkError
from resonance.links.models import PairKey, SimilarityLink
from resonance.logging_config import get_logger

logger = get_logger(__name__)


class LinkRepository:
    """In-memory link collection enforcing one link per pair.

    Links are indexed by pair key, by id and by photo, so existence checks
    and per-photo lookups are O(1). Every mutation swaps whole immutable
    link values under a lock; readers get lists of those values.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._by_pair: dict[PairKey, SimilarityLink] = {}
        self._by_id: dict[str, PairKey] = {}
        self._by_photo: dict[str, set[PairKey]] = {}

    def get(self, link_id: str) -> SimilarityLink | None:
        """Return a link by id."""
        with self._lock:
            key = self._by_id.get(link_id)
            return self._by_pair.get(key) if key is not None else None

    def get_by_pair(self, key: PairKey) -> SimilarityLink | None:
        """Return the link for a normalized pair key."""
        return self._by_pair.get(key)

    def put(self, link: SimilarityLink) -> None:
        """Insert a link or replace the existing link for its pair.

        Raises:
            LinkError: If the pair already holds a link with a different id,
                or the id is already used by another pair.
        """
        key = link.pair_key
        with self._lock:
            existing = self._by_pair.get(key)
            if existing is not None and existing.id != link.id:
                raise LinkError(
                    f"Pair already linked: {key[0]} / {key[1]}",
                    code=ErrorCode.LINK_EXISTS,
                    details={"existing_id": existing.id, "new_id": link.id},
                )
            owner = self._by_id.get(link.id)
            if owner is not None and owner != key:
                raise LinkError(
                    f"Link id already in use: {link.id}",
                    code=ErrorCode.LINK_EXISTS,
                    details={"link_id": link.id},
                )

            self._by_pair[key] = link
            self._by_id[link.id] = key
            for photo_id in key:
                self._by_photo.setdefault(photo_id, set()).add(key)

    def delete(self, key: PairKey) -> SimilarityLink | None:
        """Delete the link for a pair, returning it if it existed."""
        with self._lock:
            link = self._by_pair.pop(key, None)
            if link is None:
                return None
            self._by_id.pop(link.id, None)
            for photo_id in key:
                keys = self._by_photo.get(photo_id)
                if keys is not None:
                    keys.discard(key)
                    if not keys:
                        del self._by_photo[photo_id]
            return link

    def links_for_photo(self, photo_id: str) -> list[SimilarityLink]:
        """Links touching a photo, best first."""
        with self._lock:
            links = [self._by_pair[key] for key in self._by_photo.get(photo_id, ())]
        return _ranked(links)

    def list_links(
        self,
        min_score: float = 0.0,
        limit: int | None = None,
    ) -> list[SimilarityLink]:
        """All links at or above ``min_score``, best first."""
        with self._lock:
            links = [link for link in self._by_pair.values() if link.overall_score >= min_score]
        ranked = _ranked(links)
        return ranked[:limit] if limit is not None else ranked

    def __len__(self) -> int:
        return len(self._by_pair)

    def __contains__(self, key: object) -> bool:
        return key in self._by_pair


def _ranked(links: list[SimilarityLink]) -> list[SimilarityLink]:
    """Sort by score descending, then oldest first, then id for stability."""
    return sorted(links, key=lambda link: (-link.overall_score, link.created_at, link.id))
