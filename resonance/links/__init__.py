"""Similarity link module."""

from resonance.links.models import (
    PairKey,
    ReconcileResult,
    ResonanceDiscovered,
    SimilarityLink,
    pair_key,
)
from resonance.links.reconciler import KeyedLocks, LinkReconciler
from resonance.links.repository import LinkRepository

__all__ = [
    "KeyedLocks",
    "LinkReconciler",
    "LinkRepository",
    "PairKey",
    "ReconcileResult",
    "ResonanceDiscovered",
    "SimilarityLink",
    "pair_key",
]
