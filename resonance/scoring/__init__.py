"""Pairwise scoring module."""

from resonance.scoring.models import ScoreResult
from resonance.scoring.scorer import (
    PairwiseScorer,
    color_overlap,
    composition_similarity,
    cosine_similarity,
    subject_similarity,
)

__all__ = [
    "PairwiseScorer",
    "ScoreResult",
    "color_overlap",
    "composition_similarity",
    "cosine_similarity",
    "subject_similarity",
]
