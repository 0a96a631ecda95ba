"""Pairwise similarity scoring.

Combines three signals into one overall score:

- subject: cosine similarity of the embeddings, rescaled to [0, 1]
- color: intersection-over-union of the dominant color buckets
- composition: closeness of the geometric layout descriptors

Missing signals are dropped and the remaining weights renormalized, so a
pair is never penalized for a signal nobody could compute. The scorer is
pure: identical records always produce identical results, in either
argument order.
"""

import math
from collections.abc import Sequence

from resonance.config import ScoringSettings, get_settings
from resonance.exceptions import ErrorCode, ScoringError
from resonance.features.models import Collection, FeatureRecord
from resonance.scoring.models import ScoreResult

# Fixed order for description phrases and weighted sums.
SIGNAL_ORDER = ("composition", "color", "subject")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1]; 0.0 if either vector has zero norm."""
    dot = math.fsum(x * y for x, y in zip(a, b, strict=True))
    norm_a = math.sqrt(math.fsum(x * x for x in a))
    norm_b = math.sqrt(math.fsum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return max(-1.0, min(1.0, dot / (norm_a * norm_b)))


def subject_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity rescaled from [-1, 1] to [0, 1]."""
    return (cosine_similarity(a, b) + 1.0) / 2.0


def color_overlap(a: Sequence[str], b: Sequence[str]) -> float | None:
    """Intersection-over-union of two color bucket sets."""
    if not a or not b:
        return None
    left, right = set(a), set(b)
    return len(left & right) / len(left | right)


def composition_similarity(
    a: Sequence[float] | None,
    b: Sequence[float] | None,
) -> float | None:
    """One minus the mean absolute difference of two layout descriptors."""
    if not a or not b or len(a) != len(b):
        return None
    distance = math.fsum(abs(x - y) for x, y in zip(a, b)) / len(a)
    return max(0.0, min(1.0, 1.0 - distance))


class PairwiseScorer:
    """Scores a pair of analyzed feature records."""

    def __init__(self, settings: ScoringSettings | None = None) -> None:
        """Initialize the scorer.

        Args:
            settings: Scoring weights and description bands.
        """
        self._settings = settings or get_settings().scoring
        self._weights = {
            "composition": self._settings.composition_weight,
            "color": self._settings.color_weight,
            "subject": self._settings.subject_weight,
        }

    def score(self, a: FeatureRecord, b: FeatureRecord) -> ScoreResult:
        """Score two feature records.

        Args:
            a: First record.
            b: Second record.

        Returns:
            ScoreResult with sub-scores, overall score and description.

        Raises:
            ScoringError: If either record has no embedding, or the
                embeddings differ in length.
        """
        for record in (a, b):
            if not record.is_analyzed:
                raise ScoringError(
                    f"Cannot score unanalyzed photo: {record.photo_id}",
                    code=ErrorCode.EMBEDDING_MISSING,
                    details={"photo_id": record.photo_id},
                )

        first, second = _oriented(a, b)
        if len(first.embedding) != len(second.embedding):  # type: ignore[arg-type]
            raise ScoringError(
                "Embedding dimensions differ",
                details={
                    "photo_ids": [first.photo_id, second.photo_id],
                    "dimensions": [len(first.embedding), len(second.embedding)],  # type: ignore[arg-type]
                },
            )

        sub_scores = {
            "composition": composition_similarity(first.composition, second.composition),
            "color": color_overlap(first.dominant_colors, second.dominant_colors),
            "subject": subject_similarity(first.embedding, second.embedding),  # type: ignore[arg-type]
        }

        return ScoreResult(
            overall=self._combine(sub_scores),
            composition=sub_scores["composition"],
            color=sub_scores["color"],
            subject=sub_scores["subject"],
            description=self.describe(sub_scores),
        )

    def _combine(self, sub_scores: dict[str, float | None]) -> float:
        """Weighted average over the sub-scores that are present."""
        weighted = []
        total_weight = 0.0
        for name in SIGNAL_ORDER:
            value = sub_scores[name]
            weight = self._weights[name]
            if value is None or weight == 0.0:
                continue
            weighted.append(value * weight)
            total_weight += weight

        if total_weight == 0.0:
            return 0.0
        return max(0.0, min(1.0, math.fsum(weighted) / total_weight))

    def describe(self, sub_scores: dict[str, float | None]) -> str:
        """Deterministic rationale built from the strongest signals.

        Example: {"color": 0.8, "subject": 0.9} -> "strong color and subject resonance"
        """
        strong = []
        moderate = []
        for name in SIGNAL_ORDER:
            value = sub_scores.get(name)
            if value is None:
                continue
            if value >= self._settings.strong_band:
                strong.append(name)
            elif value >= self._settings.moderate_band:
                moderate.append(name)

        if strong:
            phrase = f"strong {_join(strong)} resonance"
            if moderate:
                phrase += f" with some {_join(moderate)} affinity"
            return phrase
        if moderate:
            return f"moderate {_join(moderate)} resonance"
        return "subtle resonance"


def _oriented(a: FeatureRecord, b: FeatureRecord) -> tuple[FeatureRecord, FeatureRecord]:
    """Order a pair MyWork-first, falling back to photo id within a collection."""
    if a.collection == b.collection:
        return (a, b) if a.photo_id <= b.photo_id else (b, a)
    return (a, b) if a.collection is Collection.MY_WORK else (b, a)


def _join(names: list[str]) -> str:
    if len(names) == 1:
        return names[0]
    return ", ".join(names[:-1]) + " and " + names[-1]
