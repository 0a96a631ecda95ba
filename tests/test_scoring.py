"""Tests for pairwise scoring."""

import pytest

from factories import make_record
from resonance.config import ScoringSettings
from resonance.exceptions import ErrorCode, ScoringError
from resonance.features.models import Collection
from resonance.scoring import (
    PairwiseScorer,
    color_overlap,
    composition_similarity,
    cosine_similarity,
    subject_similarity,
)


@pytest.fixture
def scorer() -> PairwiseScorer:
    """Scorer with default weights."""
    return PairwiseScorer(ScoringSettings())


class TestSignals:
    """Tests for the individual similarity signals."""

    def test_cosine_identical(self) -> None:
        """Identical vectors have cosine 1."""
        assert cosine_similarity([0.3, 0.4], [0.3, 0.4]) == pytest.approx(1.0)

    def test_cosine_zero_norm(self) -> None:
        """A zero vector yields 0.0 rather than dividing by zero."""
        assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0

    def test_cosine_length_mismatch(self) -> None:
        """Vectors of different length are rejected."""
        with pytest.raises(ValueError):
            cosine_similarity([1.0], [1.0, 0.0])

    def test_subject_rescaled(self) -> None:
        """Subject similarity maps cosine from [-1, 1] onto [0, 1]."""
        assert subject_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(0.0)
        assert subject_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.5)
        assert subject_similarity([1.0, 0.0], [2.0, 0.0]) == pytest.approx(1.0)

    def test_color_overlap_iou(self) -> None:
        """Color overlap is intersection over union."""
        assert color_overlap(["red", "blue"], ["blue", "green"]) == pytest.approx(1 / 3)

    def test_color_overlap_absent(self) -> None:
        """Color overlap is not computable when a side has no colors."""
        assert color_overlap([], ["red"]) is None

    def test_composition_similarity(self) -> None:
        """Composition similarity is one minus mean absolute difference."""
        assert composition_similarity([0.0, 1.0], [0.5, 1.0]) == pytest.approx(0.75)

    def test_composition_incomparable(self) -> None:
        """Missing or mismatched descriptors are not computable."""
        assert composition_similarity(None, [0.5]) is None
        assert composition_similarity([0.5], [0.5, 0.5]) is None


class TestPairwiseScorer:
    """Tests for the combined scorer."""

    def test_identical_pair_scores_one(self, scorer: PairwiseScorer) -> None:
        """Matching colors and embeddings give an overall score of ~1."""
        p1 = make_record("p1", Collection.MY_WORK, (1.0, 0.0), ("red",))
        p2 = make_record("p2", Collection.INSPIRATION, (1.0, 0.0), ("red",))

        result = scorer.score(p1, p2)

        assert result.overall == pytest.approx(1.0)
        assert result.subject == pytest.approx(1.0)
        assert result.color == pytest.approx(1.0)
        assert result.composition is None
        assert result.description == "strong color and subject resonance"

    def test_orthogonal_pair_below_retire(self, scorer: PairwiseScorer) -> None:
        """Orthogonal embeddings with disjoint colors score below 0.40."""
        p1 = make_record("p1", Collection.MY_WORK, (1.0, 0.0), ("red",))
        p3 = make_record("p3", Collection.INSPIRATION, (0.0, 1.0), ("blue",))

        result = scorer.score(p1, p3)

        assert result.color == 0.0
        assert result.overall < 0.40

    def test_symmetric(self, scorer: PairwiseScorer) -> None:
        """Argument order does not change the result."""
        a = make_record("a", Collection.MY_WORK, (0.2, 0.9, 0.1), ("red", "blue"), (0.1, 0.5))
        b = make_record("b", Collection.INSPIRATION, (0.7, 0.1, 0.3), ("blue",), (0.4, 0.3))

        assert scorer.score(a, b) == scorer.score(b, a)

    def test_deterministic(self, scorer: PairwiseScorer) -> None:
        """Repeated scoring yields identical results."""
        a = make_record("a", Collection.MY_WORK, (0.2, 0.9), ("red",))
        b = make_record("b", Collection.INSPIRATION, (0.7, 0.1), ("red", "green"))

        assert scorer.score(a, b) == scorer.score(a, b)

    def test_self_subject_is_one(self, scorer: PairwiseScorer) -> None:
        """A record compared with itself has full subject similarity."""
        a = make_record("a", Collection.MY_WORK, (0.2, 0.9, 0.4))
        assert scorer.score(a, a).subject == pytest.approx(1.0)

    def test_missing_composition_not_penalized(self, scorer: PairwiseScorer) -> None:
        """Absent composition renormalizes the remaining weights."""
        with_layout = make_record("a", Collection.MY_WORK, composition=(0.5, 0.5))
        without_layout = make_record("b", Collection.INSPIRATION)

        result = scorer.score(with_layout, without_layout)

        assert result.composition is None
        assert result.overall == pytest.approx(1.0)

    def test_missing_colors_use_subject_only(self, scorer: PairwiseScorer) -> None:
        """Without colors the overall equals the subject score."""
        a = make_record("a", Collection.MY_WORK, (1.0, 0.0), colors=())
        b = make_record("b", Collection.INSPIRATION, (0.0, 1.0), colors=())

        result = scorer.score(a, b)

        assert result.color is None
        assert result.overall == pytest.approx(result.subject)
        assert result.signals() == ("subject",)

    def test_custom_weights(self) -> None:
        """Weights are taken from settings."""
        scorer = PairwiseScorer(
            ScoringSettings(subject_weight=0.5, color_weight=0.5, composition_weight=0.0)
        )
        a = make_record("a", Collection.MY_WORK, (1.0, 0.0), ("red", "blue"))
        b = make_record("b", Collection.INSPIRATION, (1.0, 0.0), ("red",))

        assert scorer.score(a, b).overall == pytest.approx(0.75)

    def test_unanalyzed_rejected(self, scorer: PairwiseScorer) -> None:
        """Scoring requires both embeddings."""
        a = make_record("a", Collection.MY_WORK)
        b = make_record("b", Collection.INSPIRATION, embedding=None)

        with pytest.raises(ScoringError) as exc_info:
            scorer.score(a, b)
        assert exc_info.value.code == ErrorCode.EMBEDDING_MISSING

    def test_dimension_mismatch_rejected(self, scorer: PairwiseScorer) -> None:
        """Embeddings of different length cannot be scored."""
        a = make_record("a", Collection.MY_WORK, (1.0, 0.0))
        b = make_record("b", Collection.INSPIRATION, (1.0, 0.0, 0.0))

        with pytest.raises(ScoringError) as exc_info:
            scorer.score(a, b)
        assert exc_info.value.code == ErrorCode.SCORING_ERROR


class TestDescribe:
    """Tests for rationale generation."""

    def test_strong_with_moderate(self, scorer: PairwiseScorer) -> None:
        """Moderate signals are mentioned as affinity."""
        text = scorer.describe({"composition": 0.6, "color": 0.9, "subject": 0.8})
        assert text == "strong color and subject resonance with some composition affinity"

    def test_moderate_only(self, scorer: PairwiseScorer) -> None:
        """Without strong signals the moderate ones lead."""
        assert scorer.describe({"color": 0.55, "subject": 0.6}) == (
            "moderate color and subject resonance"
        )

    def test_subtle(self, scorer: PairwiseScorer) -> None:
        """Weak signals give a generic rationale."""
        assert scorer.describe({"color": 0.1, "subject": 0.3}) == "subtle resonance"

    def test_three_strong_signals(self, scorer: PairwiseScorer) -> None:
        """Three names are joined with commas and 'and'."""
        text = scorer.describe({"composition": 0.9, "color": 0.9, "subject": 0.9})
        assert text == "strong composition, color and subject resonance"
