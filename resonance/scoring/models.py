"""Scoring data models."""

from pydantic import BaseModel, ConfigDict, Field


class ScoreResult(BaseModel):
    """Similarity between two feature records.

    Sub-scores are None when the underlying signal was not computable for
    the pair; absent signals are left out of the overall average.

    Attributes:
        overall: Weighted combination of the available sub-scores.
        composition: Layout similarity.
        color: Dominant-color overlap.
        subject: Rescaled embedding cosine similarity.
        description: Short rationale derived from the dominant signals.
    """

    model_config = ConfigDict(frozen=True)

    overall: float = Field(ge=0.0, le=1.0, description="Overall score")
    composition: float | None = Field(default=None, ge=0.0, le=1.0)
    color: float | None = Field(default=None, ge=0.0, le=1.0)
    subject: float | None = Field(default=None, ge=0.0, le=1.0)
    description: str | None = Field(default=None, description="Rationale")

    def signals(self) -> tuple[str, ...]:
        """Names of the sub-scores that were computable."""
        return tuple(
            name
            for name, value in (
                ("composition", self.composition),
                ("color", self.color),
                ("subject", self.subject),
            )
            if value is not None
        )
