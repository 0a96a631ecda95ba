"""Vector index data models."""

from pydantic import BaseModel, Field


class Neighbour(BaseModel):
    """A nearest-neighbour hit from the vector index.

    Attributes:
        photo_id: Matched photo.
        score: Index similarity (higher is more similar).
    """

    photo_id: str = Field(description="Photo identifier")
    score: float = Field(description="Similarity score")
