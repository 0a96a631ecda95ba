"""Optional vector index module."""

from resonance.index.models import Neighbour
from resonance.index.service import QdrantVectorIndex, VectorIndex, point_id

__all__ = [
    "Neighbour",
    "QdrantVectorIndex",
    "VectorIndex",
    "point_id",
]
