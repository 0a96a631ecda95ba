"""Vector index interface and Qdrant implementation."""

from abc import ABC, abstractmethod
from uuid import NAMESPACE_URL, uuid5

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    MatchValue,
    PointIdsList,
    PointStruct,
    VectorParams,
)

from resonance.config import QdrantSettings, get_settings
from resonance.exceptions import ErrorCode, VectorIndexError
from resonance.features.models import Collection, FeatureRecord
from resonance.index.models import Neighbour
from resonance.logging_config import get_logger

logger = get_logger(__name__)


def point_id(photo_id: str) -> str:
    """Deterministic Qdrant point id for an opaque photo id."""
    return str(uuid5(NAMESPACE_URL, f"resonance:photo:{photo_id}"))


class VectorIndex(ABC):
    """Abstract base class for nearest-neighbour indexes over photo embeddings."""

    @abstractmethod
    async def ensure_collection(self, dimensions: int) -> None:
        """Create the backing collection if it does not exist.

        Args:
            dimensions: Embedding dimensions.

        Raises:
            VectorIndexError: If creation fails.
        """
        ...

    @abstractmethod
    async def upsert(self, record: FeatureRecord) -> None:
        """Insert or replace a photo's embedding.

        Args:
            record: Analyzed feature record.

        Raises:
            VectorIndexError: If the write fails.
        """
        ...

    @abstractmethod
    async def delete(self, photo_id: str) -> None:
        """Remove a photo from the index.

        Args:
            photo_id: Photo identifier.

        Raises:
            VectorIndexError: If deletion fails.
        """
        ...

    @abstractmethod
    async def nearest(
        self,
        record: FeatureRecord,
        collection: Collection,
        limit: int,
    ) -> list[Neighbour]:
        """Find the photos in ``collection`` closest to ``record``.

        Args:
            record: Query record.
            collection: Collection to search.
            limit: Maximum neighbours to return.

        Returns:
            Neighbours ordered by similarity.

        Raises:
            VectorIndexError: If the search fails.
        """
        ...

    async def close(self) -> None:
        """Release client resources."""


class QdrantVectorIndex(VectorIndex):
    """Qdrant-backed vector index using cosine distance."""

    def __init__(
        self,
        settings: QdrantSettings | None = None,
        client: AsyncQdrantClient | None = None,
    ) -> None:
        """Initialize the Qdrant index.

        Args:
            settings: Qdrant configuration.
            client: Existing client (for testing).
        """
        self._settings = settings or get_settings().qdrant
        self._client = client
        self._owns_client = client is None
        self._ready = False

    @property
    def collection_name(self) -> str:
        """Name of the backing Qdrant collection."""
        return self._settings.collection_name

    async def _get_client(self) -> AsyncQdrantClient:
        """Get or create Qdrant client."""
        if self._client is None:
            api_key = None
            if self._settings.api_key:
                api_key = self._settings.api_key.get_secret_value()

            self._client = AsyncQdrantClient(
                url=self._settings.url,
                api_key=api_key,
            )
        return self._client

    async def close(self) -> None:
        """Close the Qdrant client."""
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None

    async def ensure_collection(self, dimensions: int) -> None:
        """Create the photo collection on first use."""
        if self._ready:
            return

        client = await self._get_client()
        name = self.collection_name

        try:
            if not await client.collection_exists(name):
                await client.create_collection(
                    collection_name=name,
                    vectors_config=VectorParams(
                        size=dimensions,
                        distance=Distance.COSINE,
                    ),
                )
                logger.info(f"Created collection: {name}", extra={"dimensions": dimensions})
            self._ready = True

        except Exception as e:
            raise VectorIndexError(
                f"Failed to prepare collection: {e}",
                code=ErrorCode.VECTOR_INDEX_ERROR,
                details={"collection": name, "error": str(e)},
            ) from e

    async def upsert(self, record: FeatureRecord) -> None:
        """Write a photo's embedding with its collection as payload."""
        if not record.is_analyzed:
            return

        await self.ensure_collection(len(record.embedding))  # type: ignore[arg-type]
        client = await self._get_client()

        try:
            await client.upsert(
                collection_name=self.collection_name,
                points=[
                    PointStruct(
                        id=point_id(record.photo_id),
                        vector=list(record.embedding),  # type: ignore[arg-type]
                        payload={
                            "photo_id": record.photo_id,
                            "collection": record.collection.value,
                        },
                    )
                ],
            )
            logger.debug("Indexed photo", extra={"photo_id": record.photo_id})

        except Exception as e:
            raise VectorIndexError(
                f"Failed to index photo: {e}",
                code=ErrorCode.VECTOR_INDEX_ERROR,
                details={"photo_id": record.photo_id, "error": str(e)},
            ) from e

    async def delete(self, photo_id: str) -> None:
        """Delete a photo's point. Missing collections are ignored."""
        client = await self._get_client()

        try:
            if not self._ready and not await client.collection_exists(self.collection_name):
                return
            await client.delete(
                collection_name=self.collection_name,
                points_selector=PointIdsList(points=[point_id(photo_id)]),  # type: ignore[list-item]
            )
            logger.debug("Removed photo from index", extra={"photo_id": photo_id})

        except Exception as e:
            raise VectorIndexError(
                f"Failed to delete photo: {e}",
                code=ErrorCode.VECTOR_INDEX_ERROR,
                details={"photo_id": photo_id, "error": str(e)},
            ) from e

    async def nearest(
        self,
        record: FeatureRecord,
        collection: Collection,
        limit: int,
    ) -> list[Neighbour]:
        """Search the given collection for the record's nearest neighbours."""
        if not record.is_analyzed:
            return []

        client = await self._get_client()

        try:
            results = await client.query_points(
                collection_name=self.collection_name,
                query=list(record.embedding),  # type: ignore[arg-type]
                limit=limit,
                query_filter=Filter(
                    must=[
                        FieldCondition(
                            key="collection",
                            match=MatchValue(value=collection.value),
                        )
                    ]
                ),
            )

            return [
                Neighbour(
                    photo_id=str(point.payload["photo_id"]),
                    score=point.score if point.score is not None else 0.0,
                )
                for point in results.points
                if point.payload and "photo_id" in point.payload
            ]

        except Exception as e:
            raise VectorIndexError(
                f"Failed to search index: {e}",
                code=ErrorCode.VECTOR_INDEX_ERROR,
                details={"photo_id": record.photo_id, "error": str(e)},
            ) from e
