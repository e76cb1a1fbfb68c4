"""Qdrant vector store client.

Stores document chunks in a single collection partitioned by organization,
and runs organization-scoped similarity queries against it.
"""

import asyncio
import logging

from qdrant_client import QdrantClient
from qdrant_client.http import models as qdrant_models
from qdrant_client.http.models import Distance, PayloadSchemaType, VectorParams

from docvault.core.config import get_settings
from docvault.core.errors import InternalError, InvalidInputError, RagError, Stage
from docvault.core.timeouts import bounded
from docvault.observability.metrics import track_stage
from docvault.rag.models import ChunkStatistics, DocumentChunk, SearchResult

logger = logging.getLogger(__name__)

UPSERT_BATCH_SIZE = 100
SCROLL_PAGE_SIZE = 256


def _match(key: str, value: str) -> qdrant_models.FieldCondition:
    return qdrant_models.FieldCondition(key=key, match=qdrant_models.MatchValue(value=value))


def build_filter(
    organization_id: str | None = None, document_id: str | None = None
) -> qdrant_models.Filter | None:
    """AND filter over organization_id and document_id (either may be omitted)."""
    conditions = []
    if organization_id:
        conditions.append(_match("organization_id", organization_id))
    if document_id:
        conditions.append(_match("document_id", document_id))
    if not conditions:
        return None
    return qdrant_models.Filter(must=conditions)


class VectorStore:
    """Qdrant vector store for RAG embeddings.

    One collection holds every organization's chunks:
    - Vector embeddings (embedding_dim, cosine)
    - Payload: organization_id (tenant key), document_id, chunk_index,
      content, counts, created_at, embedding_model
    """

    def __init__(
        self,
        client: QdrantClient,
        embedding_dim: int,
        collection_name: str = "document_chunks",
        candidate_multiplier: int = 10,
        timeout: float | None = None,
    ):
        self.client = client
        self.embedding_dim = embedding_dim
        self.collection_name = collection_name
        self.candidate_multiplier = max(1, candidate_multiplier)
        self.timeout = timeout
        self._collection_ready = False
        self._collection_lock = asyncio.Lock()

    async def _run(self, stage: Stage, func, *args, budget: float | None = None, **kwargs):
        """Run a blocking client call off the event loop within the time budget."""
        budget = budget if budget is not None else self.timeout
        try:
            return await bounded(asyncio.to_thread(func, *args, **kwargs), budget, stage)
        except RagError:
            raise
        except Exception as e:
            logger.error(f"[VectorStore] {func.__name__} failed on '{self.collection_name}': {e}")
            raise InternalError(f"Vector store {func.__name__} failed: {e}", stage=stage) from e

    def _create_collection(self) -> bool:
        collections = self.client.get_collections()
        existing_names = [c.name for c in collections.collections]

        if self.collection_name in existing_names:
            vectors = self.client.get_collection(self.collection_name).config.params.vectors
            size = getattr(vectors, "size", None)
            if size is not None and size != self.embedding_dim:
                raise InternalError(
                    f"Collection '{self.collection_name}' stores {size}-dimensional vectors, "
                    f"but the active provider produces {self.embedding_dim}",
                    stage=Stage.PERSISTENCE,
                )
            return False

        # Optimized settings for multitenancy
        # See: https://qdrant.tech/documentation/guides/multitenancy/
        self.client.create_collection(
            collection_name=self.collection_name,
            vectors_config=VectorParams(
                size=self.embedding_dim,
                distance=Distance.COSINE,
            ),
            # Store large text payloads on disk to save RAM
            on_disk_payload=True,
            # Per-tenant HNSW graphs instead of one global graph
            hnsw_config=qdrant_models.HnswConfigDiff(
                payload_m=16,
                m=16,
            ),
            optimizers_config=qdrant_models.OptimizersConfigDiff(
                indexing_threshold=1000,
            ),
            # Scalar quantization: 4x memory reduction with ~99% accuracy
            quantization_config=qdrant_models.ScalarQuantization(
                scalar=qdrant_models.ScalarQuantizationConfig(
                    type=qdrant_models.ScalarType.INT8,
                    quantile=0.99,
                    always_ram=True,
                ),
            ),
        )

        # Tenant index co-locates an organization's vectors on disk
        self.client.create_payload_index(
            collection_name=self.collection_name,
            field_name="organization_id",
            field_schema=qdrant_models.KeywordIndexParams(
                type=qdrant_models.KeywordIndexType.KEYWORD,
                is_tenant=True,
            ),
        )
        self.client.create_payload_index(
            collection_name=self.collection_name,
            field_name="document_id",
            field_schema=PayloadSchemaType.KEYWORD,
        )
        return True

    async def ensure_collection(self) -> bool:
        """Create the chunk collection if it does not exist.

        Returns:
            True if created, False if it already existed
        """
        created = await self._run(Stage.PERSISTENCE, self._create_collection)
        self._collection_ready = True
        if created:
            logger.info(
                f"[VectorStore] Created collection '{self.collection_name}' ({self.embedding_dim} dims)"
            )
        return created

    async def _ready(self) -> None:
        if self._collection_ready:
            return
        async with self._collection_lock:
            if not self._collection_ready:
                await self.ensure_collection()

    def _validate_chunk(self, chunk: DocumentChunk) -> None:
        if not chunk.organization_id or not chunk.organization_id.strip():
            raise InvalidInputError(
                f"Chunk {chunk.chunk_index} of document {chunk.document_id} has no organization id",
                stage=Stage.PERSISTENCE,
            )
        if not chunk.document_id:
            raise InvalidInputError("Chunk has no document id", stage=Stage.PERSISTENCE)
        if not chunk.content or not chunk.content.strip():
            raise InvalidInputError(
                f"Chunk {chunk.chunk_index} of document {chunk.document_id} is empty",
                stage=Stage.PERSISTENCE,
            )
        if len(chunk.embedding) != self.embedding_dim:
            raise InvalidInputError(
                f"Chunk {chunk.chunk_index} has {len(chunk.embedding)} dimensions, expected {self.embedding_dim}",
                stage=Stage.PERSISTENCE,
            )

    async def upsert_chunks(self, chunks: list[DocumentChunk]) -> int:
        """Insert or update document chunks.

        Every chunk is validated before anything is written.

        Returns:
            Number of chunks upserted
        """
        if not chunks:
            return 0

        for chunk in chunks:
            self._validate_chunk(chunk)

        await self._ready()

        points = [
            qdrant_models.PointStruct(
                id=chunk.id,
                vector=chunk.embedding,
                payload=chunk.to_payload(),
            )
            for chunk in chunks
        ]

        # Batch upserts to avoid timeouts on large payloads
        total_batches = (len(points) + UPSERT_BATCH_SIZE - 1) // UPSERT_BATCH_SIZE
        total_upserted = 0

        async with track_stage(Stage.PERSISTENCE.value):
            for i in range(0, len(points), UPSERT_BATCH_SIZE):
                batch = points[i : i + UPSERT_BATCH_SIZE]
                logger.debug(
                    f"[VectorStore] Upserting batch {i // UPSERT_BATCH_SIZE + 1}/{total_batches} ({len(batch)} points)"
                )
                await self._run(
                    Stage.PERSISTENCE,
                    self.client.upsert,
                    collection_name=self.collection_name,
                    points=batch,
                )
                total_upserted += len(batch)

        logger.info(f"[VectorStore] Upserted {total_upserted} points to '{self.collection_name}'")
        return total_upserted

    async def _count(self, query_filter: qdrant_models.Filter | None, stage: Stage) -> int:
        result = await self._run(
            stage,
            self.client.count,
            collection_name=self.collection_name,
            count_filter=query_filter,
            exact=True,
        )
        return result.count

    async def delete_document_chunks(self, document_id: str, organization_id: str | None = None) -> int:
        """Delete all chunks for a document.

        Returns:
            Number of chunks deleted
        """
        if not document_id or not document_id.strip():
            raise InvalidInputError("Document id cannot be empty", stage=Stage.PERSISTENCE)

        await self._ready()
        query_filter = build_filter(organization_id, document_id)

        count_before = await self._count(query_filter, Stage.PERSISTENCE)
        if count_before == 0:
            return 0

        await self._run(
            Stage.PERSISTENCE,
            self.client.delete,
            collection_name=self.collection_name,
            points_selector=qdrant_models.FilterSelector(filter=query_filter),
        )

        logger.info(f"[VectorStore] Deleted {count_before} chunks of document {document_id}")
        return count_before

    async def count_document_chunks(self, document_id: str, organization_id: str | None = None) -> int:
        """Number of stored chunks for a document."""
        await self._ready()
        return await self._count(build_filter(organization_id, document_id), Stage.RETRIEVAL)

    async def _scroll_all(self, query_filter: qdrant_models.Filter | None) -> list[qdrant_models.Record]:
        records: list[qdrant_models.Record] = []
        offset = None
        while True:
            page, offset = await self._run(
                Stage.RETRIEVAL,
                self.client.scroll,
                collection_name=self.collection_name,
                scroll_filter=query_filter,
                limit=SCROLL_PAGE_SIZE,
                offset=offset,
                with_payload=True,
                with_vectors=False,
            )
            records.extend(page)
            if offset is None:
                return records

    async def get_document_chunks(
        self, document_id: str, organization_id: str | None = None
    ) -> list[DocumentChunk]:
        """All stored chunks of a document, ordered by chunk_index."""
        await self._ready()
        records = await self._scroll_all(build_filter(organization_id, document_id))
        chunks = [DocumentChunk.from_payload(str(r.id), r.payload or {}) for r in records]
        return sorted(chunks, key=lambda c: c.chunk_index)

    async def get_statistics(self, organization_id: str | None = None) -> ChunkStatistics:
        """Chunk and document counts for an organization, or the whole collection."""
        await self._ready()
        query_filter = build_filter(organization_id)
        total_chunks = await self._count(query_filter, Stage.RETRIEVAL)

        documents = set()
        if total_chunks:
            for record in await self._scroll_all(query_filter):
                payload = record.payload or {}
                documents.add((payload.get("organization_id"), payload.get("document_id")))

        return ChunkStatistics(total_chunks=total_chunks, total_documents=len(documents))

    async def query(
        self,
        vector: list[float],
        organization_id: str,
        document_id: str | None = None,
        top_k: int = 5,
        score_threshold: float | None = None,
        timeout: float | None = None,
    ) -> list[SearchResult]:
        """Organization-scoped similarity search.

        Args:
            vector: Query embedding
            organization_id: Mandatory tenant scope
            document_id: Optional narrower scope (ANDed with the organization)
            top_k: Maximum results
            score_threshold: Optional minimum similarity score
            timeout: Per-call budget in seconds

        Returns:
            Hits best-first, at most top_k, all from organization_id
        """
        if not organization_id or not organization_id.strip():
            raise InvalidInputError("Organization id is required for search", stage=Stage.RETRIEVAL)
        if not vector:
            raise InvalidInputError("Query vector cannot be empty", stage=Stage.RETRIEVAL)
        if len(vector) != self.embedding_dim:
            raise InvalidInputError(
                f"Query vector has {len(vector)} dimensions, expected {self.embedding_dim}",
                stage=Stage.RETRIEVAL,
            )
        if top_k < 1:
            raise InvalidInputError("top_k must be at least 1", stage=Stage.RETRIEVAL)

        await self._ready()

        # Over-fetch candidates so the tenant filter still yields top_k hits
        hnsw_ef = top_k * self.candidate_multiplier
        if document_id:
            hnsw_ef *= 2

        async with track_stage(Stage.RETRIEVAL.value):
            results = await self._run(
                Stage.RETRIEVAL,
                self.client.query_points,
                budget=timeout,
                collection_name=self.collection_name,
                query=vector,
                query_filter=build_filter(organization_id, document_id),
                limit=top_k,
                search_params=qdrant_models.SearchParams(hnsw_ef=hnsw_ef),
                score_threshold=score_threshold,
                with_payload=True,
            )

        return [
            SearchResult(
                chunk=DocumentChunk.from_payload(str(point.id), point.payload or {}),
                score=point.score,
            )
            for point in results.points
        ]

    async def get_collection_info(self) -> dict | None:
        """Get collection statistics."""
        try:
            info = await self._run(Stage.RETRIEVAL, self.client.get_collection, self.collection_name)
        except InternalError:
            return None
        return {
            "name": self.collection_name,
            "points_count": info.points_count,
            "status": info.status.value if hasattr(info.status, "value") else str(info.status),
            "embedding_dim": self.embedding_dim,
        }


# Singleton instance
_vector_store: VectorStore | None = None


def get_vector_store(embedding_dim: int | None = None) -> VectorStore:
    """Get or create the global VectorStore instance.

    embedding_dim should come from the active ProviderConfig.
    """
    global _vector_store

    if _vector_store is None:
        settings = get_settings()
        client = QdrantClient(
            url=settings.qdrant_url,
            api_key=settings.qdrant_api_key,
            # Batched upserts of large documents need more than the 5s default
            timeout=60,
        )
        _vector_store = VectorStore(
            client,
            embedding_dim=embedding_dim or settings.embedding_dimensions,
            collection_name=settings.qdrant_collection,
            candidate_multiplier=settings.search_candidate_multiplier,
            timeout=settings.vector_query_timeout,
        )

    return _vector_store
