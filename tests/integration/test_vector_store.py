"""
Test suite for the Qdrant vector store gateway.

Runs against an in-memory Qdrant client.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from docvault.core.errors import InternalError, InvalidInputError, Stage
from docvault.rag.models import DocumentChunk, chunk_point_id
from docvault.rag.vector_store import VectorStore
from tests.conftest import TEST_DIMENSIONS


def unit_vector(position: int, dims: int = TEST_DIMENSIONS) -> list[float]:
    vector = [0.0] * dims
    vector[position % dims] = 1.0
    return vector


def make_chunk(
    document_id: str,
    organization_id: str,
    index: int,
    vector: list[float] | None = None,
    content: str | None = None,
) -> DocumentChunk:
    content = content or f"Chunk {index} of {document_id}"
    return DocumentChunk(
        document_id=document_id,
        organization_id=organization_id,
        chunk_index=index,
        content=content,
        word_count=len(content.split()),
        char_count=len(content),
        embedding=vector if vector is not None else unit_vector(index),
    )


class TestQueryValidation:
    """Requests rejected before any storage I/O."""

    @pytest.fixture
    def store(self) -> tuple[VectorStore, MagicMock]:
        client = MagicMock()
        return VectorStore(client, embedding_dim=TEST_DIMENSIONS), client

    @pytest.mark.asyncio
    @pytest.mark.parametrize("organization_id", ["", "   ", None])
    async def test_missing_organization_is_rejected(self, store, organization_id) -> None:
        vector_store, client = store

        with pytest.raises(InvalidInputError, match="Organization id"):
            await vector_store.query(unit_vector(0), organization_id)
        client.query_points.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_vector_is_rejected(self, store) -> None:
        vector_store, client = store

        with pytest.raises(InvalidInputError, match="empty"):
            await vector_store.query([], "org-1")
        client.query_points.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("length", [TEST_DIMENSIONS - 1, TEST_DIMENSIONS + 1, 768])
    async def test_dimension_mismatch_is_rejected(self, store, length: int) -> None:
        vector_store, client = store

        with pytest.raises(InvalidInputError, match="dimensions") as exc_info:
            await vector_store.query([0.1] * length, "org-1")
        assert exc_info.value.stage == Stage.RETRIEVAL
        client.query_points.assert_not_called()
        client.get_collections.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_positive_top_k_is_rejected(self, store) -> None:
        vector_store, client = store

        with pytest.raises(InvalidInputError, match="top_k"):
            await vector_store.query(unit_vector(0), "org-1", top_k=0)
        client.query_points.assert_not_called()


class TestQueryScoping:
    """Organization and document filters."""

    @pytest.mark.asyncio
    async def test_results_never_cross_organizations(self, vector_store: VectorStore) -> None:
        await vector_store.upsert_chunks(
            [make_chunk("doc-a", "org-1", i) for i in range(3)]
            + [make_chunk("doc-b", "org-2", i) for i in range(3)]
        )

        results = await vector_store.query(unit_vector(0), "org-1", top_k=10)

        assert len(results) == 3
        assert {r.chunk.organization_id for r in results} == {"org-1"}

    @pytest.mark.asyncio
    async def test_unknown_organization_returns_nothing(self, vector_store: VectorStore) -> None:
        await vector_store.upsert_chunks([make_chunk("doc-a", "org-1", 0)])

        assert await vector_store.query(unit_vector(0), "org-unknown") == []

    @pytest.mark.asyncio
    async def test_document_scope_is_anded_with_organization(self, vector_store: VectorStore) -> None:
        await vector_store.upsert_chunks(
            [make_chunk("doc-a", "org-1", i) for i in range(2)]
            + [make_chunk("doc-b", "org-1", i) for i in range(2)]
            + [make_chunk("doc-a", "org-2", 5)]
        )

        results = await vector_store.query(unit_vector(0), "org-1", document_id="doc-a", top_k=10)

        assert len(results) == 2
        assert {(r.chunk.document_id, r.chunk.organization_id) for r in results} == {("doc-a", "org-1")}

    @pytest.mark.asyncio
    async def test_results_are_best_first_and_limited(self, vector_store: VectorStore) -> None:
        await vector_store.upsert_chunks([make_chunk("doc-a", "org-1", i) for i in range(5)])

        results = await vector_store.query(unit_vector(2), "org-1", top_k=2)

        assert len(results) == 2
        assert results[0].chunk.chunk_index == 2
        assert results[0].score >= results[1].score

    @pytest.mark.asyncio
    async def test_candidate_pool_scales_with_top_k(self) -> None:
        client = MagicMock()
        client.get_collections.return_value.collections = []
        client.query_points.return_value.points = []
        vector_store = VectorStore(client, embedding_dim=TEST_DIMENSIONS, candidate_multiplier=10)

        await vector_store.query(unit_vector(0), "org-1", top_k=4)
        await vector_store.query(unit_vector(0), "org-1", document_id="doc-a", top_k=4)

        org_call, doc_call = client.query_points.call_args_list
        assert org_call.kwargs["search_params"].hnsw_ef == 40
        assert doc_call.kwargs["search_params"].hnsw_ef == 80
        assert org_call.kwargs["limit"] == 4


class TestChunkStorage:
    """Upsert, delete and inspection."""

    @pytest.mark.asyncio
    async def test_upsert_round_trips_payload(self, vector_store: VectorStore) -> None:
        chunk = make_chunk("doc-a", "org-1", 0, content="Sales grew 20% in Q1.")
        await vector_store.upsert_chunks([chunk])

        stored = await vector_store.get_document_chunks("doc-a")

        assert len(stored) == 1
        assert stored[0].id == chunk_point_id("org-1", "doc-a", 0)
        assert stored[0].content == "Sales grew 20% in Q1."
        assert stored[0].organization_id == "org-1"
        assert stored[0].word_count == 5

    @pytest.mark.asyncio
    async def test_upsert_batches_large_inputs(self, vector_store: VectorStore) -> None:
        chunks = [make_chunk("doc-big", "org-1", i) for i in range(230)]

        assert await vector_store.upsert_chunks(chunks) == 230
        assert await vector_store.count_document_chunks("doc-big") == 230

    @pytest.mark.asyncio
    async def test_upsert_rejects_missing_organization(self, vector_store: VectorStore) -> None:
        chunks = [make_chunk("doc-a", "org-1", 0), make_chunk("doc-a", "", 1)]

        with pytest.raises(InvalidInputError, match="organization"):
            await vector_store.upsert_chunks(chunks)
        assert await vector_store.count_document_chunks("doc-a") == 0

    @pytest.mark.asyncio
    async def test_upsert_rejects_wrong_dimensions(self, vector_store: VectorStore) -> None:
        with pytest.raises(InvalidInputError, match="dimensions"):
            await vector_store.upsert_chunks([make_chunk("doc-a", "org-1", 0, vector=[1.0, 0.0])])

    @pytest.mark.asyncio
    async def test_same_position_overwrites(self, vector_store: VectorStore) -> None:
        await vector_store.upsert_chunks([make_chunk("doc-a", "org-1", 0, content="old text")])
        await vector_store.upsert_chunks([make_chunk("doc-a", "org-1", 0, content="new text")])

        stored = await vector_store.get_document_chunks("doc-a")
        assert [c.content for c in stored] == ["new text"]

    @pytest.mark.asyncio
    async def test_delete_returns_count_and_removes_only_document(self, vector_store: VectorStore) -> None:
        await vector_store.upsert_chunks(
            [make_chunk("doc-a", "org-1", i) for i in range(3)] + [make_chunk("doc-b", "org-1", 0)]
        )

        assert await vector_store.delete_document_chunks("doc-a") == 3
        assert await vector_store.count_document_chunks("doc-a") == 0
        assert await vector_store.count_document_chunks("doc-b") == 1
        assert await vector_store.delete_document_chunks("doc-a") == 0

    @pytest.mark.asyncio
    async def test_same_document_id_in_two_organizations_is_kept_apart(self, vector_store: VectorStore) -> None:
        await vector_store.upsert_chunks([make_chunk("doc-a", "org-1", 0, content="org one text")])
        await vector_store.upsert_chunks([make_chunk("doc-a", "org-2", 0, content="org two text")])

        assert chunk_point_id("org-1", "doc-a", 0) != chunk_point_id("org-2", "doc-a", 0)
        assert (await vector_store.get_statistics()).total_documents == 2

        assert await vector_store.delete_document_chunks("doc-a", "org-2") == 1
        stored = await vector_store.get_document_chunks("doc-a", "org-1")
        assert [c.content for c in stored] == ["org one text"]
        assert await vector_store.count_document_chunks("doc-a", "org-2") == 0

    @pytest.mark.asyncio
    async def test_get_document_chunks_is_ordered(self, vector_store: VectorStore) -> None:
        await vector_store.upsert_chunks([make_chunk("doc-a", "org-1", i) for i in (3, 0, 2, 1)])

        stored = await vector_store.get_document_chunks("doc-a", "org-1")
        assert [c.chunk_index for c in stored] == [0, 1, 2, 3]

    @pytest.mark.asyncio
    async def test_statistics(self, vector_store: VectorStore) -> None:
        await vector_store.upsert_chunks(
            [make_chunk("doc-a", "org-1", i) for i in range(3)]
            + [make_chunk("doc-b", "org-1", 0)]
            + [make_chunk("doc-c", "org-2", 0)]
        )

        org_stats = await vector_store.get_statistics("org-1")
        all_stats = await vector_store.get_statistics()

        assert (org_stats.total_chunks, org_stats.total_documents) == (4, 2)
        assert (all_stats.total_chunks, all_stats.total_documents) == (5, 3)

    @pytest.mark.asyncio
    async def test_collection_info(self, vector_store: VectorStore) -> None:
        await vector_store.upsert_chunks([make_chunk("doc-a", "org-1", 0)])

        info = await vector_store.get_collection_info()

        assert info["name"] == "test_chunks"
        assert info["points_count"] == 1
        assert info["embedding_dim"] == TEST_DIMENSIONS


class TestCollectionSetup:
    """Collection creation and dimension checks."""

    @pytest.mark.asyncio
    async def test_ensure_collection_is_idempotent(self, vector_store: VectorStore) -> None:
        assert await vector_store.ensure_collection() is True
        assert await vector_store.ensure_collection() is False

    @pytest.mark.asyncio
    async def test_existing_collection_with_other_dimensions_is_refused(self, qdrant_client) -> None:
        await VectorStore(qdrant_client, embedding_dim=8, collection_name="shared").ensure_collection()

        with pytest.raises(InternalError, match="8-dimensional"):
            await VectorStore(qdrant_client, embedding_dim=16, collection_name="shared").ensure_collection()

    @pytest.mark.asyncio
    async def test_storage_errors_are_wrapped(self) -> None:
        client = MagicMock()
        client.get_collections.side_effect = ConnectionError("qdrant down")
        vector_store = VectorStore(client, embedding_dim=TEST_DIMENSIONS)

        with pytest.raises(InternalError) as exc_info:
            await vector_store.query(unit_vector(0), "org-1")
        assert exc_info.value.stage == Stage.PERSISTENCE

    @pytest.mark.asyncio
    async def test_concurrent_first_use_creates_collection_once(self, qdrant_client, monkeypatch) -> None:
        vector_store = VectorStore(qdrant_client, embedding_dim=TEST_DIMENSIONS, collection_name="racy")
        created = []
        create_collection = qdrant_client.create_collection

        def counting_create_collection(*args, **kwargs):
            created.append(kwargs.get("collection_name"))
            return create_collection(*args, **kwargs)

        monkeypatch.setattr(qdrant_client, "create_collection", counting_create_collection)

        counts = await asyncio.gather(*(vector_store.count_document_chunks(f"doc-{i}") for i in range(5)))

        assert counts == [0] * 5
        assert created == ["racy"]
