"""
Test suite for semantic search without generation.
"""

from unittest.mock import AsyncMock

import pytest

from docvault.core.errors import InvalidInputError
from docvault.rag.processor import DocumentProcessor
from docvault.rag.retriever import Retriever


class TestRetriever:
    """search and search_in_document."""

    @pytest.mark.asyncio
    async def test_search_ranks_related_chunk_first(
        self, processor: DocumentProcessor, retriever: Retriever
    ) -> None:
        await processor.process_document("doc-1", "org-1", "Sales grew 20% in Q1 across every region.")
        await processor.process_document("doc-2", "org-1", "The office cat sleeps on warm blankets all day.")

        results = await retriever.search("Which sales grew in Q1?", "org-1")

        assert results[0].chunk.document_id == "doc-1"
        assert len(results) == 2

    @pytest.mark.asyncio
    async def test_search_respects_top_k(self, processor: DocumentProcessor, retriever: Retriever) -> None:
        for i in range(4):
            await processor.process_document(f"doc-{i}", "org-1", f"Report number {i} about revenue.")

        assert len(await retriever.search("revenue", "org-1", top_k=2)) == 2
        assert len(await retriever.search("revenue", "org-1")) == 3

    @pytest.mark.asyncio
    async def test_search_in_document(self, processor: DocumentProcessor, retriever: Retriever) -> None:
        await processor.process_document("doc-1", "org-1", "Sales grew 20% in Q1.")
        await processor.process_document("doc-2", "org-1", "Sales fell 5% in Q2.")

        results = await retriever.search_in_document("sales", "org-1", "doc-2")

        assert [r.chunk.document_id for r in results] == ["doc-2"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["", "   "])
    async def test_empty_query_is_rejected(self, retriever: Retriever, query: str) -> None:
        with pytest.raises(InvalidInputError):
            await retriever.search(query, "org-1")

    @pytest.mark.asyncio
    async def test_empty_document_id_is_rejected(self, retriever: Retriever) -> None:
        with pytest.raises(InvalidInputError):
            await retriever.search_in_document("sales", "org-1", " ")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("top_k", [0, -1])
    async def test_invalid_top_k_is_rejected_before_embedding(
        self, retriever: Retriever, monkeypatch, top_k: int
    ) -> None:
        embed_query = AsyncMock()
        monkeypatch.setattr(retriever.embedder, "embed_query", embed_query)

        with pytest.raises(InvalidInputError, match="top_k"):
            await retriever.search("sales", "org-1", top_k=top_k)
        embed_query.assert_not_awaited()
