"""RAG Retriever - organization-scoped semantic search.

Combines query embedding and vector search for chunk retrieval.
"""

import logging

from docvault.core.config import get_settings
from docvault.core.errors import InvalidInputError, Stage, require_text
from docvault.providers.selector import get_provider_selector
from docvault.rag.embedder import Embedder, get_embedder
from docvault.rag.models import SearchResult
from docvault.rag.vector_store import VectorStore, get_vector_store

logger = logging.getLogger(__name__)


class Retriever:
    """Semantic retrieval scoped to one organization.

    Every query carries the organization filter; results from other
    organizations are never returned.
    """

    def __init__(self, vector_store: VectorStore, embedder: Embedder, default_top_k: int = 5):
        self.vector_store = vector_store
        self.embedder = embedder
        self.default_top_k = default_top_k

    async def retrieve(
        self,
        query: str,
        organization_id: str,
        document_id: str | None = None,
        top_k: int | None = None,
        timeout: float | None = None,
    ) -> list[SearchResult]:
        """Retrieve relevant chunks for a query.

        Args:
            query: User's search query
            organization_id: Mandatory tenant scope
            document_id: Optional single-document scope
            top_k: Maximum results (defaults to the retriever's default)
            timeout: Per-call budget for each external call

        Returns:
            Hits best-first, as ordered by the index
        """
        query = require_text(query, "Search query", Stage.RETRIEVAL)
        organization_id = require_text(organization_id, "Organization id", Stage.RETRIEVAL)
        if document_id is not None:
            document_id = require_text(document_id, "Document id", Stage.RETRIEVAL)
        top_k = top_k if top_k is not None else self.default_top_k
        if top_k < 1:
            raise InvalidInputError("top_k must be at least 1", stage=Stage.RETRIEVAL)

        scope = f"document {document_id}" if document_id else f"organization {organization_id}"
        logger.info(f'[Retriever] Searching {scope} for: "{query[:50]}"')

        query_vector = await self.embedder.embed_query(query, timeout=timeout)

        results = await self.vector_store.query(
            query_vector,
            organization_id,
            document_id=document_id,
            top_k=top_k,
            timeout=timeout,
        )

        if results:
            logger.info(f"[Retriever] Found {len(results)} chunks, top score {results[0].score:.4f}")
        else:
            logger.info("[Retriever] No results found")
        return results

    async def search(
        self, query: str, organization_id: str, top_k: int | None = None
    ) -> list[SearchResult]:
        """Semantic search across an organization, without generation."""
        return await self.retrieve(query, organization_id, top_k=top_k)

    async def search_in_document(
        self, query: str, organization_id: str, document_id: str, top_k: int | None = None
    ) -> list[SearchResult]:
        """Semantic search within a single document, without generation."""
        document_id = require_text(document_id, "Document id", Stage.RETRIEVAL)
        return await self.retrieve(query, organization_id, document_id=document_id, top_k=top_k)


# Singleton instance
_retriever: Retriever | None = None


async def get_retriever() -> Retriever:
    """Get or create the global Retriever instance."""
    global _retriever

    if _retriever is None:
        selector = get_provider_selector()
        embedder = get_embedder()
        vector_store = get_vector_store(embedder.dimensions)
        _retriever = Retriever(
            vector_store,
            embedder,
            default_top_k=get_settings().default_top_k(selector.kind),
        )

    return _retriever
