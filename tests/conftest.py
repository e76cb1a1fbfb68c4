"""
Shared test fixtures for the RAG core.

Provides: deterministic providers, an in-memory Qdrant
vector store and fully wired services built on top of them.
"""

import pytest
from qdrant_client import QdrantClient

from docvault.providers.deterministic import (
    DeterministicEmbeddingProvider,
    DeterministicGenerationProvider,
)
from docvault.rag.chunking import get_chunker
from docvault.rag.embedder import Embedder
from docvault.rag.generator import Generator
from docvault.rag.processor import DocumentProcessor
from docvault.rag.retriever import Retriever
from docvault.rag.service import RagService
from docvault.rag.vector_store import VectorStore

TEST_DIMENSIONS = 256


@pytest.fixture
def embedding_provider() -> DeterministicEmbeddingProvider:
    return DeterministicEmbeddingProvider(dimensions=TEST_DIMENSIONS)


@pytest.fixture
def generation_provider() -> DeterministicGenerationProvider:
    return DeterministicGenerationProvider()


@pytest.fixture
def qdrant_client():
    """In-memory Qdrant, discarded after each test."""
    client = QdrantClient(":memory:")
    yield client
    client.close()


@pytest.fixture
def vector_store(qdrant_client: QdrantClient) -> VectorStore:
    return VectorStore(
        qdrant_client,
        embedding_dim=TEST_DIMENSIONS,
        collection_name="test_chunks",
        timeout=10,
    )


@pytest.fixture
def embedder(embedding_provider: DeterministicEmbeddingProvider) -> Embedder:
    return Embedder(embedding_provider, timeout=10)


@pytest.fixture
def generator(generation_provider: DeterministicGenerationProvider) -> Generator:
    return Generator(generation_provider, timeout=10)


@pytest.fixture
def processor(vector_store: VectorStore, embedder: Embedder) -> DocumentProcessor:
    """Processor with small chunk sizes so short texts produce several chunks."""
    chunker = get_chunker(target_words=20, min_words=5, max_words=30)
    return DocumentProcessor(vector_store, embedder, chunker)


@pytest.fixture
def retriever(vector_store: VectorStore, embedder: Embedder) -> Retriever:
    return Retriever(vector_store, embedder, default_top_k=3)


@pytest.fixture
def rag_service(retriever: Retriever, generator: Generator) -> RagService:
    return RagService(retriever, generator, default_top_k=3, temperature=0.3, max_tokens=1000)
