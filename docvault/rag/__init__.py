"""RAG (Retrieval-Augmented Generation) package.

Components:
- Chunker: Paragraph/sentence document chunking
- Embedder: Embedding service over the active provider
- Generator: Generation service over the active provider
- VectorStore: Qdrant client for vector operations
- Processor: Document ingestion pipeline
- Retriever: Organization-scoped semantic search
- RagService: Grounded question answering
"""

from docvault.rag.chunking import TextChunk, get_chunker, split_into_chunks
from docvault.rag.embedder import Embedder, get_embedder
from docvault.rag.generator import Generator, get_generator
from docvault.rag.models import (
    ChunkReference,
    ChunkStatistics,
    DocumentChunk,
    ProcessingResult,
    RagAnswer,
    SearchResult,
)
from docvault.rag.processor import DocumentProcessor, get_processor
from docvault.rag.prompt_builder import build_prompt
from docvault.rag.retriever import Retriever, get_retriever
from docvault.rag.service import RagService, get_rag_service
from docvault.rag.vector_store import VectorStore, get_vector_store

__all__ = [
    "ChunkReference",
    "ChunkStatistics",
    "DocumentChunk",
    "DocumentProcessor",
    "Embedder",
    "Generator",
    "ProcessingResult",
    "RagAnswer",
    "RagService",
    "Retriever",
    "SearchResult",
    "TextChunk",
    "VectorStore",
    "build_prompt",
    "get_chunker",
    "get_embedder",
    "get_generator",
    "get_processor",
    "get_rag_service",
    "get_retriever",
    "get_vector_store",
    "split_into_chunks",
]
