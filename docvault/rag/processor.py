"""Document processor for RAG ingestion.

Handles chunking, embedding, and storage of extracted document text.
"""

import logging
from datetime import UTC, datetime

from docvault.core.config import get_settings
from docvault.core.errors import InternalError, RagError, Stage, require_text
from docvault.observability.metrics import CHUNKS_WRITTEN, track_stage
from docvault.rag.chunking import ParagraphSentenceChunker, count_words, get_chunker
from docvault.rag.embedder import Embedder, get_embedder
from docvault.rag.models import ChunkStatistics, DocumentChunk, ProcessingResult
from docvault.rag.vector_store import VectorStore, get_vector_store

logger = logging.getLogger(__name__)


class DocumentProcessor:
    """Processes documents for RAG ingestion.

    Pipeline:
    1. Split text into chunks
    2. Generate embeddings
    3. Delete the document's previous chunks
    4. Store the new chunks in the vector database

    Replacement is delete-then-insert within the owning organization. A
    failure during step 4 removes whatever was written, so the document is
    left with zero chunks, never a partial or mixed set.
    """

    def __init__(
        self,
        vector_store: VectorStore,
        embedder: Embedder,
        chunker: ParagraphSentenceChunker | None = None,
    ):
        self.vector_store = vector_store
        self.embedder = embedder
        self.chunker = chunker or get_chunker()

    async def process_document(
        self,
        document_id: str,
        organization_id: str,
        text: str,
    ) -> ProcessingResult:
        """Chunk, embed and store a document's text.

        Args:
            document_id: Document ID
            organization_id: Owning organization (stored on every chunk)
            text: Extracted document text

        Returns:
            ProcessingResult with chunk count, word count and timing
        """
        start_time = datetime.now(UTC)

        document_id = require_text(document_id, "Document id")
        organization_id = require_text(organization_id, "Organization id")
        require_text(text, "Document text")

        logger.info(
            f"[Processor] Starting document processing: doc_id={document_id}, org={organization_id}"
        )

        # 1. Chunk the document
        logger.debug(f"[Processor] Chunking document, text length: {len(text)}")
        try:
            pieces = self.chunker.chunk(text)
        except RagError:
            raise
        except Exception as e:
            raise InternalError(f"Chunking failed: {e}", stage=Stage.CHUNKING) from e

        if not pieces:
            raise InternalError(f"No chunks generated for document {document_id}", stage=Stage.CHUNKING)
        logger.info(f"[Processor] Generated {len(pieces)} chunks")

        # 2. Generate embeddings for all chunks
        embeddings = await self.embedder.embed_texts([p.text for p in pieces])

        # 3. Build chunk records
        created_at = datetime.now(UTC)
        chunks = [
            DocumentChunk(
                document_id=document_id,
                organization_id=organization_id,
                chunk_index=piece.index,
                content=piece.text,
                word_count=piece.word_count,
                char_count=piece.char_count,
                embedding=embedding,
                created_at=created_at,
                embedding_model=self.embedder.model_name,
            )
            for piece, embedding in zip(pieces, embeddings, strict=True)
        ]

        # 4. Replace previous chunks
        deleted = await self.vector_store.delete_document_chunks(document_id, organization_id)
        if deleted:
            logger.info(f"[Processor] Removed {deleted} previous chunks of document {document_id}")

        try:
            stored = await self.vector_store.upsert_chunks(chunks)
        except Exception:
            # Earlier batches may already be stored
            logger.error(f"[Processor] Storing chunks of document {document_id} failed, removing partial writes")
            await self.vector_store.delete_document_chunks(document_id, organization_id)
            raise
        CHUNKS_WRITTEN.labels(self.embedder.provider.name).inc(stored)

        processing_time = int((datetime.now(UTC) - start_time).total_seconds() * 1000)
        logger.info(
            f"[Processor] Document processed successfully in {processing_time}ms: {stored} chunks"
        )

        return ProcessingResult(
            document_id=document_id,
            chunks_created=stored,
            total_words=count_words(text),
            dimensions=self.embedder.dimensions,
            processing_time_ms=processing_time,
        )

    async def update_document(
        self,
        document_id: str,
        organization_id: str,
        new_text: str,
    ) -> ProcessingResult:
        """Re-process a document after its text changed."""
        document_id = require_text(document_id, "Document id")
        organization_id = require_text(organization_id, "Organization id")

        logger.info(f"[Processor] Updating chunks of document {document_id}")
        await self.delete_document_chunks(document_id, organization_id)
        return await self.process_document(document_id, organization_id, new_text)

    async def delete_document_chunks(self, document_id: str, organization_id: str | None = None) -> int:
        """Delete all chunks for a document.

        Returns:
            Number of chunks deleted
        """
        async with track_stage(Stage.PERSISTENCE.value):
            return await self.vector_store.delete_document_chunks(document_id, organization_id)

    async def has_document_chunks(self, document_id: str, organization_id: str | None = None) -> bool:
        return await self.vector_store.count_document_chunks(document_id, organization_id) > 0

    async def get_document_chunks(
        self, document_id: str, organization_id: str | None = None
    ) -> list[DocumentChunk]:
        """Stored chunks of a document in chunk_index order."""
        return await self.vector_store.get_document_chunks(document_id, organization_id)

    async def get_statistics(self, organization_id: str | None = None) -> ChunkStatistics:
        return await self.vector_store.get_statistics(organization_id)


# Singleton instance
_processor: DocumentProcessor | None = None


async def get_processor() -> DocumentProcessor:
    """Get or create the global DocumentProcessor instance."""
    global _processor

    if _processor is None:
        settings = get_settings()
        embedder = get_embedder()
        vector_store = get_vector_store(embedder.dimensions)
        chunker = get_chunker(
            target_words=settings.chunk_target_words,
            min_words=settings.chunk_min_words,
            max_words=settings.chunk_max_words,
        )
        _processor = DocumentProcessor(vector_store, embedder, chunker)

    return _processor
