"""RAG service - grounded question answering.

Retrieves organization-scoped context, builds a grounded prompt and asks the
generation provider for an answer with traceable sources.
"""

import logging

from docvault.core.config import get_settings
from docvault.core.errors import InternalError, InvalidInputError, RagError, Stage, require_text
from docvault.observability.metrics import ANSWERS_TOTAL
from docvault.providers.base import GenerationOptions
from docvault.providers.selector import get_provider_selector
from docvault.rag.generator import Generator, get_generator
from docvault.rag.models import ChunkReference, RagAnswer, SearchResult
from docvault.rag.prompt_builder import build_prompt
from docvault.rag.retriever import Retriever, get_retriever

logger = logging.getLogger(__name__)

NO_RESULTS_ANSWER = (
    "I could not find relevant information in the knowledge base to answer your question."
)
NO_RESULTS_IN_DOCUMENT_ANSWER = (
    "I could not find relevant information in this document to answer your question."
)


def unique_sources(results: list[SearchResult]) -> list[str]:
    """Document ids of the results, deduplicated in first-seen order."""
    return list(dict.fromkeys(r.chunk.document_id for r in results))


class RagService:
    """Question answering over an organization's documents."""

    def __init__(
        self,
        retriever: Retriever,
        generator: Generator,
        default_top_k: int = 3,
        temperature: float = 0.3,
        max_tokens: int = 1000,
    ):
        self.retriever = retriever
        self.generator = generator
        self.default_top_k = default_top_k
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def answer_question(
        self,
        question: str,
        organization_id: str,
        top_k: int | None = None,
        timeout: float | None = None,
    ) -> RagAnswer:
        """Answer a question from the organization's documents.

        Args:
            question: User's question
            organization_id: Tenant scope for retrieval
            top_k: Chunks to retrieve (defaults per provider kind)
            timeout: Per-call budget for each external call

        Returns:
            RagAnswer with deduplicated sources and per-chunk scores
        """
        question = require_text(question, "Question")
        organization_id = require_text(organization_id, "Organization id")

        return await self._answer(
            question,
            organization_id,
            document_id=None,
            top_k=top_k,
            timeout=timeout,
        )

    async def answer_question_in_document(
        self,
        question: str,
        organization_id: str,
        document_id: str,
        top_k: int | None = None,
        timeout: float | None = None,
    ) -> RagAnswer:
        """Answer a question from a single document."""
        question = require_text(question, "Question")
        organization_id = require_text(organization_id, "Organization id")
        document_id = require_text(document_id, "Document id")

        return await self._answer(
            question,
            organization_id,
            document_id=document_id,
            top_k=top_k,
            timeout=timeout,
        )

    async def _answer(
        self,
        question: str,
        organization_id: str,
        document_id: str | None,
        top_k: int | None,
        timeout: float | None,
    ) -> RagAnswer:
        scope = "document" if document_id else "organization"
        top_k = top_k if top_k is not None else self.default_top_k
        if top_k < 1:
            raise InvalidInputError("top_k must be at least 1", stage=Stage.RETRIEVAL)
        logger.info(f'[RAG] Answering ({scope}, top_k={top_k}): "{question[:50]}"')

        stage = Stage.RETRIEVAL
        try:
            results = await self.retriever.retrieve(
                question,
                organization_id,
                document_id=document_id,
                top_k=top_k,
                timeout=timeout,
            )

            if not results:
                logger.info(f"[RAG] No relevant chunks found ({scope})")
                ANSWERS_TOTAL.labels(scope, "no_results").inc()
                if document_id:
                    return RagAnswer(answer=NO_RESULTS_IN_DOCUMENT_ANSWER, sources=[document_id])
                return RagAnswer(answer=NO_RESULTS_ANSWER)

            stage = Stage.GENERATION
            prompt = build_prompt(question, [r.chunk.content for r in results])
            answer = await self.generator.generate(
                prompt,
                GenerationOptions(temperature=self.temperature, max_tokens=self.max_tokens),
                timeout=timeout,
            )
        except RagError:
            raise
        except Exception as e:
            logger.error(f"[RAG] Unexpected failure during {stage.value}: {e}", exc_info=True)
            raise InternalError(f"Unexpected failure: {e}", stage=stage) from e

        ANSWERS_TOTAL.labels(scope, "answered").inc()
        logger.info(f"[RAG] Answer generated from {len(results)} chunks")

        return RagAnswer(
            answer=answer,
            sources=unique_sources(results),
            chunks=[
                ChunkReference(document_id=r.chunk.document_id, content=r.chunk.content, score=r.score)
                for r in results
            ],
        )


# Singleton instance
_rag_service: RagService | None = None


async def get_rag_service() -> RagService:
    """Get or create the global RagService instance."""
    global _rag_service

    if _rag_service is None:
        settings = get_settings()
        selector = get_provider_selector()
        _rag_service = RagService(
            retriever=await get_retriever(),
            generator=get_generator(),
            default_top_k=settings.default_top_k(selector.kind),
            temperature=settings.rag_temperature,
            max_tokens=settings.rag_max_tokens,
        )

    return _rag_service
