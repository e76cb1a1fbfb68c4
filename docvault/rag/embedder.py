"""Embedding service.

Generates vector embeddings for text chunks and queries through the active
embedding provider, with time budgets and a dimension check on every vector.
"""

import logging

from docvault.core.config import get_settings
from docvault.core.errors import InvalidInputError, InvalidResponseError, Stage, require_text
from docvault.core.timeouts import bounded
from docvault.observability.metrics import track_stage
from docvault.providers.base import EmbeddingProvider
from docvault.providers.selector import get_embedding_provider

logger = logging.getLogger(__name__)


class Embedder:
    """Embedding service over a pluggable provider."""

    def __init__(self, provider: EmbeddingProvider, timeout: float | None = None):
        self.provider = provider
        self.timeout = timeout

    @property
    def dimensions(self) -> int:
        return self.provider.dimensions()

    @property
    def model_name(self) -> str:
        return self.provider.model_name()

    def _check_vector(self, vector: list[float]) -> list[float]:
        if not vector:
            raise InvalidResponseError("Embedding provider returned an empty vector", stage=Stage.EMBEDDING)
        if len(vector) != self.dimensions:
            raise InvalidResponseError(
                f"Embedding has {len(vector)} dimensions, expected {self.dimensions}",
                stage=Stage.EMBEDDING,
            )
        return vector

    async def embed_text(self, text: str, timeout: float | None = None) -> list[float]:
        """Generate embedding for a single text.

        Args:
            text: Text to embed
            timeout: Per-call budget in seconds (defaults to the service budget)

        Returns:
            Embedding vector of exactly `dimensions` floats
        """
        text = require_text(text, "Text", Stage.EMBEDDING)

        async with track_stage(Stage.EMBEDDING.value, self.provider.name):
            vector = await bounded(
                self.provider.generate_embedding(text),
                timeout if timeout is not None else self.timeout,
                Stage.EMBEDDING,
            )
        return self._check_vector(vector)

    async def embed_texts(self, texts: list[str], timeout: float | None = None) -> list[list[float]]:
        """Generate embeddings for multiple texts.

        Returns one vector per text, in input order. Empty texts are rejected
        rather than replaced with placeholder vectors.
        """
        if not texts:
            raise InvalidInputError("Texts list cannot be empty", stage=Stage.EMBEDDING)
        cleaned = [require_text(t, f"Text at position {i}", Stage.EMBEDDING) for i, t in enumerate(texts)]

        logger.debug(f"[Embedder] Embedding {len(cleaned)} texts with {self.model_name}")

        async with track_stage(Stage.EMBEDDING.value, self.provider.name):
            vectors = await bounded(
                self.provider.generate_embeddings(cleaned),
                timeout if timeout is not None else self.timeout,
                Stage.EMBEDDING,
            )

        if len(vectors) != len(cleaned):
            raise InvalidResponseError(
                f"Expected {len(cleaned)} embeddings, got {len(vectors)}",
                stage=Stage.EMBEDDING,
            )
        return [self._check_vector(v) for v in vectors]

    async def embed_query(self, query: str, timeout: float | None = None) -> list[float]:
        """Embed a search query.

        Alias for embed_text. A failed query embedding is raised, never
        replaced with a placeholder vector.
        """
        return await self.embed_text(query, timeout)


# Singleton instance
_embedder: Embedder | None = None


def get_embedder() -> Embedder:
    """Get or create the global Embedder instance."""
    global _embedder

    if _embedder is None:
        settings = get_settings()
        _embedder = Embedder(get_embedding_provider(), timeout=settings.embedding_timeout)

    return _embedder
