"""Deterministic test-double provider.

Returns reproducible results without calling any model. Used for:
- Automated tests (fast and reliable)
- Development without connectivity
- CI without API keys
- Fail-closed fallback for unknown provider configuration
"""

import hashlib
import re

import numpy as np

from docvault.core.errors import Stage
from docvault.providers.base import (
    EmbeddingProvider,
    GenerationOptions,
    GenerationProvider,
    validate_text,
)
from docvault.providers.parsing import ClassificationResult, SummarizationResult

TOKEN = re.compile(r"\w+", re.UNICODE)

FRAGMENT_MARKER = "[fragment"

CATEGORY_KEYWORDS: list[tuple[str, float, list[str], list[str]]] = [
    # category, confidence, keywords, tags
    ("Invoice", 0.9, ["invoice", "billing", "factura"], ["financial", "billing"]),
    ("Contract", 0.85, ["contract", "agreement", "contrato"], ["legal", "agreement"]),
    ("Report", 0.8, ["report", "analysis", "informe"], ["report", "analysis"]),
    ("Manual", 0.75, ["manual", "guide", "instructions"], ["documentation", "guide"]),
]


def _stable_hash(value: str) -> int:
    return int.from_bytes(hashlib.sha256(value.encode("utf-8")).digest()[:8], "big")


class DeterministicEmbeddingProvider(EmbeddingProvider):
    """Hashed bag-of-words embeddings.

    Each lowercased token adds a signed unit to a hashed bucket; the result
    is L2-normalized. Identical text gives identical vectors and texts that
    share words are closer under cosine similarity.
    """

    name = "test-double"

    def __init__(self, dimensions: int = 1536, model: str = "deterministic-embedding-model"):
        self._dimensions = dimensions
        self.model = model

    def embed(self, text: str) -> list[float]:
        vector = np.zeros(self._dimensions, dtype=np.float64)
        tokens = TOKEN.findall(text.lower())

        for token in tokens:
            h = _stable_hash(token)
            sign = 1.0 if (h >> 32) & 1 else -1.0
            vector[h % self._dimensions] += sign

        if not tokens or not vector.any():
            # Text without word characters still gets a stable, non-zero vector
            rng = np.random.default_rng(_stable_hash(text))
            vector = rng.standard_normal(self._dimensions)

        norm = np.linalg.norm(vector)
        return (vector / norm).tolist()

    async def generate_embedding(self, text: str) -> list[float]:
        validate_text(text)
        return self.embed(text)

    def dimensions(self) -> int:
        return self._dimensions

    def model_name(self) -> str:
        return self.model

    async def check_availability(self) -> bool:
        return True


class DeterministicGenerationProvider(GenerationProvider):
    """Canned, reproducible generation."""

    name = "test-double"

    def __init__(self, model: str = "deterministic-chat-model"):
        self.model = model

    async def generate(self, prompt: str, options: GenerationOptions | None = None) -> str:
        validate_text(prompt, "Prompt", Stage.GENERATION)
        lowered = prompt.lower()

        if FRAGMENT_MARKER in lowered:
            fragments = lowered.count(FRAGMENT_MARKER)
            return (
                f"Based on the {fragments} provided fragment(s), this is a deterministic answer. "
                "In a real deployment a language model would answer from the context."
            )

        preview = prompt.strip()[:50]
        suffix = "..." if len(prompt.strip()) > 50 else ""
        return f'Deterministic response for prompt: "{preview}{suffix}"'

    async def classify(self, text: str) -> ClassificationResult:
        """Keyword-based classification."""
        validate_text(text, "Document text", Stage.GENERATION)
        lowered = text.lower()

        for category, confidence, keywords, tags in CATEGORY_KEYWORDS:
            if any(k in lowered for k in keywords):
                return ClassificationResult(category=category, confidence=confidence, tags=["test-double", *tags])

        return ClassificationResult(category="Other", confidence=0.7, tags=["test-double"])

    async def summarize(self, text: str) -> SummarizationResult:
        validate_text(text, "Document text", Stage.GENERATION)
        word_count = len(text.split())
        return SummarizationResult(
            summary=f"This document contains approximately {word_count} words. It is a deterministic summary.",
            key_points=[
                f"The document has {word_count} words",
                "Key point extracted from the content",
                "Main conclusion of the document",
            ],
        )

    def model_name(self) -> str:
        return self.model

    async def check_availability(self) -> bool:
        return True
