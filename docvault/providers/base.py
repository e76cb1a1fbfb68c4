"""Provider interfaces for embeddings and text generation.

Every backend (cloud, local, deterministic test double) implements the same
small capability set so callers never inspect concrete types.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass

from docvault.core.errors import InvalidInputError, InvalidResponseError, Stage
from docvault.providers.parsing import (
    ClassificationResult,
    SummarizationResult,
    parse_classification,
    parse_summary,
)


DOCUMENT_CATEGORIES = [
    "Invoice",
    "Contract",
    "Report",
    "Manual",
    "Presentation",
    "Correspondence",
    "Form",
    "Other",
]

CLASSIFY_CHARS = 2000
SUMMARIZE_CHARS = 4000


@dataclass
class GenerationOptions:
    """Options for text generation."""

    temperature: float | None = None  # lower = more deterministic
    max_tokens: int | None = None
    model: str | None = None  # per-call model override
    system_message: str | None = None


def validate_text(text: str, what: str = "Text", stage: Stage = Stage.EMBEDDING) -> str:
    if not text or not isinstance(text, str) or not text.strip():
        raise InvalidInputError(f"{what} cannot be empty", stage=stage)
    return text


def validate_vector(vector, expected_dim: int, source: str) -> list[float]:
    """Reject empty, non-numeric or wrong-length vectors."""
    if not vector or not isinstance(vector, (list, tuple)):
        raise InvalidResponseError(f"{source} returned an empty or malformed embedding", stage=Stage.EMBEDDING)
    if len(vector) != expected_dim:
        raise InvalidResponseError(
            f"{source} returned {len(vector)} dimensions, expected {expected_dim}",
            stage=Stage.EMBEDDING,
        )
    try:
        return [float(x) for x in vector]
    except (TypeError, ValueError) as e:
        raise InvalidResponseError(f"{source} returned non-numeric embedding values", stage=Stage.EMBEDDING) from e


class EmbeddingProvider(ABC):
    """Turns text into fixed-length vectors."""

    name: str = "base"

    # Worker pool size for backends without native batching (1 = sequential)
    max_concurrency: int = 1

    @abstractmethod
    async def generate_embedding(self, text: str) -> list[float]:
        """Embed a single text."""

    async def generate_embeddings(self, texts: list[str]) -> list[list[float]]:
        """Embed many texts, one vector per text in input order.

        Default for backends without native batching: per-text calls through a
        bounded worker pool, reassembled in input order. The first failure
        cancels the remaining calls and is raised as-is.
        """
        if not texts:
            raise InvalidInputError("Texts list cannot be empty", stage=Stage.EMBEDDING)
        for text in texts:
            validate_text(text, "Every text")

        semaphore = asyncio.Semaphore(max(1, self.max_concurrency))

        async def embed_one(text: str) -> list[float]:
            async with semaphore:
                return await self.generate_embedding(text)

        try:
            async with asyncio.TaskGroup() as group:
                tasks = [group.create_task(embed_one(t)) for t in texts]
        except ExceptionGroup as eg:
            raise eg.exceptions[0]
        return [task.result() for task in tasks]

    @abstractmethod
    def dimensions(self) -> int:
        """Declared vector length."""

    @abstractmethod
    def model_name(self) -> str:
        """Embedding model identifier."""

    @abstractmethod
    async def check_availability(self) -> bool:
        """True if the backend answers."""

    async def aclose(self) -> None:
        """Release network resources."""


class GenerationProvider(ABC):
    """Turns prompts into natural-language text."""

    name: str = "base"

    @abstractmethod
    async def generate(self, prompt: str, options: GenerationOptions | None = None) -> str:
        """Generate a response for the prompt."""

    @abstractmethod
    def model_name(self) -> str:
        """Generation model identifier."""

    @abstractmethod
    async def check_availability(self) -> bool:
        """True if the backend answers."""

    async def aclose(self) -> None:
        """Release network resources."""

    async def classify(self, text: str) -> ClassificationResult:
        """Classify a document into one of DOCUMENT_CATEGORIES.

        Parse failures degrade to the default classification; upstream
        failures propagate.
        """
        validate_text(text, "Document text", Stage.GENERATION)
        prompt = f"""Analyze the following document and classify it.

Possible categories: {", ".join(DOCUMENT_CATEGORIES)}

Document text (first {CLASSIFY_CHARS} characters):
{text[:CLASSIFY_CHARS]}

Reply ONLY with a valid JSON object (no markdown, no explanations):
{{
  "category": "category_name",
  "confidence": 0.95,
  "tags": ["tag1", "tag2", "tag3"]
}}"""

        response = await self.generate(prompt, GenerationOptions(temperature=0.2, max_tokens=200))
        return parse_classification(response, DOCUMENT_CATEGORIES)

    async def summarize(self, text: str) -> SummarizationResult:
        """Summarize a document in 2-3 sentences plus 3-5 key points."""
        validate_text(text, "Document text", Stage.GENERATION)
        prompt = f"""Summarize the following document in 2-3 sentences and extract the 3-5 most important key points.

Document text (first {SUMMARIZE_CHARS} characters):
{text[:SUMMARIZE_CHARS]}

Reply ONLY with a valid JSON object (no markdown, no explanations):
{{
  "summary": "Summary in 2-3 sentences",
  "keyPoints": ["point1", "point2", "point3"]
}}"""

        response = await self.generate(prompt, GenerationOptions(temperature=0.3, max_tokens=500))
        return parse_summary(response)
