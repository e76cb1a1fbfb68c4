"""Cloud provider using OpenAI (or Azure OpenAI).

Embeddings use native batching; generation uses chat completions.
"""

import logging

import httpx
import openai
from openai import AsyncAzureOpenAI, AsyncOpenAI

from docvault.core.config import Settings
from docvault.core.errors import (
    InvalidInputError,
    InvalidResponseError,
    Stage,
    UpstreamFailureError,
    UpstreamTimeoutError,
)
from docvault.observability.metrics import record_tokens
from docvault.providers.base import (
    EmbeddingProvider,
    GenerationOptions,
    GenerationProvider,
    validate_text,
    validate_vector,
)

logger = logging.getLogger(__name__)

# Models that take max_completion_tokens and no temperature
REASONING_MODEL_MARKERS = ["gpt-5", "o1", "o3"]


def create_openai_client(settings: Settings) -> AsyncOpenAI:
    """Create the OpenAI client, preferring Azure when an endpoint is set."""
    # Longer timeout for batch embedding of large documents
    timeout = httpx.Timeout(120.0, connect=30.0)

    if settings.azure_openai_endpoint:
        logger.info(f"[CloudProvider] Using Azure OpenAI endpoint '{settings.azure_openai_endpoint}'")
        return AsyncAzureOpenAI(
            api_key=settings.azure_openai_api_key,
            api_version=settings.azure_openai_api_version,
            azure_endpoint=settings.azure_openai_endpoint,
            timeout=timeout,
        )

    return AsyncOpenAI(
        api_key=settings.openai_api_key or None,
        base_url=settings.openai_base_url,
        timeout=timeout,
    )


def map_openai_error(e: Exception, stage: Stage, action: str) -> Exception:
    """Translate an OpenAI SDK exception into the core taxonomy."""
    if isinstance(e, openai.APITimeoutError):
        return UpstreamTimeoutError(f"OpenAI {action} timed out", stage=stage)
    if isinstance(e, openai.AuthenticationError):
        return UpstreamFailureError("OpenAI API key configuration error", stage=stage)
    if isinstance(e, openai.RateLimitError):
        return UpstreamFailureError("OpenAI API rate limit or quota exceeded", stage=stage)
    if isinstance(e, openai.BadRequestError):
        return InvalidInputError(f"OpenAI rejected the {action} request: {e}", stage=stage)
    if isinstance(e, (openai.APIConnectionError, openai.APIStatusError)):
        return UpstreamFailureError(f"OpenAI {action} failed: {e}", stage=stage)
    return UpstreamFailureError(f"Failed to {action}: {e}", stage=stage)


class CloudEmbeddingProvider(EmbeddingProvider):
    """OpenAI embedding service.

    Uses text-embedding-3-small by default for cost-effective embeddings.
    """

    name = "cloud"
    BATCH_SIZE = 100  # API limit per request

    def __init__(self, client: AsyncOpenAI, model: str, dimensions: int):
        self.client = client
        self.model = model
        self._dimensions = dimensions

    async def generate_embedding(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        validate_text(text)

        try:
            response = await self.client.embeddings.create(
                input=text,
                model=self.model,
            )
        except openai.OpenAIError as e:
            logger.error(f"[CloudProvider] Error generating embedding: {e}")
            raise map_openai_error(e, Stage.EMBEDDING, "generate embedding") from e

        if not response.data:
            raise InvalidResponseError("OpenAI returned no embedding", stage=Stage.EMBEDDING)
        return validate_vector(response.data[0].embedding, self._dimensions, "OpenAI")

    async def generate_embeddings(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts in batches.

        Returns exactly one vector per text, in input order.
        """
        if not texts:
            raise InvalidInputError("Texts list cannot be empty", stage=Stage.EMBEDDING)
        for text in texts:
            validate_text(text, "Every text")

        all_embeddings: list[list[float]] = []

        for batch_start in range(0, len(texts), self.BATCH_SIZE):
            batch = texts[batch_start : batch_start + self.BATCH_SIZE]

            try:
                response = await self.client.embeddings.create(
                    input=batch,
                    model=self.model,
                )
            except openai.OpenAIError as e:
                logger.error(f"[CloudProvider] Error generating embeddings batch: {e}")
                raise map_openai_error(e, Stage.EMBEDDING, "generate embeddings") from e

            if len(response.data) != len(batch):
                raise InvalidResponseError(
                    f"Expected {len(batch)} embeddings, got {len(response.data)}",
                    stage=Stage.EMBEDDING,
                )

            # The API tags each item with its input index
            ordered = sorted(response.data, key=lambda item: item.index)
            all_embeddings.extend(
                validate_vector(item.embedding, self._dimensions, "OpenAI") for item in ordered
            )

        return all_embeddings

    def dimensions(self) -> int:
        return self._dimensions

    def model_name(self) -> str:
        return self.model

    async def check_availability(self) -> bool:
        try:
            await self.client.models.list()
            return True
        except openai.OpenAIError as e:
            logger.error(f"[CloudProvider] OpenAI connection failed: {e}")
            return False

    async def aclose(self) -> None:
        await self.client.close()


class CloudGenerationProvider(GenerationProvider):
    """OpenAI chat-completion generation."""

    name = "cloud"

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        default_temperature: float = 0.3,
        default_max_tokens: int = 1000,
    ):
        self.client = client
        self.model = model
        self.default_temperature = default_temperature
        self.default_max_tokens = default_max_tokens

    async def generate(self, prompt: str, options: GenerationOptions | None = None) -> str:
        """Send a chat completion request.

        Args:
            prompt: User prompt
            options: Temperature, token budget, model override, system message

        Returns:
            Generated text (trimmed)
        """
        validate_text(prompt, "Prompt", Stage.GENERATION)
        options = options or GenerationOptions()

        model = options.model or self.model
        temperature = options.temperature if options.temperature is not None else self.default_temperature
        max_tokens = options.max_tokens or self.default_max_tokens

        messages = []
        if options.system_message and options.system_message.strip():
            messages.append({"role": "system", "content": options.system_message.strip()})
        messages.append({"role": "user", "content": prompt.strip()})

        # Build request params - some models don't support all params
        create_params = {
            "model": model,
            "messages": messages,
        }
        if not any(x in model.lower() for x in REASONING_MODEL_MARKERS):
            create_params["temperature"] = temperature
            create_params["max_tokens"] = max_tokens
        else:
            create_params["max_completion_tokens"] = max_tokens

        logger.debug(f"[CloudProvider] Generating response with {model}...")

        try:
            response = await self.client.chat.completions.create(**create_params)
        except openai.OpenAIError as e:
            logger.error(f"[CloudProvider] Error generating response: {e}")
            raise map_openai_error(e, Stage.GENERATION, "generate response") from e

        if not response.choices or not response.choices[0].message.content:
            raise InvalidResponseError("No content in OpenAI response", stage=Stage.GENERATION)

        if response.usage:
            record_tokens(model, response.usage.prompt_tokens, response.usage.completion_tokens)

        return response.choices[0].message.content.strip()

    def model_name(self) -> str:
        return self.model

    async def check_availability(self) -> bool:
        try:
            await self.client.models.list()
            return True
        except openai.OpenAIError as e:
            logger.error(f"[CloudProvider] OpenAI connection failed: {e}")
            return False

    async def aclose(self) -> None:
        await self.client.close()
