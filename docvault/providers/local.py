"""Local provider using an Ollama server over HTTP.

No API key and no cost. Requires Ollama running (default localhost:11434).

Recommended models:
- Chat: llama3.2:3b
- Embeddings: nomic-embed-text (768 dims)
"""

import asyncio
import logging

import httpx

from docvault.core.errors import (
    InvalidResponseError,
    Stage,
    UpstreamFailureError,
    UpstreamTimeoutError,
)
from docvault.providers.base import (
    EmbeddingProvider,
    GenerationOptions,
    GenerationProvider,
    validate_text,
    validate_vector,
)

logger = logging.getLogger(__name__)

RETRY_BASE_DELAY = 0.3  # seconds, doubled per attempt


def map_http_error(e: httpx.HTTPError, stage: Stage, model: str) -> UpstreamFailureError:
    """Translate an httpx failure into the core taxonomy."""
    if isinstance(e, httpx.TimeoutException):
        return UpstreamTimeoutError(f"Ollama request timed out: {e}", stage=stage)
    if isinstance(e, httpx.HTTPStatusError):
        if e.response.status_code == 404:
            return UpstreamFailureError(
                f"Ollama model {model} not found. Run: ollama pull {model}", stage=stage
            )
        return UpstreamFailureError(
            f"Ollama returned HTTP {e.response.status_code}: {e.response.text[:200]}", stage=stage
        )
    if isinstance(e, httpx.ConnectError):
        return UpstreamFailureError("Ollama server not running. Start it with: ollama serve", stage=stage)
    return UpstreamFailureError(f"Ollama request failed: {e}", stage=stage)


def create_ollama_client(base_url: str, timeout: float = 120.0) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=base_url, timeout=httpx.Timeout(timeout, connect=10.0))


class LocalEmbeddingProvider(EmbeddingProvider):
    """Ollama embeddings (no native batching, bounded worker pool)."""

    name = "local"

    def __init__(
        self,
        client: httpx.AsyncClient,
        model: str = "nomic-embed-text",
        dimensions: int = 768,
        max_concurrency: int = 1,
    ):
        self.client = client
        self.model = model
        self._dimensions = dimensions
        self.max_concurrency = max_concurrency

    async def generate_embedding(self, text: str) -> list[float]:
        """Generate an embedding with the local model."""
        validate_text(text)

        try:
            response = await self.client.post(
                "/api/embeddings",
                json={"model": self.model, "prompt": text},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"[LocalProvider] Error generating embedding: {e}")
            raise map_http_error(e, Stage.EMBEDDING, self.model) from e
        except ValueError as e:
            raise InvalidResponseError("Ollama returned a non-JSON embedding response", stage=Stage.EMBEDDING) from e

        if not isinstance(data, dict):
            raise InvalidResponseError("Invalid embedding response from Ollama", stage=Stage.EMBEDDING)
        return validate_vector(data.get("embedding"), self._dimensions, "Ollama")

    def dimensions(self) -> int:
        return self._dimensions

    def model_name(self) -> str:
        return self.model

    async def check_availability(self) -> bool:
        return await _ping(self.client)

    async def aclose(self) -> None:
        await self.client.aclose()


class LocalGenerationProvider(GenerationProvider):
    """Ollama text generation with retry on transient failures."""

    name = "local"

    def __init__(
        self,
        client: httpx.AsyncClient,
        model: str = "llama3.2:3b",
        default_temperature: float = 0.3,
        default_max_tokens: int = 1000,
        max_retries: int = 3,
        num_ctx: int = 2048,
    ):
        self.client = client
        self.model = model
        self.default_temperature = default_temperature
        self.default_max_tokens = default_max_tokens
        self.max_retries = max(1, max_retries)
        self.num_ctx = num_ctx

    async def generate(self, prompt: str, options: GenerationOptions | None = None) -> str:
        """Generate a response, retrying transient network errors with backoff."""
        validate_text(prompt, "Prompt", Stage.GENERATION)
        options = options or GenerationOptions()

        model = options.model or self.model
        payload = {
            "model": model,
            "prompt": prompt.strip(),
            "stream": False,
            "options": {
                "temperature": options.temperature if options.temperature is not None else self.default_temperature,
                "num_predict": options.max_tokens or self.default_max_tokens,
                "num_ctx": self.num_ctx,
            },
        }
        if options.system_message:
            payload["system"] = options.system_message.strip()

        for attempt in range(1, self.max_retries + 1):
            try:
                logger.debug(f"[LocalProvider] Generating response with {model} (attempt {attempt})...")
                response = await self.client.post("/api/generate", json=payload)
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPError as e:
                logger.warning(f"[LocalProvider] Error generating response (attempt {attempt}): {e}")
                retryable = isinstance(e, httpx.TransportError) or (
                    isinstance(e, httpx.HTTPStatusError) and e.response.status_code >= 500
                )
                if attempt == self.max_retries or not retryable:
                    raise map_http_error(e, Stage.GENERATION, model) from e
                await asyncio.sleep(RETRY_BASE_DELAY * 2 ** (attempt - 1))
                continue
            except ValueError as e:
                raise InvalidResponseError("Ollama returned a non-JSON response", stage=Stage.GENERATION) from e

            text = data.get("response") if isinstance(data, dict) else None
            if not text or not text.strip():
                raise InvalidResponseError("No content in Ollama response", stage=Stage.GENERATION)
            return text.strip()

        # Loop always returns or raises
        raise UpstreamFailureError("Failed to generate response after retries", stage=Stage.GENERATION)

    def model_name(self) -> str:
        return self.model

    async def check_availability(self) -> bool:
        return await _ping(self.client)

    async def aclose(self) -> None:
        await self.client.aclose()


async def _ping(client: httpx.AsyncClient) -> bool:
    try:
        response = await client.get("/api/tags")
        response.raise_for_status()
        return True
    except httpx.HTTPError as e:
        logger.error(f"[LocalProvider] Ollama connection failed: {e}. Is Ollama running on {client.base_url}?")
        return False
