"""Provider selection.

Resolves the configured provider kind once and hands out a single embedding
provider and a single generation provider for the whole process. Services
receive providers by constructor injection; the module-level getters below
only exist for process wiring.
"""

import logging

from docvault.core.config import (
    ProviderConfig,
    ProviderKind,
    Settings,
    get_settings,
    resolve_provider_kind,
)
from docvault.providers.base import EmbeddingProvider, GenerationProvider
from docvault.providers.cloud import (
    CloudEmbeddingProvider,
    CloudGenerationProvider,
    create_openai_client,
)
from docvault.providers.deterministic import (
    DeterministicEmbeddingProvider,
    DeterministicGenerationProvider,
)
from docvault.providers.local import (
    LocalEmbeddingProvider,
    LocalGenerationProvider,
    create_ollama_client,
)

logger = logging.getLogger(__name__)

__all__ = [
    "ProviderSelector",
    "check_provider_availability",
    "get_embedding_provider",
    "get_generation_provider",
    "get_provider_info",
    "get_provider_selector",
    "reset_providers",
    "resolve_provider_kind",
]


class ProviderSelector:
    """Builds and caches the providers for the configured kind."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._config = ProviderConfig.from_settings(settings)
        self._embedding: EmbeddingProvider | None = None
        self._generation: GenerationProvider | None = None
        self._openai_client = None

    @property
    def provider_config(self) -> ProviderConfig:
        return self._config

    @property
    def kind(self) -> ProviderKind:
        return self._config.kind

    def _get_openai_client(self):
        # Embedding and generation share one connection pool
        if self._openai_client is None:
            self._openai_client = create_openai_client(self.settings)
        return self._openai_client

    def embedding_provider(self) -> EmbeddingProvider:
        """Get or create the embedding provider."""
        if self._embedding is None:
            config = self._config
            if config.kind == ProviderKind.CLOUD:
                self._embedding = CloudEmbeddingProvider(
                    client=self._get_openai_client(),
                    model=config.embedding_model,
                    dimensions=config.embedding_dimensions,
                )
            elif config.kind == ProviderKind.LOCAL:
                self._embedding = LocalEmbeddingProvider(
                    client=create_ollama_client(
                        self.settings.ollama_base_url, self.settings.embedding_timeout
                    ),
                    model=config.embedding_model,
                    dimensions=config.embedding_dimensions,
                    max_concurrency=self.settings.embedding_max_concurrency,
                )
            else:
                self._embedding = DeterministicEmbeddingProvider(
                    dimensions=config.embedding_dimensions,
                    model=config.embedding_model,
                )
            logger.info(
                f"[ProviderSelector] Embedding provider: {config.kind.value} "
                f"({config.embedding_model}, {config.embedding_dimensions} dims)"
            )
        return self._embedding

    def generation_provider(self) -> GenerationProvider:
        """Get or create the generation provider."""
        if self._generation is None:
            config = self._config
            if config.kind == ProviderKind.CLOUD:
                self._generation = CloudGenerationProvider(
                    client=self._get_openai_client(),
                    model=config.generation_model,
                    default_temperature=self.settings.generation_temperature,
                    default_max_tokens=self.settings.generation_max_tokens,
                )
            elif config.kind == ProviderKind.LOCAL:
                self._generation = LocalGenerationProvider(
                    client=create_ollama_client(
                        self.settings.ollama_base_url, self.settings.generation_timeout
                    ),
                    model=config.generation_model,
                    default_temperature=self.settings.generation_temperature,
                    default_max_tokens=self.settings.generation_max_tokens,
                    max_retries=self.settings.ollama_max_retries,
                    num_ctx=self.settings.ollama_num_ctx,
                )
            else:
                self._generation = DeterministicGenerationProvider(model=config.generation_model)
            logger.info(
                f"[ProviderSelector] Generation provider: {config.kind.value} ({config.generation_model})"
            )
        return self._generation

    def info(self) -> dict:
        config = self._config
        return {
            "provider": config.kind.value,
            "generation_model": config.generation_model,
            "embedding_model": config.embedding_model,
            "embedding_dimensions": config.embedding_dimensions,
        }

    async def aclose(self) -> None:
        """Close provider connections."""
        if self._openai_client is not None:
            await self._openai_client.close()
        else:
            for provider in (self._embedding, self._generation):
                if provider is not None:
                    await provider.aclose()
        self._openai_client = None
        self._embedding = None
        self._generation = None


# Singleton instance
_selector: ProviderSelector | None = None


def get_provider_selector() -> ProviderSelector:
    """Get or create the global ProviderSelector instance."""
    global _selector

    if _selector is None:
        _selector = ProviderSelector(get_settings())

    return _selector


def get_embedding_provider() -> EmbeddingProvider:
    return get_provider_selector().embedding_provider()


def get_generation_provider() -> GenerationProvider:
    return get_provider_selector().generation_provider()


async def reset_providers() -> None:
    """Drop the global providers so the next call re-reads configuration."""
    global _selector

    if _selector is not None:
        await _selector.aclose()
        _selector = None
    get_settings.cache_clear()


async def check_provider_availability() -> dict[str, bool]:
    """Ask both active providers whether their backend answers."""
    selector = get_provider_selector()
    return {
        "embedding": await selector.embedding_provider().check_availability(),
        "generation": await selector.generation_provider().check_availability(),
    }


def get_provider_info() -> dict:
    """Describe the active provider configuration."""
    return get_provider_selector().info()
