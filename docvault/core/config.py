"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables (or a local .env file).
ProviderConfig is the immutable, process-wide view of the active AI provider
derived from these settings.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class ProviderKind(str, Enum):
    """Recognized AI provider kinds."""

    CLOUD = "cloud"
    LOCAL = "local"
    TEST_DOUBLE = "test-double"


PROVIDER_ALIASES: dict[str, ProviderKind] = {
    "cloud": ProviderKind.CLOUD,
    "openai": ProviderKind.CLOUD,
    "azure": ProviderKind.CLOUD,
    "local": ProviderKind.LOCAL,
    "ollama": ProviderKind.LOCAL,
    "test-double": ProviderKind.TEST_DOUBLE,
    "test_double": ProviderKind.TEST_DOUBLE,
    "mock": ProviderKind.TEST_DOUBLE,
    "test": ProviderKind.TEST_DOUBLE,
}


def resolve_provider_kind(raw: str | None) -> ProviderKind:
    """Map a configured provider name to a ProviderKind.

    Unknown values fail closed to the deterministic test double so a
    misconfigured environment never makes unintended network calls.
    """
    normalized = (raw or "").strip().lower()
    kind = PROVIDER_ALIASES.get(normalized)
    if kind is None:
        logger.warning(
            f"[Config] Unknown AI provider '{raw}', falling back to '{ProviderKind.TEST_DOUBLE.value}'"
        )
        return ProviderKind.TEST_DOUBLE
    return kind


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # ============================================
    # Application
    # ============================================
    app_name: str = "DocVault RAG"
    app_version: str = "0.1.0"
    environment: str = "development"

    # ============================================
    # AI Provider Selection
    # ============================================
    ai_provider: str = Field(
        default="cloud", description="cloud | local | test-double (aliases: openai, ollama, mock)"
    )

    # ============================================
    # Cloud provider (OpenAI / Azure OpenAI)
    # ============================================
    openai_api_key: str = ""
    openai_base_url: str | None = None

    # Azure OpenAI takes precedence when an endpoint is set
    azure_openai_endpoint: str = ""
    azure_openai_api_key: str = ""
    azure_openai_api_version: str = "2025-04-01-preview"

    # ============================================
    # Local provider (Ollama)
    # ============================================
    ollama_base_url: str = "http://localhost:11434"
    ollama_chat_model: str = "llama3.2:3b"
    ollama_embedding_model: str = "nomic-embed-text"
    ollama_embedding_dimensions: int = 768
    ollama_max_retries: int = 3
    ollama_num_ctx: int = 2048  # Enough for ~4000 char prompts

    # ============================================
    # Models
    # ============================================
    embedding_model: str = Field(
        default="text-embedding-3-small", description="Embedding model name"
    )
    embedding_dimensions: int = Field(
        default=1536, description="Embedding vector dimensions (must match model)"
    )
    generation_model: str = Field(default="gpt-4o-mini", description="Generation model name")
    generation_temperature: float = 0.3
    generation_max_tokens: int = 1000

    # ============================================
    # RAG
    # ============================================
    rag_temperature: float = 0.3  # Low temperature keeps answers close to the context
    rag_max_tokens: int = 1000
    rag_top_k_cloud: int = 6  # Large context window
    rag_top_k_local: int = 3  # Small local context window
    search_candidate_multiplier: int = 10

    # ============================================
    # Chunking
    # ============================================
    chunk_target_words: int = 800
    chunk_min_words: int = 100
    chunk_max_words: int = 1000

    # ============================================
    # Concurrency & Timeouts (seconds)
    # ============================================
    embedding_max_concurrency: int = 4
    embedding_timeout: float = 60.0
    generation_timeout: float = 120.0
    vector_query_timeout: float = 30.0

    # ============================================
    # Qdrant (Vector Database)
    # ============================================
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: str | None = None
    qdrant_collection: str = "document_chunks"

    # ============================================
    # Langfuse (Observability)
    # ============================================
    langfuse_host: str = "http://localhost:3000"
    langfuse_public_key: str = ""
    langfuse_secret_key: str = ""

    # ============================================
    # Logging
    # ============================================
    log_level: str = "INFO"
    log_format: str = "console"  # "json" or "console"

    @field_validator("chunk_min_words", "chunk_target_words", "chunk_max_words")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Chunk sizes must be positive word counts."""
        if v < 1:
            raise ValueError("chunk word counts must be positive")
        return v

    @property
    def provider_kind(self) -> ProviderKind:
        """Resolved provider kind (unknown values fail closed)."""
        return resolve_provider_kind(self.ai_provider)

    def default_top_k(self, kind: ProviderKind | None = None) -> int:
        """Number of chunks to retrieve for the given provider kind."""
        kind = kind or self.provider_kind
        if kind == ProviderKind.CLOUD:
            return self.rag_top_k_cloud
        return self.rag_top_k_local


@dataclass(frozen=True)
class ProviderConfig:
    """Immutable view of the active provider.

    embedding_dimensions is the single source of truth used to validate
    every vector before it reaches a similarity query.
    """

    kind: ProviderKind
    generation_model: str
    embedding_model: str
    embedding_dimensions: int

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderConfig":
        kind = settings.provider_kind
        if kind == ProviderKind.LOCAL:
            return cls(
                kind=kind,
                generation_model=settings.ollama_chat_model,
                embedding_model=settings.ollama_embedding_model,
                embedding_dimensions=settings.ollama_embedding_dimensions,
            )
        if kind == ProviderKind.TEST_DOUBLE:
            return cls(
                kind=kind,
                generation_model="deterministic-chat-model",
                embedding_model="deterministic-embedding-model",
                embedding_dimensions=settings.embedding_dimensions,
            )
        return cls(
            kind=kind,
            generation_model=settings.generation_model,
            embedding_model=settings.embedding_model,
            embedding_dimensions=settings.embedding_dimensions,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
