"""Generation service.

Runs prompts through the active generation provider with a time budget,
rejects empty answers, and traces each call to Langfuse when keys are
configured.
"""

import logging
import time

from langfuse import Langfuse

from docvault.core.config import Settings, get_settings
from docvault.core.errors import InvalidResponseError, Stage, require_text
from docvault.core.timeouts import bounded
from docvault.observability.metrics import track_stage
from docvault.providers.base import GenerationOptions, GenerationProvider
from docvault.providers.selector import get_generation_provider

logger = logging.getLogger(__name__)


def create_langfuse(settings: Settings) -> Langfuse | None:
    """Langfuse client, or None when tracing is not configured."""
    if settings.langfuse_public_key and settings.langfuse_secret_key:
        return Langfuse(
            public_key=settings.langfuse_public_key,
            secret_key=settings.langfuse_secret_key,
            host=settings.langfuse_host,
        )
    return None


class Generator:
    """Generation service over a pluggable provider."""

    def __init__(
        self,
        provider: GenerationProvider,
        timeout: float | None = None,
        langfuse: Langfuse | None = None,
    ):
        self.provider = provider
        self.timeout = timeout
        self._langfuse = langfuse

    @property
    def model_name(self) -> str:
        return self.provider.model_name()

    async def generate(
        self,
        prompt: str,
        options: GenerationOptions | None = None,
        timeout: float | None = None,
    ) -> str:
        """Generate a response for the prompt.

        Args:
            prompt: Full prompt text
            options: Temperature, token budget and overrides
            timeout: Per-call budget in seconds (defaults to the service budget)

        Returns:
            Non-empty generated text
        """
        prompt = require_text(prompt, "Prompt", Stage.GENERATION)
        options = options or GenerationOptions()
        model = options.model or self.model_name

        # Create Langfuse generation if available
        generation = None
        if self._langfuse:
            try:
                generation = self._langfuse.start_generation(
                    name="rag-generation",
                    model=model,
                    input=prompt,
                    metadata={
                        "provider": self.provider.name,
                        "temperature": options.temperature,
                        "max_tokens": options.max_tokens,
                    },
                )
            except Exception as e:
                # Tracing errors shouldn't break generation
                logger.warning(f"[Generator] Langfuse generation start failed: {e}")

        start_time = time.perf_counter()

        try:
            async with track_stage(Stage.GENERATION.value, self.provider.name):
                answer = await bounded(
                    self.provider.generate(prompt, options),
                    timeout if timeout is not None else self.timeout,
                    Stage.GENERATION,
                )
            if not answer or not answer.strip():
                raise InvalidResponseError("Generation provider returned an empty answer", stage=Stage.GENERATION)
        except Exception as e:
            if generation:
                generation.update(level="ERROR", status_message=str(e))
                generation.end()
            raise

        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(f"[Generator] Generated {len(answer)} chars with {model} in {latency_ms:.0f}ms")

        if generation:
            generation.update(output=answer, metadata={"latency_ms": latency_ms})
            generation.end()

        return answer.strip()

    def flush(self) -> None:
        if self._langfuse:
            self._langfuse.flush()


# Singleton instance
_generator: Generator | None = None


def get_generator() -> Generator:
    """Get or create the global Generator instance."""
    global _generator

    if _generator is None:
        settings = get_settings()
        _generator = Generator(
            get_generation_provider(),
            timeout=settings.generation_timeout,
            langfuse=create_langfuse(settings),
        )

    return _generator
