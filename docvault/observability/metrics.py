"""Prometheus metrics for the RAG pipeline.

Tracks per-stage latency and failures so a provider outage (embedding,
generation) can be told apart from a retrieval or persistence problem.
"""

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from prometheus_client import Counter, Gauge, Histogram

from docvault.core.errors import ErrorKind, RagError

STAGE_LATENCY = Histogram(
    "rag_stage_duration_seconds",
    "Latency of a RAG pipeline stage in seconds",
    ["stage", "provider"],
    buckets=[0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
)

STAGE_FAILURES = Counter(
    "rag_stage_failures_total",
    "Failed RAG pipeline stages",
    ["stage", "kind"],
)

CHUNKS_WRITTEN = Counter(
    "rag_chunks_written_total",
    "Chunks written to the vector store",
    ["provider"],
)

ANSWERS_TOTAL = Counter(
    "rag_answers_total",
    "Answers produced by the RAG service",
    ["scope", "outcome"],  # scope: organization, document; outcome: answered, no_results
)

TOKENS_TOTAL = Counter(
    "ai_tokens_total",
    "Total tokens consumed",
    ["model", "token_type"],  # token_type: input, output
)

ACTIVE_STAGES = Gauge(
    "rag_active_stages",
    "Currently running external calls",
    ["stage"],
)


def record_tokens(model: str, prompt_tokens: int, completion_tokens: int) -> None:
    """Record token usage reported by a generation backend."""
    TOKENS_TOTAL.labels(model, "input").inc(prompt_tokens)
    TOKENS_TOTAL.labels(model, "output").inc(completion_tokens)


@asynccontextmanager
async def track_stage(stage: str, provider: str = "none") -> AsyncGenerator[None, None]:
    """Context manager timing one pipeline stage.

    Usage:
        async with track_stage("embedding", "cloud"):
            vector = await provider.generate_embedding(text)
    """
    ACTIVE_STAGES.labels(stage).inc()
    start_time = time.perf_counter()

    try:
        yield
    except RagError as e:
        STAGE_FAILURES.labels(stage, e.kind.value).inc()
        raise
    except Exception:
        STAGE_FAILURES.labels(stage, ErrorKind.INTERNAL.value).inc()
        raise
    finally:
        ACTIVE_STAGES.labels(stage).dec()
        STAGE_LATENCY.labels(stage, provider).observe(time.perf_counter() - start_time)
