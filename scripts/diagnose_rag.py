#!/usr/bin/env python3
"""Diagnose the RAG setup.

Checks the active provider, the vector collection and, optionally, runs a
sample question for an organization.

Run with: python scripts/diagnose_rag.py [--org ORG_ID] [--question TEXT]
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from docvault.core.config import get_settings
from docvault.core.errors import RagError
from docvault.core.logging import setup_logging
from docvault.providers.selector import (
    check_provider_availability,
    get_provider_info,
    reset_providers,
)
from docvault.rag import get_rag_service, get_vector_store

DEFAULT_QUESTION = "What are the main objectives?"


async def diagnose(organization_id: str | None, question: str) -> int:
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)

    print("=== RAG DIAGNOSTICS ===\n")

    # 1. Provider
    info = get_provider_info()
    print(f"Provider:   {info['provider']} (configured as '{settings.ai_provider}')")
    print(f"Generation: {info['generation_model']}")
    print(f"Embeddings: {info['embedding_model']} ({info['embedding_dimensions']} dims)")

    availability = await check_provider_availability()
    for role, ok in availability.items():
        print(f"{'✓' if ok else '✗'} {role} backend {'reachable' if ok else 'NOT reachable'}")

    # 2. Collection
    print(f"\nCollection: {settings.qdrant_collection} at {settings.qdrant_url}")
    store = get_vector_store(info["embedding_dimensions"])
    try:
        await store.ensure_collection()
    except RagError as e:
        print(f"✗ {e.message}")
        print("  Did the provider change? Re-process documents into a new collection.")
        return 1

    stats = await store.get_statistics()
    print(f"✓ {stats.total_chunks} chunks across {stats.total_documents} documents")

    if not organization_id:
        print("\nPass --org to run a sample question.")
        return 0

    org_stats = await store.get_statistics(organization_id)
    print(f"  Org {organization_id}: {org_stats.total_chunks} chunks, {org_stats.total_documents} documents")
    if org_stats.total_chunks == 0:
        print("✗ No chunks for this organization. Process its documents first.")
        return 1

    # 3. Sample question
    print(f'\nQuestion: "{question}"')
    service = await get_rag_service()
    try:
        answer = await service.answer_question(question, organization_id)
    except RagError as e:
        print(f"✗ {e.kind.value} during {e.stage.value}: {e.message}")
        return 1

    print(f"✓ Answer: {answer.answer}")
    for ref in answer.chunks:
        print(f"  [{ref.score:.4f}] {ref.document_id}: {ref.content[:80]}...")

    return 0


async def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--org", dest="organization_id", help="organization to run a sample question for")
    parser.add_argument("--question", default=DEFAULT_QUESTION, help="sample question")
    args = parser.parse_args()

    try:
        return await diagnose(args.organization_id, args.question)
    finally:
        await reset_providers()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
