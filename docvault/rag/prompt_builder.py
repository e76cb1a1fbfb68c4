"""Prompt templates for answer synthesis.

Builds grounded prompts that combine retrieved context fragments with the
user's question.
"""

import math

from docvault.core.errors import InvalidInputError, Stage

CHARS_PER_TOKEN = 4
MIN_PARTIAL_TOKENS = 50
FRAGMENT_SEPARATOR = "\n\n---\n\n"


def _valid_chunks(context_chunks: list[str] | None) -> list[str]:
    if not context_chunks:
        raise InvalidInputError("At least one context chunk is required", stage=Stage.GENERATION)

    chunks = [c.strip() for c in context_chunks if c and c.strip()]
    if not chunks:
        raise InvalidInputError("No valid context chunks provided", stage=Stage.GENERATION)
    return chunks


def _require(value: str | None, what: str) -> str:
    if not value or not value.strip():
        raise InvalidInputError(f"{what} cannot be empty", stage=Stage.GENERATION)
    return value.strip()


def format_fragments(chunks: list[str]) -> str:
    return FRAGMENT_SEPARATOR.join(f"[Fragment {i}] {chunk}" for i, chunk in enumerate(chunks, 1))


def build_prompt(question: str, context_chunks: list[str]) -> str:
    """Build a grounded RAG prompt.

    Layout: numbered fragments, then the grounding instructions, then the
    question exactly as asked. Fragments are numbered in the order given
    (retrieval order, best first); blank fragments are skipped.

    Args:
        question: User's question
        context_chunks: Retrieved chunk contents

    Returns:
        Prompt ready for the generation provider

    Raises:
        InvalidInputError: empty question, no chunks, or only blank chunks
    """
    _require(question, "Question")
    chunks = _valid_chunks(context_chunks)

    return f"""CONTEXT:
{format_fragments(chunks)}

You are an assistant that answers questions using only the document fragments provided above.

IMPORTANT INSTRUCTIONS:
1. Use only the information present in the context fragments
2. If the answer is not in the context, say clearly that you do not have enough information
3. Do not invent information or use outside knowledge
4. Fragments are ordered by relevance; prefer earlier fragments when they conflict, and mention the conflict
5. Cite the fragment number when relevant (e.g. "According to Fragment 2...")
6. Be concise but complete

USER QUESTION:
{question}

ANSWER:"""


def build_simple_prompt(question: str, context_chunks: list[str]) -> str:
    """Short prompt for models that already carry system instructions."""
    question = _require(question, "Question")
    context = "\n\n".join(_valid_chunks(context_chunks))
    return f"Context:\n{context}\n\nQuestion: {question}\n\nAnswer using only the context above:"


def build_conversational_prompt(
    question: str,
    context_chunks: list[str],
    history: list[dict] | None = None,
) -> str:
    """Grounded prompt that also carries previous turns.

    history items are {"role": "user" | "assistant", "content": str}.
    """
    question = _require(question, "Question")
    chunks = _valid_chunks(context_chunks)

    history_section = ""
    if history:
        turns = "\n\n".join(
            f"{'User' if turn.get('role') == 'user' else 'Assistant'}: {turn.get('content', '')}"
            for turn in history
        )
        history_section = f"\n\nCONVERSATION HISTORY:\n{turns}\n"

    return f"""You are an assistant that answers questions based on the documents provided.
{history_section}
CURRENT CONTEXT:
{format_fragments(chunks)}

NEW QUESTION:
{question}

Answer based on the context and the previous conversation:"""


def build_summarization_prompt(topic: str, context_chunks: list[str]) -> str:
    """Prompt asking for a summary of several chunks about a topic."""
    topic = _require(topic, "Topic")
    content = "\n\n".join(_valid_chunks(context_chunks))
    return f"""Summarize the following information about: {topic}

CONTENT:
{content}

Provide a clear, concise summary that captures the main points:"""


def estimate_tokens(text: str | None) -> int:
    """Rough token count (about 4 characters per token)."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def truncate_context(context_chunks: list[str], max_tokens: int) -> list[str]:
    """Keep leading chunks that fit within max_tokens.

    The first chunk that does not fit is cut short (with "...") when more
    than MIN_PARTIAL_TOKENS remain; everything after it is dropped.
    """
    if max_tokens <= 0:
        raise InvalidInputError("max_tokens must be positive", stage=Stage.GENERATION)

    truncated: list[str] = []
    used = 0

    for chunk in context_chunks:
        tokens = estimate_tokens(chunk)
        if used + tokens <= max_tokens:
            truncated.append(chunk)
            used += tokens
            continue

        remaining = max_tokens - used
        if remaining > MIN_PARTIAL_TOKENS:
            truncated.append(chunk[: remaining * CHARS_PER_TOKEN] + "...")
        break

    return truncated
