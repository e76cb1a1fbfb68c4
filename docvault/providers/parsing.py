"""Best-effort parsing of structured output from generative backends.

Generative text is unreliable to parse strictly, so every function here
returns a safe default instead of raising.
"""

import json
import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

MAX_TAGS = 5
MAX_KEY_POINTS = 5
MAX_FALLBACK_SUMMARY_CHARS = 500

DEFAULT_CATEGORY = "Other"
DEFAULT_CONFIDENCE = 0.3
MISSING_CONFIDENCE = 0.5

CODE_FENCE = re.compile(r"```(?:json)?")


@dataclass
class ClassificationResult:
    """Category assigned to a document."""

    category: str = DEFAULT_CATEGORY
    confidence: float = DEFAULT_CONFIDENCE
    tags: list[str] = field(default_factory=list)


@dataclass
class SummarizationResult:
    """Short summary and key points of a document."""

    summary: str = ""
    key_points: list[str] = field(default_factory=list)


def extract_json_object(text: str | None) -> dict | None:
    """Return the first well-formed JSON object embedded in text.

    Tolerates markdown fences and prose around the object.
    """
    if not text:
        return None

    cleaned = CODE_FENCE.sub("", text)
    decoder = json.JSONDecoder()

    start = cleaned.find("{")
    while start != -1:
        try:
            obj, _ = decoder.raw_decode(cleaned, start)
        except json.JSONDecodeError:
            start = cleaned.find("{", start + 1)
            continue
        if isinstance(obj, dict):
            return obj
        start = cleaned.find("{", start + 1)

    return None


def _string_list(value, limit: int) -> list[str]:
    if not isinstance(value, list):
        return []
    items = [item.strip() for item in value if isinstance(item, str) and item.strip()]
    return items[:limit]


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def parse_classification(text: str | None, categories: list[str]) -> ClassificationResult:
    """Parse a classification response, clamping and defaulting as needed."""
    parsed = extract_json_object(text)
    if parsed is None:
        logger.warning(f"[Parsing] Could not parse classification: {(text or '')[:200]!r}")
        return ClassificationResult()

    category = parsed.get("category")
    by_lower = {c.lower(): c for c in categories}
    if isinstance(category, str) and category.strip().lower() in by_lower:
        category = by_lower[category.strip().lower()]
    else:
        category = DEFAULT_CATEGORY

    confidence = parsed.get("confidence")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        confidence = MISSING_CONFIDENCE
    confidence = _clamp(float(confidence))

    return ClassificationResult(
        category=category,
        confidence=confidence,
        tags=_string_list(parsed.get("tags"), MAX_TAGS),
    )


def parse_summary(text: str | None) -> SummarizationResult:
    """Parse a summarization response.

    Falls back to the trimmed raw response as the summary when no JSON
    object can be recovered.
    """
    parsed = extract_json_object(text)
    if parsed is None:
        logger.warning(f"[Parsing] Could not parse summary: {(text or '')[:200]!r}")
        fallback = CODE_FENCE.sub("", text or "").strip()
        return SummarizationResult(summary=fallback[:MAX_FALLBACK_SUMMARY_CHARS])

    summary = parsed.get("summary")
    key_points = parsed.get("keyPoints", parsed.get("key_points"))
    return SummarizationResult(
        summary=summary.strip() if isinstance(summary, str) else "",
        key_points=_string_list(key_points, MAX_KEY_POINTS),
    )
