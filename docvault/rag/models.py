"""Data model for the RAG core."""

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from uuid import NAMESPACE_DNS, uuid5


def chunk_point_id(organization_id: str, document_id: str, chunk_index: int) -> str:
    """Deterministic chunk id (organization_id + document_id + chunk_index).

    Re-processing a document produces the same ids for the same positions;
    two organizations using the same document id never share a point.
    """
    return str(uuid5(NAMESPACE_DNS, f"{organization_id}:{document_id}:{chunk_index}"))


@dataclass
class DocumentChunk:
    """A contiguous slice of a document's text with its embedding.

    Owned by the vector store; never mutated after creation.
    """

    document_id: str
    organization_id: str
    chunk_index: int
    content: str
    word_count: int
    char_count: int
    embedding: list[float] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    embedding_model: str = ""
    id: str = ""

    def __post_init__(self):
        if not self.id:
            self.id = chunk_point_id(self.organization_id, self.document_id, self.chunk_index)

    def to_payload(self) -> dict:
        """Vector store payload (everything except the vector)."""
        return {
            "document_id": self.document_id,
            "organization_id": self.organization_id,
            "chunk_index": self.chunk_index,
            "content": self.content,
            "word_count": self.word_count,
            "char_count": self.char_count,
            "created_at": self.created_at.isoformat(),
            "embedding_model": self.embedding_model,
        }

    @classmethod
    def from_payload(cls, point_id: str, payload: dict, vector: list[float] | None = None) -> "DocumentChunk":
        created_at = payload.get("created_at")
        return cls(
            id=point_id,
            document_id=payload.get("document_id", ""),
            organization_id=payload.get("organization_id", ""),
            chunk_index=payload.get("chunk_index", 0),
            content=payload.get("content", ""),
            word_count=payload.get("word_count", 0),
            char_count=payload.get("char_count", 0),
            embedding=list(vector or []),
            created_at=datetime.fromisoformat(created_at) if created_at else datetime.now(UTC),
            embedding_model=payload.get("embedding_model", ""),
        )


@dataclass
class SearchResult:
    """A chunk paired with its similarity score.

    Higher is more relevant; the scale is index-defined.
    """

    chunk: DocumentChunk
    score: float


@dataclass
class ChunkReference:
    """Per-chunk citation entry returned with an answer."""

    document_id: str
    content: str
    score: float


@dataclass
class RagAnswer:
    """Answer with deduplicated sources and the chunks behind it."""

    answer: str
    sources: list[str] = field(default_factory=list)
    chunks: list[ChunkReference] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ProcessingResult:
    """Result of document processing."""

    document_id: str
    chunks_created: int
    total_words: int
    dimensions: int
    processing_time_ms: int = 0


@dataclass
class ChunkStatistics:
    """Counts of stored chunks."""

    total_chunks: int
    total_documents: int
