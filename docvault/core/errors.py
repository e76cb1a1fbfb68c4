"""Error taxonomy for the RAG core.

Every failure that leaves the core is a RagError subclass tagged with the
kind of failure and the pipeline stage where it happened, so the calling
layer can map it to a stable status and operators can tell a provider
outage from a data problem.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Kinds of failure surfaced by the core."""

    INVALID_INPUT = "invalid-input"
    ACCESS_DENIED = "access-denied"
    UPSTREAM_FAILURE = "upstream-failure"
    TIMEOUT = "timeout"
    INVALID_RESPONSE = "invalid-response"
    NOT_FOUND = "not-found"
    INTERNAL = "internal"


class Stage(str, Enum):
    """Pipeline stage in which a failure occurred."""

    VALIDATION = "validation"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    RETRIEVAL = "retrieval"
    GENERATION = "generation"
    PERSISTENCE = "persistence"


STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.ACCESS_DENIED: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INTERNAL: 500,
    ErrorKind.UPSTREAM_FAILURE: 502,
    ErrorKind.INVALID_RESPONSE: 502,
    ErrorKind.TIMEOUT: 504,
}


class RagError(Exception):
    """Base class for all typed RAG failures."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, stage: Stage = Stage.VALIDATION):
        self.message = message
        self.stage = stage
        super().__init__(f"[{stage.value}] {message}")

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

    def to_dict(self) -> dict:
        """Serializable form for the calling layer."""
        return {
            "kind": self.kind.value,
            "stage": self.stage.value,
            "message": self.message,
        }


# Provider implementations raise the same taxonomy
ProviderError = RagError


class InvalidInputError(RagError):
    """Caller-supplied data is empty or malformed."""

    kind = ErrorKind.INVALID_INPUT


class AccessDeniedError(RagError):
    """Caller lacks rights to the requested organization/document scope."""

    kind = ErrorKind.ACCESS_DENIED


class UpstreamFailureError(RagError):
    """Embedding or generation backend failed (network, auth, rate limit)."""

    kind = ErrorKind.UPSTREAM_FAILURE


class UpstreamTimeoutError(UpstreamFailureError):
    """An external call exceeded its time budget."""

    kind = ErrorKind.TIMEOUT


class InvalidResponseError(RagError):
    """Backend response failed structural validation."""

    kind = ErrorKind.INVALID_RESPONSE


class NotFoundError(RagError):
    """Requested scope does not exist."""

    kind = ErrorKind.NOT_FOUND


class InternalError(RagError):
    """Unexpected failure, e.g. a storage round trip."""

    kind = ErrorKind.INTERNAL


def require_text(value: str | None, field: str, stage: Stage = Stage.VALIDATION) -> str:
    """Return the stripped value or raise InvalidInputError if it is blank."""
    if value is None or not isinstance(value, str) or not value.strip():
        raise InvalidInputError(f"{field} cannot be empty", stage=stage)
    return value.strip()
