"""Exceptions for the Contract Blueprint pipeline."""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional

from .models.enums import BackendKind, FailureKind


@dataclass
class BackendError(Exception):
    """
    Base exception for analysis backend failures.

    Backends raise one of the subclasses below; the router treats any of
    them (and any unexpected exception, wrapped as UNKNOWN) as a failed
    attempt eligible for the single fallback retry.

    Attributes:
        message: Human-readable error description.
        backend: The backend that failed, when known.
        document_id: The document being analyzed.
        details: Additional error details.
    """
    message: str
    backend: Optional[BackendKind] = None
    document_id: Optional[str] = None
    details: Optional[dict] = field(default_factory=dict)

    failure_kind: ClassVar[FailureKind] = FailureKind.UNKNOWN

    def __post_init__(self):
        if self.details is None:
            self.details = {}
        super().__init__(str(self))

    def __str__(self) -> str:
        parts = [self.message]
        if self.backend:
            parts.append(f"Backend: {self.backend.value}")
        if self.document_id:
            parts.append(f"Document: {self.document_id}")
        return " | ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "failure_kind": self.failure_kind.value,
            "message": self.message,
            "backend": self.backend.value if self.backend else None,
            "document_id": self.document_id,
            "details": self.details,
        }


@dataclass
class BackendTimeoutError(BackendError):
    """The backend did not answer within its time limit."""

    failure_kind: ClassVar[FailureKind] = FailureKind.TIMEOUT


@dataclass
class BackendAuthError(BackendError):
    """The backend rejected our credentials."""

    failure_kind: ClassVar[FailureKind] = FailureKind.AUTH


@dataclass
class BackendQuotaError(BackendError):
    """The backend refused the call because a usage quota is exhausted."""

    failure_kind: ClassVar[FailureKind] = FailureKind.QUOTA


@dataclass
class MalformedResponseError(BackendError):
    """
    The backend answered, but its payload is not a usable analysis.

    Raised by the payload parser as well as by backends themselves.
    """

    failure_kind: ClassVar[FailureKind] = FailureKind.MALFORMED_RESPONSE


@dataclass
class BackendUnavailableError(BackendError):
    """The backend is not configured or cannot be reached."""

    failure_kind: ClassVar[FailureKind] = FailureKind.UNAVAILABLE


class PipelineError(Exception):
    """Exception raised when a batch cannot be processed at all."""

    def __init__(self, message: str, batch_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.batch_id = batch_id


class BatchNotFoundError(PipelineError):
    """The registry has no documents for the requested batch."""
