"""Routing outcome data models for the Contract Blueprint pipeline."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from .enums import BackendKind, DecisionReason, FailureKind
from .extraction import DocumentAnalysisResult


@dataclass(frozen=True)
class ExtractionDecision:
    """
    Routing outcome for one document.

    Attached to the document's processing record for audit and cost
    reporting. A fallback produces a new decision with fallback=True.
    """
    document_id: str
    backend: BackendKind
    reason: DecisionReason
    estimated_cost: float = 0.0
    fallback: bool = False
    attempted: Tuple[BackendKind, ...] = ()
    decided_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_id": self.document_id,
            "backend": self.backend.value,
            "reason": self.reason.value,
            "estimated_cost": self.estimated_cost,
            "fallback": self.fallback,
            "attempted": [b.value for b in self.attempted],
            "decided_at": self.decided_at,
        }


@dataclass(frozen=True)
class BackendAttempt:
    """A failed call against one backend."""
    backend: BackendKind
    failure_kind: FailureKind
    message: str


@dataclass(frozen=True)
class DocumentFailure:
    """Terminal routing failure for a document; the batch carries on without it."""
    document_id: str
    attempts: Tuple[BackendAttempt, ...] = ()

    @property
    def message(self) -> str:
        if not self.attempts:
            return "No analysis backend available"
        return "; ".join(
            f"{a.backend.value}: {a.failure_kind.value} ({a.message})"
            for a in self.attempts
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_id": self.document_id,
            "message": self.message,
            "attempts": [
                {
                    "backend": a.backend.value,
                    "failure_kind": a.failure_kind.value,
                    "message": a.message,
                }
                for a in self.attempts
            ],
        }


@dataclass(frozen=True)
class RoutedAnalysis:
    """What the router hands back for one document: a result or a terminal failure."""
    decision: ExtractionDecision
    result: Optional[DocumentAnalysisResult] = None
    failure: Optional[DocumentFailure] = None

    @property
    def succeeded(self) -> bool:
        return self.result is not None
