"""Abstract interfaces for the Contract Blueprint pipeline."""

from .backend import IAnalysisBackend
from .registry import IDocumentRegistry
from .audit import AuditEvent, AuditEventType, IAuditLogger

__all__ = [
    "IAnalysisBackend",
    "IDocumentRegistry",
    "AuditEvent",
    "AuditEventType",
    "IAuditLogger",
]
