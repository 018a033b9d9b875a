"""Persistence: database access, document registry, snapshots and audit log."""

from .models import (
    AuditEventModel,
    Base,
    BlueprintSnapshotModel,
    FieldOverrideModel,
    JSONType,
    UploadedDocumentModel,
)
from .database import DatabaseManager, get_database_url
from .audit_logger import AuditLogger
from .registry import SqlDocumentRegistry
from .snapshots import BlueprintSnapshotStore

__all__ = [
    "AuditEventModel",
    "Base",
    "BlueprintSnapshotModel",
    "FieldOverrideModel",
    "JSONType",
    "UploadedDocumentModel",
    "DatabaseManager",
    "get_database_url",
    "AuditLogger",
    "SqlDocumentRegistry",
    "BlueprintSnapshotStore",
]
