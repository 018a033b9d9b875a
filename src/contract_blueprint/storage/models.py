"""SQLAlchemy models for the blueprint store."""

from datetime import datetime, timezone
import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class JSONType(TypeDecorator):
    """Platform-independent JSON type.

    Uses JSONB for PostgreSQL and JSON for other databases (like SQLite).
    """
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(JSONB())
        else:
            return dialect.type_descriptor(JSON())


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class UploadedDocumentModel(Base):
    """Uploaded documents table model.

    A document belongs either to an existing contract or to a temporary
    batch, never both.
    """
    __tablename__ = "uploaded_documents"

    id = Column(String(64), primary_key=True, default=_new_id)
    contract_id = Column(String(64), nullable=True)
    batch_id = Column(String(64), nullable=True)
    original_filename = Column(String(255), nullable=False)
    stored_path = Column(String(500), nullable=False)
    byte_size = Column(Integer, nullable=False)
    page_count = Column(Integer, nullable=True)
    features = Column(JSONType)
    upload_timestamp = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "(contract_id IS NOT NULL AND batch_id IS NULL) OR "
            "(contract_id IS NULL AND batch_id IS NOT NULL)",
            name="check_document_owner",
        ),
        CheckConstraint("byte_size >= 0", name="check_byte_size"),
        Index("idx_uploaded_documents_batch_id", "batch_id"),
        Index("idx_uploaded_documents_contract_id", "contract_id"),
        Index("idx_uploaded_documents_upload_timestamp", "upload_timestamp"),
    )


class BlueprintSnapshotModel(Base):
    """Blueprint snapshots table model; one current snapshot per batch."""
    __tablename__ = "blueprint_snapshots"

    id = Column(String(64), primary_key=True, default=_new_id)
    blueprint_id = Column(String(64), nullable=False)
    batch_id = Column(String(64), nullable=False)
    is_current = Column(Boolean, default=True, nullable=False)
    overall_confidence = Column(Float, default=0.0)
    blueprint = Column(JSONType, nullable=False)
    validation = Column(JSONType)
    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    superseded_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_blueprint_snapshots_batch_id", "batch_id"),
        Index("idx_blueprint_snapshots_current", "batch_id", "is_current"),
    )


class FieldOverrideModel(Base):
    """User field overrides table model."""
    __tablename__ = "field_overrides"

    id = Column(String(64), primary_key=True, default=_new_id)
    blueprint_id = Column(String(64), nullable=False)
    batch_id = Column(String(64), nullable=False)
    field_name = Column(String(50), nullable=False)
    value = Column(JSONType)
    raw_value = Column(JSONType)
    user_id = Column(String(100), nullable=True)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        Index("idx_field_overrides_blueprint_id", "blueprint_id"),
        Index("idx_field_overrides_batch_id", "batch_id"),
    )


class AuditEventModel(Base):
    """Audit events table model."""
    __tablename__ = "audit_events"

    id = Column(String(64), primary_key=True, default=_new_id)
    event_type = Column(String(50), nullable=False)
    timestamp = Column(DateTime(timezone=True), default=_utcnow)
    batch_id = Column(String(64), nullable=True)
    document_id = Column(String(64), nullable=True)
    user_id = Column(String(100), nullable=True)
    details = Column(JSONType)

    __table_args__ = (
        Index("idx_audit_events_event_type", "event_type"),
        Index("idx_audit_events_timestamp", "timestamp"),
        Index("idx_audit_events_batch_id", "batch_id"),
        Index("idx_audit_events_document_id", "document_id"),
    )
