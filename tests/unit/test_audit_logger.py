"""Unit tests for the Audit Logger."""

import csv
import io
import json
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from contract_blueprint.interfaces.audit import AuditEvent, AuditEventType
from contract_blueprint.models.enums import BackendKind, DecisionReason, FailureKind
from contract_blueprint.models.routing import (
    BackendAttempt,
    DocumentFailure,
    ExtractionDecision,
)
from contract_blueprint.storage.audit_logger import AuditLogger


class MockSession:
    """Mock SQLAlchemy session for testing."""

    def __init__(self):
        self.added = []
        self.committed = False
        self.rolled_back = False
        self.closed = False

    def add(self, obj):
        self.added.append(obj)

    def commit(self):
        self.committed = True

    def rollback(self):
        self.rolled_back = True

    def close(self):
        self.closed = True


class MockDatabaseManager:
    """Mock DatabaseManager for testing."""

    def __init__(self):
        self._session = MockSession()

    def get_session(self):
        return MockContextManager(self._session)

    def close(self):
        pass


class MockContextManager:
    """Mock context manager for session."""

    def __init__(self, session):
        self._session = session

    def __enter__(self):
        return self._session

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self._session.commit()
        else:
            self._session.rollback()
        self._session.close()
        return False


def _decision(document_id="doc-1", backend=BackendKind.PRIMARY,
              reason=DecisionReason.PREFERENCE, cost=0.015, attempted=None):
    attempted = attempted or (backend,)
    return ExtractionDecision(
        document_id=document_id,
        backend=backend,
        reason=reason,
        estimated_cost=cost,
        fallback=len(attempted) > 1,
        attempted=attempted,
    )


class TestAuditLogger:
    """Tests for AuditLogger class."""

    def test_log_event_adds_to_session(self):
        """Test that log_event adds an event to the database session."""
        db_manager = MockDatabaseManager()
        logger = AuditLogger(db_manager=db_manager)

        event = AuditEvent(
            id=str(uuid.uuid4()),
            event_type=AuditEventType.BATCH_STARTED,
            timestamp=datetime.now(timezone.utc),
            batch_id="batch-1",
            details={"document_count": 2},
        )

        logger.log_event(event)

        assert len(db_manager._session.added) == 1
        assert db_manager._session.committed

    def test_log_batch_started(self):
        """Test logging the start of a batch."""
        db_manager = MockDatabaseManager()
        logger = AuditLogger(db_manager=db_manager)

        logger.log_batch_started("batch-1", document_count=3, user_id="user123")

        added_model = db_manager._session.added[0]
        assert added_model.event_type == AuditEventType.BATCH_STARTED.value
        assert added_model.batch_id == "batch-1"
        assert added_model.user_id == "user123"
        assert added_model.details == {"document_count": 3}

    def test_log_routing_decision(self):
        """Test logging a routing decision."""
        db_manager = MockDatabaseManager()
        logger = AuditLogger(db_manager=db_manager)

        logger.log_routing_decision("batch-1", _decision(reason=DecisionReason.SIZE_EXCEEDED))

        added_model = db_manager._session.added[0]
        assert added_model.event_type == AuditEventType.ROUTING_DECISION.value
        assert added_model.document_id == "doc-1"
        assert added_model.details["backend"] == "primary"
        assert added_model.details["reason"] == "size-exceeded"
        assert added_model.details["estimated_cost"] == 0.015

    def test_log_document_analyzed(self):
        """Test logging an analyzed document."""
        db_manager = MockDatabaseManager()
        logger = AuditLogger(db_manager=db_manager)

        logger.log_document_analyzed("batch-1", "doc-1", rule_count=12, field_count=7,
                                     confidence=0.81)

        added_model = db_manager._session.added[0]
        assert added_model.event_type == AuditEventType.DOCUMENT_ANALYZED.value
        assert added_model.details == {"rule_count": 12, "field_count": 7, "confidence": 0.81}

    def test_log_document_failed(self):
        """Test logging a terminal document failure."""
        db_manager = MockDatabaseManager()
        logger = AuditLogger(db_manager=db_manager)
        failure = DocumentFailure("doc-2", (
            BackendAttempt(BackendKind.PRIMARY, FailureKind.TIMEOUT, "timed out"),
        ))

        logger.log_document_failed("batch-1", failure)

        added_model = db_manager._session.added[0]
        assert added_model.event_type == AuditEventType.DOCUMENT_FAILED.value
        assert added_model.document_id == "doc-2"
        assert added_model.details["attempts"][0]["failure_kind"] == "timeout"

    def test_log_blueprint_created(self):
        """Test logging blueprint creation."""
        db_manager = MockDatabaseManager()
        logger = AuditLogger(db_manager=db_manager)

        logger.log_blueprint_created("batch-1", "bp-1", field_count=18,
                                     overall_confidence=0.74, error_count=0, warning_count=1)

        added_model = db_manager._session.added[0]
        assert added_model.event_type == AuditEventType.BLUEPRINT_CREATED.value
        assert added_model.details["blueprint_id"] == "bp-1"
        assert added_model.details["warning_count"] == 1

    def test_log_field_overridden(self):
        """Test logging a user override."""
        db_manager = MockDatabaseManager()
        logger = AuditLogger(db_manager=db_manager)

        logger.log_field_overridden("batch-1", "bp-1", "base_rate", 0.0847, 0.091,
                                    user_id="analyst", comment="Signed amendment")

        added_model = db_manager._session.added[0]
        assert added_model.event_type == AuditEventType.FIELD_OVERRIDDEN.value
        assert added_model.details["old_value"] == 0.0847
        assert added_model.details["new_value"] == 0.091
        assert added_model.details["comment"] == "Signed amendment"

    def test_log_batch_completed(self):
        """Test logging the end of a batch."""
        db_manager = MockDatabaseManager()
        logger = AuditLogger(db_manager=db_manager)

        logger.log_batch_completed("batch-1", "bp-1", analyzed=2, failed=1,
                                   processing_time=1.5, total_cost=0.03)

        added_model = db_manager._session.added[0]
        assert added_model.event_type == AuditEventType.BATCH_COMPLETED.value
        assert added_model.details["failed"] == 1
        assert added_model.details["total_cost"] == 0.03


class TestAuditLoggerQueries:
    """Tests for event queries against a real database."""

    def test_filters(self, db_manager):
        """Test filtering events by batch, document and type."""
        logger = AuditLogger(db_manager=db_manager)
        logger.log_batch_started("batch-1", 2)
        logger.log_routing_decision("batch-1", _decision("doc-1"))
        logger.log_routing_decision("batch-1", _decision("doc-2"))
        logger.log_batch_started("batch-2", 1)

        assert len(logger.get_events(batch_id="batch-1")) == 3
        assert len(logger.get_events(document_id="doc-2")) == 1
        events = logger.get_events(event_type=AuditEventType.BATCH_STARTED)
        assert {e.batch_id for e in events} == {"batch-1", "batch-2"}
        assert all(isinstance(e.event_type, AuditEventType) for e in events)

    def test_time_window(self, db_manager):
        """Test filtering events by time."""
        logger = AuditLogger(db_manager=db_manager)
        old = datetime.now(timezone.utc) - timedelta(days=2)
        logger.log_event(AuditEvent(
            id="old-event",
            event_type=AuditEventType.BATCH_STARTED,
            timestamp=old,
            batch_id="batch-1",
        ))
        logger.log_batch_started("batch-1", 1)

        recent = logger.get_events(
            batch_id="batch-1",
            start_time=datetime.now(timezone.utc) - timedelta(days=1),
        )
        assert len(recent) == 1
        assert recent[0].id != "old-event"

        oldest_first = logger.get_events(batch_id="batch-1")
        assert oldest_first[0].id == "old-event"


class TestAuditLoggerExport:
    """Tests for audit log export."""

    @pytest.fixture
    def populated_logger(self, db_manager):
        logger = AuditLogger(db_manager=db_manager)
        logger.log_batch_started("batch-1", 3)
        logger.log_routing_decision("batch-1", _decision("doc-1", cost=0.015))
        logger.log_routing_decision("batch-1", _decision(
            "doc-2", backend=BackendKind.SECONDARY, reason=DecisionReason.COST_EXCEEDED, cost=6.0
        ))
        logger.log_routing_decision("batch-1", _decision(
            "doc-3", backend=BackendKind.SECONDARY, cost=0.03,
            attempted=(BackendKind.PRIMARY, BackendKind.SECONDARY),
        ))
        logger.log_document_failed("batch-1", DocumentFailure("doc-2"))
        logger.log_batch_started("batch-2", 1)
        return logger

    def test_export_json_format(self, populated_logger):
        """Test exporting a batch log with its routing table."""
        data = json.loads(populated_logger.export_log("batch-1", format="json"))

        assert data["batch_id"] == "batch-1"
        assert data["event_count"] == 5
        assert [row["document_id"] for row in data["routing_table"]] == ["doc-1", "doc-2", "doc-3"]
        assert data["failed_documents"] == ["doc-2"]
        assert data["events"][0]["event_type"] == "batch_started"

    def test_export_cost_summary(self, populated_logger):
        """Test that every primary attempt counts toward cost, fallbacks included."""
        summary = json.loads(populated_logger.export_log("batch-1"))["cost_summary"]

        assert summary == {
            "routed_documents": 3,
            "primary_documents": 2,
            "fallbacks": 1,
            "estimated_primary_cost": 0.045,
        }

    def test_export_csv_format(self, populated_logger):
        """Test exporting to CSV."""
        content = populated_logger.export_log("batch-1", format="csv")
        rows = list(csv.reader(io.StringIO(content)))

        assert rows[0] == ["id", "event_type", "timestamp", "batch_id",
                           "document_id", "user_id", "details"]
        assert len(rows) == 6
        assert json.loads(rows[1][6]) == {"document_count": 3}

    def test_export_invalid_format_raises_error(self, populated_logger):
        """Test that an unsupported format raises ValueError."""
        with pytest.raises(ValueError, match="Unsupported export format"):
            populated_logger.export_log("batch-1", format="xml")

    def test_export_empty_batch(self, db_manager):
        """Test exporting a batch with no events."""
        data = json.loads(AuditLogger(db_manager=db_manager).export_log("nothing"))
        assert data["event_count"] == 0
        assert data["cost_summary"]["estimated_primary_cost"] == 0
