"""Audit logger interface for the Contract Blueprint pipeline."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class AuditEventType(Enum):
    """Types of audit events tracked by the pipeline."""
    BATCH_STARTED = "batch_started"
    ROUTING_DECISION = "routing_decision"
    DOCUMENT_ANALYZED = "document_analyzed"
    DOCUMENT_FAILED = "document_failed"
    BLUEPRINT_CREATED = "blueprint_created"
    FIELD_OVERRIDDEN = "field_overridden"
    BATCH_COMPLETED = "batch_completed"


@dataclass
class AuditEvent:
    """
    Audit event record.

    Represents a single auditable event, including timestamp, the batch
    and document it relates to, and event details.
    """
    id: str
    event_type: AuditEventType
    timestamp: datetime
    batch_id: Optional[str] = None
    document_id: Optional[str] = None
    user_id: Optional[str] = None
    details: dict = field(default_factory=dict)

    def __post_init__(self):
        if self.details is None:
            self.details = {}


class IAuditLogger(ABC):
    """
    Abstract interface for audit logging.

    Implementations record routing decisions, failures, blueprint
    creation and user corrections for traceability and cost reporting.
    """

    @abstractmethod
    def log_event(self, event: AuditEvent) -> None:
        """
        Record an audit event.

        Args:
            event: The audit event to record.
        """
        pass

    @abstractmethod
    def get_events(
        self,
        batch_id: Optional[str] = None,
        document_id: Optional[str] = None,
        event_type: Optional[AuditEventType] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> List[AuditEvent]:
        """
        Query audit events with optional filters.

        Returns:
            List of matching audit events, oldest first.
        """
        pass

    @abstractmethod
    def export_log(
        self,
        batch_id: str,
        format: str = "json",
    ) -> str:
        """
        Export the audit log of a batch.

        Args:
            batch_id: The batch to export logs for.
            format: Export format ("json" or "csv").

        Returns:
            Exported log content as a string.

        Raises:
            ValueError: If format is not supported.
        """
        pass
