"""Audit logger implementation for the Contract Blueprint pipeline."""

import csv
import io
import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, select

from ..interfaces.audit import AuditEvent, AuditEventType, IAuditLogger
from ..models.routing import DocumentFailure, ExtractionDecision
from .database import DatabaseManager
from .models import AuditEventModel


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _event_type_value(event_type) -> str:
    return event_type.value if isinstance(event_type, AuditEventType) else event_type


class AuditLogger(IAuditLogger):
    """
    Audit logger implementation with a SQLAlchemy backend.

    Records routing decisions, document failures, blueprint creation and
    user overrides so that cost and provenance can be reconstructed per
    batch, and exports the log as JSON or CSV.
    """

    def __init__(
        self,
        db_manager: Optional[DatabaseManager] = None,
        database_url: Optional[str] = None,
    ):
        """
        Initialize the audit logger.

        Args:
            db_manager: Optional DatabaseManager instance. If not provided,
                       a new one will be created.
            database_url: Database URL for creating a new DatabaseManager.
        """
        if db_manager is not None:
            self._db_manager = db_manager
            self._owns_db_manager = False
        else:
            self._db_manager = DatabaseManager(database_url=database_url)
            self._owns_db_manager = True

    def _to_model(self, event: AuditEvent) -> AuditEventModel:
        """Convert AuditEvent dataclass to SQLAlchemy model."""
        return AuditEventModel(
            id=str(event.id),
            event_type=_event_type_value(event.event_type),
            timestamp=event.timestamp,
            batch_id=event.batch_id,
            document_id=event.document_id,
            user_id=event.user_id,
            details=event.details or {},
        )

    def _from_model(self, model: AuditEventModel) -> AuditEvent:
        """Convert SQLAlchemy model to AuditEvent dataclass."""
        return AuditEvent(
            id=model.id,
            event_type=AuditEventType(model.event_type),
            timestamp=model.timestamp,
            batch_id=model.batch_id,
            document_id=model.document_id,
            user_id=model.user_id,
            details=model.details or {},
        )

    def log_event(self, event: AuditEvent) -> None:
        """
        Record an audit event to the database.

        Args:
            event: The audit event to record.
        """
        model = self._to_model(event)
        with self._db_manager.get_session() as session:
            session.add(model)

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

        Args:
            batch_id: Filter by batch ID.
            document_id: Filter by document ID.
            event_type: Filter by event type.
            start_time: Filter events after this time.
            end_time: Filter events before this time.

        Returns:
            List of matching audit events, oldest first.
        """
        with self._db_manager.get_session() as session:
            query = select(AuditEventModel)

            conditions = []
            if batch_id:
                conditions.append(AuditEventModel.batch_id == batch_id)
            if document_id:
                conditions.append(AuditEventModel.document_id == document_id)
            if event_type:
                conditions.append(AuditEventModel.event_type == _event_type_value(event_type))
            if start_time:
                conditions.append(AuditEventModel.timestamp >= start_time)
            if end_time:
                conditions.append(AuditEventModel.timestamp <= end_time)

            if conditions:
                query = query.where(and_(*conditions))

            query = query.order_by(AuditEventModel.timestamp.asc())

            result = session.execute(query)
            models = result.scalars().all()

            return [self._from_model(m) for m in models]

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
        if format not in ("json", "csv"):
            raise ValueError(f"Unsupported export format: {format}. Use 'json' or 'csv'.")

        events = self.get_events(batch_id=batch_id)

        if format == "json":
            return self._export_json(batch_id, events)
        else:
            return self._export_csv(events)

    def _export_json(self, batch_id: str, events: List[AuditEvent]) -> str:
        """Export events to JSON with a routing table and cost summary."""
        routing_table = []
        for e in events:
            if e.event_type == AuditEventType.ROUTING_DECISION:
                routing_table.append({
                    "document_id": e.document_id,
                    "backend": e.details.get("backend"),
                    "reason": e.details.get("reason"),
                    "estimated_cost": e.details.get("estimated_cost"),
                    "fallback": e.details.get("fallback", False),
                    "attempted": e.details.get("attempted", []),
                    "timestamp": e.timestamp.isoformat() if e.timestamp else None,
                })

        # A primary attempt is billed even when it failed over to the secondary.
        costs = [
            entry["estimated_cost"] for entry in routing_table
            if entry["estimated_cost"] is not None and "primary" in entry["attempted"]
        ]
        failures = [
            e.document_id for e in events
            if e.event_type == AuditEventType.DOCUMENT_FAILED
        ]

        data = {
            "export_timestamp": _now().isoformat(),
            "batch_id": batch_id,
            "event_count": len(events),
            "routing_table": routing_table,
            "cost_summary": {
                "routed_documents": len(routing_table),
                "primary_documents": len(costs),
                "fallbacks": sum(1 for entry in routing_table if entry["fallback"]),
                "estimated_primary_cost": round(sum(costs), 4),
            },
            "failed_documents": failures,
            "events": [
                {
                    "id": e.id,
                    "event_type": _event_type_value(e.event_type),
                    "timestamp": e.timestamp.isoformat() if e.timestamp else None,
                    "batch_id": e.batch_id,
                    "document_id": e.document_id,
                    "user_id": e.user_id,
                    "details": e.details,
                }
                for e in events
            ],
        }
        return json.dumps(data, indent=2, ensure_ascii=False)

    def _export_csv(self, events: List[AuditEvent]) -> str:
        """Export events to CSV format."""
        output = io.StringIO()
        writer = csv.writer(output)

        writer.writerow([
            "id", "event_type", "timestamp", "batch_id",
            "document_id", "user_id", "details",
        ])

        for e in events:
            writer.writerow([
                e.id,
                _event_type_value(e.event_type),
                e.timestamp.isoformat() if e.timestamp else "",
                e.batch_id or "",
                e.document_id or "",
                e.user_id or "",
                json.dumps(e.details, ensure_ascii=False),
            ])

        return output.getvalue()

    # ========== Convenience Logging Methods ==========

    def _log(
        self,
        event_type: AuditEventType,
        batch_id: Optional[str],
        details: Dict[str, Any],
        document_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> None:
        self.log_event(AuditEvent(
            id=str(uuid.uuid4()),
            event_type=event_type,
            timestamp=_now(),
            batch_id=batch_id,
            document_id=document_id,
            user_id=user_id,
            details=details,
        ))

    def log_batch_started(
        self,
        batch_id: str,
        document_count: int,
        user_id: Optional[str] = None,
    ) -> None:
        """Log the start of a batch analysis."""
        self._log(
            AuditEventType.BATCH_STARTED,
            batch_id,
            {"document_count": document_count},
            user_id=user_id,
        )

    def log_routing_decision(
        self,
        batch_id: str,
        decision: ExtractionDecision,
        user_id: Optional[str] = None,
    ) -> None:
        """Log the routing decision of one document."""
        self._log(
            AuditEventType.ROUTING_DECISION,
            batch_id,
            decision.to_dict(),
            document_id=decision.document_id,
            user_id=user_id,
        )

    def log_document_analyzed(
        self,
        batch_id: str,
        document_id: str,
        rule_count: int,
        field_count: int,
        confidence: float,
        user_id: Optional[str] = None,
    ) -> None:
        """Log a successfully analyzed and mapped document."""
        self._log(
            AuditEventType.DOCUMENT_ANALYZED,
            batch_id,
            {
                "rule_count": rule_count,
                "field_count": field_count,
                "confidence": confidence,
            },
            document_id=document_id,
            user_id=user_id,
        )

    def log_document_failed(
        self,
        batch_id: str,
        failure: DocumentFailure,
        user_id: Optional[str] = None,
    ) -> None:
        """Log a document that no backend could analyze."""
        self._log(
            AuditEventType.DOCUMENT_FAILED,
            batch_id,
            failure.to_dict(),
            document_id=failure.document_id,
            user_id=user_id,
        )

    def log_blueprint_created(
        self,
        batch_id: str,
        blueprint_id: str,
        field_count: int,
        overall_confidence: float,
        error_count: int,
        warning_count: int,
        user_id: Optional[str] = None,
    ) -> None:
        """Log the creation of a blueprint."""
        self._log(
            AuditEventType.BLUEPRINT_CREATED,
            batch_id,
            {
                "blueprint_id": blueprint_id,
                "field_count": field_count,
                "overall_confidence": overall_confidence,
                "error_count": error_count,
                "warning_count": warning_count,
            },
            user_id=user_id,
        )

    def log_field_overridden(
        self,
        batch_id: str,
        blueprint_id: str,
        field_name: str,
        old_value: Any,
        new_value: Any,
        user_id: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> None:
        """Log a user override of one field."""
        self._log(
            AuditEventType.FIELD_OVERRIDDEN,
            batch_id,
            {
                "blueprint_id": blueprint_id,
                "field": field_name,
                "old_value": old_value,
                "new_value": new_value,
                "comment": comment,
            },
            user_id=user_id,
        )

    def log_batch_completed(
        self,
        batch_id: str,
        blueprint_id: Optional[str],
        analyzed: int,
        failed: int,
        processing_time: float,
        total_cost: float,
        user_id: Optional[str] = None,
    ) -> None:
        """Log the end of a batch analysis."""
        self._log(
            AuditEventType.BATCH_COMPLETED,
            batch_id,
            {
                "blueprint_id": blueprint_id,
                "analyzed": analyzed,
                "failed": failed,
                "processing_time": processing_time,
                "total_cost": total_cost,
            },
            user_id=user_id,
        )

    def close(self) -> None:
        """Close the audit logger and release resources."""
        if self._owns_db_manager:
            self._db_manager.close()
