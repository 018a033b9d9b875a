"""Blueprint snapshot and override persistence."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import and_, select, update

from ..models.blueprint import ContractBlueprint, ValidationReport, to_plain
from ..parsers.serialization import blueprint_from_dict
from .database import DatabaseManager
from .models import BlueprintSnapshotModel, FieldOverrideModel


logger = logging.getLogger(__name__)


class BlueprintSnapshotStore:
    """
    Stores blueprint snapshots per batch.

    Each save supersedes the batch's current snapshot instead of replacing
    it, so earlier analyses and corrections stay available for comparison
    and rollback.
    """

    def __init__(self, db_manager: DatabaseManager):
        self._db_manager = db_manager

    def _record(self, model: BlueprintSnapshotModel) -> Dict[str, Any]:
        return {
            "id": model.id,
            "blueprint_id": model.blueprint_id,
            "batch_id": model.batch_id,
            "is_current": model.is_current,
            "overall_confidence": model.overall_confidence,
            "blueprint": model.blueprint,
            "validation": model.validation,
            "created_by": model.created_by,
            "created_at": model.created_at.isoformat() if model.created_at else None,
            "superseded_at": model.superseded_at.isoformat() if model.superseded_at else None,
        }

    def save_snapshot(
        self,
        blueprint: ContractBlueprint,
        report: Optional[ValidationReport] = None,
        user_id: Optional[str] = None,
    ) -> str:
        """
        Store a blueprint as the current snapshot of its batch.

        Args:
            blueprint: Blueprint to store.
            report: Validation report stored alongside it.
            user_id: User who triggered the analysis or correction.

        Returns:
            The snapshot id.
        """
        now = datetime.now(timezone.utc)
        model = BlueprintSnapshotModel(
            blueprint_id=blueprint.id,
            batch_id=blueprint.batch_id,
            is_current=True,
            overall_confidence=blueprint.overall_confidence,
            blueprint=blueprint.to_dict(),
            validation=report.to_dict() if report is not None else None,
            created_by=user_id,
            created_at=now,
        )
        with self._db_manager.get_session() as session:
            session.execute(
                update(BlueprintSnapshotModel)
                .where(and_(
                    BlueprintSnapshotModel.batch_id == blueprint.batch_id,
                    BlueprintSnapshotModel.is_current.is_(True),
                ))
                .values(is_current=False, superseded_at=now)
            )
            session.add(model)
            session.flush()
            snapshot_id = model.id

        logger.info(f"Stored snapshot {snapshot_id} of blueprint {blueprint.id} "
                    f"for batch {blueprint.batch_id}")
        return snapshot_id

    def get_current(self, batch_id: str) -> Optional[Dict[str, Any]]:
        """The current snapshot record of a batch, or None."""
        with self._db_manager.get_session() as session:
            query = select(BlueprintSnapshotModel).where(and_(
                BlueprintSnapshotModel.batch_id == batch_id,
                BlueprintSnapshotModel.is_current.is_(True),
            )).limit(1)
            model = session.execute(query).scalar()
            return self._record(model) if model is not None else None

    def load_current_blueprint(self, batch_id: str) -> Optional[ContractBlueprint]:
        """Rebuild the current blueprint of a batch, or None."""
        record = self.get_current(batch_id)
        if record is None:
            return None
        return blueprint_from_dict(record["blueprint"])

    def get_history(self, batch_id: str) -> List[Dict[str, Any]]:
        """All snapshot records of a batch, oldest first."""
        with self._db_manager.get_session() as session:
            query = (
                select(BlueprintSnapshotModel)
                .where(BlueprintSnapshotModel.batch_id == batch_id)
                .order_by(BlueprintSnapshotModel.created_at.asc())
            )
            return [self._record(m) for m in session.execute(query).scalars().all()]

    def save_overrides(
        self,
        blueprint: ContractBlueprint,
        overrides: Iterable,
        user_id: Optional[str] = None,
    ) -> int:
        """
        Record user overrides against the blueprint they corrected.

        Args:
            blueprint: The blueprint the overrides were applied to.
            overrides: FieldOverride records.
            user_id: Fallback user when an override carries none.

        Returns:
            Number of overrides stored.
        """
        models = [
            FieldOverrideModel(
                blueprint_id=blueprint.id,
                batch_id=blueprint.batch_id,
                field_name=override.field.value,
                value=to_plain(override.value),
                raw_value=to_plain(override.raw_value),
                user_id=override.user_id or user_id,
                comment=override.comment,
            )
            for override in overrides
        ]
        with self._db_manager.get_session() as session:
            session.add_all(models)
        return len(models)

    def get_overrides(self, batch_id: str) -> List[Dict[str, Any]]:
        """Stored overrides of a batch, oldest first."""
        with self._db_manager.get_session() as session:
            query = (
                select(FieldOverrideModel)
                .where(FieldOverrideModel.batch_id == batch_id)
                .order_by(FieldOverrideModel.created_at.asc())
            )
            return [
                {
                    "id": m.id,
                    "blueprint_id": m.blueprint_id,
                    "field": m.field_name,
                    "value": m.value,
                    "raw_value": m.raw_value,
                    "user_id": m.user_id,
                    "comment": m.comment,
                    "created_at": m.created_at.isoformat() if m.created_at else None,
                }
                for m in session.execute(query).scalars().all()
            ]
