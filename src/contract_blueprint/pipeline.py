"""Batch processing pipeline for the Contract Blueprint system.

This module wires the extraction router, rule-to-field mapper,
consolidator and finalizer together behind a single entry point that
turns an uploaded batch of contract documents into a validated
ContractBlueprint, with snapshots and an audit trail.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .config.config_manager import ConfigurationManager
from .exceptions import BatchNotFoundError, PipelineError
from .interfaces.audit import IAuditLogger
from .interfaces.backend import IAnalysisBackend
from .interfaces.registry import IDocumentRegistry
from .mapping.confidence import ConfidenceAggregator
from .mapping.consolidator import MultiDocumentConsolidator
from .mapping.finalizer import BlueprintFinalizer
from .mapping.rule_mapper import RuleToFieldMapper
from .models.blueprint import ContractBlueprint, ValidationReport, to_plain
from .models.document import DocumentMeta
from .models.routing import DocumentFailure, ExtractionDecision, RoutedAnalysis
from .review.corrections import FieldOverride, apply_overrides
from .routing.cost import CostEstimator, CostLedger
from .routing.router import ExtractionRouter
from .routing.stats import BackendSuccessTracker
from .storage.audit_logger import AuditLogger
from .storage.database import DatabaseManager
from .storage.registry import SqlDocumentRegistry
from .storage.snapshots import BlueprintSnapshotStore


logger = logging.getLogger(__name__)


@dataclass
class PipelineConfig:
    """Configuration for the batch pipeline."""

    # Database configuration
    database_url: Optional[str] = None

    # Per-document analysis runs on at most this many threads; keeps the
    # cloud backend under its rate limits.
    max_workers: int = 4

    # Feature flags
    enable_audit_logging: bool = True
    enable_snapshots: bool = True

    # Configuration files
    config_dir: Optional[str] = None


@dataclass
class BatchAnalysisResult:
    """Result of analyzing one batch."""

    batch_id: str
    success: bool = False
    blueprint: Optional[ContractBlueprint] = None
    decisions: List[ExtractionDecision] = field(default_factory=list)
    validation: Optional[ValidationReport] = None
    failures: List[DocumentFailure] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    snapshot_id: Optional[str] = None
    total_cost: float = 0.0
    processing_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "success": self.success,
            "blueprint": self.blueprint.to_dict() if self.blueprint else None,
            "provenance": self.blueprint.provenance() if self.blueprint else [],
            "per_document": [d.to_dict() for d in self.decisions],
            "validation": self.validation.to_dict() if self.validation else None,
            "failures": [f.to_dict() for f in self.failures],
            "errors": list(self.errors),
            "snapshot_id": self.snapshot_id,
            "total_cost": self.total_cost,
            "processing_time": self.processing_time,
        }


@dataclass
class CorrectionResult:
    """A corrected blueprint and its fresh validation report."""

    blueprint: ContractBlueprint
    validation: ValidationReport
    snapshot_id: Optional[str] = None


@dataclass
class PipelineStats:
    """Statistics about pipeline execution."""

    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    documents_analyzed: int = 0
    documents_failed: int = 0
    total_cost: float = 0.0
    average_processing_time: float = 0.0
    total_processing_time: float = 0.0


class BlueprintPipeline:
    """
    Batch pipeline from uploaded documents to a validated blueprint.

    Documents of a batch are routed and analyzed in parallel; mapping is
    done per document and consolidation waits for the whole batch so that
    upload order can break ties. A routing failure removes one document
    from the blueprint but never aborts the batch.
    """

    def __init__(
        self,
        primary: Optional[IAnalysisBackend] = None,
        secondary: Optional[IAnalysisBackend] = None,
        config: Optional[PipelineConfig] = None,
        registry: Optional[IDocumentRegistry] = None,
        audit_logger: Optional[IAuditLogger] = None,
        snapshot_store: Optional[BlueprintSnapshotStore] = None,
        config_manager: Optional[ConfigurationManager] = None,
        estimator: Optional[CostEstimator] = None,
        tracker: Optional[BackendSuccessTracker] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            primary: Cloud analysis backend.
            secondary: Local analysis backend.
            config: Pipeline configuration.
            registry: Document registry (SQL-backed if not provided).
            audit_logger: Optional audit logger (created if not provided
                and audit logging is enabled).
            snapshot_store: Optional snapshot store (created if not
                provided and snapshots are enabled).
            config_manager: Optional configuration manager (created if
                not provided).
            estimator: Optional cost estimator for the router.
            tracker: Backend success statistics shared by all batches.
        """
        self.config = config or PipelineConfig()
        self.stats = PipelineStats()
        self._primary = primary
        self._secondary = secondary

        self._config_manager = config_manager or ConfigurationManager()
        if self.config.config_dir and config_manager is None:
            result = self._config_manager.load_from_directory(self.config.config_dir)
            if result.is_valid:
                logger.info(f"Loaded configuration from {self.config.config_dir}")
            else:
                logger.warning(f"Configuration problems in {self.config.config_dir}: "
                               f"{'; '.join(result.errors)}")

        needs_database = (
            registry is None
            or (self.config.enable_audit_logging and audit_logger is None)
            or (self.config.enable_snapshots and snapshot_store is None)
        )
        self._db_manager: Optional[DatabaseManager] = None
        if needs_database:
            self._db_manager = DatabaseManager(database_url=self.config.database_url)
            self._db_manager.init_database()

        self._registry = registry or SqlDocumentRegistry(self._db_manager)
        self._audit_logger = audit_logger
        if self._audit_logger is None and self.config.enable_audit_logging:
            self._audit_logger = AuditLogger(db_manager=self._db_manager)
        self._snapshots = snapshot_store
        if self._snapshots is None and self.config.enable_snapshots:
            self._snapshots = BlueprintSnapshotStore(self._db_manager)

        routing = self._config_manager.routing
        self._estimator = estimator
        self._tracker = tracker or BackendSuccessTracker(routing.success_window)

        rules = self._config_manager.business_rules
        self._confidence = ConfidenceAggregator()
        self._mapper = RuleToFieldMapper(
            field_mappings=self._config_manager.field_mappings,
            business_rules=rules,
            confidence=self._confidence,
        )
        self._consolidator = MultiDocumentConsolidator(self._confidence)
        self._finalizer = BlueprintFinalizer(rules, self._confidence)

        logger.info("Blueprint pipeline initialized")

    @property
    def config_manager(self) -> ConfigurationManager:
        return self._config_manager

    @property
    def registry(self) -> IDocumentRegistry:
        return self._registry

    @property
    def snapshot_store(self) -> Optional[BlueprintSnapshotStore]:
        return self._snapshots

    @property
    def audit_logger(self) -> Optional[IAuditLogger]:
        return self._audit_logger

    @property
    def tracker(self) -> BackendSuccessTracker:
        return self._tracker

    def _new_router(self) -> ExtractionRouter:
        # Each batch gets its own ledger so the batch cost ceiling only
        # counts this batch's spend.
        routing = self._config_manager.routing
        return ExtractionRouter(
            self._primary,
            self._secondary,
            config=routing,
            estimator=self._estimator or CostEstimator(routing),
            tracker=self._tracker,
            ledger=CostLedger(),
        )

    def analyze_batch(
        self,
        batch_id: str,
        user_id: Optional[str] = None,
    ) -> BatchAnalysisResult:
        """
        Analyze every document of a batch and build a new blueprint.

        A re-run builds a new blueprint whose snapshot supersedes the
        previous one; earlier blueprints are never modified.

        Args:
            batch_id: Temporary batch identifier.
            user_id: User requesting the analysis, for the audit trail.

        Returns:
            BatchAnalysisResult with the blueprint, per-document routing
            decisions, validation report and any per-document failures.
        """
        start_time = time.time()
        result = BatchAnalysisResult(batch_id=batch_id)

        try:
            documents = self._registry.list_documents(batch_id)
            if not documents:
                raise BatchNotFoundError(f"No documents uploaded for batch {batch_id}", batch_id)
            # Stable: equal timestamps keep the registry's order.
            documents = sorted(documents, key=lambda d: d.upload_timestamp)

            logger.info(f"Analyzing batch {batch_id}: {len(documents)} documents")
            if self._audit_logger:
                self._audit_logger.log_batch_started(batch_id, len(documents), user_id)

            router = self._new_router()
            outcomes = self._analyze_documents(router, documents)
            result.total_cost = router.ledger.total
            entries, failed = self._collect(batch_id, outcomes, result, user_id)

            if not entries:
                raise PipelineError(
                    f"All {len(documents)} documents of batch {batch_id} failed analysis",
                    batch_id,
                )

            blueprint = self._consolidator.consolidate(entries, batch_id, failed)
            blueprint, report = self._finalizer.finalize(blueprint)
            result.blueprint = blueprint
            result.validation = report

            if self._snapshots:
                result.snapshot_id = self._snapshots.save_snapshot(blueprint, report, user_id)

            if self._audit_logger:
                self._audit_logger.log_blueprint_created(
                    batch_id=batch_id,
                    blueprint_id=blueprint.id,
                    field_count=len(blueprint.fields),
                    overall_confidence=blueprint.overall_confidence,
                    error_count=len(report.errors),
                    warning_count=len(report.warnings),
                    user_id=user_id,
                )

            result.success = True
            logger.info(
                f"Batch {batch_id} complete: {len(entries)} analyzed, {len(failed)} failed, "
                f"{len(report.errors)} validation errors, cost ${result.total_cost:.4f}"
            )

        except PipelineError as e:
            result.errors.append(e.message)
            logger.error(e.message)

        except Exception as e:
            error_msg = f"Unexpected error analyzing batch {batch_id}: {str(e)}"
            result.errors.append(error_msg)
            logger.exception(error_msg)

        result.processing_time = time.time() - start_time
        if self._audit_logger and result.decisions:
            self._audit_logger.log_batch_completed(
                batch_id=batch_id,
                blueprint_id=result.blueprint.id if result.blueprint else None,
                analyzed=len(result.decisions) - len(result.failures),
                failed=len(result.failures),
                processing_time=result.processing_time,
                total_cost=result.total_cost,
                user_id=user_id,
            )
        self._update_stats(result)
        return result

    def _analyze_documents(
        self,
        router: ExtractionRouter,
        documents: List[DocumentMeta],
    ) -> List[RoutedAnalysis]:
        workers = max(1, min(self.config.max_workers, len(documents)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="analyze") as pool:
            # map() yields in submission order, i.e. upload order.
            return list(pool.map(router.analyze, documents))

    def _collect(
        self,
        batch_id: str,
        outcomes: List[RoutedAnalysis],
        result: BatchAnalysisResult,
        user_id: Optional[str],
    ) -> Tuple[list, List[str]]:
        entries = []
        failed: List[str] = []

        for outcome in outcomes:
            result.decisions.append(outcome.decision)
            if self._audit_logger:
                self._audit_logger.log_routing_decision(batch_id, outcome.decision, user_id)

            if not outcome.succeeded:
                failed.append(outcome.failure.document_id)
                result.failures.append(outcome.failure)
                if self._audit_logger:
                    self._audit_logger.log_document_failed(batch_id, outcome.failure, user_id)
                continue

            partial = self._mapper.map_to_fields(outcome.result)
            entries.append((outcome.result, partial))
            if self._audit_logger:
                self._audit_logger.log_document_analyzed(
                    batch_id=batch_id,
                    document_id=outcome.result.document_id,
                    rule_count=outcome.result.rule_count,
                    field_count=len(partial.fields),
                    confidence=partial.confidence,
                    user_id=user_id,
                )

        return entries, failed

    def apply_corrections(
        self,
        blueprint: ContractBlueprint,
        overrides: Iterable[FieldOverride],
        user_id: Optional[str] = None,
    ) -> CorrectionResult:
        """
        Apply user overrides, re-derive defaults and re-validate.

        The corrected blueprint is stored as the batch's new current
        snapshot; the given blueprint is left as it was.

        Args:
            blueprint: The blueprint being reviewed.
            overrides: FieldOverride records, e.g. a CorrectionSet.
            user_id: Reviewing user.

        Returns:
            CorrectionResult with the corrected blueprint and its report.
        """
        overrides = list(overrides)
        corrected, report = self._finalizer.refinalize(
            apply_overrides(blueprint, overrides, self._confidence)
        )

        snapshot_id = None
        if self._snapshots:
            self._snapshots.save_overrides(corrected, overrides, user_id)
            snapshot_id = self._snapshots.save_snapshot(corrected, report, user_id)

        if self._audit_logger:
            for override in overrides:
                self._audit_logger.log_field_overridden(
                    batch_id=blueprint.batch_id,
                    blueprint_id=blueprint.id,
                    field_name=override.field.value,
                    old_value=to_plain(blueprint.value(override.field)),
                    new_value=to_plain(override.value),
                    user_id=override.user_id or user_id,
                    comment=override.comment,
                )

        logger.info(f"Applied {len(overrides)} corrections to batch {blueprint.batch_id}")
        return CorrectionResult(blueprint=corrected, validation=report, snapshot_id=snapshot_id)

    def get_current_blueprint(self, batch_id: str) -> Optional[ContractBlueprint]:
        """The current blueprint of a batch from the snapshot store."""
        if not self._snapshots:
            return None
        return self._snapshots.load_current_blueprint(batch_id)

    def _update_stats(self, result: BatchAnalysisResult) -> None:
        """Update pipeline statistics."""
        self.stats.total_executions += 1

        if result.success:
            self.stats.successful_executions += 1
        else:
            self.stats.failed_executions += 1

        self.stats.documents_analyzed += len(result.decisions) - len(result.failures)
        self.stats.documents_failed += len(result.failures)
        self.stats.total_cost += result.total_cost
        self.stats.total_processing_time += result.processing_time
        self.stats.average_processing_time = (
            self.stats.total_processing_time / self.stats.total_executions
        )

    def get_stats(self) -> PipelineStats:
        """Get pipeline execution statistics."""
        return self.stats

    def get_routing_stats(self) -> Dict[str, Dict[str, Any]]:
        """Rolling backend success statistics."""
        return self._tracker.get_stats()

    def close(self) -> None:
        """Close the pipeline and release resources."""
        if self._audit_logger and hasattr(self._audit_logger, "close"):
            self._audit_logger.close()
        if self._db_manager:
            self._db_manager.close()
        logger.info("Blueprint pipeline closed")
