"""
Extraction router.

Chooses the analysis backend for each document under cost, feature and
size constraints, calls it, and falls back to the other backend exactly
once when the call fails.
"""

import logging
from dataclasses import replace
from typing import FrozenSet, List, Optional

from ..config.models import RoutingConfig
from ..exceptions import BackendError
from ..interfaces.backend import IAnalysisBackend
from ..models.document import DocumentMeta
from ..models.enums import AnalysisFeature, BackendKind, DecisionReason, FailureKind
from ..models.extraction import DocumentAnalysisResult
from ..models.routing import (
    BackendAttempt,
    DocumentFailure,
    ExtractionDecision,
    RoutedAnalysis,
)
from .cost import CostEstimator, CostLedger
from .stats import BackendSuccessTracker, timed_operation


logger = logging.getLogger(__name__)

# Reasons under which the other backend must not be tried.
_NO_FALLBACK = frozenset({DecisionReason.COST_EXCEEDED, DecisionReason.NOT_CONFIGURED})


class ExtractionRouter:
    """
    Routes documents to the primary (cloud) or secondary (local) backend.

    Decision rules are applied in order and the first match wins:

    1. primary disabled or unreachable -> secondary (not-configured)
    2. estimated cost over the per-document or batch ceiling -> secondary
       (cost-exceeded)
    3. requested features the secondary cannot provide -> primary
       (feature-required)
    4. document larger than the secondary's safe limit -> primary
       (size-exceeded)
    5. user prefers primary -> primary (preference)
    6. better rolling success rate, secondary on ties (performance-based)
    """

    def __init__(
        self,
        primary: Optional[IAnalysisBackend],
        secondary: Optional[IAnalysisBackend],
        config: Optional[RoutingConfig] = None,
        estimator: Optional[CostEstimator] = None,
        tracker: Optional[BackendSuccessTracker] = None,
        ledger: Optional[CostLedger] = None,
    ):
        self._backends = {
            BackendKind.PRIMARY: primary,
            BackendKind.SECONDARY: secondary,
        }
        self._config = config or RoutingConfig()
        self._estimator = estimator or CostEstimator(self._config)
        self._tracker = tracker or BackendSuccessTracker(self._config.success_window)
        self._ledger = ledger or CostLedger()

    @property
    def config(self) -> RoutingConfig:
        return self._config

    @property
    def tracker(self) -> BackendSuccessTracker:
        return self._tracker

    @property
    def ledger(self) -> CostLedger:
        return self._ledger

    def decide(
        self,
        document: DocumentMeta,
        config: Optional[RoutingConfig] = None,
        spent: Optional[float] = None,
    ) -> ExtractionDecision:
        """
        Choose a backend for one document.

        Args:
            document: Registry record; only size, features and the page
                count hint are consulted.
            config: Overrides the router's configuration for this call.
            spent: Batch spend so far; defaults to the router's ledger.

        Returns:
            ExtractionDecision carrying the reason code and the estimated
            primary-backend cost.
        """
        config = config or self._config
        spent = self._ledger.total if spent is None else spent
        features = self._features(document)
        estimate = self._estimator.estimate(document, BackendKind.PRIMARY)

        backend, reason = self._choose(document, features, estimate, spent, config)
        decision = ExtractionDecision(
            document_id=document.document_id,
            backend=backend,
            reason=reason,
            estimated_cost=estimate,
        )
        logger.info(
            f"Routing {document.document_id} to {backend.value} backend "
            f"({reason.value}, estimated ${estimate:.4f})"
        )
        return decision

    def _choose(
        self,
        document: DocumentMeta,
        features: FrozenSet[AnalysisFeature],
        estimate: float,
        spent: float,
        config: RoutingConfig,
    ):
        if not config.primary_enabled or not self._is_available(BackendKind.PRIMARY):
            return BackendKind.SECONDARY, DecisionReason.NOT_CONFIGURED

        over_document = estimate > config.max_cost_per_document
        over_batch = (
            config.max_batch_cost is not None
            and spent + estimate > config.max_batch_cost
        )
        if over_document or over_batch:
            return BackendKind.SECONDARY, DecisionReason.COST_EXCEEDED

        if not features <= self._secondary_features(config):
            return BackendKind.PRIMARY, DecisionReason.FEATURE_REQUIRED

        if document.byte_size > config.secondary_max_bytes:
            return BackendKind.PRIMARY, DecisionReason.SIZE_EXCEEDED

        if config.prefer_primary:
            return BackendKind.PRIMARY, DecisionReason.PREFERENCE

        return self._tracker.better_backend(), DecisionReason.PERFORMANCE_BASED

    @timed_operation("route_and_analyze")
    def analyze(
        self,
        document: DocumentMeta,
        config: Optional[RoutingConfig] = None,
    ) -> RoutedAnalysis:
        """
        Decide, call the chosen backend, and fall back once on failure.

        Never raises for backend failures: when both attempts fail the
        returned RoutedAnalysis carries a DocumentFailure instead of a
        result.
        """
        config = config or self._config
        decision = self.decide(document, config)
        attempts: List[BackendAttempt] = []

        chosen = decision.backend
        if not self._reserve(chosen, document, decision.estimated_cost, config):
            chosen = BackendKind.SECONDARY
            decision = replace(decision, backend=chosen, reason=DecisionReason.COST_EXCEEDED)
        decision = replace(decision, attempted=(chosen,))
        result = self._attempt(chosen, document, attempts)
        if result is not None:
            return RoutedAnalysis(decision=decision, result=result)

        other = chosen.other
        if self._can_fall_back(decision, other, config) and self._reserve(
            other, document, decision.estimated_cost, config
        ):
            logger.warning(
                f"Falling back to {other.value} backend for {document.document_id} "
                f"after {chosen.value} failure"
            )
            decision = replace(decision, backend=other, fallback=True, attempted=(chosen, other))
            result = self._attempt(other, document, attempts)
            if result is not None:
                return RoutedAnalysis(decision=decision, result=result)

        failure = DocumentFailure(document_id=document.document_id, attempts=tuple(attempts))
        logger.error(f"Document {document.document_id} could not be analyzed: {failure.message}")
        return RoutedAnalysis(decision=decision, failure=failure)

    def _attempt(
        self,
        kind: BackendKind,
        document: DocumentMeta,
        attempts: List[BackendAttempt],
    ) -> Optional[DocumentAnalysisResult]:
        backend = self._backends[kind]
        if backend is None:
            attempts.append(BackendAttempt(kind, FailureKind.UNAVAILABLE, "backend not configured"))
            return None

        try:
            result = backend.analyze(document, self._features(document))
            if not isinstance(result, DocumentAnalysisResult):
                raise BackendError(
                    f"Backend returned {type(result).__name__} instead of an analysis",
                    backend=kind,
                    document_id=document.document_id,
                )
        except BackendError as e:
            error = e
        except Exception as e:
            error = BackendError(str(e) or type(e).__name__, backend=kind,
                                 document_id=document.document_id,
                                 details={"exception": type(e).__name__})
        else:
            self._tracker.record(kind, True)
            return result

        self._tracker.record(kind, False)
        attempts.append(BackendAttempt(kind, error.failure_kind, error.message))
        logger.warning(
            f"{kind.value} backend failed for {document.document_id}: "
            f"{error.failure_kind.value} ({error.message})"
        )
        return None

    def _reserve(
        self,
        kind: BackendKind,
        document: DocumentMeta,
        estimate: float,
        config: RoutingConfig,
    ) -> bool:
        # Billed up front; a failed primary call is still charged.
        if kind is not BackendKind.PRIMARY:
            return True
        return self._ledger.try_charge(document.document_id, estimate, config.max_batch_cost)

    def _can_fall_back(
        self,
        decision: ExtractionDecision,
        other: BackendKind,
        config: RoutingConfig,
    ) -> bool:
        if decision.reason in _NO_FALLBACK:
            return False
        if other is BackendKind.PRIMARY and not config.primary_enabled:
            return False
        return self._is_available(other)

    def _is_available(self, kind: BackendKind) -> bool:
        backend = self._backends[kind]
        if backend is None:
            return False
        try:
            return bool(backend.is_available())
        except Exception as e:
            logger.warning(f"Availability check for {kind.value} backend failed: {e}")
            return False

    def _secondary_features(self, config: RoutingConfig) -> FrozenSet[AnalysisFeature]:
        secondary = self._backends[BackendKind.SECONDARY]
        if secondary is None:
            return frozenset(config.secondary_features)
        return frozenset(config.secondary_features) & frozenset(secondary.supported_features)

    @staticmethod
    def _features(document: DocumentMeta) -> FrozenSet[AnalysisFeature]:
        return frozenset(document.features or {AnalysisFeature.TEXT})
