"""Unit tests for extraction routing, cost estimation and success tracking."""

import json
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import Mock

import pytest

from contract_blueprint.config.models import RoutingConfig
from contract_blueprint.exceptions import (
    BackendAuthError,
    BackendError,
    BackendQuotaError,
    BackendTimeoutError,
    BackendUnavailableError,
    MalformedResponseError,
)
from contract_blueprint.models.enums import (
    AnalysisFeature,
    BackendKind,
    DecisionReason,
    FailureKind,
)
from contract_blueprint.routing.backends import PayloadBackend
from contract_blueprint.routing.cost import CostEstimator, CostLedger
from contract_blueprint.routing.router import ExtractionRouter
from contract_blueprint.routing.stats import BackendSuccessTracker


TEXT_AND_TABLES = (AnalysisFeature.TEXT, AnalysisFeature.TABLES)


@pytest.fixture
def backends(stub_backend, make_analysis):
    """A working primary and secondary backend for doc-1."""
    primary = stub_backend(
        BackendKind.PRIMARY,
        results={"doc-1": make_analysis("doc-1", backend=BackendKind.PRIMARY)},
    )
    secondary = stub_backend(
        BackendKind.SECONDARY,
        results={"doc-1": make_analysis("doc-1", backend=BackendKind.SECONDARY)},
    )
    return primary, secondary


class TestBackendErrors:
    """Tests for the backend error taxonomy."""

    @pytest.mark.parametrize("error_type, kind", [
        (BackendError, FailureKind.UNKNOWN),
        (BackendTimeoutError, FailureKind.TIMEOUT),
        (BackendAuthError, FailureKind.AUTH),
        (BackendQuotaError, FailureKind.QUOTA),
        (MalformedResponseError, FailureKind.MALFORMED_RESPONSE),
        (BackendUnavailableError, FailureKind.UNAVAILABLE),
    ])
    def test_failure_kind(self, error_type, kind):
        error = error_type("failed", backend=BackendKind.PRIMARY, document_id="doc-1")

        assert error.failure_kind is kind
        assert str(error) == "failed | Backend: primary | Document: doc-1"
        assert error.to_dict()["failure_kind"] == kind.value

    def test_auth_failure_falls_back(self, stub_backend, make_analysis, make_document):
        primary = stub_backend(BackendKind.PRIMARY, error=BackendAuthError("bad key"))
        secondary = stub_backend(
            BackendKind.SECONDARY,
            results={"doc-1": make_analysis("doc-1", backend=BackendKind.SECONDARY)},
        )
        router = ExtractionRouter(primary, secondary, config=RoutingConfig(prefer_primary=True))

        routed = router.analyze(make_document())

        assert routed.succeeded
        assert routed.decision.attempted == (BackendKind.PRIMARY, BackendKind.SECONDARY)


class TestCostEstimator:
    """Tests for CostEstimator."""

    def test_pages_from_byte_size(self, make_document):
        estimator = CostEstimator()
        document = make_document(byte_size=250_000)

        assert estimator.estimate_pages(document) == 3
        assert estimator.estimate(document) == pytest.approx(0.0045)

    def test_page_count_hint_wins(self, make_document):
        estimator = CostEstimator()
        document = make_document(byte_size=250_000, page_count=10)

        assert estimator.estimate(document) == pytest.approx(0.015)

    def test_features_are_priced_together(self, make_document):
        estimator = CostEstimator()
        document = make_document(page_count=10, features=TEXT_AND_TABLES)

        assert estimator.estimate(document) == pytest.approx(0.165)

    def test_empty_document_is_one_page(self, make_document):
        assert CostEstimator().estimate_pages(make_document(byte_size=0)) == 1

    def test_secondary_is_free(self, make_document):
        document = make_document(page_count=500, features=TEXT_AND_TABLES)
        assert CostEstimator().estimate(document, BackendKind.SECONDARY) == 0.0

    def test_custom_prices(self, make_document):
        config = RoutingConfig(price_per_page={AnalysisFeature.TEXT: 0.01})
        estimator = CostEstimator(config)
        assert estimator.estimate(make_document(page_count=7)) == pytest.approx(0.07)


class TestCostLedger:
    """Tests for CostLedger."""

    def test_charges_accumulate(self):
        ledger = CostLedger()
        ledger.charge("doc-1", 0.5)
        ledger.charge("doc-2", 0.25)
        total = ledger.charge("doc-1", 0.1)

        assert total == pytest.approx(0.85)
        assert ledger.total == pytest.approx(0.85)
        assert ledger.cost_of("doc-1") == pytest.approx(0.6)
        assert ledger.cost_of("doc-3") == 0.0

    def test_try_charge_respects_ceiling(self):
        ledger = CostLedger()

        assert ledger.try_charge("doc-1", 0.6, ceiling=1.0)
        assert not ledger.try_charge("doc-2", 0.6, ceiling=1.0)
        assert ledger.try_charge("doc-3", 0.4, ceiling=1.0)
        assert ledger.try_charge("doc-4", 5.0)

        assert ledger.total == pytest.approx(6.0)
        assert ledger.cost_of("doc-2") == 0.0

    def test_reset(self):
        ledger = CostLedger()
        ledger.charge("doc-1", 1.0)
        ledger.reset()
        assert ledger.total == 0.0
        assert ledger.cost_of("doc-1") == 0.0


class TestBackendSuccessTracker:
    """Tests for BackendSuccessTracker."""

    def test_no_history_is_even(self):
        tracker = BackendSuccessTracker()
        assert tracker.success_rate(BackendKind.PRIMARY) == pytest.approx(0.5)
        assert tracker.better_backend() is BackendKind.SECONDARY

    def test_rate_is_smoothed(self):
        tracker = BackendSuccessTracker()
        for outcome in (True, True, False):
            tracker.record(BackendKind.PRIMARY, outcome)

        assert tracker.success_rate(BackendKind.PRIMARY) == pytest.approx(0.6)
        assert tracker.history_size(BackendKind.PRIMARY) == 3
        assert tracker.better_backend() is BackendKind.PRIMARY

    def test_window_drops_old_outcomes(self):
        tracker = BackendSuccessTracker(window=2)
        for outcome in (False, True, True):
            tracker.record(BackendKind.SECONDARY, outcome)

        assert tracker.history_size(BackendKind.SECONDARY) == 2
        assert tracker.success_rate(BackendKind.SECONDARY) == pytest.approx(0.75)

    def test_tie_goes_to_secondary(self):
        tracker = BackendSuccessTracker()
        tracker.record(BackendKind.PRIMARY, True)
        tracker.record(BackendKind.SECONDARY, True)
        assert tracker.better_backend() is BackendKind.SECONDARY

    def test_stats_and_reset(self):
        tracker = BackendSuccessTracker()
        tracker.record(BackendKind.PRIMARY, False)

        stats = tracker.get_stats()
        assert stats["primary"] == {"calls": 1, "successes": 0, "success_rate": pytest.approx(1 / 3)}
        assert stats["secondary"]["calls"] == 0

        tracker.reset()
        assert tracker.history_size(BackendKind.PRIMARY) == 0

    @pytest.mark.parametrize("window", [0, -5])
    def test_invalid_window(self, window):
        with pytest.raises(ValueError):
            BackendSuccessTracker(window=window)


class TestRoutingDecisions:
    """Tests for ExtractionRouter.decide, one per decision rule."""

    def test_primary_disabled(self, backends, make_document):
        router = ExtractionRouter(*backends, config=RoutingConfig(primary_enabled=False))
        decision = router.decide(make_document(features=TEXT_AND_TABLES))

        assert decision.backend is BackendKind.SECONDARY
        assert decision.reason is DecisionReason.NOT_CONFIGURED

    def test_primary_missing(self, backends, make_document):
        router = ExtractionRouter(None, backends[1])
        decision = router.decide(make_document())
        assert decision.reason is DecisionReason.NOT_CONFIGURED

    def test_primary_unreachable(self, stub_backend, backends, make_document):
        primary = stub_backend(BackendKind.PRIMARY, available=False)
        router = ExtractionRouter(primary, backends[1])
        decision = router.decide(make_document())

        assert decision.backend is BackendKind.SECONDARY
        assert decision.reason is DecisionReason.NOT_CONFIGURED

    def test_document_cost_ceiling(self, backends, make_document):
        estimator = Mock(spec=CostEstimator)
        estimator.estimate.return_value = 6.0
        router = ExtractionRouter(*backends, estimator=estimator)

        decision = router.decide(make_document(features=TEXT_AND_TABLES))

        assert decision.backend is BackendKind.SECONDARY
        assert decision.reason is DecisionReason.COST_EXCEEDED
        assert decision.estimated_cost == 6.0

    def test_batch_cost_ceiling(self, backends, make_document):
        router = ExtractionRouter(*backends, config=RoutingConfig(max_batch_cost=1.0))
        document = make_document(page_count=100)  # $0.15

        assert router.decide(document, spent=0.9).reason is DecisionReason.COST_EXCEEDED
        assert router.decide(document, spent=0.5).reason is DecisionReason.PERFORMANCE_BASED

    def test_batch_ceiling_reads_ledger(self, backends, make_document):
        ledger = CostLedger()
        ledger.charge("earlier", 0.95)
        router = ExtractionRouter(
            *backends, config=RoutingConfig(max_batch_cost=1.0), ledger=ledger
        )
        assert router.decide(make_document(page_count=100)).reason is DecisionReason.COST_EXCEEDED

    def test_feature_required(self, backends, make_document):
        router = ExtractionRouter(*backends)
        decision = router.decide(make_document(features=TEXT_AND_TABLES))

        assert decision.backend is BackendKind.PRIMARY
        assert decision.reason is DecisionReason.FEATURE_REQUIRED

    def test_secondary_backend_limits_features(self, stub_backend, make_document):
        primary = stub_backend(BackendKind.PRIMARY)
        secondary = stub_backend(BackendKind.SECONDARY, features=[AnalysisFeature.LAYOUT])
        router = ExtractionRouter(primary, secondary)

        assert router.decide(make_document()).reason is DecisionReason.FEATURE_REQUIRED

    def test_size_exceeded(self, backends, make_document):
        router = ExtractionRouter(*backends)
        decision = router.decide(make_document(byte_size=11 * 1024 * 1024))

        assert decision.backend is BackendKind.PRIMARY
        assert decision.reason is DecisionReason.SIZE_EXCEEDED

    def test_preference(self, backends, make_document):
        router = ExtractionRouter(*backends, config=RoutingConfig(prefer_primary=True))
        decision = router.decide(make_document())

        assert decision.backend is BackendKind.PRIMARY
        assert decision.reason is DecisionReason.PREFERENCE

    def test_performance_based(self, backends, make_document):
        tracker = BackendSuccessTracker()
        router = ExtractionRouter(*backends, tracker=tracker)

        decision = router.decide(make_document())
        assert decision.backend is BackendKind.SECONDARY
        assert decision.reason is DecisionReason.PERFORMANCE_BASED

        tracker.record(BackendKind.PRIMARY, True)
        tracker.record(BackendKind.PRIMARY, True)
        assert router.decide(make_document()).backend is BackendKind.PRIMARY

    def test_cost_rule_precedes_feature_rule(self, backends, make_document):
        config = RoutingConfig(max_cost_per_document=0.1)
        router = ExtractionRouter(*backends, config=config)
        decision = router.decide(make_document(page_count=10, features=TEXT_AND_TABLES))

        assert decision.reason is DecisionReason.COST_EXCEEDED

    def test_estimated_cost_is_primary_estimate(self, backends, make_document):
        router = ExtractionRouter(*backends, config=RoutingConfig(primary_enabled=False))
        decision = router.decide(make_document(page_count=10))
        assert decision.estimated_cost == pytest.approx(0.015)

    def test_config_override_per_call(self, backends, make_document):
        router = ExtractionRouter(*backends)
        decision = router.decide(make_document(), config=RoutingConfig(prefer_primary=True))
        assert decision.reason is DecisionReason.PREFERENCE


class TestRoutedAnalysis:
    """Tests for ExtractionRouter.analyze and the single fallback retry."""

    def test_success_without_fallback(self, backends, make_document):
        primary, secondary = backends
        router = ExtractionRouter(primary, secondary, config=RoutingConfig(prefer_primary=True))

        routed = router.analyze(make_document(page_count=10))

        assert routed.succeeded
        assert routed.result.backend is BackendKind.PRIMARY
        assert routed.decision.fallback is False
        assert routed.decision.attempted == (BackendKind.PRIMARY,)
        assert secondary.calls == []
        assert router.ledger.total == pytest.approx(0.015)
        assert router.tracker.success_rate(BackendKind.PRIMARY) == pytest.approx(2 / 3)

    def test_primary_timeout_falls_back_to_secondary(self, stub_backend, make_analysis, make_document):
        primary = stub_backend(
            BackendKind.PRIMARY,
            error=BackendTimeoutError("timed out", backend=BackendKind.PRIMARY),
        )
        secondary = stub_backend(
            BackendKind.SECONDARY,
            results={"doc-1": make_analysis("doc-1", backend=BackendKind.SECONDARY)},
        )
        router = ExtractionRouter(primary, secondary, config=RoutingConfig(prefer_primary=True))

        routed = router.analyze(make_document(page_count=10))

        assert routed.succeeded
        assert routed.result.backend is BackendKind.SECONDARY
        assert routed.decision.backend is BackendKind.SECONDARY
        assert routed.decision.reason is DecisionReason.PREFERENCE
        assert routed.decision.fallback is True
        assert routed.decision.attempted == (BackendKind.PRIMARY, BackendKind.SECONDARY)
        assert primary.calls == ["doc-1"]
        assert secondary.calls == ["doc-1"]
        # the failed primary attempt is still billed
        assert router.ledger.total == pytest.approx(0.015)
        assert router.tracker.history_size(BackendKind.PRIMARY) == 1
        assert router.tracker.success_rate(BackendKind.PRIMARY) == pytest.approx(1 / 3)

    def test_secondary_failure_falls_back_to_primary(self, stub_backend, make_analysis, make_document):
        primary = stub_backend(
            BackendKind.PRIMARY,
            results={"doc-1": make_analysis("doc-1", backend=BackendKind.PRIMARY)},
        )
        secondary = stub_backend(BackendKind.SECONDARY, error=RuntimeError("ocr crashed"))
        router = ExtractionRouter(primary, secondary)

        routed = router.analyze(make_document())

        assert routed.decision.reason is DecisionReason.PERFORMANCE_BASED
        assert routed.decision.backend is BackendKind.PRIMARY
        assert routed.decision.fallback is True
        assert routed.result.backend is BackendKind.PRIMARY

    def test_both_backends_fail(self, stub_backend, make_document):
        primary = stub_backend(
            BackendKind.PRIMARY,
            error=BackendTimeoutError("timed out", backend=BackendKind.PRIMARY),
        )
        secondary = stub_backend(BackendKind.SECONDARY, error=RuntimeError("ocr crashed"))
        router = ExtractionRouter(primary, secondary, config=RoutingConfig(prefer_primary=True))

        routed = router.analyze(make_document())

        assert not routed.succeeded
        assert routed.result is None
        failure = routed.failure
        assert failure.document_id == "doc-1"
        assert [a.failure_kind for a in failure.attempts] == [FailureKind.TIMEOUT, FailureKind.UNKNOWN]
        assert "ocr crashed" in failure.message
        assert failure.to_dict()["attempts"][0]["backend"] == "primary"

    def test_no_fallback_after_cost_exceeded(self, stub_backend, make_document):
        primary = stub_backend(BackendKind.PRIMARY)
        secondary = stub_backend(BackendKind.SECONDARY, error=BackendQuotaError("quota"))
        estimator = Mock(spec=CostEstimator)
        estimator.estimate.return_value = 6.0
        router = ExtractionRouter(primary, secondary, estimator=estimator)

        routed = router.analyze(make_document())

        assert routed.decision.reason is DecisionReason.COST_EXCEEDED
        assert routed.decision.fallback is False
        assert primary.calls == []
        assert [a.failure_kind for a in routed.failure.attempts] == [FailureKind.QUOTA]
        assert router.ledger.total == 0.0

    def test_concurrent_documents_share_batch_ceiling(self, stub_backend, make_analysis,
                                                       make_document):
        ids = [f"doc-{n}" for n in range(1, 9)]
        primary = stub_backend(
            BackendKind.PRIMARY,
            results={i: make_analysis(i, backend=BackendKind.PRIMARY) for i in ids},
        )
        secondary = stub_backend(
            BackendKind.SECONDARY,
            results={i: make_analysis(i, backend=BackendKind.SECONDARY) for i in ids},
        )
        estimator = Mock(spec=CostEstimator)
        estimator.estimate.return_value = 0.0015
        router = ExtractionRouter(
            primary, secondary,
            config=RoutingConfig(prefer_primary=True, max_batch_cost=0.002),
            estimator=estimator,
        )

        with ThreadPoolExecutor(max_workers=len(ids)) as executor:
            routed = list(executor.map(router.analyze, [make_document(i) for i in ids]))

        reasons = [r.decision.reason for r in routed]
        assert reasons.count(DecisionReason.PREFERENCE) == 1
        assert reasons.count(DecisionReason.COST_EXCEEDED) == len(ids) - 1
        assert len(primary.calls) == 1
        assert all(r.succeeded for r in routed)
        assert router.ledger.total == pytest.approx(0.0015)

    def test_no_fallback_when_primary_not_configured(self, stub_backend, make_document):
        secondary = stub_backend(BackendKind.SECONDARY, error=RuntimeError("down"))
        router = ExtractionRouter(None, secondary)

        routed = router.analyze(make_document())

        assert routed.decision.reason is DecisionReason.NOT_CONFIGURED
        assert len(routed.failure.attempts) == 1

    def test_wrong_result_type_is_a_failure(self, stub_backend, make_document):
        primary = stub_backend(BackendKind.PRIMARY, results={"doc-1": {"rules": []}})
        router = ExtractionRouter(primary, None, config=RoutingConfig(prefer_primary=True))

        routed = router.analyze(make_document())

        assert not routed.succeeded
        assert routed.failure.attempts[0].failure_kind is FailureKind.UNKNOWN

    def test_payload_backend_malformed_response(self, make_analysis, stub_backend, make_document):
        primary = PayloadBackend(BackendKind.PRIMARY, client=lambda document, features: "{oops")
        secondary = stub_backend(
            BackendKind.SECONDARY,
            results={"doc-1": make_analysis("doc-1", backend=BackendKind.SECONDARY)},
        )
        router = ExtractionRouter(primary, secondary, config=RoutingConfig(prefer_primary=True))

        routed = router.analyze(make_document())

        assert routed.decision.fallback is True
        assert routed.result.backend is BackendKind.SECONDARY


class TestPayloadBackend:
    """Tests for PayloadBackend."""

    def test_parses_client_payload(self, make_document):
        seen = {}

        def client(document, features):
            seen["features"] = features
            return json.dumps({"extractedRules": [{"id": "r1", "category": "payment"}]})

        backend = PayloadBackend(BackendKind.SECONDARY, client=client,
                                 supported_features=[AnalysisFeature.TEXT])
        features = frozenset({AnalysisFeature.TEXT})
        result = backend.analyze(make_document(), features)

        assert result.backend is BackendKind.SECONDARY
        assert [rule.id for rule in result.rules] == ["r1"]
        assert seen["features"] == features
        assert backend.supported_features == features

    def test_availability_callable(self):
        state = {"up": False}
        backend = PayloadBackend(BackendKind.PRIMARY, client=Mock(),
                                 available=lambda: state["up"])
        assert backend.is_available() is False
        state["up"] = True
        assert backend.is_available() is True
