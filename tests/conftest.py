"""Shared fixtures for the Contract Blueprint test suite."""

from datetime import datetime, timedelta, timezone
from typing import Dict, List

import pytest

from contract_blueprint.interfaces.backend import IAnalysisBackend
from contract_blueprint.interfaces.registry import IDocumentRegistry
from contract_blueprint.models.document import DocumentMeta
from contract_blueprint.models.enums import AnalysisFeature, BackendKind, RuleKind
from contract_blueprint.models.extraction import (
    DocumentAnalysisResult,
    DocumentSummary,
    ExtractedRule,
    ExtractionSummary,
)
from contract_blueprint.storage.database import DatabaseManager


BASE_TIME = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


class StubBackend(IAnalysisBackend):
    """Analysis backend returning canned results, or raising a canned error."""

    def __init__(
        self,
        kind: BackendKind,
        results=None,
        error=None,
        features=None,
        available=True,
    ):
        self._kind = kind
        self._results = results or {}
        self._error = error
        self._features = frozenset(features or AnalysisFeature)
        self._available = available
        self.calls: List[str] = []

    @property
    def kind(self):
        return self._kind

    @property
    def supported_features(self):
        return self._features

    def is_available(self):
        return self._available

    def analyze(self, document, features):
        self.calls.append(document.document_id)
        error = self._error
        if isinstance(error, dict):
            error = error.get(document.document_id)
        if error is not None:
            raise error
        result = self._results.get(document.document_id)
        if result is None:
            raise RuntimeError(f"no canned result for {document.document_id}")
        return result


class InMemoryRegistry(IDocumentRegistry):
    """Document registry over a plain dictionary."""

    def __init__(self):
        self._batches: Dict[str, List[DocumentMeta]] = {}

    def add(self, batch_id: str, document: DocumentMeta) -> None:
        self._batches.setdefault(batch_id, []).append(document)

    def list_documents(self, batch_id):
        return list(self._batches.get(batch_id, []))


def _make_document(
    document_id="doc-1",
    byte_size=200_000,
    minutes=0,
    features=(AnalysisFeature.TEXT,),
    page_count=None,
):
    return DocumentMeta(
        document_id=document_id,
        original_filename=f"{document_id}.pdf",
        byte_size=byte_size,
        stored_path=f"/uploads/{document_id}.pdf",
        upload_timestamp=BASE_TIME + timedelta(minutes=minutes),
        features=frozenset(features),
        page_count=page_count,
    )


def _make_rule(
    rule_id,
    category,
    parameters=None,
    confidence=0.9,
    kind=RuleKind.CONDITIONAL,
    name="",
):
    return ExtractedRule(
        id=rule_id,
        category=category,
        kind=kind,
        name=name or rule_id,
        parameters=dict(parameters or {}),
        confidence=confidence,
    )


def _make_analysis(
    document_id="doc-1",
    rules=(),
    raw_values=None,
    summary=None,
    confidence=0.9,
    backend=BackendKind.PRIMARY,
    risk_factors=(),
):
    return DocumentAnalysisResult(
        document_id=document_id,
        backend=backend,
        summary=summary or DocumentSummary(),
        rules=tuple(rules),
        raw_values=dict(raw_values or {}),
        risk_factors=tuple(risk_factors),
        extraction_summary=ExtractionSummary(
            total_rules_extracted=len(rules),
            confidence_score=confidence,
        ),
    )


@pytest.fixture
def make_document():
    """Factory for registry document records."""
    return _make_document


@pytest.fixture
def make_rule():
    """Factory for extracted rules."""
    return _make_rule


@pytest.fixture
def make_analysis():
    """Factory for per-document analysis results."""
    return _make_analysis


@pytest.fixture
def stub_backend():
    """Factory for stub analysis backends."""
    return StubBackend


@pytest.fixture
def registry():
    return InMemoryRegistry()


@pytest.fixture
def db_manager():
    """In-memory SQLite database with the schema created."""
    manager = DatabaseManager(database_url="sqlite:///:memory:")
    manager.init_database()
    yield manager
    manager.close()
