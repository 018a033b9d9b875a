"""Analysis backend interface for the Contract Blueprint pipeline."""

from abc import ABC, abstractmethod
from typing import FrozenSet

from ..models.document import DocumentMeta
from ..models.enums import AnalysisFeature, BackendKind
from ..models.extraction import DocumentAnalysisResult


class IAnalysisBackend(ABC):
    """
    Abstract interface for a document analysis (OCR/AI) backend.

    Backends are opaque services: given a stored document and a feature
    set they return an analysis result, or raise a BackendError subclass
    (timeout, auth, quota, malformed response, unavailable).
    """

    @property
    @abstractmethod
    def kind(self) -> BackendKind:
        """Which routing slot this backend fills."""
        pass

    @property
    @abstractmethod
    def supported_features(self) -> FrozenSet[AnalysisFeature]:
        """Analysis features this backend can provide."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """
        Check whether the backend is configured and reachable.

        Returns:
            True if calls can be attempted.
        """
        pass

    @abstractmethod
    def analyze(
        self,
        document: DocumentMeta,
        features: FrozenSet[AnalysisFeature],
    ) -> DocumentAnalysisResult:
        """
        Analyze one stored document.

        Args:
            document: Registry record of the document to analyze.
            features: The requested analysis features.

        Returns:
            DocumentAnalysisResult for the document.

        Raises:
            BackendError: On any typed backend failure.
        """
        pass
