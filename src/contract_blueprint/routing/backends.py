"""Adapters that turn provider clients into analysis backends."""

import logging
from typing import Any, Callable, FrozenSet, Iterable, Mapping, Optional, Union

from ..interfaces.backend import IAnalysisBackend
from ..models.document import DocumentMeta
from ..models.enums import AnalysisFeature, BackendKind
from ..models.extraction import DocumentAnalysisResult
from ..parsers.payload import AnalysisPayloadParser


logger = logging.getLogger(__name__)

Payload = Union[str, bytes, Mapping[str, Any]]
PayloadClient = Callable[[DocumentMeta, FrozenSet[AnalysisFeature]], Payload]


class PayloadBackend(IAnalysisBackend):
    """
    Backend around a provider client that returns raw analysis payloads.

    The client is called with the document record and the requested
    features and returns the provider's JSON (string or dict). Typed
    provider failures are expected to surface as BackendError subclasses;
    the payload itself is normalized by AnalysisPayloadParser, which
    raises MalformedResponseError for unusable payloads.
    """

    def __init__(
        self,
        kind: BackendKind,
        client: PayloadClient,
        supported_features: Optional[Iterable[AnalysisFeature]] = None,
        available: Union[bool, Callable[[], bool]] = True,
        parser: Optional[AnalysisPayloadParser] = None,
    ):
        self._kind = kind
        self._client = client
        self._features = frozenset(supported_features or AnalysisFeature)
        self._available = available
        self._parser = parser or AnalysisPayloadParser()

    @property
    def kind(self) -> BackendKind:
        return self._kind

    @property
    def supported_features(self) -> FrozenSet[AnalysisFeature]:
        return self._features

    def is_available(self) -> bool:
        if callable(self._available):
            return bool(self._available())
        return bool(self._available)

    def analyze(
        self,
        document: DocumentMeta,
        features: FrozenSet[AnalysisFeature],
    ) -> DocumentAnalysisResult:
        logger.debug(
            f"Calling {self._kind.value} backend for {document.original_filename} "
            f"({document.byte_size} bytes)"
        )
        payload = self._client(document, features)
        return self._parser.parse(payload, document.document_id, self._kind)
