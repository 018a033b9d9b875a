"""Cost estimation and accounting for the primary analysis backend."""

import logging
import math
import threading
from typing import Dict, FrozenSet, Optional

from ..config.models import RoutingConfig
from ..models.document import DocumentMeta
from ..models.enums import AnalysisFeature, BackendKind


logger = logging.getLogger(__name__)


class CostEstimator:
    """
    Estimates what analyzing a document will cost.

    The primary backend charges per page and per requested feature; the
    page count comes from the registry hint when present, otherwise from
    the byte size. The secondary backend is local and free.
    """

    def __init__(self, config: Optional[RoutingConfig] = None):
        self._config = config or RoutingConfig()

    def estimate_pages(self, document: DocumentMeta) -> int:
        if document.page_count and document.page_count > 0:
            return document.page_count
        return max(1, math.ceil(document.byte_size / self._config.bytes_per_page))

    def price_per_page(self, features: FrozenSet[AnalysisFeature]) -> float:
        prices = self._config.price_per_page
        return sum(prices.get(feature, 0.0) for feature in features)

    def estimate(
        self,
        document: DocumentMeta,
        backend: BackendKind = BackendKind.PRIMARY,
    ) -> float:
        """
        Estimate the cost in dollars of analyzing a document.

        Args:
            document: Registry record of the document.
            backend: Backend the estimate is for.

        Returns:
            Estimated cost, rounded to four decimals.
        """
        if backend is BackendKind.SECONDARY:
            return 0.0
        features = document.features or frozenset({AnalysisFeature.TEXT})
        cost = self.estimate_pages(document) * self.price_per_page(features)
        return round(cost, 4)


class CostLedger:
    """
    Running cost accumulator for one batch.

    Charged from worker threads, so every update happens under a lock.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._total = 0.0
        self._by_document: Dict[str, float] = {}

    @property
    def total(self) -> float:
        with self._lock:
            return self._total

    def charge(self, document_id: str, amount: float) -> float:
        """Record a charge with no ceiling and return the new running total."""
        self.try_charge(document_id, amount)
        return self.total

    def try_charge(
        self,
        document_id: str,
        amount: float,
        ceiling: Optional[float] = None,
    ) -> bool:
        """
        Charge only if the running total stays within the ceiling.

        The check and the charge happen under one lock, so concurrent
        documents cannot overspend the batch together.

        Returns:
            True if the charge was recorded.
        """
        with self._lock:
            if ceiling is not None and self._total + amount > ceiling:
                total = self._total
                charged = False
            else:
                self._total += amount
                self._by_document[document_id] = self._by_document.get(document_id, 0.0) + amount
                total = self._total
                charged = True
        if charged:
            logger.debug(f"Charged ${amount:.4f} for {document_id}; batch total ${total:.4f}")
        else:
            logger.info(
                f"Refused ${amount:.4f} for {document_id}: batch total ${total:.4f} "
                f"would exceed ceiling ${ceiling:.4f}"
            )
        return charged

    def cost_of(self, document_id: str) -> float:
        with self._lock:
            return self._by_document.get(document_id, 0.0)

    def reset(self) -> None:
        with self._lock:
            self._total = 0.0
            self._by_document.clear()
