"""Extraction routing for the Contract Blueprint pipeline."""

from ..exceptions import (
    BackendAuthError,
    BackendError,
    BackendQuotaError,
    BackendTimeoutError,
    BackendUnavailableError,
    MalformedResponseError,
)
from .cost import CostEstimator, CostLedger
from .stats import BackendSuccessTracker
from .router import ExtractionRouter
from .backends import PayloadBackend

__all__ = [
    "BackendAuthError",
    "BackendError",
    "BackendQuotaError",
    "BackendTimeoutError",
    "BackendUnavailableError",
    "MalformedResponseError",
    "CostEstimator",
    "CostLedger",
    "BackendSuccessTracker",
    "ExtractionRouter",
    "PayloadBackend",
]
