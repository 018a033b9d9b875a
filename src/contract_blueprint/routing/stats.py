"""Backend success statistics used by performance-based routing."""

import functools
import logging
import threading
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, TypeVar

from ..models.enums import BackendKind


logger = logging.getLogger(__name__)

T = TypeVar('T')


class BackendSuccessTracker:
    """
    Rolling window of call outcomes per backend.

    Every routing decision reads the rates and every backend call writes
    them, so updates are serialized under a single lock. Rates are
    Laplace-smoothed: with no history both backends sit at 0.5.
    """

    def __init__(self, window: int = 50):
        """
        Initialize the tracker.

        Args:
            window: Number of most recent outcomes kept per backend.
        """
        if window <= 0:
            raise ValueError("window must be positive")
        self._lock = threading.Lock()
        self._outcomes: Dict[BackendKind, Deque[bool]] = {
            kind: deque(maxlen=window) for kind in BackendKind
        }

    def record(self, backend: BackendKind, success: bool) -> None:
        """Record the outcome of one backend call."""
        with self._lock:
            self._outcomes[backend].append(success)

    def success_rate(self, backend: BackendKind) -> float:
        with self._lock:
            outcomes = self._outcomes[backend]
            return (sum(outcomes) + 1) / (len(outcomes) + 2)

    def history_size(self, backend: BackendKind) -> int:
        with self._lock:
            return len(self._outcomes[backend])

    def better_backend(self) -> BackendKind:
        """
        The backend with the higher success rate.

        Ties, including the no-history case, go to the secondary backend.
        """
        with self._lock:
            rates = {
                kind: (sum(outcomes) + 1) / (len(outcomes) + 2)
                for kind, outcomes in self._outcomes.items()
            }
        if rates[BackendKind.PRIMARY] > rates[BackendKind.SECONDARY]:
            return BackendKind.PRIMARY
        return BackendKind.SECONDARY

    def get_stats(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            snapshot = {kind: list(outcomes) for kind, outcomes in self._outcomes.items()}
        return {
            kind.value: {
                "calls": len(outcomes),
                "successes": sum(outcomes),
                "success_rate": (sum(outcomes) + 1) / (len(outcomes) + 2),
            }
            for kind, outcomes in snapshot.items()
        }

    def reset(self) -> None:
        with self._lock:
            for outcomes in self._outcomes.values():
                outcomes.clear()


def timed_operation(operation_name: str):
    """
    Decorator to log how long an operation took.

    Args:
        operation_name: Name of the operation to track.
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            start_time = time.time()
            try:
                result = func(*args, **kwargs)
                duration = time.time() - start_time
                logger.debug(f"{operation_name} completed in {duration:.2f}s")
                return result
            except Exception as e:
                duration = time.time() - start_time
                logger.error(f"{operation_name} failed after {duration:.2f}s: {e}")
                raise
        return wrapper
    return decorator
