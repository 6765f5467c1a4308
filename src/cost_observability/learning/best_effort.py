"""Bounded, never-raising access to a learning store."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, TypeVar

import structlog

from cost_observability.learning.base import LearningStore
from cost_observability.learning.models import (
    CostEstimateAccuracy,
    CostEstimateRecord,
    ErrorResolution,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class BestEffortLearningStore:
    """
    Wrap a learning store so lookups are advisory.

    Every lookup runs with a timeout. A timeout, an error or a missing store
    all come back as None; nothing is raised into the detection path.
    """

    def __init__(self, store: LearningStore | None, timeout_seconds: float = 2.0):
        self.store = store
        self.timeout_seconds = timeout_seconds
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="learning")
        self._closed = False

    def __enter__(self) -> BestEffortLearningStore:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def available(self) -> bool:
        return self.store is not None and not self._closed

    def known_fix(self, error_code: str) -> ErrorResolution | None:
        """Known fix for an error code, or None."""
        if not self.available:
            return None
        return self._call("query_error_resolution", self.store.query_error_resolution, error_code)

    def estimate_accuracy(self, service: str, resource_type: str) -> CostEstimateAccuracy | None:
        """Estimate accuracy for a service, or None if unavailable."""
        if not self.available:
            return None
        return self._call(
            "get_cost_estimate_accuracy",
            self.store.get_cost_estimate_accuracy,
            service,
            resource_type,
        )

    def record_cost_estimate(self, record: CostEstimateRecord) -> None:
        """Store an estimate if the backend accepts writes. Failures are only logged."""
        if not self.available:
            return
        put = getattr(self.store, "put_cost_estimate", None)
        if put is not None:
            self._call("put_cost_estimate", put, record)

    def _call(self, operation: str, fn: Callable[..., T], *args) -> T | None:
        future = self._executor.submit(fn, *args)
        try:
            return future.result(timeout=self.timeout_seconds)
        except FutureTimeoutError:
            future.cancel()
            logger.warning(
                "Learning store lookup timed out",
                operation=operation,
                timeout_seconds=self.timeout_seconds,
            )
            return None
        except Exception as e:
            logger.warning("Learning store lookup failed", operation=operation, error=str(e))
            return None

    def close(self) -> None:
        """Release the lookup threads without waiting for stragglers."""
        self._closed = True
        self._executor.shutdown(wait=False, cancel_futures=True)
