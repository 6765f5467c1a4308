"""Learning store interface."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from cost_observability.learning.models import (
    CostEstimateAccuracy,
    CostEstimateRecord,
    ErrorResolution,
    ErrorResolutionRecord,
)


@runtime_checkable
class LearningStore(Protocol):
    """
    Read-only queries the engine makes against past outcomes.

    Implementations may raise on failure; callers on the detection path go
    through BestEffortLearningStore, which never does.
    """

    def query_error_resolution(self, error_code: str) -> ErrorResolution | None:
        """Return the best known fix for an error code, if any."""
        ...

    def get_cost_estimate_accuracy(
        self, service: str, resource_type: str
    ) -> CostEstimateAccuracy:
        """Return the historical estimate accuracy for a service."""
        ...


def best_resolution(
    error_code: str, records: list[ErrorResolutionRecord]
) -> ErrorResolution | None:
    """Pick the successful resolution with the highest success rate."""
    successful = [r for r in records if r.resolution_successful]
    if not successful:
        return None

    best = max(successful, key=lambda r: r.success_rate)
    return ErrorResolution(
        error_code=error_code,
        resolution_steps=list(best.resolution_steps),
        success_rate=best.success_rate,
    )


def estimate_accuracy(records: list[CostEstimateRecord]) -> CostEstimateAccuracy:
    """Average variance over the estimates that have an actual cost."""
    variances = [r.variance_percent for r in records if r.variance_percent is not None]
    if not variances:
        return CostEstimateAccuracy(sample_size=0, avg_variance_percent=0.0)

    return CostEstimateAccuracy(
        sample_size=len(variances),
        avg_variance_percent=sum(variances) / len(variances),
    )


class InMemoryLearningStore:
    """Learning store backed by plain lists. Used for demo mode and local runs."""

    def __init__(
        self,
        resolutions: list[ErrorResolutionRecord] | None = None,
        estimates: list[CostEstimateRecord] | None = None,
    ):
        self.resolutions = list(resolutions or [])
        self.estimates = list(estimates or [])

    def put_error_resolution(self, record: ErrorResolutionRecord) -> None:
        self.resolutions.append(record)

    def put_cost_estimate(self, record: CostEstimateRecord) -> None:
        self.estimates.append(record)

    def query_error_resolution(self, error_code: str) -> ErrorResolution | None:
        records = [r for r in self.resolutions if r.error_code == error_code]
        return best_resolution(error_code, records)

    def get_cost_estimate_accuracy(
        self, service: str, resource_type: str
    ) -> CostEstimateAccuracy:
        records = [
            r
            for r in self.estimates
            if r.service == service and (not resource_type or r.resource_type == resource_type)
        ]
        return estimate_accuracy(records)
