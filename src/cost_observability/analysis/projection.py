"""Next-week prediction and monthly projection from weekly cost history."""

from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor

import structlog

from cost_observability.errors import InvalidInputError
from cost_observability.learning.best_effort import BestEffortLearningStore
from cost_observability.models import (
    WEEKS_PER_MONTH,
    ConfidenceInterval,
    CostPrediction,
    CostSummary,
    MonthlyCostProjection,
    TrendDirection,
)

logger = structlog.get_logger(__name__)

# Most-recent-first weights for the moving average
MOVING_AVERAGE_WEIGHTS = {
    2: (0.6, 0.4),
    3: (0.5, 0.3, 0.2),
}

SIMPLE_PREDICTION_SPREAD = 0.15
SIMPLE_PROJECTION_SPREAD = 0.10
TREND_THRESHOLD = 0.05


def _population_std(values: list[float]) -> float:
    mean = sum(values) / len(values)
    return math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))


class CostProjectionEngine:
    """
    Predict next week's cost and project the monthly cost.

    The method depends on how much history there is:
    - 1 week: repeat it, +/-15%
    - 2-3 weeks: weighted moving average, +/- one std dev
    - 4+ weeks: least-squares linear trend, +/- one std dev

    If a learning store is attached, monthly projections are corrected by how
    far past estimates drifted from actual spend. The store is advisory; when
    it is missing or slow, projections are unadjusted.
    """

    def __init__(
        self,
        learning: BestEffortLearningStore | None = None,
        top_services: int = 3,
    ):
        self.learning = learning
        self.top_services = top_services

    def predict_next_week(self, history: list[CostSummary]) -> CostPrediction:
        """
        Predict next week's total cost.

        Args:
            history: Weekly summaries ordered oldest to newest.

        Raises:
            InvalidInputError: If history is empty.
        """
        if not history:
            raise InvalidInputError("Historical data is required for cost prediction")

        costs = [s.total_current_week for s in history]

        if len(costs) == 1:
            return self._simple_prediction(costs[0])
        if len(costs) in MOVING_AVERAGE_WEIGHTS:
            return self._moving_average_prediction(costs)
        return self._linear_trend_prediction(costs)

    def project_monthly_cost(
        self, current_week_cost: float, history: list[CostSummary]
    ) -> MonthlyCostProjection:
        """
        Project the monthly cost from the current week and the recent trend.

        Args:
            current_week_cost: Total cost of the current week.
            history: Weekly summaries ordered oldest to newest.
        """
        baseline = current_week_cost * WEEKS_PER_MONTH

        if len(history) < 2:
            return MonthlyCostProjection(
                projected=round(baseline, 2),
                confidence_interval=ConfidenceInterval(
                    low=round(baseline * (1 - SIMPLE_PROJECTION_SPREAD), 2),
                    high=round(baseline * (1 + SIMPLE_PROJECTION_SPREAD), 2),
                ),
                trend_direction="stable",
            )

        growth_rate = self._growth_rate(history)
        projection = self._adjust_from_learning(baseline * (1 + growth_rate), history)
        std_dev = _population_std([s.total_current_week for s in history])

        return MonthlyCostProjection(
            projected=round(projection, 2),
            confidence_interval=ConfidenceInterval(
                low=round(projection - std_dev, 2),
                high=round(projection + std_dev, 2),
            ),
            trend_direction=self._trend_direction(growth_rate),
        )

    def adjust_prediction_from_learning(
        self, prediction: float, service: str, resource_type: str
    ) -> float:
        """Scale a single prediction by the recorded estimate variance, if any."""
        if self.learning is None:
            return prediction

        accuracy = self.learning.estimate_accuracy(service, resource_type)
        if accuracy is None or accuracy.sample_size == 0:
            return prediction

        return prediction * (1 + accuracy.avg_variance_percent / 100)

    # =========================================================================
    # Prediction methods
    # =========================================================================

    def _simple_prediction(self, cost: float) -> CostPrediction:
        return CostPrediction(
            predicted=round(cost, 2),
            confidence_interval=ConfidenceInterval(
                low=round(cost * (1 - SIMPLE_PREDICTION_SPREAD), 2),
                high=round(cost * (1 + SIMPLE_PREDICTION_SPREAD), 2),
            ),
            methodology="simple",
        )

    def _moving_average_prediction(self, costs: list[float]) -> CostPrediction:
        weights = MOVING_AVERAGE_WEIGHTS[len(costs)]
        predicted = sum(w * c for w, c in zip(weights, reversed(costs)))
        std_dev = _population_std(costs)

        return CostPrediction(
            predicted=round(predicted, 2),
            confidence_interval=ConfidenceInterval(
                low=round(predicted - std_dev, 2),
                high=round(predicted + std_dev, 2),
            ),
            methodology="moving_average",
        )

    def _linear_trend_prediction(self, costs: list[float]) -> CostPrediction:
        """Ordinary least squares on the week index, evaluated one week ahead."""
        n = len(costs)
        sum_x = n * (n - 1) / 2
        sum_y = sum(costs)
        sum_xy = sum(i * y for i, y in enumerate(costs))
        sum_x2 = sum(i * i for i in range(n))

        slope = (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)
        intercept = (sum_y - slope * sum_x) / n
        predicted = slope * n + intercept

        # Spread of the raw samples, not of the residuals
        std_dev = _population_std(costs)

        return CostPrediction(
            predicted=round(max(0.0, predicted), 2),
            confidence_interval=ConfidenceInterval(
                low=round(max(0.0, predicted - std_dev), 2),
                high=round(predicted + std_dev, 2),
            ),
            methodology="linear_trend",
        )

    # =========================================================================
    # Trend and learning
    # =========================================================================

    @staticmethod
    def _growth_rate(history: list[CostSummary]) -> float:
        """Average per-week growth between the oldest and newest week."""
        oldest = history[0].total_current_week
        newest = history[-1].total_current_week
        if oldest == 0:
            return 0.0

        return (newest - oldest) / oldest / (len(history) - 1)

    @staticmethod
    def _trend_direction(growth_rate: float) -> TrendDirection:
        if growth_rate > TREND_THRESHOLD:
            return "increasing"
        if growth_rate < -TREND_THRESHOLD:
            return "decreasing"
        return "stable"

    def _adjust_from_learning(self, projection: float, history: list[CostSummary]) -> float:
        """Apply the cost-weighted estimate variance of the newest top services."""
        if self.learning is None or not self.learning.available:
            return projection

        services = history[-1].top_services[: self.top_services]
        if not services:
            return projection

        with ThreadPoolExecutor(max_workers=len(services)) as executor:
            accuracies = list(
                executor.map(
                    lambda s: self.learning.estimate_accuracy(s.service, s.service), services
                )
            )

        total_adjustment = 0.0
        total_weight = 0.0
        for service, accuracy in zip(services, accuracies):
            if accuracy is None or accuracy.sample_size == 0:
                continue
            total_adjustment += accuracy.avg_variance_percent / 100 * service.current_week_cost
            total_weight += service.current_week_cost

        if total_weight == 0:
            return projection

        weighted_adjustment = total_adjustment / total_weight
        logger.debug(
            "Applied learning adjustment to projection",
            weighted_adjustment_percent=weighted_adjustment * 100,
        )
        return projection * (1 + weighted_adjustment)
