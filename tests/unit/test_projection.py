"""Tests for the cost projection engine."""

import pytest

from cost_observability.analysis.projection import CostProjectionEngine
from cost_observability.errors import InvalidInputError
from cost_observability.learning import (
    BestEffortLearningStore,
    CostEstimateRecord,
    InMemoryLearningStore,
)
from cost_observability.models import CostBreakdown, CostSummary


def week(total: float) -> CostSummary:
    return CostSummary(total_current_week=total)


def weeks(*totals: float) -> list[CostSummary]:
    return [week(t) for t in totals]


@pytest.fixture
def learning():
    """Learning store where EC2 estimates ran 10% under actual spend."""
    store = InMemoryLearningStore(
        estimates=[
            CostEstimateRecord(
                service="EC2",
                resource_type="EC2",
                estimated_monthly_cost=100.0,
                actual_monthly_cost=110.0,
            )
        ]
    )
    wrapped = BestEffortLearningStore(store, timeout_seconds=1.0)
    yield wrapped
    wrapped.close()


class TestPredictNextWeek:
    """Tests for next-week prediction."""

    def test_empty_history_raises(self):
        """Test that no history is rejected."""
        with pytest.raises(InvalidInputError):
            CostProjectionEngine().predict_next_week([])

    def test_single_week(self):
        """Test one week repeats with a +/-15% interval."""
        prediction = CostProjectionEngine().predict_next_week(weeks(100.0))

        assert prediction.methodology == "simple"
        assert prediction.predicted == 100.0
        assert prediction.confidence_interval.low == 85.0
        assert prediction.confidence_interval.high == 115.0

    def test_two_weeks_moving_average(self):
        """Test weights 0.6/0.4 favour the most recent week."""
        prediction = CostProjectionEngine().predict_next_week(weeks(100.0, 200.0))

        assert prediction.methodology == "moving_average"
        assert prediction.predicted == pytest.approx(160.0)
        assert prediction.confidence_interval.low == pytest.approx(110.0)
        assert prediction.confidence_interval.high == pytest.approx(210.0)

    def test_three_weeks_moving_average(self):
        """Test weights 0.5/0.3/0.2 over three weeks."""
        prediction = CostProjectionEngine().predict_next_week(weeks(100.0, 110.0, 120.0))

        assert prediction.methodology == "moving_average"
        assert prediction.predicted == pytest.approx(113.0)
        assert prediction.confidence_interval.low == pytest.approx(104.84, abs=0.01)
        assert prediction.confidence_interval.high == pytest.approx(121.16, abs=0.01)

    def test_linear_trend(self):
        """Test four steadily rising weeks extrapolate the line."""
        prediction = CostProjectionEngine().predict_next_week(weeks(100.0, 110.0, 120.0, 130.0))

        assert prediction.methodology == "linear_trend"
        assert prediction.predicted == pytest.approx(140.0)
        assert prediction.predicted > 130.0
        assert prediction.confidence_interval.low == pytest.approx(128.82, abs=0.01)
        assert prediction.confidence_interval.high == pytest.approx(151.18, abs=0.01)

    def test_linear_trend_never_negative(self):
        """Test a steep decline is floored at zero."""
        prediction = CostProjectionEngine().predict_next_week(weeks(30.0, 20.0, 10.0, 5.0))

        assert prediction.predicted == 0.0
        assert prediction.confidence_interval.low == 0.0
        assert prediction.confidence_interval.high >= 0.0

    def test_interval_contains_prediction(self):
        """Test low <= predicted <= high for noisy history."""
        prediction = CostProjectionEngine().predict_next_week(
            weeks(120.0, 95.0, 140.0, 110.0, 130.0)
        )

        interval = prediction.confidence_interval
        assert interval.low <= prediction.predicted <= interval.high


class TestProjectMonthlyCost:
    """Tests for monthly projection."""

    def test_no_history(self):
        """Test a single week projects 4.33x with +/-10%."""
        projection = CostProjectionEngine().project_monthly_cost(100.0, [])

        assert projection.projected == pytest.approx(433.0)
        assert projection.confidence_interval.low == pytest.approx(389.7)
        assert projection.confidence_interval.high == pytest.approx(476.3)
        assert projection.trend_direction == "stable"

    def test_increasing_trend(self):
        """Test 10% weekly growth is applied and reported as increasing."""
        projection = CostProjectionEngine().project_monthly_cost(
            120.0, weeks(100.0, 110.0, 120.0)
        )

        assert projection.trend_direction == "increasing"
        assert projection.projected == pytest.approx(571.56, abs=0.01)
        assert projection.confidence_interval.low == pytest.approx(563.39, abs=0.01)

    def test_decreasing_trend(self):
        """Test a falling history is reported as decreasing."""
        projection = CostProjectionEngine().project_monthly_cost(80.0, weeks(100.0, 80.0))

        assert projection.trend_direction == "decreasing"
        assert projection.projected < 80.0 * 4.33

    def test_small_change_is_stable(self):
        """Test growth within 5% is stable."""
        projection = CostProjectionEngine().project_monthly_cost(102.0, weeks(100.0, 102.0))

        assert projection.trend_direction == "stable"

    def test_zero_oldest_week(self):
        """Test zero growth is assumed when the oldest week cost nothing."""
        projection = CostProjectionEngine().project_monthly_cost(50.0, weeks(0.0, 50.0))

        assert projection.trend_direction == "stable"
        assert projection.projected == pytest.approx(216.5)


class TestLearningAdjustment:
    """Tests for corrections from past estimate accuracy."""

    def test_projection_adjusted_by_variance(self, learning):
        """Test a +10% recorded variance raises the projection by 10%."""
        history = [
            CostSummary.from_services([CostBreakdown.from_costs("EC2", 100.0, 100.0)]),
            CostSummary.from_services([CostBreakdown.from_costs("EC2", 100.0, 100.0)]),
        ]

        projection = CostProjectionEngine(learning=learning).project_monthly_cost(100.0, history)

        assert projection.projected == pytest.approx(476.3)
        assert projection.trend_direction == "stable"

    def test_services_without_samples_are_ignored(self, learning):
        """Test services with no recorded estimates do not dilute the weight."""
        history = [
            CostSummary.from_services(
                [
                    CostBreakdown.from_costs("EC2", 100.0, 100.0),
                    CostBreakdown.from_costs("S3", 100.0, 100.0),
                ]
            )
        ] * 2

        projection = CostProjectionEngine(learning=learning).project_monthly_cost(200.0, history)

        assert projection.projected == pytest.approx(200.0 * 4.33 * 1.1)

    def test_unavailable_store_leaves_projection(self):
        """Test a missing store leaves the projection unadjusted."""
        history = [CostSummary.from_services([CostBreakdown.from_costs("EC2", 100.0, 100.0)])] * 2
        learning = BestEffortLearningStore(None)

        projection = CostProjectionEngine(learning=learning).project_monthly_cost(100.0, history)
        learning.close()

        assert projection.projected == pytest.approx(433.0)

    def test_adjust_single_prediction(self, learning):
        """Test a single prediction is scaled by the service variance."""
        engine = CostProjectionEngine(learning=learning)

        assert engine.adjust_prediction_from_learning(100.0, "EC2", "EC2") == pytest.approx(110.0)
        assert engine.adjust_prediction_from_learning(100.0, "RDS", "RDS") == 100.0

    def test_adjust_without_learning(self):
        """Test no store means no change."""
        assert CostProjectionEngine().adjust_prediction_from_learning(100.0, "EC2", "EC2") == 100.0
