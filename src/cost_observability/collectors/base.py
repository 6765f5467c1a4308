"""Intermediate data shapes returned by the AWS collectors."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class BudgetInfo:
    """Budget utilization information."""

    name: str
    limit: float
    actual_spend: float
    forecasted_spend: float
    percentage_used: float
    currency: str = "USD"

    @property
    def remaining(self) -> float:
        """Budget left to spend; negative once the limit is exceeded."""
        return round(self.limit - self.actual_spend, 2)


@dataclass
class MetricDataPoint:
    """A single CloudWatch datapoint."""

    timestamp: datetime
    value: float
    unit: str = ""


@dataclass
class MetricResult:
    """
    Aggregated CloudWatch statistics over a period.

    Each statistic is None when CloudWatch returned no datapoints carrying it.
    """

    metric_name: str
    data_points: list[MetricDataPoint] = field(default_factory=list)
    average: float | None = None
    maximum: float | None = None
    minimum: float | None = None
    sum: float | None = None
