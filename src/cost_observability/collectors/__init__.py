"""Collectors for AWS cost, budget, metric and inventory data."""

from cost_observability.collectors.aws_budgets import BudgetsCollector
from cost_observability.collectors.aws_cost_explorer import CostExplorerCollector
from cost_observability.collectors.base import BudgetInfo, MetricDataPoint, MetricResult
from cost_observability.collectors.cloudwatch import CloudWatchMetrics
from cost_observability.collectors.inventory import ResourceInventoryCollector

__all__ = [
    "BudgetInfo",
    "BudgetsCollector",
    "CloudWatchMetrics",
    "CostExplorerCollector",
    "MetricDataPoint",
    "MetricResult",
    "ResourceInventoryCollector",
]
