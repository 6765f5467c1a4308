"""AWS Cost Explorer collector.

Cost Explorer API charges $0.01 per request.
"""

from __future__ import annotations

from datetime import date, timedelta

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from cost_observability.collectors.aws_budgets import BudgetsCollector
from cost_observability.models import CostBreakdown, CostSummary

logger = structlog.get_logger(__name__)

WEEK = timedelta(days=7)


class CostExplorerCollector:
    """
    Collect weekly cost summaries from AWS Cost Explorer.

    Each summary compares a 7-day window against the 7 days before it,
    grouped by SERVICE. Budget figures come from AWS Budgets when a budget
    name is configured.
    """

    collector_name = "cost_explorer"

    def __init__(
        self,
        region: str = "us-east-1",
        budget_name: str | None = None,
        account_id: str | None = None,
        top_n: int = 10,
        ce_client: boto3.client | None = None,
        budgets_collector: BudgetsCollector | None = None,
    ):
        """
        Initialize the Cost Explorer collector.

        Args:
            region: AWS region for the Cost Explorer API.
            budget_name: AWS Budgets budget to report remaining spend against.
            account_id: Account owning the budget. Looked up through STS if None.
            top_n: Number of services kept in each summary.
            ce_client: Optional boto3 Cost Explorer client.
            budgets_collector: Optional budgets collector. Created on demand
                when budget_name is set.
        """
        self.region = region
        self.budget_name = budget_name
        self.account_id = account_id
        self.top_n = top_n
        self._ce_client = ce_client
        self._budgets_collector = budgets_collector

    @property
    def ce_client(self) -> boto3.client:
        """Get or create Cost Explorer client."""
        if self._ce_client is None:
            self._ce_client = boto3.client("ce", region_name=self.region)
        return self._ce_client

    @property
    def budgets_collector(self) -> BudgetsCollector:
        if self._budgets_collector is None:
            self._budgets_collector = BudgetsCollector(
                region=self.region, account_id=self.account_id
            )
        return self._budgets_collector

    def get_last_week_costs(
        self,
        tags: dict[str, str] | None = None,
        end_date: date | None = None,
    ) -> CostSummary:
        """
        Get the summary for the 7 days ending at ``end_date`` (default today).

        Args:
            tags: Only count costs carrying every one of these tags.
            end_date: Exclusive end of the week.

        Returns:
            CostSummary with budget figures attached when available.
        """
        end_date = end_date or date.today()
        summary = self._build_week_summary(end_date, tags)

        if not self.budget_name:
            return summary

        budget = self.budgets_collector.get_budget_status(self.budget_name)
        if budget is None:
            return summary

        return summary.model_copy(
            update={"budget_limit": budget.limit, "budget_remaining": budget.remaining}
        )

    def get_historical_costs(
        self,
        weeks: int,
        tags: dict[str, str] | None = None,
        end_date: date | None = None,
    ) -> list[CostSummary]:
        """
        Get summaries for the ``weeks`` weeks before the current week.

        Args:
            weeks: Number of past weeks.
            tags: Only count costs carrying every one of these tags.
            end_date: Exclusive end of the current week. Defaults to today.

        Returns:
            Summaries ordered oldest to newest. The current week is not included.
        """
        end_date = end_date or date.today()
        summaries = [
            self._build_week_summary(end_date - WEEK * (i + 1), tags) for i in range(weeks)
        ]
        summaries.reverse()
        return summaries

    def _build_week_summary(self, week_end: date, tags: dict[str, str] | None) -> CostSummary:
        week_start = week_end - WEEK
        previous_start = week_start - WEEK

        current = self._get_cost_by_service(week_start, week_end, tags)
        previous = self._get_cost_by_service(previous_start, week_start, tags)

        services = [
            CostBreakdown.from_costs(service, current.get(service, 0.0), previous.get(service, 0.0))
            for service in current.keys() | previous.keys()
        ]

        return CostSummary.from_services(
            services,
            billing_period_start=week_start.isoformat(),
            billing_period_end=week_end.isoformat(),
            top_n=self.top_n,
        )

    def _get_cost_by_service(
        self,
        start_date: date,
        end_date: date,
        tags: dict[str, str] | None,
    ) -> dict[str, float]:
        """Sum daily unblended cost per service over a window."""
        request = {
            "TimePeriod": {"Start": start_date.isoformat(), "End": end_date.isoformat()},
            "Granularity": "DAILY",
            "Metrics": ["UnblendedCost"],
            "GroupBy": [{"Type": "DIMENSION", "Key": "SERVICE"}],
        }
        if cost_filter := self._tag_filter(tags):
            request["Filter"] = cost_filter

        cost_by_service: dict[str, float] = {}

        try:
            response = self.ce_client.get_cost_and_usage(**request)
            while True:
                for result in response.get("ResultsByTime", []):
                    for group in result.get("Groups", []):
                        service_name = group["Keys"][0]
                        cost = float(group["Metrics"]["UnblendedCost"]["Amount"])
                        cost_by_service[service_name] = cost_by_service.get(service_name, 0.0) + cost

                token = response.get("NextPageToken")
                if not token:
                    break
                response = self.ce_client.get_cost_and_usage(**request, NextPageToken=token)

        except (ClientError, BotoCoreError) as e:
            # Log error but don't fail - the window counts as empty
            logger.error(
                "Error getting cost by service",
                start=start_date.isoformat(),
                end=end_date.isoformat(),
                error=str(e),
            )
            return {}

        return cost_by_service

    @staticmethod
    def _tag_filter(tags: dict[str, str] | None) -> dict | None:
        if not tags:
            return None

        expressions = [{"Tags": {"Key": key, "Values": [value]}} for key, value in tags.items()]
        if len(expressions) == 1:
            return expressions[0]
        return {"And": expressions}
