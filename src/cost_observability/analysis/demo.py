"""Deterministic cost and inventory data for demo mode."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

from cost_observability.models import (
    WEEKS_PER_MONTH,
    AWSResource,
    AWSResourceInventory,
    CostBreakdown,
    CostSummary,
)

WEEK = timedelta(days=7)

# (service, current week, previous week)
LAST_WEEK_SERVICES = [
    ("EC2", 80.24, 60.00),
    ("RDS", 50.00, 40.00),
    ("NAT Gateway", 32.00, 32.00),
    ("S3", 5.00, 4.00),
    ("CloudWatch", 3.50, 3.20),
]

# Share of the weekly total per service in generated history
HISTORY_SERVICE_SHARES = [("EC2", 0.47), ("RDS", 0.29), ("NAT Gateway", 0.19)]
HISTORY_BASE_COST = 120.0
HISTORY_WEEKLY_GROWTH = 1.08


class DemoDataGenerator:
    """
    Generate realistic but fixed demo data.

    Only the data is fake; detectors and projections run on it unchanged.
    """

    def __init__(self, today: date | None = None):
        self.today = today or date.today()

    def generate_last_week_cost(self) -> CostSummary:
        """Current week: 139.20 -> 170.74 across five services."""
        services = [
            CostBreakdown.from_costs(name, current, previous)
            for name, current, previous in LAST_WEEK_SERVICES
        ]

        return CostSummary.from_services(
            services,
            billing_period_start=(self.today - WEEK).isoformat(),
            billing_period_end=self.today.isoformat(),
        )

    def generate_historical_costs(self, weeks: int) -> list[CostSummary]:
        """
        Steadily growing weeks before the current one, oldest first.

        Costs grow 8% a week from a 120.00 base.
        """
        history = []

        for index in range(weeks):
            week_cost = HISTORY_BASE_COST * HISTORY_WEEKLY_GROWTH**index
            previous_cost = (
                week_cost * 0.95
                if index == 0
                else HISTORY_BASE_COST * HISTORY_WEEKLY_GROWTH ** (index - 1)
            )

            services = [
                CostBreakdown.from_costs(name, week_cost * share, previous_cost * share)
                for name, share in HISTORY_SERVICE_SHARES
            ]

            week_end = self.today - WEEK * (weeks - index)
            summary = CostSummary.from_services(
                services,
                billing_period_start=(week_end - WEEK).isoformat(),
                billing_period_end=week_end.isoformat(),
            )

            # Remaining spend sits outside the top services
            change_amount = week_cost - previous_cost
            history.append(
                summary.model_copy(
                    update={
                        "total_current_week": round(week_cost, 2),
                        "total_previous_week": round(previous_cost, 2),
                        "total_change_amount": round(change_amount, 2),
                        "total_change_percent": round(change_amount / previous_cost * 100, 1),
                        "monthly_projection": round(week_cost * WEEKS_PER_MONTH, 2),
                    }
                )
            )

        return history

    def generate_resource_inventory(self, deployment_id: str) -> AWSResourceInventory:
        deployment_tag = {"deployment": deployment_id}

        resources = [
            AWSResource(
                resource_id="i-0123456789abcdef0",
                resource_type="t3.medium",
                service="EC2",
                region="us-east-1",
                tags={**deployment_tag, "Name": "web-server-1", "Environment": "production"},
                state="running",
                created_at="2024-10-15T08:30:00Z",
                monthly_cost=30.37,
                metadata={"availability_zone": "us-east-1a", "public_ip": "54.123.45.10"},
            ),
            AWSResource(
                resource_id="i-0987654321fedcba",
                resource_type="t3.small",
                service="EC2",
                region="us-east-1",
                tags={**deployment_tag, "Name": "api-server-1", "Environment": "production"},
                state="running",
                created_at="2024-10-15T08:35:00Z",
                monthly_cost=15.18,
                metadata={"availability_zone": "us-east-1b", "public_ip": "54.123.45.11"},
            ),
            AWSResource(
                resource_id="demo-db-1",
                resource_type="db.t3.small",
                service="RDS",
                region="us-east-1",
                tags={**deployment_tag, "Name": "postgres-db", "Environment": "production"},
                state="available",
                created_at="2024-10-15T08:40:00Z",
                monthly_cost=46.36,
                metadata={"engine": "postgres", "engine_version": "14.7", "multi_az": False},
            ),
            AWSResource(
                resource_id="nat-0abc123def456",
                resource_type="NAT Gateway",
                service="VPC",
                region="us-east-1",
                tags={**deployment_tag, "Name": "main-nat-gateway"},
                state="available",
                created_at="2024-10-15T08:25:00Z",
                monthly_cost=32.85,
                metadata={"vpc_id": "vpc-0abc123", "subnet_id": "subnet-0abc123"},
            ),
            AWSResource(
                resource_id="demo-bucket-2024",
                resource_type="Bucket",
                service="S3",
                region="us-east-1",
                tags={**deployment_tag, "Purpose": "static-assets"},
                state="available",
                created_at="2024-10-15T08:20:00Z",
                monthly_cost=5.0,
            ),
        ]

        return AWSResourceInventory.from_resources(
            deployment_id, resources, last_updated=datetime.now(UTC).isoformat()
        )
