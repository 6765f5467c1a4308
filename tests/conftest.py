"""Pytest configuration and fixtures."""

import pytest

from cost_observability.models import (
    AWSResource,
    AWSResourceInventory,
    CostBreakdown,
    CostSummary,
    DetectorInput,
)


@pytest.fixture
def sample_top_services():
    """Sample weekly breakdown by service."""
    return [
        CostBreakdown.from_costs("EC2", 80.24, 60.00),
        CostBreakdown.from_costs("RDS", 50.00, 40.00),
        CostBreakdown.from_costs("NAT Gateway", 32.00, 32.00),
        CostBreakdown.from_costs("S3", 5.00, 4.00),
        CostBreakdown.from_costs("CloudWatch", 3.50, 3.20),
    ]


@pytest.fixture
def sample_cost_summary(sample_top_services):
    """Current week: 139.20 -> 170.74."""
    return CostSummary.from_services(
        sample_top_services,
        billing_period_start="2024-11-01",
        billing_period_end="2024-11-08",
    )


@pytest.fixture
def sample_inventory():
    """Small inventory with one tagged dev instance."""
    return AWSResourceInventory.from_resources(
        "deploy-123",
        [
            AWSResource(
                resource_id="i-prod",
                resource_type="t3.medium",
                service="EC2",
                region="us-east-1",
                tags={"env": "prod"},
                state="running",
                monthly_cost=30.37,
            ),
            AWSResource(
                resource_id="i-dev",
                resource_type="t3.small",
                service="EC2",
                region="us-east-1",
                tags={"env": "dev", "team": "data"},
                state="running",
                monthly_cost=15.18,
            ),
            AWSResource(
                resource_id="demo-db-1",
                resource_type="db.t3.small",
                service="RDS",
                region="us-east-1",
                state="available",
                monthly_cost=46.36,
            ),
        ],
    )


@pytest.fixture
def detector_input(sample_cost_summary, sample_inventory):
    """Detector input without history."""
    return DetectorInput(
        deployment_id="deploy-123",
        cost_data=sample_cost_summary,
        aws_resources=sample_inventory,
    )


@pytest.fixture
def sample_config_dict():
    """Sample configuration dictionary."""
    return {
        "project_name": "test-observability",
        "environment": "dev",
        "aws": {
            "region": "eu-west-1",
            "budget_name": "monthly",
        },
        "detectors": {
            "cost_anomaly": {
                "thresholds": {
                    "week_over_week_increase_percent": 30,
                    "monthly_budget_limit": 500,
                },
            },
            "resource_waste": {
                "enabled": False,
                "scan_period_days": 14,
            },
            "security_risk": {
                "check_encryption": False,
                "excluded_resources": ["sg-allowed"],
            },
        },
        "projection": {
            "history_weeks": 6,
        },
        "learning": {
            "enabled": True,
            "table_name": "learning-test",
            "timeout_seconds": 0.5,
        },
    }
