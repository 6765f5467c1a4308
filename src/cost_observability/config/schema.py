"""Pydantic configuration schema for the cost observability engine."""

from typing import Literal

from pydantic import BaseModel, Field


class AWSConfig(BaseModel):
    """AWS account configuration."""

    region: str = "us-east-1"
    account_id: str | None = None  # Auto-detected if not provided
    budget_name: str | None = None  # AWS Budgets budget used for CostSummary.budget_*


class DetectorConfig(BaseModel):
    """Settings shared by every detector."""

    enabled: bool = True
    # Level of rules that escalate to critical, below their escalation point
    severity: Literal["critical", "warning", "info"] = "warning"
    thresholds: dict[str, float] = Field(default_factory=dict)
    excluded_resources: list[str] = Field(default_factory=list)  # Resource IDs to ignore
    excluded_tags: dict[str, str] = Field(default_factory=dict)  # e.g. {"env": "dev"}


class CostAnomalyThresholds(BaseModel):
    """Cost anomaly thresholds."""

    week_over_week_increase_percent: float = Field(default=20.0, ge=0)
    monthly_budget_limit: float | None = Field(default=None, ge=0)


class CostAnomalyDetectorConfig(DetectorConfig):
    """Cost anomaly detector configuration."""

    thresholds: CostAnomalyThresholds = Field(default_factory=CostAnomalyThresholds)


class ResourceWasteThresholds(BaseModel):
    """Utilization thresholds below which a resource counts as waste."""

    max_cpu_utilization_percent: float = Field(default=5.0, ge=0, le=100)
    min_network_traffic_mb_per_day: float = Field(default=10.0, ge=0)
    min_storage_utilization_percent: float = Field(default=20.0, ge=0, le=100)
    max_snapshot_age_days: int = Field(default=90, ge=1)


class ResourceWasteDetectorConfig(DetectorConfig):
    """Resource waste detector configuration."""

    thresholds: ResourceWasteThresholds = Field(default_factory=ResourceWasteThresholds)
    scan_period_days: int = Field(default=7, ge=1, le=63)


class SecurityRiskThresholds(BaseModel):
    """Security risk thresholds."""

    max_open_ports_public: int = Field(default=0, ge=0)


class SecurityRiskDetectorConfig(DetectorConfig):
    """Security risk detector configuration."""

    thresholds: SecurityRiskThresholds = Field(default_factory=SecurityRiskThresholds)
    check_encryption: bool = True
    check_public_access: bool = True
    check_security_groups: bool = True


class DeploymentFailureDetectorConfig(DetectorConfig):
    """Deployment failure detector configuration."""


class DetectorsConfig(BaseModel):
    """Per-detector configuration."""

    cost_anomaly: CostAnomalyDetectorConfig = Field(default_factory=CostAnomalyDetectorConfig)
    resource_waste: ResourceWasteDetectorConfig = Field(default_factory=ResourceWasteDetectorConfig)
    security_risk: SecurityRiskDetectorConfig = Field(default_factory=SecurityRiskDetectorConfig)
    deployment_failure: DeploymentFailureDetectorConfig = Field(
        default_factory=DeploymentFailureDetectorConfig
    )


class ProjectionConfig(BaseModel):
    """Cost projection configuration."""

    history_weeks: int = Field(default=4, ge=1, le=52)
    learning_top_services: int = Field(default=3, ge=1, le=10)


class LearningConfig(BaseModel):
    """Learning store configuration."""

    enabled: bool = False
    table_name: str | None = None
    # Lookups are advisory; anything slower than this is dropped
    timeout_seconds: float = Field(default=2.0, gt=0, le=30)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    json_output: bool = True


class Config(BaseModel):
    """Root configuration for the cost observability engine."""

    project_name: str = "aws-cost-observability"
    environment: Literal["dev", "staging", "prod"] = "dev"
    demo_mode: bool = False
    max_workers: int = Field(default=8, ge=1, le=64)

    aws: AWSConfig = Field(default_factory=AWSConfig)
    detectors: DetectorsConfig = Field(default_factory=DetectorsConfig)
    projection: ProjectionConfig = Field(default_factory=ProjectionConfig)
    learning: LearningConfig = Field(default_factory=LearningConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
