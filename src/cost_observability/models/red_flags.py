"""Red flag models shared by every detector."""

from datetime import UTC, datetime
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from cost_observability.models.cost import CostSummary
from cost_observability.models.resources import AWSResourceInventory

RedFlagSeverity = Literal["critical", "warning", "info"]
RedFlagCategory = Literal["cost_anomaly", "resource_waste", "security_risk", "deployment_failure"]

SEVERITIES: tuple[RedFlagSeverity, ...] = ("critical", "warning", "info")
CATEGORIES: tuple[RedFlagCategory, ...] = (
    "cost_anomaly",
    "resource_waste",
    "security_risk",
    "deployment_failure",
)


def _generate_uuid() -> str:
    return str(uuid4())


def _utc_now_iso() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S") + "Z"


class RedFlag(BaseModel):
    """
    A single detected issue.

    Flags are created fresh on every detection run; the same underlying issue
    detected twice yields two flags with different IDs.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_generate_uuid)
    category: RedFlagCategory
    severity: RedFlagSeverity
    title: str
    description: str
    detected_at: str = Field(default_factory=_utc_now_iso)

    resource_id: str | None = None
    resource_type: str | None = None  # EC2, RDS, NAT Gateway, ...

    estimated_monthly_cost: float | None = None
    estimated_savings: float | None = None

    auto_fixable: bool = False
    fix_command: str | None = None

    # Numeric evidence behind the flag (thresholds, z-scores, ...)
    metadata: dict[str, Any] = Field(default_factory=dict)


class DetectorInput(BaseModel):
    """Immutable snapshot handed to every detector in a run."""

    model_config = ConfigDict(frozen=True)

    deployment_id: str
    cost_data: CostSummary
    aws_resources: AWSResourceInventory
    historical_data: list[CostSummary] | None = None


class DetectionMetadata(BaseModel):
    """Bookkeeping about one detector execution."""

    model_config = ConfigDict(frozen=True)

    detector_id: str
    detector_version: str
    execution_time_ms: float = 0.0
    resources_scanned: int = 0


class DetectorOutput(BaseModel):
    """Result of a single detector run."""

    model_config = ConfigDict(frozen=True)

    red_flags: list[RedFlag] = Field(default_factory=list)
    detection_metadata: DetectionMetadata


class RedFlagSummary(BaseModel):
    """Counts and savings across all flags of one run."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    by_severity: dict[str, int] = Field(default_factory=lambda: dict.fromkeys(SEVERITIES, 0))
    by_category: dict[str, int] = Field(default_factory=lambda: dict.fromkeys(CATEGORIES, 0))
    total_potential_savings: float = 0.0
