"""Learning store records and query results."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4

from pydantic import BaseModel, Field


def _generate_uuid() -> str:
    return str(uuid4())


def _utc_now_iso() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S") + "Z"


@dataclass(frozen=True)
class ErrorResolution:
    """A known fix for an error code."""

    error_code: str
    resolution_steps: list[str] = field(default_factory=list)
    success_rate: float = 0.0  # 0-1


@dataclass(frozen=True)
class CostEstimateAccuracy:
    """How far past estimates for a service drifted from actual spend."""

    sample_size: int = 0
    avg_variance_percent: float = 0.0


class ErrorResolutionRecord(BaseModel):
    """
    Stored error resolution pattern.

    DynamoDB Key Structure:
    - PK: ERROR#{error_code} (e.g., "ERROR#InsufficientInstanceCapacity")
    - SK: RESOLUTION#{resolution_id}
    """

    resolution_id: str = Field(default_factory=_generate_uuid)
    timestamp: str = Field(default_factory=_utc_now_iso)
    error_code: str
    error_pattern: str = ""
    service: str = ""
    resolution_steps: list[str] = Field(default_factory=list)
    resolution_successful: bool = True
    times_resolved: int = Field(default=0, ge=0)
    success_rate: float = Field(default=0.0, ge=0, le=1)

    @property
    def pk(self) -> str:
        """Generate partition key."""
        return f"ERROR#{self.error_code}"

    @property
    def sk(self) -> str:
        """Generate sort key."""
        return f"RESOLUTION#{self.resolution_id}"

    def to_dynamodb_item(self) -> dict:
        """Convert to DynamoDB item format."""
        return {
            "PK": self.pk,
            "SK": self.sk,
            "resolution_id": self.resolution_id,
            "timestamp": self.timestamp,
            "error_code": self.error_code,
            "error_pattern": self.error_pattern,
            "service": self.service,
            "resolution_steps": self.resolution_steps,
            "resolution_successful": self.resolution_successful,
            "times_resolved": self.times_resolved,
            "success_rate": str(self.success_rate),
        }

    @classmethod
    def from_dynamodb_item(cls, item: dict) -> "ErrorResolutionRecord":
        """Create from DynamoDB item."""
        return cls(
            resolution_id=item["resolution_id"],
            timestamp=item.get("timestamp", ""),
            error_code=item["error_code"],
            error_pattern=item.get("error_pattern", ""),
            service=item.get("service", ""),
            resolution_steps=list(item.get("resolution_steps", [])),
            resolution_successful=bool(item.get("resolution_successful", True)),
            times_resolved=int(item.get("times_resolved", 0)),
            success_rate=float(item.get("success_rate", 0)),
        )


class CostEstimateRecord(BaseModel):
    """
    Stored cost estimate, optionally reconciled with the actual cost.

    DynamoDB Key Structure:
    - PK: ESTIMATE#{service} (e.g., "ESTIMATE#Amazon EC2")
    - SK: RESOURCE#{resource_type}#{estimate_id}
    """

    estimate_id: str = Field(default_factory=_generate_uuid)
    timestamp: str = Field(default_factory=_utc_now_iso)
    deployment_id: str = ""
    service: str
    resource_type: str
    region: str = ""
    estimated_monthly_cost: float = Field(ge=0)
    actual_monthly_cost: float | None = Field(default=None, ge=0)

    @property
    def variance_percent(self) -> float | None:
        """Signed percent difference of actual over estimate."""
        if self.actual_monthly_cost is None or self.estimated_monthly_cost == 0:
            return None
        return (
            (self.actual_monthly_cost - self.estimated_monthly_cost)
            / self.estimated_monthly_cost
            * 100
        )

    @property
    def pk(self) -> str:
        """Generate partition key."""
        return f"ESTIMATE#{self.service}"

    @property
    def sk(self) -> str:
        """Generate sort key."""
        return f"RESOURCE#{self.resource_type}#{self.estimate_id}"

    def to_dynamodb_item(self) -> dict:
        """Convert to DynamoDB item format."""
        item = {
            "PK": self.pk,
            "SK": self.sk,
            "estimate_id": self.estimate_id,
            "timestamp": self.timestamp,
            "deployment_id": self.deployment_id,
            "service": self.service,
            "resource_type": self.resource_type,
            "region": self.region,
            "estimated_monthly_cost": str(self.estimated_monthly_cost),
        }

        if self.actual_monthly_cost is not None:
            item["actual_monthly_cost"] = str(self.actual_monthly_cost)
            item["variance_percent"] = str(round(self.variance_percent or 0.0, 4))

        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict) -> "CostEstimateRecord":
        """Create from DynamoDB item."""
        actual = item.get("actual_monthly_cost")
        return cls(
            estimate_id=item["estimate_id"],
            timestamp=item.get("timestamp", ""),
            deployment_id=item.get("deployment_id", ""),
            service=item["service"],
            resource_type=item["resource_type"],
            region=item.get("region", ""),
            estimated_monthly_cost=float(item["estimated_monthly_cost"]),
            actual_monthly_cost=float(actual) if actual is not None else None,
        )
