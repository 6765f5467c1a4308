"""Resource inventory snapshot models."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AWSResource(BaseModel):
    """A single cloud resource as seen at inventory time."""

    model_config = ConfigDict(frozen=True)

    resource_id: str
    resource_type: str  # EC2, RDS, NAT Gateway, S3 Bucket, ...
    service: str
    region: str
    tags: dict[str, str] = Field(default_factory=dict)
    state: str = ""  # running, stopped, available, failed, ...
    created_at: str = ""  # ISO 8601
    monthly_cost: float = Field(default=0.0, ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)

    def has_tags(self, tags: dict[str, str]) -> bool:
        """Return True if the resource carries every key/value in ``tags``."""
        if not tags:
            return False
        return all(self.tags.get(key) == value for key, value in tags.items())


class AWSResourceInventory(BaseModel):
    """Read-only snapshot of the resources behind a deployment."""

    model_config = ConfigDict(frozen=True)

    deployment_id: str
    last_updated: str = ""  # ISO 8601
    resources: list[AWSResource] = Field(default_factory=list)
    total_resources: int = Field(default=0, ge=0)
    total_monthly_cost: float = Field(default=0.0, ge=0)
    resources_by_service: dict[str, list[AWSResource]] = Field(default_factory=dict)

    @classmethod
    def from_resources(
        cls,
        deployment_id: str,
        resources: list[AWSResource],
        last_updated: str = "",
    ) -> "AWSResourceInventory":
        """Build an inventory, deriving totals and the per-service grouping."""
        by_service: dict[str, list[AWSResource]] = {}
        for resource in resources:
            by_service.setdefault(resource.service, []).append(resource)

        return cls(
            deployment_id=deployment_id,
            last_updated=last_updated,
            resources=resources,
            total_resources=len(resources),
            total_monthly_cost=round(sum(r.monthly_cost for r in resources), 2),
            resources_by_service=by_service,
        )

    def find(self, resource_id: str) -> AWSResource | None:
        """Look up a resource by ID."""
        for resource in self.resources:
            if resource.resource_id == resource_id:
                return resource
        return None
