"""Resource inventory collector."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from typing import Callable

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from cost_observability.collectors.pricing import (
    NAT_GATEWAY_MONTHLY_COST,
    estimate_ec2_monthly_cost,
    estimate_rds_monthly_cost,
)
from cost_observability.models import AWSResource, AWSResourceInventory

logger = structlog.get_logger(__name__)

# Flat estimate per bucket; real S3 cost depends on stored bytes
S3_BUCKET_MONTHLY_COST = 5.0


def _tag_dict(tags: list[dict] | None) -> dict[str, str]:
    return {t["Key"]: t["Value"] for t in tags or [] if t.get("Key") and t.get("Value")}


def _iso(value: datetime | None) -> str:
    return value.isoformat() if value else datetime.now(UTC).isoformat()


class ResourceInventoryCollector:
    """
    Build an AWSResourceInventory for a deployment.

    EC2 (running), RDS, NAT gateways and S3 buckets are listed concurrently.
    A source that fails is logged and contributes nothing.
    """

    collector_name = "resource_inventory"

    def __init__(
        self,
        region: str = "us-east-1",
        ec2_client: boto3.client | None = None,
        rds_client: boto3.client | None = None,
        s3_client: boto3.client | None = None,
        max_workers: int = 4,
    ):
        self.region = region
        self.max_workers = max_workers
        self._ec2_client = ec2_client
        self._rds_client = rds_client
        self._s3_client = s3_client

    @property
    def ec2_client(self) -> boto3.client:
        """Get or create EC2 client."""
        if self._ec2_client is None:
            self._ec2_client = boto3.client("ec2", region_name=self.region)
        return self._ec2_client

    @property
    def rds_client(self) -> boto3.client:
        """Get or create RDS client."""
        if self._rds_client is None:
            self._rds_client = boto3.client("rds", region_name=self.region)
        return self._rds_client

    @property
    def s3_client(self) -> boto3.client:
        """Get or create S3 client."""
        if self._s3_client is None:
            self._s3_client = boto3.client("s3", region_name=self.region)
        return self._s3_client

    def collect(
        self, deployment_id: str, tags: dict[str, str] | None = None
    ) -> AWSResourceInventory:
        """
        Collect the inventory.

        Args:
            deployment_id: Deployment the inventory belongs to.
            tags: If given, keep only resources carrying every one of these tags.

        Returns:
            AWSResourceInventory with totals and per-service grouping.
        """
        sources: list[tuple[str, Callable[[], list[AWSResource]]]] = [
            ("ec2", self._get_ec2_resources),
            ("rds", self._get_rds_resources),
            ("nat_gateway", self._get_nat_gateway_resources),
            ("s3", self._get_s3_resources),
        ]

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [(name, executor.submit(fn)) for name, fn in sources]

            resources: list[AWSResource] = []
            for name, future in futures:
                try:
                    resources.extend(future.result())
                except (ClientError, BotoCoreError) as e:
                    logger.error("Error fetching resources", source=name, error=str(e))

        if tags:
            resources = [r for r in resources if r.has_tags(tags)]

        return AWSResourceInventory.from_resources(
            deployment_id,
            resources,
            last_updated=datetime.now(UTC).isoformat(),
        )

    def _get_ec2_resources(self) -> list[AWSResource]:
        paginator = self.ec2_client.get_paginator("describe_instances")
        resources = []

        for page in paginator.paginate(
            Filters=[{"Name": "instance-state-name", "Values": ["running"]}]
        ):
            for reservation in page.get("Reservations", []):
                for instance in reservation.get("Instances", []):
                    instance_type = instance.get("InstanceType", "unknown")
                    resources.append(
                        AWSResource(
                            resource_id=instance.get("InstanceId", "unknown"),
                            resource_type=instance_type,
                            service="EC2",
                            region=self.region,
                            tags=_tag_dict(instance.get("Tags")),
                            state=instance.get("State", {}).get("Name", "unknown"),
                            created_at=_iso(instance.get("LaunchTime")),
                            monthly_cost=estimate_ec2_monthly_cost(instance_type),
                            metadata={
                                "availability_zone": instance.get("Placement", {}).get(
                                    "AvailabilityZone"
                                ),
                                "public_ip": instance.get("PublicIpAddress"),
                            },
                        )
                    )

        return resources

    def _get_rds_resources(self) -> list[AWSResource]:
        paginator = self.rds_client.get_paginator("describe_db_instances")
        resources = []

        for page in paginator.paginate():
            for db_instance in page.get("DBInstances", []):
                instance_class = db_instance.get("DBInstanceClass", "unknown")
                resources.append(
                    AWSResource(
                        resource_id=db_instance.get("DBInstanceIdentifier", "unknown"),
                        resource_type=instance_class,
                        service="RDS",
                        region=self.region,
                        tags=_tag_dict(db_instance.get("TagList")),
                        state=db_instance.get("DBInstanceStatus", "unknown"),
                        created_at=_iso(db_instance.get("InstanceCreateTime")),
                        monthly_cost=estimate_rds_monthly_cost(
                            instance_class, db_instance.get("AllocatedStorage", 0)
                        ),
                        metadata={
                            "engine": db_instance.get("Engine"),
                            "engine_version": db_instance.get("EngineVersion"),
                            "multi_az": db_instance.get("MultiAZ"),
                        },
                    )
                )

        return resources

    def _get_nat_gateway_resources(self) -> list[AWSResource]:
        paginator = self.ec2_client.get_paginator("describe_nat_gateways")
        resources = []

        for page in paginator.paginate():
            for gateway in page.get("NatGateways", []):
                if gateway.get("State") != "available":
                    continue

                resources.append(
                    AWSResource(
                        resource_id=gateway.get("NatGatewayId", "unknown"),
                        resource_type="NAT Gateway",
                        service="VPC",
                        region=self.region,
                        tags=_tag_dict(gateway.get("Tags")),
                        state=gateway["State"],
                        created_at=_iso(gateway.get("CreateTime")),
                        monthly_cost=NAT_GATEWAY_MONTHLY_COST,
                        metadata={
                            "vpc_id": gateway.get("VpcId"),
                            "subnet_id": gateway.get("SubnetId"),
                        },
                    )
                )

        return resources

    def _get_s3_resources(self) -> list[AWSResource]:
        response = self.s3_client.list_buckets()

        return [
            AWSResource(
                resource_id=bucket.get("Name", "unknown"),
                resource_type="Bucket",
                service="S3",
                region=self.region,
                state="available",
                created_at=_iso(bucket.get("CreationDate")),
                monthly_cost=S3_BUCKET_MONTHLY_COST,
            )
            for bucket in response.get("Buckets", [])
        ]
