"""Detect idle or forgotten resources that keep costing money."""

from __future__ import annotations

import time
from datetime import UTC, datetime, timedelta

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from cost_observability.collectors.cloudwatch import CloudWatchMetrics
from cost_observability.collectors.pricing import (
    EBS_SNAPSHOT_GB_MONTH,
    ELASTIC_IP_MONTHLY_COST,
    NAT_GATEWAY_MONTHLY_COST,
    RDS_STORAGE_GB_MONTH,
    estimate_ec2_monthly_cost,
    estimate_rds_monthly_cost,
)
from cost_observability.config.schema import ResourceWasteDetectorConfig
from cost_observability.detectors.base import (
    apply_exclusions,
    build_output,
    disabled_output,
    run_sub_checks,
)
from cost_observability.models import DetectorInput, DetectorOutput, RedFlag

logger = structlog.get_logger(__name__)

BYTES_PER_MB = 1024 * 1024
BYTES_PER_GB = 1024 * 1024 * 1024

# Share of allocated RDS storage assumed reclaimable when oversized
RDS_STORAGE_REDUCTION_RATIO = 0.5


class ResourceWasteDetector:
    """
    Detect wasted spend on idle or unused resources.

    Checks (run concurrently, each isolated):
    - Idle EC2 instances (low average CPU)
    - Elastic IPs not associated with anything
    - EBS snapshots older than the retention threshold
    - NAT gateways carrying almost no traffic
    - RDS instances using a small share of allocated storage
    """

    detector_id = "resource-waste-detector"
    detector_version = "1.0.0"
    category = "resource_waste"

    def __init__(
        self,
        config: ResourceWasteDetectorConfig | None = None,
        region: str = "us-east-1",
        ec2_client: boto3.client | None = None,
        rds_client: boto3.client | None = None,
        metrics: CloudWatchMetrics | None = None,
        max_workers: int = 5,
    ):
        self.config = config or ResourceWasteDetectorConfig()
        self.region = region
        self.max_workers = max_workers
        self._ec2_client = ec2_client
        self._rds_client = rds_client
        self._metrics = metrics

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
    def metrics(self) -> CloudWatchMetrics:
        if self._metrics is None:
            self._metrics = CloudWatchMetrics(region=self.region)
        return self._metrics

    def detect(self, detector_input: DetectorInput) -> DetectorOutput:
        if not self.config.enabled:
            return disabled_output(self.detector_id, self.detector_version)

        started_at = time.perf_counter()

        red_flags = run_sub_checks(
            self.detector_id,
            [
                ("idle_ec2", self._detect_idle_ec2_instances),
                ("unused_eip", self._detect_unused_elastic_ips),
                ("old_snapshots", self._detect_old_snapshots),
                ("unused_nat", self._detect_unused_nat_gateways),
                ("oversized_rds", self._detect_oversized_rds),
            ],
            detector_input,
            max_workers=self.max_workers,
        )
        red_flags = apply_exclusions(red_flags, self.config, detector_input.aws_resources)

        return build_output(
            self.detector_id,
            self.detector_version,
            red_flags,
            started_at,
            resources_scanned=detector_input.aws_resources.total_resources,
        )

    def _detect_idle_ec2_instances(self, detector_input: DetectorInput) -> list[RedFlag]:
        """Flag running instances whose average CPU is below the threshold."""
        max_cpu = self.config.thresholds.max_cpu_utilization_percent
        days = self.config.scan_period_days
        red_flags = []

        try:
            paginator = self.ec2_client.get_paginator("describe_instances")
            instances = [
                instance
                for page in paginator.paginate(
                    Filters=[{"Name": "instance-state-name", "Values": ["running"]}]
                )
                for reservation in page.get("Reservations", [])
                for instance in reservation.get("Instances", [])
            ]

            for instance in instances:
                instance_id = instance.get("InstanceId")
                if not instance_id or instance.get("State", {}).get("Name") != "running":
                    continue

                cpu = self.metrics.get_ec2_cpu_utilization(instance_id, days)
                avg_cpu = cpu.average or 0.0
                if avg_cpu >= max_cpu:
                    continue

                instance_type = instance.get("InstanceType", "unknown")
                monthly_cost = estimate_ec2_monthly_cost(instance_type)

                red_flags.append(
                    RedFlag(
                        category="resource_waste",
                        severity="critical" if avg_cpu < 1 else self.config.severity,
                        title=f"EC2 instance {instance_id} is idle",
                        description=(
                            f"CPU utilization averaged {avg_cpu:.1f}% over the last {days} "
                            "days. Consider stopping or downsizing this instance."
                        ),
                        resource_id=instance_id,
                        resource_type="EC2",
                        estimated_monthly_cost=monthly_cost,
                        estimated_savings=monthly_cost,
                        auto_fixable=True,
                        fix_command=f"aws ec2 stop-instances --instance-ids {instance_id}",
                        metadata={
                            "avg_cpu": avg_cpu,
                            "period_days": days,
                            "instance_type": instance_type,
                            "threshold": max_cpu,
                        },
                    )
                )

        except (ClientError, BotoCoreError) as e:
            logger.error("Error detecting idle EC2 instances", error=str(e))

        return red_flags

    def _detect_unused_elastic_ips(self, detector_input: DetectorInput) -> list[RedFlag]:
        """Flag Elastic IPs without an association."""
        try:
            response = self.ec2_client.describe_addresses()
        except (ClientError, BotoCoreError) as e:
            logger.error("Error detecting unused Elastic IPs", error=str(e))
            return []

        red_flags = []
        for address in response.get("Addresses", []):
            if address.get("AssociationId"):
                continue

            public_ip = address.get("PublicIp")
            allocation_id = address.get("AllocationId")

            red_flags.append(
                RedFlag(
                    category="resource_waste",
                    severity="warning",
                    title=f"Unused Elastic IP {public_ip}",
                    description=(
                        f"Elastic IP {public_ip} is not associated with any running "
                        "instance. Unattached EIPs incur charges."
                    ),
                    resource_id=allocation_id or public_ip or "unknown",
                    resource_type="Elastic IP",
                    estimated_monthly_cost=ELASTIC_IP_MONTHLY_COST,
                    estimated_savings=ELASTIC_IP_MONTHLY_COST,
                    auto_fixable=True,
                    fix_command=(
                        f"aws ec2 release-address --allocation-id {allocation_id}"
                        if allocation_id
                        else None
                    ),
                    metadata={"public_ip": public_ip, "allocation_id": allocation_id},
                )
            )

        return red_flags

    def _detect_old_snapshots(self, detector_input: DetectorInput) -> list[RedFlag]:
        """Flag own EBS snapshots older than the retention threshold."""
        max_age_days = self.config.thresholds.max_snapshot_age_days
        cutoff = datetime.now(UTC) - timedelta(days=max_age_days)
        red_flags = []

        try:
            paginator = self.ec2_client.get_paginator("describe_snapshots")
            snapshots = [
                snapshot
                for page in paginator.paginate(OwnerIds=["self"])
                for snapshot in page.get("Snapshots", [])
            ]
        except (ClientError, BotoCoreError) as e:
            logger.error("Error detecting old snapshots", error=str(e))
            return []

        for snapshot in snapshots:
            started = snapshot.get("StartTime")
            if started is None or started >= cutoff:
                continue

            snapshot_id = snapshot.get("SnapshotId", "unknown")
            size_gb = snapshot.get("VolumeSize", 0)
            monthly_cost = round(size_gb * EBS_SNAPSHOT_GB_MONTH, 2)

            red_flags.append(
                RedFlag(
                    category="resource_waste",
                    severity="info",
                    title=f"Old snapshot {snapshot_id}",
                    description=(
                        f"Snapshot {snapshot_id} is over {max_age_days} days old. "
                        "Consider deleting if no longer needed."
                    ),
                    resource_id=snapshot_id,
                    resource_type="EBS Snapshot",
                    estimated_monthly_cost=monthly_cost,
                    estimated_savings=monthly_cost,
                    metadata={
                        "created_at": started.isoformat(),
                        "size_gb": size_gb,
                        "description": snapshot.get("Description"),
                    },
                )
            )

        return red_flags

    def _detect_unused_nat_gateways(self, detector_input: DetectorInput) -> list[RedFlag]:
        """Flag available NAT gateways with almost no outbound traffic."""
        min_mb_per_day = self.config.thresholds.min_network_traffic_mb_per_day
        days = self.config.scan_period_days
        red_flags = []

        try:
            paginator = self.ec2_client.get_paginator("describe_nat_gateways")
            gateways = [
                gateway
                for page in paginator.paginate()
                for gateway in page.get("NatGateways", [])
            ]

            for gateway in gateways:
                nat_gateway_id = gateway.get("NatGatewayId")
                if not nat_gateway_id or gateway.get("State") != "available":
                    continue

                bytes_out = self.metrics.get_nat_gateway_bytes_out(nat_gateway_id, days)
                total_mb = (bytes_out.sum or 0.0) / BYTES_PER_MB
                avg_mb_per_day = total_mb / days
                if avg_mb_per_day >= min_mb_per_day:
                    continue

                red_flags.append(
                    RedFlag(
                        category="resource_waste",
                        severity="warning",
                        title=f"Unused NAT Gateway {nat_gateway_id}",
                        description=(
                            f"NAT Gateway {nat_gateway_id} averaged {avg_mb_per_day:.1f} "
                            f"MB/day over the last {days} days. Consider removing if not needed."
                        ),
                        resource_id=nat_gateway_id,
                        resource_type="NAT Gateway",
                        estimated_monthly_cost=NAT_GATEWAY_MONTHLY_COST,
                        estimated_savings=NAT_GATEWAY_MONTHLY_COST,
                        auto_fixable=True,
                        fix_command=(
                            f"aws ec2 delete-nat-gateway --nat-gateway-id {nat_gateway_id}"
                        ),
                        metadata={
                            "avg_mb_per_day": avg_mb_per_day,
                            "period_days": days,
                            "total_mb": total_mb,
                        },
                    )
                )

        except (ClientError, BotoCoreError) as e:
            logger.error("Error detecting unused NAT gateways", error=str(e))

        return red_flags

    def _detect_oversized_rds(self, detector_input: DetectorInput) -> list[RedFlag]:
        """Flag RDS instances using a small share of their allocated storage."""
        min_utilization = self.config.thresholds.min_storage_utilization_percent
        days = self.config.scan_period_days
        red_flags = []

        try:
            paginator = self.rds_client.get_paginator("describe_db_instances")
            db_instances = [
                db for page in paginator.paginate() for db in page.get("DBInstances", [])
            ]

            for db_instance in db_instances:
                db_instance_id = db_instance.get("DBInstanceIdentifier")
                if not db_instance_id:
                    continue

                free_storage = self.metrics.get_rds_free_storage_space(db_instance_id, days)
                avg_free_gb = (free_storage.average or 0.0) / BYTES_PER_GB
                allocated_gb = db_instance.get("AllocatedStorage", 0)

                utilization_percent = (
                    (allocated_gb - avg_free_gb) / allocated_gb * 100 if allocated_gb > 0 else 0.0
                )
                if utilization_percent >= min_utilization:
                    continue

                instance_class = db_instance.get("DBInstanceClass", "unknown")
                savings = round(
                    allocated_gb * RDS_STORAGE_REDUCTION_RATIO * RDS_STORAGE_GB_MONTH, 2
                )

                red_flags.append(
                    RedFlag(
                        category="resource_waste",
                        severity="info",
                        title=f"RDS instance {db_instance_id} is oversized",
                        description=(
                            f"RDS instance {db_instance_id} is using only "
                            f"{utilization_percent:.1f}% of allocated storage. "
                            "Consider reducing storage allocation."
                        ),
                        resource_id=db_instance_id,
                        resource_type="RDS",
                        estimated_monthly_cost=estimate_rds_monthly_cost(
                            instance_class, allocated_gb
                        ),
                        estimated_savings=savings,
                        metadata={
                            "utilization_percent": utilization_percent,
                            "allocated_storage_gb": allocated_gb,
                            "avg_free_space_gb": avg_free_gb,
                            "instance_class": instance_class,
                        },
                    )
                )

        except (ClientError, BotoCoreError) as e:
            logger.error("Error detecting oversized RDS instances", error=str(e))

        return red_flags
