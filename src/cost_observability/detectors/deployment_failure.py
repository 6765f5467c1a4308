"""Detect failed EC2 launches, broken RDS instances and rolled-back stacks."""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from cost_observability.config.schema import DeploymentFailureDetectorConfig
from cost_observability.detectors.base import (
    apply_exclusions,
    build_output,
    disabled_output,
    run_sub_checks,
)
from cost_observability.learning.best_effort import BestEffortLearningStore
from cost_observability.models import DetectorInput, DetectorOutput, RedFlag

logger = structlog.get_logger(__name__)

FAILED_RDS_STATUSES = frozenset(
    {
        "failed",
        "incompatible-parameters",
        "incompatible-restore",
        "inaccessible-encryption-credentials",
    }
)

FAILED_STACK_STATUSES = frozenset(
    {
        "ROLLBACK_COMPLETE",
        "ROLLBACK_FAILED",
        "CREATE_FAILED",
        "DELETE_FAILED",
        "UPDATE_ROLLBACK_COMPLETE",
        "UPDATE_ROLLBACK_FAILED",
    }
)

CAPACITY_ERROR_CODE = "InsufficientInstanceCapacity"
CAPACITY_FALLBACK_TEXT = "This is a common temporary AWS issue."


class DeploymentFailureDetector:
    """
    Detect resources left behind by failed deployments.

    Three sub-checks run concurrently (EC2, RDS, CloudFormation). A sub-check
    whose AWS calls fail is logged and yields no flags; the others still run.
    """

    detector_id = "deployment-failure-detector"
    detector_version = "1.0.0"
    category = "deployment_failure"

    def __init__(
        self,
        config: DeploymentFailureDetectorConfig | None = None,
        region: str = "us-east-1",
        learning: BestEffortLearningStore | None = None,
        ec2_client: boto3.client | None = None,
        rds_client: boto3.client | None = None,
        cfn_client: boto3.client | None = None,
        max_workers: int = 4,
    ):
        """
        Initialize the deployment failure detector.

        Args:
            config: Detector configuration. Defaults apply if None.
            region: AWS region to scan.
            learning: Optional learning store for known fixes.
            ec2_client: Optional boto3 EC2 client.
            rds_client: Optional boto3 RDS client.
            cfn_client: Optional boto3 CloudFormation client.
            max_workers: Threads for sub-checks and instance status lookups.
        """
        self.config = config or DeploymentFailureDetectorConfig()
        self.region = region
        self.learning = learning
        self.max_workers = max_workers
        self._ec2_client = ec2_client
        self._rds_client = rds_client
        self._cfn_client = cfn_client

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
    def cfn_client(self) -> boto3.client:
        """Get or create CloudFormation client."""
        if self._cfn_client is None:
            self._cfn_client = boto3.client("cloudformation", region_name=self.region)
        return self._cfn_client

    def detect(self, detector_input: DetectorInput) -> DetectorOutput:
        if not self.config.enabled:
            return disabled_output(self.detector_id, self.detector_version)

        started_at = time.perf_counter()

        red_flags = run_sub_checks(
            self.detector_id,
            [
                ("ec2", self._detect_failed_ec2_instances),
                ("rds", self._detect_failed_rds_instances),
                ("cloudformation", self._detect_failed_stacks),
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

    # =========================================================================
    # EC2
    # =========================================================================

    def _detect_failed_ec2_instances(self, detector_input: DetectorInput) -> list[RedFlag]:
        """Flag capacity launch failures and impaired running instances."""
        try:
            instances = self._describe_instances()
        except (ClientError, BotoCoreError) as e:
            logger.error("Error detecting failed EC2 instances", error=str(e))
            return []

        red_flags = []
        running_ids = []

        for instance in instances:
            instance_id = instance.get("InstanceId")
            state = instance.get("State", {}).get("Name")
            if not instance_id or not state:
                continue

            reason = instance.get("StateTransitionReason", "")
            if state == "terminated" and f"Server.{CAPACITY_ERROR_CODE}" in reason:
                red_flags.append(self._capacity_failure_flag(instance_id, instance))

            if state == "running":
                running_ids.append(instance_id)

        red_flags.extend(self._detect_impaired_instances(running_ids))
        return red_flags

    def _describe_instances(self) -> list[dict]:
        instances = []
        paginator = self.ec2_client.get_paginator("describe_instances")
        for page in paginator.paginate():
            for reservation in page.get("Reservations", []):
                instances.extend(reservation.get("Instances", []))
        return instances

    def _capacity_failure_flag(self, instance_id: str, instance: dict) -> RedFlag:
        availability_zone = instance.get("Placement", {}).get("AvailabilityZone")

        return RedFlag(
            category="deployment_failure",
            severity="critical",
            title=f"EC2 instance {instance_id} failed to launch",
            description=(
                f"Instance launch failed due to {CAPACITY_ERROR_CODE} in "
                f"{availability_zone}. {self._known_fix_text(CAPACITY_ERROR_CODE)}"
            ),
            resource_id=instance_id,
            resource_type="EC2",
            metadata={
                "error_code": CAPACITY_ERROR_CODE,
                "availability_zone": availability_zone,
                "instance_type": instance.get("InstanceType"),
                "suggested_fix": "Try launching in a different availability zone",
            },
        )

    def _known_fix_text(self, error_code: str) -> str:
        resolution = self.learning.known_fix(error_code) if self.learning else None
        if resolution is None:
            return CAPACITY_FALLBACK_TEXT

        return (
            f"Known fix ({resolution.success_rate * 100:g}% success rate): "
            f"{', '.join(resolution.resolution_steps)}"
        )

    def _detect_impaired_instances(self, instance_ids: list[str]) -> list[RedFlag]:
        """Look up status checks for running instances in parallel."""
        if not instance_ids:
            return []

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(instance_ids))) as executor:
            statuses = list(executor.map(self._instance_status, instance_ids))

        red_flags = []
        for instance_id, status in zip(instance_ids, statuses):
            if status is None:
                continue

            instance_status = status.get("InstanceStatus", {}).get("Status")
            system_status = status.get("SystemStatus", {}).get("Status")
            if "impaired" not in (instance_status, system_status):
                continue

            red_flags.append(
                RedFlag(
                    category="deployment_failure",
                    severity="critical",
                    title=f"EC2 instance {instance_id} has impaired status",
                    description=(
                        f"Instance {instance_id} is running but has impaired system "
                        "or instance status checks."
                    ),
                    resource_id=instance_id,
                    resource_type="EC2",
                    metadata={
                        "instance_status": instance_status,
                        "system_status": system_status,
                    },
                )
            )

        return red_flags

    def _instance_status(self, instance_id: str) -> dict | None:
        """Status checks for one instance; None if unknown or the lookup fails."""
        try:
            response = self.ec2_client.describe_instance_status(InstanceIds=[instance_id])
        except (ClientError, BotoCoreError) as e:
            logger.warning(
                "Error fetching EC2 instance status", instance_id=instance_id, error=str(e)
            )
            return None

        statuses = response.get("InstanceStatuses", [])
        return statuses[0] if statuses else None

    # =========================================================================
    # RDS
    # =========================================================================

    def _detect_failed_rds_instances(self, detector_input: DetectorInput) -> list[RedFlag]:
        """Flag RDS instances stuck in a failed status."""
        red_flags = []

        try:
            paginator = self.rds_client.get_paginator("describe_db_instances")
            db_instances = [
                db for page in paginator.paginate() for db in page.get("DBInstances", [])
            ]
        except (ClientError, BotoCoreError) as e:
            logger.error("Error detecting failed RDS instances", error=str(e))
            return []

        for db_instance in db_instances:
            db_instance_id = db_instance.get("DBInstanceIdentifier")
            status = db_instance.get("DBInstanceStatus")

            if not db_instance_id or status not in FAILED_RDS_STATUSES:
                continue

            red_flags.append(
                RedFlag(
                    category="deployment_failure",
                    severity="critical",
                    title=f"RDS instance {db_instance_id} creation failed",
                    description=(
                        f"RDS instance {db_instance_id} is in {status} status. "
                        "Check configuration and credentials."
                    ),
                    resource_id=db_instance_id,
                    resource_type="RDS",
                    metadata={
                        "status": status,
                        "engine": db_instance.get("Engine"),
                        "engine_version": db_instance.get("EngineVersion"),
                    },
                )
            )

        return red_flags

    # =========================================================================
    # CloudFormation
    # =========================================================================

    def _detect_failed_stacks(self, detector_input: DetectorInput) -> list[RedFlag]:
        """Flag stacks in a failed or rolled-back status."""
        red_flags = []

        try:
            paginator = self.cfn_client.get_paginator("describe_stacks")
            stacks = [stack for page in paginator.paginate() for stack in page.get("Stacks", [])]
        except (ClientError, BotoCoreError) as e:
            logger.error("Error detecting failed CloudFormation stacks", error=str(e))
            return []

        for stack in stacks:
            stack_name = stack.get("StackName")
            status = stack.get("StackStatus")

            if not stack_name or status not in FAILED_STACK_STATUSES:
                continue

            status_reason = stack.get("StackStatusReason") or "No reason provided"
            creation_time = stack.get("CreationTime")

            red_flags.append(
                RedFlag(
                    category="deployment_failure",
                    severity="critical",
                    title=f"CloudFormation stack {stack_name} failed",
                    description=f"Stack {stack_name} is in {status} status. Reason: {status_reason}",
                    resource_id=stack.get("StackId") or stack_name,
                    resource_type="CloudFormation Stack",
                    metadata={
                        "status": status,
                        "status_reason": status_reason,
                        "creation_time": creation_time.isoformat() if creation_time else None,
                    },
                )
            )

        return red_flags
