"""Detect security misconfigurations on network, database, storage and volumes."""

from __future__ import annotations

import time

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from cost_observability.config.schema import SecurityRiskDetectorConfig
from cost_observability.detectors.base import (
    SubCheck,
    apply_exclusions,
    build_output,
    disabled_output,
    run_sub_checks,
)
from cost_observability.models import DetectorInput, DetectorOutput, RedFlag

logger = structlog.get_logger(__name__)

WORLD_CIDR = "0.0.0.0/0"

DANGEROUS_PORTS: dict[int, str] = {
    22: "SSH",
    3389: "RDP",
    3306: "MySQL",
    5432: "PostgreSQL",
    27017: "MongoDB",
    6379: "Redis",
}

# Web ports are expected to be public and never count as excess
PUBLIC_WEB_PORTS = frozenset({80, 443})
ALL_PORTS = (0, 65535)

PUBLIC_ACCESS_BLOCK_SETTINGS = (
    "BlockPublicAcls",
    "BlockPublicPolicy",
    "IgnorePublicAcls",
    "RestrictPublicBuckets",
)

NO_ENCRYPTION_ERROR = "ServerSideEncryptionConfigurationNotFoundError"
NO_PUBLIC_ACCESS_BLOCK_ERROR = "NoSuchPublicAccessBlockConfiguration"


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


def _port_range(permission: dict) -> tuple[int, int]:
    """Inclusive port range of an ingress rule. All-traffic rules carry no ports."""
    if permission.get("IpProtocol") == "-1" or "FromPort" not in permission:
        return ALL_PORTS
    from_port = permission["FromPort"]
    return from_port, permission.get("ToPort", from_port)


def _port_label(from_port: int, to_port: int) -> str:
    if (from_port, to_port) == ALL_PORTS:
        return "all"
    if from_port == to_port:
        return str(from_port)
    return f"{from_port}-{to_port}"


class SecurityRiskDetector:
    """
    Detect security risks that expose resources to the internet.

    Sub-checks are switched individually through ``check_security_groups``,
    ``check_public_access`` and ``check_encryption``. The S3 check needs both
    of the last two.
    """

    detector_id = "security-risk-detector"
    detector_version = "1.0.0"
    category = "security_risk"

    def __init__(
        self,
        config: SecurityRiskDetectorConfig | None = None,
        region: str = "us-east-1",
        ec2_client: boto3.client | None = None,
        rds_client: boto3.client | None = None,
        s3_client: boto3.client | None = None,
        max_workers: int = 4,
    ):
        self.config = config or SecurityRiskDetectorConfig()
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

    def detect(self, detector_input: DetectorInput) -> DetectorOutput:
        if not self.config.enabled:
            return disabled_output(self.detector_id, self.detector_version)

        started_at = time.perf_counter()

        red_flags = run_sub_checks(
            self.detector_id, self._enabled_checks(), detector_input, self.max_workers
        )
        red_flags = apply_exclusions(red_flags, self.config, detector_input.aws_resources)

        return build_output(
            self.detector_id,
            self.detector_version,
            red_flags,
            started_at,
            resources_scanned=detector_input.aws_resources.total_resources,
        )

    def _enabled_checks(self) -> list[tuple[str, SubCheck]]:
        checks: list[tuple[str, SubCheck]] = []
        if self.config.check_security_groups:
            checks.append(("security_groups", self._detect_open_security_groups))
        if self.config.check_public_access:
            checks.append(("public_rds", self._detect_public_rds_instances))
        if self.config.check_encryption:
            checks.append(("unencrypted_ebs", self._detect_unencrypted_ebs_volumes))
        if self.config.check_encryption and self.config.check_public_access:
            checks.append(("s3", self._detect_s3_security_issues))
        return checks

    # =========================================================================
    # Security groups
    # =========================================================================

    def _detect_open_security_groups(self, detector_input: DetectorInput) -> list[RedFlag]:
        """Flag dangerous ports and excess world-open ports per security group."""
        try:
            paginator = self.ec2_client.get_paginator("describe_security_groups")
            groups = [
                group for page in paginator.paginate() for group in page.get("SecurityGroups", [])
            ]
        except (ClientError, BotoCoreError) as e:
            logger.error("Error detecting open security groups", error=str(e))
            return []

        max_open_ports = self.config.thresholds.max_open_ports_public
        red_flags = []

        for group in groups:
            group_id = group.get("GroupId", "unknown")
            group_name = group.get("GroupName")
            other_open_ports: list[str] = []

            for permission in group.get("IpPermissions", []):
                if not any(r.get("CidrIp") == WORLD_CIDR for r in permission.get("IpRanges", [])):
                    continue

                from_port, to_port = _port_range(permission)
                if from_port < 0:
                    continue
                label = _port_label(from_port, to_port)

                exposed = [p for p in DANGEROUS_PORTS if from_port <= p <= to_port]
                red_flags.extend(
                    self._dangerous_port_flag(group, port, permission, label) for port in exposed
                )

                if from_port == to_port and (exposed or from_port in PUBLIC_WEB_PORTS):
                    continue
                if label not in other_open_ports:
                    other_open_ports.append(label)

            if len(other_open_ports) > max_open_ports:
                ports = ", ".join(other_open_ports)
                red_flags.append(
                    RedFlag(
                        category="security_risk",
                        severity="warning",
                        title=(
                            f"Security group {group_id} has {len(other_open_ports)} "
                            "ports open to the internet"
                        ),
                        description=(
                            f'Security group "{group_name}" allows inbound traffic from '
                            f"{WORLD_CIDR} on ports {ports}. At most {max_open_ports} "
                            "publicly open ports are allowed."
                        ),
                        resource_id=group_id,
                        resource_type="Security Group",
                        metadata={
                            "open_ports": other_open_ports,
                            "max_open_ports_public": max_open_ports,
                            "group_name": group_name,
                            "vpc_id": group.get("VpcId"),
                        },
                    )
                )

        return red_flags

    def _dangerous_port_flag(
        self, group: dict, port: int, permission: dict, rule_ports: str
    ) -> RedFlag:
        group_id = group.get("GroupId", "unknown")
        group_name = group.get("GroupName")
        port_name = DANGEROUS_PORTS[port]
        protocol = permission.get("IpProtocol")

        exposure = f"port {port}"
        if rule_ports != str(port):
            exposure += f" through a rule opening {rule_ports} ports"
            if protocol == "-1":
                revoke = "--protocol all"
            else:
                revoke = f"--protocol {protocol} --port {rule_ports}"
        else:
            revoke = f"--protocol {protocol} --port {port}"

        return RedFlag(
            category="security_risk",
            severity="critical",
            title=f"Security group {group_id} allows {port_name} from anywhere",
            description=(
                f'Security group "{group_name}" allows inbound {port_name} '
                f"({exposure}) from {WORLD_CIDR}. This exposes your instances "
                "to potential attacks."
            ),
            resource_id=group_id,
            resource_type="Security Group",
            auto_fixable=True,
            fix_command=(
                f"aws ec2 revoke-security-group-ingress --group-id {group_id} "
                f"{revoke} --cidr {WORLD_CIDR}"
            ),
            metadata={
                "port": port,
                "rule_ports": rule_ports,
                "protocol": protocol,
                "cidr": WORLD_CIDR,
                "group_name": group_name,
                "vpc_id": group.get("VpcId"),
            },
        )

    # =========================================================================
    # RDS and EBS
    # =========================================================================

    def _detect_public_rds_instances(self, detector_input: DetectorInput) -> list[RedFlag]:
        """Flag RDS instances reachable from the internet."""
        try:
            paginator = self.rds_client.get_paginator("describe_db_instances")
            db_instances = [
                db for page in paginator.paginate() for db in page.get("DBInstances", [])
            ]
        except (ClientError, BotoCoreError) as e:
            logger.error("Error detecting public RDS instances", error=str(e))
            return []

        red_flags = []
        for db_instance in db_instances:
            if not db_instance.get("PubliclyAccessible"):
                continue

            db_instance_id = db_instance.get("DBInstanceIdentifier", "unknown")
            red_flags.append(
                RedFlag(
                    category="security_risk",
                    severity="critical",
                    title=f"RDS instance {db_instance_id} is publicly accessible",
                    description=(
                        f"RDS instance {db_instance_id} has public accessibility enabled. "
                        "This allows internet access to your database."
                    ),
                    resource_id=db_instance_id,
                    resource_type="RDS",
                    auto_fixable=True,
                    fix_command=(
                        f"aws rds modify-db-instance --db-instance-identifier {db_instance_id} "
                        "--no-publicly-accessible --apply-immediately"
                    ),
                    metadata={
                        "engine": db_instance.get("Engine"),
                        "engine_version": db_instance.get("EngineVersion"),
                        "multi_az": db_instance.get("MultiAZ"),
                        "endpoint": db_instance.get("Endpoint", {}).get("Address"),
                    },
                )
            )

        return red_flags

    def _detect_unencrypted_ebs_volumes(self, detector_input: DetectorInput) -> list[RedFlag]:
        """Flag EBS volumes without encryption at rest."""
        try:
            paginator = self.ec2_client.get_paginator("describe_volumes")
            volumes = [v for page in paginator.paginate() for v in page.get("Volumes", [])]
        except (ClientError, BotoCoreError) as e:
            logger.error("Error detecting unencrypted EBS volumes", error=str(e))
            return []

        red_flags = []
        for volume in volumes:
            if volume.get("Encrypted"):
                continue

            volume_id = volume.get("VolumeId", "unknown")
            size_gb = volume.get("Size", 0)
            red_flags.append(
                RedFlag(
                    category="security_risk",
                    severity="warning",
                    title=f"EBS volume {volume_id} is not encrypted",
                    description=(
                        f"EBS volume {volume_id} ({size_gb} GB) is not encrypted. "
                        "Encryption at rest is recommended for data security."
                    ),
                    resource_id=volume_id,
                    resource_type="EBS Volume",
                    metadata={
                        "size_gb": size_gb,
                        "volume_type": volume.get("VolumeType"),
                        "state": volume.get("State"),
                        "availability_zone": volume.get("AvailabilityZone"),
                    },
                )
            )

        return red_flags

    # =========================================================================
    # S3
    # =========================================================================

    def _detect_s3_security_issues(self, detector_input: DetectorInput) -> list[RedFlag]:
        """Flag buckets without default encryption or a full public access block."""
        try:
            buckets = self.s3_client.list_buckets().get("Buckets", [])
        except (ClientError, BotoCoreError) as e:
            logger.error("Error listing S3 buckets", error=str(e))
            return []

        red_flags = []
        for bucket in buckets:
            bucket_name = bucket.get("Name")
            if not bucket_name:
                continue

            created = bucket.get("CreationDate")
            created_at = created.isoformat() if created else None

            encryption_flag = self._check_bucket_encryption(bucket_name, created_at)
            if encryption_flag:
                red_flags.append(encryption_flag)

            public_access_flag = self._check_bucket_public_access(bucket_name)
            if public_access_flag:
                red_flags.append(public_access_flag)

        return red_flags

    def _check_bucket_encryption(self, bucket_name: str, created_at: str | None) -> RedFlag | None:
        try:
            self.s3_client.get_bucket_encryption(Bucket=bucket_name)
            return None
        except ClientError as e:
            if _error_code(e) != NO_ENCRYPTION_ERROR:
                logger.warning(
                    "Error checking bucket encryption", bucket=bucket_name, error=str(e)
                )
                return None

        return RedFlag(
            category="security_risk",
            severity="warning",
            title=f"S3 bucket {bucket_name} is not encrypted",
            description=(
                f"S3 bucket {bucket_name} does not have default encryption enabled. "
                "Enable encryption for data at rest."
            ),
            resource_id=bucket_name,
            resource_type="S3 Bucket",
            auto_fixable=True,
            fix_command=(
                f"aws s3api put-bucket-encryption --bucket {bucket_name} "
                "--server-side-encryption-configuration "
                """'{"Rules":[{"ApplyServerSideEncryptionByDefault":{"SSEAlgorithm":"AES256"}}]}'"""
            ),
            metadata={"bucket_name": bucket_name, "created_at": created_at},
        )

    def _check_bucket_public_access(self, bucket_name: str) -> RedFlag | None:
        block_all_fix = (
            f"aws s3api put-public-access-block --bucket {bucket_name} "
            "--public-access-block-configuration "
            "BlockPublicAcls=true,IgnorePublicAcls=true,"
            "BlockPublicPolicy=true,RestrictPublicBuckets=true"
        )

        try:
            response = self.s3_client.get_public_access_block(Bucket=bucket_name)
        except ClientError as e:
            if _error_code(e) != NO_PUBLIC_ACCESS_BLOCK_ERROR:
                logger.warning(
                    "Error checking bucket public access block", bucket=bucket_name, error=str(e)
                )
                return None

            return RedFlag(
                category="security_risk",
                severity="critical",
                title=f"S3 bucket {bucket_name} has no public access block",
                description=(
                    f"S3 bucket {bucket_name} does not have a public access block "
                    "configuration. Enable it to prevent accidental public exposure."
                ),
                resource_id=bucket_name,
                resource_type="S3 Bucket",
                auto_fixable=True,
                fix_command=block_all_fix,
                metadata={"bucket_name": bucket_name},
            )

        config = response.get("PublicAccessBlockConfiguration", {})
        if all(config.get(setting) for setting in PUBLIC_ACCESS_BLOCK_SETTINGS):
            return None

        return RedFlag(
            category="security_risk",
            severity="critical",
            title=f"S3 bucket {bucket_name} has public access",
            description=(
                f"S3 bucket {bucket_name} does not block all public access. "
                "This could expose your data to the internet."
            ),
            resource_id=bucket_name,
            resource_type="S3 Bucket",
            auto_fixable=True,
            fix_command=block_all_fix,
            metadata={
                "bucket_name": bucket_name,
                "block_public_acls": config.get("BlockPublicAcls"),
                "block_public_policy": config.get("BlockPublicPolicy"),
                "ignore_public_acls": config.get("IgnorePublicAcls"),
                "restrict_public_buckets": config.get("RestrictPublicBuckets"),
            },
        )
