"""Static on-demand price tables (us-east-1, USD per month)."""

DEFAULT_INSTANCE_MONTHLY_COST = 50.0

EC2_MONTHLY_PRICING: dict[str, float] = {
    "t2.micro": 8.47,
    "t2.small": 16.79,
    "t2.medium": 33.58,
    "t3.micro": 7.59,
    "t3.small": 15.18,
    "t3.medium": 30.37,
    "t3.large": 60.74,
    "t3.xlarge": 121.47,
    "m5.large": 70.08,
    "m5.xlarge": 140.16,
    "m5.2xlarge": 280.32,
}

RDS_MONTHLY_PRICING: dict[str, float] = {
    "db.t3.micro": 11.59,
    "db.t3.small": 23.18,
    "db.t3.medium": 46.36,
    "db.t3.large": 92.72,
    "db.m5.large": 122.85,
    "db.m5.xlarge": 245.7,
}

# Per GB-month
RDS_STORAGE_GB_MONTH = 0.115
EBS_SNAPSHOT_GB_MONTH = 0.05

ELASTIC_IP_MONTHLY_COST = 3.65
NAT_GATEWAY_MONTHLY_COST = 32.85


def estimate_ec2_monthly_cost(instance_type: str) -> float:
    """Monthly cost of an instance type, or the default for unknown types."""
    return EC2_MONTHLY_PRICING.get(instance_type, DEFAULT_INSTANCE_MONTHLY_COST)


def estimate_rds_monthly_cost(instance_class: str, storage_gb: float) -> float:
    """Monthly cost of an RDS instance class plus its allocated storage."""
    instance_cost = RDS_MONTHLY_PRICING.get(instance_class, DEFAULT_INSTANCE_MONTHLY_COST)
    return round(instance_cost + storage_gb * RDS_STORAGE_GB_MONTH, 2)
