"""CloudWatch metric statistics collector."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import boto3

from cost_observability.collectors.base import MetricDataPoint, MetricResult

# One datapoint per hour
DEFAULT_PERIOD_SECONDS = 3600


class CloudWatchMetrics:
    """
    Fetch and aggregate CloudWatch metric statistics.

    Errors from CloudWatch are not caught here; callers decide whether a
    missing metric is fatal.
    """

    def __init__(
        self,
        region: str = "us-east-1",
        cloudwatch_client: boto3.client | None = None,
    ):
        self.region = region
        self._cloudwatch_client = cloudwatch_client

    @property
    def cloudwatch_client(self) -> boto3.client:
        """Get or create CloudWatch client."""
        if self._cloudwatch_client is None:
            self._cloudwatch_client = boto3.client("cloudwatch", region_name=self.region)
        return self._cloudwatch_client

    def get_metric(
        self,
        namespace: str,
        metric_name: str,
        dimensions: dict[str, str],
        statistics: list[str],
        days: int = 7,
        period: int = DEFAULT_PERIOD_SECONDS,
        end_time: datetime | None = None,
    ) -> MetricResult:
        """
        Get statistics for a metric over the last ``days`` days.

        Args:
            namespace: CloudWatch namespace, e.g. "AWS/EC2".
            metric_name: Metric name, e.g. "CPUUtilization".
            dimensions: Dimension name to value.
            statistics: Statistics to request (Average, Sum, Maximum, Minimum).
            days: Length of the lookback window.
            period: Granularity in seconds.
            end_time: End of the window. Defaults to now.

        Returns:
            MetricResult with aggregated statistics over every datapoint.
        """
        end_time = end_time or datetime.now(UTC)
        start_time = end_time - timedelta(days=days)

        response = self.cloudwatch_client.get_metric_statistics(
            Namespace=namespace,
            MetricName=metric_name,
            Dimensions=[{"Name": name, "Value": value} for name, value in dimensions.items()],
            StartTime=start_time,
            EndTime=end_time,
            Period=period,
            Statistics=statistics,
        )

        datapoints = response.get("Datapoints", [])
        return self._aggregate(metric_name, datapoints)

    def _aggregate(self, metric_name: str, datapoints: list[dict]) -> MetricResult:
        data_points = sorted(
            (
                MetricDataPoint(
                    timestamp=dp.get("Timestamp") or datetime.now(UTC),
                    value=_first_statistic(dp),
                    unit=dp.get("Unit", ""),
                )
                for dp in datapoints
            ),
            key=lambda p: p.timestamp,
        )

        averages = [dp["Average"] for dp in datapoints if "Average" in dp]
        maximums = [dp["Maximum"] for dp in datapoints if "Maximum" in dp]
        minimums = [dp["Minimum"] for dp in datapoints if "Minimum" in dp]
        sums = [dp["Sum"] for dp in datapoints if "Sum" in dp]

        return MetricResult(
            metric_name=metric_name,
            data_points=data_points,
            average=sum(averages) / len(averages) if averages else None,
            maximum=max(maximums) if maximums else None,
            minimum=min(minimums) if minimums else None,
            sum=sum(sums) if sums else None,
        )

    # =========================================================================
    # Convenience helpers
    # =========================================================================

    def get_ec2_cpu_utilization(self, instance_id: str, days: int = 7) -> MetricResult:
        return self.get_metric(
            "AWS/EC2",
            "CPUUtilization",
            {"InstanceId": instance_id},
            ["Average", "Maximum", "Minimum"],
            days=days,
        )

    def get_nat_gateway_bytes_out(self, nat_gateway_id: str, days: int = 7) -> MetricResult:
        return self.get_metric(
            "AWS/NATGateway",
            "BytesOutToDestination",
            {"NatGatewayId": nat_gateway_id},
            ["Sum"],
            days=days,
        )

    def get_rds_free_storage_space(self, db_instance_id: str, days: int = 7) -> MetricResult:
        return self.get_metric(
            "AWS/RDS",
            "FreeStorageSpace",
            {"DBInstanceIdentifier": db_instance_id},
            ["Average"],
            days=days,
        )


def _first_statistic(datapoint: dict) -> float:
    for statistic in ("Average", "Sum", "Maximum", "Minimum"):
        if statistic in datapoint:
            return datapoint[statistic]
    return 0.0
