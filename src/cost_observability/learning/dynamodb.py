"""DynamoDB-backed learning store."""

from __future__ import annotations

from typing import Any

import boto3
import structlog
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import BotoCoreError, ClientError

from cost_observability.errors import LearningStoreUnavailable
from cost_observability.learning.base import best_resolution, estimate_accuracy
from cost_observability.learning.models import (
    CostEstimateAccuracy,
    CostEstimateRecord,
    ErrorResolution,
    ErrorResolutionRecord,
)

logger = structlog.get_logger(__name__)


class DynamoDBLearningStore:
    """Learning store kept in a single DynamoDB table."""

    def __init__(
        self,
        table_name: str,
        region: str = "us-east-1",
        dynamodb_resource: Any | None = None,
    ):
        """
        Initialize the learning store.

        Args:
            table_name: Name of the DynamoDB table.
            region: AWS region of the table.
            dynamodb_resource: Optional boto3 DynamoDB resource. If None, creates one.
        """
        self.dynamodb = dynamodb_resource or boto3.resource("dynamodb", region_name=region)
        self.table = self.dynamodb.Table(table_name)
        self.table_name = table_name

    # =========================================================================
    # Error Resolutions
    # =========================================================================

    def put_error_resolution(self, record: ErrorResolutionRecord) -> None:
        """Store an error resolution pattern."""
        self.table.put_item(Item=record.to_dynamodb_item())

    def query_error_resolution(self, error_code: str) -> ErrorResolution | None:
        """
        Get the best known fix for an error code.

        Args:
            error_code: AWS error code, e.g. "InsufficientInstanceCapacity".

        Returns:
            ErrorResolution if a successful fix is recorded, None otherwise.

        Raises:
            LearningStoreUnavailable: If DynamoDB cannot be queried.
        """
        items = self._query_all(
            KeyConditionExpression=Key("PK").eq(f"ERROR#{error_code}"),
            FilterExpression=Attr("resolution_successful").eq(True),
        )
        records = [ErrorResolutionRecord.from_dynamodb_item(item) for item in items]
        return best_resolution(error_code, records)

    # =========================================================================
    # Cost Estimates
    # =========================================================================

    def put_cost_estimate(self, record: CostEstimateRecord) -> None:
        """Store a cost estimate (with or without its actual cost)."""
        self.table.put_item(Item=record.to_dynamodb_item())

    def get_cost_estimate_accuracy(
        self, service: str, resource_type: str
    ) -> CostEstimateAccuracy:
        """
        Get the average variance of past estimates for a service.

        Args:
            service: AWS service name.
            resource_type: Resource type; empty matches every type of the service.

        Returns:
            CostEstimateAccuracy, with sample_size 0 if nothing was reconciled.

        Raises:
            LearningStoreUnavailable: If DynamoDB cannot be queried.
        """
        key_condition = Key("PK").eq(f"ESTIMATE#{service}")
        if resource_type:
            key_condition = key_condition & Key("SK").begins_with(f"RESOURCE#{resource_type}#")

        items = self._query_all(KeyConditionExpression=key_condition)
        records = [CostEstimateRecord.from_dynamodb_item(item) for item in items]
        return estimate_accuracy(records)

    def _query_all(self, **query_kwargs: Any) -> list[dict]:
        """Run a query and follow pagination."""
        try:
            response = self.table.query(**query_kwargs)
            items = list(response.get("Items", []))

            while "LastEvaluatedKey" in response:
                response = self.table.query(
                    ExclusiveStartKey=response["LastEvaluatedKey"], **query_kwargs
                )
                items.extend(response.get("Items", []))

            return items

        except (ClientError, BotoCoreError) as e:
            logger.warning("Learning store query failed", table=self.table_name, error=str(e))
            raise LearningStoreUnavailable(str(e)) from e
