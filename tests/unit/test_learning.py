"""Tests for learning stores."""

import threading
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from cost_observability.errors import LearningStoreUnavailable
from cost_observability.learning import (
    BestEffortLearningStore,
    CostEstimateRecord,
    DynamoDBLearningStore,
    ErrorResolutionRecord,
    InMemoryLearningStore,
    LearningStore,
)


def client_error(code: str, operation: str = "Query") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": "boom"}}, operation)


class SlowStore:
    """Store whose lookups block until released."""

    def __init__(self):
        self.release = threading.Event()

    def query_error_resolution(self, error_code):
        self.release.wait(5)
        return None

    def get_cost_estimate_accuracy(self, service, resource_type):
        self.release.wait(5)
        return None


class FailingStore:
    """Store whose lookups always raise."""

    def query_error_resolution(self, error_code):
        raise LearningStoreUnavailable("table missing")

    def get_cost_estimate_accuracy(self, service, resource_type):
        raise LearningStoreUnavailable("table missing")


class TestRecords:
    """Tests for stored record shapes."""

    def test_error_resolution_keys(self):
        """Test partition and sort keys."""
        record = ErrorResolutionRecord(
            resolution_id="abc",
            error_code="InsufficientInstanceCapacity",
            resolution_steps=["Retry in another AZ"],
            success_rate=0.9,
        )

        item = record.to_dynamodb_item()

        assert item["PK"] == "ERROR#InsufficientInstanceCapacity"
        assert item["SK"] == "RESOLUTION#abc"
        assert ErrorResolutionRecord.from_dynamodb_item(item) == record

    def test_cost_estimate_variance(self):
        """Test variance is the signed percent of actual over estimate."""
        record = CostEstimateRecord(
            service="EC2", resource_type="t3.medium", estimated_monthly_cost=100.0,
            actual_monthly_cost=80.0,
        )

        assert record.variance_percent == pytest.approx(-20.0)
        assert record.sk.startswith("RESOURCE#t3.medium#")
        assert record.to_dynamodb_item()["variance_percent"] == "-20.0"

    def test_cost_estimate_without_actual(self):
        """Test an unreconciled estimate has no variance."""
        record = CostEstimateRecord(service="EC2", resource_type="EC2", estimated_monthly_cost=10.0)

        item = record.to_dynamodb_item()

        assert record.variance_percent is None
        assert "actual_monthly_cost" not in item
        assert CostEstimateRecord.from_dynamodb_item(item).actual_monthly_cost is None


class TestInMemoryLearningStore:
    """Tests for the in-memory store."""

    def test_satisfies_protocol(self):
        assert isinstance(InMemoryLearningStore(), LearningStore)

    def test_best_successful_resolution(self):
        """Test the highest success rate among successful fixes wins."""
        store = InMemoryLearningStore(
            resolutions=[
                ErrorResolutionRecord(error_code="X", resolution_steps=["a"], success_rate=0.6),
                ErrorResolutionRecord(error_code="X", resolution_steps=["b"], success_rate=0.8),
                ErrorResolutionRecord(
                    error_code="X",
                    resolution_steps=["c"],
                    success_rate=1.0,
                    resolution_successful=False,
                ),
                ErrorResolutionRecord(error_code="Y", resolution_steps=["d"], success_rate=0.99),
            ]
        )

        resolution = store.query_error_resolution("X")

        assert resolution.resolution_steps == ["b"]
        assert resolution.success_rate == 0.8

    def test_unknown_error_code(self):
        assert InMemoryLearningStore().query_error_resolution("Nope") is None

    def test_estimate_accuracy(self):
        """Test only reconciled estimates count toward the average."""
        store = InMemoryLearningStore()
        store.put_cost_estimate(
            CostEstimateRecord(
                service="RDS", resource_type="RDS", estimated_monthly_cost=100.0,
                actual_monthly_cost=120.0,
            )
        )
        store.put_cost_estimate(
            CostEstimateRecord(
                service="RDS", resource_type="RDS", estimated_monthly_cost=100.0,
                actual_monthly_cost=100.0,
            )
        )
        store.put_cost_estimate(
            CostEstimateRecord(service="RDS", resource_type="RDS", estimated_monthly_cost=50.0)
        )

        accuracy = store.get_cost_estimate_accuracy("RDS", "RDS")

        assert accuracy.sample_size == 2
        assert accuracy.avg_variance_percent == pytest.approx(10.0)

    def test_estimate_accuracy_no_samples(self):
        accuracy = InMemoryLearningStore().get_cost_estimate_accuracy("S3", "S3")

        assert accuracy.sample_size == 0


class TestBestEffortLearningStore:
    """Tests for the never-raising wrapper."""

    def test_no_store(self):
        """Test a missing store answers None."""
        learning = BestEffortLearningStore(None)

        assert learning.available is False
        assert learning.known_fix("X") is None
        assert learning.estimate_accuracy("EC2", "EC2") is None
        learning.record_cost_estimate(
            CostEstimateRecord(service="EC2", resource_type="EC2", estimated_monthly_cost=1.0)
        )
        learning.close()

    def test_timeout_returns_none(self):
        """Test a slow lookup is abandoned after the timeout."""
        store = SlowStore()
        learning = BestEffortLearningStore(store, timeout_seconds=0.05)

        try:
            assert learning.known_fix("X") is None
            assert learning.estimate_accuracy("EC2", "EC2") is None
        finally:
            store.release.set()
            learning.close()

    def test_errors_return_none(self):
        """Test a raising store answers None."""
        learning = BestEffortLearningStore(FailingStore())

        assert learning.known_fix("X") is None
        assert learning.estimate_accuracy("EC2", "EC2") is None
        learning.close()

    def test_record_cost_estimate(self):
        """Test writes reach stores that accept them."""
        store = InMemoryLearningStore()
        learning = BestEffortLearningStore(store)

        learning.record_cost_estimate(
            CostEstimateRecord(service="EC2", resource_type="EC2", estimated_monthly_cost=1.0)
        )
        learning.close()

        assert len(store.estimates) == 1

    def test_closed_store_answers_none(self):
        """Test a store closed by its context manager stops answering."""
        store = InMemoryLearningStore(
            resolutions=[ErrorResolutionRecord(error_code="X", resolution_steps=["a"])]
        )

        with BestEffortLearningStore(store) as learning:
            assert learning.known_fix("X") is not None

        assert learning.available is False
        assert learning.known_fix("X") is None
        learning.record_cost_estimate(
            CostEstimateRecord(service="EC2", resource_type="EC2", estimated_monthly_cost=1.0)
        )
        assert store.estimates == []

    def test_record_on_read_only_store(self):
        """Test stores without a write method are skipped."""
        learning = BestEffortLearningStore(FailingStore())

        learning.record_cost_estimate(
            CostEstimateRecord(service="EC2", resource_type="EC2", estimated_monthly_cost=1.0)
        )
        learning.close()


class TestDynamoDBLearningStore:
    """Tests for the DynamoDB store."""

    @pytest.fixture
    def table(self):
        return MagicMock()

    @pytest.fixture
    def store(self, table):
        resource = MagicMock()
        resource.Table.return_value = table
        return DynamoDBLearningStore("learning-test", dynamodb_resource=resource)

    def test_query_error_resolution(self, store, table):
        """Test items are parsed and the best fix is picked."""
        low = ErrorResolutionRecord(error_code="X", resolution_steps=["a"], success_rate=0.4)
        high = ErrorResolutionRecord(error_code="X", resolution_steps=["b"], success_rate=0.7)
        table.query.return_value = {
            "Items": [low.to_dynamodb_item(), high.to_dynamodb_item()]
        }

        resolution = store.query_error_resolution("X")

        assert resolution.resolution_steps == ["b"]
        assert table.query.call_count == 1

    def test_query_follows_pagination(self, store, table):
        """Test LastEvaluatedKey pages are followed."""
        first = CostEstimateRecord(
            service="EC2", resource_type="EC2", estimated_monthly_cost=100.0,
            actual_monthly_cost=110.0,
        )
        second = CostEstimateRecord(
            service="EC2", resource_type="EC2", estimated_monthly_cost=100.0,
            actual_monthly_cost=130.0,
        )
        table.query.side_effect = [
            {"Items": [first.to_dynamodb_item()], "LastEvaluatedKey": {"PK": "k"}},
            {"Items": [second.to_dynamodb_item()]},
        ]

        accuracy = store.get_cost_estimate_accuracy("EC2", "EC2")

        assert accuracy.sample_size == 2
        assert accuracy.avg_variance_percent == pytest.approx(20.0)
        assert table.query.call_args_list[1].kwargs["ExclusiveStartKey"] == {"PK": "k"}

    def test_query_error_raises_unavailable(self, store, table):
        """Test DynamoDB errors surface as LearningStoreUnavailable."""
        table.query.side_effect = client_error("ResourceNotFoundException")

        with pytest.raises(LearningStoreUnavailable):
            store.query_error_resolution("X")

    def test_wrapped_failure_is_advisory(self, store, table):
        """Test the best-effort wrapper turns DynamoDB errors into None."""
        table.query.side_effect = client_error("ProvisionedThroughputExceededException")
        learning = BestEffortLearningStore(store)

        assert learning.known_fix("X") is None
        learning.close()

    def test_put_cost_estimate(self, store, table):
        """Test estimates are written as items."""
        record = CostEstimateRecord(service="EC2", resource_type="EC2", estimated_monthly_cost=5.0)

        store.put_cost_estimate(record)

        table.put_item.assert_called_once_with(Item=record.to_dynamodb_item())
