"""Learning store: known fixes and past estimate accuracy."""

from cost_observability.learning.base import InMemoryLearningStore, LearningStore
from cost_observability.learning.best_effort import BestEffortLearningStore
from cost_observability.learning.dynamodb import DynamoDBLearningStore
from cost_observability.learning.models import (
    CostEstimateAccuracy,
    CostEstimateRecord,
    ErrorResolution,
    ErrorResolutionRecord,
)

__all__ = [
    "LearningStore",
    "InMemoryLearningStore",
    "DynamoDBLearningStore",
    "BestEffortLearningStore",
    "ErrorResolution",
    "ErrorResolutionRecord",
    "CostEstimateAccuracy",
    "CostEstimateRecord",
]
