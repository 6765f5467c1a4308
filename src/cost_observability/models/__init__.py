"""Value objects exchanged between collectors, detectors and projections."""

from cost_observability.models.cost import WEEKS_PER_MONTH, CostBreakdown, CostSummary
from cost_observability.models.projection import (
    ConfidenceInterval,
    CostPrediction,
    MonthlyCostProjection,
    PredictionMethodology,
    TrendDirection,
)
from cost_observability.models.red_flags import (
    CATEGORIES,
    SEVERITIES,
    DetectionMetadata,
    DetectorInput,
    DetectorOutput,
    RedFlag,
    RedFlagCategory,
    RedFlagSeverity,
    RedFlagSummary,
)
from cost_observability.models.resources import AWSResource, AWSResourceInventory

__all__ = [
    "WEEKS_PER_MONTH",
    "CostBreakdown",
    "CostSummary",
    "ConfidenceInterval",
    "CostPrediction",
    "MonthlyCostProjection",
    "PredictionMethodology",
    "TrendDirection",
    "AWSResource",
    "AWSResourceInventory",
    "RedFlag",
    "RedFlagCategory",
    "RedFlagSeverity",
    "RedFlagSummary",
    "DetectorInput",
    "DetectorOutput",
    "DetectionMetadata",
    "SEVERITIES",
    "CATEGORIES",
]
