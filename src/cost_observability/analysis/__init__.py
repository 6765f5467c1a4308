"""Cost analysis: projections, red flag aggregation and orchestration."""

from cost_observability.analysis.aggregator import (
    AggregatedRedFlags,
    RedFlagAggregator,
    sort_by_severity,
    summarize,
)
from cost_observability.analysis.demo import DemoDataGenerator
from cost_observability.analysis.projection import CostProjectionEngine
from cost_observability.analysis.service import (
    CostAnalysisResult,
    CostAnalysisService,
    LearningInsight,
    build_detectors,
    build_learning_store,
)

__all__ = [
    "AggregatedRedFlags",
    "CostAnalysisResult",
    "CostAnalysisService",
    "CostProjectionEngine",
    "DemoDataGenerator",
    "LearningInsight",
    "RedFlagAggregator",
    "build_detectors",
    "build_learning_store",
    "sort_by_severity",
    "summarize",
]
