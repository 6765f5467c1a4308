"""Configuration management for the cost observability engine."""

from cost_observability.config.schema import (
    AWSConfig,
    Config,
    CostAnomalyDetectorConfig,
    DeploymentFailureDetectorConfig,
    DetectorConfig,
    DetectorsConfig,
    LearningConfig,
    LoggingConfig,
    ProjectionConfig,
    ResourceWasteDetectorConfig,
    SecurityRiskDetectorConfig,
)
from cost_observability.config.loader import get_cached_config, load_config

__all__ = [
    "Config",
    "AWSConfig",
    "DetectorConfig",
    "DetectorsConfig",
    "CostAnomalyDetectorConfig",
    "ResourceWasteDetectorConfig",
    "SecurityRiskDetectorConfig",
    "DeploymentFailureDetectorConfig",
    "ProjectionConfig",
    "LearningConfig",
    "LoggingConfig",
    "load_config",
    "get_cached_config",
]
