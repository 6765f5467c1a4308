"""Red flag detectors."""

from cost_observability.detectors.base import Detector, apply_exclusions, run_sub_checks
from cost_observability.detectors.cost_anomaly import CostAnomalyDetector
from cost_observability.detectors.deployment_failure import DeploymentFailureDetector
from cost_observability.detectors.resource_waste import ResourceWasteDetector
from cost_observability.detectors.security_risk import SecurityRiskDetector

__all__ = [
    "Detector",
    "CostAnomalyDetector",
    "DeploymentFailureDetector",
    "ResourceWasteDetector",
    "SecurityRiskDetector",
    "apply_exclusions",
    "run_sub_checks",
]
