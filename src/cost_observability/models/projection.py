"""Cost prediction and projection results."""

from typing import Literal

from pydantic import BaseModel, ConfigDict

PredictionMethodology = Literal["simple", "moving_average", "linear_trend", "hyperspell_pattern"]
TrendDirection = Literal["increasing", "decreasing", "stable"]


class ConfidenceInterval(BaseModel):
    model_config = ConfigDict(frozen=True)

    low: float
    high: float


class CostPrediction(BaseModel):
    """Next week's expected total cost."""

    model_config = ConfigDict(frozen=True)

    predicted: float
    confidence_interval: ConfidenceInterval
    methodology: PredictionMethodology


class MonthlyCostProjection(BaseModel):
    """Expected cost for a full month at the current trend."""

    model_config = ConfigDict(frozen=True)

    projected: float
    confidence_interval: ConfidenceInterval
    trend_direction: TrendDirection
