"""Cost analysis orchestration: gather inputs, detect, project."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Literal

import structlog
from pydantic import BaseModel, ConfigDict, Field

from cost_observability.analysis.aggregator import RedFlagAggregator
from cost_observability.analysis.demo import DemoDataGenerator
from cost_observability.analysis.projection import CostProjectionEngine
from cost_observability.collectors.aws_cost_explorer import CostExplorerCollector
from cost_observability.collectors.inventory import ResourceInventoryCollector
from cost_observability.config.schema import Config
from cost_observability.detectors import (
    CostAnomalyDetector,
    DeploymentFailureDetector,
    Detector,
    ResourceWasteDetector,
    SecurityRiskDetector,
)
from cost_observability.learning import (
    BestEffortLearningStore,
    CostEstimateRecord,
    DynamoDBLearningStore,
    InMemoryLearningStore,
)
from cost_observability.models import (
    WEEKS_PER_MONTH,
    AWSResourceInventory,
    CostPrediction,
    CostSummary,
    DetectorInput,
    MonthlyCostProjection,
    RedFlag,
    RedFlagSummary,
)

logger = structlog.get_logger(__name__)


class LearningInsight(BaseModel):
    """Something the learning store knows about past estimates."""

    model_config = ConfigDict(frozen=True)

    type: Literal["prediction", "pattern", "recommendation"] = "prediction"
    message: str
    confidence: float = Field(ge=0, le=1)
    source: str = "cost_estimates"
    metadata: dict[str, Any] = Field(default_factory=dict)


class CostAnalysisResult(BaseModel):
    """Everything one analysis run produced."""

    model_config = ConfigDict(frozen=True)

    deployment_id: str
    last_week_cost: CostSummary
    expected_next_week_cost: CostPrediction
    expected_monthly_cost: MonthlyCostProjection
    red_flags: list[RedFlag] = Field(default_factory=list)
    red_flag_summary: RedFlagSummary
    learning_insights: list[LearningInsight] = Field(default_factory=list)


def build_learning_store(config: Config) -> BestEffortLearningStore:
    """Learning store from config; lookups are no-ops when learning is off."""
    store = None
    if config.demo_mode:
        store = InMemoryLearningStore()
    elif config.learning.enabled and config.learning.table_name:
        store = DynamoDBLearningStore(config.learning.table_name, region=config.aws.region)

    return BestEffortLearningStore(store, timeout_seconds=config.learning.timeout_seconds)


def build_detectors(
    config: Config,
    learning: BestEffortLearningStore | None = None,
) -> list[Detector]:
    """
    Construct the default detector set.

    Demo mode runs cost anomaly detection only, since the other detectors
    would scan a real account.
    """
    detectors_config = config.detectors
    region = config.aws.region

    if config.demo_mode:
        return [CostAnomalyDetector(detectors_config.cost_anomaly)]

    return [
        CostAnomalyDetector(detectors_config.cost_anomaly),
        ResourceWasteDetector(detectors_config.resource_waste, region=region),
        SecurityRiskDetector(detectors_config.security_risk, region=region),
        DeploymentFailureDetector(
            detectors_config.deployment_failure, region=region, learning=learning
        ),
    ]


class CostAnalysisService:
    """
    Produce a cost analysis for a deployment.

    Collectors, detectors and the learning store can all be injected; the
    defaults are built from config. In demo mode, collectors are replaced by
    DemoDataGenerator and nothing is written back to the learning store.

    Use as a context manager (or call close) to release a learning store the
    service built itself. An injected store stays open.
    """

    def __init__(
        self,
        config: Config | None = None,
        cost_collector: CostExplorerCollector | None = None,
        inventory_collector: ResourceInventoryCollector | None = None,
        detectors: list[Detector] | None = None,
        learning: BestEffortLearningStore | None = None,
        demo_data: DemoDataGenerator | None = None,
    ):
        self.config = config or Config()
        self._owns_learning = learning is None
        self.learning = learning or build_learning_store(self.config)

        self.cost_collector = cost_collector or CostExplorerCollector(
            region=self.config.aws.region,
            budget_name=self.config.aws.budget_name,
            account_id=self.config.aws.account_id,
        )
        self.inventory_collector = inventory_collector or ResourceInventoryCollector(
            region=self.config.aws.region
        )
        self.demo_data = demo_data or DemoDataGenerator()

        if detectors is None:
            detectors = build_detectors(self.config, self.learning)
        self.aggregator = RedFlagAggregator(detectors, max_workers=self.config.max_workers)
        self.projection_engine = CostProjectionEngine(
            learning=self.learning,
            top_services=self.config.projection.learning_top_services,
        )

    def __enter__(self) -> CostAnalysisService:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_learning:
            self.learning.close()

    @property
    def demo_mode(self) -> bool:
        return self.config.demo_mode

    def generate_cost_analysis(
        self, deployment_id: str, tags: dict[str, str] | None = None
    ) -> CostAnalysisResult:
        """
        Run one full analysis.

        Args:
            deployment_id: Deployment being analyzed.
            tags: Restrict costs and resources to ones carrying these tags.

        Returns:
            CostAnalysisResult with the current week, projections and red flags.
        """
        log = logger.bind(deployment_id=deployment_id, demo_mode=self.demo_mode)
        log.info("Starting cost analysis")

        last_week, history, inventory = self._gather_inputs(deployment_id, tags)

        # History covers the weeks before the current one
        series = [*history, last_week]
        expected_next_week = self.projection_engine.predict_next_week(series)
        expected_monthly = self.projection_engine.project_monthly_cost(
            last_week.total_current_week, series
        )

        aggregated = self.aggregator.detect_all(
            DetectorInput(
                deployment_id=deployment_id,
                cost_data=last_week,
                aws_resources=inventory,
                historical_data=history,
            )
        )

        insights = self._generate_learning_insights(last_week)

        if not self.demo_mode:
            self._record_actual_costs(deployment_id, last_week)

        log.info(
            "Cost analysis complete",
            last_week_cost=last_week.total_current_week,
            expected_next_week=expected_next_week.predicted,
            red_flags=aggregated.summary.total,
        )

        return CostAnalysisResult(
            deployment_id=deployment_id,
            last_week_cost=last_week,
            expected_next_week_cost=expected_next_week,
            expected_monthly_cost=expected_monthly,
            red_flags=aggregated.red_flags,
            red_flag_summary=aggregated.summary,
            learning_insights=insights,
        )

    def _gather_inputs(
        self, deployment_id: str, tags: dict[str, str] | None
    ) -> tuple[CostSummary, list[CostSummary], AWSResourceInventory]:
        """Fetch the current week, history and inventory concurrently."""
        weeks = self.config.projection.history_weeks

        if self.demo_mode:
            return (
                self.demo_data.generate_last_week_cost(),
                self.demo_data.generate_historical_costs(weeks),
                self.demo_data.generate_resource_inventory(deployment_id),
            )

        with ThreadPoolExecutor(max_workers=3, thread_name_prefix="gather") as executor:
            last_week_future = executor.submit(self.cost_collector.get_last_week_costs, tags)
            history_future = executor.submit(
                self.cost_collector.get_historical_costs, weeks, tags
            )
            inventory_future = executor.submit(
                self.inventory_collector.collect, deployment_id, tags
            )

            return (
                last_week_future.result(),
                history_future.result(),
                inventory_future.result(),
            )

    def _generate_learning_insights(self, cost_data: CostSummary) -> list[LearningInsight]:
        if not self.learning.available:
            return []

        insights = []
        for service in cost_data.top_services[: self.config.projection.learning_top_services]:
            accuracy = self.learning.estimate_accuracy(service.service, service.service)
            if accuracy is None or accuracy.sample_size == 0:
                continue

            variance = abs(accuracy.avg_variance_percent)
            insights.append(
                LearningInsight(
                    message=(
                        f"Historical cost predictions for {service.service} have "
                        f"{variance:.1f}% average variance based on "
                        f"{accuracy.sample_size} samples"
                    ),
                    confidence=max(0.0, 1 - variance / 100),
                    metadata={
                        "service": service.service,
                        "sample_size": accuracy.sample_size,
                        "avg_variance_percent": accuracy.avg_variance_percent,
                    },
                )
            )

        return insights

    def _record_actual_costs(self, deployment_id: str, cost_data: CostSummary) -> None:
        """
        Write this week's spend back so future projections can be corrected.

        The estimate is last week's run rate and the actual is this week's,
        both scaled to a month.
        """
        if not self.learning.available:
            return

        for service in cost_data.top_services:
            self.learning.record_cost_estimate(
                CostEstimateRecord(
                    deployment_id=deployment_id,
                    service=service.service,
                    resource_type=service.service,
                    region=self.config.aws.region,
                    estimated_monthly_cost=round(service.previous_week_cost * WEEKS_PER_MONTH, 2),
                    actual_monthly_cost=service.monthly_projection,
                )
            )
