"""Cost anomaly detection for weekly AWS spend."""

from __future__ import annotations

import math
import time

from cost_observability.config.schema import CostAnomalyDetectorConfig
from cost_observability.detectors.base import apply_exclusions, build_output, disabled_output
from cost_observability.models import (
    CostSummary,
    DetectorInput,
    DetectorOutput,
    RedFlag,
    RedFlagSeverity,
)

# A single service above this share of total spend is flagged
CONCENTRATION_RATIO = 0.70
# Minimum weekly cost for a brand-new service to be worth mentioning
NEW_SERVICE_MINIMUM = 20.0
# Warn when less than this share of the budget is left
LOW_BUDGET_RATIO = 0.10
# Sustained increase looks at this many most recent weeks
PATTERN_WINDOW = 5
PATTERN_MIN_POINTS = 4


def _signed_money(amount: float) -> str:
    sign = "+" if amount >= 0 else "-"
    return f"{sign}${abs(amount):.2f}"


def _population_stats(values: list[float]) -> tuple[float, float]:
    mean = sum(values) / len(values)
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    return mean, math.sqrt(variance)


class CostAnomalyDetector:
    """
    Detect unusual weekly cost patterns, spikes and budget overruns.

    Detection rules (all evaluated independently):
    1. Week-over-week increase - total and per service, above a threshold
    2. Service concentration - one service dominates total spend
    3. New service - an expensive service that did not exist last week
    4. Budget - monthly projection over budget, or budget nearly used up
    5. Statistical spike - current week N std devs above history
    6. Sustained increase - costs rising every week for 4-5 weeks
    """

    detector_id = "cost-anomaly-detector"
    detector_version = "1.0.0"
    category = "cost_anomaly"

    def __init__(self, config: CostAnomalyDetectorConfig | None = None):
        """
        Initialize the cost anomaly detector.

        Args:
            config: Detector configuration. Defaults apply if None.
        """
        self.config = config or CostAnomalyDetectorConfig()

    def detect(self, detector_input: DetectorInput) -> DetectorOutput:
        """Run every cost rule against the input snapshot."""
        if not self.config.enabled:
            return disabled_output(self.detector_id, self.detector_version)

        started_at = time.perf_counter()
        cost_data = detector_input.cost_data
        history = detector_input.historical_data or []

        red_flags: list[RedFlag] = []
        red_flags.extend(self._detect_week_over_week_increase(cost_data))
        red_flags.extend(self._detect_service_anomalies(cost_data))

        if self.config.thresholds.monthly_budget_limit is not None:
            red_flags.extend(self._detect_monthly_budget_violation(cost_data))
        red_flags.extend(self._detect_budget_remaining(cost_data))

        if len(history) >= 1:
            red_flags.extend(self._detect_sudden_spike(cost_data, history))

        if len(history) >= PATTERN_MIN_POINTS:
            red_flags.extend(self._detect_sustained_increase(cost_data, history))

        red_flags = apply_exclusions(red_flags, self.config, detector_input.aws_resources)

        return build_output(
            self.detector_id,
            self.detector_version,
            red_flags,
            started_at,
            resources_scanned=len(cost_data.top_services),
        )

    def _escalate(self, escalated: bool) -> RedFlagSeverity:
        """Escalating rules report the configured severity until they go critical."""
        return "critical" if escalated else self.config.severity

    def _increase_severity(self, change_percent: float) -> RedFlagSeverity:
        threshold = self.config.thresholds.week_over_week_increase_percent
        return self._escalate(change_percent > threshold * 2)

    def _detect_week_over_week_increase(self, cost_data: CostSummary) -> list[RedFlag]:
        """Flag total and per-service increases above the threshold."""
        threshold = self.config.thresholds.week_over_week_increase_percent
        red_flags = []

        if cost_data.total_change_percent > threshold:
            red_flags.append(
                RedFlag(
                    category="cost_anomaly",
                    severity=self._increase_severity(cost_data.total_change_percent),
                    title=f"Weekly cost increased by {cost_data.total_change_percent:.1f}%",
                    description=(
                        f"Your total AWS costs increased from ${cost_data.total_previous_week:.2f} "
                        f"to ${cost_data.total_current_week:.2f} this week "
                        f"({_signed_money(cost_data.total_change_amount)}). "
                        f"This exceeds the {threshold:g}% threshold."
                    ),
                    estimated_monthly_cost=cost_data.monthly_projection,
                    metadata={
                        "previous_week": cost_data.total_previous_week,
                        "current_week": cost_data.total_current_week,
                        "change_percent": cost_data.total_change_percent,
                        "threshold": threshold,
                    },
                )
            )

        for service in cost_data.top_services:
            if service.change_percent <= threshold:
                continue

            red_flags.append(
                RedFlag(
                    category="cost_anomaly",
                    severity=self._increase_severity(service.change_percent),
                    title=f"{service.service} costs increased by {service.change_percent:.1f}%",
                    description=(
                        f"{service.service} costs jumped from ${service.previous_week_cost:.2f} "
                        f"to ${service.current_week_cost:.2f} "
                        f"({_signed_money(service.change_amount)}), above the {threshold:g}% "
                        "threshold. This may indicate resource scaling, configuration "
                        "changes, or unexpected usage."
                    ),
                    resource_type=service.service,
                    estimated_monthly_cost=service.monthly_projection,
                    metadata={
                        "service": service.service,
                        "previous_week": service.previous_week_cost,
                        "current_week": service.current_week_cost,
                        "change_percent": service.change_percent,
                        "threshold": threshold,
                    },
                )
            )

        return red_flags

    def _detect_service_anomalies(self, cost_data: CostSummary) -> list[RedFlag]:
        """Flag dominant services and newly appeared expensive services."""
        red_flags = []

        for service in cost_data.top_services:
            if cost_data.total_current_week > 0:
                share = service.current_week_cost / cost_data.total_current_week
                if share > CONCENTRATION_RATIO:
                    percent_of_total = share * 100
                    red_flags.append(
                        RedFlag(
                            category="cost_anomaly",
                            severity="warning",
                            title=(
                                f"{service.service} represents {percent_of_total:.1f}% "
                                "of total costs"
                            ),
                            description=(
                                f"{service.service} is consuming an unusually large portion of "
                                f"your AWS spend (${service.current_week_cost:.2f} of "
                                f"${cost_data.total_current_week:.2f}). This may indicate "
                                "over-provisioning or misconfiguration."
                            ),
                            resource_type=service.service,
                            estimated_monthly_cost=service.monthly_projection,
                            metadata={
                                "service": service.service,
                                "percent_of_total": percent_of_total,
                                "current_week_cost": service.current_week_cost,
                                "threshold_percent": CONCENTRATION_RATIO * 100,
                            },
                        )
                    )

            if service.previous_week_cost == 0 and service.current_week_cost > NEW_SERVICE_MINIMUM:
                red_flags.append(
                    RedFlag(
                        category="cost_anomaly",
                        severity="info",
                        title=f"New service detected: {service.service}",
                        description=(
                            f"{service.service} appeared this week with costs of "
                            f"${service.current_week_cost:.2f}. If this was intentional, no "
                            "action is needed. Otherwise, review recent deployments."
                        ),
                        resource_type=service.service,
                        estimated_monthly_cost=service.monthly_projection,
                        metadata={
                            "service": service.service,
                            "current_week_cost": service.current_week_cost,
                            "is_new_service": True,
                        },
                    )
                )

        return red_flags

    def _detect_monthly_budget_violation(self, cost_data: CostSummary) -> list[RedFlag]:
        """Flag a monthly projection above the configured budget."""
        monthly_budget = self.config.thresholds.monthly_budget_limit
        if not monthly_budget or cost_data.monthly_projection <= monthly_budget:
            return []

        overage = cost_data.monthly_projection - monthly_budget
        overage_percent = overage / monthly_budget * 100

        return [
            RedFlag(
                category="cost_anomaly",
                severity=self._escalate(overage_percent > 20),
                title=f"Monthly projection exceeds budget by {overage_percent:.1f}%",
                description=(
                    f"Based on current usage, your monthly costs are projected at "
                    f"${cost_data.monthly_projection:.2f}, which is ${overage:.2f} over your "
                    f"${monthly_budget:.2f} budget."
                ),
                estimated_monthly_cost=cost_data.monthly_projection,
                metadata={
                    "monthly_budget": monthly_budget,
                    "monthly_projection": cost_data.monthly_projection,
                    "overage": overage,
                    "overage_percent": overage_percent,
                },
            )
        ]

    def _detect_budget_remaining(self, cost_data: CostSummary) -> list[RedFlag]:
        """Flag an exceeded or nearly exhausted budget."""
        budget_limit = cost_data.budget_limit
        remaining = cost_data.budget_remaining
        if not budget_limit or remaining is None:
            return []

        if remaining < 0:
            return [
                RedFlag(
                    category="cost_anomaly",
                    severity="critical",
                    title="Budget limit exceeded",
                    description=(
                        f"You have exceeded your budget limit of ${budget_limit:.2f}. "
                        f"Current spending is ${budget_limit - remaining:.2f}, "
                        f"${abs(remaining):.2f} over the limit."
                    ),
                    estimated_monthly_cost=cost_data.monthly_projection,
                    metadata={
                        "budget_limit": budget_limit,
                        "budget_remaining": remaining,
                        "overage": abs(remaining),
                    },
                )
            ]

        if remaining < budget_limit * LOW_BUDGET_RATIO:
            percent_remaining = remaining / budget_limit * 100
            return [
                RedFlag(
                    category="cost_anomaly",
                    severity="warning",
                    title=f"Only ${remaining:.2f} remaining in budget",
                    description=(
                        f"You have {percent_remaining:.1f}% of your budget remaining "
                        f"(${remaining:.2f} of ${budget_limit:.2f}), below the "
                        f"{LOW_BUDGET_RATIO * 100:.0f}% warning level."
                    ),
                    estimated_monthly_cost=cost_data.monthly_projection,
                    metadata={
                        "budget_limit": budget_limit,
                        "budget_remaining": remaining,
                        "percent_remaining": percent_remaining,
                    },
                )
            ]

        return []

    def _detect_sudden_spike(
        self, cost_data: CostSummary, history: list[CostSummary]
    ) -> list[RedFlag]:
        """Flag a current week more than 2 std devs above the historical mean."""
        mean, std_dev = _population_stats([s.total_current_week for s in history])

        if std_dev == 0:
            return self._flat_history_spike(cost_data, history, mean)

        deviation = (cost_data.total_current_week - mean) / std_dev
        if deviation <= 2:
            return []

        return [
            RedFlag(
                category="cost_anomaly",
                severity=self._escalate(deviation > 3),
                title="Unusual cost spike detected",
                description=(
                    f"Current weekly costs (${cost_data.total_current_week:.2f}) are "
                    f"{deviation:.1f} standard deviations above your historical average "
                    f"(${mean:.2f}, std dev ${std_dev:.2f} over {len(history)} weeks)."
                ),
                estimated_monthly_cost=cost_data.monthly_projection,
                metadata={
                    "current_cost": cost_data.total_current_week,
                    "historical_average": mean,
                    "standard_deviation": std_dev,
                    "deviations": deviation,
                    "sample_size": len(history),
                },
            )
        ]

    def _flat_history_spike(
        self, cost_data: CostSummary, history: list[CostSummary], mean: float
    ) -> list[RedFlag]:
        """Any rise above a history with no spread is an unbounded deviation."""
        current = cost_data.total_current_week
        if current <= mean:
            return []

        increase_amount = round(current - mean, 2)
        return [
            RedFlag(
                category="cost_anomaly",
                severity="critical",
                title="Unusual cost spike detected",
                description=(
                    f"Current weekly costs (${current:.2f}) are ${increase_amount:.2f} "
                    f"above a flat historical average (${mean:.2f} every week "
                    f"over {len(history)} weeks)."
                ),
                estimated_monthly_cost=cost_data.monthly_projection,
                metadata={
                    "current_cost": current,
                    "historical_average": mean,
                    "standard_deviation": 0.0,
                    "increase_amount": increase_amount,
                    "sample_size": len(history),
                },
            )
        ]

    def _detect_sustained_increase(
        self, cost_data: CostSummary, history: list[CostSummary]
    ) -> list[RedFlag]:
        """Flag costs that rose every week across the recent window."""
        window = [s.total_current_week for s in [*history, cost_data][-PATTERN_WINDOW:]]

        if len(window) < PATTERN_MIN_POINTS:
            return []
        if not all(later > earlier for earlier, later in zip(window, window[1:])):
            return []

        first_week, last_week = window[0], window[-1]
        if first_week <= 0:
            return []

        total_increase = (last_week - first_week) / first_week * 100
        weeks = len(window)

        return [
            RedFlag(
                category="cost_anomaly",
                severity="warning" if total_increase > 50 else "info",
                title=f"Costs increasing steadily for {weeks} weeks",
                description=(
                    f"Your costs have increased every week for the past {weeks} weeks, "
                    f"from ${first_week:.2f} to ${last_week:.2f} "
                    f"({total_increase:.1f}% total increase)."
                ),
                estimated_monthly_cost=cost_data.monthly_projection,
                metadata={
                    "weeks": weeks,
                    "first_week_cost": first_week,
                    "last_week_cost": last_week,
                    "total_increase_percent": total_increase,
                    "pattern": "steadily_increasing",
                },
            )
        ]
