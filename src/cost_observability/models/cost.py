"""Weekly cost models consumed by detectors and the projection engine."""

from pydantic import BaseModel, ConfigDict, Field

# Average number of weeks in a calendar month
WEEKS_PER_MONTH = 4.33


class CostBreakdown(BaseModel):
    """Weekly cost for a single AWS service."""

    model_config = ConfigDict(frozen=True)

    service: str
    current_week_cost: float = Field(ge=0)
    previous_week_cost: float = Field(ge=0)
    change_percent: float = 0.0
    change_amount: float = 0.0
    monthly_projection: float = Field(default=0.0, ge=0)

    @classmethod
    def from_costs(cls, service: str, current: float, previous: float) -> "CostBreakdown":
        """Build a breakdown and derive its change and projection fields."""
        change_amount = current - previous
        change_percent = (change_amount / previous * 100) if previous > 0 else 0.0

        return cls(
            service=service,
            current_week_cost=round(current, 2),
            previous_week_cost=round(previous, 2),
            change_percent=round(change_percent, 2),
            change_amount=round(change_amount, 2),
            monthly_projection=round(current * WEEKS_PER_MONTH, 2),
        )


class CostSummary(BaseModel):
    """
    One week's cost picture.

    Historical sequences of summaries are ordered oldest to newest. Nothing
    enforces regular spacing between them.
    """

    model_config = ConfigDict(frozen=True)

    total_current_week: float = Field(ge=0)
    total_previous_week: float = Field(default=0.0, ge=0)
    total_change_percent: float = 0.0
    total_change_amount: float = 0.0
    monthly_projection: float = Field(default=0.0, ge=0)

    budget_limit: float | None = None
    budget_remaining: float | None = None

    top_services: list[CostBreakdown] = Field(default_factory=list)

    billing_period_start: str = ""  # YYYY-MM-DD
    billing_period_end: str = ""  # YYYY-MM-DD

    @classmethod
    def from_services(
        cls,
        services: list[CostBreakdown],
        billing_period_start: str = "",
        billing_period_end: str = "",
        budget_limit: float | None = None,
        budget_remaining: float | None = None,
        top_n: int = 10,
    ) -> "CostSummary":
        """Build a summary from per-service breakdowns, ranked by current cost."""
        total_current = sum(s.current_week_cost for s in services)
        total_previous = sum(s.previous_week_cost for s in services)
        change_amount = total_current - total_previous
        change_percent = (change_amount / total_previous * 100) if total_previous > 0 else 0.0

        ranked = sorted(services, key=lambda s: s.current_week_cost, reverse=True)

        return cls(
            total_current_week=round(total_current, 2),
            total_previous_week=round(total_previous, 2),
            total_change_percent=round(change_percent, 2),
            total_change_amount=round(change_amount, 2),
            monthly_projection=round(total_current * WEEKS_PER_MONTH, 2),
            budget_limit=budget_limit,
            budget_remaining=budget_remaining,
            top_services=ranked[:top_n],
            billing_period_start=billing_period_start,
            billing_period_end=billing_period_end,
        )
