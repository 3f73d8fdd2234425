"""Sales trend forecasting, monthly target progress and revenue analytics."""

from __future__ import annotations

import calendar
import logging
import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, List, Optional, Protocol, Sequence, Tuple

from .env import get_env_int

LOGGER = logging.getLogger(__name__)

CONFIDENCE_HIGH = "HIGH"
CONFIDENCE_MEDIUM = "MEDIUM"

MAX_GROWTH = 0.5
MIN_GROWTH = -0.5
HIGH_CONFIDENCE_INTERVALS = 3

SEGMENT_GOLD = "Gold"
SEGMENT_SILVER = "Silver"
SEGMENT_BRONZE = "Bronze"
PROFITABILITY_LIMIT = 50

CHURN_WINDOW_DAYS = 30
RISK_HIGH = "HIGH"

DEFAULT_MONTHS = get_env_int("FORECAST_MONTHS", 6)


class SalesLedger(Protocol):
    """Read access to aggregated sales and targets."""

    def sum_sales(
        self,
        start: date,
        end: date,
        *,
        branch_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> float:
        """Sum ACTIVE sale amounts with a sale date in ``[start, end]``."""
        ...

    def sum_targets(
        self,
        month: int,
        year: int,
        *,
        branch_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> float:
        """Sum configured target amounts for the month."""
        ...

    def customer_revenue(self) -> Sequence["CustomerRevenue"]:
        """ACTIVE sale totals per customer, including customers without sales."""
        ...

    def expiring_sales(self, start: date, end: date) -> Sequence["ExpiringSale"]:
        """ACTIVE sales whose end date falls in ``[start, end]``."""
        ...


@dataclass(frozen=True)
class MonthlyAggregate:
    month: date
    total: float


@dataclass(frozen=True)
class CustomerRevenue:
    customer_id: str
    name: str
    total_revenue: float
    sale_count: int


@dataclass(frozen=True)
class CustomerProfitability:
    customer_id: str
    name: str
    total_revenue: float
    sale_count: int
    average_order_value: float
    segment: str


@dataclass(frozen=True)
class ExpiringSale:
    sale_id: str
    customer_name: Optional[str]
    policy_number: Optional[str]
    end_date: date
    amount: float
    open_tasks: int = 0


@dataclass(frozen=True)
class ChurnRisk:
    sale_id: str
    customer_name: Optional[str]
    policy_number: Optional[str]
    end_date: date
    amount: float
    days_left: int
    risk_level: str = RISK_HIGH


@dataclass(frozen=True)
class ForecastResult:
    forecasted_amount: float
    confidence: str
    growth_rate: int


@dataclass(frozen=True)
class TargetProgress:
    target: float
    achieved: float
    percentage: int


def shift_months(day: date, months: int) -> date:
    """Return the first day of the month ``months`` away from ``day``."""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def month_bounds(day: date) -> Tuple[date, date]:
    """Return the first and last calendar day of the month containing ``day``."""
    last_day = calendar.monthrange(day.year, day.month)[1]
    return date(day.year, day.month, 1), date(day.year, day.month, last_day)


def _round_half_up(value: float, digits: int = 0) -> float:
    scale = 10**digits
    return math.floor(value * scale + 0.5) / scale


def project_trend(points: Iterable[MonthlyAggregate]) -> ForecastResult:
    """Project next month's total from the average month-over-month growth."""

    ordered = sorted(points, key=lambda point: point.month)
    if not ordered:
        return ForecastResult(forecasted_amount=0.0, confidence=CONFIDENCE_MEDIUM, growth_rate=0)

    values = [point.total for point in ordered]
    total_growth = 0.0
    intervals = 0
    for previous, current in zip(values, values[1:]):
        # months without sales cannot anchor a ratio
        if previous > 0:
            total_growth += (current - previous) / previous
            intervals += 1

    average_growth = total_growth / intervals if intervals else 0.0
    growth = max(MIN_GROWTH, min(MAX_GROWTH, average_growth))
    forecast = values[-1] * (1 + growth)

    return ForecastResult(
        forecasted_amount=_round_half_up(forecast, 2),
        confidence=CONFIDENCE_HIGH if intervals > HIGH_CONFIDENCE_INTERVALS else CONFIDENCE_MEDIUM,
        growth_rate=int(_round_half_up(growth * 100)),
    )


def progress_percentage(target: float, achieved: float) -> int:
    if target <= 0:
        return 0
    return int(_round_half_up(achieved / target * 100))


def rank_customers(
    rows: Iterable[CustomerRevenue], limit: int = PROFITABILITY_LIMIT
) -> List[CustomerProfitability]:
    """Sort customers by revenue and tag the top 20% Gold, the next 30% Silver.

    Tier boundaries are computed over every customer before ``limit`` is
    applied, so a customer's segment does not depend on the page size.
    """

    ordered = sorted(rows, key=lambda row: row.total_revenue, reverse=True)
    gold_cutoff = len(ordered) * 2 // 10
    silver_cutoff = len(ordered) * 5 // 10

    ranked: List[CustomerProfitability] = []
    for index, row in enumerate(ordered[:limit]):
        if index < gold_cutoff:
            segment = SEGMENT_GOLD
        elif index < silver_cutoff:
            segment = SEGMENT_SILVER
        else:
            segment = SEGMENT_BRONZE
        ranked.append(
            CustomerProfitability(
                customer_id=row.customer_id,
                name=row.name,
                total_revenue=row.total_revenue,
                sale_count=row.sale_count,
                average_order_value=row.total_revenue / row.sale_count if row.sale_count else 0.0,
                segment=segment,
            )
        )
    return ranked


class ForecastEngine:
    """Forecasts and target tracking over an injected :class:`SalesLedger`."""

    def __init__(
        self,
        ledger: SalesLedger,
        *,
        months: int | None = None,
        today: date | None = None,
    ) -> None:
        self.ledger = ledger
        self.months = months if months is not None else DEFAULT_MONTHS
        self._today = today

    @property
    def today(self) -> date:
        return self._today or date.today()

    def collect_history(
        self, branch_id: Optional[str] = None, user_id: Optional[str] = None
    ) -> List[MonthlyAggregate]:
        """Return totals for the current month and the preceding ``months`` months."""
        history: List[MonthlyAggregate] = []
        for offset in range(self.months + 1):
            start, end = month_bounds(shift_months(self.today, -offset))
            total = self.ledger.sum_sales(start, end, branch_id=branch_id, user_id=user_id)
            history.append(MonthlyAggregate(month=start, total=float(total or 0)))
        return history

    def calculate_forecast(
        self, branch_id: Optional[str] = None, user_id: Optional[str] = None
    ) -> ForecastResult:
        history = self.collect_history(branch_id=branch_id, user_id=user_id)
        result = project_trend(history)
        LOGGER.info(
            "Forecast computed",
            extra={
                "branch_id": branch_id,
                "user_id": user_id,
                "forecast": result.forecasted_amount,
                "confidence": result.confidence,
            },
        )
        return result

    def get_target_progress(
        self,
        month: int,
        year: int,
        branch_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> TargetProgress:
        start, end = month_bounds(date(year, month, 1))
        target = float(
            self.ledger.sum_targets(month, year, branch_id=branch_id, user_id=user_id) or 0
        )
        achieved = float(
            self.ledger.sum_sales(start, end, branch_id=branch_id, user_id=user_id) or 0
        )
        return TargetProgress(
            target=target,
            achieved=achieved,
            percentage=progress_percentage(target, achieved),
        )

    def revenue_trends(
        self,
        year: int | None = None,
        branch_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Sequence[MonthlyAggregate]:
        """Monthly totals from January up to the current month (or December for past years)."""
        today = self.today
        resolved_year = year or today.year
        if resolved_year > today.year:
            return []
        last_month = today.month if resolved_year == today.year else 12

        trends: List[MonthlyAggregate] = []
        for month in range(1, last_month + 1):
            start, end = month_bounds(date(resolved_year, month, 1))
            total = self.ledger.sum_sales(start, end, branch_id=branch_id, user_id=user_id)
            trends.append(MonthlyAggregate(month=start, total=float(total or 0)))
        return trends

    def customer_profitability(
        self, limit: int = PROFITABILITY_LIMIT
    ) -> List[CustomerProfitability]:
        return rank_customers(self.ledger.customer_revenue(), limit=limit)

    def churn_risks(self, days: int = CHURN_WINDOW_DAYS) -> List[ChurnRisk]:
        """ACTIVE sales expiring within ``days`` days that nobody is following up."""
        today = self.today
        risks: List[ChurnRisk] = []
        for sale in self.ledger.expiring_sales(today, today + timedelta(days=days)):
            if sale.open_tasks:
                continue
            risks.append(
                ChurnRisk(
                    sale_id=sale.sale_id,
                    customer_name=sale.customer_name,
                    policy_number=sale.policy_number,
                    end_date=sale.end_date,
                    amount=sale.amount,
                    days_left=(sale.end_date - today).days,
                )
            )
        LOGGER.info("Churn risks computed", extra={"window_days": days, "risks": len(risks)})
        return risks


__all__ = [
    "CONFIDENCE_HIGH",
    "CONFIDENCE_MEDIUM",
    "ChurnRisk",
    "CustomerProfitability",
    "CustomerRevenue",
    "ExpiringSale",
    "ForecastEngine",
    "ForecastResult",
    "MonthlyAggregate",
    "RISK_HIGH",
    "SEGMENT_BRONZE",
    "SEGMENT_GOLD",
    "SEGMENT_SILVER",
    "SalesLedger",
    "TargetProgress",
    "month_bounds",
    "progress_percentage",
    "project_trend",
    "rank_customers",
    "shift_months",
]
