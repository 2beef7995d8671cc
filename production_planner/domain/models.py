"""
Domain models for production-planner.

Pure data classes + value objects. No I/O, no side effects.
Deterministic and fully testable.
"""
from dataclasses import dataclass, field, asdict
from enum import Enum
from datetime import date as Date, datetime
from typing import Any, Dict, Optional, Tuple


class HolidayKind(Enum):
    """How a holiday rule resolves to a date."""
    FIXED = "fixed"            # Same month/day every year
    FLOATING = "floating"      # Nth (or last) weekday of a month
    RELATIVE = "relative"      # Derived from another date (reserved, unresolved)


class Occurrence(Enum):
    """Which weekday occurrence a floating holiday falls on."""
    FIRST = 1
    SECOND = 2
    THIRD = 3
    FOURTH = 4
    LAST = -1


class ItemStatus(Enum):
    """Outcome of planning a single item."""
    OK = "ok"
    NO_DATA = "no_data"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class FiscalDate:
    """Retail calendar coordinate: 13 periods x 4 weeks x 7 days."""
    fiscal_year: int
    fiscal_period: int
    fiscal_week: int
    fiscal_day: int

    @property
    def quarter(self) -> int:
        return (self.fiscal_period + 2) // 3

    def __str__(self) -> str:
        return f"FY{self.fiscal_year} P{self.fiscal_period} W{self.fiscal_week} D{self.fiscal_day}"


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar date range."""
    start: Date
    end: Date

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"Date range start {self.start} is after end {self.end}")

    def contains(self, d: Date) -> bool:
        return self.start <= d <= self.end


@dataclass(frozen=True)
class FloatingRule:
    """
    Parsed floating-holiday rule, e.g. "fourth thursday".

    Attributes:
        occurrence: Which occurrence in the month (FIRST..FOURTH or LAST)
        weekday: Target weekday (0=Monday, 6=Sunday)
    """
    occurrence: Occurrence
    weekday: int

    def __str__(self) -> str:
        names = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
        return f"{self.occurrence.name.lower()} {names[self.weekday]}"


@dataclass(frozen=True)
class HolidayRule:
    """
    Definition of a sales-impacting holiday.

    Attributes:
        id: Stable identifier (e.g., "thanksgiving")
        name: Human-readable name
        kind: fixed, floating or relative
        month: Month 1-12 (fixed and floating rules)
        day: Day of month (fixed rules only)
        rule: Parsed floating rule (floating rules only)
        days_before: Impact window length on one side of the holiday (0-14)
        days_after: Impact window length on the other side (0-14)
        sales_multiplier: Demand multiplier on the holiday itself (0.1-5.0)
    """
    id: str
    name: str
    kind: HolidayKind
    month: Optional[int] = None
    day: Optional[int] = None
    rule: Optional[FloatingRule] = None
    days_before: int = 0
    days_after: int = 0
    sales_multiplier: float = 1.0
    description: str = ""
    is_active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": getattr(self.kind, "value", self.kind),
            "month": self.month,
            "day": self.day,
            "rule": str(self.rule) if self.rule is not None else None,
            "days_before": self.days_before,
            "days_after": self.days_after,
            "sales_multiplier": self.sales_multiplier,
            "description": self.description,
            "is_active": self.is_active,
        }


@dataclass(frozen=True)
class HolidayInstance:
    """A holiday rule materialized for one calendar year."""
    rule: HolidayRule
    date: Date
    year: int


@dataclass(frozen=True)
class AffectedHoliday:
    """Holiday contributing to the impact on a given date."""
    rule: HolidayRule
    distance: int      # date - holiday, in days (negative = before the holiday)
    impact: float


@dataclass(frozen=True)
class HolidayImpact:
    """Combined holiday effect on one date."""
    factor: float
    affected_holidays: Tuple[AffectedHoliday, ...]
    explanation: str


@dataclass(frozen=True)
class SalesRecord:
    """Validated daily sales row for one item (produced by ingestion)."""
    item_id: str
    calendar_date: Date
    current_year_units: float
    last_year_units: float = 0.0
    fiscal_date: Optional[FiscalDate] = None
    item_description: str = ""
    two_years_ago_units: Optional[float] = None
    data_source: str = ""


@dataclass(frozen=True)
class ItemConfig:
    """Production parameters for one item - immutable during a planning run."""
    item_id: str
    item_description: str = ""
    productivity: float = 5.0        # Units per labor hour
    shelf_life_days: int = 3
    min_batch_size: int = 10
    max_days_ahead: int = 3          # Demand horizon covered by one batch
    default_growth_rate: float = 0.10
    is_active: bool = True
    category: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class CarryoverStock:
    """Stock left from previous production, supplied by an external carry-over model."""
    item_id: str
    units: float
    age_days: int = 0


@dataclass(frozen=True)
class ForecastFactors:
    """Multiplicative forecast adjustments (1.0 = no adjustment)."""
    seasonal: float = 1.0
    day_of_week: float = 1.0
    holiday: float = 1.0
    trend: float = 1.0
    growth: float = 1.0

    @property
    def date_factor(self) -> float:
        return self.seasonal * self.day_of_week * self.holiday * self.trend


@dataclass(frozen=True)
class DailyForecast:
    """Forecast for a single date."""
    date: Date
    base_demand: float
    adjusted_demand: float
    factors: ForecastFactors
    confidence: float
    explanation: str = ""
    data_points: int = 0

    @property
    def forecast(self) -> float:
        return max(0.0, self.adjusted_demand)

    @property
    def date_factor(self) -> float:
        return self.factors.date_factor


@dataclass(frozen=True)
class MultiDayDemand:
    """Demand summed over a lookahead horizon."""
    total_demand: int
    daily_forecasts: Tuple[DailyForecast, ...]
    days_ahead: int
    confidence_score: float


@dataclass(frozen=True)
class BatchOption:
    """One candidate production quantity."""
    size: int
    efficiency: float
    waste_risk: float
    cost: float
    reasoning: str
    score: float = 0.0


@dataclass(frozen=True)
class BatchDecision:
    """Selected batch size plus the candidates that were considered."""
    recommended_batch_size: int
    produce_today: int
    hours_needed: float
    reasoning: str
    options: Tuple[BatchOption, ...]
    selected_option: BatchOption
    efficiency_score: float
    waste_risk_score: float
    degraded: bool = False
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ProductionPlanItem:
    """Per-item production decision with its provenance."""
    item_id: str
    item_description: str
    status: ItemStatus

    # Current inventory status
    old_stock_start: float
    old_stock_end: float
    stock_age: int
    new_stock_end: float
    is_expired: bool

    # Historical data
    last_year_units: float
    two_years_ago_units: float

    # Forecasting
    date_factor: float
    date_factor_reasons: Tuple[str, ...]
    seasonal_factor: float
    holiday_factor: float
    day_of_week_factor: float

    # Batch planning
    multi_day_demand: MultiDayDemand
    today_need: float
    batch_decision: BatchDecision

    # Configuration
    productivity: float
    shelf_life_days: int
    growth_rate: float
    min_batch_size: int
    max_days_ahead: int

    warnings: Tuple[str, ...] = ()
    error: Optional[str] = None


@dataclass(frozen=True)
class PlanItemFailure:
    """Computation fault isolated to one item."""
    item_id: str
    error_type: str
    message: str


@dataclass(frozen=True)
class ProductionSummary:
    """Plan-level aggregates."""
    total_items: int
    active_items: int
    total_units: int
    total_hours: float
    items_with_carryover: int
    expired_items: int
    batch_efficiency_score: float
    estimated_cost: float
    waste_risk_score: float


@dataclass(frozen=True)
class PlanMetadata:
    """How and from what a plan was generated."""
    generated_at: datetime
    data_sources: Tuple[str, ...]
    holidays_considered: Tuple[HolidayRule, ...]
    planning_horizon: int
    fiscal_year_start: Date
    version: str
    settings: Dict[str, Any] = field(default_factory=dict)
    warnings: Tuple[str, ...] = ()
    failures: Tuple[PlanItemFailure, ...] = ()


@dataclass(frozen=True)
class ProductionPlan:
    """Complete plan for one planning request. Never mutated after construction."""
    date: Date
    items: Tuple[ProductionPlanItem, ...]
    summary: ProductionSummary
    metadata: PlanMetadata

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready view of the plan for export/report collaborators."""
        return _jsonable(asdict(self))


def _jsonable(value: Any) -> Any:
    """Convert dates, enums and tuples produced by asdict() to JSON-safe values."""
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (Date, datetime)):
        return value.isoformat()
    return value
