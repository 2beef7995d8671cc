"""
Date-aware demand forecasting for daily production planning.

Model: Base demand x Growth x Seasonal x Day-of-Week x Holiday x Trend.

Base demand (first non-empty source wins):
1. Same weekday, most recent 8 occurrences (recency weighted, 0.8^rank)
2. The 30 days up to the target date (same weighting)
3. Same fiscal period one fiscal year earlier (fiscal week within +/-1)
4. Flat average of all records

The 30-day base-demand window covers the days leading up to the target date.
Trend and confidence windows are measured back from the item's latest
record. Nothing reads the wall clock, so identical inputs give identical
forecasts.

Output: Always non-negative.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Mapping, Optional, Sequence
import math
import statistics

from production_planner.domain.fiscal_calendar import DEFAULT_CALENDAR, FiscalCalendar
from production_planner.domain.holidays import HolidayEngine
from production_planner.domain.models import DailyForecast, ForecastFactors, MultiDayDemand, SalesRecord
from production_planner.domain.validation import ConfigurationError, validate_factor_table


SAME_WEEKDAY_SAMPLES = 8
RECENCY_DECAY = 0.8
RECENT_WINDOW_DAYS = 30
TREND_WINDOW_DAYS = 28
CONFIDENCE_RECENT_DAYS = 14
MIN_TREND_POINTS = 4
TREND_MIN = 0.5
TREND_MAX = 2.0
EXPLANATION_THRESHOLD = 0.05

# By calendar month (1=January)
DEFAULT_SEASONAL_FACTORS: Dict[int, float] = {
    1: 0.8,   # January - post-holiday lull
    2: 0.9,   # February - still slow
    3: 1.0,   # March
    4: 1.1,   # April - spring pickup
    5: 1.2,   # May
    6: 1.1,   # June
    7: 1.3,   # July - peak summer
    8: 1.2,   # August
    9: 1.0,   # September - back to school
    10: 1.1,  # October - fall, Halloween
    11: 1.4,  # November - Thanksgiving
    12: 1.3,  # December - Christmas/New Year
}

# By weekday (0=Monday, 6=Sunday)
DEFAULT_DAY_OF_WEEK_FACTORS: Dict[int, float] = {
    0: 0.9,   # Monday - slower start
    1: 1.0,   # Tuesday
    2: 1.1,   # Wednesday
    3: 1.2,   # Thursday - preparing for weekend
    4: 1.4,   # Friday - weekend prep peak
    5: 1.1,   # Saturday
    6: 0.7,   # Sunday
}


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positive values."""
    return int(math.floor(value + 0.5))


def weighted_average(records: Sequence[SalesRecord]) -> float:
    """
    Recency-weighted average of current-year units.

    Records must be ordered most recent first; weight = 0.8^rank.
    """
    if not records:
        return 0.0
    weighted_sum = 0.0
    total_weight = 0.0
    for rank, record in enumerate(records):
        weight = RECENCY_DECAY ** rank
        weighted_sum += record.current_year_units * weight
        total_weight += weight
    return weighted_sum / total_weight if total_weight > 0 else 0.0


def _most_recent_first(records: Sequence[SalesRecord]) -> List[SalesRecord]:
    return sorted(records, key=lambda r: r.calendar_date, reverse=True)


@dataclass(frozen=True)
class DemandForecaster:
    """
    Demand forecaster with immutable configuration.

    Attributes:
        holiday_engine: Source of holiday impact factors
        fiscal_calendar: Used for same-period-last-year lookups
        seasonal_factors: Month (1-12) -> multiplier
        day_of_week_factors: Weekday (0=Monday) -> multiplier
    """
    holiday_engine: HolidayEngine = field(default_factory=HolidayEngine)
    fiscal_calendar: FiscalCalendar = DEFAULT_CALENDAR
    seasonal_factors: Mapping[int, float] = field(default_factory=lambda: dict(DEFAULT_SEASONAL_FACTORS))
    day_of_week_factors: Mapping[int, float] = field(default_factory=lambda: dict(DEFAULT_DAY_OF_WEEK_FACTORS))

    def with_seasonal_factors(self, factors: Mapping[int, float]) -> 'DemandForecaster':
        errors = validate_factor_table(dict(factors), range(1, 13), "Seasonal")
        if errors:
            raise ConfigurationError(errors, subject="seasonal factors")
        return DemandForecaster(self.holiday_engine, self.fiscal_calendar, dict(factors), dict(self.day_of_week_factors))

    def with_day_of_week_factors(self, factors: Mapping[int, float]) -> 'DemandForecaster':
        errors = validate_factor_table(dict(factors), range(0, 7), "Day-of-week")
        if errors:
            raise ConfigurationError(errors, subject="day-of-week factors")
        return DemandForecaster(self.holiday_engine, self.fiscal_calendar, dict(self.seasonal_factors), dict(factors))

    def with_holiday_engine(self, engine: HolidayEngine) -> 'DemandForecaster':
        return DemandForecaster(engine, self.fiscal_calendar, dict(self.seasonal_factors), dict(self.day_of_week_factors))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def forecast(
        self,
        records: Sequence[SalesRecord],
        target_date: date,
        growth_rate: float,
        item_id: str,
    ) -> DailyForecast:
        """
        Forecast demand for one item on one date.

        Args:
            records: Historical sales records (any items; filtered to item_id)
            target_date: Date to forecast
            growth_rate: Expected growth, e.g. 0.10 for +10%
            item_id: Item to forecast

        Returns:
            DailyForecast (base 0 and confidence 0 when there is no history)

        Example:
            >>> forecaster = DemandForecaster()
            >>> forecaster.forecast([], date(2024, 11, 28), 0.0, "A").forecast
            0.0
        """
        item_records = [r for r in records if r.item_id == item_id]
        return self._forecast_item(item_records, target_date, growth_rate)

    def forecast_multi_day(
        self,
        records: Sequence[SalesRecord],
        start_date: date,
        days: int,
        growth_rate: float,
        item_id: str,
    ) -> MultiDayDemand:
        """
        Forecast `days` consecutive dates starting at start_date.

        Total demand is rounded once after summing, confidence is averaged.
        """
        item_records = [r for r in records if r.item_id == item_id]
        daily = [
            self._forecast_item(item_records, start_date + timedelta(days=i), growth_rate)
            for i in range(max(0, days))
        ]
        total = sum(f.adjusted_demand for f in daily)
        confidence = sum(f.confidence for f in daily) / len(daily) if daily else 0.0
        return MultiDayDemand(
            total_demand=round_half_up(total),
            daily_forecasts=tuple(daily),
            days_ahead=days,
            confidence_score=confidence,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _forecast_item(self, item_records: List[SalesRecord], target_date: date, growth_rate: float) -> DailyForecast:
        if not item_records:
            return DailyForecast(
                date=target_date,
                base_demand=0.0,
                adjusted_demand=0.0,
                factors=ForecastFactors(),
                confidence=0.0,
                explanation="No historical data available",
                data_points=0,
            )

        reference = max(r.calendar_date for r in item_records)
        base = self.base_demand(item_records, target_date)
        factors = ForecastFactors(
            seasonal=self.seasonal_factors.get(target_date.month, 1.0),
            day_of_week=self.day_of_week_factors.get(target_date.weekday(), 1.0),
            holiday=self.holiday_engine.impact_factor(target_date).factor,
            trend=self.trend_factor(item_records, reference),
            growth=1.0 + growth_rate,
        )
        adjusted = max(0.0, base * factors.growth * factors.date_factor)

        return DailyForecast(
            date=target_date,
            base_demand=base,
            adjusted_demand=adjusted,
            factors=factors,
            confidence=self.confidence(item_records, target_date, factors, reference),
            explanation=explain_forecast(factors),
            data_points=len(item_records),
        )

    def base_demand(self, item_records: Sequence[SalesRecord], target_date: date) -> float:
        """Base demand from the first non-empty source (see module docstring)."""
        if not item_records:
            return 0.0

        same_weekday = same_weekday_records(item_records, target_date)
        if same_weekday:
            return weighted_average(same_weekday)

        recent = recent_records(item_records, RECENT_WINDOW_DAYS, target_date)
        if recent:
            return weighted_average(recent)

        last_year = self.same_period_last_year(item_records, target_date)
        if last_year:
            return weighted_average(last_year)

        return statistics.mean(r.current_year_units for r in item_records)

    def same_period_last_year(self, item_records: Sequence[SalesRecord], target_date: date) -> List[SalesRecord]:
        """Records from the same fiscal period one fiscal year earlier, fiscal week within +/-1."""
        target = self.fiscal_calendar.to_fiscal_date(target_date)
        matches = []
        for r in item_records:
            fd = r.fiscal_date or self.fiscal_calendar.to_fiscal_date(r.calendar_date)
            if (fd.fiscal_year == target.fiscal_year - 1
                    and fd.fiscal_period == target.fiscal_period
                    and abs(fd.fiscal_week - target.fiscal_week) <= 1):
                matches.append(r)
        return _most_recent_first(matches)

    @staticmethod
    def trend_factor(item_records: Sequence[SalesRecord], reference: date) -> float:
        """
        Linear-regression trend over the last 28 days, normalised by the mean.

        Returns 1.0 with fewer than 4 points or a non-positive mean;
        otherwise clamped to [0.5, 2.0].
        """
        if len(item_records) < MIN_TREND_POINTS:
            return 1.0
        recent = sorted(recent_records(item_records, TREND_WINDOW_DAYS, reference), key=lambda r: r.calendar_date)
        if len(recent) < MIN_TREND_POINTS:
            return 1.0

        import numpy as np

        y = np.array([r.current_year_units for r in recent], dtype=float)
        x = np.arange(len(y), dtype=float)
        mean_y = float(np.mean(y))
        if mean_y <= 0:
            return 1.0
        slope = float(np.polyfit(x, y, 1)[0])
        return max(TREND_MIN, min(TREND_MAX, 1.0 + slope / mean_y))

    @staticmethod
    def confidence(
        item_records: Sequence[SalesRecord],
        target_date: date,
        factors: ForecastFactors,
        reference: date,
    ) -> float:
        """Confidence in [0, 1] from data volume, recency, weekday coverage and factor stability."""
        confidence = 0.5

        n = len(item_records)
        if n >= 30:
            confidence += 0.3
        elif n >= 10:
            confidence += 0.2
        elif n >= 5:
            confidence += 0.1

        if len(recent_records(item_records, CONFIDENCE_RECENT_DAYS, reference)) >= 5:
            confidence += 0.1

        if len(same_weekday_records(item_records, target_date)) >= 3:
            confidence += 0.1

        if factor_variation(factors) < 0.2:
            confidence += 0.1

        return min(1.0, confidence)


def same_weekday_records(item_records: Sequence[SalesRecord], target_date: date) -> List[SalesRecord]:
    """Most recent 8 records falling on the target's weekday, most recent first."""
    weekday = target_date.weekday()
    matches = [r for r in item_records if r.calendar_date.weekday() == weekday]
    return _most_recent_first(matches)[:SAME_WEEKDAY_SAMPLES]


def recent_records(item_records: Sequence[SalesRecord], days: int, reference: date) -> List[SalesRecord]:
    """Records dated within `days` of the reference date, most recent first."""
    cutoff = reference - timedelta(days=days)
    return _most_recent_first([r for r in item_records if cutoff <= r.calendar_date <= reference])


def factor_variation(factors: ForecastFactors) -> float:
    """Mean absolute deviation of the four date factors from 1.0."""
    deviations = [
        abs(factors.seasonal - 1.0),
        abs(factors.day_of_week - 1.0),
        abs(factors.holiday - 1.0),
        abs(factors.trend - 1.0),
    ]
    return sum(deviations) / len(deviations)


def explain_forecast(factors: ForecastFactors) -> str:
    """Name the factors that deviate from 1.0 by more than 5%."""
    explanations = []

    if abs(factors.seasonal - 1.0) > EXPLANATION_THRESHOLD:
        explanations.append(f"{'increased' if factors.seasonal > 1.0 else 'decreased'} for season")
    if abs(factors.day_of_week - 1.0) > EXPLANATION_THRESHOLD:
        explanations.append(f"{'higher' if factors.day_of_week > 1.0 else 'lower'} for day of week")
    if abs(factors.holiday - 1.0) > EXPLANATION_THRESHOLD:
        explanations.append(f"{'increased' if factors.holiday > 1.0 else 'decreased'} for holiday proximity")
    if abs(factors.trend - 1.0) > EXPLANATION_THRESHOLD:
        explanations.append(f"{'upward' if factors.trend > 1.0 else 'downward'} trend")

    if not explanations:
        return "Normal demand expected"
    return f"Adjusted for: {', '.join(explanations)}"
