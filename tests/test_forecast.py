"""
Unit tests for the demand forecaster.

Tests verify:
- Base demand source priority (same weekday, recent, last fiscal year, flat mean)
- Factor application and explanation
- Trend and confidence
- Multi-day totals (rounded once)
- No-data behaviour
"""
import pytest
from datetime import date as Date, timedelta

from production_planner.domain.models import SalesRecord
from production_planner.domain.validation import ConfigurationError
from production_planner.forecast import (
    DEFAULT_SEASONAL_FACTORS,
    DemandForecaster,
    round_half_up,
    weighted_average,
)

FLAT_SEASONAL = {m: 1.0 for m in range(1, 13)}
FLAT_WEEKDAY = {d: 1.0 for d in range(7)}


def rec(day: Date, units: float, item_id: str = "A") -> SalesRecord:
    return SalesRecord(item_id=item_id, calendar_date=day, current_year_units=units)


def weekly(start: Date, count: int, units: float, item_id: str = "A"):
    return [rec(start + timedelta(weeks=i), units, item_id) for i in range(count)]


def daily(start: Date, values, item_id: str = "A"):
    return [rec(start + timedelta(days=i), v, item_id) for i, v in enumerate(values)]


@pytest.fixture
def flat():
    """Forecaster with every date factor at 1.0 and no holidays."""
    return DemandForecaster(seasonal_factors=FLAT_SEASONAL, day_of_week_factors=FLAT_WEEKDAY)


class TestNoData:
    """An item without history forecasts zero with zero confidence."""

    def test_forecast_without_records(self):
        result = DemandForecaster().forecast([], Date(2024, 11, 28), 0.10, "X")
        assert result.forecast == 0
        assert result.confidence == 0
        assert result.explanation == "No historical data available"

    def test_other_items_ignored(self):
        records = weekly(Date(2024, 1, 3), 4, 10.0, item_id="A")
        result = DemandForecaster().forecast(records, Date(2024, 2, 7), 0.0, "B")
        assert result.forecast == 0
        assert result.data_points == 0

    def test_multi_day_without_records(self):
        demand = DemandForecaster().forecast_multi_day([], Date(2024, 11, 28), 3, 0.1, "X")
        assert demand.total_demand == 0
        assert demand.confidence_score == 0
        assert len(demand.daily_forecasts) == 3


class TestBaseDemandPriority:
    """First non-empty source wins."""

    def test_same_weekday(self, flat):
        records = [rec(Date(2024, 3, 6), 10), rec(Date(2024, 2, 28), 20)]  # Wednesdays
        base = flat.base_demand(records, Date(2024, 3, 13))
        assert base == pytest.approx((10 + 20 * 0.8) / 1.8)

    def test_same_weekday_limited_to_eight(self, flat):
        old = weekly(Date(2023, 1, 4), 5, 1000.0)
        recent = weekly(Date(2024, 1, 3), 8, 10.0)
        assert flat.base_demand(old + recent, Date(2024, 3, 6)) == pytest.approx(10.0)

    def test_recent_window(self, flat):
        records = [rec(Date(2024, 3, 11), 12), rec(Date(2024, 3, 4), 6)]  # Mondays
        base = flat.base_demand(records, Date(2024, 3, 13))  # Wednesday
        assert base == pytest.approx((12 + 6 * 0.8) / 1.8)

    def test_same_fiscal_period_last_year(self, flat):
        records = [
            rec(Date(2024, 3, 11), 30),   # FY2024 P7 W4, Monday
            rec(Date(2024, 3, 5), 20),    # FY2024 P7 W3, Tuesday
            rec(Date(2024, 1, 15), 100),  # FY2024 P5, Monday
        ]
        base = flat.base_demand(records, Date(2025, 3, 12))  # FY2025 P7 W4, Wednesday
        assert base == pytest.approx((30 + 20 * 0.8) / 1.8)

    def test_flat_mean_fallback(self, flat):
        records = [rec(Date(2024, 1, 15), 100), rec(Date(2023, 6, 5), 40)]  # Mondays
        assert flat.base_demand(records, Date(2025, 3, 12)) == pytest.approx(70.0)

    def test_weighted_average(self):
        records = [rec(Date(2024, 1, 2), 10), rec(Date(2024, 1, 1), 0)]
        assert weighted_average(records) == pytest.approx(10 / 1.8)
        assert weighted_average([]) == 0.0


class TestFactors:
    """Growth, seasonal and day-of-week multipliers."""

    def test_growth_applied(self, flat):
        records = weekly(Date(2024, 1, 3), 8, 10.0)
        result = flat.forecast(records, Date(2024, 2, 28), 0.10, "A")
        assert result.base_demand == pytest.approx(10.0)
        assert result.factors.growth == pytest.approx(1.1)
        assert result.forecast == pytest.approx(11.0)
        assert result.explanation == "Normal demand expected"

    def test_default_tables(self):
        records = weekly(Date(2024, 6, 7), 4, 10.0)  # Fridays
        result = DemandForecaster().forecast(records, Date(2024, 7, 5), 0.0, "A")
        assert result.factors.seasonal == DEFAULT_SEASONAL_FACTORS[7]
        assert result.factors.day_of_week == 1.4
        assert result.forecast == pytest.approx(10 * 1.3 * 1.4)
        assert result.explanation == "Adjusted for: increased for season, higher for day of week"

    def test_sunday_factor(self):
        assert DemandForecaster().day_of_week_factors[6] == 0.7

    def test_never_negative(self, flat):
        records = weekly(Date(2024, 1, 3), 3, -5.0)
        assert flat.forecast(records, Date(2024, 1, 24), 0.0, "A").forecast == 0.0

    def test_custom_tables_validated(self, flat):
        with pytest.raises(ConfigurationError):
            flat.with_seasonal_factors({1: 1.0})
        with pytest.raises(ConfigurationError):
            flat.with_day_of_week_factors({d: 0.0 for d in range(7)})

    def test_custom_tables_return_new_forecaster(self, flat):
        busy_monday = {**FLAT_WEEKDAY, 0: 2.0}
        changed = flat.with_day_of_week_factors(busy_monday)
        assert changed.day_of_week_factors[0] == 2.0
        assert flat.day_of_week_factors[0] == 1.0


class TestTrend:
    """Linear trend over the last 28 days."""

    def test_rising(self):
        records = daily(Date(2024, 3, 1), range(10, 20))
        trend = DemandForecaster.trend_factor(records, Date(2024, 3, 10))
        assert trend == pytest.approx(1 + 1 / 14.5)

    def test_falling(self):
        records = daily(Date(2024, 3, 1), [40, 30, 20, 10])
        assert DemandForecaster.trend_factor(records, Date(2024, 3, 4)) == pytest.approx(0.6)

    def test_clamped(self):
        records = daily(Date(2024, 3, 1), [100, 10, 1, 1])
        assert DemandForecaster.trend_factor(records, Date(2024, 3, 4)) == 0.5

    def test_too_few_points(self):
        records = daily(Date(2024, 3, 1), [1, 50, 100])
        assert DemandForecaster.trend_factor(records, Date(2024, 3, 3)) == 1.0


class TestConfidence:
    """Confidence from data volume, recency, weekday coverage and stability."""

    def test_weekly_history(self, flat):
        records = weekly(Date(2024, 1, 3), 8, 10.0)
        result = flat.forecast(records, Date(2024, 2, 28), 0.0, "A")
        # 0.5 base + 0.1 volume + 0.1 same weekday + 0.1 stable factors
        assert result.confidence == pytest.approx(0.8)

    def test_capped_at_one(self, flat):
        records = daily(Date(2024, 1, 1), [10.0] * 60)
        result = flat.forecast(records, Date(2024, 3, 1), 0.0, "A")
        assert result.confidence == 1.0


class TestMultiDay:
    """Multi-day totals."""

    def test_total_rounded_once(self, flat):
        # Tue/Wed/Thu history; too few points for a trend
        records = daily(Date(2024, 3, 5), [3.5] * 3)
        demand = flat.forecast_multi_day(records, Date(2024, 3, 12), 3, 0.0, "A")
        assert [f.forecast for f in demand.daily_forecasts] == [3.5, 3.5, 3.5]
        assert demand.total_demand == 11
        assert demand.days_ahead == 3
        assert demand.confidence_score == pytest.approx(0.6)

    def test_consecutive_dates(self, flat):
        records = daily(Date(2024, 3, 1), [5.0] * 7)
        demand = flat.forecast_multi_day(records, Date(2024, 3, 8), 4, 0.0, "A")
        assert [f.date for f in demand.daily_forecasts] == [Date(2024, 3, 8) + timedelta(days=i) for i in range(4)]

    def test_round_half_up(self):
        assert round_half_up(10.5) == 11
        assert round_half_up(2.5) == 3
        assert round_half_up(2.49) == 2

    def test_deterministic(self, flat):
        records = daily(Date(2024, 3, 1), [4, 6, 5, 7, 8, 6, 5])
        first = flat.forecast_multi_day(records, Date(2024, 3, 8), 3, 0.1, "A")
        second = flat.forecast_multi_day(records, Date(2024, 3, 8), 3, 0.1, "A")
        assert first == second
