"""
Unit tests for the holiday engine.

Tests verify:
- Floating rule parsing and date resolution
- Impact factor (proximity, blending, clamping, explanation)
- Validation of holiday definitions
- Immutable editing (validated) and per-year memoization
- Windows crossing the year boundary
"""
import math

import pytest
from datetime import date as Date, timedelta

from production_planner.domain.holidays import (
    DEFAULT_US_HOLIDAYS,
    HolidayEngine,
    combine_impacts,
    last_weekday_of_month,
    nth_weekday_of_month,
    parse_floating_rule,
)
from production_planner.domain.models import FloatingRule, HolidayKind, HolidayRule, Occurrence
from production_planner.domain.validation import ConfigurationError, validate_holiday

THANKSGIVING = {
    "id": "thanksgiving",
    "name": "Thanksgiving",
    "type": "floating",
    "month": 11,
    "rule": "fourth thursday",
    "days_before": 3,
    "days_after": 1,
    "sales_multiplier": 1.8,
}


@pytest.fixture
def thanksgiving_engine():
    return HolidayEngine.from_definitions([THANKSGIVING])


class TestFloatingRules:
    """Rule parsing and nth/last weekday resolution."""

    def test_parse_rule(self):
        assert parse_floating_rule("fourth thursday") == FloatingRule(Occurrence.FOURTH, 3)
        assert parse_floating_rule("  Last Monday ") == FloatingRule(Occurrence.LAST, 0)

    def test_parse_rejects_unknown_text(self):
        assert parse_floating_rule("fifth monday") is None
        assert parse_floating_rule("thursday") is None

    def test_rule_parsed_once_at_load(self, thanksgiving_engine):
        rule = thanksgiving_engine.rules[0]
        assert rule.kind == HolidayKind.FLOATING
        assert rule.rule == FloatingRule(Occurrence.FOURTH, 3)

    def test_thanksgiving_dates(self):
        assert nth_weekday_of_month(2024, 11, 3, 4) == Date(2024, 11, 28)
        assert nth_weekday_of_month(2025, 11, 3, 4) == Date(2025, 11, 27)

    def test_memorial_day(self):
        assert last_weekday_of_month(2024, 5, 0) == Date(2024, 5, 27)

    def test_missing_fifth_occurrence(self):
        # February 2023 has only four Wednesdays
        assert nth_weekday_of_month(2023, 2, 2, 5) is None


class TestResolution:
    """instances_for_year and list_holidays."""

    def test_default_set_resolves(self):
        holidays = HolidayEngine.default().list_holidays(2024)
        assert Date(2024, 11, 28) in holidays
        assert Date(2024, 12, 25) in holidays

    def test_inactive_rule_ignored(self):
        # Columbus Day 2024 (second Monday of October) is inactive by default
        assert Date(2024, 10, 14) not in HolidayEngine.default().list_holidays(2024)

    def test_relative_rule_has_no_date(self):
        engine = HolidayEngine.from_definitions([
            {"name": "Easter", "type": "relative", "sales_multiplier": 1.2},
        ])
        assert engine.instances_for_year(2024) == ()

    def test_impossible_fixed_date_skipped(self):
        engine = HolidayEngine.from_definitions([
            {"name": "Bogus", "type": "fixed", "month": 2, "day": 30, "sales_multiplier": 1.2},
        ])
        assert engine.instances_for_year(2024) == ()

    def test_instances_memoized(self, thanksgiving_engine):
        first = thanksgiving_engine.instances_for_year(2024)
        assert thanksgiving_engine.instances_for_year(2024) is first


class TestImpactFactor:
    """Impact on dates around holidays."""

    def test_on_the_holiday(self, thanksgiving_engine):
        impact = thanksgiving_engine.impact_factor(Date(2024, 11, 28))
        assert impact.factor == 1.8
        assert impact.explanation == "Thanksgiving (increased sales)"
        assert impact.affected_holidays[0].distance == 0

    def test_default_set_on_thanksgiving(self):
        assert HolidayEngine.default().impact_factor(Date(2024, 11, 28)).factor == 1.8

    def test_proximity_decay(self, thanksgiving_engine):
        impact = thanksgiving_engine.impact_factor(Date(2024, 11, 29))
        assert impact.factor == pytest.approx(1.8 * (1 - 1 / 3))
        assert impact.explanation == "1 day after Thanksgiving (increased sales)"

    def test_day_before(self, thanksgiving_engine):
        impact = thanksgiving_engine.impact_factor(Date(2024, 11, 27))
        assert impact.affected_holidays[0].distance == -1
        assert impact.explanation == "1 day before Thanksgiving (increased sales)"

    def test_outside_window(self, thanksgiving_engine):
        impact = thanksgiving_engine.impact_factor(Date(2024, 11, 26))
        assert impact.factor == 1.0
        assert impact.affected_holidays == ()

    def test_window_edge_hits_lower_bound(self, thanksgiving_engine):
        """Proximity reaches 0 at the far edge of the window; the factor clamps."""
        impact = thanksgiving_engine.impact_factor(Date(2024, 12, 1))
        assert impact.factor == 0.1

    def test_zero_width_window(self):
        engine = HolidayEngine.from_definitions([
            {"name": "Flag Day", "type": "fixed", "month": 6, "day": 14, "sales_multiplier": 1.3},
        ])
        assert engine.impact_factor(Date(2024, 6, 14)).factor == pytest.approx(1.3)
        assert engine.impact_factor(Date(2024, 6, 15)).factor == 1.0

    def test_affected_sorted_by_distance(self):
        engine = HolidayEngine.from_definitions([
            {"id": "far", "name": "Far", "type": "fixed", "month": 7, "day": 8,
             "days_before": 5, "days_after": 5, "sales_multiplier": 1.5},
            {"id": "near", "name": "Near", "type": "fixed", "month": 7, "day": 5,
             "days_before": 5, "days_after": 5, "sales_multiplier": 1.5},
        ])
        impact = engine.impact_factor(Date(2024, 7, 4))
        assert [a.rule.id for a in impact.affected_holidays] == ["near", "far"]

    def test_explicit_year_selects_instances(self, thanksgiving_engine):
        """Distances are measured to the requested year's holiday dates."""
        assert thanksgiving_engine.impact_factor(Date(2024, 11, 28), year=2025).factor == 1.0
        assert thanksgiving_engine.impact_factor(Date(2025, 11, 27), year=2025).factor == 1.8


class TestNoHolidayNeutrality:
    """An empty rule set never changes demand."""

    def test_empty_engine(self):
        engine = HolidayEngine()
        for offset in range(0, 366, 7):
            impact = engine.impact_factor(Date(2024, 1, 1) + timedelta(days=offset))
            assert impact.factor == 1.0
            assert impact.explanation == "No holiday impact"


class TestFactorBounds:
    """Factor always within [0.1, 5.0]."""

    def test_default_set_full_year(self):
        engine = HolidayEngine.default()
        day = Date(2024, 1, 1)
        while day <= Date(2024, 12, 31):
            factor = engine.impact_factor(day).factor
            assert 0.1 <= factor <= 5.0
            day += timedelta(days=1)

    def test_extreme_overlap_clamped(self):
        definitions = [
            {"id": f"h{i}", "name": f"Holiday {i}", "type": "fixed", "month": 3, "day": 1,
             "sales_multiplier": 5.0}
            for i in range(10)
        ]
        engine = HolidayEngine.from_definitions(definitions)
        assert engine.impact_factor(Date(2024, 3, 1)).factor == 5.0


class TestBlending:
    """Simultaneous holidays damp rather than multiply."""

    def test_no_impacts(self):
        assert combine_impacts([]) == 1.0

    def test_single_impact_unchanged(self):
        assert combine_impacts([1.37]) == 1.37

    def test_two_equal_impacts(self):
        combined = combine_impacts([1.5, 1.5])
        assert combined == pytest.approx(1 + 0.5 / math.sqrt(0.5))
        assert combined < 1.5 * 1.5

    def test_neutral_impacts(self):
        assert combine_impacts([1.0, 1.0]) == 1.0

    def test_opposite_impacts_partly_cancel(self):
        combined = combine_impacts([1.4, 0.8])
        assert 1.0 < combined < 1.4


class TestValidation:
    """One error per violated constraint; invalid sets are rejected whole."""

    def test_valid_definition(self):
        assert validate_holiday(THANKSGIVING) == []

    def test_every_violation_reported(self):
        errors = validate_holiday({
            "name": "",
            "type": "floating",
            "month": 13,
            "rule": "fifth thursday",
            "sales_multiplier": 9,
            "days_before": 20,
        })
        assert len(errors) == 5

    def test_fixed_requires_day(self):
        errors = validate_holiday({"name": "X", "type": "fixed", "month": 1})
        assert errors == ["Fixed holidays must have a valid day (1-31)"]

    def test_unknown_type(self):
        errors = validate_holiday({"name": "X", "type": "lunar"})
        assert len(errors) == 1

    def test_invalid_set_rejected(self):
        bad = dict(THANKSGIVING, id="bad", sales_multiplier=0.05)
        with pytest.raises(ConfigurationError) as exc_info:
            HolidayEngine.from_definitions([THANKSGIVING, bad])
        assert exc_info.value.errors == ["bad: Sales multiplier must be between 0.1 and 5.0"]

    def test_duplicate_ids(self):
        with pytest.raises(ConfigurationError) as exc_info:
            HolidayEngine.from_definitions([THANKSGIVING, THANKSGIVING])
        assert any("Duplicate" in e for e in exc_info.value.errors)

    def test_default_definitions_valid(self):
        assert len(HolidayEngine.default().rules) == len(DEFAULT_US_HOLIDAYS) == 13


class TestImmutableEditing:
    """Editing returns new engines."""

    def test_with_updates(self, thanksgiving_engine):
        updated = thanksgiving_engine.with_updates("thanksgiving", sales_multiplier=2.0)
        day = Date(2024, 11, 28)
        assert updated.impact_factor(day).factor == 2.0
        assert thanksgiving_engine.impact_factor(day).factor == 1.8

    def test_with_updates_unknown_id(self, thanksgiving_engine):
        with pytest.raises(KeyError):
            thanksgiving_engine.with_updates("nope", sales_multiplier=2.0)

    def test_without_rule(self, thanksgiving_engine):
        emptied = thanksgiving_engine.without_rule("thanksgiving")
        assert emptied.rules == ()
        assert len(thanksgiving_engine.rules) == 1

    def test_with_rule(self):
        base = HolidayEngine()
        extended = base.with_rule(HolidayEngine.from_definitions([THANKSGIVING]).rules[0])
        assert len(extended.rules) == 1
        assert base.rules == ()

    def test_with_updates_parses_rule_text(self, thanksgiving_engine):
        updated = thanksgiving_engine.with_updates("thanksgiving", rule="third thursday")
        assert updated.rules[0].rule == FloatingRule(Occurrence.THIRD, 3)
        assert updated.list_holidays(2024) == [Date(2024, 11, 21)]

    def test_rule_text_round_trip_keeps_plan_working(self):
        engine = HolidayEngine.default().with_updates("thanksgiving", rule="fourth thursday")
        assert engine.impact_factor(Date(2024, 11, 28)).factor == 1.8

    def test_with_updates_rejects_bad_rule_text(self, thanksgiving_engine):
        with pytest.raises(ConfigurationError) as exc_info:
            thanksgiving_engine.with_updates("thanksgiving", rule="fifth thursday")
        assert len(exc_info.value.errors) == 1
        assert thanksgiving_engine.rules[0].rule == FloatingRule(Occurrence.FOURTH, 3)

    def test_with_updates_rejects_out_of_range_multiplier(self, thanksgiving_engine):
        with pytest.raises(ConfigurationError) as exc_info:
            thanksgiving_engine.with_updates("thanksgiving", sales_multiplier=100.0)
        assert exc_info.value.errors == ["thanksgiving: Sales multiplier must be between 0.1 and 5.0"]

    def test_with_updates_reports_every_violation(self, thanksgiving_engine):
        with pytest.raises(ConfigurationError) as exc_info:
            thanksgiving_engine.with_updates("thanksgiving", month=13, days_after=30)
        assert len(exc_info.value.errors) == 2

    def test_with_rule_rejects_invalid_rule(self):
        bad = HolidayRule(id="bad", name="Bad", kind=HolidayKind.FIXED, month=14, day=1)
        with pytest.raises(ConfigurationError):
            HolidayEngine().with_rule(bad)

    def test_with_rule_rejects_duplicate_id(self, thanksgiving_engine):
        with pytest.raises(ConfigurationError) as exc_info:
            thanksgiving_engine.with_rule(thanksgiving_engine.rules[0])
        assert exc_info.value.errors == ["thanksgiving: Duplicate holiday id"]


class TestYearBoundary:
    """Windows that cross Jan 1 apply on both sides of it."""

    @pytest.fixture
    def new_year_engine(self):
        return HolidayEngine.from_definitions([{
            "id": "new-years-day", "name": "New Year's Day", "type": "fixed", "month": 1, "day": 1,
            "days_before": 0, "days_after": 2, "sales_multiplier": 0.5,
        }])

    def test_previous_december(self, new_year_engine):
        impact = new_year_engine.impact_factor(Date(2024, 12, 31))
        assert impact.factor == pytest.approx(0.25)
        assert impact.affected_holidays[0].distance == -1
        assert impact.explanation == "1 day before New Year's Day (decreased sales)"

    def test_same_year_unchanged(self, new_year_engine):
        assert new_year_engine.impact_factor(Date(2025, 1, 1)).factor == pytest.approx(0.5)

    def test_explicit_year_limits_instances(self, new_year_engine):
        assert new_year_engine.impact_factor(Date(2024, 12, 31), year=2024).factor == 1.0
