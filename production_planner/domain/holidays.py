"""
Holiday Impact Module.

Supports:
- Fixed holidays (same month/day every year)
- Floating holidays ("fourth thursday" of a month, "last monday", ...)
- Relative holidays (reserved: resolve to no date)
- Proximity-weighted sales impact for any date

Impact model:
    A holiday affects dates whose signed distance (date - holiday) lies in
    [-days_after, +days_before]. Its impact at distance d is

        impact = sales_multiplier * max(0, 1 - |d| / max(days_before, days_after))

    Several simultaneous holidays are blended by deviation weighting
    (w = |impact - 1|) normalised by sqrt(sum(w^2)): a single holiday keeps
    exactly its own impact, overlapping holidays damp instead of multiply.
    The result is clamped to [0.1, 5.0].
"""
from datetime import date, timedelta
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
import calendar
import logging
import math
import re

from production_planner.domain.models import (
    AffectedHoliday,
    FloatingRule,
    HolidayImpact,
    HolidayInstance,
    HolidayKind,
    HolidayRule,
    Occurrence,
)
from production_planner.domain.validation import ConfigurationError, validate_holiday, validate_holidays

logger = logging.getLogger(__name__)

MIN_IMPACT_FACTOR = 0.1
MAX_IMPACT_FACTOR = 5.0

WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_RULE_PATTERN = re.compile(
    r"^(first|second|third|fourth|last)\s+(monday|tuesday|wednesday|thursday|friday|saturday|sunday)$"
)


def parse_floating_rule(text: str) -> Optional[FloatingRule]:
    """
    Parse a floating-holiday rule.

    Args:
        text: Rule text, e.g. "fourth Thursday" (case-insensitive)

    Returns:
        FloatingRule, or None if the text does not match the pattern
    """
    match = _RULE_PATTERN.match(text.strip().lower())
    if not match:
        return None
    occurrence, weekday = match.groups()
    return FloatingRule(occurrence=Occurrence[occurrence.upper()], weekday=WEEKDAY_NAMES.index(weekday))


def nth_weekday_of_month(year: int, month: int, weekday: int, n: int) -> Optional[date]:
    """
    Nth occurrence of a weekday in a month (weekday: 0=Monday).

    Returns None when the month has fewer than n occurrences.
    """
    first = date(year, month, 1)
    offset = (weekday - first.weekday() + 7) % 7 + 7 * (n - 1)
    result = first + timedelta(days=offset)
    return result if result.month == month else None


def last_weekday_of_month(year: int, month: int, weekday: int) -> date:
    """Last occurrence of a weekday in a month (weekday: 0=Monday)."""
    last = date(year, month, calendar.monthrange(year, month)[1])
    return last - timedelta(days=(last.weekday() - weekday + 7) % 7)


def resolve_holiday_date(rule: HolidayRule, year: int) -> Optional[date]:
    """
    Resolve a rule to a concrete date in a year.

    Returns None for relative rules, impossible fixed dates (e.g., Feb 30)
    and incomplete definitions.
    """
    if rule.kind == HolidayKind.FIXED:
        if rule.month is None or rule.day is None:
            return None
        try:
            return date(year, rule.month, rule.day)
        except ValueError:
            return None

    if rule.kind == HolidayKind.FLOATING:
        if rule.rule is None or rule.month is None:
            return None
        if rule.rule.occurrence == Occurrence.LAST:
            return last_weekday_of_month(year, rule.month, rule.rule.weekday)
        return nth_weekday_of_month(year, rule.month, rule.rule.weekday, rule.rule.occurrence.value)

    # Relative rules (e.g., Easter-derived) are not resolved yet
    return None


def rule_from_definition(definition: Mapping[str, Any]) -> HolidayRule:
    """Build a HolidayRule from an already-validated raw definition."""
    kind = HolidayKind(definition.get("type", "fixed"))
    rule_text = definition.get("rule")
    name = definition["name"].strip()
    return HolidayRule(
        id=definition.get("id") or _slug(name),
        name=name,
        kind=kind,
        month=definition.get("month"),
        day=definition.get("day") if kind == HolidayKind.FIXED else None,
        rule=parse_floating_rule(rule_text) if kind == HolidayKind.FLOATING and rule_text else None,
        days_before=definition.get("days_before", 0),
        days_after=definition.get("days_after", 0),
        sales_multiplier=float(definition.get("sales_multiplier", 1.0)),
        description=definition.get("description", ""),
        is_active=bool(definition.get("is_active", True)),
    )


def rule_errors(rule: HolidayRule) -> List[str]:
    """Validation errors for an already-built rule, prefixed with its id."""
    errors = [] if rule.id else ["Holiday id is required"]
    errors.extend(f"{rule.id}: {e}" for e in validate_holiday(rule.to_dict()))
    return errors


def _parsed_changes(changes: Mapping[str, Any]) -> Dict[str, Any]:
    parsed = dict(changes)
    rule = parsed.get("rule")
    if isinstance(rule, str):
        # unparseable text is kept so validation can report it
        parsed["rule"] = parse_floating_rule(rule) or rule
    kind = parsed.get("kind")
    if isinstance(kind, str) and kind in {k.value for k in HolidayKind}:
        parsed["kind"] = HolidayKind(kind)
    return parsed


def neighbouring_years(year: int) -> Tuple[int, int, int]:
    return (year - 1, year, year + 1)


def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


@dataclass(frozen=True)
class HolidayEngine:
    """
    Immutable holiday rule set with per-year memoization.

    Editing operations return new engines; an instance can be shared
    read-only across threads and worker processes.
    """
    rules: Tuple[HolidayRule, ...] = ()
    _cache: Dict[int, Tuple[HolidayInstance, ...]] = field(
        default_factory=dict, repr=False, compare=False, hash=False
    )

    @classmethod
    def from_definitions(cls, definitions: List[Mapping[str, Any]]) -> 'HolidayEngine':
        """
        Validate and parse raw holiday definitions.

        Raises:
            ConfigurationError: With one message per violated constraint.
                Nothing is applied if any definition is invalid.
        """
        errors = validate_holidays(definitions)
        if errors:
            raise ConfigurationError(errors, subject="holiday definitions")
        return cls(rules=tuple(rule_from_definition(d) for d in definitions))

    @classmethod
    def default(cls) -> 'HolidayEngine':
        """Engine with the default US holiday set."""
        return cls.from_definitions(DEFAULT_US_HOLIDAYS)

    # ------------------------------------------------------------------
    # Editing (returns new engines)
    # ------------------------------------------------------------------

    def with_rule(self, rule: HolidayRule) -> 'HolidayEngine':
        """
        Raises:
            ConfigurationError: If the rule is invalid or its id is already used
        """
        errors = rule_errors(rule)
        if any(r.id == rule.id for r in self.rules):
            errors.append(f"{rule.id}: Duplicate holiday id")
        if errors:
            raise ConfigurationError(errors, subject="holiday rule")
        return HolidayEngine(rules=self.rules + (rule,))

    def with_updates(self, holiday_id: str, **changes) -> 'HolidayEngine':
        """
        Change fields of one rule.

        Rule text ("last monday") is parsed and kind may be given as text.
        The updated rule is validated like a loaded definition.

        Raises:
            KeyError: Unknown holiday id
            ConfigurationError: If the updated rule is invalid
        """
        current = next((r for r in self.rules if r.id == holiday_id), None)
        if current is None:
            raise KeyError(f"Unknown holiday id: {holiday_id}")

        updated = replace(current, **_parsed_changes(changes))
        errors = rule_errors(updated)
        if errors:
            raise ConfigurationError(errors, subject=f"holiday {holiday_id}")
        return HolidayEngine(rules=tuple(updated if r.id == holiday_id else r for r in self.rules))

    def without_rule(self, holiday_id: str) -> 'HolidayEngine':
        return HolidayEngine(rules=tuple(r for r in self.rules if r.id != holiday_id))

    @property
    def active_rules(self) -> Tuple[HolidayRule, ...]:
        return tuple(r for r in self.rules if r.is_active)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def instances_for_year(self, year: int) -> Tuple[HolidayInstance, ...]:
        """
        Resolve every active rule for a calendar year.

        Rules that resolve to no date (relative rules, impossible dates)
        are left out.
        """
        cached = self._cache.get(year)
        if cached is not None:
            return cached

        instances = []
        for rule in self.active_rules:
            resolved = resolve_holiday_date(rule, year)
            if resolved is not None:
                instances.append(HolidayInstance(rule=rule, date=resolved, year=year))

        result = tuple(instances)
        self._cache[year] = result
        return result

    def precompute(self, years: Iterable[int]) -> 'HolidayEngine':
        """Resolve instances for several years up front (before sharing the engine)."""
        for year in years:
            self.instances_for_year(year)
        return self

    def list_holidays(self, year: int) -> List[date]:
        """Sorted distinct holiday dates in a year."""
        return sorted({inst.date for inst in self.instances_for_year(year)})

    # ------------------------------------------------------------------
    # Impact
    # ------------------------------------------------------------------

    def impact_factor(self, check_date: date, year: Optional[int] = None) -> HolidayImpact:
        """
        Holiday impact factor for a date.

        Args:
            check_date: Date to evaluate
            year: Only consider this year's holiday instances. By default the
                  instances of check_date's year and both neighbouring years
                  are considered, so windows crossing Jan 1 apply on both sides.

        Returns:
            HolidayImpact with factor in [0.1, 5.0], contributing holidays
            sorted by absolute distance, and a human-readable explanation
        """
        if year is not None:
            instances = self.instances_for_year(year)
        else:
            instances = tuple(
                inst
                for y in neighbouring_years(check_date.year)
                for inst in self.instances_for_year(y)
            )
        affected = self._nearby_holidays(check_date, instances)
        return HolidayImpact(
            factor=combine_impacts([a.impact for a in affected]),
            affected_holidays=affected,
            explanation=explain_impact(affected),
        )

    @staticmethod
    def _nearby_holidays(check_date: date, instances: Iterable[HolidayInstance]) -> Tuple[AffectedHoliday, ...]:
        nearby = []
        for instance in instances:
            rule = instance.rule
            distance = (check_date - instance.date).days
            if not (-rule.days_after <= distance <= rule.days_before):
                continue
            max_distance = max(rule.days_before, rule.days_after)
            if max_distance == 0:
                proximity = 1.0  # zero-width window: only the holiday itself
            else:
                proximity = max(0.0, 1.0 - abs(distance) / max_distance)
            nearby.append(AffectedHoliday(rule=rule, distance=distance, impact=rule.sales_multiplier * proximity))

        # Stable sort keeps rule order for equal distances
        nearby.sort(key=lambda a: abs(a.distance))
        return tuple(nearby)


def combine_impacts(impacts: List[float]) -> float:
    """
    Blend simultaneous holiday impacts into one factor.

    Each impact is weighted by its deviation from 1.0; the weighted sum of
    deviations is normalised by sqrt(sum(weight^2)). One holiday returns its
    own impact; equal overlapping holidays grow with sqrt(n) rather than
    compounding. Clamped to [0.1, 5.0].
    """
    if not impacts:
        return 1.0

    if len(impacts) == 1:
        combined = impacts[0]
    else:
        weighted = 0.0
        sum_sq = 0.0
        for impact in impacts:
            deviation = impact - 1.0
            weight = abs(deviation)
            weighted += deviation * weight
            sum_sq += weight * weight
        combined = 1.0 + weighted / math.sqrt(sum_sq) if sum_sq > 0 else 1.0

    return max(MIN_IMPACT_FACTOR, min(MAX_IMPACT_FACTOR, combined))


def explain_impact(affected: Iterable[AffectedHoliday]) -> str:
    """Human-readable explanation, e.g. "1 day before Thanksgiving (increased sales)"."""
    parts = []
    for a in affected:
        days = abs(a.distance)
        if a.impact > 1.1:
            effect = "increased"
        elif a.impact < 0.9:
            effect = "decreased"
        else:
            effect = "normal"

        if days == 0:
            parts.append(f"{a.rule.name} ({effect} sales)")
        else:
            direction = "before" if a.distance < 0 else "after"
            day_text = "1 day" if days == 1 else f"{days} days"
            parts.append(f"{day_text} {direction} {a.rule.name} ({effect} sales)")

    return ", ".join(parts) if parts else "No holiday impact"


DEFAULT_US_HOLIDAYS: List[Dict[str, Any]] = [
    {"id": "new-years-day", "name": "New Year's Day", "type": "fixed", "month": 1, "day": 1,
     "days_before": 2, "days_after": 1, "sales_multiplier": 0.7,
     "description": "New Year's Day - typically lower sales"},
    {"id": "martin-luther-king-day", "name": "Martin Luther King Jr. Day", "type": "floating",
     "month": 1, "rule": "third monday", "days_before": 0, "days_after": 0, "sales_multiplier": 1.0,
     "description": "MLK Day - normal sales"},
    {"id": "presidents-day", "name": "Presidents Day", "type": "floating", "month": 2,
     "rule": "third monday", "days_before": 0, "days_after": 0, "sales_multiplier": 1.1,
     "description": "Presidents Day - slightly increased sales"},
    {"id": "memorial-day", "name": "Memorial Day", "type": "floating", "month": 5,
     "rule": "last monday", "days_before": 1, "days_after": 0, "sales_multiplier": 1.3,
     "description": "Memorial Day weekend - increased sales"},
    {"id": "independence-day", "name": "Independence Day", "type": "fixed", "month": 7, "day": 4,
     "days_before": 2, "days_after": 1, "sales_multiplier": 1.4,
     "description": "July 4th - significantly increased sales"},
    {"id": "labor-day", "name": "Labor Day", "type": "floating", "month": 9, "rule": "first monday",
     "days_before": 1, "days_after": 0, "sales_multiplier": 1.2,
     "description": "Labor Day weekend - increased sales"},
    {"id": "columbus-day", "name": "Columbus Day", "type": "floating", "month": 10,
     "rule": "second monday", "days_before": 0, "days_after": 0, "sales_multiplier": 1.0,
     "description": "Columbus Day - normal sales", "is_active": False},
    {"id": "halloween", "name": "Halloween", "type": "fixed", "month": 10, "day": 31,
     "days_before": 2, "days_after": 0, "sales_multiplier": 1.2,
     "description": "Halloween - increased party food sales"},
    {"id": "thanksgiving", "name": "Thanksgiving", "type": "floating", "month": 11,
     "rule": "fourth thursday", "days_before": 3, "days_after": 1, "sales_multiplier": 1.8,
     "description": "Thanksgiving - very high sales"},
    {"id": "black-friday", "name": "Black Friday", "type": "floating", "month": 11,
     "rule": "fourth friday", "days_before": 0, "days_after": 0, "sales_multiplier": 0.8,
     "description": "Black Friday - reduced deli sales (people shopping)"},
    {"id": "christmas-eve", "name": "Christmas Eve", "type": "fixed", "month": 12, "day": 24,
     "days_before": 2, "days_after": 0, "sales_multiplier": 1.5,
     "description": "Christmas Eve - high party food sales"},
    {"id": "christmas", "name": "Christmas Day", "type": "fixed", "month": 12, "day": 25,
     "days_before": 0, "days_after": 1, "sales_multiplier": 0.3,
     "description": "Christmas Day - very low sales"},
    {"id": "new-years-eve", "name": "New Year's Eve", "type": "fixed", "month": 12, "day": 31,
     "days_before": 1, "days_after": 0, "sales_multiplier": 1.6,
     "description": "New Year's Eve - high party food sales"},
]
