"""
Fiscal Calendar Module.

Maps between retail fiscal coordinates (year / period / week / day) and
calendar dates.

Calendar model:
- A fiscal year is 13 periods x 4 weeks x 7 days = 364 days
- Fiscal year N starts on the configured anchor (e.g., September 2) of
  calendar year N-1
- Offset from the anchor = (period-1)*28 + (week-1)*7 + (day-1)

Known approximation:
    Anchors repeat on the same calendar day every year, so each anchor
    interval is 365 or 366 days long while the fiscal grid covers 364.
    The last one or two days of every interval fall outside the grid and
    are clamped to P13 W4 D7. Year-over-year lookups therefore drift by
    1-2 days per year. Lenient conversions report this as a warning; it is
    never corrected silently.

Usage Examples:
    from datetime import date
    from production_planner.domain.fiscal_calendar import FiscalCalendar

    cal = FiscalCalendar()                       # Sept 2 anchor
    cal.to_calendar_date(2025, 1, 1, 1)          # date(2024, 9, 2)
    cal.to_fiscal_date(date(2024, 9, 30))        # FY2025 P2 W1 D1
    cal.corresponding_date_last_year(date(2025, 3, 10))
"""
from dataclasses import dataclass, field
from datetime import date as Date, timedelta
from typing import List, Optional, Tuple
import logging

from production_planner.domain.models import FiscalDate
from production_planner.domain.validation import ConfigurationError, validate_fiscal_anchor

logger = logging.getLogger(__name__)

PERIODS_PER_YEAR = 13
WEEKS_PER_PERIOD = 4
DAYS_PER_WEEK = 7
DAYS_PER_PERIOD = WEEKS_PER_PERIOD * DAYS_PER_WEEK          # 28
DAYS_PER_FISCAL_YEAR = PERIODS_PER_YEAR * DAYS_PER_PERIOD   # 364

MIN_VALID_FISCAL_YEAR = 2020
MAX_VALID_FISCAL_YEAR = 2030


class FiscalDateError(ValueError):
    """Raised when fiscal coordinates are out of range."""
    pass


@dataclass(frozen=True)
class FiscalConversion:
    """
    Result of a lenient conversion.

    Attributes:
        calendar_date: Calendar date (today's date if the input was invalid)
        fiscal_date: Fiscal coordinates of calendar_date
        warnings: Approximation or fallback notes attached to this date
        degraded: True when the input could not be converted and a default was used
    """
    calendar_date: Date
    fiscal_date: FiscalDate
    warnings: Tuple[str, ...] = ()
    degraded: bool = False


@dataclass(frozen=True)
class FiscalCalendar:
    """
    Fiscal calendar anchored on a fixed month/day.

    Attributes:
        start_month: Month of the fiscal-year anchor (1-12)
        start_day: Day of the fiscal-year anchor (Feb 29 not allowed)
    """
    start_month: int = 9
    start_day: int = 2

    def __post_init__(self):
        ok, message = validate_fiscal_anchor(self.start_month, self.start_day)
        if not ok:
            raise ConfigurationError([message], subject="fiscal calendar")

    # ------------------------------------------------------------------
    # Anchors
    # ------------------------------------------------------------------

    def _anchor(self, calendar_year: int) -> Date:
        return Date(calendar_year, self.start_month, self.start_day)

    def fiscal_year_start(self, fiscal_year: int) -> Date:
        """First calendar day of a fiscal year (FY2025 starts in 2024)."""
        return self._anchor(fiscal_year - 1)

    def fiscal_year_end(self, fiscal_year: int) -> Date:
        """Last calendar day before the next fiscal year's anchor."""
        return self.fiscal_year_start(fiscal_year + 1) - timedelta(days=1)

    def is_in_fiscal_year(self, d: Date, fiscal_year: int) -> bool:
        return self.fiscal_year_start(fiscal_year) <= d <= self.fiscal_year_end(fiscal_year)

    def fiscal_year_of(self, d: Date) -> int:
        return self._locate(d)[0]

    def _locate(self, d: Date) -> Tuple[int, int]:
        """Return (fiscal_year, day offset from that year's anchor)."""
        anchor_year = d.year if d >= self._anchor(d.year) else d.year - 1
        offset = (d - self._anchor(anchor_year)).days
        return anchor_year + 1, offset

    # ------------------------------------------------------------------
    # Strict conversions
    # ------------------------------------------------------------------

    def to_calendar_date(self, fiscal_year: int, period: int, week: int, day: int) -> Date:
        """
        Convert fiscal coordinates to a calendar date.

        Raises:
            FiscalDateError: If a component is out of range
        """
        values = (fiscal_year, period, week, day)
        if not all(isinstance(v, int) and not isinstance(v, bool) for v in values):
            raise FiscalDateError(f"Fiscal coordinates must be integers, got {values!r}")
        errors = _coordinate_errors(period, week, day)
        if errors:
            raise FiscalDateError("; ".join(errors))
        offset = (period - 1) * DAYS_PER_PERIOD + (week - 1) * DAYS_PER_WEEK + (day - 1)
        try:
            return self.fiscal_year_start(fiscal_year) + timedelta(days=offset)
        except (ValueError, OverflowError) as e:
            raise FiscalDateError(f"Fiscal year {fiscal_year} cannot be mapped to a calendar date: {e}") from e

    def to_fiscal_date(self, d: Date) -> FiscalDate:
        """
        Convert a calendar date to fiscal coordinates.

        Dates past day 364 of their anchor interval are clamped to P13 W4 D7
        (see module docstring).
        """
        fiscal_year, offset = self._locate(d)
        period = offset // DAYS_PER_PERIOD + 1
        remaining = offset % DAYS_PER_PERIOD
        week = remaining // DAYS_PER_WEEK + 1
        day = remaining % DAYS_PER_WEEK + 1

        if period > PERIODS_PER_YEAR:
            # Days 365/366 of the interval: no slot left in the 364-day grid
            period, week, day = PERIODS_PER_YEAR, WEEKS_PER_PERIOD, DAYS_PER_WEEK

        return FiscalDate(
            fiscal_year=fiscal_year,
            fiscal_period=max(1, min(PERIODS_PER_YEAR, period)),
            fiscal_week=max(1, min(WEEKS_PER_PERIOD, week)),
            fiscal_day=max(1, min(DAYS_PER_WEEK, day)),
        )

    def from_fiscal_date(self, fiscal_date: FiscalDate) -> Date:
        return self.to_calendar_date(
            fiscal_date.fiscal_year,
            fiscal_date.fiscal_period,
            fiscal_date.fiscal_week,
            fiscal_date.fiscal_day,
        )

    def corresponding_date_last_year(self, d: Date) -> Date:
        """
        Same fiscal coordinates one fiscal year earlier.

        Used to align year-over-year comparisons on fiscal day-of-year.
        """
        fd = self.to_fiscal_date(d)
        return self.to_calendar_date(fd.fiscal_year - 1, fd.fiscal_period, fd.fiscal_week, fd.fiscal_day)

    def is_boundary_date(self, d: Date) -> bool:
        """True if the date lies beyond the 364-day grid of its fiscal year."""
        return self._locate(d)[1] >= DAYS_PER_FISCAL_YEAR

    # ------------------------------------------------------------------
    # Lenient conversions (never raise, report warnings instead)
    # ------------------------------------------------------------------

    def convert_to_calendar_date(
        self,
        fiscal_year: int,
        period: int,
        week: int,
        day: int,
        today: Optional[Date] = None,
    ) -> FiscalConversion:
        """
        Convert fiscal coordinates, degrading to the current date on bad input.

        Args:
            fiscal_year, period, week, day: Fiscal coordinates
            today: Fallback date (defaults to Date.today())

        Returns:
            FiscalConversion; degraded=True and a warning when the fallback was used
        """
        try:
            calendar_date = self.to_calendar_date(fiscal_year, period, week, day)
        except FiscalDateError as e:
            fallback = today or Date.today()
            message = (
                f"Invalid fiscal date FY{fiscal_year} P{period} W{week} D{day} ({e}); "
                f"using {fallback.isoformat()}"
            )
            logger.warning(message)
            return FiscalConversion(
                calendar_date=fallback,
                fiscal_date=self.to_fiscal_date(fallback),
                warnings=(message,),
                degraded=True,
            )
        return FiscalConversion(calendar_date=calendar_date, fiscal_date=self.to_fiscal_date(calendar_date))

    def convert_to_fiscal_date(self, d: Date) -> FiscalConversion:
        """Convert a calendar date, attaching a drift warning near fiscal-year boundaries."""
        fd = self.to_fiscal_date(d)
        warnings: Tuple[str, ...] = ()
        if self.is_boundary_date(d):
            warnings = (boundary_warning(d, fd),)
        return FiscalConversion(calendar_date=d, fiscal_date=fd, warnings=warnings)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def fiscal_period_dates(self, fiscal_year: int, period: int) -> List[Date]:
        """All 28 calendar dates of a fiscal period."""
        start = self.to_calendar_date(fiscal_year, period, 1, 1)
        return [start + timedelta(days=i) for i in range(DAYS_PER_PERIOD)]


def boundary_warning(d: Date, fd: FiscalDate) -> str:
    return (
        f"{d.isoformat()} lies beyond the 364-day fiscal grid and was clamped to {fd}; "
        f"year-over-year alignment may drift by 1-2 days"
    )


def _coordinate_errors(period: int, week: int, day: int) -> List[str]:
    errors = []
    if not (1 <= period <= PERIODS_PER_YEAR):
        errors.append(f"period must be 1-{PERIODS_PER_YEAR}, got {period}")
    if not (1 <= week <= WEEKS_PER_PERIOD):
        errors.append(f"week must be 1-{WEEKS_PER_PERIOD}, got {week}")
    if not (1 <= day <= DAYS_PER_WEEK):
        errors.append(f"day must be 1-{DAYS_PER_WEEK}, got {day}")
    return errors


def fiscal_quarter(fiscal_period: int) -> int:
    """Fiscal quarter for a period (period 13 falls in quarter 5)."""
    return (fiscal_period + 2) // 3


def is_valid_fiscal_date(fd: FiscalDate) -> bool:
    return (
        MIN_VALID_FISCAL_YEAR <= fd.fiscal_year <= MAX_VALID_FISCAL_YEAR
        and 1 <= fd.fiscal_period <= PERIODS_PER_YEAR
        and 1 <= fd.fiscal_week <= WEEKS_PER_PERIOD
        and 1 <= fd.fiscal_day <= DAYS_PER_WEEK
    )


def format_fiscal_date(fd: FiscalDate) -> str:
    return str(fd)


DEFAULT_CALENDAR = FiscalCalendar()
