"""
Centralized validation rules for planning configuration.

Every validator returns the full list of violated constraints (empty list =
valid) so callers can reject a configuration in one go instead of applying
it partially.
"""
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Tuple


MIN_SALES_MULTIPLIER = 0.1
MAX_SALES_MULTIPLIER = 5.0
MAX_WINDOW_DAYS = 14
MAX_DAYS_AHEAD = 14
MIN_GROWTH_RATE = -0.9
MAX_GROWTH_RATE = 5.0


class ConfigurationError(ValueError):
    """Raised when configuration violates one or more constraints."""

    def __init__(self, errors: List[str], subject: Optional[str] = None):
        self.errors = list(errors)
        self.subject = subject
        prefix = f"Invalid {subject}" if subject else "Invalid configuration"
        super().__init__(f"{prefix}: " + "; ".join(self.errors))


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_holiday(definition: Mapping[str, Any]) -> List[str]:
    """
    Validate a raw holiday definition.

    Args:
        definition: Dict with keys name, type, month, day, rule,
                    days_before, days_after, sales_multiplier

    Returns:
        List of error messages (one per violated constraint)
    """
    from production_planner.domain.holidays import parse_floating_rule  # noqa: PLC0415

    errors = []

    name = definition.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append("Holiday name is required")

    kind = definition.get("type", "fixed")
    month = definition.get("month")
    day = definition.get("day")

    if kind not in ("fixed", "floating", "relative"):
        errors.append(f"Holiday type must be 'fixed', 'floating' or 'relative', got {kind!r}")

    if kind == "fixed":
        if not _is_int(month) or not (1 <= month <= 12):
            errors.append("Fixed holidays must have a valid month (1-12)")
        if not _is_int(day) or not (1 <= day <= 31):
            errors.append("Fixed holidays must have a valid day (1-31)")

    if kind == "floating":
        if not _is_int(month) or not (1 <= month <= 12):
            errors.append("Floating holidays must have a valid month (1-12)")
        rule = definition.get("rule")
        if not isinstance(rule, str) or not rule.strip():
            errors.append('Floating holidays must have a rule (e.g., "fourth thursday")')
        elif parse_floating_rule(rule) is None:
            errors.append(f"Floating holiday rule {rule!r} is not of the form '<first|second|third|fourth|last> <weekday>'")

    multiplier = definition.get("sales_multiplier", 1.0)
    if not _is_number(multiplier) or not (MIN_SALES_MULTIPLIER <= multiplier <= MAX_SALES_MULTIPLIER):
        errors.append(f"Sales multiplier must be between {MIN_SALES_MULTIPLIER} and {MAX_SALES_MULTIPLIER}")

    days_before = definition.get("days_before", 0)
    if not _is_int(days_before) or not (0 <= days_before <= MAX_WINDOW_DAYS):
        errors.append(f"Days before must be between 0 and {MAX_WINDOW_DAYS}")

    days_after = definition.get("days_after", 0)
    if not _is_int(days_after) or not (0 <= days_after <= MAX_WINDOW_DAYS):
        errors.append(f"Days after must be between 0 and {MAX_WINDOW_DAYS}")

    return errors


def validate_holidays(definitions: Any) -> List[str]:
    """
    Validate a whole holiday set.

    Errors are prefixed with the holiday's id (or position) so one message
    list can be reported for the entire set.
    """
    if not isinstance(definitions, (list, tuple)):
        return [f"Holiday definitions must be a list, got {type(definitions).__name__}"]

    errors = []
    seen_ids = set()
    for index, definition in enumerate(definitions):
        if not isinstance(definition, Mapping):
            errors.append(f"#{index + 1}: Holiday definition must be an object, got {type(definition).__name__}")
            continue
        if not isinstance(definition.get("id") or "", str):
            errors.append(f"#{index + 1}: Holiday id must be text")
            continue
        label = definition.get("id") or definition.get("name") or f"#{index + 1}"
        for error in validate_holiday(definition):
            errors.append(f"{label}: {error}")
        holiday_id = definition.get("id")
        if holiday_id:
            if holiday_id in seen_ids:
                errors.append(f"{label}: Duplicate holiday id")
            seen_ids.add(holiday_id)
    return errors


def validate_item_config(config) -> List[str]:
    """
    Validate an ItemConfig.

    Args:
        config: ItemConfig instance

    Returns:
        List of error messages
    """
    errors = []
    label = config.item_id or "<missing id>"

    if not config.item_id or not str(config.item_id).strip():
        errors.append("Item id cannot be empty")
    if config.productivity <= 0:
        errors.append(f"{label}: Productivity must be greater than 0 units/hour")
    if config.shelf_life_days < 1:
        errors.append(f"{label}: Shelf life must be at least 1 day")
    if config.min_batch_size < 0:
        errors.append(f"{label}: Minimum batch size cannot be negative")
    if not (1 <= config.max_days_ahead <= MAX_DAYS_AHEAD):
        errors.append(f"{label}: Max days ahead must be between 1 and {MAX_DAYS_AHEAD}")
    if not (MIN_GROWTH_RATE <= config.default_growth_rate <= MAX_GROWTH_RATE):
        errors.append(f"{label}: Growth rate must be between {MIN_GROWTH_RATE} and {MAX_GROWTH_RATE}")

    return errors


def validate_fiscal_anchor(month: int, day: int) -> Tuple[bool, str]:
    """
    Validate the fiscal-year start month/day.

    The anchor must exist in every calendar year, so Feb 29 is rejected.

    Returns:
        (is_valid, error_message)
    """
    if not _is_int(month) or not (1 <= month <= 12):
        return False, f"Fiscal year start month must be 1-12, got {month!r}"
    if not _is_int(day):
        return False, f"Fiscal year start day must be an integer, got {day!r}"
    if month == 2 and day == 29:
        return False, "Fiscal year start cannot be February 29"
    try:
        date(2023, month, day)
    except ValueError:
        return False, f"Fiscal year start {month}/{day} is not a valid calendar day"
    return True, ""


def validate_factor_table(factors: Dict[int, float], keys: range, label: str) -> List[str]:
    """Validate a seasonal or day-of-week factor table."""
    errors = []
    missing = [k for k in keys if k not in factors]
    if missing:
        errors.append(f"{label} factors missing entries for {missing}")
    extra = [k for k in factors if k not in keys]
    if extra:
        errors.append(f"{label} factors have unexpected keys {extra}")
    for key, value in sorted(factors.items()):
        if not _is_number(value) or value <= 0:
            errors.append(f"{label} factor for {key} must be a positive number")
    return errors


def validate_global_settings(settings) -> List[str]:
    """
    Validate GlobalSettings.

    Args:
        settings: GlobalSettings instance

    Returns:
        List of error messages
    """
    errors = []

    ok, message = validate_fiscal_anchor(settings.fiscal_year_start_month, settings.fiscal_year_start_day)
    if not ok:
        errors.append(message)
    if settings.default_productivity <= 0:
        errors.append("Default productivity must be greater than 0 units/hour")
    if settings.default_shelf_life < 1:
        errors.append("Default shelf life must be at least 1 day")
    if settings.default_min_batch_size < 0:
        errors.append("Default minimum batch size cannot be negative")
    if not (1 <= settings.default_max_days_ahead <= MAX_DAYS_AHEAD):
        errors.append(f"Default max days ahead must be between 1 and {MAX_DAYS_AHEAD}")
    if not (MIN_GROWTH_RATE <= settings.default_growth_rate <= MAX_GROWTH_RATE):
        errors.append(f"Default growth rate must be between {MIN_GROWTH_RATE} and {MAX_GROWTH_RATE}")
    if settings.unit_cost < 0:
        errors.append("Unit cost cannot be negative")

    return errors
