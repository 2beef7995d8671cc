"""
Planner configuration: global settings, item configs and holiday rules.

The planning core only receives these as immutable values. This module is
the one place that reads them from a JSON document of the form:

    {
      "settings": {"fiscal_year_start": {"month": 9, "day": 2}, "default_productivity": 5, ...},
      "items": [{"item_id": "12345", "productivity": 8, "shelf_life_days": 3, ...}],
      "holidays": [{"id": "thanksgiving", "name": "Thanksgiving", "type": "floating", ...}]
    }

Missing file or missing sections fall back to defaults. Invalid content is
rejected as a whole with every violated constraint listed.
"""
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional
import json
import logging

from production_planner.domain.fiscal_calendar import FiscalCalendar
from production_planner.domain.holidays import HolidayEngine
from production_planner.domain.models import ItemConfig
from production_planner.domain.validation import (
    ConfigurationError,
    validate_global_settings,
    validate_item_config,
)

logger = logging.getLogger(__name__)

PLANNER_VERSION = "1.0.0"


@dataclass(frozen=True)
class GlobalSettings:
    """
    Application-wide planning defaults.

    Attributes:
        fiscal_year_start_month: Fiscal-year anchor month (1-12)
        fiscal_year_start_day: Fiscal-year anchor day
        default_productivity: Units per labor hour for items without config
        default_shelf_life: Days
        default_min_batch_size: Units
        default_max_days_ahead: Demand horizon in days
        default_growth_rate: e.g. 0.10 for +10%
        unit_cost: Average cost per unit for plan cost estimates
        currency: Currency code used by reports
    """
    fiscal_year_start_month: int = 9
    fiscal_year_start_day: int = 2
    default_productivity: float = 5.0
    default_shelf_life: int = 3
    default_min_batch_size: int = 10
    default_max_days_ahead: int = 3
    default_growth_rate: float = 0.10
    unit_cost: float = 2.5
    currency: str = "USD"

    def fiscal_calendar(self) -> FiscalCalendar:
        return FiscalCalendar(self.fiscal_year_start_month, self.fiscal_year_start_day)

    def default_item_config(self, item_id: str, item_description: str = "") -> ItemConfig:
        """ItemConfig built from the defaults, for items without their own config."""
        return ItemConfig(
            item_id=item_id,
            item_description=item_description,
            productivity=self.default_productivity,
            shelf_life_days=self.default_shelf_life,
            min_batch_size=self.default_min_batch_size,
            max_days_ahead=self.default_max_days_ahead,
            default_growth_rate=self.default_growth_rate,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PlannerConfig:
    """Everything a planning run needs besides sales records."""
    settings: GlobalSettings = field(default_factory=GlobalSettings)
    item_configs: Dict[str, ItemConfig] = field(default_factory=dict)
    holiday_engine: HolidayEngine = field(default_factory=HolidayEngine.default)


def settings_from_dict(data: Mapping[str, Any]) -> GlobalSettings:
    """
    Build GlobalSettings from a settings section.

    Accepts the nested {"fiscal_year_start": {"month", "day"}} form as well as
    flat fiscal_year_start_month / fiscal_year_start_day keys.

    Raises:
        ConfigurationError: Unknown keys, wrong types or out-of-range values
    """
    if not isinstance(data, Mapping):
        raise ConfigurationError([f"Settings must be an object, got {type(data).__name__}"], subject="settings")

    values = dict(data)
    anchor = values.pop("fiscal_year_start", None)
    if isinstance(anchor, Mapping):
        values.setdefault("fiscal_year_start_month", anchor.get("month"))
        values.setdefault("fiscal_year_start_day", anchor.get("day"))

    known = {f.name for f in fields(GlobalSettings)}
    errors = [f"Unknown setting: {key}" for key in sorted(values) if key not in known]
    if anchor is not None and not isinstance(anchor, Mapping):
        errors.append("fiscal_year_start must be an object with month and day")
    if errors:
        raise ConfigurationError(errors, subject="settings")

    try:
        settings = GlobalSettings(**values)
        errors = validate_global_settings(settings)
    except TypeError as e:
        raise ConfigurationError([str(e)], subject="settings") from e
    if errors:
        raise ConfigurationError(errors, subject="settings")
    return settings


def item_configs_from_list(items: List[Mapping[str, Any]], settings: GlobalSettings) -> Dict[str, ItemConfig]:
    """
    Build item configs keyed by item id; missing fields take the settings' defaults.

    Raises:
        ConfigurationError: Listing every invalid field of every item
    """
    if not isinstance(items, (list, tuple)):
        raise ConfigurationError([f"Items must be a list, got {type(items).__name__}"], subject="item configs")

    known = {f.name for f in fields(ItemConfig)}
    configs: Dict[str, ItemConfig] = {}
    errors: List[str] = []

    for index, raw in enumerate(items):
        if not isinstance(raw, Mapping):
            errors.append(f"item #{index + 1}: must be an object, got {type(raw).__name__}")
            continue
        item_id = str(raw.get("item_id", "")).strip()
        label = item_id or f"item #{index + 1}"
        unknown = [key for key in raw if key not in known]
        if unknown:
            errors.append(f"{label}: unknown fields {sorted(unknown)}")
            continue
        if item_id in configs:
            errors.append(f"{label}: duplicate item id")
            continue

        base = asdict(settings.default_item_config(item_id))
        base.update(raw)
        base["item_id"] = item_id
        try:
            config = ItemConfig(**base)
            config_errors = validate_item_config(config)
        except TypeError as e:
            errors.append(f"{label}: {e}")
            continue
        if config_errors:
            errors.extend(config_errors)
            continue
        configs[item_id] = config

    if errors:
        raise ConfigurationError(errors, subject="item configs")
    return configs


def load_config(config_path: Optional[Path]) -> PlannerConfig:
    """
    Load planner configuration from a JSON file.

    Fallback: If the file is missing, returns defaults (default settings,
    no item configs, default US holidays).

    Args:
        config_path: Path to planner.json

    Returns:
        PlannerConfig

    Raises:
        ConfigurationError: If the file is unreadable or any section is invalid
    """
    if config_path is None or not Path(config_path).exists():
        logger.info(f"No planner config at {config_path}; using defaults")
        return PlannerConfig()

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            document = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        raise ConfigurationError([f"Could not read {config_path}: {e}"], subject="config file") from e

    if not isinstance(document, dict):
        raise ConfigurationError(["Top-level JSON value must be an object"], subject="config file")

    # Every section is checked so one error lists all problems in the file
    errors: List[str] = []
    settings = GlobalSettings()
    try:
        settings = settings_from_dict(document.get("settings", {}))
    except ConfigurationError as e:
        errors.extend(e.errors)

    item_configs: Dict[str, ItemConfig] = {}
    try:
        item_configs = item_configs_from_list(document.get("items", []), settings)
    except ConfigurationError as e:
        errors.extend(e.errors)

    holiday_engine = None
    try:
        if "holidays" in document:
            holiday_engine = HolidayEngine.from_definitions(document["holidays"])
        else:
            holiday_engine = HolidayEngine.default()
    except ConfigurationError as e:
        errors.extend(e.errors)

    if errors:
        raise ConfigurationError(errors, subject=f"config file {config_path}")

    return PlannerConfig(settings=settings, item_configs=item_configs, holiday_engine=holiday_engine)
