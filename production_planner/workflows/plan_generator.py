"""
Plan workflow: per-item forecasting + batch decisions, aggregated into a ProductionPlan.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import logging
import math

from ..batch_optimizer import BatchOptimizer, fallback_decision
from ..config import PLANNER_VERSION, GlobalSettings
from ..domain.holidays import HolidayEngine, neighbouring_years
from ..domain.models import (
    BatchDecision,
    BatchOption,
    CarryoverStock,
    DateRange,
    ItemConfig,
    ItemStatus,
    MultiDayDemand,
    PlanItemFailure,
    PlanMetadata,
    ProductionPlan,
    ProductionPlanItem,
    ProductionSummary,
    SalesRecord,
)
from ..domain.validation import ConfigurationError, validate_global_settings, validate_item_config
from ..forecast import DemandForecaster

logger = logging.getLogger(__name__)

NO_DATA_REASONING = "No historical data available"


@dataclass(frozen=True)
class ItemTask:
    """Immutable inputs for planning one item (safe to ship to a worker process)."""
    config: ItemConfig
    records: Tuple[SalesRecord, ...]
    carryover: Optional[CarryoverStock] = None


@dataclass(frozen=True)
class ItemOutcome:
    """Planned item plus the failure that degraded it, if any."""
    item: ProductionPlanItem
    failure: Optional[PlanItemFailure] = None


def _average(values: Iterable[Optional[float]]) -> float:
    """Mean of the numeric values, ignoring None/NaN; 0 if nothing is left."""
    clean = [v for v in values if v is not None and not (isinstance(v, float) and math.isnan(v))]
    return sum(clean) / len(clean) if clean else 0.0


def _empty_demand(config: ItemConfig) -> MultiDayDemand:
    return MultiDayDemand(total_demand=0, daily_forecasts=(), days_ahead=config.max_days_ahead, confidence_score=0.0)


def _no_data_decision() -> BatchDecision:
    no_data = BatchOption(size=0, efficiency=0.0, waste_risk=0.0, cost=0.0, reasoning="No data")
    return BatchDecision(
        recommended_batch_size=0,
        produce_today=0,
        hours_needed=0.0,
        reasoning=NO_DATA_REASONING,
        options=(),
        selected_option=no_data,
        efficiency_score=0.0,
        waste_risk_score=0.0,
    )


def _blank_item(
    config: ItemConfig,
    status: ItemStatus,
    decision: BatchDecision,
    reasons: Tuple[str, ...],
    warnings: Tuple[str, ...] = (),
    error: Optional[str] = None,
) -> ProductionPlanItem:
    """Plan item without forecast data (no history, or a failed computation)."""
    return ProductionPlanItem(
        item_id=config.item_id,
        item_description=config.item_description,
        status=status,
        old_stock_start=0.0,
        old_stock_end=0.0,
        stock_age=0,
        new_stock_end=float(decision.produce_today),
        is_expired=False,
        last_year_units=0.0,
        two_years_ago_units=0.0,
        date_factor=1.0,
        date_factor_reasons=reasons,
        seasonal_factor=1.0,
        holiday_factor=1.0,
        day_of_week_factor=1.0,
        multi_day_demand=_empty_demand(config),
        today_need=0.0,
        batch_decision=decision,
        productivity=config.productivity,
        shelf_life_days=config.shelf_life_days,
        growth_rate=config.default_growth_rate,
        min_batch_size=config.min_batch_size,
        max_days_ahead=config.max_days_ahead,
        warnings=warnings,
        error=error,
    )


def no_data_item(config: ItemConfig) -> ProductionPlanItem:
    """Zero-production item for an item without historical records."""
    return _blank_item(config, ItemStatus.NO_DATA, _no_data_decision(), (NO_DATA_REASONING,))


def degraded_outcome(task: ItemTask, error: BaseException) -> ItemOutcome:
    """Minimum-batch item used when planning the item failed."""
    config = task.config
    message = f"{type(error).__name__}: {error}"
    decision = fallback_decision(config, message)
    item = _blank_item(
        config,
        ItemStatus.DEGRADED,
        decision,
        ("Planning failed - minimum batch size used",),
        warnings=decision.warnings,
        error=message,
    )
    failure = PlanItemFailure(item_id=config.item_id, error_type=type(error).__name__, message=str(error))
    return ItemOutcome(item=item, failure=failure)


def plan_item(
    task: ItemTask,
    plan_date: date,
    forecaster: DemandForecaster,
    optimizer: BatchOptimizer,
) -> ItemOutcome:
    """
    Plan one item.

    Never raises: a failure anywhere in forecasting or optimization returns
    a degraded minimum-batch item together with a PlanItemFailure.

    Args:
        task: Item config, its records (already filtered) and carry-over stock
        plan_date: Production date
        forecaster: Demand forecaster (immutable)
        optimizer: Batch optimizer (stateless)

    Returns:
        ItemOutcome
    """
    config = task.config
    if not task.records:
        return ItemOutcome(item=no_data_item(config))

    try:
        return _plan_item(task, plan_date, forecaster, optimizer)
    except Exception as exc:
        logger.warning(f"Planning failed for item {config.item_id}: {exc}. Using minimum batch size.")
        return degraded_outcome(task, exc)


def _plan_item(
    task: ItemTask,
    plan_date: date,
    forecaster: DemandForecaster,
    optimizer: BatchOptimizer,
) -> ItemOutcome:
    config = task.config
    records = task.records
    item_id = config.item_id

    description = next((r.item_description for r in records if r.item_description), config.item_description)

    # Carry-over stock (FIFO: old stock sells first, expired stock is written off)
    carryover = task.carryover
    old_stock_start = float(carryover.units) if carryover else 0.0
    stock_age = carryover.age_days if carryover else 0
    is_expired = stock_age > config.shelf_life_days
    usable_stock = 0.0 if is_expired else old_stock_start

    multi_day = forecaster.forecast_multi_day(
        records, plan_date, config.max_days_ahead, config.default_growth_rate, item_id
    )
    today = forecaster.forecast(records, plan_date, config.default_growth_rate, item_id)
    holiday_impact = forecaster.holiday_engine.impact_factor(plan_date)

    decision = optimizer.optimize(multi_day, usable_stock, config)

    today_need = today.forecast
    old_stock_end = 0.0 if is_expired else max(0.0, old_stock_start - today_need)
    new_stock_end = max(0.0, decision.produce_today - max(0.0, today_need - usable_stock))

    reasons = [holiday_impact.explanation]
    if today.explanation and today.explanation != "Normal demand expected":
        reasons.append(today.explanation)

    factors = today.factors
    item = ProductionPlanItem(
        item_id=item_id,
        item_description=description,
        status=ItemStatus.DEGRADED if decision.degraded else ItemStatus.OK,
        old_stock_start=old_stock_start,
        old_stock_end=old_stock_end,
        stock_age=stock_age,
        new_stock_end=new_stock_end,
        is_expired=is_expired,
        last_year_units=_average(r.last_year_units for r in records),
        two_years_ago_units=_average(r.two_years_ago_units for r in records),
        date_factor=factors.holiday * factors.seasonal * factors.day_of_week,
        date_factor_reasons=tuple(reasons),
        seasonal_factor=factors.seasonal,
        holiday_factor=factors.holiday,
        day_of_week_factor=factors.day_of_week,
        multi_day_demand=multi_day,
        today_need=today_need,
        batch_decision=decision,
        productivity=config.productivity,
        shelf_life_days=config.shelf_life_days,
        growth_rate=config.default_growth_rate,
        min_batch_size=config.min_batch_size,
        max_days_ahead=config.max_days_ahead,
        warnings=decision.warnings,
        error=decision.warnings[-1] if decision.degraded and decision.warnings else None,
    )

    failure = None
    if decision.degraded:
        failure = PlanItemFailure(item_id=item_id, error_type="BatchOptimizationError", message=item.error or "")
    return ItemOutcome(item=item, failure=failure)


def summarize(items: Sequence[ProductionPlanItem], unit_cost: float) -> ProductionSummary:
    """
    Plan-level aggregates.

    active_items counts items producing today; the efficiency mean skips
    items with no efficiency score (no data, no production).
    """
    total_units = sum(i.batch_decision.produce_today for i in items)
    efficiency_scores = [i.batch_decision.efficiency_score for i in items if i.batch_decision.efficiency_score > 0]
    waste_scores = [i.batch_decision.waste_risk_score for i in items]

    return ProductionSummary(
        total_items=len(items),
        active_items=sum(1 for i in items if i.batch_decision.produce_today > 0),
        total_units=total_units,
        total_hours=sum(i.batch_decision.hours_needed for i in items),
        items_with_carryover=sum(1 for i in items if i.old_stock_start > 0),
        expired_items=sum(1 for i in items if i.is_expired),
        batch_efficiency_score=sum(efficiency_scores) / len(efficiency_scores) if efficiency_scores else 0.0,
        estimated_cost=total_units * unit_cost,
        waste_risk_score=sum(waste_scores) / len(waste_scores) if waste_scores else 0.0,
    )


def _data_sources(records: Iterable[SalesRecord]) -> Tuple[str, ...]:
    seen: Dict[str, None] = {}
    for r in records:
        if r.data_source:
            seen.setdefault(r.data_source, None)
    return tuple(seen)


def _horizon_years(plan_date: date, days: int) -> List[int]:
    """Years whose holiday instances can affect the planning days."""
    years = {(plan_date + timedelta(days=i)).year for i in range(max(1, days))}
    return sorted({y for year in years for y in neighbouring_years(year)})


@dataclass(frozen=True)
class PlanGenerator:
    """
    Orchestrates forecasting and batch optimization into a ProductionPlan.

    Immutable: the with_* methods return new generators.

    Example:
        >>> generator = PlanGenerator.from_settings(GlobalSettings(), HolidayEngine.default())
        >>> plan = generator.generate(records, DateRange(start, end), ["12345"], item_configs)
    """
    settings: GlobalSettings = field(default_factory=GlobalSettings)
    forecaster: DemandForecaster = field(default_factory=DemandForecaster)
    optimizer: BatchOptimizer = field(default_factory=BatchOptimizer)

    @classmethod
    def from_settings(cls, settings: GlobalSettings, holiday_engine: Optional[HolidayEngine] = None) -> 'PlanGenerator':
        """
        Raises:
            ConfigurationError: If the settings are invalid
        """
        errors = validate_global_settings(settings)
        if errors:
            raise ConfigurationError(errors, subject="settings")
        engine = holiday_engine if holiday_engine is not None else HolidayEngine.default()
        forecaster = DemandForecaster(holiday_engine=engine, fiscal_calendar=settings.fiscal_calendar())
        return cls(settings=settings, forecaster=forecaster)

    @property
    def holiday_engine(self) -> HolidayEngine:
        return self.forecaster.holiday_engine

    def with_holiday_engine(self, engine: HolidayEngine) -> 'PlanGenerator':
        return PlanGenerator(self.settings, self.forecaster.with_holiday_engine(engine), self.optimizer)

    def with_seasonal_factors(self, factors: Mapping[int, float]) -> 'PlanGenerator':
        return PlanGenerator(self.settings, self.forecaster.with_seasonal_factors(factors), self.optimizer)

    def with_day_of_week_factors(self, factors: Mapping[int, float]) -> 'PlanGenerator':
        return PlanGenerator(self.settings, self.forecaster.with_day_of_week_factors(factors), self.optimizer)

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def build_tasks(
        self,
        records: Sequence[SalesRecord],
        date_range: DateRange,
        selected_items: Sequence[str],
        item_configs: Mapping[str, ItemConfig],
        carryover: Optional[Mapping[str, CarryoverStock]] = None,
    ) -> List[ItemTask]:
        """
        One task per selected, active item, in selection order.

        Items without a config use the settings' defaults. Records are
        filtered to the item and the date range.
        """
        carryover = carryover or {}
        by_item: Dict[str, List[SalesRecord]] = {item_id: [] for item_id in selected_items}
        for r in records:
            if r.item_id in by_item and date_range.contains(r.calendar_date):
                by_item[r.item_id].append(r)

        tasks = []
        seen = set()
        for item_id in selected_items:
            if item_id in seen:
                continue
            seen.add(item_id)

            config = item_configs.get(item_id)
            if config is None:
                description = next((r.item_description for r in by_item[item_id] if r.item_description), "")
                config = self.settings.default_item_config(item_id, description)
            if not config.is_active:
                logger.info(f"Skipping inactive item {item_id}")
                continue

            tasks.append(ItemTask(config=config, records=tuple(by_item[item_id]), carryover=carryover.get(item_id)))
        return tasks

    def generate(
        self,
        records: Sequence[SalesRecord],
        date_range: DateRange,
        selected_items: Sequence[str],
        item_configs: Mapping[str, ItemConfig],
        carryover: Optional[Mapping[str, CarryoverStock]] = None,
        generated_at: Optional[datetime] = None,
        max_workers: int = 1,
    ) -> ProductionPlan:
        """
        Generate a production plan for date_range.start.

        Args:
            records: Validated sales history (any items)
            date_range: History window; the plan is made for its start date
            selected_items: Item ids to plan, in output order
            item_configs: Per-item configuration keyed by item id
            carryover: Stock left from previous production, keyed by item id
            generated_at: Metadata timestamp (defaults to now)
            max_workers: >1 fans items out to a process pool

        Returns:
            ProductionPlan with one item per selected active item

        Raises:
            ConfigurationError: If the settings or any item config are invalid
                (nothing is planned)
        """
        errors = validate_global_settings(self.settings)
        for config in item_configs.values():
            errors.extend(validate_item_config(config))
        if errors:
            raise ConfigurationError(errors, subject="planning configuration")

        plan_date = date_range.start
        tasks = self.build_tasks(records, date_range, selected_items, item_configs, carryover)
        horizon = max((t.config.max_days_ahead for t in tasks), default=self.settings.default_max_days_ahead)

        # Resolve holiday instances once; workers receive the filled cache
        self.holiday_engine.precompute(_horizon_years(plan_date, horizon))

        if max_workers > 1 and len(tasks) > 1:
            from .parallel import plan_items_parallel
            outcomes = plan_items_parallel(tasks, plan_date, self.forecaster, self.optimizer, max_workers)
        else:
            outcomes = [plan_item(t, plan_date, self.forecaster, self.optimizer) for t in tasks]

        items = tuple(o.item for o in outcomes)
        failures = tuple(o.failure for o in outcomes if o.failure is not None)
        if failures:
            logger.warning(f"{len(failures)} item(s) planned with degraded results: {[f.item_id for f in failures]}")

        calendar = self.forecaster.fiscal_calendar
        fiscal = calendar.convert_to_fiscal_date(plan_date)

        metadata = PlanMetadata(
            generated_at=generated_at or datetime.now(),
            data_sources=_data_sources(records),
            holidays_considered=self.holiday_engine.active_rules,
            planning_horizon=horizon,
            fiscal_year_start=calendar.fiscal_year_start(fiscal.fiscal_date.fiscal_year),
            version=PLANNER_VERSION,
            settings=self.settings.to_dict(),
            warnings=fiscal.warnings,
            failures=failures,
        )

        return ProductionPlan(
            date=plan_date,
            items=items,
            summary=summarize(items, self.settings.unit_cost),
            metadata=metadata,
        )


def generate_plan(
    records: Sequence[SalesRecord],
    date_range: DateRange,
    selected_items: Sequence[str],
    item_configs: Mapping[str, ItemConfig],
    settings: GlobalSettings,
    holiday_engine: Optional[HolidayEngine] = None,
    carryover: Optional[Mapping[str, CarryoverStock]] = None,
    generated_at: Optional[datetime] = None,
    max_workers: int = 1,
) -> ProductionPlan:
    """
    One-shot planning entry point.

    holiday_engine=None uses the default US holiday set; pass HolidayEngine()
    for no holiday effects.
    """
    generator = PlanGenerator.from_settings(settings, holiday_engine)
    return generator.generate(
        records,
        date_range,
        selected_items,
        item_configs,
        carryover=carryover,
        generated_at=generated_at,
        max_workers=max_workers,
    )
