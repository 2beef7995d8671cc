"""
Batch Size Optimization

Balances production efficiency against waste risk for perishable items.

Candidates (generation order, near-duplicates within 2 units dropped):
    1. Minimum batch size
    2. Exact net demand (ceiling)
    3. Total demand (also replaces current stock), if different
    4. Shelf-life constrained maximum, if above net demand
    5. Economic batch: max(min_batch, ceil(sqrt(net_demand x 2.0)))

Score:
    efficiency - 3.0 x waste_risk
    + 0.2 if size >= min_batch
    - 0.3 if size < 0.5 x min_batch
    + 0.1 if size >= 0.9 x (total_demand + current_stock)
    + 0.1 x forecast confidence
    - 0.5 x (overproduction - 1.5) if size / total_demand > 1.5

The strictly highest score wins; ties go to the earlier candidate.
"""

from dataclasses import dataclass, replace
from typing import List, Sequence, Tuple
import logging
import math

from production_planner.domain.models import BatchDecision, BatchOption, ItemConfig, MultiDayDemand

logger = logging.getLogger(__name__)

SETUP_COST_FACTOR = 2.0
DEDUP_TOLERANCE = 2
SETUP_COST = 50.0
VARIABLE_COST_PER_UNIT = 2.0

# Fallbacks when a config value is zero
FALLBACK_MIN_BATCH = 10
FALLBACK_SHELF_LIFE = 3
FALLBACK_DAYS_AHEAD = 3

WASTE_WEIGHT = 3.0
MIN_BATCH_BONUS = 0.2
SMALL_BATCH_PENALTY = 0.3
COVERAGE_BONUS = 0.1
CONFIDENCE_WEIGHT = 0.1
OVERPRODUCTION_THRESHOLD = 1.5
OVERPRODUCTION_WEIGHT = 0.5

FALLBACK_REASONING = "Error in batch calculation - using minimum batch size"


@dataclass(frozen=True)
class _Context:
    """Per-call inputs shared by candidate generation and scoring."""
    net_demand: float
    total_demand: float
    current_stock: float
    min_batch: int
    shelf_life: int
    days_ahead: int
    confidence: float


def batch_cost(size: float) -> float:
    """Simplified cost model: fixed setup + variable cost per unit."""
    return SETUP_COST + VARIABLE_COST_PER_UNIT * size


def calculate_waste_risk(batch_size: float, total_demand: float, shelf_life: int, days_ahead: int) -> float:
    """
    Probability-like risk that a batch outlives its shelf life.

    Args:
        batch_size: Candidate size
        total_demand: Demand over the horizon
        shelf_life: Shelf life in days
        days_ahead: Horizon length in days

    Returns:
        Risk in [0, 1]; 0 when the batch does not exceed total demand

    Examples:
        >>> calculate_waste_risk(8, 8, 3, 3)
        0.0
    """
    if batch_size <= total_demand:
        return 0.0

    excess_ratio = (batch_size - total_demand) / batch_size
    consumption_rate = max(0.1, total_demand / max(1, days_ahead))
    days_to_consume = batch_size / consumption_rate

    if days_to_consume <= shelf_life:
        return min(1.0, excess_ratio * 0.3)

    expiration_risk = max(0.0, (days_to_consume - shelf_life) / shelf_life)
    return min(1.0, excess_ratio + expiration_risk * 0.5)


def shelf_life_constrained_max(total_demand: float, shelf_life: int, days_ahead: int) -> int:
    """Most units consumable before expiry, never below total demand."""
    daily_consumption = total_demand / max(1, days_ahead)
    max_safe = daily_consumption * min(shelf_life, days_ahead + 1)
    return int(math.ceil(max(total_demand, max_safe)))


def economic_batch_quantity(net_demand: float, min_batch: int) -> int:
    """Square-root sizing rule approximating setup-cost amortization."""
    return max(min_batch, int(math.ceil(math.sqrt(net_demand * SETUP_COST_FACTOR))))


def hours_for(size: float, productivity: float) -> float:
    return size / productivity if productivity > 0 else 0.0


def productivity_warnings(config: ItemConfig) -> Tuple[str, ...]:
    if config.productivity <= 0:
        return (f"Item {config.item_id}: productivity is {config.productivity} units/hour; hours needed reported as 0",)
    return ()


def _option(size: float, ctx: _Context, reasoning: str) -> BatchOption:
    size = int(math.ceil(size))
    return BatchOption(
        size=size,
        efficiency=max(0.0, size / ctx.net_demand),
        waste_risk=calculate_waste_risk(size, ctx.total_demand, ctx.shelf_life, ctx.days_ahead),
        cost=batch_cost(size),
        reasoning=reasoning,
    )


def _near_existing(size: int, options: Sequence[BatchOption]) -> bool:
    return any(abs(o.size - size) <= DEDUP_TOLERANCE for o in options)


def generate_options(ctx: _Context) -> List[BatchOption]:
    """Candidate batch sizes in generation order, near-duplicates removed."""
    candidates: List[BatchOption] = []
    days = ctx.days_ahead

    # 1. Minimum batch size
    if ctx.min_batch > 0:
        if ctx.min_batch >= ctx.net_demand:
            reasoning = f"Min batch ({ctx.min_batch}) covers {days}-day demand"
        else:
            reasoning = f"Min batch ({ctx.min_batch}) - will need additional production soon"
        candidates.append(_option(ctx.min_batch, ctx, reasoning))

    # 2. Exact net demand (efficiency 1.0 by construction)
    exact = int(math.ceil(ctx.net_demand))
    candidates.append(replace(
        _option(exact, ctx, f"Exact net demand ({exact}) for {days} days"),
        efficiency=1.0,
    ))

    # 3. Total demand, also replacing current stock
    if ctx.total_demand > ctx.net_demand:
        total = int(math.ceil(ctx.total_demand))
        candidates.append(_option(total, ctx, f"Total demand ({total}) for {days} days - covers all needs"))

    # 4. Shelf-life constrained maximum
    max_safe = shelf_life_constrained_max(ctx.total_demand, ctx.shelf_life, days)
    if max_safe > ctx.net_demand and max_safe != ctx.total_demand:
        candidates.append(_option(
            max_safe, ctx, f"Shelf-life optimized ({max_safe}) for {ctx.shelf_life}-day shelf life"
        ))

    # 5. Economic batch, only if clearly different from everything above
    economic = economic_batch_quantity(ctx.net_demand, ctx.min_batch)
    if not _near_existing(economic, candidates):
        candidates.append(_option(economic, ctx, f"Economic batch ({economic}) balances setup costs and inventory"))

    options: List[BatchOption] = []
    for candidate in candidates:
        if candidate.size > 0 and not _near_existing(candidate.size, options):
            options.append(candidate)
    return options


def score_option(option: BatchOption, ctx: _Context) -> float:
    """Score one candidate (higher is better, may be negative)."""
    score = option.efficiency
    score -= option.waste_risk * WASTE_WEIGHT

    if option.size >= ctx.min_batch:
        score += MIN_BATCH_BONUS
    if option.size < ctx.min_batch * 0.5:
        score -= SMALL_BATCH_PENALTY

    if option.size >= (ctx.total_demand + ctx.current_stock) * 0.9:
        score += COVERAGE_BONUS

    score += ctx.confidence * CONFIDENCE_WEIGHT

    overproduction = option.size / max(1.0, ctx.total_demand)
    if overproduction > OVERPRODUCTION_THRESHOLD:
        score -= (overproduction - OVERPRODUCTION_THRESHOLD) * OVERPRODUCTION_WEIGHT

    return score


def select_best(options: Sequence[BatchOption]) -> BatchOption:
    """Strictly highest score; the earlier option wins ties."""
    best = options[0]
    for option in options[1:]:
        if option.score > best.score:
            best = option
    return best


def fallback_decision(config: ItemConfig, error: str) -> BatchDecision:
    """Minimum-batch decision used when optimization cannot complete."""
    size = config.min_batch_size or FALLBACK_MIN_BATCH
    option = BatchOption(size=size, efficiency=1.0, waste_risk=0.1, cost=batch_cost(size), reasoning="Fallback option")
    return BatchDecision(
        recommended_batch_size=size,
        produce_today=size,
        hours_needed=hours_for(size, config.productivity),
        reasoning=FALLBACK_REASONING,
        options=(option,),
        selected_option=option,
        efficiency_score=0.5,
        waste_risk_score=0.1,
        degraded=True,
        warnings=productivity_warnings(config) + (error,),
    )


class BatchOptimizer:
    """
    Stateless batch-size optimizer.

    Example:
        >>> decision = BatchOptimizer().optimize(demand, current_stock=0, config=item_config)
        >>> decision.produce_today
        15
    """

    def optimize(self, demand: MultiDayDemand, current_stock: float, config: ItemConfig) -> BatchDecision:
        """
        Choose a batch size for one item.

        Never raises for numeric failures: they return a degraded
        minimum-batch decision carrying the error in its warnings.
        """
        try:
            return self._optimize(demand, current_stock, config)
        except (ArithmeticError, ValueError, TypeError, IndexError) as e:
            logger.warning(f"Batch optimization failed for item {config.item_id}: {e}. Using minimum batch size.")
            return fallback_decision(config, f"{type(e).__name__}: {e}")

    def _optimize(self, demand: MultiDayDemand, current_stock: float, config: ItemConfig) -> BatchDecision:
        total_demand = demand.total_demand or 0
        net_demand = max(0.0, total_demand - current_stock)
        warnings = productivity_warnings(config)

        if net_demand <= 0:
            no_production = BatchOption(
                size=0, efficiency=0.0, waste_risk=0.0, cost=0.0, reasoning="No production needed"
            )
            return BatchDecision(
                recommended_batch_size=0,
                produce_today=0,
                hours_needed=0.0,
                reasoning=(
                    f"Sufficient stock ({round(current_stock)} units) covers "
                    f"{demand.days_ahead}-day demand ({round(total_demand)} units)"
                ),
                options=(),
                selected_option=no_production,
                efficiency_score=1.0,
                waste_risk_score=0.0,
                warnings=warnings,
            )

        ctx = _Context(
            net_demand=net_demand,
            total_demand=total_demand,
            current_stock=current_stock,
            min_batch=config.min_batch_size or FALLBACK_MIN_BATCH,
            shelf_life=config.shelf_life_days or FALLBACK_SHELF_LIFE,
            days_ahead=demand.days_ahead or FALLBACK_DAYS_AHEAD,
            confidence=demand.confidence_score,
        )

        options = tuple(replace(o, score=score_option(o, ctx)) for o in generate_options(ctx))
        best = select_best(options)

        return BatchDecision(
            recommended_batch_size=best.size,
            produce_today=best.size,
            hours_needed=hours_for(best.size, config.productivity),
            reasoning=best.reasoning,
            options=options,
            selected_option=best,
            efficiency_score=best.efficiency,
            waste_risk_score=best.waste_risk,
            warnings=warnings,
        )
