"""
Batch efficiency analytics.

Reviews a set of batch decisions (one plan, or several days of plans):
- Average efficiency and waste risk
- Labor hours and number of producing items
- Insights and sizing suggestions, optionally against measured waste
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..domain.models import BatchDecision, ProductionPlan

HIGH_EFFICIENCY = 0.8
LOW_EFFICIENCY = 0.5
HIGH_WASTE_RISK = 0.3
LOW_WASTE_RISK = 0.1
LABOR_HOURS_LIMIT = 40.0

HIGH_WASTE_SHARE = 0.3
LOW_EFFICIENCY_SHARE = 0.2
ACTUAL_WASTE_LIMIT = 0.15

OPTIMAL_MESSAGE = "Batch sizing appears optimal based on current data"


def analyze_batch_efficiency(decisions: Sequence[BatchDecision]) -> Dict[str, Any]:
    """
    Summarize batch decisions.

    Args:
        decisions: Batch decisions to analyze

    Returns:
        Dict with:
            - average_efficiency: Mean efficiency score
            - average_waste_risk: Mean waste risk score
            - total_hours: Labor hours across decisions
            - recommendations_count: Decisions that produce today
            - insights: Human-readable observations
    """
    if not decisions:
        return {
            "average_efficiency": 0.0,
            "average_waste_risk": 0.0,
            "total_hours": 0.0,
            "recommendations_count": 0,
            "insights": ["No batch decisions to analyze"],
        }

    n = len(decisions)
    average_efficiency = sum(d.efficiency_score for d in decisions) / n
    average_waste_risk = sum(d.waste_risk_score for d in decisions) / n
    total_hours = sum(d.hours_needed for d in decisions)
    production_items = sum(1 for d in decisions if d.produce_today > 0)

    insights = []

    if average_efficiency > HIGH_EFFICIENCY:
        insights.append("High batch efficiency - good production optimization")
    elif average_efficiency < LOW_EFFICIENCY:
        insights.append("Low batch efficiency - consider adjusting minimum batch sizes")

    if average_waste_risk > HIGH_WASTE_RISK:
        insights.append("High waste risk - consider shorter shelf life or smaller batches")
    elif average_waste_risk < LOW_WASTE_RISK:
        insights.append("Low waste risk - efficient batch sizing")

    if total_hours > LABOR_HOURS_LIMIT:
        insights.append(f"High labor requirement ({total_hours:.1f} hours) - consider capacity planning")

    covered = n - production_items
    if covered > 0:
        insights.append(f"{covered} items have sufficient stock - good inventory management")

    return {
        "average_efficiency": average_efficiency,
        "average_waste_risk": average_waste_risk,
        "total_hours": total_hours,
        "recommendations_count": production_items,
        "insights": insights,
    }


def analyze_plan(plan: ProductionPlan) -> Dict[str, Any]:
    """analyze_batch_efficiency over a plan's item decisions."""
    return analyze_batch_efficiency([item.batch_decision for item in plan.items])


def suggest_batch_adjustments(
    decisions: Sequence[BatchDecision],
    actual_waste: Optional[Mapping[str, float]] = None,
) -> List[str]:
    """
    Suggest batch-size adjustments from past decisions.

    Args:
        decisions: Historical batch decisions
        actual_waste: Measured waste fraction by item id (0.2 = 20% wasted)

    Returns:
        List of suggestions (never empty)
    """
    suggestions = []
    n = len(decisions)

    high_waste = sum(1 for d in decisions if d.waste_risk_score > HIGH_WASTE_RISK)
    if high_waste > n * HIGH_WASTE_SHARE:
        suggestions.append("Consider reducing batch sizes - high waste risk detected in 30%+ of decisions")

    low_efficiency = sum(1 for d in decisions if d.efficiency_score < LOW_EFFICIENCY)
    if low_efficiency > n * LOW_EFFICIENCY_SHARE:
        suggestions.append("Consider increasing minimum batch sizes - low efficiency in 20%+ of decisions")

    if actual_waste:
        average_waste = sum(actual_waste.values()) / len(actual_waste)
        if average_waste > ACTUAL_WASTE_LIMIT:
            suggestions.append("Actual waste is high (>15%) - consider more conservative batch sizing")

    return suggestions or [OPTIMAL_MESSAGE]
