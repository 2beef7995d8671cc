"""Analytics package for batch efficiency review."""

from .batch_efficiency import (
    analyze_batch_efficiency,
    analyze_plan,
    suggest_batch_adjustments,
)

__all__ = [
    "analyze_batch_efficiency",
    "analyze_plan",
    "suggest_batch_adjustments",
]
