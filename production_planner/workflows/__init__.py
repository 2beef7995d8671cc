"""Workflows module."""
from .plan_generator import PlanGenerator, generate_plan, plan_item, summarize

__all__ = ['PlanGenerator', 'generate_plan', 'plan_item', 'summarize']
