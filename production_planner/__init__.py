"""Daily production planning: fiscal calendar, holidays, demand forecasting and batch sizing."""

__version__ = "1.0.0"
