"""Planline - hour budgets, recurring phases and timeline layout for project planning."""

__version__ = "0.1.0"
