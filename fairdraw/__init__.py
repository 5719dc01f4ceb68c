"""Fairness-aware student picking and grouping for classrooms."""

__version__ = "1.0.0"
