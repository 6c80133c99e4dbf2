"""
Portfolio Kernel -- shared infrastructure for the aggregation and
forecasting engine.

Provides structured logging, the typed exception hierarchy, the injectable
clock, and the SQLAlchemy declarative base / session utilities.  Nothing in
this package performs WBS or financial calculations.
"""
