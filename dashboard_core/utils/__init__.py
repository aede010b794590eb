"""Utility helpers for the dashboard core."""

from dashboard_core.utils.timestamps import date_bounds, parse_timestamp

__all__ = ["date_bounds", "parse_timestamp"]
