"""Read-side aggregation over stored data."""

from finsync.queries.dashboard import DashboardAggregator

__all__ = ["DashboardAggregator"]
