"""Relational store, roll-ups, tiered query routing and the report cache."""

from .query_plan import QueryPlan, plan_range, select_granularity
from .query_router import TieredQueryRouter
from .report_cache import ReportCache
from .rollup import RollupHook
from .sqlite_backend import SQLiteActivityStore

__all__ = [
    "QueryPlan",
    "ReportCache",
    "RollupHook",
    "SQLiteActivityStore",
    "TieredQueryRouter",
    "plan_range",
    "select_granularity",
]
