"""
Granularity selection for date-range aggregate queries.

The span of the inclusive range picks the coarsest table allowed:

* up to 7 days: daily rows only
* up to 30 days: weekly rows
* longer: monthly rows

A coarse row is used only when its whole period lies inside the range. The
uncovered edges are filled with the next finer granularity, down to daily
rows, so every plan sums exactly the days in the range.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Tuple

from voice_activity.data_models.aggregates import Granularity
from voice_activity.time_utils import month_end, month_start, next_month_start, span_days, week_start

DAILY_MAX_SPAN_DAYS = 7
WEEKLY_MAX_SPAN_DAYS = 30


@dataclass
class QueryPlan:
    granularity: Granularity
    daily_ranges: List[Tuple[date, date]] = field(default_factory=list)
    week_starts: List[date] = field(default_factory=list)
    month_starts: List[date] = field(default_factory=list)


def select_granularity(start: date, end: date) -> Granularity:
    days = span_days(start, end)
    if days <= DAILY_MAX_SPAN_DAYS:
        return Granularity.DAILY
    if days <= WEEKLY_MAX_SPAN_DAYS:
        return Granularity.WEEKLY
    return Granularity.MONTHLY


def plan_range(start: date, end: date, granularity: Granularity | None = None) -> QueryPlan:
    """Build an exact cover of ``[start, end]`` using ``granularity`` (selected by span when omitted)."""
    if end < start:
        raise ValueError(f"Range end {end} precedes start {start}")
    chosen = granularity or select_granularity(start, end)
    plan = QueryPlan(granularity=chosen)
    _cover(plan, start, end, chosen)
    return plan


def _cover(plan: QueryPlan, start: date, end: date, granularity: Granularity) -> None:
    if start > end:
        return
    if granularity is Granularity.DAILY:
        plan.daily_ranges.append((start, end))
        return

    if granularity is Granularity.MONTHLY:
        first_full = start if start == month_start(start) else next_month_start(start)
        cursor = first_full
        inner_end = None
        while month_end(cursor) <= end:
            plan.month_starts.append(cursor)
            inner_end = month_end(cursor)
            cursor = next_month_start(cursor)
        finer = Granularity.WEEKLY
    else:
        first_full = start if start == week_start(start) else week_start(start) + timedelta(days=7)
        cursor = first_full
        inner_end = None
        while cursor + timedelta(days=6) <= end:
            plan.week_starts.append(cursor)
            inner_end = cursor + timedelta(days=6)
            cursor = cursor + timedelta(days=7)
        finer = Granularity.DAILY

    if inner_end is None:
        _cover(plan, start, end, finer)
        return
    _cover(plan, start, first_full - timedelta(days=1), finer)
    _cover(plan, inner_end + timedelta(days=1), end, finer)
