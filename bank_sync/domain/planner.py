"""Fetch strategy selection - decides skip / incremental / full and the date window"""

from datetime import date, datetime, timedelta
from typing import Optional

from bank_sync.domain.models import FetchPlan, FetchStrategy

UPDATE_INTERVAL = timedelta(hours=6)
FULL_WINDOW = timedelta(days=90)
INCREMENTAL_FALLBACK = timedelta(days=7)


def plan_fetch(
    last_fetch_at: Optional[datetime],
    force: bool,
    last_known_transaction_date: Optional[date],
    now: datetime,
    update_interval: timedelta = UPDATE_INTERVAL,
    full_window: timedelta = FULL_WINDOW,
    incremental_fallback: timedelta = INCREMENTAL_FALLBACK,
) -> FetchPlan:
    """
    Pick a fetch strategy.

    Rules, in order:
    1. force, or no previous fetch at all -> Full over [now - 90d, now]
    2. previous fetch older than the update interval -> Incremental, starting
       at the last known transaction date (or now - 7d when unknown)
    3. otherwise -> Skip

    A fetch exactly one interval old is still Skip; Incremental requires
    strictly more than the interval to have elapsed.
    """
    today = now.date()

    if force or last_fetch_at is None:
        return FetchPlan(
            strategy=FetchStrategy.FULL,
            window_start=(now - full_window).date(),
            window_end=today,
        )

    if now - last_fetch_at > update_interval:
        start = last_known_transaction_date or (now - incremental_fallback).date()
        # A last-known date in the future would produce an empty window
        if start > today:
            start = today
        return FetchPlan(
            strategy=FetchStrategy.INCREMENTAL,
            window_start=start,
            window_end=today,
        )

    return FetchPlan(strategy=FetchStrategy.SKIP)
