"""Date manipulation utilities"""

from datetime import date, datetime, timezone
from typing import List


def utcnow() -> datetime:
    """Timezone-aware current time, the default clock for the sync engine"""
    return datetime.now(timezone.utc)


def day_intervals(dates: List[date]) -> List[int]:
    """Gaps in days between consecutive dates (input sorted ascending)"""
    return [(later - earlier).days for earlier, later in zip(dates, dates[1:])]
