"""Recurring payment detection - unsupervised heuristic over merged transactions"""

import logging
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional, Tuple

from bank_sync.domain.models import BankTransaction, Frequency, RecurringSuggestion
from bank_sync.utils.date_utils import day_intervals

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "Other"

# Inclusive day ranges for the mean interval between occurrences
FREQUENCY_BUCKETS: List[Tuple[Frequency, float, float]] = [
    (Frequency.WEEKLY, 6, 8),
    (Frequency.BIWEEKLY, 13, 15),
    (Frequency.MONTHLY, 25, 35),
    (Frequency.QUARTERLY, 85, 95),
    (Frequency.YEARLY, 360, 370),
]


def classify_interval(mean_days: float) -> Optional[Frequency]:
    """Map a mean interval in days to its frequency bucket, or None"""
    for frequency, low, high in FREQUENCY_BUCKETS:
        if low <= mean_days <= high:
            return frequency
    return None


def classify_dates(dates: List[date]) -> Optional[Frequency]:
    """
    Classify a list of occurrence dates.

    Pure function of the sorted dates: fewer than two dates, or a mean gap
    outside every bucket, is not recurring.
    """
    ordered = sorted(dates)
    intervals = day_intervals(ordered)
    if not intervals:
        return None
    return classify_interval(sum(intervals) / len(intervals))


def _group_transactions(
    transactions: List[BankTransaction],
) -> Dict[Tuple[str, float], List[BankTransaction]]:
    groups: Dict[Tuple[str, float], List[BankTransaction]] = defaultdict(list)
    for txn in transactions:
        # Rows without a name or date cannot be grouped
        if not txn.name or txn.date is None:
            continue
        groups[(txn.name, abs(txn.amount))].append(txn)
    return groups


def detect_recurring(transactions: List[BankTransaction]) -> List[RecurringSuggestion]:
    """
    Emit recurring suggestions from the full (post-merge) transaction list.

    Requirements:
    - Group by (name, abs(amount)); amount-varying subscriptions are missed
    - At least 2 members per group
    - Mean consecutive-day interval must land in a frequency bucket
    - Most occurrences first

    Never raises: malformed input is skipped, empty input yields [].
    """
    suggestions: List[RecurringSuggestion] = []

    try:
        groups = _group_transactions(transactions or [])
    except (AttributeError, TypeError) as e:
        logger.warning(f"Recurring detection skipped malformed input: {e}")
        return []

    for (name, amount), members in groups.items():
        if len(members) < 2:
            continue

        members.sort(key=lambda t: t.date)
        frequency = classify_dates([t.date for t in members])
        if frequency is None:
            continue

        earliest = members[0]
        suggestions.append(
            RecurringSuggestion(
                name=earliest.name,
                amount=abs(earliest.amount),
                category=earliest.category[0] if earliest.category else DEFAULT_CATEGORY,
                frequency=frequency,
                occurrences=len(members),
                last_occurrence=members[-1].date,
                is_income=earliest.is_income,
            )
        )

    # Stable sort keeps grouping order among equal counts
    suggestions.sort(key=lambda s: s.occurrences, reverse=True)
    return suggestions
