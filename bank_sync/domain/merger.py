"""Merge freshly fetched transactions into the cached list"""

from datetime import date
from typing import Dict, List, Optional, Tuple

from bank_sync.domain.models import BankTransaction


def merge_transactions(
    cached: List[BankTransaction],
    fetched: List[BankTransaction],
) -> List[BankTransaction]:
    """
    Deduplicate by identity key (name, exact amount, date).

    Cached rows are inserted first and fetched rows overwrite them on
    collision, so a pending -> posted transition reflects the latest
    aggregator state. Output is sorted by date, newest first.
    """
    merged: Dict[Tuple[str, float, date], BankTransaction] = {}
    for txn in cached:
        merged[txn.identity_key] = txn
    for txn in fetched:
        merged[txn.identity_key] = txn

    return sorted(merged.values(), key=lambda t: t.date, reverse=True)


def latest_transaction_date(transactions: List[BankTransaction]) -> Optional[date]:
    """Most recent transaction date, used as the next incremental window start"""
    if not transactions:
        return None
    return max(t.date for t in transactions)
