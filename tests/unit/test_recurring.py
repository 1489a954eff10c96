"""Unit tests for recurring payment detection"""

import pytest
from datetime import date, timedelta
from bank_sync.domain.models import BankTransaction, Frequency
from bank_sync.domain.recurring import classify_dates, classify_interval, detect_recurring
from conftest import make_txn


def test_netflix_monthly_scenario():
    transactions = [
        make_txn("Netflix", 15.99, date(2024, 1, 1)),
        make_txn("Netflix", 15.99, date(2024, 2, 1)),
    ]

    suggestions = detect_recurring(transactions)

    assert len(suggestions) == 1
    suggestion = suggestions[0]
    assert suggestion.name == "Netflix"
    assert suggestion.frequency == Frequency.MONTHLY
    assert suggestion.occurrences == 2
    assert suggestion.amount == 15.99
    assert suggestion.last_occurrence == date(2024, 2, 1)
    assert suggestion.is_income is False
    assert suggestion.category == "Other"


@pytest.mark.parametrize(
    "days,expected",
    [
        (6, Frequency.WEEKLY),
        (8, Frequency.WEEKLY),
        (13, Frequency.BIWEEKLY),
        (15, Frequency.BIWEEKLY),
        (25, Frequency.MONTHLY),
        (35, Frequency.MONTHLY),
        (85, Frequency.QUARTERLY),
        (95, Frequency.QUARTERLY),
        (360, Frequency.YEARLY),
        (370, Frequency.YEARLY),
        (5, None),
        (36, None),
        (10, None),
        (100, None),
    ],
)
def test_bucket_boundaries(days, expected):
    """Buckets are inclusive on both ends"""
    start = date(2023, 1, 1)
    assert classify_dates([start, start + timedelta(days=days)]) == expected


def test_classification_uses_mean_interval():
    # Gaps 28 and 34 average to 31
    dates = [date(2024, 1, 1), date(2024, 1, 29), date(2024, 3, 3)]
    assert classify_dates(dates) == Frequency.MONTHLY
    assert classify_interval(35.5) is None


def test_classification_ignores_input_order():
    dates = [date(2024, 3, 1), date(2024, 1, 1), date(2024, 1, 31)]
    assert classify_dates(dates) == Frequency.MONTHLY


def test_single_occurrence_is_not_recurring():
    assert detect_recurring([make_txn("Netflix", 15.99, date(2024, 1, 1))]) == []


def test_amount_varying_subscription_is_missed():
    transactions = [
        make_txn("Electric Co", 80.12, date(2024, 1, 3)),
        make_txn("Electric Co", 91.40, date(2024, 2, 3)),
    ]
    assert detect_recurring(transactions) == []


def test_income_detected_from_negative_amount():
    transactions = [
        make_txn("Payroll", -2500.0, date(2024, 1, 5), category=["Income", "Payroll"]),
        make_txn("Payroll", -2500.0, date(2024, 1, 19), category=["Income"]),
    ]

    suggestion = detect_recurring(transactions)[0]

    assert suggestion.is_income is True
    assert suggestion.amount == 2500.0
    assert suggestion.frequency == Frequency.BIWEEKLY
    assert suggestion.category == "Income"


def test_name_and_category_come_from_earliest_member():
    transactions = [
        make_txn("Gym", 30.0, date(2024, 2, 1), category=["Recreation"]),
        make_txn("Gym", 30.0, date(2024, 1, 1), category=["Health"]),
    ]

    assert detect_recurring(transactions)[0].category == "Health"


def test_sorted_by_occurrence_count(sample_transactions):
    suggestions = detect_recurring(sample_transactions)

    assert [s.name for s in suggestions] == ["Employer Payroll", "Netflix"]
    assert [s.occurrences for s in suggestions] == [4, 3]


def test_irregular_group_is_discarded():
    transactions = [
        make_txn("Hardware Store", 12.0, date(2024, 1, 1)),
        make_txn("Hardware Store", 12.0, date(2024, 1, 11)),
    ]
    assert detect_recurring(transactions) == []


def test_empty_and_malformed_input_never_raises():
    broken = BankTransaction(
        transaction_id="x",
        account_id="acc",
        name="Broken",
        amount=None,  # type: ignore[arg-type]
        date=date(2024, 1, 1),
    )

    assert detect_recurring([]) == []
    assert detect_recurring(None) == []  # type: ignore[arg-type]
    assert detect_recurring([broken, broken]) == []
