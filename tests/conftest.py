"""Pytest fixtures for testing"""

import asyncio
import pytest
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Generator, List, Optional, Tuple
from fastapi.testclient import TestClient

from bank_sync.api.main import create_app
from bank_sync.config import Settings
from bank_sync.domain.models import Account, BankTransaction
from bank_sync.infrastructure.cache.store import InMemoryCacheStore
from bank_sync.infrastructure.clients.credentials import InMemoryCredentialStore
from bank_sync.infrastructure.clients.notifications import LocalNotificationSource
from bank_sync.services.orchestrator import SyncOrchestrator
from bank_sync.services.registry import OrchestratorRegistry


START_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_txn(
    name: str,
    amount: float,
    on: date,
    pending: bool = False,
    category: Optional[List[str]] = None,
    transaction_id: Optional[str] = None,
) -> BankTransaction:
    """Build a transaction with sensible defaults"""
    return BankTransaction(
        transaction_id=transaction_id or f"{name}-{on.isoformat()}-{amount}",
        account_id="acc_checking",
        name=name,
        amount=amount,
        date=on,
        pending=pending,
        category=category if category is not None else [],
    )


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the event loop until predicate holds"""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


class FrozenClock:
    """Controllable clock returning timezone-aware datetimes"""

    def __init__(self, now: datetime = START_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeAggregator:
    """
    In-memory aggregator.

    `errors` are raised one per call, in order, before calls start
    succeeding. When `gate` is set, calls block until it is released; the
    result is captured when the call starts.
    """

    def __init__(self, transactions: Optional[List[BankTransaction]] = None, accounts: Optional[List[Account]] = None):
        self.transactions = list(transactions or [])
        self.accounts = list(accounts or [])
        self.errors: List[BaseException] = []
        self.connected = True
        self.connected_after: int = 0
        self.gate: Optional[asyncio.Event] = None
        self.transaction_calls: List[Tuple[date, date]] = []
        self.account_calls = 0
        self.status_calls = 0
        self.disconnect_calls = 0

    async def is_connected(self) -> bool:
        self.status_calls += 1
        return self.connected and self.status_calls > self.connected_after

    async def list_accounts(self) -> List[Account]:
        self.account_calls += 1
        return list(self.accounts)

    async def list_transactions(self, start_date: date, end_date: date) -> List[BankTransaction]:
        self.transaction_calls.append((start_date, end_date))
        result = [t for t in self.transactions if start_date <= t.date <= end_date]
        if self.gate is not None:
            await self.gate.wait()
        if self.errors:
            raise self.errors.pop(0)
        return result

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self.connected = False


@pytest.fixture
def test_settings() -> Settings:
    """Settings with delays shrunk for fast tests"""
    return Settings(
        database_url="sqlite://",
        sync_retry_delay_seconds=0,
        notification_debounce_seconds=0.05,
        link_confirm_attempts=3,
        link_confirm_interval_seconds=0,
        http_timeout_seconds=1.0,
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def cache() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def credentials() -> InMemoryCredentialStore:
    return InMemoryCredentialStore(["user_1"])


@pytest.fixture
def sample_transactions() -> List[BankTransaction]:
    """Three months of activity with a monthly bill and biweekly salary"""
    transactions = [
        make_txn("Netflix", 15.99, date(2023, 12, 15), category=["Entertainment"]),
        make_txn("Netflix", 15.99, date(2024, 1, 15), category=["Entertainment"]),
        make_txn("Netflix", 15.99, date(2024, 2, 15), category=["Entertainment"]),
        make_txn("Coffee Shop", 4.50, date(2024, 2, 10), category=["Food and Drink"]),
    ]
    payday = date(2024, 1, 5)
    for i in range(4):
        transactions.append(make_txn("Employer Payroll", -2500.0, payday + timedelta(days=14 * i), category=["Income"]))
    return transactions


@pytest.fixture
def aggregator(sample_transactions: List[BankTransaction]) -> FakeAggregator:
    accounts = [Account(account_id="acc_checking", name="Checking", type="depository", subtype="checking", mask="0000")]
    return FakeAggregator(transactions=sample_transactions, accounts=accounts)


@pytest.fixture
def orchestrator(
    aggregator: FakeAggregator,
    cache: InMemoryCacheStore,
    credentials: InMemoryCredentialStore,
    test_settings: Settings,
    clock: FrozenClock,
) -> SyncOrchestrator:
    return SyncOrchestrator(
        user_id="user_1",
        aggregator=aggregator,
        cache=cache,
        credentials=credentials,
        config=test_settings,
        clock=clock,
    )


@pytest.fixture
def notification_source() -> LocalNotificationSource:
    return LocalNotificationSource()


@pytest.fixture
def client(
    aggregator: FakeAggregator,
    cache: InMemoryCacheStore,
    credentials: InMemoryCredentialStore,
    notification_source: LocalNotificationSource,
    test_settings: Settings,
    clock: FrozenClock,
) -> Generator[TestClient, None, None]:
    """Create FastAPI test client wired to the fake aggregator"""
    registry = OrchestratorRegistry(
        cache=cache,
        credentials=credentials,
        notifications=notification_source,
        aggregator_factory=lambda user_id: aggregator,
        config=test_settings,
        clock=clock,
    )
    app = create_app(registry=registry, notifications=notification_source, config=test_settings)
    with TestClient(app) as test_client:
        yield test_client
