"""Integration tests running the HTTP aggregator client against the mock aggregator server"""

import httpx
import pytest
from datetime import datetime, timezone
from fastapi.testclient import TestClient

from bank_sync.api.main import build_registry, create_app
from bank_sync.domain.models import ConnectionStatus, ErrorKind, Frequency, SyncStatus
from bank_sync.infrastructure.cache.store import InMemoryCacheStore
from bank_sync.infrastructure.clients.aggregator import HttpAggregatorClient
from bank_sync.infrastructure.clients.credentials import InMemoryCredentialStore
from bank_sync.infrastructure.clients.notifications import LocalNotificationSource
from bank_sync.services.orchestrator import SyncOrchestrator
from conftest import FrozenClock
from mocks.aggregator_server.main import DISCONNECTED, app as mock_app

pytestmark = pytest.mark.integration


@pytest.fixture(autouse=True)
def reset_mock_links():
    DISCONNECTED.clear()
    yield
    DISCONNECTED.clear()


def build(user_id: str, test_settings) -> SyncOrchestrator:
    aggregator = HttpAggregatorClient(
        user_id,
        base_url="http://mock-aggregator",
        transport=httpx.ASGITransport(app=mock_app),
    )
    return SyncOrchestrator(
        user_id=user_id,
        aggregator=aggregator,
        cache=InMemoryCacheStore(),
        credentials=InMemoryCredentialStore([user_id]),
        config=test_settings,
        clock=FrozenClock(datetime(2024, 3, 5, 9, 0, tzinfo=timezone.utc)),
    )


async def test_full_sync_against_mock(test_settings):
    orchestrator = build("user_demo", test_settings)

    outcome = await orchestrator.refresh()

    assert outcome.status == SyncStatus.SYNCED
    assert outcome.total_count == 8
    suggestions = await orchestrator.get_recurring_suggestions()
    assert [(s.name, s.frequency) for s in suggestions] == [
        ("ACME CORP PAYROLL", Frequency.BIWEEKLY),
        ("Spotify", Frequency.MONTHLY),
    ]
    accounts = await orchestrator.get_cached_accounts()
    assert accounts[0].current_balance == 2140.55


async def test_expired_item_needs_reconnect(test_settings):
    orchestrator = build("user_expired", test_settings)

    outcome = await orchestrator.refresh()

    assert outcome.error_kind == ErrorKind.CREDENTIAL_EXPIRED
    assert orchestrator.get_connection_state().recoverable is True


async def test_disconnect_then_link_is_unconfirmed(test_settings):
    orchestrator = build("user_demo", test_settings)
    await orchestrator.refresh()

    await orchestrator.disconnect()
    state = await orchestrator.complete_link()

    assert "user_demo" in DISCONNECTED
    assert state.status == ConnectionStatus.UNCONFIRMED
    assert await orchestrator.get_cached_transactions() == []


async def test_unknown_user_is_unclassified_failure(test_settings):
    orchestrator = build("user_missing", test_settings)

    outcome = await orchestrator.refresh()

    assert outcome.status == SyncStatus.FAILED
    assert outcome.error_kind == ErrorKind.UNCLASSIFIED


async def test_relink_after_disconnect_restores_data(test_settings):
    orchestrator = build("user_demo", test_settings)
    await orchestrator.refresh()
    await orchestrator.disconnect()
    # User finishes the bank's link flow again
    DISCONNECTED.discard("user_demo")

    state = await orchestrator.complete_link()

    assert state.status == ConnectionStatus.CONNECTED
    assert len(await orchestrator.get_cached_transactions()) == 8
    assert (await orchestrator.refresh(force=True)).status == SyncStatus.SYNCED


def test_default_wiring_links_new_user(test_settings):
    """
    Application built with the production registry (SQL cache, in-process credentials)
    Expected: refresh is disconnected until the link completes, then syncs
    """
    notifications = LocalNotificationSource()
    registry = build_registry(test_settings, notifications, transport=httpx.ASGITransport(app=mock_app))
    app = create_app(registry=registry, notifications=notifications, config=test_settings)

    with TestClient(app) as client:
        assert client.post("/v1/users/user_demo/refresh").json()["status"] == "disconnected"

        linked = client.post("/v1/users/user_demo/link/complete").json()

        assert linked["status"] == "connected"
        assert linked["linked"] is True
        assert client.get("/v1/users/user_demo/connection").json()["status"] == "connected"
        assert client.post("/v1/users/user_demo/refresh?force=true").json()["status"] == "synced"
        accounts = client.get("/v1/users/user_demo/accounts").json()["accounts"]
        assert [a["account_id"] for a in accounts] == ["acc_demo_checking"]
