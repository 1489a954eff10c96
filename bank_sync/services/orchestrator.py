"""Sync orchestration - single-flight refresh of one user's bank data"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

from bank_sync.config import Settings, settings
from bank_sync.domain.classification import classify_error
from bank_sync.domain.exceptions import CacheStoreError
from bank_sync.domain.merger import latest_transaction_date, merge_transactions
from bank_sync.domain.models import (
    Account,
    AppLifecyclePhase,
    BankTransaction,
    CacheEntry,
    ConnectionState,
    ErrorKind,
    FetchPlan,
    FetchStrategy,
    RecurringSuggestion,
    SyncOutcome,
    SyncStatus,
    TransactionSnapshot,
)
from bank_sync.domain.planner import plan_fetch
from bank_sync.domain.recurring import detect_recurring
from bank_sync.infrastructure.cache.store import CacheStore
from bank_sync.infrastructure.clients.aggregator import AggregatorClient
from bank_sync.infrastructure.clients.credentials import CredentialStore
from bank_sync.infrastructure.observability.logging import log_sync_outcome
from bank_sync.infrastructure.observability.metrics import (
    aggregator_latency_histogram,
    cache_failure_counter,
    record_sync_outcome,
)
from bank_sync.services.connection import ConnectionStateManager
from bank_sync.utils.date_utils import utcnow

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class FlightState:
    """
    Single-flight bookkeeping for one user.

    Every started run takes a new generation; only the run holding the
    current generation may write the cache or clear `in_flight`.
    """

    in_flight: bool = False
    last_call_time: Optional[datetime] = None
    generation: int = 0


def cache_key_prefix(user_id: str) -> str:
    return f"bank:{user_id}:"


class SyncOrchestrator:
    """
    Coordinates FetchPlanner -> AggregatorClient -> Merger ->
    RecurringPatternDetector -> CacheStore for one user.

    Concurrency discipline:
    - a non-forced refresh while another is in flight returns IGNORED
    - a forced refresh always proceeds and supersedes any in-flight run;
      the superseded run finishes its network work but never writes

    Raw exceptions from the aggregator or the cache never escape refresh();
    they become a SyncOutcome and a ConnectionState.
    """

    def __init__(
        self,
        user_id: str,
        aggregator: AggregatorClient,
        cache: CacheStore,
        credentials: CredentialStore,
        connection: Optional[ConnectionStateManager] = None,
        config: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
        lifecycle_phase: AppLifecyclePhase = AppLifecyclePhase.FOREGROUND,
    ):
        self.user_id = user_id
        self.aggregator = aggregator
        self.cache = cache
        self.credentials = credentials
        self.connection = connection or ConnectionStateManager(user_id)
        self.settings = config or settings
        self.clock = clock
        self.lifecycle_phase = lifecycle_phase
        self.flight = FlightState()
        self._write_lock = asyncio.Lock()
        self._closed = False

        # Keys are fixed here so no continuation can compute another user's key
        self.key_prefix = cache_key_prefix(user_id)
        self.transactions_key = f"{self.key_prefix}transactions"
        self.recurring_key = f"{self.key_prefix}recurring"
        self.accounts_key = f"{self.key_prefix}accounts"

    @property
    def closed(self) -> bool:
        return self._closed

    # -------- Read API (may return a staler value during a refresh) --------

    async def get_cached_transactions(self) -> List[BankTransaction]:
        entry = await self._read(self.transactions_key)
        snapshot = self._decode(self.transactions_key, entry, TransactionSnapshot.from_dict)
        return snapshot.transactions if snapshot else []

    async def get_recurring_suggestions(self) -> List[RecurringSuggestion]:
        entry = await self._read(self.recurring_key)
        suggestions = self._decode(
            self.recurring_key,
            entry,
            lambda payload: [RecurringSuggestion.from_dict(item) for item in payload],
        )
        return suggestions or []

    async def get_cached_accounts(self) -> List[Account]:
        entry = await self._read(self.accounts_key)
        accounts = self._decode(
            self.accounts_key,
            entry,
            lambda payload: [Account.from_dict(item) for item in payload],
        )
        return accounts or []

    def get_connection_state(self) -> ConnectionState:
        return self.connection.state

    # -------- Lifecycle --------

    def set_lifecycle_phase(self, phase: AppLifecyclePhase) -> None:
        self.lifecycle_phase = phase
        if phase == AppLifecyclePhase.LOGGED_OUT:
            self.close()

    def close(self) -> None:
        """Stop all further writes for this user; in-flight runs are superseded"""
        if self._closed:
            return
        self._closed = True
        self._supersede_in_flight()
        self.connection.terminate()
        logger.info("Orchestrator closed", extra={"user_id": self.user_id})

    # -------- Operations --------

    async def refresh(self, force: bool = False) -> SyncOutcome:
        start_time = time.time()
        outcome = await self._refresh(force)

        duration_ms = (time.time() - start_time) * 1000
        record_sync_outcome(outcome)
        log_sync_outcome(self.user_id, outcome, duration_ms)
        return outcome

    async def disconnect(self) -> None:
        """
        Explicit user disconnect: revoke the link, drop every cached entry
        for this user, and move to Disconnected.
        """
        self._supersede_in_flight()

        try:
            await self.aggregator.disconnect()
        except Exception as e:
            # Local state is cleared regardless; the aggregator item expires on its own
            logger.warning(
                f"Aggregator disconnect failed: {e}",
                extra={"user_id": self.user_id},
            )

        await self.credentials.revoke(self.user_id)

        async with self._write_lock:
            try:
                await self.cache.remove_prefix(self.key_prefix)
            except (CacheStoreError, OSError) as e:
                logger.error(f"Cache cleanup failed on disconnect: {e}", extra={"user_id": self.user_id})

        self.connection.mark_disconnected()

    async def complete_link(self) -> ConnectionState:
        """
        Verify a freshly completed link before trusting it.

        Polls is_connected(); on confirmation records the credential, moves to
        Connected and runs a forced refresh. If never confirmed the state
        becomes Unconfirmed, which the user can retry, instead of
        optimistically Connected.
        """
        attempts = self.settings.link_confirm_attempts
        for attempt in range(1, attempts + 1):
            try:
                confirmed = await asyncio.wait_for(
                    self.aggregator.is_connected(),
                    timeout=self.settings.http_timeout_seconds,
                )
            except Exception as e:
                logger.warning(
                    f"Link confirmation attempt {attempt}/{attempts} failed: {e}",
                    extra={"user_id": self.user_id, "attempt": attempt},
                )
                confirmed = False

            if confirmed:
                await self.credentials.store(self.user_id)
                self.connection.mark_connected()
                await self.refresh(force=True)
                return self.connection.state

            if attempt < attempts:
                await asyncio.sleep(self.settings.link_confirm_interval_seconds)

        self.connection.mark_unconfirmed()
        return self.connection.state

    # -------- Internals --------

    async def _refresh(self, force: bool) -> SyncOutcome:
        if self._closed:
            return SyncOutcome(status=SyncStatus.CLOSED)

        if not force and self.lifecycle_phase == AppLifecyclePhase.LAUNCHING:
            return SyncOutcome(status=SyncStatus.DEFERRED)

        if self.flight.in_flight and not force:
            logger.info("Refresh already in flight, ignoring", extra={"user_id": self.user_id})
            return SyncOutcome(status=SyncStatus.IGNORED)

        self.flight.generation += 1
        generation = self.flight.generation
        self.flight.in_flight = True
        self.flight.last_call_time = self.clock()

        try:
            return await self._run(force, generation)
        finally:
            if self.flight.generation == generation:
                self.flight.in_flight = False

    async def _run(self, force: bool, generation: int) -> SyncOutcome:
        try:
            has_credential = await self.credentials.has_credential(self.user_id)
        except Exception as e:
            return self._fail(e, generation, strategy=None)

        if not has_credential:
            if self._is_current(generation):
                self.connection.mark_disconnected()
            return SyncOutcome(status=SyncStatus.DISCONNECTED)

        entry = await self._read(self.transactions_key)
        snapshot = self._decode(self.transactions_key, entry, TransactionSnapshot.from_dict)
        if snapshot is None:
            entry = None
            snapshot = TransactionSnapshot(transactions=[])
        now = self.clock()

        if not force and entry is not None and entry.is_fresh(now):
            return SyncOutcome(status=SyncStatus.SKIPPED)

        plan = plan_fetch(
            last_fetch_at=entry.stored_at if entry else None,
            force=force,
            last_known_transaction_date=snapshot.last_known_transaction_date,
            now=now,
            update_interval=timedelta(hours=self.settings.update_interval_hours),
            full_window=timedelta(days=self.settings.full_sync_window_days),
            incremental_fallback=timedelta(days=self.settings.incremental_fallback_days),
        )
        if plan.strategy == FetchStrategy.SKIP:
            return SyncOutcome(status=SyncStatus.SKIPPED, strategy=plan.strategy)

        logger.info(
            "Fetching transactions",
            extra={
                "user_id": self.user_id,
                "strategy": plan.strategy.value,
                "window_start": plan.window_start.isoformat(),
                "window_end": plan.window_end.isoformat(),
            },
        )

        try:
            fetched, accounts = await self._fetch(plan)
        except Exception as e:
            return self._fail(e, generation, strategy=plan.strategy)

        merged = merge_transactions(snapshot.transactions, fetched)
        suggestions = detect_recurring(merged)

        persisted = await self._persist(generation, merged, suggestions, accounts)
        if persisted == SyncStatus.SUPERSEDED:
            logger.info(
                "Refresh superseded, discarding results",
                extra={"user_id": self.user_id, "strategy": plan.strategy.value},
            )
            return SyncOutcome(status=SyncStatus.SUPERSEDED, strategy=plan.strategy, fetched_count=len(fetched))
        if persisted == SyncStatus.FAILED:
            # Connection state is unchanged on cache failures
            return SyncOutcome(
                status=SyncStatus.FAILED,
                strategy=plan.strategy,
                fetched_count=len(fetched),
                error_kind=ErrorKind.CACHE_WRITE_FAILED,
            )

        self.connection.mark_connected()
        return SyncOutcome(
            status=SyncStatus.SYNCED,
            strategy=plan.strategy,
            fetched_count=len(fetched),
            total_count=len(merged),
            suggestion_count=len(suggestions),
        )

    async def _fetch(self, plan: FetchPlan) -> tuple[List[BankTransaction], Optional[List[Account]]]:
        fetched = await self._with_retry(
            "list_transactions",
            lambda: self.aggregator.list_transactions(plan.window_start, plan.window_end),
        )
        accounts = None
        if plan.strategy == FetchStrategy.FULL:
            accounts = await self._with_retry("list_accounts", self.aggregator.list_accounts)
        return fetched, accounts

    async def _with_retry(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        """
        Call the aggregator with a per-call timeout.

        Retry strategy:
        - Up to sync_max_attempts attempts
        - Fixed delay between attempts (no exponential growth)
        - A timeout counts as a failed attempt
        - The final failure propagates to the caller
        """
        max_attempts = self.settings.sync_max_attempts
        attempt = 0
        while True:
            attempt += 1
            try:
                with aggregator_latency_histogram.labels(operation=operation).time():
                    return await asyncio.wait_for(call(), timeout=self.settings.http_timeout_seconds)

            except Exception as e:
                if attempt >= max_attempts:
                    raise

                logger.warning(
                    f"Aggregator {operation} attempt {attempt}/{max_attempts} failed, retrying: {e}",
                    extra={"user_id": self.user_id, "attempt": attempt, "operation": operation},
                )
                await asyncio.sleep(self.settings.sync_retry_delay_seconds)

    async def _persist(
        self,
        generation: int,
        transactions: List[BankTransaction],
        suggestions: List[RecurringSuggestion],
        accounts: Optional[List[Account]],
    ) -> SyncStatus:
        """
        Write all snapshots if this run still owns the current generation.

        Returns SUPERSEDED for a stale run and FAILED when the transactions
        entry could not be written; suggestions and accounts are only written
        after the transactions they were derived from.
        """
        async with self._write_lock:
            if not self._is_current(generation):
                return SyncStatus.SUPERSEDED

            now = self.clock()
            snapshot = TransactionSnapshot(
                transactions=transactions,
                last_known_transaction_date=latest_transaction_date(transactions),
            )
            stored = await self._write(
                self.transactions_key,
                CacheEntry(
                    payload=snapshot.to_dict(),
                    stored_at=now,
                    ttl=timedelta(seconds=self.settings.transactions_cache_ttl_seconds),
                ),
            )
            if not stored:
                return SyncStatus.FAILED

            await self._write(
                self.recurring_key,
                CacheEntry(
                    payload=[s.to_dict() for s in suggestions],
                    stored_at=now,
                    ttl=timedelta(hours=self.settings.recurring_cache_ttl_hours),
                ),
            )
            if accounts is not None:
                await self._write(
                    self.accounts_key,
                    CacheEntry(
                        payload=[a.to_dict() for a in accounts],
                        stored_at=now,
                        ttl=timedelta(hours=self.settings.accounts_cache_ttl_hours),
                    ),
                )
            return SyncStatus.SYNCED

    async def _read(self, key: str) -> Optional[CacheEntry[Any]]:
        """Cache read; I/O failures degrade to a miss"""
        try:
            return await self.cache.get(key)
        except (CacheStoreError, OSError) as e:
            cache_failure_counter.labels(operation="read").inc()
            logger.error(f"Cache read failed, treating as miss: {e}", extra={"user_id": self.user_id, "key": key})
            return None

    def _decode(self, key: str, entry: Optional[CacheEntry[Any]], decode: Callable[[Any], T]) -> Optional[T]:
        """Payloads that no longer decode (older schema, corrupt row) count as a miss"""
        if entry is None:
            return None
        try:
            return decode(entry.payload)
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            cache_failure_counter.labels(operation="decode").inc()
            logger.error(
                f"Cached payload unreadable, treating as miss: {e!r}",
                extra={"user_id": self.user_id, "key": key},
            )
            return None

    async def _write(self, key: str, entry: CacheEntry[Any]) -> bool:
        try:
            await self.cache.put(key, entry)
            return True
        except (CacheStoreError, OSError) as e:
            cache_failure_counter.labels(operation="write").inc()
            logger.error(f"Cache write failed: {e}", extra={"user_id": self.user_id, "key": key})
            return False

    def _fail(self, exc: Exception, generation: int, strategy: Optional[FetchStrategy]) -> SyncOutcome:
        kind = classify_error(exc)
        logger.error(
            f"Refresh failed: {exc}",
            extra={"user_id": self.user_id, "error_kind": kind.value},
        )
        if self._is_current(generation):
            self.connection.mark_error(kind)
        return SyncOutcome(status=SyncStatus.FAILED, strategy=strategy, error_kind=kind)

    def _is_current(self, generation: int) -> bool:
        return not self._closed and self.flight.generation == generation

    def _supersede_in_flight(self) -> None:
        self.flight.generation += 1
        self.flight.in_flight = False
