"""Debounced refresh trigger driven by change notifications"""

import asyncio
import contextlib
import logging
from typing import Any, Dict, Optional

from bank_sync.config import Settings, settings
from bank_sync.infrastructure.clients.notifications import ChangeNotificationSource, Subscription
from bank_sync.infrastructure.observability.metrics import notification_refresh_counter, notification_signal_counter
from bank_sync.services.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


class ChangeNotificationListener:
    """
    Subscribes to a user's change channel and collapses bursts of signals
    into a single non-forced refresh once the channel has been quiet for the
    debounce window.

    stop() unsubscribes and cancels any pending timer, so no callback can
    touch orchestrator state after teardown.
    """

    def __init__(
        self,
        user_id: str,
        source: ChangeNotificationSource,
        orchestrator: SyncOrchestrator,
        config: Optional[Settings] = None,
    ):
        self.user_id = user_id
        self.source = source
        self.orchestrator = orchestrator
        self.debounce_seconds = (config or settings).notification_debounce_seconds
        self._subscription: Optional[Subscription] = None
        self._timer: Optional[asyncio.Task] = None
        self._refreshing: Optional[asyncio.Task] = None
        self._stopped = False

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self) -> None:
        if self._subscription is not None or self._stopped:
            return
        self._subscription = self.source.subscribe(self.user_id, self._on_signal)
        logger.info("Listening for change notifications", extra={"user_id": self.user_id})

    async def stop(self) -> None:
        self._stopped = True
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

        for task in (self._timer, self._refreshing):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._timer = None
        self._refreshing = None

    def _on_signal(self, event: Optional[Dict[str, Any]] = None) -> None:
        if self._stopped:
            return

        notification_signal_counter.inc()
        # Restart the quiet period on every signal
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().create_task(self._refresh_after_quiet_period())

    async def _refresh_after_quiet_period(self) -> None:
        await asyncio.sleep(self.debounce_seconds)
        if self._stopped:
            return

        # Quiet period over: later signals start a new timer instead of cancelling this refresh
        self._timer = None
        self._refreshing = asyncio.current_task()
        notification_refresh_counter.inc()
        outcome = await self.orchestrator.refresh(force=False)
        logger.info(
            "Notification-triggered refresh finished",
            extra={"user_id": self.user_id, "sync_status": outcome.status.value},
        )
