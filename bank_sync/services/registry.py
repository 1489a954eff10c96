"""Per-user orchestrator and listener registry"""

import logging
from datetime import datetime
from typing import Callable, Dict, Optional

from bank_sync.config import Settings, settings
from bank_sync.domain.models import AppLifecyclePhase
from bank_sync.infrastructure.cache.store import CacheStore
from bank_sync.infrastructure.clients.aggregator import AggregatorClient
from bank_sync.infrastructure.clients.credentials import CredentialStore
from bank_sync.infrastructure.clients.notifications import ChangeNotificationSource
from bank_sync.services.listener import ChangeNotificationListener
from bank_sync.services.orchestrator import SyncOrchestrator
from bank_sync.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


class OrchestratorRegistry:
    """Builds one orchestrator + listener per user and tears both down on logout"""

    def __init__(
        self,
        cache: CacheStore,
        credentials: CredentialStore,
        notifications: ChangeNotificationSource,
        aggregator_factory: Callable[[str], AggregatorClient],
        config: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.cache = cache
        self.credentials = credentials
        self.notifications = notifications
        self.aggregator_factory = aggregator_factory
        self.settings = config or settings
        self.clock = clock
        self._orchestrators: Dict[str, SyncOrchestrator] = {}
        self._listeners: Dict[str, ChangeNotificationListener] = {}

    def get(self, user_id: str) -> SyncOrchestrator:
        orchestrator = self._orchestrators.get(user_id)
        if orchestrator is None:
            orchestrator = SyncOrchestrator(
                user_id=user_id,
                aggregator=self.aggregator_factory(user_id),
                cache=self.cache,
                credentials=self.credentials,
                config=self.settings,
                clock=self.clock,
            )
            listener = ChangeNotificationListener(user_id, self.notifications, orchestrator, config=self.settings)
            listener.start()
            self._orchestrators[user_id] = orchestrator
            self._listeners[user_id] = listener
        return orchestrator

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._orchestrators

    async def logout(self, user_id: str) -> None:
        """Tear down a user context; cached data stays for the next login"""
        listener = self._listeners.pop(user_id, None)
        if listener is not None:
            await listener.stop()
        orchestrator = self._orchestrators.pop(user_id, None)
        if orchestrator is not None:
            orchestrator.set_lifecycle_phase(AppLifecyclePhase.LOGGED_OUT)
        logger.info("User context torn down", extra={"user_id": user_id})

    async def shutdown(self) -> None:
        for user_id in list(self._orchestrators):
            await self.logout(user_id)
