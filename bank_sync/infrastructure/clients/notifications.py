"""Change notification source - opaque "something changed" events keyed by user id"""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[Optional[Dict[str, Any]]], None]


class Subscription(Protocol):
    def unsubscribe(self) -> None: ...


class ChangeNotificationSource(Protocol):
    def subscribe(self, user_id: str, callback: ChangeCallback) -> Subscription: ...


class _LocalSubscription:
    def __init__(self, source: "LocalNotificationSource", user_id: str, callback: ChangeCallback):
        self._source = source
        self._user_id = user_id
        self._callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._source._remove(self._user_id, self._callback)
            self.active = False


class LocalNotificationSource:
    """
    In-process fan-out of change events.

    Fed by the aggregator webhook endpoint; callbacks run synchronously on
    the event loop thread and must not block.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[ChangeCallback]] = defaultdict(list)

    def subscribe(self, user_id: str, callback: ChangeCallback) -> _LocalSubscription:
        self._subscribers[user_id].append(callback)
        return _LocalSubscription(self, user_id, callback)

    def publish(self, user_id: str, event: Optional[Dict[str, Any]] = None) -> int:
        """Deliver an event to every subscriber of user_id; returns the delivery count"""
        callbacks = list(self._subscribers.get(user_id, []))
        for callback in callbacks:
            callback(event)
        logger.debug("Published change notification", extra={"user_id": user_id, "subscribers": len(callbacks)})
        return len(callbacks)

    def subscriber_count(self, user_id: str) -> int:
        return len(self._subscribers.get(user_id, []))

    def _remove(self, user_id: str, callback: ChangeCallback) -> None:
        callbacks = self._subscribers.get(user_id)
        if callbacks and callback in callbacks:
            callbacks.remove(callback)
        if not callbacks:
            self._subscribers.pop(user_id, None)
