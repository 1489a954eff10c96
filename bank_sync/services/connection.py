"""Connection-health state machine for a single user's bank link"""

import logging

from bank_sync.domain.classification import error_state_for
from bank_sync.domain.models import ConnectionState, ConnectionStatus, ErrorKind
from bank_sync.infrastructure.observability.metrics import connection_transition_counter

logger = logging.getLogger(__name__)

LINK_UNCONFIRMED = "connection unconfirmed, retry linking"


class ConnectionStateManager:
    """
    Tracks Disconnected / Connected / Error / Unconfirmed for one user.

    Transitions:
    - Disconnected -> Connected on first successful sync or confirmed link
    - Connected -> Error on a classified failure (recoverable or not)
    - Error -> Connected on the next successful sync
    - any -> Disconnected on explicit disconnect
    - Unconfirmed when a link handshake could not be verified

    After terminate() (logged-out user) the state is pinned at Disconnected
    and every further transition is ignored.
    """

    def __init__(self, user_id: str, initial: ConnectionState | None = None):
        self.user_id = user_id
        self._state = initial or ConnectionState.disconnected()
        self._terminated = False

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def terminated(self) -> bool:
        return self._terminated

    def mark_connected(self) -> ConnectionState:
        return self._transition(ConnectionState.connected())

    def mark_error(self, kind: ErrorKind) -> ConnectionState:
        return self._transition(error_state_for(kind, linked=self._state.linked))

    def mark_unconfirmed(self) -> ConnectionState:
        return self._transition(
            ConnectionState(
                status=ConnectionStatus.UNCONFIRMED,
                linked=False,
                reason=LINK_UNCONFIRMED,
                recoverable=True,
            )
        )

    def mark_disconnected(self) -> ConnectionState:
        return self._transition(ConnectionState.disconnected())

    def terminate(self) -> None:
        """Pin the state at Disconnected for a logged-out user context"""
        self._transition(ConnectionState.disconnected())
        self._terminated = True

    def _transition(self, new_state: ConnectionState) -> ConnectionState:
        if self._terminated:
            logger.info(
                "Ignoring connection transition after logout",
                extra={"user_id": self.user_id, "target": new_state.status.value},
            )
            return self._state

        previous = self._state
        self._state = new_state
        if previous != new_state:
            connection_transition_counter.labels(state=new_state.status.value).inc()
            logger.info(
                "Connection state changed",
                extra={
                    "user_id": self.user_id,
                    "from_state": previous.status.value,
                    "to_state": new_state.status.value,
                    "reason": new_state.reason,
                    "recoverable": new_state.recoverable,
                },
            )
        return self._state
