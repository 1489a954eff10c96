"""Credential store boundary - only the presence of a durable credential matters here"""

from typing import Iterable, Protocol, Set


class CredentialStore(Protocol):
    async def has_credential(self, user_id: str) -> bool: ...

    async def store(self, user_id: str) -> None: ...

    async def revoke(self, user_id: str) -> None: ...


class InMemoryCredentialStore:
    """Tracks which users completed the link handshake"""

    def __init__(self, user_ids: Iterable[str] = ()):
        self._linked: Set[str] = set(user_ids)

    async def has_credential(self, user_id: str) -> bool:
        return user_id in self._linked

    async def store(self, user_id: str) -> None:
        self._linked.add(user_id)

    async def revoke(self, user_id: str) -> None:
        self._linked.discard(user_id)
