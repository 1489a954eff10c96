"""Durable key/value cache with timestamped entries and advisory TTLs"""

import asyncio
import copy
import logging
from datetime import timedelta, timezone
from typing import Any, Dict, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from bank_sync.domain.exceptions import CacheStoreError
from bank_sync.domain.models import CacheEntry
from bank_sync.infrastructure.database.repositories import CacheRepository

logger = logging.getLogger(__name__)


class CacheStore(Protocol):
    """
    put() is a full replace, never a merge: a reader sees the entry from
    before or after a put, never a mix. TTLs are never enforced here.
    """

    async def get(self, key: str) -> Optional[CacheEntry[Any]]: ...

    async def put(self, key: str, entry: CacheEntry[Any]) -> None: ...

    async def remove(self, key: str) -> None: ...

    async def remove_prefix(self, prefix: str) -> int: ...


class InMemoryCacheStore:
    """Process-local store; entries are deep-copied in and out"""

    def __init__(self) -> None:
        self._entries: Dict[str, CacheEntry[Any]] = {}

    async def get(self, key: str) -> Optional[CacheEntry[Any]]:
        entry = self._entries.get(key)
        return copy.deepcopy(entry) if entry is not None else None

    async def put(self, key: str, entry: CacheEntry[Any]) -> None:
        self._entries[key] = copy.deepcopy(entry)

    async def remove(self, key: str) -> None:
        self._entries.pop(key, None)

    async def remove_prefix(self, prefix: str) -> int:
        doomed = [key for key in self._entries if key.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)


class SqlCacheStore:
    """
    SQLAlchemy-backed store.

    Each operation runs in its own session on a worker thread; put() commits
    the replaced row in a single transaction.

    Raises:
        CacheStoreError: On any database failure
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    async def get(self, key: str) -> Optional[CacheEntry[Any]]:
        return await asyncio.to_thread(self._get, key)

    async def put(self, key: str, entry: CacheEntry[Any]) -> None:
        await asyncio.to_thread(self._put, key, entry)

    async def remove(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)

    async def remove_prefix(self, prefix: str) -> int:
        return await asyncio.to_thread(self._remove_prefix, prefix)

    def _get(self, key: str) -> Optional[CacheEntry[Any]]:
        db = self.session_factory()
        try:
            row = CacheRepository(db).get_entry(key)
            if row is None:
                return None
            stored_at = row.stored_at
            # SQLite drops tzinfo; values are always written in UTC
            if stored_at.tzinfo is None:
                stored_at = stored_at.replace(tzinfo=timezone.utc)
            return CacheEntry(
                payload=row.payload,
                stored_at=stored_at,
                ttl=timedelta(seconds=row.ttl_seconds),
            )
        except SQLAlchemyError as e:
            raise CacheStoreError(f"Cache read failed for {key}: {e}") from e
        finally:
            db.close()

    def _put(self, key: str, entry: CacheEntry[Any]) -> None:
        db = self.session_factory()
        try:
            CacheRepository(db).replace_entry(
                key=key,
                payload=entry.payload,
                stored_at=entry.stored_at.astimezone(timezone.utc),
                ttl_seconds=entry.ttl.total_seconds(),
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise CacheStoreError(f"Cache write failed for {key}: {e}") from e
        finally:
            db.close()

    def _remove(self, key: str) -> None:
        db = self.session_factory()
        try:
            CacheRepository(db).delete_entry(key)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise CacheStoreError(f"Cache delete failed for {key}: {e}") from e
        finally:
            db.close()

    def _remove_prefix(self, prefix: str) -> int:
        db = self.session_factory()
        try:
            removed = CacheRepository(db).delete_by_prefix(prefix)
            db.commit()
            logger.info("Removed cache entries", extra={"prefix": prefix, "removed": removed})
            return removed
        except SQLAlchemyError as e:
            db.rollback()
            raise CacheStoreError(f"Cache delete failed for prefix {prefix}: {e}") from e
        finally:
            db.close()
