"""Data access layer for cached sync snapshots"""

from datetime import datetime
from typing import Any, Optional
from sqlalchemy.orm import Session
from bank_sync.infrastructure.database.models import SyncCacheEntry


class CacheRepository:
    """Repository for cache entries"""

    def __init__(self, db: Session):
        self.db = db

    def get_entry(self, key: str) -> Optional[SyncCacheEntry]:
        """Fetch a single entry by key"""
        return self.db.get(SyncCacheEntry, key)

    def replace_entry(self, key: str, payload: Any, stored_at: datetime, ttl_seconds: float) -> SyncCacheEntry:
        """
        Replace the row for key with a new snapshot.

        The caller commits; until then readers on other sessions keep seeing
        the previous row.
        """
        db_entry = SyncCacheEntry(
            key=key,
            payload=payload,
            stored_at=stored_at,
            ttl_seconds=ttl_seconds,
        )
        merged = self.db.merge(db_entry)
        self.db.flush()
        return merged

    def delete_entry(self, key: str) -> bool:
        """Delete one entry, returning whether it existed"""
        deleted = self.db.query(SyncCacheEntry).filter(SyncCacheEntry.key == key).delete()
        return deleted > 0

    def delete_by_prefix(self, prefix: str) -> int:
        """Delete every entry whose key starts with prefix"""
        return (
            self.db.query(SyncCacheEntry)
            .filter(SyncCacheEntry.key.startswith(prefix, autoescape=True))
            .delete(synchronize_session=False)
        )
