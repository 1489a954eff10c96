"""SQLAlchemy ORM models for the sync cache"""

from sqlalchemy import Column, DateTime, Float, JSON, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class SyncCacheEntry(Base):
    """One cached snapshot per key; replaced whole on every write"""

    __tablename__ = "sync_cache_entry"

    key = Column(Text, primary_key=True)
    payload = Column(JSON, nullable=False)
    stored_at = Column(DateTime(timezone=True), nullable=False)
    ttl_seconds = Column(Float, nullable=False)
