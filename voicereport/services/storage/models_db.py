"""
SQLAlchemy ORM models for local persistence.

Tables: ``kv_records`` (durable key-value records with optional expiry).
"""

from datetime import UTC, datetime

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from voicereport.services.storage.database import Base


class KeyValueRecord(Base):
    """A single JSON-encoded value stored under a string key."""

    __tablename__ = "kv_records"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, default="")
    updated_at: Mapped[datetime] = mapped_column(
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )
    expires_at: Mapped[datetime | None] = mapped_column(nullable=True, index=True)

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(UTC)
        expires_at = self.expires_at
        # SQLite drops tzinfo on round-trip
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=UTC)
        return expires_at <= now

    def __repr__(self) -> str:
        return f"<KeyValueRecord key={self.key!r} expires_at={self.expires_at}>"
