"""
Data-access layer for durable key-value records.

``KeyValueRepository`` receives an ``AsyncSession`` and calls ``flush()``
rather than ``commit()`` so that transaction boundaries are controlled by
the caller (typically :func:`get_session`).
"""

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from voicereport.services.storage.models_db import KeyValueRecord

logger = logging.getLogger(__name__)


class KeyValueRepository:
    """Expiry-aware get / set / delete on the ``kv_records`` table.

    Args:
        session: An active SQLAlchemy ``AsyncSession``.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, key: str) -> str | None:
        """Return the stored value, or None if absent or expired.

        Expired records are deleted on read.
        """
        record = await self._session.get(KeyValueRecord, key)
        if record is None:
            return None
        if record.is_expired():
            logger.info("Record %r expired; removing", key)
            await self._session.delete(record)
            await self._session.flush()
            return None
        return record.value

    async def set(self, key: str, value: str, ttl: timedelta | None = None) -> KeyValueRecord:
        """Insert or replace a record, restarting its expiry window."""
        now = datetime.now(UTC)
        expires_at = now + ttl if ttl is not None else None
        record = await self._session.get(KeyValueRecord, key)
        if record is None:
            record = KeyValueRecord(key=key, value=value, updated_at=now, expires_at=expires_at)
            self._session.add(record)
        else:
            record.value = value
            record.updated_at = now
            record.expires_at = expires_at
        await self._session.flush()
        return record

    async def delete(self, key: str) -> bool:
        """Delete a record. Returns True if one existed."""
        record = await self._session.get(KeyValueRecord, key)
        if record is None:
            return False
        await self._session.delete(record)
        await self._session.flush()
        return True
