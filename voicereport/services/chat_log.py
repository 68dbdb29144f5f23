"""Persisted history of submissions and their acknowledgments.

The whole history is stored as one JSON-encoded record whose expiry is
restarted on every write. Entries older than the retention window are also
dropped when the history is rehydrated.
"""

import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import UTC, datetime, timedelta

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from voicereport.core.config import Settings, get_settings
from voicereport.core.models import ChatEntry, ChatRole
from voicereport.core.utils import MonotonicIds
from voicereport.services.storage.database import get_session
from voicereport.services.storage.repository import KeyValueRepository

logger = logging.getLogger(__name__)

_ENTRIES = TypeAdapter(list[ChatEntry])

SessionScope = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class ChatLog:
    """Append-only (submitter, system) message history.

    Args:
        settings: Optional Settings instance (defaults to get_settings()).
        session_scope: Factory for a transactional ``AsyncSession`` scope.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        session_scope: SessionScope = get_session,
    ) -> None:
        self._settings = settings or get_settings()
        self._session_scope = session_scope
        self._entries: list[ChatEntry] = []
        self._ids = MonotonicIds()

    @property
    def entries(self) -> list[ChatEntry]:
        return list(self._entries)

    @property
    def retention(self) -> timedelta:
        return timedelta(days=self._settings.chat_retention_days)

    async def load(self) -> list[ChatEntry]:
        """Rehydrate history from storage, replacing in-memory entries."""
        async with self._session_scope() as session:
            raw = await KeyValueRepository(session).get(self._settings.chat_history_key)

        entries: list[ChatEntry] = []
        if raw:
            try:
                entries = _ENTRIES.validate_json(raw)
            except PydanticValidationError as exc:
                logger.warning("Discarding unreadable chat history: %s", exc)

        cutoff = datetime.now(UTC) - self.retention
        self._entries = [entry for entry in entries if entry.timestamp >= cutoff]
        if self._entries:
            self._ids.advance_past(max(entry.id for entry in self._entries))
        logger.info("Chat history loaded: %d entries", len(self._entries))
        return self.entries

    async def append(self, role: ChatRole, content: str) -> ChatEntry:
        """Append an entry and persist the history."""
        entry = ChatEntry(
            id=self._ids.next(),
            role=role,
            content=content,
            timestamp=datetime.now(UTC),
        )
        self._entries.append(entry)
        await self.persist()
        return entry

    async def persist(self) -> bool:
        """Write the full history as one record.

        Failures are logged and reported through the return value; the
        in-memory history is kept either way.
        """
        payload = _ENTRIES.dump_json(self._entries).decode()
        try:
            async with self._session_scope() as session:
                await KeyValueRepository(session).set(
                    self._settings.chat_history_key, payload, ttl=self.retention
                )
        except Exception:
            logger.exception("Failed to persist chat history")
            return False
        return True

    async def clear(self) -> None:
        self._entries = []
        async with self._session_scope() as session:
            await KeyValueRepository(session).delete(self._settings.chat_history_key)
