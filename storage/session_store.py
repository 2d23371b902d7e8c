from __future__ import annotations  # Cache-first session store over SQLite

import logging
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from pydantic import ValidationError

from interview_session.errors import SessionConflictError, SessionNotFoundError
from interview_session.models import Message, PendingMessage, SessionRecord, SessionStats, SessionStatus

from .cache import SafeCache, session_key
from .messages import MessageRepository
from .sessions import SessionRepository
from .sqlite import PathLike

logger = logging.getLogger(__name__)


class SessionStore:
    """Durable session records with a cache-first read path.

    Reads try the cache, fall back to SQLite and repopulate the cache. Every
    write lands in SQLite first and then overwrites the cached copy. A write
    whose compare-and-swap fails reloads the row, so a copy left stale by a
    writer on another cache is replaced before the conflict is reported.
    """

    def __init__(self, db_path: PathLike, cache: SafeCache, *, ttl_s: int = 7200) -> None:
        self._sessions = SessionRepository(db_path)
        self._messages = MessageRepository(db_path)
        self._cache = cache
        self._ttl_s = ttl_s

    async def create(self, record: SessionRecord) -> str:  # Insert and warm the cache
        self._sessions.insert(record)
        await self._remember(record)
        return record.session_id

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        cached = await self._cache.get(session_key(session_id))
        if cached is not None:
            try:
                return SessionRecord.model_validate_json(cached)
            except ValidationError as exc:
                logger.warning("Discarding unreadable cached session=%s error=%s", session_id, exc)
                await self._cache.delete(session_key(session_id))
        record = self._sessions.fetch(session_id)
        if record is not None:
            await self._remember(record)
        return record

    async def require(self, session_id: str) -> SessionRecord:
        record = await self.get(session_id)
        if record is None:
            raise SessionNotFoundError(session_id)
        return record

    async def update(
        self,
        session_id: str,
        changes: Mapping[str, Any],
        *,
        expected: Optional[Mapping[str, Any]] = None,
        messages: Sequence[PendingMessage] = (),
    ) -> Tuple[SessionRecord, List[Message]]:  # Transactional CAS write, then cache overwrite
        try:
            record, inserted = self._sessions.commit(session_id, changes, expected=expected, messages=messages)
        except SessionNotFoundError:
            await self._cache.delete(session_key(session_id))
            raise
        except SessionConflictError:
            await self._refresh(session_id)
            raise
        await self._remember(record)
        return record, inserted

    async def delete(self, session_id: str) -> bool:
        deleted = self._sessions.delete(session_id)
        await self._cache.delete(session_key(session_id))
        return deleted

    def messages(self, session_id: str) -> List[Message]:
        return self._messages.list_for(session_id)

    def list_recent(self, limit: int = 20, offset: int = 0) -> List[SessionRecord]:
        return self._sessions.list_recent(limit, offset)

    def stats(self) -> SessionStats:
        return self._sessions.stats()

    def stale_ids(self, statuses: Sequence[SessionStatus], updated_before: str) -> List[str]:
        return self._sessions.stale_ids(statuses, updated_before)

    async def _remember(self, record: SessionRecord) -> None:
        await self._cache.set(session_key(record.session_id), record.model_dump_json(), self._ttl_s)

    async def _refresh(self, session_id: str) -> None:  # Replace a cached copy that lost a CAS with the committed row
        record = self._sessions.fetch(session_id)
        if record is None:
            await self._cache.delete(session_key(session_id))
        else:
            await self._remember(record)


__all__ = ["SessionStore"]
