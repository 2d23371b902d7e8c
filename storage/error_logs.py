"""Append-only error log for provider and transition failures.

Rows keep the session id as plain text rather than a foreign key so the
audit trail outlives deleted sessions.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from interview_session.models import ErrorLogEntry, LogLevel, utcnow

from .sqlite import PathLike, get_conn

logger = logging.getLogger(__name__)

_LOG_METHODS = {
    LogLevel.INFO: logger.info,
    LogLevel.WARN: logger.warning,
    LogLevel.ERROR: logger.error,
    LogLevel.FATAL: logger.critical,
}


class ErrorLog:  # SQLite-backed system_logs table
    def __init__(self, db_path: PathLike) -> None:
        self._path = db_path

    def append(
        self,
        session_id: Optional[str],
        level: LogLevel,
        message: str,
        *,
        error_code: Optional[str] = None,
        provider: Optional[str] = None,
        retry_count: int = 0,
    ) -> ErrorLogEntry:  # Insert one entry and mirror it to the module logger
        entry = ErrorLogEntry(
            session_id=session_id,
            level=level,
            message=message,
            error_code=error_code,
            provider=provider,
            retry_count=retry_count,
            created_at=utcnow(),
        )
        with get_conn(self._path) as conn:
            cur = conn.execute(
                """INSERT INTO system_logs
                   (session_id, level, message, error_code, provider, retry_count, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    entry.session_id,
                    entry.level.value,
                    entry.message,
                    entry.error_code,
                    entry.provider,
                    entry.retry_count,
                    entry.created_at,
                ),
            )
            entry_id = int(cur.lastrowid)
        _LOG_METHODS[level](
            "system_log level=%s session=%s code=%s provider=%s retries=%d message=%s",
            level.value,
            session_id,
            error_code,
            provider,
            retry_count,
            message,
        )
        return entry.model_copy(update={"id": entry_id})

    def recent(
        self,
        limit: int = 20,
        *,
        session_id: Optional[str] = None,
        level: Optional[LogLevel] = None,
    ) -> List[ErrorLogEntry]:  # Newest first
        clauses: List[str] = []
        params: List[object] = []
        if session_id is not None:
            clauses.append("session_id = ?")
            params.append(session_id)
        if level is not None:
            clauses.append("level = ?")
            params.append(level.value)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.append(limit)
        with get_conn(self._path) as conn:
            rows = conn.execute(
                f"""SELECT id, session_id, level, message, error_code, provider, retry_count, created_at
                    FROM system_logs {where}
                    ORDER BY id DESC
                    LIMIT ?""",
                params,
            ).fetchall()
        return [
            ErrorLogEntry(
                id=row["id"],
                session_id=row["session_id"],
                level=LogLevel(row["level"]),
                message=row["message"],
                error_code=row["error_code"],
                provider=row["provider"],
                retry_count=row["retry_count"],
                created_at=row["created_at"],
            )
            for row in rows
        ]


__all__ = ["ErrorLog"]
