"""Durable session rows with compare-and-swap updates."""
from __future__ import annotations

import sqlite3
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from interview_session.errors import SessionConflictError, SessionNotFoundError
from interview_session.models import (
    Message,
    PendingMessage,
    SessionRecord,
    SessionStats,
    SessionStatus,
    utcnow,
)

from .messages import append_messages
from .sqlite import PathLike, get_conn

COLUMNS: Tuple[str, ...] = (
    "session_id",
    "target_position",
    "resume_content",
    "job_description",
    "company_name",
    "company_context_summary",
    "additional_info",
    "provider",
    "model",
    "difficulty",
    "total_questions",
    "current_question_index",
    "status",
    "context_confirmed",
    "error_count",
    "created_at",
    "updated_at",
    "started_at",
    "completed_at",
)

IMMUTABLE_COLUMNS = frozenset({"session_id", "target_position", "resume_content", "job_description", "created_at"})

_SELECT = f"SELECT {', '.join(COLUMNS)} FROM interview_sessions"


def _to_db(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    return value


def _row_to_record(row: sqlite3.Row) -> SessionRecord:
    data: Dict[str, Any] = {column: row[column] for column in COLUMNS}
    data["context_confirmed"] = bool(data["context_confirmed"])
    return SessionRecord.model_validate(data)


class SessionRepository:  # SQLite-backed session rows
    def __init__(self, db_path: PathLike) -> None:
        self._path = db_path

    def insert(self, record: SessionRecord) -> None:
        values = record.model_dump()
        with get_conn(self._path) as conn:
            conn.execute(
                f"INSERT INTO interview_sessions ({', '.join(COLUMNS)}) VALUES ({', '.join('?' for _ in COLUMNS)})",
                tuple(_to_db(values[column]) for column in COLUMNS),
            )

    def fetch(self, session_id: str) -> Optional[SessionRecord]:
        with get_conn(self._path) as conn:
            row = conn.execute(f"{_SELECT} WHERE session_id = ?", (session_id,)).fetchone()
        return _row_to_record(row) if row is not None else None

    def commit(
        self,
        session_id: str,
        changes: Mapping[str, Any],
        *,
        expected: Optional[Mapping[str, Any]] = None,
        messages: Sequence[PendingMessage] = (),
    ) -> Tuple[SessionRecord, List[Message]]:
        """Apply ``changes`` and append ``messages`` in one transaction.

        When ``expected`` is given the row is only updated if every listed
        column still holds the expected value; otherwise nothing is written
        and ``SessionConflictError`` is raised.
        """

        blocked = IMMUTABLE_COLUMNS.intersection(changes)
        unknown = set(changes).difference(COLUMNS)
        if blocked or unknown:
            raise ValueError(f"Cannot update columns: {sorted(blocked | unknown)}")
        now = utcnow()
        assignments: Dict[str, Any] = {column: _to_db(value) for column, value in changes.items()}
        assignments["updated_at"] = now
        clauses = ["session_id = ?"]
        params: List[Any] = list(assignments.values()) + [session_id]
        for column, value in (expected or {}).items():
            clauses.append(f"{column} = ?")
            params.append(_to_db(value))
        set_clause = ", ".join(f"{column} = ?" for column in assignments)
        with get_conn(self._path) as conn:
            cur = conn.execute(
                f"UPDATE interview_sessions SET {set_clause} WHERE {' AND '.join(clauses)}",
                params,
            )
            if cur.rowcount == 0:
                exists = conn.execute(
                    "SELECT 1 FROM interview_sessions WHERE session_id = ?", (session_id,)
                ).fetchone()
                if exists is None:
                    raise SessionNotFoundError(session_id)
                raise SessionConflictError(f"Session '{session_id}' changed concurrently; resubmit the request")
            inserted = append_messages(conn, session_id, messages, now)
            row = conn.execute(f"{_SELECT} WHERE session_id = ?", (session_id,)).fetchone()
        return _row_to_record(row), inserted

    def delete(self, session_id: str) -> bool:  # Messages and report cascade
        with get_conn(self._path) as conn:
            cur = conn.execute("DELETE FROM interview_sessions WHERE session_id = ?", (session_id,))
            return cur.rowcount > 0

    def list_recent(self, limit: int = 20, offset: int = 0) -> List[SessionRecord]:
        with get_conn(self._path) as conn:
            rows = conn.execute(
                f"{_SELECT} ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
                (limit, offset),
            ).fetchall()
        return [_row_to_record(row) for row in rows]

    def stale_ids(self, statuses: Sequence[SessionStatus], updated_before: str) -> List[str]:
        placeholders = ", ".join("?" for _ in statuses)
        with get_conn(self._path) as conn:
            rows = conn.execute(
                f"""SELECT session_id FROM interview_sessions
                    WHERE status IN ({placeholders}) AND updated_at < ?
                    ORDER BY updated_at ASC""",
                [status.value for status in statuses] + [updated_before],
            ).fetchall()
        return [row["session_id"] for row in rows]

    def stats(self) -> SessionStats:
        with get_conn(self._path) as conn:
            rows = conn.execute(
                """SELECT status,
                          COUNT(*) AS total,
                          SUM(CAST(current_question_index AS REAL) / total_questions) AS progress
                   FROM interview_sessions
                   GROUP BY status"""
            ).fetchall()
        by_status = {row["status"]: int(row["total"]) for row in rows}
        total = sum(by_status.values())
        progress = sum(float(row["progress"] or 0.0) for row in rows)
        return SessionStats(
            total=total,
            completed=by_status.get(SessionStatus.COMPLETED.value, 0),
            in_progress=by_status.get(SessionStatus.IN_PROGRESS.value, 0),
            configuring=by_status.get(SessionStatus.CONFIGURING.value, 0),
            failed=by_status.get(SessionStatus.FAILED.value, 0),
            timed_out=by_status.get(SessionStatus.TIMEOUT.value, 0),
            average_progress=round(progress / total * 100, 1) if total else 0.0,
            by_status=by_status,
        )


__all__ = ["COLUMNS", "SessionRepository"]
