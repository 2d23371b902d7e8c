"""Persistence helpers for interview transcript messages."""
from __future__ import annotations

import sqlite3
from typing import List, Sequence

from interview_session.models import Message, MessageRole, PendingMessage

from .sqlite import PathLike, get_conn


def append_messages(
    conn: sqlite3.Connection,
    session_id: str,
    pending: Sequence[PendingMessage],
    created_at: str,
) -> List[Message]:
    """Insert ``pending`` messages after the current last sequence.

    Must run inside the transaction that committed the session change so the
    sequence read and the inserts see the same snapshot.
    """

    if not pending:
        return []
    row = conn.execute(
        "SELECT COALESCE(MAX(sequence), 0) AS last FROM interview_messages WHERE session_id = ?",
        (session_id,),
    ).fetchone()
    sequence = int(row["last"])
    inserted: List[Message] = []
    for item in pending:
        sequence += 1
        message = Message(
            session_id=session_id,
            sequence=sequence,
            role=item.role,
            content=item.content,
            topic_tag=item.topic_tag,
            context_summary=item.context_summary,
            created_at=created_at,
        )
        conn.execute(
            """INSERT INTO interview_messages
               (session_id, sequence, role, content, topic_tag, context_summary, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                message.session_id,
                message.sequence,
                message.role.value,
                message.content,
                message.topic_tag,
                message.context_summary,
                message.created_at,
            ),
        )
        inserted.append(message)
    return inserted


class MessageRepository:  # Read access to a session transcript
    def __init__(self, db_path: PathLike) -> None:
        self._path = db_path

    def list_for(self, session_id: str) -> List[Message]:  # Ordered by sequence
        with get_conn(self._path) as conn:
            rows = conn.execute(
                """SELECT session_id, sequence, role, content, topic_tag, context_summary, created_at
                   FROM interview_messages
                   WHERE session_id = ?
                   ORDER BY sequence ASC""",
                (session_id,),
            ).fetchall()
        return [
            Message(
                session_id=row["session_id"],
                sequence=row["sequence"],
                role=MessageRole(row["role"]),
                content=row["content"],
                topic_tag=row["topic_tag"],
                context_summary=row["context_summary"],
                created_at=row["created_at"],
            )
            for row in rows
        ]


__all__ = ["MessageRepository", "append_messages"]
