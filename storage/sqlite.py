"""SQLite helpers for the persistence layer."""
from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

from interview_session.errors import StorageError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def connect(db_path: PathLike) -> sqlite3.Connection:
    """Open a connection with row access by name and foreign keys enforced."""

    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def get_conn(db_path: PathLike) -> Iterator[sqlite3.Connection]:
    """Yield a connection that commits on success and rolls back on error.

    ``sqlite3.Error`` is re-raised as ``StorageError`` so callers only deal
    with the interview error taxonomy.
    """

    try:
        conn = connect(db_path)
    except sqlite3.Error as exc:
        logger.error("SQLite connect failed path=%s error=%s", db_path, exc)
        raise StorageError(f"Database unavailable: {exc}") from exc
    try:
        yield conn
        conn.commit()
    except sqlite3.Error as exc:
        conn.rollback()
        logger.error("SQLite operation failed path=%s error=%s", db_path, exc)
        raise StorageError(f"Database error: {exc}") from exc
    except BaseException:
        conn.rollback()
        raise
    finally:
        conn.close()


__all__ = ["PathLike", "connect", "get_conn"]
