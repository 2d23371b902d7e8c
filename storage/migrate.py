"""SQLite schema migrations."""
from __future__ import annotations

import argparse
from typing import Iterable

from .sqlite import PathLike, get_conn

SCHEMA: Iterable[str] = [
    """
CREATE TABLE IF NOT EXISTS interview_sessions (
  session_id TEXT PRIMARY KEY,
  target_position TEXT NOT NULL,
  resume_content TEXT NOT NULL,
  job_description TEXT,
  company_name TEXT,
  company_context_summary TEXT,
  additional_info TEXT,
  provider TEXT NOT NULL,
  model TEXT NOT NULL,
  difficulty TEXT NOT NULL,
  total_questions INTEGER NOT NULL DEFAULT 10 CHECK (total_questions > 0),
  current_question_index INTEGER NOT NULL DEFAULT 0
    CHECK (current_question_index >= 0 AND current_question_index <= total_questions),
  status TEXT NOT NULL,
  context_confirmed INTEGER NOT NULL DEFAULT 0,
  error_count INTEGER NOT NULL DEFAULT 0,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL,
  started_at TEXT,
  completed_at TEXT
);
""",
    "CREATE INDEX IF NOT EXISTS idx_sessions_status ON interview_sessions(status, updated_at);",
    """
CREATE TABLE IF NOT EXISTS interview_messages (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  session_id TEXT NOT NULL,
  sequence INTEGER NOT NULL,
  role TEXT NOT NULL CHECK (role IN ('AI', 'USER')),
  content TEXT NOT NULL,
  topic_tag TEXT,
  context_summary TEXT,
  created_at TEXT NOT NULL,
  UNIQUE (session_id, sequence),
  FOREIGN KEY (session_id) REFERENCES interview_sessions(session_id) ON DELETE CASCADE
);
""",
    """
CREATE TABLE IF NOT EXISTS interview_reports (
  session_id TEXT PRIMARY KEY,
  content_json TEXT NOT NULL,
  is_placeholder INTEGER NOT NULL DEFAULT 0,
  generated_at TEXT NOT NULL,
  FOREIGN KEY (session_id) REFERENCES interview_sessions(session_id) ON DELETE CASCADE
);
""",
    """
CREATE TABLE IF NOT EXISTS system_logs (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  session_id TEXT,
  level TEXT NOT NULL CHECK (level IN ('INFO', 'WARN', 'ERROR', 'FATAL')),
  message TEXT NOT NULL,
  error_code TEXT,
  provider TEXT,
  retry_count INTEGER NOT NULL DEFAULT 0,
  created_at TEXT NOT NULL
);
""",
    "CREATE INDEX IF NOT EXISTS idx_system_logs_session ON system_logs(session_id, id);",
]


def migrate(db_path: PathLike = "data/interviews.db") -> None:
    """Apply schema migrations to the SQLite database."""

    with get_conn(db_path) as conn:
        cur = conn.cursor()
        for stmt in SCHEMA:
            cur.execute(stmt)


def main() -> None:
    parser = argparse.ArgumentParser(description="Create or upgrade the interview database schema")
    parser.add_argument("--db", default=None, help="Database path (defaults to DB_PATH)")
    args = parser.parse_args()
    if args.db:
        migrate(args.db)
        return
    from config.settings import settings

    migrate(settings.DB_PATH)


if __name__ == "__main__":
    main()
