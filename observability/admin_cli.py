"""Lightweight CLI helpers for inspecting interview sessions and the error log."""
from __future__ import annotations

import argparse
import asyncio
from typing import List, Optional

from config.settings import Settings, settings
from interview_session.models import LogLevel
from services.container import build_services
from storage.cache import build_cache
from storage.error_logs import ErrorLog
from storage.migrate import migrate
from storage.sessions import SessionRepository


def tail_errors(limit: int = 20, *, level: Optional[str] = None, cfg: Settings = settings) -> None:
    migrate(cfg.DB_PATH)
    wanted = LogLevel(level.upper()) if level else None
    for entry in ErrorLog(cfg.DB_PATH).recent(limit, level=wanted):
        print(
            f"[{entry.created_at}] {entry.level.value} session={entry.session_id or '-'} "
            f"code={entry.error_code or '-'} provider={entry.provider or '-'} "
            f"retries={entry.retry_count} {entry.message}"
        )


def list_sessions(limit: int = 20, *, cfg: Settings = settings) -> None:
    migrate(cfg.DB_PATH)
    for record in SessionRepository(cfg.DB_PATH).list_recent(limit, 0):
        print(
            f"[{record.updated_at}] {record.session_id} {record.status.value} "
            f"{record.current_question_index}/{record.total_questions} "
            f"{record.provider.value}:{record.model} position={record.target_position!r}"
        )


def show_stats(*, cfg: Settings = settings) -> None:
    migrate(cfg.DB_PATH)
    stats = SessionRepository(cfg.DB_PATH).stats()
    print(
        f"total={stats.total} completed={stats.completed} in_progress={stats.in_progress} "
        f"configuring={stats.configuring} failed={stats.failed} timed_out={stats.timed_out} "
        f"average_progress={stats.average_progress:.1f}%"
    )


async def _expire(cfg: Settings) -> List[str]:
    services = await build_services(cfg, adapters={}, cache=await build_cache(cfg.REDIS_URL))
    try:
        return await services.machine.expire_stale_sessions()
    finally:
        await services.aclose()


def expire_stale(*, cfg: Settings = settings) -> None:
    expired = asyncio.run(_expire(cfg))
    for sid in expired:
        print(f"expired {sid}")
    print(f"{len(expired)} session(s) moved to TIMEOUT")


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--tail-errors", type=int, help="Show the latest error log entries")
    parser.add_argument("--level", help="Filter --tail-errors by level (INFO, WARN, ERROR, FATAL)")
    parser.add_argument("--sessions", type=int, help="Show the most recently updated sessions")
    parser.add_argument("--stats", action="store_true", help="Show aggregate session counters")
    parser.add_argument("--expire-stale", action="store_true", help="Move idle sessions to TIMEOUT")
    args = parser.parse_args(argv)

    if args.tail_errors:
        tail_errors(args.tail_errors, level=args.level)
    if args.sessions:
        list_sessions(args.sessions)
    if args.stats:
        show_stats()
    if args.expire_stale:
        expire_stale()


if __name__ == "__main__":
    main()
