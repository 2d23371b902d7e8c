"""Tests for the SQLite schema, session repository and cache-first store."""
from __future__ import annotations

import asyncio
import sqlite3

import pytest

from interview_session.errors import SessionConflictError, SessionNotFoundError
from interview_session.models import (
    LogLevel,
    MessageRole,
    PendingMessage,
    Report,
    SessionRecord,
    SessionStatus,
)
from interview_session.fallbacks import placeholder_report
from storage.cache import MemoryCache, SafeCache, session_key
from storage.error_logs import ErrorLog
from storage.migrate import migrate
from storage.reports import ReportRepository
from storage.session_store import SessionStore


def _record(session_id: str = "s1", **overrides) -> SessionRecord:
    data = {
        "session_id": session_id,
        "target_position": "SRE",
        "resume_content": "On-call veteran.",
        "model": "gemini-2.5-flash",
        "total_questions": 3,
    }
    data.update(overrides)
    return SessionRecord(**data)


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "store.db")
    migrate(path)
    return path


@pytest.fixture
def cache():
    return SafeCache(MemoryCache())


def test_migrate_creates_tables(db_path):
    conn = sqlite3.connect(db_path)
    try:
        names = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
    finally:
        conn.close()
    assert {"interview_sessions", "interview_messages", "interview_reports", "system_logs"} <= names


def test_create_get_populates_cache(db_path, cache):
    store = SessionStore(db_path, cache)

    async def _go():
        await store.create(_record())
        await cache.delete(session_key("s1"))
        fetched = await store.get("s1")
        assert fetched is not None and fetched.target_position == "SRE"
        assert await cache.get(session_key("s1")) is not None
        assert await store.get("missing") is None

    asyncio.run(_go())


def test_update_appends_messages_with_contiguous_sequences(db_path, cache):
    store = SessionStore(db_path, cache)

    async def _go():
        await store.create(_record())
        _, first = await store.update(
            "s1",
            {"status": SessionStatus.IN_PROGRESS},
            expected={"status": SessionStatus.CONFIGURING},
            messages=[PendingMessage(role=MessageRole.AI, content="Q1", topic_tag="foundations")],
        )
        record, second = await store.update(
            "s1",
            {"current_question_index": 1},
            expected={"status": SessionStatus.IN_PROGRESS, "current_question_index": 0},
            messages=[
                PendingMessage(role=MessageRole.USER, content="A1"),
                PendingMessage(role=MessageRole.AI, content="Q2"),
            ],
        )
        return record, first, second

    record, first, second = asyncio.run(_go())
    assert record.current_question_index == 1
    assert [m.sequence for m in first + second] == [1, 2, 3]
    assert [m.content for m in store.messages("s1")] == ["Q1", "A1", "Q2"]


def test_cas_mismatch_writes_nothing(db_path, cache):
    store = SessionStore(db_path, cache)

    async def _go():
        await store.create(_record())
        with pytest.raises(SessionConflictError):
            await store.update(
                "s1",
                {"current_question_index": 1},
                expected={"status": SessionStatus.IN_PROGRESS},
                messages=[PendingMessage(role=MessageRole.USER, content="late")],
            )
        with pytest.raises(SessionNotFoundError):
            await store.update("nope", {"error_count": 1})
        return await store.require("s1")

    record = asyncio.run(_go())
    assert record.status is SessionStatus.CONFIGURING
    assert record.current_question_index == 0
    assert store.messages("s1") == []


def test_immutable_columns_are_rejected(db_path, cache):
    store = SessionStore(db_path, cache)

    async def _go():
        await store.create(_record())
        await store.update("s1", {"target_position": "Other"})

    with pytest.raises(ValueError):
        asyncio.run(_go())


def test_delete_cascades_but_keeps_error_log(db_path, cache):
    store = SessionStore(db_path, cache)
    reports = ReportRepository(db_path)
    error_log = ErrorLog(db_path)

    async def _go():
        await store.create(_record())
        await store.update("s1", {}, messages=[PendingMessage(role=MessageRole.AI, content="Q1")])
        reports.save(Report(session_id="s1", content=placeholder_report()))
        error_log.append("s1", LogLevel.WARN, "something odd", error_code="X")
        assert await store.delete("s1") is True
        assert await store.delete("s1") is False
        return await store.get("s1")

    assert asyncio.run(_go()) is None
    assert store.messages("s1") == []
    assert reports.fetch("s1") is None
    assert [entry.error_code for entry in error_log.recent(session_id="s1")] == ["X"]


def test_report_round_trip_is_stable(db_path, cache):
    store = SessionStore(db_path, cache)
    reports = ReportRepository(db_path)
    asyncio.run(store.create(_record()))
    reports.save(Report(session_id="s1", content=placeholder_report(), generated_at="2024-01-01T00:00:00+00:00"))
    first = reports.fetch("s1")
    second = reports.fetch("s1")
    assert first == second
    assert first.content.is_placeholder is True


def test_stats_and_listing(db_path, cache):
    store = SessionStore(db_path, cache)

    async def _go():
        await store.create(_record("a"))
        await store.create(_record("b", status=SessionStatus.IN_PROGRESS, current_question_index=1))
        await store.create(_record("c", status=SessionStatus.COMPLETED, current_question_index=3))

    asyncio.run(_go())
    stats = store.stats()
    assert stats.total == 3
    assert stats.completed == 1
    assert stats.in_progress == 1
    assert stats.configuring == 1
    assert stats.average_progress == pytest.approx(44.4, abs=0.1)
    assert len(store.list_recent(2, 0)) == 2
    assert len(store.list_recent(10, 2)) == 1


def test_conflict_replaces_stale_cached_copy(db_path):
    mine = SessionStore(db_path, SafeCache(MemoryCache()))
    theirs = SessionStore(db_path, SafeCache(MemoryCache()))

    async def _go():
        await mine.create(_record())
        await theirs.update("s1", {"status": SessionStatus.TIMEOUT}, expected={"status": SessionStatus.CONFIGURING})
        stale = await mine.get("s1")
        with pytest.raises(SessionConflictError):
            await mine.update(
                "s1",
                {"status": SessionStatus.IN_PROGRESS},
                expected={"status": SessionStatus.CONFIGURING},
            )
        return stale, await mine.get("s1")

    stale, fresh = asyncio.run(_go())
    assert stale.status is SessionStatus.CONFIGURING
    assert fresh.status is SessionStatus.TIMEOUT
