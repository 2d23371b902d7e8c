"""Persistence helpers for interview evaluation reports."""
from __future__ import annotations

from typing import Optional

from interview_session.models import Report, ReportContent

from .sqlite import PathLike, get_conn


class ReportRepository:  # One report row per session, overwritten on regeneration
    def __init__(self, db_path: PathLike) -> None:
        self._path = db_path

    def save(self, report: Report) -> Report:
        with get_conn(self._path) as conn:
            conn.execute(
                """INSERT OR REPLACE INTO interview_reports
                   (session_id, content_json, is_placeholder, generated_at)
                   VALUES (?, ?, ?, ?)""",
                (
                    report.session_id,
                    report.content.model_dump_json(),
                    int(report.content.is_placeholder),
                    report.generated_at,
                ),
            )
        return report

    def fetch(self, session_id: str) -> Optional[Report]:
        with get_conn(self._path) as conn:
            row = conn.execute(
                "SELECT session_id, content_json, generated_at FROM interview_reports WHERE session_id = ?",
                (session_id,),
            ).fetchone()
        if row is None:
            return None
        return Report(
            session_id=row["session_id"],
            content=ReportContent.model_validate_json(row["content_json"]),
            generated_at=row["generated_at"],
        )


__all__ = ["ReportRepository"]
