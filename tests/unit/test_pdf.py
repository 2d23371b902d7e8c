"""Tests for the PDF export of interview reports."""
from __future__ import annotations

from interview_session.fallbacks import placeholder_report
from interview_session.models import (
    QuestionAnalysis,
    Report,
    ReportContent,
    ScoringMatrix,
    SessionRecord,
    SessionStatus,
)
from session_reports import generate_report_pdf


def _record() -> SessionRecord:
    return SessionRecord(
        session_id="abc123",
        target_position="Staff Engineer – Platform",
        resume_content="resume",
        company_name="Acme",
        model="gemini-2.5-flash",
        total_questions=2,
        current_question_index=2,
        status=SessionStatus.COMPLETED,
        started_at="2024-05-01T10:00:00+00:00",
    )


def test_pdf_renders_full_report():
    content = ReportContent(
        overall_score=82,
        overall_summary="Clear communicator with “strong” design instincts.",
        scoring_matrix=ScoringMatrix(
            skill_match=8, company_fit=7, communication_clarity=9, star_method_application=6
        ),
        per_question_analysis=[
            QuestionAnalysis(
                question="How would you shard a user table?" * 3,
                answer="By tenant id, with a directory service. " * 10,
                feedback_strengths="Considered hot spots.",
                feedback_improvements="Mention resharding.",
                suggested_answer="Start with the access pattern.",
            )
            for _ in range(6)
        ],
        final_recommendations=["Practise STAR answers", "Review consistent hashing"],
    )
    payload = generate_report_pdf(_record(), Report(session_id="abc123", content=content))
    assert isinstance(payload, bytes)
    assert payload.startswith(b"%PDF")
    assert len(payload) > 1000


def test_pdf_renders_placeholder_report():
    payload = generate_report_pdf(_record(), Report(session_id="abc123", content=placeholder_report()))
    assert payload.startswith(b"%PDF")
