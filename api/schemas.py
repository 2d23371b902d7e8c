"""Pydantic schemas for the interview session API."""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from interview_session.models import (
    Difficulty,
    Message,
    Report,
    ReportContent,
    SessionRecord,
    SessionStats,
    SessionStatus,
)
from config.providers import Provider


class StartReq(BaseModel):  # JSON body for session creation
    target_position: Optional[str] = None
    resume_content: Optional[str] = None
    job_description: Optional[str] = None
    company_name: Optional[str] = None
    additional_info: Optional[str] = None


class ConfigureReq(BaseModel):
    session_id: Optional[str] = None
    role_correction: Optional[str] = None


class StartSessionReq(BaseModel):
    session_id: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    difficulty: Optional[str] = None
    total_questions: Optional[int] = None


class SubmitAnswerReq(BaseModel):
    session_id: Optional[str] = None
    answer: Optional[str] = None


class SessionReq(BaseModel):
    session_id: Optional[str] = None


class SessionInfo(BaseModel):  # Session snapshot returned to clients
    session_id: str
    status: SessionStatus
    target_position: str
    company_name: Optional[str] = None
    company_context_summary: Optional[str] = None
    job_description: Optional[str] = None
    provider: Provider
    model: str
    difficulty: Difficulty
    context_confirmed: bool
    current_question_index: int
    total_questions: int
    progress: float = Field(ge=0.0, le=100.0)
    error_count: int
    created_at: str
    updated_at: str
    started_at: Optional[str] = None
    completed_at: Optional[str] = None

    @classmethod
    def from_record(cls, record: SessionRecord) -> "SessionInfo":
        progress = 100.0 * record.current_question_index / record.total_questions
        return cls(
            session_id=record.session_id,
            status=record.status,
            target_position=record.target_position,
            company_name=record.company_name,
            company_context_summary=record.company_context_summary,
            job_description=record.job_description,
            provider=record.provider,
            model=record.model,
            difficulty=record.difficulty,
            context_confirmed=record.context_confirmed,
            current_question_index=record.current_question_index,
            total_questions=record.total_questions,
            progress=round(progress, 1),
            error_count=record.error_count,
            created_at=record.created_at,
            updated_at=record.updated_at,
            started_at=record.started_at,
            completed_at=record.completed_at,
        )


class MessagesResp(BaseModel):
    session_id: str
    messages: List[Message] = Field(default_factory=list)


class ReportResp(BaseModel):
    session_id: str
    generated_at: str
    report: ReportContent

    @classmethod
    def from_report(cls, report: Report) -> "ReportResp":
        return cls(session_id=report.session_id, generated_at=report.generated_at, report=report.content)


class DeleteResp(BaseModel):
    session_id: str
    deleted: bool = True


class SessionListResp(BaseModel):
    sessions: List[SessionInfo] = Field(default_factory=list)
    stats: SessionStats
    limit: int
    offset: int


class ProviderInfo(BaseModel):
    provider: Provider
    configured: bool
    models: List[str] = Field(default_factory=list)
    default_model: Optional[str] = None


class ErrorResp(BaseModel):  # Body of every error response
    error: str
    message: str
