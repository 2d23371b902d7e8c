from __future__ import annotations  # Interview session domain models

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from config.providers import Provider
from llm_gateway.messages import ChatTurn
from prompt_builder import InterviewProfile


def utcnow() -> str:  # ISO-8601 UTC timestamp used for every persisted row
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class SessionStatus(str, Enum):
    CONFIGURING = "CONFIGURING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    TIMEOUT = "TIMEOUT"

    @property
    def terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.FAILED, SessionStatus.TIMEOUT)


class Difficulty(str, Enum):  # Ordered interview levels
    JUNIOR = "Junior"
    MID = "Mid"
    SENIOR = "Senior"
    EXPERT = "Expert"

    @property
    def rank(self) -> int:
        return list(Difficulty).index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Difficulty):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Difficulty):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Difficulty):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Difficulty):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Difficulty"]:  # Case-insensitive lookup
        if not value:
            return None
        wanted = value.strip().lower()
        for member in cls:
            if member.value.lower() == wanted or member.name.lower() == wanted:
                return member
        return None


class MessageRole(str, Enum):
    AI = "AI"
    USER = "USER"


class LogLevel(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    FATAL = "FATAL"


class SessionRecord(BaseModel):  # Persisted session aggregate
    session_id: str
    target_position: str
    resume_content: str
    job_description: Optional[str] = None
    company_name: Optional[str] = None
    company_context_summary: Optional[str] = None
    additional_info: Optional[str] = None
    provider: Provider = Provider.GOOGLE
    model: str
    difficulty: Difficulty = Difficulty.SENIOR
    total_questions: int = Field(default=10, ge=1)
    current_question_index: int = Field(default=0, ge=0)
    status: SessionStatus = SessionStatus.CONFIGURING
    context_confirmed: bool = False
    error_count: int = Field(default=0, ge=0)
    created_at: str = Field(default_factory=utcnow)
    updated_at: str = Field(default_factory=utcnow)
    started_at: Optional[str] = None
    completed_at: Optional[str] = None

    @model_validator(mode="after")
    def _index_within_total(self) -> "SessionRecord":
        if self.current_question_index > self.total_questions:
            raise ValueError("current_question_index cannot exceed total_questions")
        return self

    def profile(self) -> InterviewProfile:  # Prompt-facing view of the session
        return InterviewProfile(
            target_position=self.target_position,
            resume_content=self.resume_content,
            difficulty=self.difficulty.value,
            total_questions=self.total_questions,
            job_description=self.job_description,
            company_context=self.company_context_summary,
            additional_info=self.additional_info,
        )


class Message(BaseModel):  # One immutable transcript turn
    session_id: str
    sequence: int = Field(ge=1)
    role: MessageRole
    content: str
    topic_tag: Optional[str] = None
    context_summary: Optional[str] = None
    created_at: str = Field(default_factory=utcnow)

    def as_turn(self) -> ChatTurn:
        return ChatTurn(role="assistant" if self.role is MessageRole.AI else "user", content=self.content)


class PendingMessage(BaseModel):  # Message awaiting a sequence number at commit time
    role: MessageRole
    content: str
    topic_tag: Optional[str] = None
    context_summary: Optional[str] = None


def _clamp(value: Any, low: float, high: float) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return value
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise ValueError("score must be a finite number")
        return float(min(max(value, low), high))
    return value


class ScoringMatrix(BaseModel):  # Four fixed sub-scores, each 0-10
    skill_match: float
    company_fit: float
    communication_clarity: float
    star_method_application: float

    @field_validator("skill_match", "company_fit", "communication_clarity", "star_method_application", mode="before")
    @classmethod
    def _within_range(cls, value: Any) -> Any:
        return _clamp(value, 0.0, 10.0)


class QuestionAnalysis(BaseModel):
    question: str = ""
    answer: str = ""
    feedback_strengths: str = ""
    feedback_improvements: str = ""
    suggested_answer: str = ""


class ReportContent(BaseModel):
    """Structured evaluation produced by the final-report prompt.

    Scores outside their range are clamped rather than rejected; anything
    that is not a number fails validation and leads to the placeholder.
    """

    overall_score: float
    overall_summary: str
    scoring_matrix: ScoringMatrix
    per_question_analysis: List[QuestionAnalysis] = Field(default_factory=list)
    final_recommendations: List[str] = Field(default_factory=list)
    is_placeholder: bool = False

    @field_validator("overall_score", mode="before")
    @classmethod
    def _overall_range(cls, value: Any) -> Any:
        return _clamp(value, 0.0, 100.0)

    @field_validator("final_recommendations", mode="before")
    @classmethod
    def _listify(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value] if value.strip() else []
        return value


class Report(BaseModel):  # Stored report, at most one per session
    session_id: str
    content: ReportContent
    generated_at: str = Field(default_factory=utcnow)


class ErrorLogEntry(BaseModel):  # Append-only failure record
    id: Optional[int] = None
    session_id: Optional[str] = None
    level: LogLevel
    message: str
    error_code: Optional[str] = None
    provider: Optional[str] = None
    retry_count: int = 0
    created_at: str = Field(default_factory=utcnow)


class CreateResult(BaseModel):
    session_id: str
    status: SessionStatus
    context_confirmed: bool
    role_confirmation_text: Optional[str] = None


class ConfigureResult(BaseModel):
    session_id: str
    status: SessionStatus
    context_confirmed: bool
    role_confirmation_text: Optional[str] = None


class StartResult(BaseModel):
    session_id: str
    status: SessionStatus
    provider: Provider
    model: str
    difficulty: Difficulty
    total_questions: int
    question: str


class AnswerResult(BaseModel):
    session_id: str
    status: SessionStatus
    question: Optional[str] = None
    is_complete: bool
    current_question_index: int
    total_questions: int


class SessionStats(BaseModel):  # Aggregate counters across all sessions
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    configuring: int = 0
    failed: int = 0
    timed_out: int = 0
    average_progress: float = 0.0
    by_status: Dict[str, int] = Field(default_factory=dict)


__all__ = [
    "AnswerResult",
    "ConfigureResult",
    "CreateResult",
    "Difficulty",
    "ErrorLogEntry",
    "LogLevel",
    "Message",
    "MessageRole",
    "PendingMessage",
    "QuestionAnalysis",
    "Report",
    "ReportContent",
    "ScoringMatrix",
    "SessionRecord",
    "SessionStats",
    "SessionStatus",
    "StartResult",
    "utcnow",
]
