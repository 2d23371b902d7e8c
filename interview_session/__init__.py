"""Interview session domain: models, errors and the state machine.

Only the leaf modules are re-exported here so the storage layer can import
them; import the state machine from ``interview_session.state_machine``.
"""
from .errors import (
    InterviewError,
    InvalidTransitionError,
    ReportNotReadyError,
    SessionConflictError,
    SessionNotFoundError,
    StorageError,
    ValidationFailedError,
)
from .models import (
    AnswerResult,
    ConfigureResult,
    CreateResult,
    Difficulty,
    ErrorLogEntry,
    LogLevel,
    Message,
    MessageRole,
    PendingMessage,
    Report,
    ReportContent,
    ScoringMatrix,
    SessionRecord,
    SessionStats,
    SessionStatus,
    StartResult,
)

__all__ = [
    "AnswerResult",
    "ConfigureResult",
    "CreateResult",
    "Difficulty",
    "ErrorLogEntry",
    "InterviewError",
    "InvalidTransitionError",
    "LogLevel",
    "Message",
    "MessageRole",
    "PendingMessage",
    "Report",
    "ReportContent",
    "ReportNotReadyError",
    "ScoringMatrix",
    "SessionConflictError",
    "SessionNotFoundError",
    "SessionRecord",
    "SessionStats",
    "SessionStatus",
    "StartResult",
    "StorageError",
    "ValidationFailedError",
]
