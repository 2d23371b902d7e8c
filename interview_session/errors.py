"""Error taxonomy for interview session transitions.

Each error carries a stable ``code`` and the HTTP ``status_code`` the API
layer answers with. Provider failures never surface here; the state machine
absorbs them with fallbacks.
"""
from __future__ import annotations

from typing import Optional


class InterviewError(Exception):  # Base error with a machine-readable code
    code = "INTERNAL_SERVER_ERROR"
    status_code = 500

    def __init__(self, message: Optional[str] = None, *, code: Optional[str] = None) -> None:
        if code is not None:
            self.code = code
        self.message = message or self.code.replace("_", " ").capitalize()
        super().__init__(self.message)


class ValidationFailedError(InterviewError):  # Missing or invalid caller input
    code = "VALIDATION_FAILED"
    status_code = 400


class SessionNotFoundError(InterviewError):
    code = "SESSION_NOT_FOUND"
    status_code = 404

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session '{session_id}' not found")
        self.session_id = session_id


class InvalidTransitionError(InterviewError):  # Operation not allowed from the current status
    code = "INVALID_STATE_TRANSITION"
    status_code = 409


class SessionConflictError(InterviewError):  # Lost a compare-and-swap race on the session row
    code = "SESSION_CONFLICT"
    status_code = 409


class ReportNotReadyError(InterviewError):  # Poll-again signal, not a failure
    code = "REPORT_NOT_READY"
    status_code = 202


class StorageError(InterviewError):  # Durable store failure
    code = "INTERNAL_SERVER_ERROR"
    status_code = 500


__all__ = [
    "InterviewError",
    "InvalidTransitionError",
    "ReportNotReadyError",
    "SessionConflictError",
    "SessionNotFoundError",
    "StorageError",
    "ValidationFailedError",
]
