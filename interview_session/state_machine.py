from __future__ import annotations  # Interview session lifecycle and LLM orchestration

import asyncio
import logging
import weakref
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Set, Tuple
from uuid import uuid4

from pydantic import ValidationError

from company_research import CompanyResearchService, render
from config.providers import Provider, ProviderCatalog
from config.settings import Settings
from llm_gateway import LlmGateway, ProviderError, strip_code_fences
from llm_gateway.messages import ChatTurn
from observability import log_event
from prompt_builder import Phase, build_prompt
from storage.error_logs import ErrorLog
from storage.reports import ReportRepository
from storage.session_store import SessionStore

from .errors import (
    InvalidTransitionError,
    ReportNotReadyError,
    SessionConflictError,
    SessionNotFoundError,
    ValidationFailedError,
)
from .fallbacks import OPENING_QUESTION, fallback_confirmation, fallback_question, placeholder_report
from .models import (
    AnswerResult,
    ConfigureResult,
    CreateResult,
    Difficulty,
    LogLevel,
    Message,
    MessageRole,
    PendingMessage,
    Report,
    ReportContent,
    SessionRecord,
    SessionStats,
    SessionStatus,
    StartResult,
    utcnow,
)

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (SessionStatus.CONFIGURING, SessionStatus.IN_PROGRESS)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = value.strip()
    return text or None


def _require_id(session_id: Optional[str]) -> str:
    sid = _clean(session_id)
    if sid is None:
        raise ValidationFailedError("session_id is required", code="MISSING_SESSION_ID")
    return sid


def _extract_json(raw: str) -> str:  # Strip fences and any prose around the JSON object
    text = strip_code_fences(raw)
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        return text[start : end + 1]
    return text


def _merge_correction(context: Optional[str], correction: str) -> str:
    note = f"Candidate clarification: {correction}"
    return f"{context}\n{note}" if context else note


class InterviewStateMachine:
    """Drive interview sessions through CONFIGURING, IN_PROGRESS and COMPLETED.

    Every transition reads the session under a per-session lock, releases the
    lock while the provider is called, then re-acquires it and commits with a
    compare-and-swap on the status and question index it read. A transition
    that loses the race raises ``SessionConflictError`` and writes nothing.
    Provider failures never fail a transition: a deterministic fallback is
    used and an ERROR entry is appended to the error log.
    """

    def __init__(
        self,
        *,
        store: SessionStore,
        reports: ReportRepository,
        error_log: ErrorLog,
        gateway: LlmGateway,
        catalog: ProviderCatalog,
        settings: Settings,
        research: Optional[CompanyResearchService] = None,
    ) -> None:
        self._store = store
        self._reports = reports
        self._error_log = error_log
        self._gateway = gateway
        self._catalog = catalog
        self._settings = settings
        self._research = research
        self._default_provider = Provider(settings.DEFAULT_PROVIDER.upper())
        self._default_difficulty = Difficulty.parse(settings.DEFAULT_DIFFICULTY) or Difficulty.SENIOR
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()  # Dropped once idle
        self._report_tasks: Set[asyncio.Task] = set()

    def _lock(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    async def create_session(
        self,
        target_position: Optional[str],
        resume_content: Optional[str],
        *,
        job_description: Optional[str] = None,
        company_name: Optional[str] = None,
        additional_info: Optional[str] = None,
    ) -> CreateResult:  # New session in CONFIGURING with index 0
        position = _clean(target_position)
        resume = _clean(resume_content)
        if position is None or resume is None:
            raise ValidationFailedError(
                "target_position and resume_content are required",
                code="MISSING_REQUIRED_FIELDS",
            )
        job = _clean(job_description)
        company = _clean(company_name)
        context = await self._company_context(company) if company else None
        record = SessionRecord(
            session_id=uuid4().hex,
            target_position=position,
            resume_content=resume,
            job_description=job,
            company_name=company,
            company_context_summary=context,
            additional_info=_clean(additional_info),
            provider=self._default_provider,
            model=self._catalog.profile(self._default_provider).default_model,
            difficulty=self._default_difficulty,
            total_questions=self._settings.DEFAULT_TOTAL_QUESTIONS,
            context_confirmed=job is not None,
        )
        await self._store.create(record)
        log_event("session_created", record.session_id, status=record.status)
        confirmation = None
        if job is None:
            confirmation = await self._confirmation_text(record, Phase.ROLE_CONFIRMATION)
        return CreateResult(
            session_id=record.session_id,
            status=record.status,
            context_confirmed=record.context_confirmed,
            role_confirmation_text=confirmation,
        )

    async def configure_session(
        self,
        session_id: Optional[str],
        role_correction: Optional[str] = None,
    ) -> ConfigureResult:  # Confirm the context, or merge a correction and ask again
        sid = _require_id(session_id)
        correction = _clean(role_correction)
        async with self._lock(sid):
            record = await self._store.require(sid)
            if record.status is not SessionStatus.CONFIGURING:
                raise InvalidTransitionError(
                    f"Context can only be changed while CONFIGURING (status is {record.status.value})"
                )
            changes: Dict[str, object] = {"context_confirmed": correction is None}
            if correction is not None:
                changes["company_context_summary"] = _merge_correction(record.company_context_summary, correction)
            record, _ = await self._store.update(
                sid,
                changes,
                expected={"status": SessionStatus.CONFIGURING},
            )
        if correction is None:
            log_event("context_confirmed", sid, status=record.status)
            return ConfigureResult(session_id=sid, status=record.status, context_confirmed=True)
        log_event("context_corrected", sid, status=record.status)
        text = await self._confirmation_text(record, Phase.CONTEXT_CORRECTION, correction=correction)
        return ConfigureResult(
            session_id=sid,
            status=record.status,
            context_confirmed=False,
            role_confirmation_text=text,
        )

    async def start_session(
        self,
        session_id: Optional[str],
        provider: Optional[str],
        model: Optional[str] = None,
        difficulty: Optional[str] = None,
        total_questions: Optional[int] = None,
    ) -> StartResult:  # CONFIGURING -> IN_PROGRESS with the first question
        sid = _require_id(session_id)
        async with self._lock(sid):
            record = await self._store.require(sid)
            chosen_provider, chosen_model, chosen_difficulty, count = self._validate_config(
                record, provider, model, difficulty, total_questions
            )
            self._ensure_startable(record)
        configured = record.model_copy(
            update={
                "provider": chosen_provider,
                "model": chosen_model,
                "difficulty": chosen_difficulty,
                "total_questions": count,
            }
        )
        question, tag, fell_back = await self._ask(configured, [], question_number=1, last_answer=None)
        async with self._lock(sid):
            record, _ = await self._store.update(
                sid,
                {
                    "provider": chosen_provider,
                    "model": chosen_model,
                    "difficulty": chosen_difficulty,
                    "total_questions": count,
                    "status": SessionStatus.IN_PROGRESS,
                    "started_at": utcnow(),
                    "error_count": record.error_count + int(fell_back),
                },
                expected={"status": SessionStatus.CONFIGURING, "context_confirmed": True},
                messages=[PendingMessage(role=MessageRole.AI, content=question, topic_tag=tag)],
            )
        log_event(
            "session_started",
            sid,
            status=record.status,
            provider=record.provider,
            model=record.model,
            total_questions=record.total_questions,
            fallback=fell_back or None,
        )
        return StartResult(
            session_id=sid,
            status=record.status,
            provider=record.provider,
            model=record.model,
            difficulty=record.difficulty,
            total_questions=record.total_questions,
            question=question,
        )

    def _validate_config(
        self,
        record: SessionRecord,
        provider: Optional[str],
        model: Optional[str],
        difficulty: Optional[str],
        total_questions: Optional[int],
    ) -> Tuple[Provider, str, Difficulty, int]:
        try:
            chosen_provider = Provider((provider or "").strip().upper())
        except ValueError:
            raise ValidationFailedError(
                f"Unsupported provider '{provider}'; expected one of {', '.join(p.value for p in Provider)}",
                code="INVALID_PROVIDER",
            ) from None
        chosen_model = self._catalog.resolve_model(chosen_provider, _clean(model))
        if chosen_model is None:
            raise ValidationFailedError(
                f"Model '{model}' is not available for provider {chosen_provider.value}",
                code="INVALID_MODEL",
            )
        chosen_difficulty = record.difficulty
        if _clean(difficulty) is not None:
            parsed = Difficulty.parse(difficulty)
            if parsed is None:
                raise ValidationFailedError(
                    f"Unsupported difficulty '{difficulty}'; expected one of {', '.join(d.value for d in Difficulty)}",
                    code="INVALID_DIFFICULTY",
                )
            chosen_difficulty = parsed
        count = record.total_questions if total_questions is None else total_questions
        if isinstance(count, bool) or not isinstance(count, int) or not 1 <= count <= self._settings.MAX_TOTAL_QUESTIONS:
            raise ValidationFailedError(
                f"total_questions must be between 1 and {self._settings.MAX_TOTAL_QUESTIONS}",
                code="INVALID_QUESTION_COUNT",
            )
        return chosen_provider, chosen_model, chosen_difficulty, count

    @staticmethod
    def _ensure_startable(record: SessionRecord) -> None:
        if record.status is not SessionStatus.CONFIGURING:
            raise InvalidTransitionError(
                f"Session can only be started from CONFIGURING (status is {record.status.value})"
            )
        if not record.context_confirmed:
            raise InvalidTransitionError(
                "Confirm the interview context before starting the session",
                code="CONTEXT_NOT_CONFIRMED",
            )

    async def submit_answer(self, session_id: Optional[str], answer: Optional[str]) -> AnswerResult:
        sid = _require_id(session_id)
        text = _clean(answer)
        if text is None:
            raise ValidationFailedError("answer must not be blank", code="MISSING_ANSWER")
        async with self._lock(sid):
            record = await self._store.require(sid)
            if record.status is not SessionStatus.IN_PROGRESS:
                raise InvalidTransitionError(
                    f"Answers are only accepted while IN_PROGRESS (status is {record.status.value})"
                )
            history = self._store.messages(sid)
        answered = record.current_question_index + 1
        expected = {"status": SessionStatus.IN_PROGRESS, "current_question_index": record.current_question_index}
        reply = PendingMessage(role=MessageRole.USER, content=text)

        if answered >= record.total_questions:
            async with self._lock(sid):
                record, _ = await self._store.update(
                    sid,
                    {
                        "current_question_index": record.total_questions,
                        "status": SessionStatus.COMPLETED,
                        "completed_at": utcnow(),
                    },
                    expected=expected,
                    messages=[reply],
                )
            log_event(
                "session_completed",
                sid,
                status=record.status,
                question_index=record.current_question_index,
                total_questions=record.total_questions,
            )
            await self._trigger_report(sid)
            return AnswerResult(
                session_id=sid,
                status=record.status,
                question=None,
                is_complete=True,
                current_question_index=record.current_question_index,
                total_questions=record.total_questions,
            )

        turns = [message.as_turn() for message in history]
        question, tag, fell_back = await self._ask(record, turns, question_number=answered + 1, last_answer=text)
        async with self._lock(sid):
            record, _ = await self._store.update(
                sid,
                {"current_question_index": answered, "error_count": record.error_count + int(fell_back)},
                expected=expected,
                messages=[reply, PendingMessage(role=MessageRole.AI, content=question, topic_tag=tag)],
            )
        log_event(
            "answer_submitted",
            sid,
            status=record.status,
            question_index=record.current_question_index,
            total_questions=record.total_questions,
            fallback=fell_back or None,
        )
        return AnswerResult(
            session_id=sid,
            status=record.status,
            question=question,
            is_complete=False,
            current_question_index=record.current_question_index,
            total_questions=record.total_questions,
        )

    async def _ask(
        self,
        record: SessionRecord,
        history: Sequence[ChatTurn],
        *,
        question_number: int,
        last_answer: Optional[str],
    ) -> Tuple[str, str, bool]:  # (question, focus tag, used fallback)
        bundle = build_prompt(
            Phase.NEXT_QUESTION,
            record.profile(),
            history,
            question_number=question_number,
            last_answer=last_answer,
        )
        tag = bundle.focus_tag or "general"
        try:
            question = await self._gateway.complete(
                record.provider,
                record.model,
                bundle.prompt,
                history=bundle.history,
                system=bundle.system,
                temperature=bundle.temperature,
                label="next_question",
            )
        except ProviderError as exc:
            self._record_provider_failure(record.session_id, exc, f"Question {question_number}")
            if question_number == 1:
                return OPENING_QUESTION, tag, True
            return fallback_question(question_number - 1), tag, True
        return question, tag, False

    async def _confirmation_text(
        self,
        record: SessionRecord,
        phase: Phase,
        *,
        correction: Optional[str] = None,
    ) -> str:  # Advisory text, never persisted as a message
        bundle = build_prompt(phase, record.profile(), correction=correction)
        try:
            return await self._gateway.complete(
                record.provider,
                record.model,
                bundle.prompt,
                system=bundle.system,
                temperature=bundle.temperature,
                label=phase.value.lower(),
            )
        except ProviderError as exc:
            self._record_provider_failure(record.session_id, exc, "Context confirmation")
            return fallback_confirmation(record.target_position, record.company_name)

    def _record_provider_failure(self, session_id: str, exc: ProviderError, what: str) -> None:
        self._error_log.append(
            session_id,
            LogLevel.ERROR,
            f"{what} used a fallback after provider failure: {exc.cause}",
            error_code=exc.code,
            provider=exc.provider,
            retry_count=exc.attempts,
        )

    async def _company_context(self, company: str) -> str:
        if self._research is None:
            return company
        return render(await self._research.lookup(company))

    async def _trigger_report(self, session_id: str) -> None:
        if not self._settings.DEFER_REPORTS:
            await self._generate_report_quietly(session_id)
            return
        task = asyncio.get_running_loop().create_task(self._generate_report_quietly(session_id))
        self._report_tasks.add(task)
        task.add_done_callback(self._report_tasks.discard)

    async def _generate_report_quietly(self, session_id: str) -> None:
        try:
            await self.generate_report(session_id)
        except Exception:  # noqa: BLE001
            logger.exception("Report generation failed session=%s", session_id)

    async def wait_for_reports(self) -> None:  # Await background report tasks
        while self._report_tasks:
            await asyncio.gather(*list(self._report_tasks), return_exceptions=True)

    async def generate_report(self, session_id: str) -> Report:
        """Build, parse and store the evaluation for a completed session.

        A provider failure or unparseable output stores the placeholder
        report instead; regeneration overwrites the previous row.
        """

        record = await self._store.require(session_id)
        turns = [message.as_turn() for message in self._store.messages(session_id)]
        bundle = build_prompt(Phase.FINAL_REPORT, record.profile(), turns)
        content: ReportContent
        try:
            raw = await self._gateway.complete(
                record.provider,
                record.model,
                bundle.prompt,
                system=bundle.system,
                temperature=bundle.temperature,
                label="final_report",
            )
        except ProviderError as exc:
            self._record_provider_failure(session_id, exc, "Final report")
            content = placeholder_report()
        else:
            try:
                content = ReportContent.model_validate_json(_extract_json(raw))
                content = content.model_copy(update={"is_placeholder": False})
            except ValidationError as exc:
                self._error_log.append(
                    session_id,
                    LogLevel.WARN,
                    f"Report output did not match the report schema ({exc.error_count()} errors)",
                    error_code="REPORT_PARSE_FAILED",
                    provider=record.provider.value,
                )
                content = placeholder_report()
        report = self._reports.save(Report(session_id=session_id, content=content, generated_at=utcnow()))
        log_event("report_generated", session_id, status=record.status, placeholder=content.is_placeholder)
        return report

    async def get_report(self, session_id: Optional[str]) -> Report:
        sid = _require_id(session_id)
        record = await self._store.require(sid)
        report = self._reports.fetch(sid)
        if report is None:
            if record.status is SessionStatus.COMPLETED:
                raise ReportNotReadyError("Report is still being generated")
            raise ReportNotReadyError("Interview is not complete yet")
        return report

    async def regenerate_report(self, session_id: Optional[str]) -> Report:  # Overwrites the stored report
        sid = _require_id(session_id)
        record = await self._store.require(sid)
        if record.status is not SessionStatus.COMPLETED:
            raise InvalidTransitionError(
                f"Reports can only be regenerated for COMPLETED sessions (status is {record.status.value})"
            )
        return await self.generate_report(sid)

    async def fail_session(self, session_id: Optional[str], reason: str) -> SessionRecord:
        sid = _require_id(session_id)
        async with self._lock(sid):
            record = await self._store.require(sid)
            if record.status.terminal:
                raise InvalidTransitionError(f"Session is already {record.status.value}")
            record, _ = await self._store.update(
                sid,
                {"status": SessionStatus.FAILED},
                expected={"status": record.status},
            )
        self._error_log.append(sid, LogLevel.FATAL, reason, error_code="SESSION_FAILED")
        log_event("session_failed", sid, level=logging.ERROR, status=record.status, reason=reason)
        return record

    async def expire_stale_sessions(self, now: Optional[datetime] = None) -> List[str]:
        """Move CONFIGURING/IN_PROGRESS sessions idle past the timeout to TIMEOUT."""

        current = now or datetime.now(timezone.utc)
        cutoff = current - timedelta(minutes=self._settings.SESSION_IDLE_TIMEOUT_MINUTES)
        expired: List[str] = []
        for sid in self._store.stale_ids(ACTIVE_STATUSES, cutoff.isoformat(timespec="seconds")):
            async with self._lock(sid):
                record = await self._store.get(sid)
                if record is None or record.status not in ACTIVE_STATUSES:
                    continue
                try:
                    await self._store.update(
                        sid,
                        {"status": SessionStatus.TIMEOUT},
                        expected={"status": record.status, "updated_at": record.updated_at},
                    )
                except (SessionConflictError, SessionNotFoundError):
                    continue
            self._error_log.append(
                sid,
                LogLevel.WARN,
                f"Session idle for more than {self._settings.SESSION_IDLE_TIMEOUT_MINUTES} minutes",
                error_code="SESSION_TIMEOUT",
            )
            log_event("session_timeout", sid, status=SessionStatus.TIMEOUT)
            expired.append(sid)
        return expired

    async def get_session(self, session_id: Optional[str]) -> SessionRecord:
        return await self._store.require(_require_id(session_id))

    async def get_messages(self, session_id: Optional[str]) -> List[Message]:
        sid = _require_id(session_id)
        await self._store.require(sid)
        return self._store.messages(sid)

    async def delete_session(self, session_id: Optional[str]) -> None:  # Messages and report go with it
        sid = _require_id(session_id)
        async with self._lock(sid):
            if not await self._store.delete(sid):
                raise SessionNotFoundError(sid)
        log_event("session_deleted", sid)

    def list_sessions(self, limit: int = 20, offset: int = 0) -> List[SessionRecord]:
        return self._store.list_recent(limit, offset)

    def session_stats(self) -> SessionStats:
        return self._store.stats()

    def describe_providers(self) -> List[Dict[str, object]]:
        return self._gateway.describe_providers()


__all__ = ["ACTIVE_STATUSES", "InterviewStateMachine"]
