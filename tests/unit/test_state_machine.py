"""Lifecycle tests for the interview session state machine."""
from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest

from config.providers import Provider
from interview_session import (
    InvalidTransitionError,
    LogLevel,
    MessageRole,
    ReportNotReadyError,
    SessionConflictError,
    SessionNotFoundError,
    SessionStatus,
    ValidationFailedError,
)
from interview_session.fallbacks import FALLBACK_QUESTIONS, OPENING_QUESTION
from llm_gateway import ProviderError
from services.container import build_services
from storage.cache import MemoryCache, SafeCache

from conftest import VALID_REPORT, ready_session, run


def _assert_index_bounds(record) -> None:
    assert 0 <= record.current_question_index <= record.total_questions


@pytest.mark.parametrize(
    "position, resume",
    [("", "resume"), ("pos", ""), ("   ", "resume"), (None, "resume")],
)
def test_create_requires_position_and_resume(machine, position, resume):
    with pytest.raises(ValidationFailedError) as excinfo:
        run(machine.create_session(position, resume))
    assert excinfo.value.code == "MISSING_REQUIRED_FIELDS"


def test_create_without_job_description_asks_for_confirmation(machine, fake):
    fake.queue("Is this a backend platform role?")

    async def _go():
        created = await machine.create_session("pos", "resume")
        return created, await machine.get_session(created.session_id)

    created, record = run(_go())
    assert created.status is SessionStatus.CONFIGURING
    assert created.context_confirmed is False
    assert created.role_confirmation_text == "Is this a backend platform role?"
    assert record.current_question_index == 0
    assert record.provider is Provider.GOOGLE
    assert record.model == "gemini-2.5-flash"


def test_create_with_job_description_is_confirmed(machine, fake):
    created = run(machine.create_session("pos", "resume", job_description="Run the payments stack."))
    assert created.context_confirmed is True
    assert created.role_confirmation_text is None
    assert fake.calls == []


def test_confirmation_falls_back_when_provider_fails(machine, fake, services):
    fake.fail_always()
    created = run(machine.create_session("Platform Engineer", "resume", company_name="Acme"))
    assert "Platform Engineer" in created.role_confirmation_text
    entries = services.error_log.recent(session_id=created.session_id)
    assert entries and all(entry.level is LogLevel.ERROR for entry in entries)


def test_start_requires_confirmed_context(machine, fake):
    async def _go():
        created = await machine.create_session("pos", "resume")
        with pytest.raises(InvalidTransitionError) as excinfo:
            await machine.start_session(created.session_id, "GOOGLE")
        assert excinfo.value.code == "CONTEXT_NOT_CONFIRMED"
        configured = await machine.configure_session(created.session_id)
        assert configured.context_confirmed is True
        started = await machine.start_session(created.session_id, "google")
        return started

    started = run(_go())
    assert started.status is SessionStatus.IN_PROGRESS
    assert started.provider is Provider.GOOGLE


def test_correction_merges_context_and_requires_new_confirmation(machine, fake):
    fake.queue("Backend role?", "So a data platform role?")

    async def _go():
        created = await machine.create_session("Engineer", "resume")
        result = await machine.configure_session(created.session_id, "It is a data platform team.")
        return result, await machine.get_session(created.session_id)

    result, record = run(_go())
    assert result.context_confirmed is False
    assert result.role_confirmation_text == "So a data platform role?"
    assert "Candidate clarification: It is a data platform team." in record.company_context_summary
    assert "It is a data platform team." in fake.calls[-1]["prompt"]


@pytest.mark.parametrize(
    "kwargs, code",
    [
        ({"provider": "BOGUS"}, "INVALID_PROVIDER"),
        ({"provider": None}, "INVALID_PROVIDER"),
        ({"provider": "OPENAI", "model": "gpt-9"}, "INVALID_MODEL"),
        ({"provider": "GOOGLE", "difficulty": "Wizard"}, "INVALID_DIFFICULTY"),
        ({"provider": "GOOGLE", "total_questions": 0}, "INVALID_QUESTION_COUNT"),
        ({"provider": "GOOGLE", "total_questions": 31}, "INVALID_QUESTION_COUNT"),
    ],
)
def test_start_rejects_invalid_configuration(machine, fake, kwargs, code):
    async def _go():
        created = await machine.create_session("pos", "resume", job_description="jd")
        with pytest.raises(ValidationFailedError) as excinfo:
            await machine.start_session(created.session_id, **kwargs)
        return excinfo.value, await machine.get_session(created.session_id)

    error, record = run(_go())
    assert error.code == code
    assert record.status is SessionStatus.CONFIGURING
    assert fake.calls == []


def test_start_applies_configuration_and_records_first_question(machine, fake_adapters):
    openai = fake_adapters[Provider.OPENAI]
    openai.queue("What drew you to distributed systems?")

    async def _go():
        created = await machine.create_session("pos", "resume", job_description="jd")
        started = await machine.start_session(
            created.session_id, "OPENAI", model="gpt-4-turbo", difficulty="expert", total_questions=5
        )
        return started, await machine.get_session(created.session_id), await machine.get_messages(created.session_id)

    started, record, messages = run(_go())
    assert started.question == "What drew you to distributed systems?"
    assert record.model == "gpt-4-turbo"
    assert record.difficulty.value == "Expert"
    assert record.total_questions == 5
    assert record.started_at is not None
    assert [(m.sequence, m.role, m.topic_tag) for m in messages] == [(1, MessageRole.AI, "foundations")]
    assert openai.calls[0]["model"] == "gpt-4-turbo"
    assert "Expert-level interviewer" in openai.calls[0]["system"]


def test_start_twice_is_invalid(machine, fake):
    async def _go():
        sid, _ = await ready_session(machine)
        with pytest.raises(InvalidTransitionError) as excinfo:
            await machine.start_session(sid, "GOOGLE")
        return excinfo.value

    assert run(_go()).code == "INVALID_STATE_TRANSITION"


def test_full_interview_completes_on_last_answer(machine, fake, services):
    fake.queue("Q1", "Q2", "Q3", VALID_REPORT)

    async def _go():
        sid, first = await ready_session(machine, total_questions=3)
        results = []
        for answer in ("A1", "A2", "A3"):
            results.append(await machine.submit_answer(sid, answer))
            _assert_index_bounds(await machine.get_session(sid))
        return sid, first, results

    sid, first, results = run(_go())
    assert first == "Q1"
    assert [r.question for r in results] == ["Q2", "Q3", None]
    assert [r.is_complete for r in results] == [False, False, True]
    assert [r.current_question_index for r in results] == [1, 2, 3]
    assert results[-1].status is SessionStatus.COMPLETED

    messages = run(machine.get_messages(sid))
    assert [m.sequence for m in messages] == list(range(1, 7))
    assert [m.role for m in messages] == [MessageRole.AI, MessageRole.USER] * 3
    assert [m.content for m in messages] == ["Q1", "A1", "Q2", "A2", "Q3", "A3"]

    record = run(machine.get_session(sid))
    assert record.completed_at is not None
    report = run(machine.get_report(sid))
    assert report.content.is_placeholder is False
    assert report.content.overall_score == 78


def test_next_question_prompt_sees_history_and_last_answer(machine, fake):
    fake.queue("Q1", "Q2")

    async def _go():
        sid, _ = await ready_session(machine, total_questions=4)
        await machine.submit_answer(sid, "I led the migration to Kafka.")

    run(_go())
    call = fake.calls[-1]
    assert [turn.role for turn in call["turns"]] == ["assistant"]
    assert call["turns"][0].content == "Q1"
    assert "I led the migration to Kafka." in call["prompt"]
    assert "question 2 of 4" in call["prompt"]


def test_provider_outage_uses_canned_questions(machine, fake, services):
    fake.fail_always()

    async def _go():
        sid, first = await ready_session(machine, total_questions=4)
        answer = await machine.submit_answer(sid, "My answer")
        return sid, first, answer, await machine.get_session(sid)

    sid, first, answer, record = run(_go())
    assert first == OPENING_QUESTION
    assert answer.question in FALLBACK_QUESTIONS
    assert answer.question == FALLBACK_QUESTIONS[1]
    assert answer.status is SessionStatus.IN_PROGRESS
    assert record.error_count == 2
    entries = services.error_log.recent(session_id=sid)
    assert len(entries) == 2
    assert all(entry.error_code == "PROVIDER_FAILURE" for entry in entries)
    assert all(entry.retry_count == 3 for entry in entries)
    assert len(fake.calls) == 6


def test_concurrent_answers_only_one_advances(machine, fake):
    fake.queue("Q1", "Q2-a", "Q2-b")

    async def _go():
        sid, _ = await ready_session(machine, total_questions=5)
        outcomes = await asyncio.gather(
            machine.submit_answer(sid, "first"),
            machine.submit_answer(sid, "second"),
            return_exceptions=True,
        )
        return sid, outcomes, await machine.get_session(sid), await machine.get_messages(sid)

    sid, outcomes, record, messages = run(_go())
    conflicts = [o for o in outcomes if isinstance(o, SessionConflictError)]
    successes = [o for o in outcomes if not isinstance(o, BaseException)]
    assert len(conflicts) == 1
    assert len(successes) == 1
    assert conflicts[0].status_code == 409
    assert record.current_question_index == 1
    assert [m.sequence for m in messages] == [1, 2, 3]
    assert len({m.sequence for m in messages}) == len(messages)


def test_submit_validation_and_state_errors(machine, fake):
    async def _go():
        with pytest.raises(ValidationFailedError) as missing_id:
            await machine.submit_answer("  ", "answer")
        created = await machine.create_session("pos", "resume", job_description="jd")
        with pytest.raises(ValidationFailedError) as missing_answer:
            await machine.submit_answer(created.session_id, "   ")
        with pytest.raises(InvalidTransitionError) as wrong_state:
            await machine.submit_answer(created.session_id, "answer")
        with pytest.raises(SessionNotFoundError):
            await machine.submit_answer("does-not-exist", "answer")
        return missing_id.value, missing_answer.value, wrong_state.value

    missing_id, missing_answer, wrong_state = run(_go())
    assert missing_id.code == "MISSING_SESSION_ID"
    assert missing_answer.code == "MISSING_ANSWER"
    assert wrong_state.code == "INVALID_STATE_TRANSITION"


def test_answers_after_completion_are_rejected(machine, fake):
    async def _go():
        sid, _ = await ready_session(machine, total_questions=1)
        done = await machine.submit_answer(sid, "only answer")
        assert done.is_complete is True
        with pytest.raises(InvalidTransitionError):
            await machine.submit_answer(sid, "extra")
        return await machine.get_session(sid)

    record = run(_go())
    assert record.current_question_index == record.total_questions == 1


def test_report_not_ready_before_completion(machine, fake):
    async def _go():
        sid, _ = await ready_session(machine)
        with pytest.raises(ReportNotReadyError) as excinfo:
            await machine.get_report(sid)
        return excinfo.value

    error = run(_go())
    assert error.code == "REPORT_NOT_READY"
    assert error.status_code == 202


def test_report_scores_are_clamped_and_stable(machine, fake):
    noisy = json.dumps(
        {
            "overall_score": 140,
            "overall_summary": "Strong.",
            "scoring_matrix": {
                "skill_match": 12,
                "company_fit": -3,
                "communication_clarity": "7.5",
                "star_method_application": 9,
            },
            "per_question_analysis": [],
            "final_recommendations": "Keep practising.",
        }
    )
    fake.queue("Q1", "Here is the evaluation:\n" + noisy + "\nGood luck!")

    async def _go():
        sid, _ = await ready_session(machine, total_questions=1)
        await machine.submit_answer(sid, "answer")
        return await machine.get_report(sid), await machine.get_report(sid)

    first, second = run(_go())
    content = first.content
    assert content.overall_score == 100
    matrix = content.scoring_matrix
    assert (matrix.skill_match, matrix.company_fit, matrix.communication_clarity) == (10, 0, 7.5)
    assert content.final_recommendations == ["Keep practising."]
    assert first.model_dump() == second.model_dump()


def test_unparseable_report_stores_placeholder(machine, fake, services):
    fake.queue("Q1", "I cannot produce JSON today.")

    async def _go():
        sid, _ = await ready_session(machine, total_questions=1)
        await machine.submit_answer(sid, "answer")
        return sid, await machine.get_report(sid)

    sid, report = run(_go())
    assert report.content.is_placeholder is True
    assert report.content.overall_score == 50
    codes = [entry.error_code for entry in services.error_log.recent(session_id=sid)]
    assert "REPORT_PARSE_FAILED" in codes


def test_nan_report_score_stores_placeholder(machine, fake, services):
    fake.queue("Q1", VALID_REPORT.replace('"skill_match": 8', '"skill_match": NaN'))

    async def _go():
        sid, _ = await ready_session(machine, total_questions=1)
        await machine.submit_answer(sid, "answer")
        return sid, await machine.get_report(sid), await machine.get_report(sid)

    sid, first, second = run(_go())
    assert first.content.is_placeholder is True
    assert 0 <= first.content.scoring_matrix.skill_match <= 10
    assert first.model_dump() == second.model_dump()
    codes = [entry.error_code for entry in services.error_log.recent(session_id=sid)]
    assert "REPORT_PARSE_FAILED" in codes


def test_report_provider_failure_stores_placeholder(machine, fake, services):
    fake.queue("Q1", *[ProviderError("GOOGLE", "status 500") for _ in range(3)])

    async def _go():
        sid, _ = await ready_session(machine, total_questions=1)
        await machine.submit_answer(sid, "answer")
        return sid, await machine.get_report(sid)

    sid, report = run(_go())
    assert report.content.is_placeholder is True
    entries = services.error_log.recent(session_id=sid, level=LogLevel.ERROR)
    assert entries[0].error_code == "PROVIDER_FAILURE"


def test_regenerate_overwrites_and_requires_completion(machine, fake):
    fake.queue("Q1", "Q2", "not json", VALID_REPORT)

    async def _go():
        sid, _ = await ready_session(machine, total_questions=2)
        with pytest.raises(InvalidTransitionError):
            await machine.regenerate_report(sid)
        await machine.submit_answer(sid, "a1")
        await machine.submit_answer(sid, "a2")
        before = await machine.get_report(sid)
        after = await machine.regenerate_report(sid)
        return before, after, await machine.get_report(sid)

    before, after, stored = run(_go())
    assert before.content.is_placeholder is True
    assert after.content.is_placeholder is False
    assert stored.content == after.content


def test_deferred_report_is_generated_in_background(test_settings, fake_adapters, zero_retry):
    test_settings.DEFER_REPORTS = True
    fake = fake_adapters[Provider.GOOGLE]
    fake.queue("Q1", VALID_REPORT)

    async def _go():
        services = await build_services(
            test_settings, adapters=fake_adapters, retry=zero_retry, cache=SafeCache(MemoryCache())
        )
        try:
            sid, _ = await ready_session(services.machine, total_questions=1)
            result = await services.machine.submit_answer(sid, "answer")
            assert result.is_complete is True
            await services.machine.wait_for_reports()
            return await services.machine.get_report(sid)
        finally:
            await services.aclose()

    report = run(_go())
    assert report.content.overall_score == 78


def test_company_research_populates_context(machine, fake):
    fake.queue(
        json.dumps(
            {
                "company_name": "Acme",
                "company_summary": "Acme builds logistics software.",
                "key_focus_areas": ["routing", "warehousing"],
            }
        )
    )

    async def _go():
        created = await machine.create_session("pos", "resume", job_description="jd", company_name="Acme")
        return await machine.get_session(created.session_id)

    record = run(_go())
    assert record.company_name == "Acme"
    assert record.company_context_summary.startswith("Acme: Acme builds logistics software.")
    assert "routing, warehousing" in record.company_context_summary


def test_fail_session_marks_failed_and_logs_fatal(machine, fake, services):
    async def _go():
        sid, _ = await ready_session(machine)
        record = await machine.fail_session(sid, "Operator stopped the interview")
        with pytest.raises(InvalidTransitionError):
            await machine.fail_session(sid, "again")
        return sid, record

    sid, record = run(_go())
    assert record.status is SessionStatus.FAILED
    entries = services.error_log.recent(session_id=sid)
    assert entries[0].level is LogLevel.FATAL


def test_expire_stale_sessions_moves_idle_sessions_to_timeout(machine, fake, services):
    async def _go():
        active, _ = await ready_session(machine)
        done, _ = await ready_session(machine, total_questions=1)
        await machine.submit_answer(done, "answer")
        future = datetime.now(timezone.utc) + timedelta(minutes=services.settings.SESSION_IDLE_TIMEOUT_MINUTES + 5)
        expired = await machine.expire_stale_sessions(now=future)
        untouched = await machine.expire_stale_sessions()
        return active, done, expired, untouched

    active, done, expired, untouched = run(_go())
    assert expired == [active]
    assert untouched == []
    assert run(machine.get_session(active)).status is SessionStatus.TIMEOUT
    assert run(machine.get_session(done)).status is SessionStatus.COMPLETED


def test_delete_removes_session_and_transcript(machine, fake):
    async def _go():
        sid, _ = await ready_session(machine)
        await machine.delete_session(sid)
        with pytest.raises(SessionNotFoundError):
            await machine.get_session(sid)
        with pytest.raises(SessionNotFoundError):
            await machine.get_messages(sid)
        with pytest.raises(SessionNotFoundError):
            await machine.delete_session(sid)

    run(_go())


def test_list_sessions_and_stats(machine, fake):
    async def _go():
        await ready_session(machine)
        await machine.create_session("pos", "resume", job_description="jd")

    run(_go())
    assert len(machine.list_sessions()) == 2
    stats = machine.session_stats()
    assert stats.total == 2
    assert stats.in_progress == 1
    assert stats.configuring == 1


def _past_idle_timeout(settings) -> datetime:
    return datetime.now(timezone.utc) + timedelta(minutes=settings.SESSION_IDLE_TIMEOUT_MINUTES + 5)


def test_expiry_from_another_process_is_visible_through_shared_cache(
    machine, fake, services, test_settings, fake_adapters, zero_retry
):
    async def _go():
        sid, _ = await ready_session(machine)
        assert (await machine.get_session(sid)).status is SessionStatus.IN_PROGRESS
        other = await build_services(test_settings, adapters=fake_adapters, retry=zero_retry, cache=services.cache)
        expired = await other.machine.expire_stale_sessions(now=_past_idle_timeout(test_settings))
        return sid, expired, await machine.get_session(sid)

    sid, expired, record = run(_go())
    assert expired == [sid]
    assert record.status is SessionStatus.TIMEOUT


def test_conflict_refreshes_stale_cached_session(machine, fake, services, test_settings, fake_adapters, zero_retry):
    async def _go():
        sid, _ = await ready_session(machine)
        other = await build_services(
            test_settings, adapters=fake_adapters, retry=zero_retry, cache=SafeCache(MemoryCache())
        )
        try:
            await other.machine.expire_stale_sessions(now=_past_idle_timeout(test_settings))
        finally:
            await other.aclose()
        with pytest.raises(SessionConflictError):
            await machine.submit_answer(sid, "late answer")
        record = await machine.get_session(sid)
        with pytest.raises(InvalidTransitionError):
            await machine.submit_answer(sid, "late answer")
        return record, await machine.get_messages(sid)

    record, messages = run(_go())
    assert record.status is SessionStatus.TIMEOUT
    assert [m.role for m in messages] == [MessageRole.AI]


def test_session_locks_are_not_retained(machine, fake):
    async def _go():
        done, _ = await ready_session(machine, total_questions=1)
        await machine.submit_answer(done, "answer")
        failed, _ = await ready_session(machine)
        await machine.fail_session(failed, "candidate left")

    run(_go())
    assert len(machine._locks) == 0
