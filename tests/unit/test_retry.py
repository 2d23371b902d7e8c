"""Tests for the provider retry policy."""
from __future__ import annotations

import asyncio
from typing import List

import pytest

from llm_gateway import ProviderError, ProviderNotConfiguredError, RetryPolicy


def _recording_sleep(delays: List[float]):
    async def _sleep(seconds: float) -> None:
        delays.append(seconds)

    return _sleep


def test_delays_grow_exponentially():
    policy = RetryPolicy(3)
    assert policy.delay_for(1) == 2.0
    assert policy.delay_for(2) == 4.0


def test_succeeds_after_transient_failures():
    delays: List[float] = []
    policy = RetryPolicy(3, sleep=_recording_sleep(delays))
    calls = {"n": 0}

    async def flaky() -> str:
        calls["n"] += 1
        if calls["n"] < 3:
            raise ProviderError("GOOGLE", "status 503")
        return "ok"

    assert asyncio.run(policy.run(flaky)) == "ok"
    assert calls["n"] == 3
    assert delays == [2.0, 4.0]


def test_exhaustion_raises_last_error_with_attempt_count():
    delays: List[float] = []
    policy = RetryPolicy(3, sleep=_recording_sleep(delays))
    calls = {"n": 0}

    async def broken() -> str:
        calls["n"] += 1
        raise ProviderError("OPENAI", f"status 50{calls['n']}")

    with pytest.raises(ProviderError) as excinfo:
        asyncio.run(policy.run(broken))
    assert calls["n"] == 3
    assert excinfo.value.attempts == 3
    assert excinfo.value.cause == "status 503"
    assert len(delays) == 2


def test_not_configured_is_not_retried():
    delays: List[float] = []
    policy = RetryPolicy(3, sleep=_recording_sleep(delays))
    calls = {"n": 0}

    async def unconfigured() -> str:
        calls["n"] += 1
        raise ProviderNotConfiguredError("GOOGLE")

    with pytest.raises(ProviderNotConfiguredError):
        asyncio.run(policy.run(unconfigured))
    assert calls["n"] == 1
    assert delays == []


def test_non_provider_errors_propagate_immediately():
    policy = RetryPolicy(3, sleep=_recording_sleep([]))

    async def buggy() -> str:
        raise KeyError("boom")

    with pytest.raises(KeyError):
        asyncio.run(policy.run(buggy))


def test_attempts_must_be_positive():
    with pytest.raises(ValueError):
        RetryPolicy(0)


def test_single_attempt_raises_without_sleeping():
    delays: List[float] = []
    policy = RetryPolicy(1, sleep=_recording_sleep(delays))

    async def broken() -> str:
        raise ProviderError("OLLAMA", "connection refused")

    with pytest.raises(ProviderError) as excinfo:
        asyncio.run(policy.run(broken))
    assert excinfo.value.attempts == 1
    assert delays == []
