import asyncio
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

os.environ.setdefault("ENABLE_FILE_LOGS", "0")

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config.providers import Provider
from config.settings import Settings
from llm_gateway import ProviderAdapter, ProviderError, RetryPolicy
from services.container import build_services
from storage.cache import MemoryCache, SafeCache


VALID_REPORT = """```json
{
  "overall_score": 78,
  "overall_summary": "Solid fundamentals with room to deepen system design answers.",
  "scoring_matrix": {
    "skill_match": 8,
    "company_fit": 7,
    "communication_clarity": 8.5,
    "star_method_application": 6
  },
  "per_question_analysis": [
    {
      "question": "Tell me about yourself.",
      "answer": "I build APIs.",
      "feedback_strengths": "Clear and concise.",
      "feedback_improvements": "Quantify the impact.",
      "suggested_answer": "Mention the scale of the APIs you built."
    }
  ],
  "final_recommendations": ["Practice STAR answers", "Review caching strategies"]
}
```"""


class FakeAdapter(ProviderAdapter):
    """Scriptable adapter: pops queued replies, then falls back to ``default``.

    A queued or default value that is an exception is raised instead of
    returned. Every call yields to the event loop once so concurrent
    transitions interleave like real network calls.
    """

    def __init__(self, provider: Provider = Provider.GOOGLE) -> None:
        self.provider = provider
        self.replies: List[Any] = []
        self.default: Any = "How did you scale that service?"
        self.calls: List[Dict[str, Any]] = []

    @property
    def configured(self) -> bool:
        return True

    def _build_request(self, model, prompt, turns, system, temperature):
        raise NotImplementedError

    def _extract_text(self, data):
        raise NotImplementedError

    def queue(self, *replies: Any) -> None:
        self.replies.extend(replies)

    def fail_always(self, cause: str = "status 503") -> None:
        self.default = ProviderError(self.provider.value, cause)

    async def generate(self, model, prompt, prior_turns=(), *, system=None, temperature=None) -> str:
        self.calls.append(
            {
                "model": model,
                "prompt": prompt,
                "turns": list(prior_turns),
                "system": system,
                "temperature": temperature,
            }
        )
        await asyncio.sleep(0)
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, Exception):
            raise reply
        return reply


async def no_sleep(_: float) -> None:
    return None


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    return Settings(
        DB_PATH=str(tmp_path / "test.db"),
        REDIS_URL=None,
        DEFER_REPORTS=False,
        GOOGLE_API_KEY=None,
        OPENAI_API_KEY=None,
        PROVIDER_CATALOG_PATH=None,
        _env_file=None,
    )


@pytest.fixture
def fake_adapters() -> Dict[Provider, FakeAdapter]:
    return {provider: FakeAdapter(provider) for provider in Provider}


@pytest.fixture
def fake(fake_adapters: Dict[Provider, FakeAdapter]) -> FakeAdapter:
    return fake_adapters[Provider.GOOGLE]


@pytest.fixture
def zero_retry() -> RetryPolicy:
    return RetryPolicy(3, sleep=no_sleep)


@pytest.fixture
def services(test_settings, fake_adapters, zero_retry):
    built = asyncio.run(
        build_services(
            test_settings,
            adapters=fake_adapters,
            retry=zero_retry,
            cache=SafeCache(MemoryCache()),
        )
    )
    yield built
    asyncio.run(built.aclose())


@pytest.fixture
def machine(services):
    return services.machine


def run(coro):
    return asyncio.run(coro)


async def ready_session(machine, *, provider: str = "GOOGLE", total_questions: Optional[int] = 3, **create: Any):
    """Create, confirm and start a session; returns (session_id, first question)."""

    create.setdefault("job_description", "Build and operate backend services.")
    created = await machine.create_session("Backend Engineer", "Five years of Python services.", **create)
    if not created.context_confirmed:
        await machine.configure_session(created.session_id)
    started = await machine.start_session(created.session_id, provider, total_questions=total_questions)
    return created.session_id, started.question
