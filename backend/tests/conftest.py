import asyncio
import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.integrity.signals import PushSignalSource  # noqa: E402
from app.interview.errors import ScoringUnavailable  # noqa: E402
from app.interview.models import CandidateProfile, Question, ScoreResult  # noqa: E402
from app.interview.questions import DifficultyMix, StaticQuestionBank  # noqa: E402
from app.session.clock import ClockHandle, fire_expire, fire_tick  # noqa: E402
from app.session_controller import SessionConfig, SessionController  # noqa: E402
from core.state import Difficulty, InterviewMode  # noqa: E402


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ENV", "development")
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    monkeypatch.setenv("SCORER_BACKEND", "heuristic")
    monkeypatch.setenv("QUESTION_BACKEND", "static")


class ManualClock:
    """Clock driven by the test: nothing happens until advance() is called."""

    def __init__(self):
        self.handles: list[ClockHandle] = []

    def start(self, duration_seconds: int) -> ClockHandle:
        duration = max(0, int(duration_seconds))
        handle = ClockHandle(duration_seconds=duration, remaining_seconds=duration)
        self.handles.append(handle)
        return handle

    def on_tick(self, handle, callback) -> None:
        handle.tick_callbacks.append(callback)

    def on_expire(self, handle, callback) -> None:
        handle.expire_callbacks.append(callback)

    def cancel(self, handle) -> None:
        handle.cancelled = True

    @property
    def live_handles(self) -> list[ClockHandle]:
        return [h for h in self.handles if h.live]

    def advance(self, seconds: int = 1) -> None:
        for _ in range(int(seconds)):
            for handle in self.live_handles:
                fire_tick(handle)
                if handle.live and handle.remaining_seconds <= 0:
                    fire_expire(handle)


class FixedScorer:
    def __init__(self, score: float = 80.0, feedback: str = "Solid answer"):
        self.score = score
        self.feedback = feedback
        self.calls: list[tuple[str, str, int]] = []

    async def score_response(self, question, response_text, time_used_seconds):
        self.calls.append((question.id, response_text, time_used_seconds))
        return ScoreResult(score=self.score, feedback=self.feedback)


class FlakyScorer(FixedScorer):
    """Raises for the listed question ids, scores the rest."""

    def __init__(self, failing_ids, score: float = 80.0):
        super().__init__(score=score)
        self.failing_ids = set(failing_ids)

    async def score_response(self, question, response_text, time_used_seconds):
        if question.id in self.failing_ids:
            self.calls.append((question.id, response_text, time_used_seconds))
            raise ScoringUnavailable("scorer offline")
        return await super().score_response(question, response_text, time_used_seconds)


class GatedScorer(FixedScorer):
    """Blocks every call until release() is called."""

    def __init__(self, score: float = 75.0):
        super().__init__(score=score)
        self.entered = asyncio.Event()
        self.gate = asyncio.Event()

    def release(self) -> None:
        self.gate.set()

    async def score_response(self, question, response_text, time_used_seconds):
        self.entered.set()
        await self.gate.wait()
        return await super().score_response(question, response_text, time_used_seconds)


def build_questions(*difficulties: Difficulty) -> list[Question]:
    limits = {Difficulty.EASY: 20, Difficulty.MEDIUM: 60, Difficulty.HARD: 120}
    return [
        Question(
            id=f"q{index + 1}",
            text=f"Question {index + 1}",
            difficulty=difficulty,
            time_limit_seconds=limits[difficulty],
            category="technical",
            expected_keywords=("cache", "latency"),
        )
        for index, difficulty in enumerate(difficulties)
    ]


@pytest.fixture
def manual_clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def fixed_scorer() -> FixedScorer:
    return FixedScorer()


@pytest.fixture
def flaky_scorer_factory():
    return FlakyScorer


@pytest.fixture
def gated_scorer() -> GatedScorer:
    return GatedScorer()


@pytest.fixture
def six_questions() -> list[Question]:
    return StaticQuestionBank().pick(DifficultyMix())


@pytest.fixture
def question_factory():
    return build_questions


@pytest.fixture
def ready_candidate() -> CandidateProfile:
    return CandidateProfile(
        name="Ada Lovelace",
        email="ada@example.com",
        phone="+1 555 010 2030",
        position="Backend Developer",
        resume_text="Backend engineer with caching and latency work.",
    )


@pytest.fixture
def controller_factory(manual_clock, fixed_scorer, ready_candidate):
    def _build(
        *,
        scorer=None,
        mode: InterviewMode = InterviewMode.PROCTORED,
        candidate: CandidateProfile | None = None,
        grace_delay_sec: float = 0.0,
        scoring_timeout_sec: float = 1.0,
        late_submit_timeout_sec: float = 0.5,
        listeners=(),
        now_fn=None,
    ) -> SessionController:
        kwargs = {}
        if now_fn is not None:
            kwargs["now_fn"] = now_fn
        return SessionController.create(
            candidate if candidate is not None else ready_candidate,
            mode,
            clock=manual_clock,
            scorer=scorer or fixed_scorer,
            question_generator=StaticQuestionBank(),
            signal_source=PushSignalSource(),
            listeners=listeners,
            config=SessionConfig(
                grace_delay_sec=grace_delay_sec,
                scoring_timeout_sec=scoring_timeout_sec,
                late_submit_timeout_sec=late_submit_timeout_sec,
            ),
            **kwargs,
        )

    return _build
