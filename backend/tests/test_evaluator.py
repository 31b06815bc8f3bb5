import pytest

from app.interview import evaluator
from app.interview.errors import ScoringUnavailable
from app.interview.models import NO_RESPONSE_TEXT
from core.state import Difficulty


@pytest.mark.asyncio
async def test_keyword_scorer_rewards_relevant_detail(question_factory):
    question = question_factory(Difficulty.EASY)[0]
    scorer = evaluator.KeywordResponseScorer()

    strong = await scorer.score_response(
        question,
        "We add a cache in front of the database to cut latency, with eviction and invalidation policies tuned per workload.",
        5,
    )
    weak = await scorer.score_response(question, "I am not sure", 18)

    assert strong.score >= 80
    assert strong.feedback.startswith("Excellent response!")
    assert "Used relevant keywords: cache, latency" in strong.strengths
    assert weak.score < 40
    assert "Use more specific technical terminology" in weak.improvements
    assert "Provide more detailed explanations" in weak.improvements


@pytest.mark.asyncio
async def test_keyword_scorer_gives_zero_for_placeholder(question_factory):
    question = question_factory(Difficulty.HARD)[0]
    result = await evaluator.KeywordResponseScorer().score_response(question, NO_RESPONSE_TEXT, 120)

    assert result.score == 0
    assert result.improvements == ("Please provide a more detailed response",)


@pytest.mark.asyncio
async def test_llm_scorer_parses_model_json(monkeypatch: pytest.MonkeyPatch, question_factory):
    async def _fake_call_llm(prompt, **kwargs):
        assert "Expected keywords: cache, latency" in prompt
        return '```json\n{"score": 104, "feedback": "Strong", "strengths": ["depth"], "improvements": []}\n```'

    monkeypatch.setattr(evaluator, "call_llm", _fake_call_llm)

    result = await evaluator.LLMResponseScorer().score_response(question_factory(Difficulty.MEDIUM)[0], "answer", 30)

    assert result.score == 100
    assert result.feedback == "Strong"
    assert result.strengths == ("depth",)


@pytest.mark.asyncio
async def test_llm_scorer_raises_when_output_unusable(monkeypatch: pytest.MonkeyPatch, question_factory):
    async def _fake_call_llm(prompt, **kwargs):
        return "{}"

    monkeypatch.setattr(evaluator, "call_llm", _fake_call_llm)

    with pytest.raises(ScoringUnavailable):
        await evaluator.LLMResponseScorer().score_response(question_factory(Difficulty.MEDIUM)[0], "answer", 30)


def test_build_scorer_selects_backend():
    assert isinstance(evaluator.build_scorer("llm"), evaluator.LLMResponseScorer)
    assert isinstance(evaluator.build_scorer("heuristic"), evaluator.KeywordResponseScorer)
    assert isinstance(evaluator.build_scorer("unknown"), evaluator.KeywordResponseScorer)
