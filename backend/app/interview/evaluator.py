from __future__ import annotations

import logging
from typing import Protocol

from app.ai_reasoning.llm import call_llm, extract_json
from app.interview.errors import ScoringUnavailable
from app.interview.models import NO_RESPONSE_TEXT, Question, ScoreResult
from core.config import SCORER_BACKEND
from core.state import Difficulty

logger = logging.getLogger("app.interview.evaluator")


class ResponseScorer(Protocol):
    async def score_response(self, question: Question, response_text: str, time_used_seconds: int) -> ScoreResult:
        ...


def _clamp_score(value, default: float = 0.0) -> float:
    try:
        return float(max(0, min(100, round(float(value)))))
    except Exception:
        return default


def _string_list(value) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(str(item).strip() for item in value if str(item or "").strip())


# (min, max) multipliers; max applies once most expected keywords are present
_DIFFICULTY_SCALING = {
    Difficulty.EASY: (0.8, 1.0),
    Difficulty.MEDIUM: (0.7, 1.1),
    Difficulty.HARD: (0.6, 1.3),
}


class KeywordResponseScorer:
    """Deterministic keyword / length heuristic; no network."""

    async def score_response(self, question: Question, response_text: str, time_used_seconds: int) -> ScoreResult:
        return self.evaluate(question, response_text, time_used_seconds)

    def evaluate(self, question: Question, response_text: str, time_used_seconds: int) -> ScoreResult:
        answer = str(response_text or "").strip()
        if len(answer) < 2 or answer == NO_RESPONSE_TEXT:
            return ScoreResult(
                score=0.0,
                feedback="No meaningful response provided. Please answer the question with relevant technical details.",
                improvements=("Please provide a more detailed response",),
            )

        lowered = answer.lower()
        words = lowered.split()
        word_count = len(words)
        keywords = [k for k in question.expected_keywords if str(k).strip()]

        found_keywords = []
        for keyword in keywords:
            needle = keyword.lower()
            if needle in lowered or any(len(word) >= 4 and (needle in word or word in needle) for word in words):
                found_keywords.append(keyword)

        keyword_ratio = len(found_keywords) / len(keywords) if keywords else 0.5
        length_bonus = min(len(answer) / 50.0, 1.0)

        if keyword_ratio > 0.7:
            technical = 85 + keyword_ratio * 15
        elif keyword_ratio > 0.5:
            technical = 70 + keyword_ratio * 15
        elif keyword_ratio > 0.3:
            technical = 50 + keyword_ratio * 20
        elif keyword_ratio > 0:
            technical = 30 + keyword_ratio * 20
        else:
            technical = 25 if word_count > 5 else 10

        relevance = max(20.0, keyword_ratio * 100)
        if not found_keywords and word_count < 3:
            relevance = 5.0

        completeness = min(100.0, word_count * 3 + keyword_ratio * 40 + length_bonus * 30)

        if word_count < 3:
            clarity = 20.0
        elif word_count < 10:
            clarity = 40.0 + word_count * 3
        elif word_count < 30:
            clarity = 70.0 + word_count
        else:
            clarity = min(95.0, 85 + length_bonus * 10)

        depth = min(100.0, technical * 0.8 + completeness * 0.2)

        time_efficiency = 75
        limit = question.time_limit_seconds
        if time_used_seconds and limit:
            ratio = time_used_seconds / limit
            if ratio < 0.5:
                time_efficiency = 95
            elif ratio < 0.8:
                time_efficiency = 85
            elif ratio <= 1.0:
                time_efficiency = 75
            else:
                time_efficiency = 50

        low, high = _DIFFICULTY_SCALING.get(question.difficulty, _DIFFICULTY_SCALING[Difficulty.MEDIUM])
        technical = _clamp_score(technical * (high if keyword_ratio > 0.5 else low))
        completeness = _clamp_score(completeness * low)
        clarity = _clamp_score(clarity)
        relevance = _clamp_score(relevance)
        depth = _clamp_score(depth * low)

        overall = _clamp_score(
            technical * 0.25
            + completeness * 0.2
            + clarity * 0.15
            + relevance * 0.25
            + depth * 0.15
        )

        strengths = []
        improvements = []
        if found_keywords:
            strengths.append(f"Used relevant keywords: {', '.join(found_keywords)}")
        if word_count >= 10:
            strengths.append("Provided detailed response")
        if time_efficiency > 80:
            strengths.append("Good time management")
        if not found_keywords:
            improvements.append("Use more specific technical terminology")
        if word_count < 5:
            improvements.append("Provide more detailed explanations")
        if technical < 50:
            improvements.append("Focus on technical accuracy and precision")
        if relevance < 60:
            improvements.append("Ensure response directly addresses the question")

        if overall >= 80:
            feedback = f"Excellent response! Shows strong understanding of {question.category} concepts with good technical depth."
        elif overall >= 60:
            feedback = "Good response with solid understanding. Consider adding more technical details and specific examples."
        elif overall >= 40:
            feedback = "Basic understanding demonstrated. Would benefit from more specific technical knowledge and detailed explanations."
        else:
            feedback = (
                f"Response needs significant improvement. Focus on understanding core {question.category} "
                "concepts and providing detailed, technical answers."
            )

        return ScoreResult(
            score=overall,
            feedback=feedback,
            strengths=tuple(strengths),
            improvements=tuple(improvements),
        )


class LLMResponseScorer:
    def __init__(self, timeout_sec: float = 12.0, retries: int = 1):
        self.timeout_sec = timeout_sec
        self.retries = retries

    def build_prompt(self, question: Question, response_text: str, time_used_seconds: int) -> str:
        keywords = ", ".join(question.expected_keywords) or "None specified"
        return f"""
You are a senior technical interviewer. Evaluate the candidate's answer strictly but fairly.

Question: {question.text}
Category: {question.category}
Difficulty: {question.difficulty.value}
Expected keywords: {keywords}
Time limit: {question.time_limit_seconds}s
Time used: {time_used_seconds}s

Candidate answer:
{response_text}

Scoring guide: 90-100 excellent, 70-89 good, 50-69 average, 30-49 weak, 0-29 poor or empty.

Return JSON only:
{{
  "score": 0-100,
  "feedback": "one or two sentences",
  "strengths": ["..."],
  "improvements": ["..."]
}}
"""

    async def score_response(self, question: Question, response_text: str, time_used_seconds: int) -> ScoreResult:
        raw = await call_llm(
            self.build_prompt(question, response_text, time_used_seconds),
            timeout_sec=self.timeout_sec,
            retries=self.retries,
        )
        data = extract_json(raw)
        if not isinstance(data, dict) or data.get("score") is None:
            raise ScoringUnavailable("model returned no usable score")

        return ScoreResult(
            score=_clamp_score(data.get("score")),
            feedback=str(data.get("feedback") or "Evaluation generated.").strip(),
            strengths=_string_list(data.get("strengths")),
            improvements=_string_list(data.get("improvements")),
        )


def build_scorer(backend: str | None = None) -> ResponseScorer:
    name = str(backend or SCORER_BACKEND or "heuristic").strip().lower()
    if name == "llm":
        return LLMResponseScorer()
    if name != "heuristic":
        logger.warning("unknown scorer backend %r, using heuristic", name)
    return KeywordResponseScorer()
