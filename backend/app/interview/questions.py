from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Protocol

from app.ai_reasoning.llm import call_llm, extract_json
from app.interview.models import Question
from core.config import QUESTION_BACKEND
from core.state import Difficulty

logger = logging.getLogger("app.interview.questions")


DEFAULT_TIME_LIMITS = {
    Difficulty.EASY: 20,
    Difficulty.MEDIUM: 60,
    Difficulty.HARD: 120,
}

DIFFICULTY_ORDER = (Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD)


@dataclass(frozen=True)
class DifficultyMix:
    easy: int = 2
    medium: int = 2
    hard: int = 2

    def count(self, difficulty: Difficulty) -> int:
        return max(0, int(getattr(self, difficulty.value)))

    @property
    def total(self) -> int:
        return sum(self.count(d) for d in DIFFICULTY_ORDER)


class QuestionGenerator(Protocol):
    async def generate_questions(self, resume_text: str, mix: DifficultyMix, position: str = "") -> list[Question]:
        ...


# ---------- STATIC BASE QUESTIONS ----------

# (text, category, expected keywords)
GENERAL_POOL = {
    Difficulty.EASY: [
        ("Tell me about your background and experience relevant to this position.", "background", ("experience", "background", "skills")),
        ("What technologies are you most comfortable working with?", "technical", ("technology", "programming", "tools")),
        ("Describe your experience with version control systems like Git.", "tooling", ("git", "branch", "merge")),
    ],
    Difficulty.MEDIUM: [
        ("Describe a challenging project you worked on and how you solved it.", "experience", ("project", "challenge", "solution")),
        ("How would you approach debugging a performance issue?", "problem-solving", ("debugging", "performance", "profiling")),
        ("Explain the difference between synchronous and asynchronous programming.", "technical", ("asynchronous", "blocking", "concurrency")),
    ],
    Difficulty.HARD: [
        ("Design a system to handle high traffic and scale efficiently.", "system-design", ("scalability", "architecture", "caching")),
        ("Explain your approach to code quality and best practices.", "architecture", ("quality", "testing", "standards")),
        ("Design a distributed caching system for a high-traffic application.", "system-design", ("cache", "consistency", "eviction")),
    ],
}

POSITION_POOLS = {
    "frontend developer": {
        Difficulty.EASY: [
            ("What frontend frameworks and libraries are you most comfortable with?", "frontend", ("react", "framework", "javascript")),
            ("How do you ensure cross-browser compatibility?", "frontend", ("browser", "testing", "css")),
        ],
        Difficulty.MEDIUM: [
            ("Explain the concept of virtual DOM and its benefits.", "frontend", ("dom", "render", "diff")),
            ("How do you manage state in large React applications?", "frontend", ("state", "redux", "context")),
        ],
        Difficulty.HARD: [
            ("How would you implement server-side rendering for a React app?", "architecture", ("server", "hydration", "render")),
            ("Design a real-time collaborative editor like Google Docs.", "system-design", ("websocket", "conflict", "sync")),
        ],
    },
    "backend developer": {
        Difficulty.EASY: [
            ("What backend technologies and databases are you experienced with?", "backend", ("database", "server", "api")),
            ("Describe your experience with RESTful API design.", "api-design", ("rest", "http", "resource")),
        ],
        Difficulty.MEDIUM: [
            ("Explain the differences between SQL and NoSQL databases.", "databases", ("sql", "schema", "consistency")),
            ("Describe your approach to API rate limiting and throttling.", "backend", ("rate", "limit", "throttle")),
        ],
        Difficulty.HARD: [
            ("Design a microservices architecture for an e-commerce platform.", "system-design", ("microservices", "gateway", "queue")),
            ("How would you design a fault-tolerant payment processing system?", "system-design", ("idempotency", "retry", "transaction")),
        ],
    },
    "data scientist": {
        Difficulty.EASY: [
            ("What programming languages do you use for data analysis?", "data", ("python", "analysis", "pandas")),
            ("How do you handle missing or dirty data?", "data", ("missing", "cleaning", "imputation")),
        ],
        Difficulty.MEDIUM: [
            ("Explain the bias-variance tradeoff in machine learning.", "machine-learning", ("bias", "variance", "overfitting")),
            ("How do you evaluate the performance of a machine learning model?", "machine-learning", ("metric", "validation", "precision")),
        ],
        Difficulty.HARD: [
            ("Design a recommendation system for a streaming platform.", "system-design", ("recommendation", "collaborative", "features")),
            ("How would you build a real-time fraud detection system?", "system-design", ("fraud", "streaming", "model")),
        ],
    },
}


class StaticQuestionBank:
    """Deterministic question selection: position pool first, general pool to fill."""

    def __init__(self, time_limits: dict[Difficulty, int] | None = None):
        self.time_limits = dict(DEFAULT_TIME_LIMITS)
        self.time_limits.update(time_limits or {})

    def pick(self, mix: DifficultyMix, position: str = "") -> list[Question]:
        position_pool = POSITION_POOLS.get(str(position or "").strip().lower(), {})
        questions: list[Question] = []
        for difficulty in DIFFICULTY_ORDER:
            candidates = list(position_pool.get(difficulty, [])) + list(GENERAL_POOL[difficulty])
            wanted = mix.count(difficulty)
            for text, category, keywords in candidates[:wanted]:
                questions.append(
                    Question(
                        id=f"q{len(questions) + 1}",
                        text=text,
                        difficulty=difficulty,
                        time_limit_seconds=self.time_limits[difficulty],
                        category=category,
                        expected_keywords=tuple(keywords),
                    )
                )
        return questions

    async def generate_questions(self, resume_text: str, mix: DifficultyMix, position: str = "") -> list[Question]:
        return self.pick(mix, position)


# ---------- AI GENERATED QUESTIONS ----------

class LLMQuestionGenerator:
    def __init__(self, fallback: StaticQuestionBank | None = None, timeout_sec: float = 20.0):
        self.fallback = fallback or StaticQuestionBank()
        self.timeout_sec = timeout_sec

    def build_prompt(self, resume_text: str, mix: DifficultyMix, position: str) -> str:
        limits = self.fallback.time_limits
        return f"""
As an expert technical interviewer, generate {mix.total} interview questions for a {position or "software engineering"} position
based on the candidate's resume below.

Resume:
{str(resume_text or "")[:6000]}

Requirements:
- Exactly {mix.easy} easy, {mix.medium} medium and {mix.hard} hard questions, ordered easy, medium, hard
- Time limits in seconds: easy {limits[Difficulty.EASY]}, medium {limits[Difficulty.MEDIUM]}, hard {limits[Difficulty.HARD]}
- Categorize each question (technical, experience, problem-solving, system-design, background, architecture)
- Provide 3 expected keywords per question

Return JSON only:
{{"questions": [{{"text": "...", "difficulty": "easy|medium|hard", "category": "...", "expected_keywords": ["..."]}}]}}
"""

    def _parse(self, raw: str, mix: DifficultyMix) -> list[Question]:
        data = extract_json(raw)
        items = data.get("questions") if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise ValueError("no question list in model output")

        by_difficulty: dict[Difficulty, list[dict]] = {d: [] for d in DIFFICULTY_ORDER}
        for item in items:
            if not isinstance(item, dict) or not str(item.get("text") or item.get("question") or "").strip():
                continue
            try:
                difficulty = Difficulty(str(item.get("difficulty") or "").strip().lower())
            except ValueError:
                continue
            by_difficulty[difficulty].append(item)

        questions: list[Question] = []
        for difficulty in DIFFICULTY_ORDER:
            wanted = mix.count(difficulty)
            picked = by_difficulty[difficulty][:wanted]
            if len(picked) < wanted:
                raise ValueError(f"model returned {len(picked)} {difficulty.value} questions, wanted {wanted}")
            for item in picked:
                payload = dict(item)
                payload["time_limit_seconds"] = self.fallback.time_limits[difficulty]
                payload["id"] = f"q{len(questions) + 1}"
                questions.append(Question.from_dict(payload))
        return questions

    async def generate_questions(self, resume_text: str, mix: DifficultyMix, position: str = "") -> list[Question]:
        raw = await call_llm(self.build_prompt(resume_text, mix, position), timeout_sec=self.timeout_sec, temperature=0.7)
        try:
            return self._parse(raw, mix)
        except (ValueError, TypeError, json.JSONDecodeError) as exc:
            logger.warning("question generation fallback | err=%s", exc)
            return self.fallback.pick(mix, position)


def build_question_generator(backend: str | None = None) -> QuestionGenerator:
    name = str(backend or QUESTION_BACKEND or "static").strip().lower()
    if name == "llm":
        return LLMQuestionGenerator()
    return StaticQuestionBank()
