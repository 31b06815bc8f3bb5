from __future__ import annotations

import json
from dataclasses import dataclass, field, asdict
from typing import Any

from core.state import Difficulty, InterviewMode, InterviewStatus, Recommendation, ViolationKind


NO_RESPONSE_TEXT = "(No response - time expired)"
SCORING_UNAVAILABLE_FEEDBACK = "scoring unavailable"


@dataclass
class CandidateProfile:
    name: str = ""
    email: str = ""
    phone: str = ""
    position: str = ""
    resume_text: str = ""
    extracted_fields: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "position": self.position,
            "extracted_fields": dict(self.extracted_fields),
        }


@dataclass(frozen=True)
class ResumeFields:
    resume_text: str
    name: str | None = None
    email: str | None = None
    phone: str | None = None

    def present_fields(self) -> dict[str, str]:
        return {
            key: value
            for key, value in (("name", self.name), ("email", self.email), ("phone", self.phone))
            if value
        }


@dataclass(frozen=True)
class Question:
    id: str
    text: str
    difficulty: Difficulty
    time_limit_seconds: int
    category: str = "general"
    expected_keywords: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "difficulty": self.difficulty.value,
            "time_limit_seconds": self.time_limit_seconds,
            "category": self.category,
            "expected_keywords": list(self.expected_keywords),
        }

    @classmethod
    def from_dict(cls, data: dict, fallback_id: str = "") -> "Question":
        difficulty = Difficulty(str(data.get("difficulty") or "medium").strip().lower())
        return cls(
            id=str(data.get("id") or fallback_id),
            text=str(data.get("text") or data.get("question") or "").strip(),
            difficulty=difficulty,
            time_limit_seconds=max(1, int(data.get("time_limit_seconds") or data.get("timeLimit") or 60)),
            category=str(data.get("category") or "general"),
            expected_keywords=tuple(str(k) for k in (data.get("expected_keywords") or data.get("expectedKeywords") or [])),
        )


@dataclass(frozen=True)
class ScoreResult:
    score: float
    feedback: str
    strengths: tuple[str, ...] = ()
    improvements: tuple[str, ...] = ()


@dataclass(frozen=True)
class Response:
    question_id: str
    question_index: int
    text: str
    time_used_seconds: int
    score: float
    feedback: str
    submitted_at: float
    auto_submitted: bool = False
    strengths: tuple[str, ...] = ()
    improvements: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload["strengths"] = list(self.strengths)
        payload["improvements"] = list(self.improvements)
        return payload


@dataclass(frozen=True)
class Violation:
    kind: ViolationKind
    timestamp: float
    question_number: int
    question_text: str

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "timestamp": self.timestamp,
            "question_number": self.question_number,
            "question_text": self.question_text,
        }


@dataclass
class Interview:
    id: str
    candidate: CandidateProfile
    mode: InterviewMode = InterviewMode.PROCTORED
    questions: list[Question] = field(default_factory=list)
    responses: list[Response] = field(default_factory=list)
    violations: list[Violation] = field(default_factory=list)
    status: InterviewStatus = InterviewStatus.COLLECTING_INFO
    current_index: int = 0
    started_at: float | None = None
    ended_at: float | None = None
    termination_reason: str | None = None

    @property
    def current_question(self) -> Question | None:
        if self.status != InterviewStatus.INTERVIEWING:
            return None
        if 0 <= self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "candidate": self.candidate.to_dict(),
            "mode": self.mode.value,
            "status": self.status.value,
            "current_index": self.current_index,
            "questions": [q.to_dict() for q in self.questions],
            "responses": [r.to_dict() for r in self.responses],
            "violations": [v.to_dict() for v in self.violations],
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "termination_reason": self.termination_reason,
        }


@dataclass(frozen=True)
class DifficultyBreakdown:
    count: int
    average: float
    accuracy_percentage: float


@dataclass(frozen=True)
class QuestionAnalysis:
    question_number: int
    question: str
    difficulty: Difficulty
    category: str
    score: float
    is_correct: bool
    feedback: str
    time_used_seconds: int
    time_limit_seconds: int
    auto_submitted: bool


@dataclass(frozen=True)
class FinalReport:
    interview_id: str
    candidate_name: str
    position: str
    status: InterviewStatus
    mode: InterviewMode
    total_questions: int
    questions_answered: int
    overall_score: float
    breakdown: dict[str, DifficultyBreakdown]
    category_insights: dict[str, float]
    recommendation: Recommendation
    strengths: tuple[str, ...]
    improvements: tuple[str, ...]
    question_analysis: tuple[QuestionAnalysis, ...]
    violations: tuple[Violation, ...]
    termination_reason: str | None
    started_at: float | None
    ended_at: float | None
    duration_seconds: float
    summary: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "interview_id": self.interview_id,
            "candidate_name": self.candidate_name,
            "position": self.position,
            "status": self.status.value,
            "mode": self.mode.value,
            "is_terminated": self.status == InterviewStatus.TERMINATED,
            "total_questions": self.total_questions,
            "questions_answered": self.questions_answered,
            "overall_score": self.overall_score,
            "breakdown": {key: asdict(value) for key, value in self.breakdown.items()},
            "category_insights": dict(self.category_insights),
            "recommendation": self.recommendation.value,
            "strengths": list(self.strengths),
            "improvements": list(self.improvements),
            "question_analysis": [
                {**asdict(item), "difficulty": item.difficulty.value}
                for item in self.question_analysis
            ],
            "violations": [v.to_dict() for v in self.violations],
            "termination_reason": self.termination_reason,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "duration_seconds": self.duration_seconds,
            "summary": self.summary,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, ensure_ascii=False, separators=(",", ":"))
