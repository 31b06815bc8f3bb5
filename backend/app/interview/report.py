from __future__ import annotations

from app.interview.errors import InvalidTransition
from app.interview.models import (
    SCORING_UNAVAILABLE_FEEDBACK,
    DifficultyBreakdown,
    FinalReport,
    Interview,
    QuestionAnalysis,
)
from core.state import Difficulty, InterviewStatus, Recommendation

_DOWNGRADE = {
    Recommendation.STRONG_HIRE: Recommendation.HIRE,
    Recommendation.HIRE: Recommendation.NO_HIRE,
    Recommendation.NO_HIRE: Recommendation.NO_HIRE,
    Recommendation.INSUFFICIENT_DATA: Recommendation.INSUFFICIENT_DATA,
}


def _avg(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _dedupe(items: list[str]) -> tuple[str, ...]:
    seen: set[str] = set()
    ordered = []
    for item in items:
        text = str(item or "").strip()
        key = text.lower()
        if not text or key in seen:
            continue
        seen.add(key)
        ordered.append(text)
    return tuple(ordered)


class ReportAggregator:
    """Pure function from a terminal Interview to its FinalReport."""

    def __init__(self, correctness_threshold: float = 60.0, strong_hire_at: float = 85.0, hire_at: float = 70.0):
        self.correctness_threshold = float(correctness_threshold)
        self.strong_hire_at = float(strong_hire_at)
        self.hire_at = float(hire_at)

    def recommend(self, overall_score: float, answered: int, penalised: bool) -> Recommendation:
        if answered == 0:
            return Recommendation.INSUFFICIENT_DATA
        if overall_score >= self.strong_hire_at:
            tier = Recommendation.STRONG_HIRE
        elif overall_score >= self.hire_at:
            tier = Recommendation.HIRE
        else:
            tier = Recommendation.NO_HIRE
        return _DOWNGRADE[tier] if penalised else tier

    def generate(self, interview: Interview) -> FinalReport:
        if not interview.status.is_terminal:
            raise InvalidTransition(f"Report requires a finished interview (status={interview.status.value})")

        questions = interview.questions
        responses = interview.responses
        threshold = self.correctness_threshold

        overall = round(_avg([r.score for r in responses]), 2)

        breakdown: dict[str, DifficultyBreakdown] = {}
        for difficulty in (Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD):
            scores = [
                r.score
                for r in responses
                if r.question_index < len(questions) and questions[r.question_index].difficulty == difficulty
            ]
            correct = sum(1 for s in scores if s >= threshold)
            breakdown[difficulty.value] = DifficultyBreakdown(
                count=len(scores),
                average=round(_avg(scores), 2),
                accuracy_percentage=round(correct / len(scores) * 100, 2) if scores else 0.0,
            )

        category_scores: dict[str, list[float]] = {}
        analysis = []
        strengths: list[str] = []
        improvements: list[str] = []
        for response in responses:
            question = questions[response.question_index]
            category_scores.setdefault(question.category, []).append(response.score)
            is_correct = response.score >= threshold
            analysis.append(
                QuestionAnalysis(
                    question_number=response.question_index + 1,
                    question=question.text,
                    difficulty=question.difficulty,
                    category=question.category,
                    score=response.score,
                    is_correct=is_correct,
                    feedback=response.feedback,
                    time_used_seconds=response.time_used_seconds,
                    time_limit_seconds=question.time_limit_seconds,
                    auto_submitted=response.auto_submitted,
                )
            )
            strengths.extend(response.strengths)
            improvements.extend(response.improvements)
            if response.feedback and response.feedback != SCORING_UNAVAILABLE_FEEDBACK:
                (strengths if is_correct else improvements).append(response.feedback)

        terminated = interview.status == InterviewStatus.TERMINATED
        if terminated or interview.violations:
            improvements.append("Complete the interview without integrity violations")

        recommendation = self.recommend(overall, len(responses), terminated or bool(interview.violations))
        duration = 0.0
        if interview.started_at is not None and interview.ended_at is not None:
            duration = round(max(0.0, interview.ended_at - interview.started_at), 2)

        return FinalReport(
            interview_id=interview.id,
            candidate_name=interview.candidate.name,
            position=interview.candidate.position,
            status=interview.status,
            mode=interview.mode,
            total_questions=len(questions),
            questions_answered=len(responses),
            overall_score=overall,
            breakdown=breakdown,
            category_insights={
                category: round(_avg(scores), 2) for category, scores in sorted(category_scores.items())
            },
            recommendation=recommendation,
            strengths=_dedupe(strengths),
            improvements=_dedupe(improvements),
            question_analysis=tuple(analysis),
            violations=tuple(interview.violations),
            termination_reason=interview.termination_reason if terminated else None,
            started_at=interview.started_at,
            ended_at=interview.ended_at,
            duration_seconds=duration,
            summary=self._summary(interview, overall, breakdown, recommendation),
        )

    def _summary(self, interview: Interview, overall: float, breakdown: dict[str, DifficultyBreakdown], recommendation: Recommendation) -> str:
        lines = [
            f"Candidate completed {len(interview.responses)} out of {len(interview.questions)} questions "
            f"with an overall score of {overall:g}/100."
        ]
        for name, item in breakdown.items():
            if item.count:
                lines.append(f"{name.capitalize()} questions: {item.average:g}/100 average ({item.accuracy_percentage:g}% accuracy)")

        if interview.status == InterviewStatus.TERMINATED:
            kinds = ", ".join(v.kind.value for v in interview.violations) or "none"
            lines.append(f"Interview terminated early: {interview.termination_reason or 'unspecified'} (violations: {kinds}).")
        elif interview.violations:
            lines.append(f"{len(interview.violations)} integrity violation(s) were recorded.")

        if overall >= 80:
            lines.append("Excellent performance with strong technical knowledge across difficulty levels.")
        elif overall >= 60:
            lines.append("Good performance with solid understanding of core concepts.")
        elif overall >= 40:
            lines.append("Average performance; technical depth needs improvement.")
        else:
            lines.append("Needs significant improvement before proceeding.")
        lines.append(f"Recommendation: {recommendation.value}.")
        return "\n".join(lines)
