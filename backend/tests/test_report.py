import pytest

from app.interview.errors import InvalidTransition
from app.interview.models import (
    NO_RESPONSE_TEXT,
    SCORING_UNAVAILABLE_FEEDBACK,
    CandidateProfile,
    Interview,
    Response,
    Violation,
)
from app.interview.report import ReportAggregator
from core.state import Difficulty, InterviewStatus, Recommendation, ViolationKind


def _interview(question_factory, scores, status=InterviewStatus.COMPLETED, violations=()):
    questions = question_factory(Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD)
    responses = [
        Response(
            question_id=questions[index].id,
            question_index=index,
            text=f"answer {index}" if score else NO_RESPONSE_TEXT,
            time_used_seconds=10,
            score=score,
            feedback="Good" if score >= 60 else "Needs depth",
            submitted_at=100.0 + index,
            strengths=("Clear",) if score >= 60 else (),
            improvements=() if score >= 60 else ("Add examples",),
        )
        for index, score in enumerate(scores)
    ]
    return Interview(
        id="iv-1",
        candidate=CandidateProfile(name="Ada Lovelace", position="Backend Developer"),
        questions=questions,
        responses=responses,
        violations=list(violations),
        status=status,
        current_index=max(0, len(responses) - 1),
        started_at=100.0,
        ended_at=160.5,
        termination_reason="Candidate left" if status == InterviewStatus.TERMINATED else None,
    )


def test_report_requires_terminal_interview(question_factory):
    interview = _interview(question_factory, [80.0], status=InterviewStatus.INTERVIEWING)
    with pytest.raises(InvalidTransition):
        ReportAggregator().generate(interview)


def test_report_is_deterministic(question_factory):
    interview = _interview(question_factory, [90.0, 55.0, 70.0])
    aggregator = ReportAggregator()

    first = aggregator.generate(interview)
    second = aggregator.generate(interview)

    assert first == second
    assert first.to_json() == second.to_json()


def test_report_breakdown_and_scores(question_factory):
    report = ReportAggregator().generate(_interview(question_factory, [90.0, 55.0, 70.0]))

    assert report.overall_score == 71.67
    assert report.recommendation == Recommendation.HIRE
    assert report.questions_answered == 3
    assert report.total_questions == 3
    assert report.breakdown["easy"].accuracy_percentage == 100.0
    assert report.breakdown["medium"].accuracy_percentage == 0.0
    assert report.breakdown["hard"].average == 70.0
    assert report.category_insights == {"technical": 71.67}
    assert report.duration_seconds == 60.5
    assert [a.is_correct for a in report.question_analysis] == [True, False, True]
    assert report.strengths == ("Clear", "Good")
    assert report.improvements == ("Add examples", "Needs depth")


@pytest.mark.parametrize(
    "scores,expected",
    [
        ([90.0, 85.0], Recommendation.STRONG_HIRE),
        ([70.0, 70.0], Recommendation.HIRE),
        ([69.0, 40.0], Recommendation.NO_HIRE),
        ([], Recommendation.INSUFFICIENT_DATA),
    ],
)
def test_recommendation_tiers(question_factory, scores, expected):
    report = ReportAggregator().generate(_interview(question_factory, scores))
    assert report.recommendation == expected


def test_violation_or_termination_downgrades_one_tier(question_factory):
    violation = Violation(ViolationKind.TAB_CHANGE, 120.0, 2, "Question 2")
    flagged = ReportAggregator().generate(_interview(question_factory, [95.0, 90.0], violations=[violation]))
    terminated = ReportAggregator().generate(
        _interview(question_factory, [75.0], status=InterviewStatus.TERMINATED)
    )

    assert flagged.recommendation == Recommendation.HIRE
    assert terminated.recommendation == Recommendation.NO_HIRE
    assert terminated.termination_reason == "Candidate left"
    assert "Complete the interview without integrity violations" in terminated.improvements
    assert "Interview terminated early: Candidate left" in terminated.summary


def test_scoring_placeholder_feedback_is_not_echoed(question_factory):
    interview = _interview(question_factory, [0.0])
    interview.responses[0] = Response(
        question_id="q1",
        question_index=0,
        text="an answer",
        time_used_seconds=5,
        score=0.0,
        feedback=SCORING_UNAVAILABLE_FEEDBACK,
        submitted_at=101.0,
    )

    report = ReportAggregator().generate(interview)

    assert SCORING_UNAVAILABLE_FEEDBACK not in report.improvements
    assert report.question_analysis[0].feedback == SCORING_UNAVAILABLE_FEEDBACK


def test_report_serializes_with_stable_keys(question_factory):
    payload = ReportAggregator().generate(_interview(question_factory, [80.0])).to_dict()

    assert payload["status"] == "completed"
    assert payload["recommendation"] == "Hire"
    assert payload["is_terminated"] is False
    assert payload["breakdown"]["easy"] == {"count": 1, "average": 80.0, "accuracy_percentage": 100.0}
