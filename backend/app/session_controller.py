from __future__ import annotations

import asyncio
import inspect
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Iterable, Protocol

from app.integrity.monitor import IntegrityMonitor
from app.integrity.signals import PushSignalSource, SignalSource
from app.interview.errors import (
    AlreadyAnswered,
    InvalidTransition,
    TerminationInFlight,
)
from app.interview.evaluator import ResponseScorer
from app.interview.intake import apply_field, missing_fields, next_prompt
from app.interview.models import (
    NO_RESPONSE_TEXT,
    SCORING_UNAVAILABLE_FEEDBACK,
    CandidateProfile,
    FinalReport,
    Interview,
    Question,
    Response,
    ScoreResult,
    Violation,
)
from app.interview.questions import DifficultyMix, QuestionGenerator, StaticQuestionBank
from app.interview.report import ReportAggregator
from app.session.clock import Clock
from app.session.timer import QuestionTimer
from app.system_metrics import increment_metric, observe_scoring_latency_ms
from app.turn_lifecycle import QuestionTurn
from core.config import (
    CORRECTNESS_THRESHOLD,
    INTEGRITY_GRACE_DELAY_SEC,
    LATE_SUBMIT_TIMEOUT_SEC,
    SCORING_TIMEOUT_SEC,
)
from core.logger import log_event
from core.state import InterviewMode, InterviewStatus, ViolationKind

logger = logging.getLogger("app.session_controller")

TERMINATION_REASONS = {
    ViolationKind.FULLSCREEN_EXIT: "Exited fullscreen mode during interview",
    ViolationKind.TAB_CHANGE: "Switched tabs/windows during interview",
    ViolationKind.WINDOW_BLUR: "Window lost focus during interview",
}


@dataclass
class SessionConfig:
    grace_delay_sec: float = INTEGRITY_GRACE_DELAY_SEC
    scoring_timeout_sec: float = SCORING_TIMEOUT_SEC
    late_submit_timeout_sec: float = LATE_SUBMIT_TIMEOUT_SEC
    correctness_threshold: float = CORRECTNESS_THRESHOLD
    mix: DifficultyMix = field(default_factory=DifficultyMix)


class SessionListener(Protocol):
    async def on_response_recorded(self, interview: Interview, response: Response) -> None:
        ...

    async def on_session_finalized(self, interview: Interview, report: FinalReport) -> None:
        ...


class SessionController:
    """Owns one Interview and drives it from intake to a terminal state."""

    def __init__(
        self,
        interview: Interview,
        *,
        clock: Clock,
        scorer: ResponseScorer,
        question_generator: QuestionGenerator | None = None,
        signal_source: SignalSource | None = None,
        listeners: Iterable[SessionListener] = (),
        config: SessionConfig | None = None,
        report_aggregator: ReportAggregator | None = None,
        now_fn: Callable[[], float] = time.time,
    ):
        self.interview = interview
        self.config = config or SessionConfig()
        self.scorer = scorer
        self.question_generator = question_generator or StaticQuestionBank()
        self.listeners = list(listeners)
        self.now_fn = now_fn
        self.report_aggregator = report_aggregator or ReportAggregator(self.config.correctness_threshold)
        self.signal_source = signal_source or PushSignalSource()
        self.timer = QuestionTimer(clock, on_expired=self._on_timer_expired)
        self.monitor = IntegrityMonitor(
            self.signal_source,
            active_question=self._active_question,
            on_violation=self.record_violation,
            mode=interview.mode,
            now_fn=now_fn,
        )
        self.tasks: set[asyncio.Task] = set()
        self.draft = ""
        self.report: FinalReport | None = None
        self._turns: list[QuestionTurn] = []
        self._terminating = False
        self._termination_scheduled = False
        self._inflight_done: asyncio.Event | None = None
        self._closed = asyncio.Event()
        self._refresh_intake_status()

    @classmethod
    def create(
        cls,
        candidate: CandidateProfile | None = None,
        mode: InterviewMode = InterviewMode.PROCTORED,
        **kwargs,
    ) -> "SessionController":
        interview = Interview(
            id=str(uuid.uuid4()),
            candidate=candidate or CandidateProfile(),
            mode=InterviewMode(mode),
        )
        increment_metric("sessions_created")
        return cls(interview, **kwargs)

    @property
    def session_id(self) -> str:
        return self.interview.id

    @property
    def status(self) -> InterviewStatus:
        return self.interview.status

    @property
    def terminating(self) -> bool:
        return self._terminating

    # ---------- background tasks ----------

    def create_task(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)
        return task

    async def wait_idle(self) -> None:
        current = asyncio.current_task()
        while True:
            pending = [task for task in self.tasks if task is not current and not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def stop(self) -> None:
        self.timer.disarm()
        self.monitor.detach()
        for task in list(self.tasks):
            task.cancel()
        await asyncio.gather(*self.tasks, return_exceptions=True)

    # ---------- intake ----------

    def _refresh_intake_status(self) -> None:
        if self.interview.status not in (InterviewStatus.COLLECTING_INFO, InterviewStatus.CONFIRMING):
            return
        if missing_fields(self.interview.candidate):
            self.interview.status = InterviewStatus.COLLECTING_INFO
        else:
            self.interview.status = InterviewStatus.CONFIRMING

    def provide_field(self, field_name: str, value: str) -> list[str]:
        if self.interview.status not in (InterviewStatus.COLLECTING_INFO, InterviewStatus.CONFIRMING):
            raise InvalidTransition("Candidate details are locked once the interview has started")
        name = apply_field(self.interview.candidate, field_name, value)
        self._refresh_intake_status()
        log_event("session", "field_collected", self.session_id, field=name, status=self.interview.status)
        return missing_fields(self.interview.candidate)

    # ---------- interview ----------

    async def start_interview(self, questions: Iterable[Question] | None = None) -> Question:
        if self.interview.status != InterviewStatus.CONFIRMING:
            raise InvalidTransition(f"Cannot start interview from status {self.interview.status.value}")

        candidate = self.interview.candidate
        if questions is None:
            questions = await self.question_generator.generate_questions(
                candidate.resume_text,
                self.config.mix,
                position=candidate.position,
            )
        question_list = list(questions or [])
        if not question_list:
            raise InvalidTransition("No questions available for this interview")
        if self.interview.status != InterviewStatus.CONFIRMING:
            raise InvalidTransition("Interview was started concurrently")

        self.interview.questions = question_list
        self._turns = [QuestionTurn(index) for index in range(len(question_list))]
        self.interview.current_index = 0
        self.interview.started_at = float(self.now_fn())
        self.interview.status = InterviewStatus.INTERVIEWING
        self._arm_current()
        self.monitor.attach()

        increment_metric("interviews_started")
        log_event(
            "session",
            "interview_started",
            self.session_id,
            mode=self.interview.mode,
            total_questions=len(question_list),
        )
        return question_list[0]

    def update_draft(self, text: str) -> None:
        if self.interview.status == InterviewStatus.INTERVIEWING and not self._terminating:
            self.draft = str(text or "")

    def _arm_current(self) -> None:
        index = self.interview.current_index
        question = self.interview.questions[index]
        self.timer.arm(question, index)
        log_event(
            "session",
            "question_armed",
            self.session_id,
            question_number=index + 1,
            question_id=question.id,
            time_limit_seconds=question.time_limit_seconds,
        )

    def _on_timer_expired(self, question: Question, index: int) -> None:
        log_event("session", "question_expired", self.session_id, question_number=index + 1, question_id=question.id)
        self.create_task(self._auto_submit(index))

    async def _auto_submit(self, index: int) -> None:
        try:
            await self.submit_response(None, is_auto_submit=True, question_index=index)
        except (AlreadyAnswered, TerminationInFlight) as exc:
            logger.info("auto-submit dropped | session=%s question=%s reason=%s", self.session_id, index + 1, exc)

    async def _score(self, question: Question, text: str, time_used: int) -> ScoreResult:
        started = time.monotonic()
        try:
            result = await asyncio.wait_for(
                self.scorer.score_response(question, text, time_used),
                timeout=self.config.scoring_timeout_sec,
            )
        except Exception as exc:
            increment_metric("scoring_failures")
            log_event(
                "session",
                "scoring_unavailable",
                self.session_id,
                level=logging.WARNING,
                question_id=question.id,
                error=str(exc) or type(exc).__name__,
            )
            return ScoreResult(score=0.0, feedback=SCORING_UNAVAILABLE_FEEDBACK)
        finally:
            observe_scoring_latency_ms((time.monotonic() - started) * 1000.0)

        return ScoreResult(
            score=max(0.0, min(100.0, float(result.score))),
            feedback=str(result.feedback or ""),
            strengths=tuple(result.strengths),
            improvements=tuple(result.improvements),
        )

    def _build_response(self, index: int, text: str, time_used: int, result: ScoreResult, auto: bool) -> Response:
        question = self.interview.questions[index]
        return Response(
            question_id=question.id,
            question_index=index,
            text=text,
            time_used_seconds=int(time_used),
            score=result.score,
            feedback=result.feedback,
            submitted_at=float(self.now_fn()),
            auto_submitted=auto,
            strengths=result.strengths,
            improvements=result.improvements,
        )

    async def submit_response(
        self,
        text: str | None = None,
        *,
        is_auto_submit: bool = False,
        question_index: int | None = None,
    ) -> Response:
        interview = self.interview
        if self._terminating or interview.status == InterviewStatus.TERMINATED:
            raise TerminationInFlight("Interview is being terminated; submission dropped")
        if interview.status == InterviewStatus.COMPLETED:
            last = len(interview.questions) - 1 if question_index is None else question_index
            raise AlreadyAnswered(last, "Interview already completed")
        if interview.status != InterviewStatus.INTERVIEWING:
            raise InvalidTransition(f"Cannot submit a response while {interview.status.value}")

        index = interview.current_index
        if question_index is not None and question_index != index:
            if 0 <= question_index < index:
                increment_metric("duplicate_submissions_dropped")
                raise AlreadyAnswered(question_index)
            raise InvalidTransition(
                f"Question index {question_index} is not the current question ({index})"
            )

        turn = self._turns[index]
        source = "timer_expiry" if is_auto_submit else "manual"
        if not turn.try_claim(source):
            increment_metric("duplicate_submissions_dropped")
            log_event("session", "duplicate_submission", self.session_id, question_number=index + 1, source=source)
            raise AlreadyAnswered(index)

        question = interview.questions[index]
        remaining = self.timer.disarm()
        body = self.draft if text is None else str(text)
        if not body.strip():
            body = NO_RESPONSE_TEXT
        if is_auto_submit:
            time_used = question.time_limit_seconds
        else:
            time_used = max(0, min(question.time_limit_seconds, question.time_limit_seconds - remaining))

        done = asyncio.Event()
        self._inflight_done = done
        try:
            result = await self._score(question, body, time_used)
        finally:
            done.set()
            if self._inflight_done is done:
                self._inflight_done = None

        if interview.status.is_terminal or not turn.mark_recorded():
            increment_metric("late_submissions_dropped")
            log_event("session", "submission_after_termination", self.session_id, question_number=index + 1)
            raise TerminationInFlight("Interview ended before the submission was recorded")

        response = self._build_response(index, body, time_used, result, is_auto_submit)
        interview.responses.append(response)
        self.draft = ""
        increment_metric("responses_recorded")
        if is_auto_submit:
            increment_metric("auto_submits")
        log_event(
            "session",
            "response_recorded",
            self.session_id,
            question_number=index + 1,
            auto_submitted=is_auto_submit,
            time_used_seconds=time_used,
            score=response.score,
        )

        completed = False
        if not self._terminating:
            if index + 1 >= len(interview.questions):
                self._close(InterviewStatus.COMPLETED)
                completed = True
            else:
                interview.current_index = index + 1
                self._arm_current()

        await self._notify("on_response_recorded", interview, response)
        if completed:
            await self._notify("on_session_finalized", interview, self.report)
        return response

    # ---------- integrity ----------

    def _active_question(self) -> tuple[int, str] | None:
        if self._terminating:
            return None
        question = self.interview.current_question
        if question is None:
            return None
        return self.interview.current_index + 1, question.text

    def record_violation(self, violation: Violation, terminate: bool) -> None:
        if self.interview.status != InterviewStatus.INTERVIEWING or self._terminating:
            return
        self.interview.violations.append(violation)
        increment_metric(f"violations_{violation.kind.value}")
        log_event(
            "integrity",
            "violation_recorded",
            self.session_id,
            level=logging.WARNING,
            kind=violation.kind,
            question_number=violation.question_number,
            terminate=terminate,
        )
        if terminate and not self._termination_scheduled:
            self._termination_scheduled = True
            self.create_task(self._terminate_after_grace(TERMINATION_REASONS[violation.kind]))

    async def _terminate_after_grace(self, reason: str) -> None:
        await asyncio.sleep(self.config.grace_delay_sec)
        await self.terminate_session(reason)

    # ---------- termination ----------

    async def terminate_session(self, reason: str = "Interview terminated early") -> FinalReport | None:
        interview = self.interview
        if interview.status.is_terminal:
            return self.report
        if self._terminating:
            await self._closed.wait()
            return self.report
        if interview.status != InterviewStatus.INTERVIEWING:
            raise InvalidTransition(f"Cannot terminate an interview that has not started ({interview.status.value})")

        self._terminating = True
        remaining = self.timer.disarm()
        self.monitor.detach()
        log_event("session", "termination_started", self.session_id, reason=reason)

        inflight = self._inflight_done
        if inflight is not None and not inflight.is_set():
            try:
                await asyncio.wait_for(inflight.wait(), timeout=self.config.late_submit_timeout_sec)
            except asyncio.TimeoutError:
                log_event("session", "inflight_submission_abandoned", self.session_id, level=logging.WARNING)

        index = interview.current_index
        if index < len(self._turns) and self._turns[index].is_open and self.draft.strip():
            try:
                await asyncio.wait_for(
                    self._record_late_submission(index, remaining),
                    timeout=self.config.late_submit_timeout_sec,
                )
            except Exception as exc:
                increment_metric("late_submissions_dropped")
                log_event(
                    "session",
                    "late_submission_failed",
                    self.session_id,
                    level=logging.WARNING,
                    question_number=index + 1,
                    error=str(exc) or type(exc).__name__,
                )

        for turn in self._turns:
            turn.abandon()
        interview.termination_reason = str(reason or "Interview terminated early")
        self._close(InterviewStatus.TERMINATED)
        await self._notify("on_session_finalized", interview, self.report)
        return self.report

    async def _record_late_submission(self, index: int, remaining: int) -> None:
        turn = self._turns[index]
        if not turn.try_claim("termination"):
            return
        question = self.interview.questions[index]
        time_used = max(0, min(question.time_limit_seconds, question.time_limit_seconds - remaining))
        body = self.draft
        result = await self._score(question, body, time_used)
        if not turn.mark_recorded():
            return
        response = self._build_response(index, body, time_used, result, auto=False)
        self.interview.responses.append(response)
        self.draft = ""
        increment_metric("responses_recorded")
        log_event("session", "late_response_recorded", self.session_id, question_number=index + 1, score=response.score)
        await self._notify("on_response_recorded", self.interview, response)

    def _close(self, status: InterviewStatus) -> None:
        interview = self.interview
        self.timer.disarm()
        self.monitor.detach()
        interview.status = status
        interview.ended_at = float(self.now_fn())
        self.report = self.report_aggregator.generate(interview)
        self._closed.set()

        increment_metric("interviews_completed" if status == InterviewStatus.COMPLETED else "interviews_terminated")
        log_event(
            "session",
            "interview_finalized",
            self.session_id,
            status=status,
            responses=len(interview.responses),
            total_questions=len(interview.questions),
            violations=len(interview.violations),
            overall_score=self.report.overall_score,
            recommendation=self.report.recommendation,
        )

    # ---------- collaborators ----------

    async def _notify(self, method: str, *args) -> None:
        for listener in list(self.listeners):
            handler = getattr(listener, method, None)
            if handler is None:
                continue
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.warning("listener %s.%s failed: %s", type(listener).__name__, method, exc)

    def snapshot(self) -> dict:
        interview = self.interview
        question = interview.current_question
        return {
            "interview_id": interview.id,
            "status": interview.status.value,
            "mode": interview.mode.value,
            "terminating": self._terminating,
            "current_index": interview.current_index,
            "question_number": interview.current_index + 1 if question is not None else None,
            "total_questions": len(interview.questions),
            "current_question": question.to_dict() if question is not None else None,
            "remaining_seconds": self.timer.remaining_seconds if self.timer.is_armed else 0,
            "timer_armed": self.timer.is_armed,
            "responses_recorded": len(interview.responses),
            "violations": [v.to_dict() for v in interview.violations],
            "missing_fields": missing_fields(interview.candidate),
            "next_prompt": next_prompt(interview.candidate),
            "candidate": interview.candidate.to_dict(),
        }
