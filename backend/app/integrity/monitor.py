from __future__ import annotations

import logging
import time
from typing import Callable

from app.integrity.signals import SignalSource, Unsubscribe
from app.interview.models import Violation
from core.state import InterviewMode, SignalKind, ViolationKind


logger = logging.getLogger("app.integrity.monitor")

# (question_number, question_text) of the question being answered, or None
ActiveQuestionFn = Callable[[], "tuple[int, str] | None"]
ViolationSink = Callable[[Violation, bool], None]

TERMINATING_KINDS: dict[InterviewMode, frozenset[ViolationKind]] = {
    InterviewMode.PROCTORED: frozenset({ViolationKind.FULLSCREEN_EXIT, ViolationKind.TAB_CHANGE}),
    InterviewMode.MONITORED: frozenset(),
    InterviewMode.PRACTICE: frozenset(),
}


class IntegrityMonitor:
    """Turns environment signals into violations; flags only, never decides outcomes."""

    def __init__(
        self,
        signal_source: SignalSource,
        active_question: ActiveQuestionFn,
        on_violation: ViolationSink,
        mode: InterviewMode = InterviewMode.PROCTORED,
        now_fn: Callable[[], float] = time.time,
    ):
        self.signal_source = signal_source
        self.active_question = active_question
        self.on_violation = on_violation
        self.mode = InterviewMode(mode)
        self.now_fn = now_fn
        self.violations: list[Violation] = []
        self._unsubscribes: list[Unsubscribe] = []
        self._fullscreen: bool | None = None

    @property
    def enabled(self) -> bool:
        return self.mode != InterviewMode.PRACTICE

    @property
    def attached(self) -> bool:
        return bool(self._unsubscribes)

    def attach(self) -> None:
        if self.attached or not self.enabled:
            return
        self._unsubscribes = [
            self.signal_source.subscribe(SignalKind.FULLSCREEN, self._on_fullscreen),
            self.signal_source.subscribe(SignalKind.VISIBILITY, self._on_visibility),
            self.signal_source.subscribe(SignalKind.FOCUS, self._on_focus),
        ]

    def detach(self) -> None:
        unsubscribes, self._unsubscribes = self._unsubscribes, []
        for unsubscribe in unsubscribes:
            unsubscribe()

    def _on_fullscreen(self, is_fullscreen: bool) -> None:
        previous, self._fullscreen = self._fullscreen, bool(is_fullscreen)
        if is_fullscreen or previous is False:
            return
        self._flag(ViolationKind.FULLSCREEN_EXIT)

    def _on_visibility(self, is_visible: bool) -> None:
        if not is_visible:
            self._flag(ViolationKind.TAB_CHANGE)

    def _on_focus(self, has_focus: bool) -> None:
        if not has_focus:
            self._flag(ViolationKind.WINDOW_BLUR)

    def _flag(self, kind: ViolationKind) -> None:
        active = self.active_question()
        if active is None:
            return
        question_number, question_text = active
        violation = Violation(
            kind=kind,
            timestamp=float(self.now_fn()),
            question_number=int(question_number),
            question_text=str(question_text or "Unknown question"),
        )
        self.violations.append(violation)
        terminate = kind in TERMINATING_KINDS.get(self.mode, frozenset())
        logger.info("violation | kind=%s question=%s terminate=%s", kind.value, question_number, terminate)
        self.on_violation(violation, terminate)
