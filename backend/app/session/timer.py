from __future__ import annotations

import logging
from typing import Callable

from app.interview.errors import AlreadyArmed
from app.interview.models import Question
from app.session.clock import Clock, ClockHandle


logger = logging.getLogger("app.session.timer")

ExpiredFn = Callable[[Question, int], None]
TickFn = Callable[[Question, int, int], None]


class QuestionTimer:
    """Times exactly one question at a time on top of a Clock."""

    def __init__(self, clock: Clock, on_expired: ExpiredFn, on_tick: TickFn | None = None):
        self.clock = clock
        self.on_expired = on_expired
        self.on_tick = on_tick
        self._handle: ClockHandle | None = None
        self._question: Question | None = None
        self._question_index: int | None = None
        self.remaining_seconds = 0

    @property
    def is_armed(self) -> bool:
        return self._handle is not None and self._handle.live

    @property
    def question_index(self) -> int | None:
        return self._question_index if self.is_armed else None

    def arm(self, question: Question, index: int) -> ClockHandle:
        if self.is_armed:
            raise AlreadyArmed(
                f"Timer already armed for question {self._question_index}; cannot arm question {index}"
            )
        if self._handle is not None:
            self.clock.cancel(self._handle)

        handle = self.clock.start(question.time_limit_seconds)
        self._handle = handle
        self._question = question
        self._question_index = index
        self.remaining_seconds = question.time_limit_seconds

        self.clock.on_tick(handle, lambda remaining: self._handle_tick(handle, remaining))
        self.clock.on_expire(handle, lambda: self._handle_expire(handle))
        logger.debug("armed | question=%s limit=%ss", question.id, question.time_limit_seconds)
        return handle

    def disarm(self) -> int:
        handle = self._handle
        if handle is not None and handle.live:
            self.clock.cancel(handle)
            logger.debug("disarmed | question_index=%s remaining=%ss", self._question_index, self.remaining_seconds)
        return self.remaining_seconds

    def _handle_tick(self, handle: ClockHandle, remaining: int) -> None:
        if handle is not self._handle:
            return
        self.remaining_seconds = remaining
        if self.on_tick is not None and self._question is not None:
            self.on_tick(self._question, int(self._question_index or 0), remaining)

    def _handle_expire(self, handle: ClockHandle) -> None:
        if handle is not self._handle or self._question is None:
            return
        self.remaining_seconds = 0
        self.on_expired(self._question, int(self._question_index or 0))
