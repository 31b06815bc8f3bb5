from enum import Enum
import time
import logging

logger = logging.getLogger("app.turn")


class TurnState(Enum):
    OPEN = "open"
    SCORING = "scoring"
    RECORDED = "recorded"
    ABANDONED = "abandoned"


class QuestionTurn:
    """Claim state for one question index; at most one submission ever wins it."""

    def __init__(self, question_index: int):
        self.question_index = question_index
        self.state = TurnState.OPEN
        self.claimed_by: str | None = None
        self.claimed_at: float | None = None
        self.recorded_at: float | None = None

    @property
    def is_open(self) -> bool:
        return self.state == TurnState.OPEN

    def try_claim(self, reason: str) -> bool:
        if self.state != TurnState.OPEN:
            logger.info(
                f"[TURN {self.question_index + 1}] Claim rejected ({self.state.value}) | reason={reason} holder={self.claimed_by}"
            )
            return False

        logger.debug(f"[TURN {self.question_index + 1}] Transition OPEN → SCORING | reason={reason}")
        self.state = TurnState.SCORING
        self.claimed_by = reason
        self.claimed_at = time.monotonic()
        return True

    def mark_recorded(self) -> bool:
        if self.state != TurnState.SCORING:
            return False
        self.state = TurnState.RECORDED
        self.recorded_at = time.monotonic()
        logger.debug(f"[TURN {self.question_index + 1}] RECORDED | latency={self.recorded_at - (self.claimed_at or self.recorded_at):.2f}s")
        return True

    def abandon(self) -> None:
        if self.state in (TurnState.OPEN, TurnState.SCORING):
            self.state = TurnState.ABANDONED
