class InterviewError(Exception):
    """Base class for interview session errors."""


class ValidationError(InterviewError):
    """A candidate field is missing or malformed; recovered by re-prompting."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class AlreadyAnswered(InterviewError):
    """A response already exists (or is being scored) for the question."""

    def __init__(self, question_index: int, message: str | None = None):
        super().__init__(message or f"Question {question_index + 1} already answered")
        self.question_index = question_index


class AlreadyArmed(InterviewError):
    """The question timer was armed while a countdown is still live."""


class ScoringUnavailable(InterviewError):
    """The scoring collaborator failed or returned unusable output."""


class TerminationInFlight(InterviewError):
    """A submission arrived while the session was being terminated."""


class InvalidTransition(InterviewError):
    """The requested operation is impossible in the current session state."""
